from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskmaster.dependencies import get_db, get_current_user
from taskmaster.models.user import User as UserModel
from taskmaster.schemas.project import ProjectMember, ProjectMemberCreate, ProjectMemberUpdate
from taskmaster.services import project_members as member_service

router = APIRouter(prefix="/project-members", tags=["project-members"])


@router.post("/", response_model=ProjectMember, status_code=status.HTTP_201_CREATED)
async def add_member(
    member_data: ProjectMemberCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    member = await member_service.add_member(db, member_data, current_user.id)
    await db.commit()
    return await member_service.get_member(db, member.id)


@router.get("/", response_model=list[ProjectMember])
async def list_members(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await member_service.list_members(db)


@router.get("/project/{project_id}", response_model=list[ProjectMember])
async def list_project_members(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await member_service.list_members_by_project(db, project_id)


@router.get("/user/{user_id}", response_model=list[ProjectMember])
async def list_user_memberships(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await member_service.list_memberships_by_user(db, user_id)


@router.get("/project/{project_id}/user/{user_id}", response_model=ProjectMember)
async def get_membership(
    project_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await member_service.get_member_by_project_and_user(db, project_id, user_id)


@router.get("/{member_id}", response_model=ProjectMember)
async def get_member(
    member_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await member_service.get_member(db, member_id)


@router.patch("/{member_id}", response_model=ProjectMember)
async def update_member(
    member_id: int,
    update_data: ProjectMemberUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    await member_service.update_member(db, member_id, update_data, current_user.id)
    await db.commit()
    return await member_service.get_member(db, member_id)


@router.delete("/project/{project_id}/user/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_membership(
    project_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    member = await member_service.get_member_by_project_and_user(db, project_id, user_id)
    await member_service.remove_member(db, member, current_user.id)
    await db.commit()
    return None


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    member_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    member = await member_service.get_member(db, member_id)
    await member_service.remove_member(db, member, current_user.id)
    await db.commit()
    return None
