from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskmaster.dependencies import get_db, get_current_user
from taskmaster.models.user import User as UserModel
from taskmaster.schemas.project import Project, ProjectCreate, ProjectDetail, ProjectUpdate
from taskmaster.services import projects as project_service

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("/", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    project = await project_service.create_project(db, project_data, current_user.id)
    await db.commit()
    return await project_service.get_project(db, project.id)


@router.get("/", response_model=list[Project])
async def list_projects(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await project_service.list_visible_projects(db, current_user.id)


@router.get("/owner/{owner_id}", response_model=list[Project])
async def list_projects_by_owner(
    owner_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await project_service.list_projects_by_owner(db, owner_id)


@router.get("/{project_id}", response_model=ProjectDetail)
async def get_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await project_service.get_project(db, project_id, with_members=True)


@router.patch("/{project_id}", response_model=Project)
async def update_project(
    project_id: int,
    update_data: ProjectUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    await project_service.update_project(db, project_id, update_data, current_user.id)
    await db.commit()
    return await project_service.get_project(db, project_id)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    await project_service.delete_project(db, project_id, current_user.id)
    await db.commit()
    return None
