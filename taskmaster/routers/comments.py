from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskmaster.dependencies import get_db, get_current_user
from taskmaster.models.user import User as UserModel
from taskmaster.schemas.task import Comment, CommentCreate, CommentUpdate
from taskmaster.services import comments as comment_service

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("/", response_model=Comment, status_code=status.HTTP_201_CREATED)
async def create_comment(
    comment_data: CommentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    comment = await comment_service.create_comment(db, comment_data, current_user.id)
    await db.commit()
    return await comment_service.get_comment(db, comment.id)


@router.get("/", response_model=list[Comment])
async def list_comments(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await comment_service.list_visible_comments(db, current_user.id)


@router.get("/task/{task_id}", response_model=list[Comment])
async def list_task_comments(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await comment_service.list_comments_by_task(db, task_id)


@router.get("/{comment_id}", response_model=Comment)
async def get_comment(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await comment_service.get_comment(db, comment_id)


@router.patch("/{comment_id}", response_model=Comment)
async def update_comment(
    comment_id: int,
    update_data: CommentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    await comment_service.update_comment(db, comment_id, update_data, current_user.id)
    await db.commit()
    return await comment_service.get_comment(db, comment_id)


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    await comment_service.delete_comment(db, comment_id, current_user.id)
    await db.commit()
    return None
