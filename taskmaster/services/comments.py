import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from taskmaster.exceptions import ForbiddenError, NotFoundError, ValidationError
from taskmaster.models.tasks import Task, Comment
from taskmaster.schemas.task import CommentCreate, CommentUpdate
from taskmaster.services import permissions

logger = logging.getLogger(__name__)


def _comment_query():
    return select(Comment).options(
        selectinload(Comment.user),
        selectinload(Comment.task),
    )


async def get_comment(db: AsyncSession, comment_id: int) -> Comment:
    result = await db.execute(
        _comment_query()
        .filter(Comment.id == comment_id)
        .execution_options(populate_existing=True)
    )
    comment = result.scalars().first()
    if not comment:
        raise NotFoundError(f"Comment with ID {comment_id} not found")
    return comment


async def create_comment(db: AsyncSession, comment_data: CommentCreate, user_id: int) -> Comment:
    if await db.get(Task, comment_data.task_id) is None:
        raise ValidationError(f"Task with ID {comment_data.task_id} not found")

    comment = Comment(task_id=comment_data.task_id, user_id=user_id, content=comment_data.content)
    db.add(comment)
    await db.flush()
    logger.info("[COMMENTS] User %s commented on task %s", user_id, comment_data.task_id)
    return comment


async def list_visible_comments(db: AsyncSession, user_id: int) -> list[Comment]:
    result = await db.execute(
        _comment_query()
        .join(Task, Comment.task_id == Task.id)
        .filter(permissions.task_visible_clause(user_id))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    return result.scalars().all()


async def list_comments_by_task(db: AsyncSession, task_id: int) -> list[Comment]:
    if await db.get(Task, task_id) is None:
        raise NotFoundError(f"Task with ID {task_id} not found")
    result = await db.execute(
        _comment_query()
        .filter(Comment.task_id == task_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    return result.scalars().all()


async def update_comment(db: AsyncSession, comment_id: int, update: CommentUpdate, user_id: int) -> Comment:
    comment = await get_comment(db, comment_id)
    if comment.user_id != user_id:
        raise ForbiddenError("Only the author can edit this comment")
    comment.content = update.content
    await db.flush()
    return comment


async def delete_comment(db: AsyncSession, comment_id: int, user_id: int):
    """Author or owner of the task's project."""
    result = await db.execute(
        select(Comment)
        .options(selectinload(Comment.task).selectinload(Task.project))
        .filter(Comment.id == comment_id)
    )
    comment = result.scalars().first()
    if not comment:
        raise NotFoundError(f"Comment with ID {comment_id} not found")
    if user_id not in (comment.user_id, comment.task.project.owner_id):
        raise ForbiddenError("Only the author or the project owner can delete this comment")

    await db.delete(comment)
    logger.info("[COMMENTS] User %s deleted comment %s", user_id, comment_id)
