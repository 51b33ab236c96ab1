import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from taskmaster.exceptions import ForbiddenError, NotFoundError, ValidationError
from taskmaster.models.tasks import Task, Attachment
from taskmaster.schemas.task import AttachmentCreate
from taskmaster.services import permissions
from taskmaster.services.storage import CloudStorage, resource_type_for

logger = logging.getLogger(__name__)


def _attachment_query():
    return select(Attachment).options(
        selectinload(Attachment.user),
        selectinload(Attachment.task),
    )


async def get_attachment(db: AsyncSession, attachment_id: int) -> Attachment:
    result = await db.execute(
        _attachment_query()
        .filter(Attachment.id == attachment_id)
        .execution_options(populate_existing=True)
    )
    attachment = result.scalars().first()
    if not attachment:
        raise NotFoundError(f"Attachment with ID {attachment_id} not found")
    return attachment


async def create_attachment(db: AsyncSession, data: AttachmentCreate, user_id: int) -> Attachment:
    if await db.get(Task, data.task_id) is None:
        raise ValidationError(f"Task with ID {data.task_id} not found")

    attachment = Attachment(**data.model_dump(), user_id=user_id)
    db.add(attachment)
    await db.flush()
    logger.info("[ATTACHMENTS] User %s attached %s to task %s", user_id, data.filename, data.task_id)
    return attachment


async def list_visible_attachments(db: AsyncSession, user_id: int) -> list[Attachment]:
    result = await db.execute(
        _attachment_query()
        .join(Task, Attachment.task_id == Task.id)
        .filter(permissions.task_visible_clause(user_id))
        .order_by(Attachment.created_at.desc(), Attachment.id.desc())
    )
    return result.scalars().all()


async def list_attachments_by_task(db: AsyncSession, task_id: int) -> list[Attachment]:
    if await db.get(Task, task_id) is None:
        raise NotFoundError(f"Task with ID {task_id} not found")
    result = await db.execute(
        _attachment_query()
        .filter(Attachment.task_id == task_id)
        .order_by(Attachment.created_at.desc(), Attachment.id.desc())
    )
    return result.scalars().all()


async def delete_attachment(db: AsyncSession, attachment_id: int, user_id: int, storage: CloudStorage) -> Attachment:
    """
    Uploader or owner of the task's project. The stored object is removed
    first so a storage failure leaves the record in place.
    """
    result = await db.execute(
        _attachment_query()
        .options(selectinload(Attachment.task).selectinload(Task.project))
        .filter(Attachment.id == attachment_id)
    )
    attachment = result.scalars().first()
    if not attachment:
        raise NotFoundError(f"Attachment with ID {attachment_id} not found")
    if user_id not in (attachment.user_id, attachment.task.project.owner_id):
        raise ForbiddenError("Only the uploader or the project owner can delete this attachment")

    await storage.delete(attachment.filename, resource_type_for(attachment.mime_type))
    await db.delete(attachment)
    logger.info("[ATTACHMENTS] User %s deleted attachment %s", user_id, attachment_id)
    return attachment
