from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskmaster.dependencies import get_db, get_current_user, get_storage
from taskmaster.models.user import User as UserModel
from taskmaster.schemas.task import Attachment, AttachmentCreate
from taskmaster.services import attachments as attachment_service
from taskmaster.services.storage import CloudStorage

router = APIRouter(prefix="/attachments", tags=["attachments"])


@router.post("/", response_model=Attachment, status_code=status.HTTP_201_CREATED)
async def create_attachment(
    attachment_data: AttachmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    attachment = await attachment_service.create_attachment(db, attachment_data, current_user.id)
    await db.commit()
    return await attachment_service.get_attachment(db, attachment.id)


@router.get("/", response_model=list[Attachment])
async def list_attachments(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await attachment_service.list_visible_attachments(db, current_user.id)


@router.get("/task/{task_id}", response_model=list[Attachment])
async def list_task_attachments(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await attachment_service.list_attachments_by_task(db, task_id)


@router.get("/{attachment_id}", response_model=Attachment)
async def get_attachment(
    attachment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await attachment_service.get_attachment(db, attachment_id)


@router.delete("/{attachment_id}", response_model=Attachment)
async def delete_attachment(
    attachment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    storage: CloudStorage = Depends(get_storage),
):
    attachment = await attachment_service.delete_attachment(db, attachment_id, current_user.id, storage)
    await db.commit()
    return attachment
