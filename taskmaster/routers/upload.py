from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from taskmaster.config import Settings, get_settings
from taskmaster.dependencies import get_db, get_current_user, get_storage
from taskmaster.exceptions import NotFoundError, ValidationError
from taskmaster.models.tasks import Task
from taskmaster.models.user import User as UserModel
from taskmaster.schemas.task import UploadedFile
from taskmaster.services.storage import CloudStorage, resource_type_for
from taskmaster.utils.sanitization import clean_filename

router = APIRouter(prefix="/upload", tags=["upload"])


async def _read_upload(file: UploadFile, settings: Settings) -> bytes:
    # Never buffer more than one byte past the limit
    data = await file.read(settings.MAX_UPLOAD_SIZE_BYTES + 1)
    if not data:
        raise ValidationError("Uploaded file is empty")
    if len(data) > settings.MAX_UPLOAD_SIZE_BYTES:
        raise ValidationError("File exceeds the maximum allowed size")
    return data


def _result(file: UploadFile, stored, size: int) -> UploadedFile:
    return UploadedFile(
        filename=stored.public_id,
        original_name=clean_filename(file.filename),
        path=stored.url,
        mime_type=file.content_type or "application/octet-stream",
        size=size,
    )


@router.post("/", response_model=UploadedFile)
async def upload_file(
    file: UploadFile = File(...),
    current_user: UserModel = Depends(get_current_user),
    storage: CloudStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    data = await _read_upload(file, settings)
    stored = await storage.upload(data, folder="uploads", resource_type="auto")
    return _result(file, stored, len(data))


@router.post("/task/{task_id}", response_model=UploadedFile)
async def upload_task_file(
    task_id: int,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    storage: CloudStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    if await db.get(Task, task_id) is None:
        raise NotFoundError(f"Task with ID {task_id} not found")

    data = await _read_upload(file, settings)
    stored = await storage.upload(
        data,
        folder=f"tasks/{task_id}",
        resource_type=resource_type_for(file.content_type),
        tags=[f"task_{task_id}"],
    )
    return _result(file, stored, len(data))
