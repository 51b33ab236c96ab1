from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskmaster.config import Settings, get_settings
from taskmaster.dependencies import get_db, get_current_user, get_storage
from taskmaster.exceptions import ValidationError
from taskmaster.models.user import User as UserModel
from taskmaster.schemas.user import UserCreate, UserResponse, UserUpdate
from taskmaster.services import users as user_service
from taskmaster.services.storage import CloudStorage

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user: UserCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    new_user = await user_service.create_user(db, user, settings.DEFAULT_ROLE_NAME)
    await db.commit()
    return await user_service.get_user_by_id(db, new_user.id)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: UserModel = Depends(get_current_user)):
    return current_user


@router.get("/", response_model=list[UserResponse])
async def list_users(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await user_service.list_users(db)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await user_service.get_user_by_id(db, user_id)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_update: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    await user_service.update_user(db, user_id, user_update, current_user)
    await db.commit()
    return await user_service.get_user_by_id(db, user_id)


@router.put("/{user_id}/avatar", response_model=UserResponse)
async def upload_avatar(
    user_id: int,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    storage: CloudStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    user_service.ensure_self_or_admin(user_id, current_user)
    user = await user_service.get_user_by_id(db, user_id)

    if not (file.content_type or "").startswith("image/"):
        raise ValidationError("Avatar must be an image")
    data = await file.read(settings.MAX_AVATAR_SIZE_BYTES + 1)
    if not data:
        raise ValidationError("Uploaded file is empty")
    if len(data) > settings.MAX_AVATAR_SIZE_BYTES:
        raise ValidationError("Avatar exceeds the maximum allowed size")

    stored = await storage.upload(data, folder="avatars", resource_type="image", tags=[f"user_{user_id}"])
    user.avatar = stored.url
    await db.commit()
    return await user_service.get_user_by_id(db, user_id)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    await user_service.delete_user(db, user_id, current_user)
    await db.commit()
    return None
