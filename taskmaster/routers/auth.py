from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from taskmaster.config import Settings, get_settings
from taskmaster.dependencies import get_db, get_current_user
from taskmaster.exceptions import UnauthorizedError
from taskmaster.models.user import User as UserModel
from taskmaster.schemas.user import (
    ForgotPasswordRequest, LoginRequest, MessageResponse, RegisterRequest,
    ResetPasswordRequest, Token, UserCreate, UserResponse,
)
from taskmaster.services import password_recovery
from taskmaster.services import users as user_service
from taskmaster.utils.sanitization import normalize_email
from taskmaster.utils.security import create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])

RECOVERY_MESSAGE = "If the email is registered, a verification code has been sent"


def issue_token(user: UserModel, settings: Settings) -> Token:
    access_token = create_access_token(
        data={
            "sub": str(user.id),
            "email": user.email,
            "username": user.username,
            "role": user.role.name if user.role else None,
        },
        settings=settings,
    )
    return Token(access_token=access_token, token_type="bearer")


async def _login(db: AsyncSession, email: str, password: str, settings: Settings) -> Token:
    user = await user_service.authenticate(db, normalize_email(email), password)
    if not user:
        raise UnauthorizedError("Incorrect email or password")
    if not user.status:
        raise UnauthorizedError("Inactive user")
    return issue_token(user, settings)


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = await user_service.create_user(
        db, UserCreate(**payload.model_dump()), settings.DEFAULT_ROLE_NAME
    )
    await db.commit()
    user = await user_service.get_user_by_id(db, user.id)
    return issue_token(user, settings)


@router.post("/login", response_model=Token)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await _login(db, payload.email, payload.password, settings)


@router.post("/token", response_model=Token)
async def login_for_access_token(
    db: AsyncSession = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
    settings: Settings = Depends(get_settings),
):
    # OAuth2 calls the field "username"; it carries the email here
    return await _login(db, form_data.username, form_data.password, settings)


@router.get("/me", response_model=UserResponse)
async def read_me(current_user: UserModel = Depends(get_current_user)):
    return current_user


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    await password_recovery.request_password_reset(db, payload.email, settings)
    return {"message": RECOVERY_MESSAGE}


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(payload: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    await password_recovery.reset_password(db, payload.email, payload.code, payload.password)
    return {"message": "Password has been reset successfully"}
