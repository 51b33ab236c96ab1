from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from jose import JWTError
from taskmaster.config import Settings, get_settings
from taskmaster.database import get_db as db_session, AsyncSessionLocal
from taskmaster.exceptions import UnauthorizedError
from taskmaster.models.user import User as UserModel
from taskmaster.schemas.user import TokenData
from taskmaster.services.storage import CloudStorage
from taskmaster.utils.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def get_db(db: AsyncSession = Depends(db_session)):
    return db


def get_session_factory() -> async_sessionmaker:
    return AsyncSessionLocal


def get_storage(settings: Settings = Depends(get_settings)) -> CloudStorage:
    return CloudStorage(settings)


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    token: str = Depends(oauth2_scheme),
    settings: Settings = Depends(get_settings),
) -> UserModel:
    try:
        payload = decode_access_token(token, settings)
        subject = payload.get("sub")
        if subject is None:
            raise UnauthorizedError()
        token_data = TokenData(user_id=int(subject))
    except (JWTError, ValueError):
        raise UnauthorizedError()

    result = await db.execute(
        select(UserModel)
        .options(selectinload(UserModel.role))
        .filter(UserModel.id == token_data.user_id)
    )
    user = result.scalars().first()
    if user is None:
        raise UnauthorizedError()
    if not user.status:
        raise UnauthorizedError("Inactive user")
    return user