import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from taskmaster.database import flush_or_conflict
from taskmaster.exceptions import ConflictError, NotFoundError, ValidationError, ForbiddenError
from taskmaster.models.project import Project
from taskmaster.models.user import Role, User
from taskmaster.schemas.user import UserCreate, UserUpdate
from taskmaster.services.permissions import is_admin, ADMIN_ROLE
from taskmaster.utils.security import get_password_hash, verify_password

logger = logging.getLogger(__name__)

DEFAULT_ROLES = {
    ADMIN_ROLE: "Full access to every user account",
    "USER": "Regular account",
}


async def seed_roles(db: AsyncSession):
    """
    Insert the default roles that are missing. Every worker process seeds on
    startup, so a role inserted by another worker in the meantime is skipped.
    """
    for name, description in DEFAULT_ROLES.items():
        result = await db.execute(select(Role.id).filter(Role.name == name))
        if result.first():
            continue
        db.add(Role(name=name, description=description))
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.info("[SEED] Role %s was created by another worker", name)
        else:
            logger.info("[SEED] Created role %s", name)


async def get_role_by_name(db: AsyncSession, name: str) -> Role:
    result = await db.execute(select(Role).filter(Role.name == name))
    role = result.scalars().first()
    if not role:
        raise ValidationError(f"Role '{name}' does not exist")
    return role


async def get_user_by_id(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(
        select(User)
        .options(selectinload(User.role))
        .filter(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalars().first()
    if not user:
        raise NotFoundError(f"User with ID {user_id} not found")
    return user


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(
        select(User).options(selectinload(User.role)).filter(User.email == email)
    )
    return result.scalars().first()


async def get_user_by_identifier(db: AsyncSession, identifier: str) -> User | None:
    """Look a user up by username or email."""
    identifier = identifier.strip()
    result = await db.execute(
        select(User).filter(
            or_(User.username == identifier, User.email == identifier.lower())
        )
    )
    return result.scalars().first()


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(
        select(User).options(selectinload(User.role)).order_by(User.id)
    )
    return result.scalars().all()


async def _ensure_unique(db: AsyncSession, email: str | None, username: str | None, exclude_id: int | None = None):
    if email:
        stmt = select(User.id).filter(User.email == email)
        if exclude_id is not None:
            stmt = stmt.filter(User.id != exclude_id)
        if (await db.execute(stmt)).first():
            raise ConflictError("Email is already registered")
    if username:
        stmt = select(User.id).filter(User.username == username)
        if exclude_id is not None:
            stmt = stmt.filter(User.id != exclude_id)
        if (await db.execute(stmt)).first():
            raise ConflictError("Username is already taken")


async def create_user(db: AsyncSession, user_data: UserCreate, default_role: str) -> User:
    await _ensure_unique(db, user_data.email, user_data.username)

    role = await get_role_by_name(db, default_role)

    data = user_data.model_dump(exclude={"password"})
    new_user = User(**data, role_id=role.id, password=get_password_hash(user_data.password))
    db.add(new_user)
    await flush_or_conflict(db, "Email or username is already registered")
    logger.info("[USERS] Created user %s (%s)", new_user.id, new_user.email)
    return new_user


async def authenticate(db: AsyncSession, email: str, password: str) -> User | None:
    user = await get_user_by_email(db, email)
    if not user or not verify_password(password, user.password):
        return None
    return user


def ensure_self_or_admin(target_id: int, acting_user: User):
    if acting_user.id != target_id and not is_admin(acting_user):
        raise ForbiddenError("You can only manage your own account")


async def update_user(db: AsyncSession, user_id: int, user_update: UserUpdate, acting_user: User) -> User:
    ensure_self_or_admin(user_id, acting_user)
    user = await get_user_by_id(db, user_id)

    update_data = user_update.model_dump(exclude_unset=True)
    # Role and active flag are administrative fields
    if ("role_id" in update_data or "status" in update_data) and not is_admin(acting_user):
        raise ForbiddenError("Only administrators can change roles or account status")

    await _ensure_unique(db, update_data.get("email"), update_data.get("username"), exclude_id=user_id)

    if update_data.get("role_id") is not None:
        if not await db.get(Role, update_data["role_id"]):
            raise ValidationError(f"Role with ID {update_data['role_id']} not found")

    password = update_data.pop("password", None)
    if password:
        user.password = get_password_hash(password)

    for key, value in update_data.items():
        if key in ("email", "role_id", "status") and value is None:
            continue
        setattr(user, key, value)

    await flush_or_conflict(db, "Email or username is already registered")
    return user


async def delete_user(db: AsyncSession, user_id: int, acting_user: User):
    ensure_self_or_admin(user_id, acting_user)
    user = await get_user_by_id(db, user_id)
    owned = await db.execute(select(Project.id).filter(Project.owner_id == user_id).limit(1))
    if owned.first():
        raise ConflictError("User still owns projects; transfer or delete them first")
    await db.delete(user)
    logger.info("[USERS] Deleted user %s", user_id)
