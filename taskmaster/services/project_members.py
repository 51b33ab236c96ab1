import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from taskmaster.database import flush_or_conflict
from taskmaster.exceptions import ConflictError, NotFoundError, ValidationError
from taskmaster.models.project import Project, ProjectMember
from taskmaster.models.user import User
from taskmaster.schemas.project import ProjectMemberCreate, ProjectMemberUpdate
from taskmaster.services import permissions
from taskmaster.services.users import get_user_by_identifier

logger = logging.getLogger(__name__)

DUPLICATE_MEMBER = "User is already a member of this project"


def _member_query():
    return select(ProjectMember).options(
        selectinload(ProjectMember.user),
        selectinload(ProjectMember.project),
    )


async def get_member(db: AsyncSession, member_id: int) -> ProjectMember:
    result = await db.execute(
        _member_query()
        .filter(ProjectMember.id == member_id)
        .execution_options(populate_existing=True)
    )
    member = result.scalars().first()
    if not member:
        raise NotFoundError(f"Project member with ID {member_id} not found")
    return member


async def get_member_by_project_and_user(db: AsyncSession, project_id: int, user_id: int) -> ProjectMember:
    result = await db.execute(
        _member_query().filter(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )
    member = result.scalars().first()
    if not member:
        raise NotFoundError(f"User {user_id} is not a member of project {project_id}")
    return member


async def add_member(db: AsyncSession, member_data: ProjectMemberCreate, acting_user_id: int) -> ProjectMember:
    project = await db.get(Project, member_data.project_id)
    if not project:
        raise ValidationError(f"Project with ID {member_data.project_id} not found")
    await permissions.ensure_can_modify_project(db, project, acting_user_id)

    if member_data.user_id is not None:
        user = await db.get(User, member_data.user_id)
    else:
        user = await get_user_by_identifier(db, member_data.user_identifier)
    if not user:
        raise ValidationError("User not found")

    if await permissions.is_member(db, project.id, user.id):
        raise ConflictError(DUPLICATE_MEMBER)

    member = ProjectMember(project_id=project.id, user_id=user.id, role=member_data.role)
    db.add(member)
    await flush_or_conflict(db, DUPLICATE_MEMBER)
    logger.info("[MEMBERS] User %s added to project %s as %s", user.id, project.id, member_data.role)
    return member


async def list_members(db: AsyncSession) -> list[ProjectMember]:
    result = await db.execute(_member_query().order_by(ProjectMember.id))
    return result.scalars().all()


async def list_members_by_project(db: AsyncSession, project_id: int) -> list[ProjectMember]:
    if await db.get(Project, project_id) is None:
        raise NotFoundError(f"Project with ID {project_id} not found")
    result = await db.execute(
        _member_query()
        .filter(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.joined_at, ProjectMember.id)
    )
    return result.scalars().all()


async def list_memberships_by_user(db: AsyncSession, user_id: int) -> list[ProjectMember]:
    if await db.get(User, user_id) is None:
        raise NotFoundError(f"User with ID {user_id} not found")
    result = await db.execute(
        _member_query()
        .filter(ProjectMember.user_id == user_id)
        .order_by(ProjectMember.joined_at, ProjectMember.id)
    )
    return result.scalars().all()


async def update_member(
    db: AsyncSession, member_id: int, update: ProjectMemberUpdate, acting_user_id: int
) -> ProjectMember:
    member = await get_member(db, member_id)
    await permissions.ensure_can_modify_project(db, member.project, acting_user_id)

    if (update.project_id is not None and update.project_id != member.project_id) or (
        update.user_id is not None and update.user_id != member.user_id
    ):
        raise ValidationError("The project or user of an existing member cannot be changed")

    if update.role is not None:
        member.role = update.role
    await db.flush()
    return member


async def remove_member(db: AsyncSession, member: ProjectMember, acting_user_id: int):
    await permissions.ensure_can_modify_project(db, member.project, acting_user_id)
    await db.delete(member)
    logger.info("[MEMBERS] User %s removed from project %s", member.user_id, member.project_id)
