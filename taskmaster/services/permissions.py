from sqlalchemy import exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskmaster.exceptions import ForbiddenError, NotFoundError, ValidationError
from taskmaster.models.project import Project, ProjectMember
from taskmaster.models.tasks import Task
from taskmaster.models.user import User

ADMIN_ROLE = "ADMIN"


def is_admin(user: User) -> bool:
    return user.role is not None and user.role.name == ADMIN_ROLE


def visible_project_ids(user_id: int):
    """Select of project ids the user owns or is a member of."""
    return select(Project.id).where(
        or_(
            Project.owner_id == user_id,
            exists().where(
                ProjectMember.project_id == Project.id,
                ProjectMember.user_id == user_id,
            ),
        )
    ).correlate(None)


def project_visible_clause(user_id: int):
    return Project.id.in_(visible_project_ids(user_id))


def task_visible_clause(user_id: int):
    return or_(
        Task.assignee_id == user_id,
        Task.project_id.in_(visible_project_ids(user_id)),
    )


async def is_member(db: AsyncSession, project_id: int, user_id: int) -> bool:
    result = await db.execute(
        select(ProjectMember.id).filter(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )
    return result.first() is not None


async def can_modify_project(db: AsyncSession, project: Project, user_id: int) -> bool:
    """Owner or member of the project."""
    if project.owner_id == user_id:
        return True
    return await is_member(db, project.id, user_id)


async def get_project_or_404(db: AsyncSession, project_id: int) -> Project:
    result = await db.execute(select(Project).filter(Project.id == project_id))
    project = result.scalars().first()
    if not project:
        raise NotFoundError("Project not found")
    return project


async def ensure_can_modify_project(db: AsyncSession, project: Project, user_id: int):
    if not await can_modify_project(db, project, user_id):
        raise ForbiddenError("You are not the owner or a member of this project")


def ensure_project_owner(project: Project, user_id: int):
    if project.owner_id != user_id:
        raise ForbiddenError("Only the project owner can perform this action")


async def validate_assignee(db: AsyncSession, project: Project, assignee_id: int | None):
    """An assignee must exist and be the project owner or one of its members."""
    if assignee_id is None:
        return
    result = await db.execute(select(User.id).filter(User.id == assignee_id))
    if result.first() is None:
        raise ValidationError("Assignee not found")
    if assignee_id == project.owner_id:
        return
    if not await is_member(db, project.id, assignee_id):
        raise ValidationError("Assignee must be the project owner or a project member")
