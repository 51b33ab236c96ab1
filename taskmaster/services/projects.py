import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from taskmaster.exceptions import NotFoundError, ValidationError
from taskmaster.models.project import Project, ProjectMember
from taskmaster.models.tasks import Task
from taskmaster.models.user import User
from taskmaster.schemas.project import ProjectCreate, ProjectUpdate
from taskmaster.services import permissions

logger = logging.getLogger(__name__)


def _project_query():
    return select(Project).options(selectinload(Project.owner))


async def get_project(db: AsyncSession, project_id: int, with_members: bool = False) -> Project:
    stmt = _project_query().filter(Project.id == project_id).execution_options(populate_existing=True)
    if with_members:
        stmt = stmt.options(selectinload(Project.members).selectinload(ProjectMember.user))
    result = await db.execute(stmt)
    project = result.scalars().first()
    if not project:
        raise NotFoundError(f"Project with ID {project_id} not found")
    return project


async def create_project(db: AsyncSession, project_data: ProjectCreate, owner_id: int) -> Project:
    project = Project(**project_data.model_dump(), owner_id=owner_id)
    db.add(project)
    await db.flush()
    logger.info("[PROJECTS] User %s created project %s", owner_id, project.id)
    return project


async def list_visible_projects(db: AsyncSession, user_id: int) -> list[Project]:
    result = await db.execute(
        _project_query()
        .filter(permissions.project_visible_clause(user_id))
        .order_by(Project.updated_at.desc(), Project.id.desc())
    )
    return result.scalars().all()


async def list_projects_by_owner(db: AsyncSession, owner_id: int) -> list[Project]:
    if await db.get(User, owner_id) is None:
        raise NotFoundError(f"User with ID {owner_id} not found")
    result = await db.execute(
        _project_query()
        .filter(Project.owner_id == owner_id)
        .order_by(Project.created_at.desc(), Project.id.desc())
    )
    return result.scalars().all()


async def update_project(db: AsyncSession, project_id: int, update: ProjectUpdate, user_id: int) -> Project:
    project = await get_project(db, project_id)
    await permissions.ensure_can_modify_project(db, project, user_id)

    update_data = update.model_dump(exclude_unset=True)
    if "owner_id" in update_data:
        new_owner_id = update_data.pop("owner_id")
        if new_owner_id is not None and new_owner_id != project.owner_id:
            # Ownership transfer stays with the current owner
            permissions.ensure_project_owner(project, user_id)
            if await db.get(User, new_owner_id) is None:
                raise ValidationError(f"User with ID {new_owner_id} not found")
            project.owner_id = new_owner_id

    for key, value in update_data.items():
        if key in ("name", "status") and value is None:
            continue
        setattr(project, key, value)

    if project.start_date and project.end_date and project.end_date < project.start_date:
        raise ValidationError("end_date must not be before start_date")

    await db.flush()
    return project


async def delete_project(db: AsyncSession, project_id: int, user_id: int):
    """Owner only. Members, tasks and their comments and attachments go with it."""
    result = await db.execute(
        select(Project)
        .options(
            selectinload(Project.members),
            selectinload(Project.tasks).selectinload(Task.comments),
            selectinload(Project.tasks).selectinload(Task.attachments),
        )
        .filter(Project.id == project_id)
    )
    project = result.scalars().first()
    if not project:
        raise NotFoundError(f"Project with ID {project_id} not found")
    permissions.ensure_project_owner(project, user_id)

    await db.delete(project)
    logger.info("[PROJECTS] User %s deleted project %s", user_id, project_id)
