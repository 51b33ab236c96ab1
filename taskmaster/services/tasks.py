import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from taskmaster.exceptions import ForbiddenError, NotFoundError, ValidationError
from taskmaster.models.project import Project, ProjectMember
from taskmaster.models.tasks import Task, Comment, Attachment, TaskStatus
from taskmaster.models.user import User
from taskmaster.schemas.task import TaskCreate, TaskUpdate
from taskmaster.services import permissions

logger = logging.getLogger(__name__)


def _task_query():
    return select(Task).options(
        selectinload(Task.project),
        selectinload(Task.assignee),
    )


async def get_task_by_id(db: AsyncSession, task_id: int, with_children: bool = False) -> Task:
    stmt = _task_query().filter(Task.id == task_id).execution_options(populate_existing=True)
    if with_children:
        stmt = stmt.options(
            selectinload(Task.comments).selectinload(Comment.user),
            selectinload(Task.attachments).selectinload(Attachment.user),
        )
    result = await db.execute(stmt)
    task = result.scalars().first()
    if not task:
        raise NotFoundError(f"Task with ID {task_id} not found")
    return task


async def create_task(db: AsyncSession, task_data: TaskCreate, current_user_id: int) -> Task:
    project = await db.get(Project, task_data.project_id)
    if not project:
        raise ValidationError(f"Project with ID {task_data.project_id} not found")
    await permissions.ensure_can_modify_project(db, project, current_user_id)
    await permissions.validate_assignee(db, project, task_data.assignee_id)

    new_task = Task(**task_data.model_dump(), created_by_id=current_user_id)
    if new_task.status == TaskStatus.DONE.value and new_task.completed_at is None:
        new_task.completed_at = datetime.now(timezone.utc)

    db.add(new_task)
    await db.flush()
    logger.info("[TASKS] User %s created task %s in project %s", current_user_id, new_task.id, project.id)
    return new_task


async def list_tasks(
    db: AsyncSession,
    current_user_id: int,
    project_id: int | None = None,
    assignee_id: int | None = None,
    my_tasks: bool = False,
    status: str | None = None,
    priority: str | None = None,
) -> list[Task]:
    stmt = _task_query()
    if project_id is not None:
        stmt = stmt.filter(Task.project_id == project_id)
    if my_tasks:
        stmt = stmt.filter(Task.assignee_id == current_user_id)
    elif assignee_id is not None:
        stmt = stmt.filter(Task.assignee_id == assignee_id)
    if status:
        stmt = stmt.filter(Task.status == status)
    if priority:
        stmt = stmt.filter(Task.priority == priority)
    result = await db.execute(stmt.order_by(Task.updated_at.desc(), Task.id.desc()))
    return result.scalars().all()


async def list_tasks_by_project(db: AsyncSession, project_id: int) -> list[Task]:
    if await db.get(Project, project_id) is None:
        raise NotFoundError(f"Project with ID {project_id} not found")
    result = await db.execute(
        _task_query()
        .filter(Task.project_id == project_id)
        .order_by(Task.created_at.desc(), Task.id.desc())
    )
    return result.scalars().all()


async def list_tasks_by_assignee(db: AsyncSession, user_id: int) -> list[Task]:
    if await db.get(User, user_id) is None:
        raise NotFoundError(f"User with ID {user_id} not found")
    result = await db.execute(
        _task_query()
        .filter(Task.assignee_id == user_id)
        .order_by(Task.due_date.is_(None), Task.due_date.asc(), Task.id)
    )
    return result.scalars().all()


async def list_assignable_members(db: AsyncSession, project_id: int) -> list[dict]:
    """Project owner first, then members; each user appears once."""
    result = await db.execute(
        select(Project).options(selectinload(Project.owner)).filter(Project.id == project_id)
    )
    project = result.scalars().first()
    if not project:
        raise NotFoundError(f"Project with ID {project_id} not found")

    result = await db.execute(
        select(ProjectMember)
        .options(selectinload(ProjectMember.user))
        .filter(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.joined_at, ProjectMember.id)
    )

    def entry(user: User, role: str) -> dict:
        return {
            "id": user.id,
            "email": user.email,
            "username": user.username,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "avatar": user.avatar,
            "role": role,
        }

    assignable = [entry(project.owner, "Owner")]
    for member in result.scalars().all():
        if member.user_id != project.owner_id:
            assignable.append(entry(member.user, member.role.value))
    return assignable


async def update_task(db: AsyncSession, task_id: int, update_data: TaskUpdate, current_user_id: int) -> Task:
    task = await get_task_by_id(db, task_id)
    await permissions.ensure_can_modify_project(db, task.project, current_user_id)

    data = update_data.model_dump(exclude_unset=True)
    if "assignee_id" in data:
        await permissions.validate_assignee(db, task.project, data["assignee_id"])

    for key, value in data.items():
        if key in ("title", "status", "priority") and value is None:
            continue
        setattr(task, key, value)

    if task.status != TaskStatus.DONE.value:
        task.completed_at = None
    elif "completed_at" not in data and (data.get("status") == TaskStatus.DONE.value or task.completed_at is None):
        task.completed_at = datetime.now(timezone.utc)

    await db.flush()
    logger.info("[TASKS] User %s updated task %s: %s", current_user_id, task_id, sorted(data))
    return task


async def delete_task(db: AsyncSession, task_id: int, current_user_id: int):
    """Project owner or task creator. Comments and attachments are removed in the same unit of work."""
    result = await db.execute(
        select(Task)
        .options(
            selectinload(Task.project),
            selectinload(Task.comments),
            selectinload(Task.attachments),
        )
        .filter(Task.id == task_id)
    )
    task = result.scalars().first()
    if not task:
        raise NotFoundError(f"Task with ID {task_id} not found")
    if current_user_id not in (task.project.owner_id, task.created_by_id):
        raise ForbiddenError("Only the project owner or the task creator can delete this task")

    await db.delete(task)
    logger.info("[TASKS] User %s deleted task %s", current_user_id, task_id)
