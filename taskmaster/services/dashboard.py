import asyncio
import logging

from sqlalchemy import case, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from taskmaster.models.project import Project, ProjectMember, ProjectStatus
from taskmaster.models.tasks import Task, Comment, Attachment, TaskStatus, PRIORITY_RANK
from taskmaster.models.user import User
from taskmaster.schemas.dashboard import (
    ActiveProjectItem, ActiveProjectsMetric, ActivityItem, CompletedTaskItem,
    CompletedTasksMetric, DashboardMetrics, PendingTaskItem, PendingTasksMetric,
    ProjectRef, RecentActivityMetric, RecentProjectItem, RecentProjectsMetric,
    TaskCollaboratorItem, TaskCollaboratorsMetric, UserRef,
)
from taskmaster.services.permissions import project_visible_clause, task_visible_clause

logger = logging.getLogger(__name__)

DEFAULT_LIMITS = {
    "active_projects": 5,
    "pending_tasks": 10,
    "completed_tasks": 5,
    "task_collaborators": 10,
    "recent_projects": 5,
    "recent_activity": 10,
}


def _user_ref(user: User | None) -> UserRef | None:
    if user is None:
        return None
    return UserRef(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        username=user.username,
        avatar=user.avatar,
    )


def _project_ref(project: Project) -> ProjectRef:
    return ProjectRef(id=project.id, name=project.name)


def _activity_user_name(user: User) -> str:
    full_name = f"{user.first_name or ''} {user.last_name or ''}".strip()
    return full_name or user.username or ""


class DashboardService:
    """
    Read-only metrics for one user's dashboard.

    Every section opens its own session from the factory so that
    get_dashboard can run all six concurrently.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], user_id: int):
        self.session_factory = session_factory
        self.user_id = user_id

    async def _count(self, db: AsyncSession, model, *criteria) -> int:
        result = await db.execute(select(func.count(model.id)).filter(*criteria))
        return result.scalar_one()

    async def get_active_projects(self, limit: int = 5) -> ActiveProjectsMetric:
        criteria = (
            project_visible_clause(self.user_id),
            Project.status == ProjectStatus.ACTIVE.value,
        )
        async with self.session_factory() as db:
            count = await self._count(db, Project, *criteria)
            result = await db.execute(
                select(Project)
                .options(selectinload(Project.owner))
                .filter(*criteria)
                .order_by(Project.updated_at.desc(), Project.id.desc())
                .limit(limit)
            )
            projects = result.scalars().all()

        return ActiveProjectsMetric(
            count=count,
            projects=[
                ActiveProjectItem(
                    id=p.id,
                    name=p.name,
                    description=p.description,
                    status=p.status,
                    owner=_user_ref(p.owner),
                    task_count=p.task_count,
                    member_count=p.member_count,
                )
                for p in projects
            ],
        )

    async def get_pending_tasks(self, limit: int = 10) -> PendingTasksMetric:
        criteria = (
            task_visible_clause(self.user_id),
            Task.status != TaskStatus.DONE.value,
        )
        priority_rank = case(PRIORITY_RANK, value=Task.priority, else_=0)
        async with self.session_factory() as db:
            count = await self._count(db, Task, *criteria)
            result = await db.execute(
                select(Task)
                .options(selectinload(Task.project), selectinload(Task.assignee))
                .filter(*criteria)
                # Highest priority first, then earliest due date with undated tasks last
                .order_by(priority_rank.desc(), Task.due_date.is_(None), Task.due_date.asc(), Task.id)
                .limit(limit)
            )
            tasks = result.scalars().all()

        return PendingTasksMetric(
            count=count,
            tasks=[
                PendingTaskItem(
                    id=t.id,
                    title=t.title,
                    status=t.status,
                    priority=t.priority,
                    due_date=t.due_date,
                    project=_project_ref(t.project),
                    assignee=_user_ref(t.assignee),
                )
                for t in tasks
            ],
        )

    async def get_completed_tasks(self, limit: int = 5) -> CompletedTasksMetric:
        criteria = (
            task_visible_clause(self.user_id),
            Task.status == TaskStatus.DONE.value,
        )
        async with self.session_factory() as db:
            count = await self._count(db, Task, *criteria)
            result = await db.execute(
                select(Task)
                .options(selectinload(Task.project), selectinload(Task.assignee))
                .filter(*criteria)
                .order_by(Task.completed_at.is_(None), Task.completed_at.desc(), Task.id.desc())
                .limit(limit)
            )
            tasks = result.scalars().all()

        return CompletedTasksMetric(
            count=count,
            tasks=[
                CompletedTaskItem(
                    id=t.id,
                    title=t.title,
                    completed_at=t.completed_at,
                    project=_project_ref(t.project),
                    assignee=_user_ref(t.assignee),
                )
                for t in tasks
            ],
        )

    async def get_task_collaborators(self, limit: int = 10) -> TaskCollaboratorsMetric:
        """
        Only assigned tasks count. Collaborators of a task are its project's
        members plus everyone who commented on it.
        """
        async with self.session_factory() as db:
            result = await db.execute(
                select(Task)
                .options(selectinload(Task.project))
                .filter(task_visible_clause(self.user_id))
                .filter(Task.assignee_id.isnot(None))
                .order_by(Task.updated_at.desc(), Task.id.desc())
                .limit(limit)
            )
            tasks = result.scalars().all()
            if not tasks:
                return TaskCollaboratorsMetric(tasks=[])

            project_ids = {t.project_id for t in tasks}
            task_ids = [t.id for t in tasks]

            members_by_project: dict[int, set[int]] = {pid: set() for pid in project_ids}
            result = await db.execute(
                select(ProjectMember.project_id, ProjectMember.user_id)
                .filter(ProjectMember.project_id.in_(project_ids))
            )
            for project_id, user_id in result.all():
                members_by_project[project_id].add(user_id)

            commenters_by_task: dict[int, set[int]] = {tid: set() for tid in task_ids}
            result = await db.execute(
                select(Comment.task_id, Comment.user_id)
                .filter(Comment.task_id.in_(task_ids))
                .distinct()
            )
            for task_id, user_id in result.all():
                commenters_by_task[task_id].add(user_id)

        return TaskCollaboratorsMetric(
            tasks=[
                TaskCollaboratorItem(
                    id=t.id,
                    title=t.title,
                    collaborator_count=len(members_by_project[t.project_id] | commenters_by_task[t.id]),
                    project=_project_ref(t.project),
                )
                for t in tasks
            ]
        )

    async def get_recent_projects(self, limit: int = 5) -> RecentProjectsMetric:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Project)
                .options(selectinload(Project.owner))
                .filter(project_visible_clause(self.user_id))
                .order_by(Project.created_at.desc(), Project.id.desc())
                .limit(limit)
            )
            projects = result.scalars().all()

        return RecentProjectsMetric(
            projects=[
                RecentProjectItem(
                    id=p.id,
                    name=p.name,
                    description=p.description,
                    status=p.status,
                    created_at=p.created_at,
                    owner=_user_ref(p.owner),
                )
                for p in projects
            ]
        )

    async def get_recent_activity(self, limit: int = 10) -> RecentActivityMetric:
        """
        Latest task, comment and attachment events. Each source is capped at
        ``limit`` before the merge, which is enough to fill the merged page.
        """
        visible = task_visible_clause(self.user_id)
        async with self.session_factory() as db:
            result = await db.execute(
                select(Task)
                .options(selectinload(Task.project), selectinload(Task.assignee))
                .filter(visible)
                .order_by(Task.updated_at.desc(), Task.id.desc())
                .limit(limit)
            )
            tasks = result.scalars().all()

            result = await db.execute(
                select(Comment)
                .join(Task, Comment.task_id == Task.id)
                .options(selectinload(Comment.user), selectinload(Comment.task).selectinload(Task.project))
                .filter(visible)
                .order_by(Comment.created_at.desc(), Comment.id.desc())
                .limit(limit)
            )
            comments = result.scalars().all()

            result = await db.execute(
                select(Attachment)
                .join(Task, Attachment.task_id == Task.id)
                .options(selectinload(Attachment.user), selectinload(Attachment.task).selectinload(Task.project))
                .filter(visible)
                .order_by(Attachment.created_at.desc(), Attachment.id.desc())
                .limit(limit)
            )
            attachments = result.scalars().all()

        activities = [
            ActivityItem(
                type="task_updated" if t.completed_at else "task_created",
                task_id=t.id,
                task_title=t.title,
                project_id=t.project.id,
                project_name=t.project.name,
                user_id=t.assignee.id if t.assignee else None,
                user_name=(_activity_user_name(t.assignee) or "User") if t.assignee else "System",
                user_avatar=t.assignee.avatar if t.assignee else None,
                timestamp=t.updated_at,
            )
            for t in tasks
        ]
        activities += [
            ActivityItem(
                type="comment_added",
                task_id=c.task.id,
                task_title=c.task.title,
                project_id=c.task.project.id,
                project_name=c.task.project.name,
                user_id=c.user.id,
                user_name=_activity_user_name(c.user),
                user_avatar=c.user.avatar,
                timestamp=c.created_at,
            )
            for c in comments
        ]
        activities += [
            ActivityItem(
                type="attachment_added",
                task_id=a.task.id,
                task_title=a.task.title,
                project_id=a.task.project.id,
                project_name=a.task.project.name,
                user_id=a.user.id,
                user_name=_activity_user_name(a.user),
                user_avatar=a.user.avatar,
                timestamp=a.created_at,
            )
            for a in attachments
        ]

        activities.sort(key=lambda item: item.timestamp, reverse=True)
        return RecentActivityMetric(activities=activities[:limit])

    async def get_dashboard(self, **limits: int) -> DashboardMetrics:
        limits = {**DEFAULT_LIMITS, **{k: v for k, v in limits.items() if v is not None}}
        (
            active_projects,
            pending_tasks,
            completed_tasks,
            task_collaborators,
            recent_projects,
            recent_activity,
        ) = await asyncio.gather(
            self.get_active_projects(limits["active_projects"]),
            self.get_pending_tasks(limits["pending_tasks"]),
            self.get_completed_tasks(limits["completed_tasks"]),
            self.get_task_collaborators(limits["task_collaborators"]),
            self.get_recent_projects(limits["recent_projects"]),
            self.get_recent_activity(limits["recent_activity"]),
        )
        logger.debug("[DASHBOARD] Built dashboard for user %s", self.user_id)
        return DashboardMetrics(
            active_projects=active_projects,
            pending_tasks=pending_tasks,
            completed_tasks=completed_tasks,
            task_collaborators=task_collaborators,
            recent_projects=recent_projects,
            recent_activity=recent_activity,
        )
