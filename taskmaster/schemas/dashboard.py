from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel


class ProjectRef(BaseModel):
    id: int
    name: str


class UserRef(BaseModel):
    id: int
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    avatar: str | None = None


class ActiveProjectItem(BaseModel):
    id: int
    name: str
    description: str | None = None
    status: str
    owner: UserRef
    task_count: int
    member_count: int


class ActiveProjectsMetric(BaseModel):
    count: int
    projects: list[ActiveProjectItem]


class PendingTaskItem(BaseModel):
    id: int
    title: str
    status: str
    priority: str
    due_date: date | None = None
    project: ProjectRef
    assignee: UserRef | None = None


class PendingTasksMetric(BaseModel):
    count: int
    tasks: list[PendingTaskItem]


class CompletedTaskItem(BaseModel):
    id: int
    title: str
    completed_at: datetime | None = None
    project: ProjectRef
    assignee: UserRef | None = None


class CompletedTasksMetric(BaseModel):
    count: int
    tasks: list[CompletedTaskItem]


class TaskCollaboratorItem(BaseModel):
    id: int
    title: str
    collaborator_count: int
    project: ProjectRef


class TaskCollaboratorsMetric(BaseModel):
    tasks: list[TaskCollaboratorItem]


class RecentProjectItem(BaseModel):
    id: int
    name: str
    description: str | None = None
    status: str
    created_at: datetime | None = None
    owner: UserRef


class RecentProjectsMetric(BaseModel):
    projects: list[RecentProjectItem]


ActivityType = Literal["task_created", "task_updated", "comment_added", "attachment_added"]


class ActivityItem(BaseModel):
    type: ActivityType
    task_id: int
    task_title: str
    project_id: int
    project_name: str
    user_id: int | None = None
    user_name: str
    user_avatar: str | None = None
    timestamp: datetime


class RecentActivityMetric(BaseModel):
    activities: list[ActivityItem]


class DashboardMetrics(BaseModel):
    """All six dashboard sections, computed independently."""
    active_projects: ActiveProjectsMetric
    pending_tasks: PendingTasksMetric
    completed_tasks: CompletedTasksMetric
    task_collaborators: TaskCollaboratorsMetric
    recent_projects: RecentProjectsMetric
    recent_activity: RecentActivityMetric
