from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator
from taskmaster.models.tasks import TaskStatus, TaskPriority
from taskmaster.schemas.project import ProjectBrief
from taskmaster.schemas.user import UserSummary
from taskmaster.utils.sanitization import sanitize_string


# ── Task schemas ────────────────────────────────────────

class TaskBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO.value
    priority: TaskPriority = TaskPriority.MEDIUM.value
    due_date: date | None = None
    estimated_hours: float | None = Field(None, ge=0, le=1000)
    actual_hours: float | None = Field(None, ge=0)
    completed_at: datetime | None = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)

    class Config:
        use_enum_values = True


class TaskCreate(TaskBase):
    project_id: int
    assignee_id: int | None = None


class TaskUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None
    estimated_hours: float | None = Field(None, ge=0, le=1000)
    actual_hours: float | None = Field(None, ge=0)
    completed_at: datetime | None = None
    # Explicit null unassigns the task
    assignee_id: int | None = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)

    class Config:
        use_enum_values = True


class TaskBrief(BaseModel):
    id: int
    title: str
    status: str

    class Config:
        from_attributes = True


class Task(BaseModel):
    id: int
    title: str
    description: str | None = None
    status: str
    priority: str
    due_date: date | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    completed_at: datetime | None = None
    project_id: int
    assignee_id: int | None = None
    created_by_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    project: ProjectBrief
    assignee: UserSummary | None = None
    comment_count: int = 0
    attachment_count: int = 0

    class Config:
        from_attributes = True


class AssignableMember(UserSummary):
    role: str


# ── Comment schemas ─────────────────────────────────────

class CommentCreate(BaseModel):
    task_id: int
    content: str = Field(..., min_length=1)

    @field_validator("content", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1)

    @field_validator("content", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class CommentInTask(BaseModel):
    id: int
    content: str
    user_id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    user: UserSummary

    class Config:
        from_attributes = True


class Comment(CommentInTask):
    task_id: int
    task: TaskBrief


# ── Attachment schemas ──────────────────────────────────

class AttachmentCreate(BaseModel):
    task_id: int
    filename: str = Field(..., min_length=1, max_length=255)
    original_name: str = Field(..., min_length=1, max_length=255)
    path: str = Field(..., min_length=1, max_length=1000)
    mime_type: str = Field(..., min_length=1, max_length=100)
    size: int = Field(..., ge=1)


class AttachmentInTask(BaseModel):
    id: int
    filename: str
    original_name: str
    path: str
    mime_type: str
    size: int
    user_id: int
    created_at: datetime | None = None
    user: UserSummary

    class Config:
        from_attributes = True


class Attachment(AttachmentInTask):
    task_id: int
    task: TaskBrief


class UploadedFile(BaseModel):
    filename: str
    original_name: str
    path: str
    mime_type: str
    size: int


class TaskDetail(Task):
    comments: list[CommentInTask] = []
    attachments: list[AttachmentInTask] = []
