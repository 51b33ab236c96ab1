from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator, model_validator
from taskmaster.models.project import ProjectStatus, ProjectRole
from taskmaster.schemas.user import UserSummary
from taskmaster.utils.sanitization import sanitize_string


# ── Project schemas ─────────────────────────────────────

class ProjectBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: str | None = None
    status: ProjectStatus = ProjectStatus.ACTIVE.value
    start_date: date | None = None
    end_date: date | None = None

    @field_validator("name", "description", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)

    class Config:
        use_enum_values = True

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=150)
    description: str | None = None
    status: ProjectStatus | None = None
    start_date: date | None = None
    end_date: date | None = None
    owner_id: int | None = None

    class Config:
        use_enum_values = True

    @field_validator("name", "description", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class ProjectBrief(BaseModel):
    id: int
    name: str
    status: str

    class Config:
        from_attributes = True


class Project(BaseModel):
    id: int
    name: str
    description: str | None = None
    status: str
    start_date: date | None = None
    end_date: date | None = None
    owner_id: int
    owner: UserSummary
    task_count: int = 0
    member_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


# ── Membership schemas ──────────────────────────────────

class ProjectMemberCreate(BaseModel):
    project_id: int
    user_id: int | None = None
    # Username or email of a registered user
    user_identifier: str | None = Field(
        None,
        pattern=r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$|^[a-zA-Z0-9_.-]{3,50}$",
    )
    role: ProjectRole = ProjectRole.MEMBER.value

    class Config:
        use_enum_values = True

    @model_validator(mode="after")
    def require_user(self):
        if self.user_id is None and not self.user_identifier:
            raise ValueError("Either user_id or user_identifier is required")
        return self


class ProjectMemberUpdate(BaseModel):
    role: ProjectRole | None = None
    project_id: int | None = None
    user_id: int | None = None

    class Config:
        use_enum_values = True


class ProjectMember(BaseModel):
    id: int
    project_id: int
    user_id: int
    role: ProjectRole
    joined_at: datetime | None = None
    user: UserSummary
    project: ProjectBrief

    class Config:
        from_attributes = True


class ProjectMemberInProject(BaseModel):
    id: int
    user_id: int
    role: ProjectRole
    joined_at: datetime | None = None
    user: UserSummary

    class Config:
        from_attributes = True


class ProjectDetail(Project):
    members: list[ProjectMemberInProject] = []
