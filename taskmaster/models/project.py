import enum

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, UniqueConstraint, Enum, select
from sqlalchemy.orm import relationship, column_property
from sqlalchemy.sql import func
from taskmaster.database import Base


class ProjectStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    COMPLETED = "Completed"
    ON_HOLD = "On Hold"


class ProjectRole(str, enum.Enum):
    MEMBER = "Member"
    LEADER = "Leader"
    COLLABORATOR = "Collaborator"
    OBSERVER = "Observer"
    PROJECT_MANAGER = "ProjectManager"


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default=ProjectStatus.ACTIVE.value, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="owned_projects")
    members = relationship("ProjectMember", back_populates="project", cascade="all, delete-orphan")
    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan")


class ProjectMember(Base):
    __tablename__ = "project_members"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="_project_member_uc"),
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum(ProjectRole, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
                  default=ProjectRole.MEMBER, nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    project = relationship("Project", back_populates="members")
    user = relationship("User", back_populates="memberships")


Project.member_count = column_property(
    select(func.count(ProjectMember.id))
    .where(ProjectMember.project_id == Project.id)
    .correlate_except(ProjectMember)
    .scalar_subquery()
)
