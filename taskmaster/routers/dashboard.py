from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import async_sessionmaker

from taskmaster.dependencies import get_current_user, get_session_factory
from taskmaster.models.user import User as UserModel
from taskmaster.schemas.dashboard import (
    ActiveProjectsMetric, CompletedTasksMetric, DashboardMetrics, PendingTasksMetric,
    RecentActivityMetric, RecentProjectsMetric, TaskCollaboratorsMetric,
)
from taskmaster.services.dashboard import DashboardService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

MAX_LIMIT = 100


def get_dashboard_service(
    current_user: UserModel = Depends(get_current_user),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> DashboardService:
    return DashboardService(session_factory, current_user.id)


@router.get("/", response_model=DashboardMetrics)
async def get_dashboard(
    active_projects_limit: int | None = Query(None, ge=1, le=MAX_LIMIT),
    pending_tasks_limit: int | None = Query(None, ge=1, le=MAX_LIMIT),
    completed_tasks_limit: int | None = Query(None, ge=1, le=MAX_LIMIT),
    task_collaborators_limit: int | None = Query(None, ge=1, le=MAX_LIMIT),
    recent_projects_limit: int | None = Query(None, ge=1, le=MAX_LIMIT),
    recent_activity_limit: int | None = Query(None, ge=1, le=MAX_LIMIT),
    service: DashboardService = Depends(get_dashboard_service),
):
    return await service.get_dashboard(
        active_projects=active_projects_limit,
        pending_tasks=pending_tasks_limit,
        completed_tasks=completed_tasks_limit,
        task_collaborators=task_collaborators_limit,
        recent_projects=recent_projects_limit,
        recent_activity=recent_activity_limit,
    )


@router.get("/active-projects", response_model=ActiveProjectsMetric)
async def get_active_projects(
    limit: int = Query(5, ge=1, le=MAX_LIMIT),
    service: DashboardService = Depends(get_dashboard_service),
):
    return await service.get_active_projects(limit)


@router.get("/pending-tasks", response_model=PendingTasksMetric)
async def get_pending_tasks(
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    service: DashboardService = Depends(get_dashboard_service),
):
    return await service.get_pending_tasks(limit)


@router.get("/completed-tasks", response_model=CompletedTasksMetric)
async def get_completed_tasks(
    limit: int = Query(5, ge=1, le=MAX_LIMIT),
    service: DashboardService = Depends(get_dashboard_service),
):
    return await service.get_completed_tasks(limit)


@router.get("/task-collaborators", response_model=TaskCollaboratorsMetric)
async def get_task_collaborators(
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    service: DashboardService = Depends(get_dashboard_service),
):
    return await service.get_task_collaborators(limit)


@router.get("/recent-projects", response_model=RecentProjectsMetric)
async def get_recent_projects(
    limit: int = Query(5, ge=1, le=MAX_LIMIT),
    service: DashboardService = Depends(get_dashboard_service),
):
    return await service.get_recent_projects(limit)


@router.get("/recent-activity", response_model=RecentActivityMetric)
async def get_recent_activity(
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    service: DashboardService = Depends(get_dashboard_service),
):
    return await service.get_recent_activity(limit)
