from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskmaster.dependencies import get_db, get_current_user
from taskmaster.models.tasks import TaskStatus, TaskPriority
from taskmaster.models.user import User as UserModel
from taskmaster.schemas.task import AssignableMember, Task as TaskSchema, TaskCreate, TaskDetail, TaskUpdate
from taskmaster.services import tasks as task_service

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("/", response_model=TaskSchema, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    task = await task_service.create_task(db, task_data, current_user.id)
    await db.commit()
    return await task_service.get_task_by_id(db, task.id)


@router.get("/", response_model=list[TaskSchema])
async def list_tasks(
    project_id: int | None = Query(None),
    assignee_id: int | None = Query(None),
    my_tasks: bool = Query(False),
    task_status: TaskStatus | None = Query(None, alias="status"),
    priority: TaskPriority | None = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await task_service.list_tasks(
        db,
        current_user.id,
        project_id=project_id,
        assignee_id=assignee_id,
        my_tasks=my_tasks,
        status=task_status.value if task_status else None,
        priority=priority.value if priority else None,
    )


@router.get("/project/{project_id}", response_model=list[TaskSchema])
async def list_project_tasks(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await task_service.list_tasks_by_project(db, project_id)


@router.get("/project/{project_id}/members", response_model=list[AssignableMember])
async def list_assignable_members(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await task_service.list_assignable_members(db, project_id)


@router.get("/assignee/{user_id}", response_model=list[TaskSchema])
async def list_assignee_tasks(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await task_service.list_tasks_by_assignee(db, user_id)


@router.get("/{task_id}", response_model=TaskDetail)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return await task_service.get_task_by_id(db, task_id, with_children=True)


@router.patch("/{task_id}", response_model=TaskSchema)
async def update_task(
    task_id: int,
    update_data: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    await task_service.update_task(db, task_id, update_data, current_user.id)
    await db.commit()
    return await task_service.get_task_by_id(db, task_id)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    await task_service.delete_task(db, task_id, current_user.id)
    await db.commit()
    return None
