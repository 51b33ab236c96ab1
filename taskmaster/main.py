import asyncio
import fcntl
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from taskmaster.config import settings
from taskmaster.database import AsyncSessionLocal, engine, init_models
from taskmaster.models import email, project, tasks, user  # noqa: F401 (register tables)
from taskmaster.routers.attachments import router as attachments_router
from taskmaster.routers.auth import router as auth_router
from taskmaster.routers.comments import router as comments_router
from taskmaster.routers.dashboard import router as dashboard_router
from taskmaster.routers.project_members import router as project_members_router
from taskmaster.routers.projects import router as projects_router
from taskmaster.routers.tasks import router as tasks_router
from taskmaster.routers.upload import router as upload_router
from taskmaster.routers.users import router as users_router

from taskmaster.services.email_worker import email_worker
from taskmaster.services.scheduler import setup_scheduler
from taskmaster.services.users import seed_roles

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

SCHEDULER_LOCK_FILE = "/tmp/taskmaster_scheduler.lock"
STARTUP_LOCK_FILE = "/tmp/taskmaster_startup.lock"


def acquire_scheduler_lock():
    """Only the first worker process to grab the lock runs the scheduler."""
    lock_fd = open(SCHEDULER_LOCK_FILE, "w")
    try:
        fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        lock_fd.close()
        logger.info("[PROCESS %s] Another worker is running the scheduler. Skipping.", os.getpid())
        return None
    logger.info("[PROCESS %s] Acquired scheduler lock. Starting APScheduler...", os.getpid())
    return lock_fd


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Workers on one host create tables and seed roles one at a time
    with open(STARTUP_LOCK_FILE, "w") as startup_fd:
        fcntl.flock(startup_fd, fcntl.LOCK_EX)
        await init_models()
        async with AsyncSessionLocal() as db:
            await seed_roles(db)

    scheduler = None
    lock_fd = None
    if settings.SCHEDULER_ENABLED:
        lock_fd = acquire_scheduler_lock()
        if lock_fd:
            scheduler = setup_scheduler()

    # asyncio.Queue is per process, so every worker drains its own queue
    worker_task = asyncio.create_task(email_worker())

    yield

    if scheduler:
        scheduler.shutdown(wait=False)
    if lock_fd:
        fcntl.flock(lock_fd, fcntl.LOCK_UN)
        lock_fd.close()

    worker_task.cancel()
    try:
        await worker_task
    except asyncio.CancelledError:
        logger.info("[WORKER] Email worker shut down.")

    await engine.dispose()


app = FastAPI(
    lifespan=lifespan,
    title="TaskMaster API",
    description="Projects, tasks, collaboration and dashboard metrics",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_origin_regex="https?://localhost(:\\d+)?",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("CRITICAL ERROR on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(projects_router)
app.include_router(project_members_router)
app.include_router(tasks_router)
app.include_router(comments_router)
app.include_router(attachments_router)
app.include_router(upload_router)
app.include_router(dashboard_router)


@app.get("/")
def root():
    return {"message": "TaskMaster API running"}


@app.get("/health")
def health():
    return {"status": "ok"}
