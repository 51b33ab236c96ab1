from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base
from taskmaster.config import settings
from taskmaster.exceptions import ConflictError


# Ensure we use the async driver
SQLALCHEMY_DATABASE_URL = settings.database_url.replace("postgresql://", "postgresql+asyncpg://")

engine = create_async_engine(SQLALCHEMY_DATABASE_URL, echo=False)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)

Base = declarative_base()

async def get_db():
    async with AsyncSessionLocal() as db:
        try:
            yield db
        finally:
            await db.close()


async def init_models():
    """Create any missing tables. Model modules must already be imported."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def flush_or_conflict(db: AsyncSession, detail: str):
    """Flush pending changes, reporting a unique constraint violation as 409."""
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(detail)
