import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import delete, or_
from sqlalchemy.exc import SQLAlchemyError

from taskmaster.database import AsyncSessionLocal
from taskmaster.models.user import VerificationCode

logger = logging.getLogger(__name__)


async def purge_stale_verification_codes() -> int:
    """Delete password-recovery codes that are used or past their expiry."""
    logger.info("[SCHEDULER] Starting verification code purge...")
    async with AsyncSessionLocal() as db:
        try:
            result = await db.execute(
                delete(VerificationCode).where(
                    or_(
                        VerificationCode.used.is_(True),
                        VerificationCode.expires_at <= datetime.now(timezone.utc),
                    )
                )
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("[SCHEDULER] Error during verification code purge: %s", e)
            return 0

    purged = result.rowcount or 0
    logger.info("[SCHEDULER] Purged %s stale verification codes", purged)
    return purged


def setup_scheduler():
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        purge_stale_verification_codes,
        trigger=CronTrigger(minute="*/15")
    )
    scheduler.start()
    return scheduler
