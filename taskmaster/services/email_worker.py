import asyncio
import logging
from datetime import datetime, timezone
from typing import TypedDict

from sqlalchemy.future import select

from taskmaster.database import AsyncSessionLocal
from taskmaster.models.email import EmailLog
from taskmaster.utils.email import send_email_async

logger = logging.getLogger(__name__)


class EmailJob(TypedDict):
    log_id: int
    subject: str
    body: str
    html_body: str | None
    to_email: str

# Global queue for email jobs, created by the worker on its own event loop
email_queue: asyncio.Queue[EmailJob] | None = None


async def _mark(log_id: int, status: str, error_message: str | None = None):
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(EmailLog).filter(EmailLog.id == log_id))
        log_entry = result.scalars().first()
        if log_entry:
            log_entry.status = status
            if status == "sent":
                log_entry.sent_at = datetime.now(timezone.utc)
            log_entry.error_message = error_message
            await db.commit()


async def process_job(job: EmailJob) -> bool:
    """Send one queued message and record the outcome in email_logs."""
    sent = await send_email_async(job["subject"], job["body"], job["to_email"], job.get("html_body"))
    if sent:
        await _mark(job["log_id"], "sent")
    else:
        await _mark(job["log_id"], "failed", "Email transport unavailable or rejected the message")
    return sent


async def email_worker():
    """
    Background worker that pulls jobs from the email_queue and sends them.
    Runs until the application shuts down and cancels it.
    """
    global email_queue
    email_queue = asyncio.Queue()
    logger.info("[WORKER] Background email worker started.")
    try:
        while True:
            job = await email_queue.get()
            try:
                await process_job(job)
            except Exception:
                logger.exception("[WORKER ERROR] Failed to process email job %s", job.get("log_id"))
                await _mark(job["log_id"], "failed", "worker error")
            finally:
                email_queue.task_done()
    finally:
        email_queue = None


async def enqueue_email(
    subject: str,
    body: str,
    to_email: str,
    html_body: str | None = None,
    category: str = "general",
) -> int:
    """
    Public API to add an email job to the database and background queue.
    Returns the email_logs id.
    """
    async with AsyncSessionLocal() as db:
        new_log = EmailLog(
            subject=subject,
            text_body=body,
            html_body=html_body,
            to_email=to_email,
            category=category,
            status="pending",
        )
        db.add(new_log)
        await db.commit()
        await db.refresh(new_log)
        log_id = new_log.id

    if email_queue is None:
        logger.warning("[QUEUE] Email worker not running, email %s left pending", log_id)
        return log_id

    await email_queue.put({
        "log_id": log_id,
        "subject": subject,
        "body": body,
        "html_body": html_body,
        "to_email": to_email,
    })
    logger.info("[QUEUE] Enqueued email (DB ID: %s): %s...", log_id, subject[:30])
    return log_id
