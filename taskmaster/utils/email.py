import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

import aiosmtplib

from taskmaster.config import settings

logger = logging.getLogger(__name__)


async def send_email_async(subject: str, body: str, to_email: str, html_body: str | None = None) -> bool:
    """
    Send one message over SMTP with aiosmtplib.
    Returns True when the server accepted it, False otherwise.
    """
    if not settings.EMAIL_HOST:
        logger.info("[EMAIL SKIPPED] Config missing - %s...", subject[:50])
        return False

    msg = MIMEMultipart("alternative")
    msg["From"] = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>"
    msg["To"] = to_email
    msg["Subject"] = subject

    # Plain text first, HTML last: clients render the last part they understand
    msg.attach(MIMEText(body, "plain"))
    if html_body:
        msg.attach(MIMEText(html_body, "html"))

    try:
        await aiosmtplib.send(
            msg,
            hostname=settings.EMAIL_HOST,
            port=settings.EMAIL_PORT,
            username=settings.EMAIL_USER,
            password=settings.EMAIL_PASS,
            start_tls=True,
            timeout=10
        )
    except aiosmtplib.SMTPException as e:
        logger.error("[EMAIL FAILED] %s - %s...", e, subject[:50])
        return False
    except OSError as e:
        logger.error("[EMAIL FAILED] connection error %s - %s...", e, subject[:50])
        return False

    logger.info("[EMAIL SENT] To %s: %s", to_email, subject)
    return True
