"""
Password recovery by emailed one-time code.

A request replaces any unused code the user still holds, so only the most
recent code can ever be redeemed. Codes expire after
VERIFICATION_CODE_EXPIRE_MINUTES and are marked used on a successful reset.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from taskmaster.config import Settings
from taskmaster.exceptions import NotFoundError, UnauthorizedError
from taskmaster.models.user import User, VerificationCode
from taskmaster.services.email_worker import enqueue_email
from taskmaster.utils.security import generate_verification_code, get_password_hash

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 10


def _render_email(user: User, code: str, settings: Settings) -> tuple[str, str]:
    name = user.first_name or user.username or "there"
    minutes = settings.VERIFICATION_CODE_EXPIRE_MINUTES
    text_body = (
        f"Hello {name},\n\n"
        f"Your TaskMaster password recovery code is: {code}\n\n"
        f"The code expires in {minutes} minutes. Enter it at "
        f"{settings.FRONTEND_URL}/reset-password together with your new password.\n\n"
        "If you did not ask to reset your password you can ignore this message.\n\n"
        "The TaskMaster team"
    )
    html_body = f"""
    <html>
      <body>
        <h1>Password recovery - TaskMaster</h1>
        <p>Hello {name},</p>
        <p>Your password recovery code is:</p>
        <p style="font-size: 24px; font-weight: bold; letter-spacing: 4px;">{code}</p>
        <p>The code expires in {minutes} minutes.</p>
        <p><a href="{settings.FRONTEND_URL}/reset-password">Reset my password</a></p>
        <p>If you did not ask to reset your password you can ignore this message.</p>
        <p>The TaskMaster team</p>
      </body>
    </html>
    """
    return text_body, html_body


async def _unique_code(db: AsyncSession, length: int) -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_verification_code(length)
        taken = await db.execute(select(VerificationCode.id).filter(VerificationCode.code == code))
        if taken.first() is None:
            return code
    raise RuntimeError("Could not generate a unique verification code")


async def request_password_reset(db: AsyncSession, email: str, settings: Settings) -> bool:
    """
    Issue and email a recovery code. Returns False when no account matches;
    callers must not reveal that to the client.
    """
    result = await db.execute(select(User).filter(User.email == email))
    user = result.scalars().first()
    if not user:
        logger.info("[RECOVERY] Reset requested for unknown email")
        return False

    await db.execute(
        delete(VerificationCode).where(
            VerificationCode.user_id == user.id,
            VerificationCode.used.is_(False),
        )
    )

    code = await _unique_code(db, settings.VERIFICATION_CODE_LENGTH)
    db.add(VerificationCode(
        user_id=user.id,
        code=code,
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=settings.VERIFICATION_CODE_EXPIRE_MINUTES),
        used=False,
    ))
    await db.commit()

    text_body, html_body = _render_email(user, code, settings)
    await enqueue_email(
        subject="TaskMaster password recovery code",
        body=text_body,
        to_email=user.email,
        html_body=html_body,
        category="password_reset",
    )
    logger.info("[RECOVERY] Issued recovery code for user %s", user.id)
    return True


async def reset_password(db: AsyncSession, email: str, code: str, new_password: str):
    result = await db.execute(select(User).filter(User.email == email))
    user = result.scalars().first()
    if not user:
        raise NotFoundError("User not found")

    result = await db.execute(
        select(VerificationCode).filter(
            VerificationCode.user_id == user.id,
            VerificationCode.code == code,
            VerificationCode.used.is_(False),
            VerificationCode.expires_at > datetime.now(timezone.utc),
        )
    )
    verification = result.scalars().first()
    if not verification:
        raise UnauthorizedError("Invalid or expired verification code")

    # Claim the code; a concurrent reset holding the same code matches no row
    claimed = await db.execute(
        update(VerificationCode)
        .where(VerificationCode.id == verification.id, VerificationCode.used.is_(False))
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        await db.rollback()
        raise UnauthorizedError("Invalid or expired verification code")

    user.password = get_password_hash(new_password)
    await db.commit()
    logger.info("[RECOVERY] Password reset for user %s", user.id)
