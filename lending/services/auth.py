from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.logging import get_logger
from lending.core.security import (
    decode_staff_token,
    issue_staff_token,
    token_expiry,
    verify_password,
)
from lending.db.models import BlacklistedToken, User, UserRole

logger = get_logger("services.auth")

STAFF_ROLES = (UserRole.LIBRARIAN, UserRole.ADMIN)


async def authenticate_staff(db: AsyncSession, email: str, password: str) -> Optional[User]:
    """Return the staff account for a valid login, None otherwise.

    Member accounts exist only to hold a borrower's password and cannot log in.
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user:
        logger.warning(f"Login failed: unknown email {email}")
        return None
    if not user.is_active:
        logger.warning(f"Login failed: account {email} is inactive")
        return None
    if user.role not in STAFF_ROLES:
        logger.warning(f"Login failed: {email} is not a staff account")
        return None
    if not verify_password(password, user.hashed_password):
        logger.warning(f"Login failed: wrong password for {email}")
        return None

    logger.info(f"Login successful: {email} (id={user.id})")
    return user


def create_staff_token(user: User) -> str:
    return issue_staff_token(user.id, user.role.value)


async def blacklist_token(db: AsyncSession, token: str) -> None:
    claims = decode_staff_token(token)
    if not claims:
        return

    jti = claims["jti"]
    db.add(BlacklistedToken(jti=jti, expires_at=token_expiry(claims)))
    await db.flush()
    logger.info(f"Token blacklisted: jti={jti}")


async def is_token_blacklisted(db: AsyncSession, jti: str) -> bool:
    result = await db.execute(select(BlacklistedToken).where(BlacklistedToken.jti == jti))
    return result.scalar_one_or_none() is not None


async def cleanup_expired_tokens(db: AsyncSession) -> int:
    """Remove blacklist entries whose tokens have expired anyway."""
    result = await db.execute(
        delete(BlacklistedToken).where(BlacklistedToken.expires_at < datetime.now(timezone.utc))
    )
    count = result.rowcount
    await db.flush()
    if count:
        logger.info(f"Cleaned up {count} expired blacklisted tokens")
    return count
