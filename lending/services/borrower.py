from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.errors import AccessDeniedError, NotFoundError
from lending.core.logging import get_logger, log_fields
from lending.core.security import hash_password, verify_password
from lending.db.models import Borrower, User, UserRole
from lending.db.repository import get_user

logger = get_logger("services.borrower")


async def create_borrower(
    db: AsyncSession,
    email: str,
    password: str,
    full_name: str,
    phone: Optional[str],
    actor_id: str,
) -> Borrower:
    """Register a borrower together with the member account holding their password."""
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise ValueError("An account with this email already exists")

    account = User(
        email=email,
        hashed_password=hash_password(password),
        full_name=full_name,
        role=UserRole.MEMBER,
    )
    db.add(account)
    await db.flush()

    borrower = Borrower(full_name=full_name, phone=phone, account_id=account.id)
    db.add(borrower)
    await db.flush()
    await db.refresh(borrower)

    logger.info(
        f"Borrower created: id={borrower.id} account={account.id} by actor={actor_id}",
        extra=log_fields(borrower_id=borrower.id, account_id=account.id),
    )
    return borrower


async def verify_credential(db: AsyncSession, account_id: str, password: str) -> bool:
    """Check ``password`` against the account; unknown accounts are NotFound."""
    account = await get_user(db, account_id)
    if account is None:
        raise NotFoundError("account", account_id)
    if not account.is_active:
        return False
    return verify_password(password, account.hashed_password)


async def require_credential(db: AsyncSession, account_id: str, password: str) -> None:
    if not await verify_credential(db, account_id, password):
        logger.warning(
            f"Credential rejected for account={account_id}",
            extra=log_fields(account_id=account_id),
        )
        raise AccessDeniedError()
