from typing import Annotated
from collections.abc import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from lending.core.security import decode_staff_token
from lending.core.logging import get_logger, actor_id_ctx
from lending.db.session import get_db
from lending.db.models import User, UserRole
from lending.db.repository import get_user
from lending.services.auth import STAFF_ROLES, is_token_blacklisted

logger = get_logger("api.dependencies")

# Only staff authenticate with tokens; borrowers confirm actions with their password.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_staff(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Resolve a staff bearer token to an active librarian or admin account."""
    claims = decode_staff_token(token)
    if claims is None:
        raise _unauthorized()
    account_id, jti = claims["sub"], claims["jti"]

    if await is_token_blacklisted(db, jti):
        logger.warning(f"Revoked token presented: jti={jti}")
        raise _unauthorized()

    staff = await get_user(db, account_id)
    if staff is None or staff.role not in STAFF_ROLES:
        raise _unauthorized()
    if not staff.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff account is inactive",
        )

    actor_id_ctx.set(staff.id)
    return staff


def require_role(*roles: UserRole) -> Callable:
    """Dependency factory: the staff member must hold one of ``roles``."""

    async def role_checker(
        staff: Annotated[User, Depends(get_current_staff)],
    ) -> User:
        if staff.role in roles:
            return staff
        logger.warning(
            f"Access denied: staff={staff.id} role={staff.role.value} "
            f"required={[r.value for r in roles]}"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )

    return role_checker


LibrarianOrAdmin = Annotated[User, Depends(require_role(UserRole.LIBRARIAN, UserRole.ADMIN))]
AdminOnly = Annotated[User, Depends(require_role(UserRole.ADMIN))]
