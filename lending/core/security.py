"""
Password hashing for staff and borrower accounts, and the staff bearer token.

Borrowers never hold a token: they confirm each lending action with their
password. Staff tokens carry ``typ="staff"`` plus the account id and role, and
a ``jti`` so logout can revoke a single token.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from jose import JWTError, jwt
from passlib.context import CryptContext

from lending.core.config import settings
from lending.core.logging import get_logger

logger = get_logger("core.security")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

STAFF_TOKEN_TYPE = "staff"

_REQUIRED_CLAIMS = {"require_exp": True, "require_sub": True, "require_jti": True}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a presented password against a stored bcrypt hash.

    An empty password never matches, whatever the stored hash.
    """
    if not plain_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def issue_staff_token(
    staff_id: str, role: str, expires_delta: timedelta | None = None
) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": staff_id,
        "role": role,
        "typ": STAFF_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "jti": str(uuid4()),
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_staff_token(token: str) -> dict | None:
    """Validated claims of a staff token, or None.

    Signature, expiry and the ``sub``/``jti``/``exp`` claims are checked by
    python-jose; a token of any other ``typ`` is refused.
    """
    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options=_REQUIRED_CLAIMS,
        )
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        return None

    if claims.get("typ") != STAFF_TOKEN_TYPE:
        logger.warning(f"Rejected token of type {claims.get('typ')!r}")
        return None
    return claims


def token_expiry(claims: dict) -> datetime:
    return datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
