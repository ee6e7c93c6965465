"""
Unit tests for lending.core.security – bcrypt hashing and staff JWTs.
"""
from datetime import datetime, timedelta, timezone

from jose import jwt

from lending.core.config import settings
from lending.core.security import (
    STAFF_TOKEN_TYPE,
    decode_staff_token,
    hash_password,
    issue_staff_token,
    token_expiry,
    verify_password,
)

from tests.unit.conftest import PASSWORD, PASSWORD_HASH


class TestPasswords:
    def test_hash_is_salted_bcrypt(self):
        first = hash_password("samepass")
        second = hash_password("samepass")
        assert first.startswith("$2")
        assert first != second

    def test_verify_correct(self):
        assert verify_password(PASSWORD, PASSWORD_HASH) is True

    def test_verify_wrong(self):
        assert verify_password("someone-else", PASSWORD_HASH) is False

    def test_empty_password_never_matches(self):
        assert verify_password("", PASSWORD_HASH) is False


def _claims(**overrides) -> dict:
    claims = {
        "sub": "u",
        "role": "admin",
        "typ": STAFF_TOKEN_TYPE,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
        "jti": "jti-1",
    }
    claims.update(overrides)
    return claims


class TestStaffTokens:
    def test_claims_of_a_fresh_token(self):
        claims = decode_staff_token(issue_staff_token("uid-42", "admin"))
        assert claims["sub"] == "uid-42"
        assert claims["role"] == "admin"
        assert claims["typ"] == STAFF_TOKEN_TYPE
        assert claims["iat"] <= claims["exp"]

    def test_every_token_has_its_own_jti(self):
        first = decode_staff_token(issue_staff_token("u", "librarian"))
        second = decode_staff_token(issue_staff_token("u", "librarian"))
        assert first["jti"] != second["jti"]

    def test_custom_expiry(self):
        claims = decode_staff_token(issue_staff_token("u", "admin", expires_delta=timedelta(hours=2)))
        remaining = token_expiry(claims) - datetime.now(timezone.utc)
        assert timedelta(minutes=118) < remaining < timedelta(minutes=122)

    def test_expired_token_rejected(self):
        token = issue_staff_token("u", "admin", expires_delta=timedelta(seconds=-1))
        assert decode_staff_token(token) is None

    def test_foreign_signature_rejected(self):
        token = jwt.encode(_claims(), "wrong-secret-key", algorithm="HS256")
        assert decode_staff_token(token) is None

    def test_other_token_type_rejected(self):
        token = jwt.encode(
            _claims(typ="reset"), settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
        )
        assert decode_staff_token(token) is None

    def test_missing_jti_rejected(self):
        claims = _claims()
        del claims["jti"]
        token = jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
        assert decode_staff_token(token) is None

    def test_garbage_rejected(self):
        assert decode_staff_token("not.a.token") is None
