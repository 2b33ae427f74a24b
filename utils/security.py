"""
security helpers:
- Argon2 password hashing via argon2-cffi, work factor taken from config
- JWT creation/verification via PyJWT
- JTI generation for token identifiers
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Mapping

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

ACCESS = "access"
REFRESH = "refresh"


class TokenError(Exception):
    """A JWT failed verification (bad signature, expired, malformed or wrong type)."""


def make_password_hasher(config: Mapping[str, Any]) -> PasswordHasher:
    """Build the Argon2id hasher once from the ARGON2_* settings."""
    return PasswordHasher(
        time_cost=config["ARGON2_TIME_COST"],
        memory_cost=config["ARGON2_MEMORY_COST"],
        parallelism=config["ARGON2_PARALLELISM"],
    )


def hash_password(ph: PasswordHasher, password: str) -> str:
    """Hash a plaintext password using Argon2 (random salt per call)
    """
    return ph.hash(password)


def verify_password(ph: PasswordHasher, password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_token(
    subject: str,
    token_type: str,
    secret: str,
    expires: timedelta,
    algorithm: str = "HS256",
    issuer: str | None = None,
    jti: str | None = None,
) -> str:
    """Sign a token binding subject and expiry; every token gets a fresh jti so no two are equal."""
    now = _now()
    payload = {
        "sub": str(subject),
        "iat": int(now.timestamp()),
        "exp": int((now + expires).timestamp()),
        "type": token_type,
        "jti": jti or generate_jti(),
    }
    if issuer:
        payload["iss"] = issuer
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(
    token: str,
    secret: str,
    expected_type: str,
    algorithm: str = "HS256",
    issuer: str | None = None,
) -> Dict[str, Any]:
    """
    Decode and validate a JWT. Raises TokenError on invalid signature,
    expiry, missing claims or a type other than expected_type.
    """
    try:
        decoded = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            issuer=issuer,
            options={"require": ["exp", "sub", "type"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenError(f"Invalid token: {exc}") from exc

    if decoded.get("type") != expected_type:
        raise TokenError("Wrong token type")
    return decoded
