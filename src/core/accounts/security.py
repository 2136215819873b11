"""
Password hashing and access tokens.

Passwords are hashed with werkzeug's salted hash helpers; the hash string
carries its own method and salt so the algorithm can change without a
migration. Access tokens are HS256 JWTs carrying the account id and role,
which is enough for the API to load the right account on every request.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from .models import Role

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthenticationError(Exception):
    """Raised when credentials or a token cannot be accepted."""
    pass


class TokenExpiredError(AuthenticationError):
    """Raised when a token was valid but is past its expiry."""
    pass


@dataclass(frozen=True)
class TokenClaims:
    """What a decoded access token tells us about the caller."""
    account_id: UUID
    role: Role
    expires_at: datetime


def hash_password(password: str) -> str:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def create_access_token(
    account_id: UUID,
    role: Role,
    secret: str,
    expire_days: int = 7,
    algorithm: str = "HS256",
    now: Optional[datetime] = None,
) -> str:
    """Sign a token with `userId` and `role` claims."""
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "userId": str(account_id),
        "role": role.value,
        "iat": issued_at,
        "exp": issued_at + timedelta(days=expire_days),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    secret: str,
    algorithm: str = "HS256",
) -> TokenClaims:
    """
    Verify a token and return its claims.

    Raises TokenExpiredError for expired tokens and AuthenticationError
    for anything else wrong with the token (bad signature, garbage, or a
    payload missing userId/role).
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.debug("Rejected access token", extra={"error": str(e)})
        raise AuthenticationError("Invalid token")

    user_id = payload.get("userId")
    role = payload.get("role")
    if not user_id or not role:
        raise AuthenticationError("Invalid token payload")

    try:
        return TokenClaims(
            account_id=UUID(user_id),
            role=Role(role),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid token payload")
