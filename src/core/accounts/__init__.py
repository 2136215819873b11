"""
Accounts: athletes, coaches and SAI officials.

Contains the account models, password/token handling, password-reset
codes and leaderboard logic.
"""

from .models import (
    ACCOUNT_TYPES,
    AccessLevel,
    Account,
    Athlete,
    Badge,
    Coach,
    DuplicateBadgeError,
    Gender,
    Official,
    Role,
    normalize_email,
)
from .otp import OneTimePassword, OtpCheck, OtpOutcome
from .security import (
    AuthenticationError,
    TokenClaims,
    TokenExpiredError,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)

__all__ = [
    "ACCOUNT_TYPES",
    "AccessLevel",
    "Account",
    "Athlete",
    "Badge",
    "Coach",
    "DuplicateBadgeError",
    "Gender",
    "Official",
    "Role",
    "normalize_email",
    "OneTimePassword",
    "OtpCheck",
    "OtpOutcome",
    "AuthenticationError",
    "TokenClaims",
    "TokenExpiredError",
    "create_access_token",
    "decode_access_token",
    "hash_password",
    "verify_password",
]
