"""
One-time passwords for password reset.

A user gets at most one live code per (email, purpose). Requesting a new
code replaces the old one and resets the attempt counter. The flow is two
steps: verify the code, then reset the password presenting the same code.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

PASSWORD_RESET = "password-reset"
CODE_LENGTH = 6


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_otp_code() -> str:
    """Six random digits, never starting with zero."""
    return str(100000 + secrets.randbelow(900000))


class OtpOutcome(Enum):
    VERIFIED = "verified"
    MISMATCH = "mismatch"
    EXPIRED = "expired"
    LOCKED = "locked"


@dataclass(frozen=True)
class OtpCheck:
    """
    Result of checking a submitted code.

    `discard` tells the caller to delete the stored record; a new code
    must be requested.
    """
    outcome: OtpOutcome
    attempts_remaining: int = 0

    @property
    def discard(self) -> bool:
        return self.outcome in (OtpOutcome.EXPIRED, OtpOutcome.LOCKED)


@dataclass
class OneTimePassword:
    email: str
    code: str
    expires_at: datetime
    purpose: str = PASSWORD_RESET
    verified: bool = False
    attempts: int = 0
    created_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        if len(self.code) != CODE_LENGTH or not self.code.isdigit():
            raise ValueError("OTP code must be 6 digits")

    @classmethod
    def issue(
        cls,
        email: str,
        ttl_minutes: int = 10,
        purpose: str = PASSWORD_RESET,
        now: Optional[datetime] = None,
    ) -> "OneTimePassword":
        now = now or _now()
        return cls(
            email=email,
            code=generate_otp_code(),
            expires_at=now + timedelta(minutes=ttl_minutes),
            purpose=purpose,
            created_at=now,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or _now()) > self.expires_at

    def check(
        self,
        code: str,
        max_attempts: int = 3,
        now: Optional[datetime] = None,
    ) -> OtpCheck:
        """Check a submitted code, counting failed attempts."""
        if self.is_expired(now):
            return OtpCheck(OtpOutcome.EXPIRED)

        if not secrets.compare_digest(self.code, code):
            self.attempts += 1
            if self.attempts >= max_attempts:
                return OtpCheck(OtpOutcome.LOCKED)
            return OtpCheck(OtpOutcome.MISMATCH, attempts_remaining=max_attempts - self.attempts)

        self.verified = True
        return OtpCheck(OtpOutcome.VERIFIED)

    def can_reset_password(self, code: str, now: Optional[datetime] = None) -> bool:
        return (
            self.verified
            and secrets.compare_digest(self.code, code)
            and not self.is_expired(now)
        )
