"""
Snowflake repository for one-time passwords.

There is at most one row per (email, purpose): the row id is derived from
both, so issuing a new code overwrites the previous one.
"""

import logging
from typing import Any, Optional

from src.core.accounts.models import normalize_email
from src.core.accounts.otp import PASSWORD_RESET, OneTimePassword

from .documents import DocumentRepository, decode_document

logger = logging.getLogger(__name__)


def _otp_key(email: str, purpose: str) -> str:
    return f"{purpose}:{normalize_email(email)}"


class OtpRepository(DocumentRepository[OneTimePassword]):
    table = "otps"
    columns = ("email", "purpose", "expires_at")

    def _key(self, otp: OneTimePassword) -> str:
        return _otp_key(otp.email, otp.purpose)

    def _column_values(self, otp: OneTimePassword) -> tuple:
        return (normalize_email(otp.email), otp.purpose, otp.expires_at)

    def _from_document(self, data: dict[str, Any]) -> OneTimePassword:
        return decode_document(OneTimePassword, data)

    def save(self, otp: OneTimePassword) -> OneTimePassword:
        """Insert, or replace the live code for this email and purpose."""
        otp.email = normalize_email(otp.email)
        self._upsert(otp)
        return otp

    def find(self, email: str, purpose: str = PASSWORD_RESET) -> Optional[OneTimePassword]:
        return self._find_one([("id", "=", _otp_key(email, purpose))])

    def delete(self, email: str, purpose: str = PASSWORD_RESET) -> None:
        self._delete([("id", "=", _otp_key(email, purpose))])
        logger.debug("Deleted OTP", extra={"purpose": purpose})
