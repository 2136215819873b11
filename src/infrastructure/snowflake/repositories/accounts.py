"""
Snowflake repository for accounts of every role.

Athletes, coaches and officials share one `accounts` table. Keeping them
together means one index lookup answers "is this email taken?" no matter
which role the caller is registering as.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from src.core.accounts.models import ACCOUNT_TYPES, Account, Role, normalize_email

from .documents import (
    DocumentRepository,
    DuplicateRecordError,
    RecordNotFoundError,
    decode_document,
    encode_document,
)

logger = logging.getLogger(__name__)


class AccountRepository(DocumentRepository[Account]):
    """Persistence for Athlete, Coach and Official accounts."""
    table = "accounts"
    columns = (
        "email",
        "role",
        "name",
        "state",
        "city",
        "specialization",
        "is_active",
        "is_verified",
        "points",
        "created_at",
    )

    def _column_values(self, account: Account) -> tuple:
        return (
            account.email,
            account.role.value,
            account.name,
            account.state,
            account.city,
            account.specialization,
            account.is_active,
            account.is_verified,
            account.points,
            account.created_at,
        )

    def _to_document(self, account: Account) -> str:
        return encode_document(account, role=account.role.value)

    def _from_document(self, data: dict[str, Any]) -> Account:
        account_type = ACCOUNT_TYPES[Role(data["role"])]
        return decode_document(account_type, data)

    def create(self, account: Account) -> Account:
        """Persist a new account. Email must be unused across all roles."""
        if not self._insert_unless_exists(account, "email"):
            raise DuplicateRecordError("Account already exists with this email")

        logger.info(
            "Created account",
            extra={"account_id": str(account.id), "role": account.role.value}
        )
        return account

    def save(self, account: Account) -> Account:
        self._upsert(account)
        return account

    def get(self, account_id: UUID) -> Account:
        return self._get(account_id, "User")

    def find(self, account_id: UUID) -> Optional[Account]:
        try:
            return self.get(account_id)
        except RecordNotFoundError:
            return None

    def find_by_email(self, email: str, role: Optional[Role] = None) -> Optional[Account]:
        conditions = [("email", "=", normalize_email(email))]
        if role is not None:
            conditions.append(("role", "=", role.value))
        return self._find_one(conditions)

    def email_exists(self, email: str) -> Optional[Role]:
        """The role holding this email, or None if it is free."""
        account = self.find_by_email(email)
        return account.role if account else None

    def list_by_role(
        self,
        role: Optional[Role] = None,
        state: Optional[str] = None,
        active_only: bool = False,
    ) -> list[Account]:
        conditions = []
        if role is not None:
            conditions.append(("role", "=", role.value))
        if state:
            conditions.append(("state", "=", state))
        if active_only:
            conditions.append(("is_active", "=", True))
        return self._find(conditions, order_by="points", descending=True)

    def list_all(self) -> list[Account]:
        return self._find()

    def search(
        self,
        query: Optional[str] = None,
        roles: Optional[list[Role]] = None,
        state: Optional[str] = None,
        sport: Optional[str] = None,
    ) -> list[Account]:
        """
        Accounts matching every given filter, highest points first.

        `query` matches name or email and `sport` matches specialization,
        both as case-insensitive substrings, so they are applied here
        rather than in SQL.
        """
        conditions = []
        if roles:
            conditions.append(("role", "IN", [r.value for r in roles]))
        if state:
            conditions.append(("state", "=", state))

        accounts = self._find(conditions)

        if query:
            needle = query.lower()
            accounts = [
                a for a in accounts
                if needle in a.name.lower() or needle in a.email.lower()
            ]
        if sport:
            needle = sport.lower()
            accounts = [a for a in accounts if needle in (a.specialization or "").lower()]

        return sorted(accounts, key=lambda a: (-a.points, a.name.lower()))

    def count(self) -> int:
        return self._count()
