"""
Snowflake database connection management.

Provides connection factory and context manager for Snowflake operations.
Includes mock mode with in-memory storage for local development.

Using the repository pattern means most code never touches this module
directly - it goes through the repositories, which handle the translation
between domain models and database rows.
"""

import base64
import logging
import re
from contextlib import contextmanager
from typing import Any, Generator, Optional

from .repositories.documents import SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


def _load_private_key(key_path: Optional[str] = None, key_base64: Optional[str] = None) -> bytes:
    """
    Load private key for key-pair authentication.

    Snowflake requires the private key as DER bytes, not a file path.
    The key comes either from a PEM file or, on hosts without a writable
    filesystem, from a base64-encoded PEM in the environment.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    if key_base64:
        pem = base64.b64decode(key_base64)
    else:
        with open(key_path, 'rb') as key_file:
            pem = key_file.read()

    private_key = serialization.load_pem_private_key(
        pem,
        password=None,  # No password on the key
        backend=default_backend()
    )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If a private key (path or base64) is set, uses key-pair auth
    - Otherwise, uses password auth

    Usage:
        with get_snowflake_connection(config) as conn:
            cursor = conn.cursor()
            # do work
            conn.commit()
    """
    import snowflake.connector

    conn = None
    try:
        connect_params = {
            'account': config.account,
            'user': config.user,
            'database': config.database,
            'schema': config.schema,
            'warehouse': config.warehouse,
            'role': config.role,
            'client_session_keep_alive': True,
        }

        if config.private_key_path or config.private_key_base64:
            logger.info("Using key-pair authentication for Snowflake")
            connect_params['private_key'] = _load_private_key(
                config.private_key_path, config.private_key_base64
            )
        elif config.password:
            logger.info("Using password authentication for Snowflake")
            connect_params['password'] = config.password
        else:
            raise SnowflakeConnectionError(
                "Either password or a private key must be provided"
            )

        conn = snowflake.connector.connect(**connect_params)

        logger.debug(
            "Established Snowflake connection",
            extra={
                "account": config.account,
                "database": config.database,
                "schema": config.schema,
            }
        )

        yield conn

    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}")

    finally:
        if conn:
            try:
                conn.close()
                logger.debug("Closed Snowflake connection")
            except Exception as e:
                logger.warning(
                    "Error closing Snowflake connection",
                    extra={"error": str(e)}
                )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

_MERGE = re.compile(
    r"^MERGE INTO (\w+) .*?USING \(SELECT (.*?)\) AS source ON target\.(\w+) = source\.\w+ (.*)$",
    re.IGNORECASE,
)
_MERGE_COLUMN = re.compile(r"(?:PARSE_JSON\(%s\)|%s) AS (\w+)", re.IGNORECASE)
_SELECT = re.compile(
    r"^SELECT (.+?)(?: FROM (\w+))?(?: WHERE (.+?))?"
    r"(?: ORDER BY (\w+)(?: (ASC|DESC))?)?(?: LIMIT (%s))?$",
    re.IGNORECASE,
)
_DELETE = re.compile(r"^DELETE FROM (\w+)(?: WHERE (.+))?$", re.IGNORECASE)
_CONDITION = re.compile(r"^(\w+) (=|>=|<=|IN|BETWEEN) (.+)$", re.IGNORECASE)


def _split_conditions(where: str) -> list[str]:
    """Split on AND, keeping `x BETWEEN %s AND %s` in one piece."""
    parts = re.split(r" AND ", where, flags=re.IGNORECASE)
    conditions: list[str] = []
    for part in parts:
        if conditions and re.search(r" BETWEEN %s$", conditions[-1], re.IGNORECASE):
            conditions[-1] = f"{conditions[-1]} AND {part}"
        else:
            conditions.append(part)
    return conditions


class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support the
    repositories without a real database: the MERGE upsert, SELECT with
    simple AND-ed conditions, ORDER BY and LIMIT, COUNT(*) and DELETE.
    Anything else (DDL, for instance) is accepted and ignored.
    """

    def __init__(self, storage: dict) -> None:
        self._storage = storage
        self._results: list = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        """
        Execute a query against mock storage.

        Queries are whitespace-normalised then matched against the
        statement shapes the repositories produce.
        """
        statement = " ".join(query.split())
        params = list(params or ())

        logger.debug(
            "Mock cursor execute",
            extra={"query": statement[:100]}
        )

        self._results = []
        self._rowcount = 0

        if statement.upper().startswith('MERGE INTO'):
            self._handle_merge(statement, params)
        elif statement.upper().startswith('SELECT'):
            self._handle_select(statement, params)
        elif statement.upper().startswith('DELETE FROM'):
            self._handle_delete(statement, params)

        return self

    def _table(self, name: str) -> dict:
        return self._storage.setdefault(name.lower(), {})

    def _handle_merge(self, statement: str, params: list) -> None:
        match = _MERGE.match(statement)
        if not match:
            return

        table, select_list, key, clauses = match.groups()
        names = [name.lower() for name in _MERGE_COLUMN.findall(select_list)]
        row = dict(zip(names, params))
        rows = self._table(table)

        key = key.lower()
        existing = next((r for r in rows.values() if r.get(key) == row[key]), None)
        if existing is not None:
            if "WHEN MATCHED" not in clauses.upper():
                return
            del rows[str(existing['id'])]
        rows[str(row['id'])] = row
        self._rowcount = 1

    def _matching_rows(self, table: str, where: Optional[str], params: list) -> list[dict]:
        rows = list(self._table(table).values())
        if not where:
            return rows

        for condition in _split_conditions(where):
            match = _CONDITION.match(condition)
            if not match:
                raise ValueError(f"Mock cursor cannot evaluate: {condition}")
            column, op, _ = match.groups()
            column, op = column.lower(), op.upper()

            if op == 'IN':
                count = condition.count('%s')
                values = [params.pop(0) for _ in range(count)]
                rows = [r for r in rows if r.get(column) in values]
            elif op == 'BETWEEN':
                low, high = params.pop(0), params.pop(0)
                rows = [r for r in rows if r.get(column) is not None and low <= r[column] <= high]
            elif op == '>=':
                value = params.pop(0)
                rows = [r for r in rows if r.get(column) is not None and r[column] >= value]
            elif op == '<=':
                value = params.pop(0)
                rows = [r for r in rows if r.get(column) is not None and r[column] <= value]
            else:
                value = params.pop(0)
                rows = [r for r in rows if r.get(column) == value]
        return rows

    def _handle_select(self, statement: str, params: list) -> None:
        match = _SELECT.match(statement)
        if not match:
            return

        projection, table, where, order_by, direction, limit = match.groups()
        if table is None:
            # SELECT 1, SELECT CURRENT_VERSION() and friends
            self._results = [(1,)]
            return

        rows = self._matching_rows(table, where, params)

        if order_by:
            key = order_by.lower()
            present = [r for r in rows if r.get(key) is not None]
            missing = [r for r in rows if r.get(key) is None]
            present.sort(key=lambda r: r[key], reverse=(direction or 'ASC').upper() == 'DESC')
            rows = present + missing

        if limit:
            rows = rows[:int(params.pop(0))]

        if projection.strip().upper() == 'COUNT(*)':
            self._results = [(len(rows),)]
            return

        columns = [c.strip().lower() for c in projection.split(',')]
        self._results = [tuple(r.get(c) for c in columns) for r in rows]

    def _handle_delete(self, statement: str, params: list) -> None:
        match = _DELETE.match(statement)
        if not match:
            return

        table, where = match.groups()
        doomed = self._matching_rows(table, where, params)
        storage = self._table(table)
        for row in doomed:
            storage.pop(str(row['id']), None)
        self._rowcount = len(doomed)

    def fetchone(self):
        """Fetch one row from results."""
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        """Fetch all rows from results."""
        return self._results

    def close(self) -> None:
        """Close cursor (no-op for mock)."""
        pass

    @property
    def rowcount(self) -> int:
        """Return number of rows affected."""
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores data in memory: {table_name: {id: row_dict}}. Rows hold the
    index columns and the document as JSON text, the same shape the
    real driver returns.

    Not suitable for production, but perfect for:
    - Local development
    - Unit tests
    - CI/CD environments
    """

    def __init__(self) -> None:
        self._storage: dict[str, dict[str, dict[str, Any]]] = {}
        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        """Create a mock cursor."""
        return MockSnowflakeCursor(self._storage)

    def commit(self) -> None:
        """Commit transaction (no-op for mock, always auto-commits)."""
        logger.debug("Mock connection commit")

    def rollback(self) -> None:
        """Rollback transaction (no-op for mock)."""
        logger.debug("Mock connection rollback")

    def close(self) -> None:
        """Close connection (no-op for mock)."""
        logger.debug("Mock connection close")

    def _clear(self) -> None:
        """Clear all mock storage (for test cleanup)."""
        for table in self._storage.values():
            table.clear()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Create Snowflake connection based on configuration.

    Factory function that returns either a real or mock connection
    depending on mock_mode flag. A fresh mock is empty; callers that need
    mock data to survive between requests keep their own instance
    (see api.dependencies).

    Args:
        config: Snowflake configuration (required if not mock_mode)
        mock_mode: If True, return mock connection for testing
    """
    if mock_mode:
        conn = MockSnowflakeConnection()
        try:
            yield conn
        finally:
            conn.close()
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")

        with get_snowflake_connection(config) as conn:
            yield conn
