"""
Shared plumbing for the Snowflake repositories.

Every aggregate (account, video, assessment, ...) is stored as one row:
the whole object as a VARIANT `document`, plus a handful of scalar
columns copied out of it so Snowflake can filter and sort. Reads always
select the document and rebuild the domain object from it, so the
scalar columns are an index, never the source of truth.

Documents are plain JSON. Encoding is `dataclasses.asdict` with UUIDs,
datetimes and enums turned into strings; decoding walks the dataclass
type hints to turn them back.
"""

import dataclasses
import enum
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Generic, Optional, Protocol, TypeVar, Union, get_args, get_origin, get_type_hints
from uuid import UUID

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (column, operator, value). Operators: =, >=, <=, IN, BETWEEN
Condition = tuple[str, str, Any]


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "SPORTS_TALENT"
    schema: str = "PLATFORM"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class RecordNotFoundError(Exception):
    """Raised when a requested record doesn't exist."""
    pass


class DuplicateRecordError(Exception):
    """Raised when a record would break a uniqueness rule."""
    pass


# ---------------------------------------------------------------------------
# Document encoding
# ---------------------------------------------------------------------------

def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Cannot serialise {type(value).__name__}")


def encode_document(entity: Any, **extra: Any) -> str:
    """JSON text for a dataclass, with optional extra top-level keys."""
    data = dataclasses.asdict(entity)
    data.update(extra)
    return json.dumps(data, default=_json_default)


def _decode_value(hint: Any, value: Any) -> Any:
    if value is None or hint is Any:
        return value

    origin = get_origin(hint)
    if origin is Union:
        options = [arg for arg in get_args(hint) if arg is not type(None)]
        return _decode_value(options[0], value) if len(options) == 1 else value
    if origin is list:
        (item_hint,) = get_args(hint) or (Any,)
        return [_decode_value(item_hint, item) for item in value]
    if origin is dict or hint is dict:
        return value

    if isinstance(hint, type):
        if dataclasses.is_dataclass(hint):
            return decode_document(hint, value)
        if issubclass(hint, enum.Enum):
            return hint(value)
        if hint is UUID:
            return UUID(str(value))
        if hint is datetime:
            return value if isinstance(value, datetime) else datetime.fromisoformat(value)
        if hint is date:
            return value if isinstance(value, date) else date.fromisoformat(value)
        if hint is float and isinstance(value, int):
            return float(value)
    return value


def decode_document(cls: type[T], data: dict[str, Any]) -> T:
    """Rebuild a dataclass from its decoded JSON document."""
    hints = get_type_hints(cls)
    kwargs = {}
    for f in dataclasses.fields(cls):
        if not f.init or f.name not in data:
            continue
        kwargs[f.name] = _decode_value(hints.get(f.name, Any), data[f.name])
    return cls(**kwargs)


def parse_variant_json(variant_data: Any) -> Optional[Any]:
    """
    Parse Snowflake VARIANT data that might be a string or already parsed.

    snowflake-connector-python returns VARIANT columns as JSON text;
    other drivers and the mock may hand back parsed objects.
    """
    if not variant_data:
        return None

    if isinstance(variant_data, str):
        try:
            return json.loads(variant_data)
        except json.JSONDecodeError as e:
            logger.error(
                "Failed to parse VARIANT JSON",
                extra={"error": str(e), "data_preview": variant_data[:100]}
            )
            return None

    return variant_data


# ---------------------------------------------------------------------------
# Base repository
# ---------------------------------------------------------------------------

def _where(conditions: list[Condition]) -> tuple[str, list[Any]]:
    clauses = []
    params: list[Any] = []
    for column, op, value in conditions:
        if op == "IN":
            values = list(value)
            clauses.append(f"{column} IN ({', '.join(['%s'] * len(values))})")
            params.extend(values)
        elif op == "BETWEEN":
            low, high = value
            clauses.append(f"{column} BETWEEN %s AND %s")
            params.extend([low, high])
        elif op in ("=", ">=", "<="):
            clauses.append(f"{column} {op} %s")
            params.append(value)
        else:
            raise ValueError(f"Unsupported operator: {op}")

    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


class DocumentRepository(Generic[T]):
    """
    Base for repositories that keep one aggregate per row.

    Subclasses name the table and its index columns, and say how to turn
    an entity into a document and column values and back.
    """
    table: str = ""
    columns: tuple[str, ...] = ()

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    # Subclass hooks

    def _key(self, entity: T) -> str:
        return str(entity.id)

    def _column_values(self, entity: T) -> tuple:
        raise NotImplementedError

    def _to_document(self, entity: T) -> str:
        return encode_document(entity)

    def _from_document(self, data: dict[str, Any]) -> T:
        raise NotImplementedError

    # Operations

    def _merge(self, entity: T, on: str, update: bool) -> int:
        """MERGE one entity keyed on column `on`. Returns the rows affected."""
        names = ("id",) + self.columns + ("document",)
        select_list = ", ".join(
            [f"%s AS {name}" for name in names[:-1]] + ["PARSE_JSON(%s) AS document"]
        )
        params = (self._key(entity),) + tuple(self._column_values(entity)) + (self._to_document(entity),)
        insert_columns = ", ".join(names)
        insert_values = ", ".join(f"source.{name}" for name in names)
        when_matched = ""
        if update:
            updates = ", ".join(f"{name} = source.{name}" for name in names[1:])
            when_matched = f"WHEN MATCHED THEN UPDATE SET {updates}"

        cursor = self._conn.cursor()
        try:
            cursor.execute(f"""
                MERGE INTO {self.table} AS target
                USING (SELECT {select_list}) AS source
                ON target.{on} = source.{on}
                {when_matched}
                WHEN NOT MATCHED THEN INSERT ({insert_columns})
                VALUES ({insert_values})
            """, params)
            affected = cursor.rowcount or 0
            self._conn.commit()
            return affected
        except Exception as e:
            logger.error(
                "Failed to save record",
                extra={"table": self.table, "id": params[0], "error": str(e)}
            )
            raise
        finally:
            cursor.close()

    def _upsert(self, entity: T) -> None:
        """Insert or replace the row for this entity."""
        self._merge(entity, on="id", update=True)

    def _insert_unless_exists(self, entity: T, column: str) -> bool:
        """
        Insert the entity unless a row already has the same `column` value.

        The check and the insert are one MERGE statement, so two writers
        racing on the same value cannot both insert. Returns False when the
        value was taken.
        """
        return self._merge(entity, on=column, update=False) > 0

    def _find(
        self,
        conditions: Optional[list[Condition]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[T]:
        where, params = _where(conditions or [])
        query = f"SELECT document FROM {self.table}{where}"
        if order_by:
            query += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            query += " LIMIT %s"
            params.append(limit)

        cursor = self._conn.cursor()
        try:
            cursor.execute(query, tuple(params))
            rows = cursor.fetchall()
        finally:
            cursor.close()

        entities = []
        for (document,) in rows:
            data = parse_variant_json(document)
            if data is None:
                continue
            entities.append(self._from_document(data))
        return entities

    def _find_one(self, conditions: list[Condition]) -> Optional[T]:
        found = self._find(conditions, limit=1)
        return found[0] if found else None

    def _get(self, entity_id: Union[UUID, str], what: str) -> T:
        entity = self._find_one([("id", "=", str(entity_id))])
        if entity is None:
            raise RecordNotFoundError(f"{what} not found")
        return entity

    def _count(self, conditions: Optional[list[Condition]] = None) -> int:
        where, params = _where(conditions or [])
        cursor = self._conn.cursor()
        try:
            cursor.execute(f"SELECT COUNT(*) FROM {self.table}{where}", tuple(params))
            row = cursor.fetchone()
            return int(row[0]) if row else 0
        finally:
            cursor.close()

    def _delete(self, conditions: list[Condition]) -> int:
        where, params = _where(conditions)
        cursor = self._conn.cursor()
        try:
            cursor.execute(f"DELETE FROM {self.table}{where}", tuple(params))
            self._conn.commit()
            return cursor.rowcount or 0
        finally:
            cursor.close()
