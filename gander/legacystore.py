"""Version-table access through DB-API connections."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence, Union

from gander.dialects import (
    YDB,
    ClickHouse,
    Dialect,
    MySQL,
    Postgres,
    Querier,
    Redshift,
    Spanner,
    SQLite3,
    SQLServer,
    StarRocks,
    TiDB,
    Turso,
    Vertica,
)

__all__ = [
    "GetMigrationResult",
    "LegacyStore",
    "ListMigrationsResult",
    "NoRowsError",
    "new_store",
]

_QUERIERS: dict[Dialect, type[Querier]] = {
    Dialect.POSTGRES: Postgres,
    Dialect.MYSQL: MySQL,
    Dialect.SQLITE3: SQLite3,
    Dialect.SPANNER: Spanner,
    Dialect.MSSQL: SQLServer,
    Dialect.REDSHIFT: Redshift,
    Dialect.TIDB: TiDB,
    Dialect.CLICKHOUSE: ClickHouse,
    Dialect.VERTICA: Vertica,
    Dialect.YDB: YDB,
    Dialect.TURSO: Turso,
    Dialect.STARROCKS: StarRocks,
}


class NoRowsError(LookupError):
    """Raised when a query that must return a row returned none."""


@dataclass(frozen=True)
class GetMigrationResult:
    is_applied: bool
    timestamp: Any


@dataclass(frozen=True)
class ListMigrationsResult:
    version_id: int
    is_applied: bool


def _to_timestamp(value: Any) -> Any:
    if isinstance(value, bytes):
        value = value.decode()
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


class LegacyStore:
    """Reads and writes the version table with a dialect's statements.

    Every method takes a DB-API connection (or anything with ``cursor()``);
    committing is left to the caller.
    """

    def __init__(self, querier: Querier) -> None:
        self.querier = querier

    @staticmethod
    def _execute(conn: Any, query: str, params: Sequence[Any] = ()) -> None:
        cur = conn.cursor()
        try:
            cur.execute(query, tuple(params))
        finally:
            cur.close()

    def create_version_table(self, conn: Any, table_name: str) -> None:
        self._execute(conn, self.querier.create_table(table_name))

    def insert_version(self, conn: Any, table_name: str, version: int) -> None:
        self._execute(conn, self.querier.insert_version(table_name), (version, True))

    def delete_version(self, conn: Any, table_name: str, version: int) -> None:
        self._execute(conn, self.querier.delete_version(table_name), (version,))

    def get_migration(self, conn: Any, table_name: str, version: int) -> GetMigrationResult:
        """Return the latest record of *version*; raise NoRowsError if there is none."""
        cur = conn.cursor()
        try:
            cur.execute(self.querier.get_migration_by_version(table_name), (version,))
            row = cur.fetchone()
        finally:
            cur.close()
        if row is None:
            raise NoRowsError(f"no rows for version {version}")
        timestamp, is_applied = row[0], row[1]
        return GetMigrationResult(is_applied=bool(is_applied), timestamp=_to_timestamp(timestamp))

    def list_migrations(self, conn: Any, table_name: str) -> list[ListMigrationsResult]:
        """Return every recorded version in the dialect's newest-first order."""
        cur = conn.cursor()
        try:
            cur.execute(self.querier.list_migrations(table_name), ())
            rows = cur.fetchall()
        finally:
            cur.close()
        return [
            ListMigrationsResult(version_id=int(row[0]), is_applied=bool(row[1])) for row in rows
        ]


def new_store(dialect: Union[Dialect, str]) -> LegacyStore:
    """Return a store for *dialect*; unknown dialects raise ValueError."""
    try:
        querier_cls = _QUERIERS[Dialect(dialect)]
    except (ValueError, KeyError):
        raise ValueError(f"unknown querier dialect: {dialect}") from None
    return LegacyStore(querier_cls())