"""SQL statements used to manage the version table, per database dialect."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

__all__ = [
    "AuroraDSQL",
    "ClickHouse",
    "Dialect",
    "MySQL",
    "Postgres",
    "Querier",
    "QuerierExtender",
    "Redshift",
    "SQLServer",
    "SQLite3",
    "Spanner",
    "StarRocks",
    "TiDB",
    "Turso",
    "Vertica",
    "YDB",
    "parse_table_identifier",
]


class Dialect(str, Enum):
    """Database dialects with a known version-table layout."""

    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE3 = "sqlite3"
    MSSQL = "mssql"
    REDSHIFT = "redshift"
    TIDB = "tidb"
    CLICKHOUSE = "clickhouse"
    VERTICA = "vertica"
    YDB = "ydb"
    TURSO = "turso"
    STARROCKS = "starrocks"
    SPANNER = "spanner"
    AURORA_DSQL = "dsql"

    def __str__(self) -> str:
        return self.value


def parse_table_identifier(name: str) -> tuple[str, str]:
    """Split ``schema.table`` at the first dot; without a dot the schema is empty."""
    schema, sep, table = name.partition(".")
    if not sep:
        return "", name
    return schema, table


class Querier(ABC):
    """Builds the statements that read and write the version table."""

    @abstractmethod
    def create_table(self, table_name: str) -> str:
        """Statement that creates the version table."""

    @abstractmethod
    def insert_version(self, table_name: str) -> str:
        """Statement that records a version; takes version and applied flag."""

    @abstractmethod
    def delete_version(self, table_name: str) -> str:
        """Statement that removes a version; takes the version."""

    @abstractmethod
    def get_migration_by_version(self, table_name: str) -> str:
        """Query for the latest timestamp and applied flag of one version."""

    @abstractmethod
    def list_migrations(self, table_name: str) -> str:
        """Query for every version and applied flag, newest first."""

    @abstractmethod
    def get_latest_version(self, table_name: str) -> str:
        """Query for the highest recorded version."""


class QuerierExtender(Querier):
    """A querier that can also check whether the version table exists."""

    @abstractmethod
    def table_exists(self, table_name: str) -> str:
        """Query returning whether the version table exists."""


class _TemplateQuerier(Querier):
    """Querier whose statements are templates with a ``{table}`` placeholder."""

    _CREATE_TABLE: str
    _INSERT_VERSION: str
    _DELETE_VERSION: str
    _GET_MIGRATION_BY_VERSION: str
    _LIST_MIGRATIONS: str
    _GET_LATEST_VERSION: str

    def create_table(self, table_name: str) -> str:
        return self._CREATE_TABLE.format(table=table_name)

    def insert_version(self, table_name: str) -> str:
        return self._INSERT_VERSION.format(table=table_name)

    def delete_version(self, table_name: str) -> str:
        return self._DELETE_VERSION.format(table=table_name)

    def get_migration_by_version(self, table_name: str) -> str:
        return self._GET_MIGRATION_BY_VERSION.format(table=table_name)

    def list_migrations(self, table_name: str) -> str:
        return self._LIST_MIGRATIONS.format(table=table_name)

    def get_latest_version(self, table_name: str) -> str:
        return self._GET_LATEST_VERSION.format(table=table_name)


def _pg_tables_exists(table_name: str) -> str:
    schema, table = parse_table_identifier(table_name)
    if schema:
        return (
            "SELECT EXISTS ( SELECT 1 FROM pg_tables WHERE schemaname = "
            f"'{schema}' AND tablename = '{table}' )"
        )
    return (
        "SELECT EXISTS ( SELECT 1 FROM pg_tables WHERE (current_schema() IS NULL "
        f"OR schemaname = current_schema()) AND tablename = '{table}' )"
    )


class ClickHouse(_TemplateQuerier):
    _CREATE_TABLE = (
        "CREATE TABLE IF NOT EXISTS {table} (\n"
        "\t\tversion_id Int64,\n"
        "\t\tis_applied UInt8,\n"
        "\t\tdate Date default now(),\n"
        "\t\ttstamp DateTime default now()\n"
        "\t  )\n"
        "\t  ENGINE = MergeTree()\n"
        "\t\tORDER BY (date)"
    )
    _INSERT_VERSION = "INSERT INTO {table} (version_id, is_applied) VALUES ($1, $2)"
    _DELETE_VERSION = (
        "ALTER TABLE {table} DELETE WHERE version_id = $1 SETTINGS mutations_sync = 2"
    )
    _GET_MIGRATION_BY_VERSION = (
        "SELECT tstamp, is_applied FROM {table} WHERE version_id = $1 "
        "ORDER BY tstamp DESC LIMIT 1"
    )
    _LIST_MIGRATIONS = "SELECT version_id, is_applied FROM {table} ORDER BY version_id DESC"
    _GET_LATEST_VERSION = "SELECT max(version_id) FROM {table}"


class AuroraDSQL(_TemplateQuerier, QuerierExtender):
    _CREATE_TABLE = (
        "CREATE TABLE {table} (\n"
        "\t\tid integer PRIMARY KEY,\n"
        "\t\tversion_id bigint NOT NULL,\n"
        "\t\tis_applied boolean NOT NULL,\n"
        "\t\ttstamp timestamp NOT NULL DEFAULT now()\n"
        "\t)"
    )
    _INSERT_VERSION = (
        "INSERT INTO {table} (id, version_id, is_applied) \n"
        "\t      VALUES (\n"
        "\t          COALESCE((SELECT MAX(id) FROM {table}), 0) + 1,\n"
        "\t          $1, \n"
        "\t          $2\n"
        "\t      )"
    )
    _DELETE_VERSION = "DELETE FROM {table} WHERE version_id=$1"
    _GET_MIGRATION_BY_VERSION = (
        "SELECT tstamp, is_applied FROM {table} WHERE version_id=$1 "
        "ORDER BY tstamp DESC LIMIT 1"
    )
    _LIST_MIGRATIONS = "SELECT version_id, is_applied from {table} ORDER BY id DESC"
    _GET_LATEST_VERSION = "SELECT max(version_id) FROM {table}"

    def table_exists(self, table_name: str) -> str:
        return _pg_tables_exists(table_name)


class MySQL(_TemplateQuerier, QuerierExtender):
    _CREATE_TABLE = (
        "CREATE TABLE {table} (\n"
        "\t\tid bigint(20) unsigned NOT NULL AUTO_INCREMENT,\n"
        "\t\tversion_id bigint NOT NULL,\n"
        "\t\tis_applied boolean NOT NULL,\n"
        "\t\ttstamp timestamp NULL default now(),\n"
        "\t\tPRIMARY KEY(id)\n"
        "\t)"
    )
    _INSERT_VERSION = "INSERT INTO {table} (version_id, is_applied) VALUES (?, ?)"
    _DELETE_VERSION = "DELETE FROM {table} WHERE version_id=?"
    _GET_MIGRATION_BY_VERSION = (
        "SELECT tstamp, is_applied FROM {table} WHERE version_id=? "
        "ORDER BY tstamp DESC LIMIT 1"
    )
    _LIST_MIGRATIONS = "SELECT version_id, is_applied from {table} ORDER BY id DESC"
    _GET_LATEST_VERSION = "SELECT MAX(version_id) FROM {table}"

    def table_exists(self, table_name: str) -> str:
        schema, table = parse_table_identifier(table_name)
        if schema:
            return (
                "SELECT EXISTS ( SELECT 1 FROM information_schema.tables WHERE "
                f"table_schema = '{schema}' AND table_name = '{table}' )"
            )
        return (
            "SELECT EXISTS ( SELECT 1 FROM information_schema.tables WHERE "
            "(database() IS NULL OR table_schema = database()) AND "
            f"table_name = '{table}' )"
        )


class Postgres(_TemplateQuerier, QuerierExtender):
    _CREATE_TABLE = (
        "CREATE TABLE {table} (\n"
        "\t\tid integer PRIMARY KEY GENERATED BY DEFAULT AS IDENTITY,\n"
        "\t\tversion_id bigint NOT NULL,\n"
        "\t\tis_applied boolean NOT NULL,\n"
        "\t\ttstamp timestamp NOT NULL DEFAULT now()\n"
        "\t)"
    )
    _INSERT_VERSION = "INSERT INTO {table} (version_id, is_applied) VALUES ($1, $2)"
    _DELETE_VERSION = "DELETE FROM {table} WHERE version_id=$1"
    _GET_MIGRATION_BY_VERSION = (
        "SELECT tstamp, is_applied FROM {table} WHERE version_id=$1 "
        "ORDER BY tstamp DESC LIMIT 1"
    )
    _LIST_MIGRATIONS = "SELECT version_id, is_applied from {table} ORDER BY id DESC"
    _GET_LATEST_VERSION = "SELECT max(version_id) FROM {table}"

    def table_exists(self, table_name: str) -> str:
        return _pg_tables_exists(table_name)


class Redshift(_TemplateQuerier):
    _CREATE_TABLE = (
        "CREATE TABLE {table} (\n"
        "\t\tid integer NOT NULL identity(1, 1),\n"
        "\t\tversion_id bigint NOT NULL,\n"
        "\t\tis_applied boolean NOT NULL,\n"
        "\t\ttstamp timestamp NULL default sysdate,\n"
        "\t\tPRIMARY KEY(id)\n"
        "\t)"
    )
    _INSERT_VERSION = "INSERT INTO {table} (version_id, is_applied) VALUES ($1, $2)"
    _DELETE_VERSION = "DELETE FROM {table} WHERE version_id=$1"
    _GET_MIGRATION_BY_VERSION = (
        "SELECT tstamp, is_applied FROM {table} WHERE version_id=$1 "
        "ORDER BY tstamp DESC LIMIT 1"
    )
    _LIST_MIGRATIONS = "SELECT version_id, is_applied from {table} ORDER BY id DESC"
    _GET_LATEST_VERSION = "SELECT max(version_id) FROM {table}"


class Spanner(_TemplateQuerier):
    _CREATE_TABLE = (
        "CREATE TABLE {table} (\n"
        "\t\tversion_id INT64 NOT NULL,\n"
        "\t\tis_applied BOOL NOT NULL,\n"
        "\t\ttstamp TIMESTAMP DEFAULT (CURRENT_TIMESTAMP()),\n"
        "\t) PRIMARY KEY(version_id)"
    )
    _INSERT_VERSION = "INSERT INTO {table} (version_id, is_applied) VALUES (?, ?)"
    _DELETE_VERSION = "DELETE FROM {table} WHERE version_id=?"
    _GET_MIGRATION_BY_VERSION = (
        "SELECT tstamp, is_applied FROM {table} WHERE version_id=? "
        "ORDER BY tstamp DESC LIMIT 1"
    )
    _LIST_MIGRATIONS = "SELECT version_id, is_applied from {table} ORDER BY version_id DESC"
    _GET_LATEST_VERSION = "SELECT MAX(version_id) FROM {table}"


class SQLite3(_TemplateQuerier):
    _CREATE_TABLE = (
        "CREATE TABLE {table} (\n"
        "\t\tid INTEGER PRIMARY KEY AUTOINCREMENT,\n"
        "\t\tversion_id INTEGER NOT NULL,\n"
        "\t\tis_applied INTEGER NOT NULL,\n"
        "\t\ttstamp TIMESTAMP DEFAULT (datetime('now'))\n"
        "\t)"
    )
    _INSERT_VERSION = "INSERT INTO {table} (version_id, is_applied) VALUES (?, ?)"
    _DELETE_VERSION = "DELETE FROM {table} WHERE version_id=?"
    _GET_MIGRATION_BY_VERSION = (
        "SELECT tstamp, is_applied FROM {table} WHERE version_id=? "
        "ORDER BY tstamp DESC LIMIT 1"
    )
    _LIST_MIGRATIONS = "SELECT version_id, is_applied from {table} ORDER BY id DESC"
    _GET_LATEST_VERSION = "SELECT MAX(version_id) FROM {table}"


class SQLServer(_TemplateQuerier):
    _CREATE_TABLE = (
        "CREATE TABLE {table} (\n"
        "\t\tid INT NOT NULL IDENTITY(1,1) PRIMARY KEY,\n"
        "\t\tversion_id BIGINT NOT NULL,\n"
        "\t\tis_applied BIT NOT NULL,\n"
        "\t\ttstamp DATETIME NULL DEFAULT CURRENT_TIMESTAMP\n"
        "\t)"
    )
    _INSERT_VERSION = "INSERT INTO {table} (version_id, is_applied) VALUES (@p1, @p2)"
    _DELETE_VERSION = "DELETE FROM {table} WHERE version_id=@p1"
    _GET_MIGRATION_BY_VERSION = (
        "SELECT TOP 1 tstamp, is_applied FROM {table} WHERE version_id=@p1 "
        "ORDER BY tstamp DESC"
    )
    _LIST_MIGRATIONS = "SELECT version_id, is_applied FROM {table} ORDER BY id DESC"
    _GET_LATEST_VERSION = "SELECT MAX(version_id) FROM {table}"


class StarRocks(_TemplateQuerier):
    _CREATE_TABLE = (
        "CREATE TABLE IF NOT EXISTS {table} (\n"
        "\t\tid bigint NOT NULL AUTO_INCREMENT,\n"
        "\t\tversion_id bigint NOT NULL,\n"
        "\t\tis_applied boolean NOT NULL,\n"
        "\t\ttstamp datetime NULL default CURRENT_TIMESTAMP\n"
        "\t)\n"
        "\tPRIMARY KEY (id)\n"
        "\tDISTRIBUTED BY HASH (id)\n"
        "\tORDER BY (id,version_id)"
    )
    _INSERT_VERSION = "INSERT INTO {table} (version_id, is_applied) VALUES (?, ?)"
    _DELETE_VERSION = "DELETE FROM {table} WHERE version_id=?"
    _GET_MIGRATION_BY_VERSION = (
        "SELECT tstamp, is_applied FROM {table} WHERE version_id=? "
        "ORDER BY tstamp DESC LIMIT 1"
    )
    _LIST_MIGRATIONS = "SELECT version_id, is_applied from {table} ORDER BY id DESC"
    _GET_LATEST_VERSION = "SELECT MAX(version_id) FROM {table}"


class TiDB(_TemplateQuerier):
    _CREATE_TABLE = (
        "CREATE TABLE {table} (\n"
        "\t\tid BIGINT UNSIGNED NOT NULL AUTO_INCREMENT UNIQUE,\n"
        "\t\tversion_id bigint NOT NULL,\n"
        "\t\tis_applied boolean NOT NULL,\n"
        "\t\ttstamp timestamp NULL default now(),\n"
        "\t\tPRIMARY KEY(id)\n"
        "\t)"
    )
    _INSERT_VERSION = "INSERT INTO {table} (version_id, is_applied) VALUES (?, ?)"
    _DELETE_VERSION = "DELETE FROM {table} WHERE version_id=?"
    _GET_MIGRATION_BY_VERSION = (
        "SELECT tstamp, is_applied FROM {table} WHERE version_id=? "
        "ORDER BY tstamp DESC LIMIT 1"
    )
    _LIST_MIGRATIONS = "SELECT version_id, is_applied from {table} ORDER BY id DESC"
    _GET_LATEST_VERSION = "SELECT MAX(version_id) FROM {table}"


class Turso(SQLite3):
    """Turso speaks the SQLite dialect."""


class Vertica(_TemplateQuerier):
    _CREATE_TABLE = (
        "CREATE TABLE {table} (\n"
        "\t\tid identity(1,1) NOT NULL,\n"
        "\t\tversion_id bigint NOT NULL,\n"
        "\t\tis_applied boolean NOT NULL,\n"
        "\t\ttstamp timestamp NULL default now(),\n"
        "\t\tPRIMARY KEY(id)\n"
        "\t)"
    )
    _INSERT_VERSION = "INSERT INTO {table} (version_id, is_applied) VALUES (?, ?)"
    _DELETE_VERSION = "DELETE FROM {table} WHERE version_id=?"
    _GET_MIGRATION_BY_VERSION = (
        "SELECT tstamp, is_applied FROM {table} WHERE version_id=? "
        "ORDER BY tstamp DESC LIMIT 1"
    )
    _LIST_MIGRATIONS = "SELECT version_id, is_applied from {table} ORDER BY id DESC"
    _GET_LATEST_VERSION = "SELECT MAX(version_id) FROM {table}"


class YDB(_TemplateQuerier):
    _CREATE_TABLE = (
        "CREATE TABLE {table} (\n"
        "\t\tversion_id Uint64,\n"
        "\t\tis_applied Bool,\n"
        "\t\ttstamp Timestamp,\n"
        "\n"
        "\t\tPRIMARY KEY(version_id)\n"
        "\t)"
    )
    _INSERT_VERSION = (
        "INSERT INTO {table} (\n"
        "\t\tversion_id, \n"
        "\t\tis_applied, \n"
        "\t\ttstamp\n"
        "\t) VALUES (\n"
        "\t\tCAST($1 AS Uint64), \n"
        "\t\t$2, \n"
        "\t\tCurrentUtcTimestamp()\n"
        "\t)"
    )
    _DELETE_VERSION = "DELETE FROM {table} WHERE version_id = $1"
    _GET_MIGRATION_BY_VERSION = (
        "SELECT tstamp, is_applied FROM {table} WHERE version_id = $1 "
        "ORDER BY tstamp DESC LIMIT 1"
    )
    _LIST_MIGRATIONS = (
        "\n"
        "\tSELECT version_id, is_applied, tstamp AS __discard_column_tstamp \n"
        "\tFROM {table} ORDER BY __discard_column_tstamp DESC"
    )
    _GET_LATEST_VERSION = "SELECT MAX(version_id) FROM {table}"