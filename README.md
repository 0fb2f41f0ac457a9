# gander

Building blocks for managing SQL schema migrations from Python. It has no
dependencies outside the standard library.

- **`gander.sqlparser`** splits annotated SQL migration files into their
  individual up and down statements.
- **`gander.envsubst`** expands `$VAR` and `${VAR...}` references in text.
- **`gander.dialects`** builds the queries for a version-tracking table on
  PostgreSQL, MySQL, SQLite, SQL Server, ClickHouse, Spanner, Redshift, TiDB,
  Vertica, YDB, Turso, StarRocks and Aurora DSQL.
- **`gander.resolve`** works out which migration versions still need applying.
- **`gander.legacystore`** runs the dialect queries over a DB-API connection.
- **`gander.controller`** wraps a store and adds optional operations.
- **`gander.lock`** holds a PostgreSQL advisory lock for the length of a session.
- **`gander.log`** lets you swap in your own logger or silence output.

## What it does not do

gander has no command-line tool and no migration runner. It does not look
for migration files in a directory, decide on its own what to run, or run
migrations against a database. You put those steps together from the
pieces below.

## Installation

```
pip install gander
```

## Writing SQL migrations

A migration file is made of sections marked by annotations:

```sql
-- +goose Up
CREATE TABLE post (id int NOT NULL, title text);

-- +goose StatementBegin
CREATE FUNCTION touch() RETURNS trigger AS $$
BEGIN
    NEW.updated_at = now();
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;
-- +goose StatementEnd

-- +goose Down
DROP FUNCTION touch();
DROP TABLE post;
```

In a section, a statement ends at a line whose last word, before any `--`
comment, ends with a semicolon. A statement that has semicolons inside it,
such as a function body, goes between `StatementBegin` and `StatementEnd`.
Annotation names are matched without regard to case. The annotation line
must start with `--` in its first column.

To run the migration outside a transaction, add
`-- +goose NO TRANSACTION`. Between `-- +goose ENVSUB ON` and
`-- +goose ENVSUB OFF`, references such as `$NAME`, `${NAME}`,
`${NAME:-default}` and `${NAME?message}` are filled in from the process
environment.

## Parsing

```python
from gander.sqlparser import Direction, parse_sql_migration, parse_all_from_fs

with open("migrations/00001_create_post.sql") as fh:
    statements, use_tx = parse_sql_migration(fh, Direction.UP, False)

parsed = parse_all_from_fs("migrations", "00001_create_post.sql", False)
print(parsed.use_tx, len(parsed.up), len(parsed.down))
```

`parse_sql_migration` reads a text or binary stream. `parse_all_from_fs`
reads `filename` under the directory `root` and returns a `ParsedSQL` that
holds both directions. A missing file raises `FileNotFoundError`. A
malformed migration raises `SQLParseError`, and `extract_annotation` raises
`AnnotationError`, a subclass of it, for a bad annotation line.
`ends_with_semicolon(line)` is the check used to find the end of a
statement.

## Variable substitution

```python
from gander.envsubst import interpolate, InterpolationError

interpolate("CREATE TABLE ${PREFIX:-dev_}users;", {"PREFIX": "prod_"})
# 'CREATE TABLE prod_users;'
```

The forms it understands are `-`, `:-`, `+`, `:+`, `?`, `:?`, and
`${VAR:offset[:length]}` substrings. `$$` and `\$` give a literal `$`. A
`?` form whose variable is unset raises `InterpolationError`.

## Dialect queries

```python
from gander.dialects import Postgres, parse_table_identifier

querier = Postgres()
print(querier.create_table("goose_db_version"))
print(querier.table_exists("public.goose_db_version"))
print(parse_table_identifier("public.goose_db_version"))  # ('public', 'goose_db_version')
```

Every querier has `create_table`, `insert_version`, `delete_version`,
`get_migration_by_version`, `list_migrations` and `get_latest_version`.
`Postgres`, `MySQL` and `AuroraDSQL` are `QuerierExtender`s and also have
`table_exists`. The `Dialect` enum names the supported databases.

## Running queries on a connection

```python
import sqlite3
from gander.dialects import Dialect
from gander.legacystore import new_store

store = new_store(Dialect.SQLITE3)
conn = sqlite3.connect(":memory:")
store.create_version_table(conn, "goose_db_version")
store.insert_version(conn, "goose_db_version", 1)
print(store.list_migrations(conn, "goose_db_version"))
```

The store does not commit; committing is up to you. `get_migration`
returns a `GetMigrationResult` and raises `NoRowsError` when the version
has no row. Timestamps that come back as strings are turned into
`datetime`. `new_store` raises `ValueError` for a dialect it has no store
for, and that includes `Dialect.AURORA_DSQL`.

`StoreController(store)` passes attribute lookups on to the store it wraps.
Its `table_exists(conn)` calls the store's own `table_exists` and raises
`UnsupportedOperationError` if the store has none.

## Deciding what to apply

```python
from gander.resolve import MAX_VERSION, up_versions, MissingMigrationsError

up_versions([1, 2, 3, 4], [1, 2], MAX_VERSION, False)   # [3, 4]
up_versions([1, 2, 3], [1, 3], MAX_VERSION, True)       # [2]
```

A "missing" migration is on disk, not in the database, and lower than the
highest version the database has applied. When there are missing
migrations and `allow_missing` is false, `MissingMigrationsError` is
raised. No version above `target` is returned.

## Session locking (PostgreSQL)

```python
from gander.lock import new_postgres_session_locker, with_lock_timeout

locker = new_postgres_session_locker(with_lock_timeout(1, 10))
locker.session_lock(conn)
try:
    ...  # apply migrations
finally:
    locker.session_unlock(conn)
```

`conn` is a DB-API connection whose driver uses the `%s` parameter style.
By default the locker retries the lock every 5 seconds up to 60 times and
the unlock every 2 seconds up to 30 times. The default lock id is
`DEFAULT_LOCK_ID`. `with_lock_id`, `with_lock_timeout` and
`with_unlock_timeout` change these settings, and a period or threshold
below 1 raises `ValueError`. When the retries run out, `LockError` is
raised.

## Logging

```python
from gander.log import get_logger, set_logger, nop_logger

set_logger(nop_logger())
get_logger().printf("applied %d migrations", 3)
```

The default `StdLogger` writes timestamped lines to standard error. Its
`fatalf` writes the message and then raises `SystemExit(1)`.

## Tests

```
pip install -e ".[test]"
pytest
```