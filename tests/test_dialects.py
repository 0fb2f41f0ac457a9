import pytest

from gander.dialects import (
    YDB,
    AuroraDSQL,
    ClickHouse,
    Dialect,
    MySQL,
    Postgres,
    Querier,
    QuerierExtender,
    Redshift,
    Spanner,
    SQLite3,
    SQLServer,
    StarRocks,
    TiDB,
    Turso,
    Vertica,
    parse_table_identifier,
)


def test_every_statement_names_the_table():
    queriers = (
        ClickHouse(),
        AuroraDSQL(),
        MySQL(),
        Postgres(),
        Redshift(),
        Spanner(),
        SQLite3(),
        SQLServer(),
        StarRocks(),
        TiDB(),
        Turso(),
        Vertica(),
        YDB(),
    )
    table = "my_versions_table"
    for q in queriers:
        statements = [
            q.create_table(table),
            q.insert_version(table),
            q.delete_version(table),
            q.get_migration_by_version(table),
            q.list_migrations(table),
            q.get_latest_version(table),
        ]
        for sql in statements:
            assert table in sql
            assert "{table}" not in sql


def test_dollar_placeholders():
    for q in (ClickHouse(), AuroraDSQL(), Postgres(), Redshift(), YDB()):
        insert = q.insert_version("t")
        assert "$1" in insert
        assert "$2" in insert
        assert "?" not in insert
        assert "$1" in q.delete_version("t")


def test_question_placeholders():
    for q in (MySQL(), Spanner(), SQLite3(), StarRocks(), TiDB(), Turso(), Vertica()):
        insert = q.insert_version("t")
        assert insert.count("?") == 2
        assert "$" not in insert
        assert q.delete_version("t").count("?") == 1


def test_sqlserver_placeholders():
    q = SQLServer()
    assert q.insert_version("t") == "INSERT INTO t (version_id, is_applied) VALUES (@p1, @p2)"
    assert q.delete_version("t") == "DELETE FROM t WHERE version_id=@p1"
    assert q.get_migration_by_version("t").startswith("SELECT TOP 1 ")


def test_postgres_pinned_statements():
    q = Postgres()
    assert q.insert_version("goose") == "INSERT INTO goose (version_id, is_applied) VALUES ($1, $2)"
    assert q.delete_version("goose") == "DELETE FROM goose WHERE version_id=$1"
    assert q.get_latest_version("goose") == "SELECT max(version_id) FROM goose"
    assert q.list_migrations("goose") == "SELECT version_id, is_applied from goose ORDER BY id DESC"


def test_clickhouse_delete_uses_mutation():
    sql = ClickHouse().delete_version("v")
    assert sql == "ALTER TABLE v DELETE WHERE version_id = $1 SETTINGS mutations_sync = 2"


def test_dsql_insert_names_table_twice():
    sql = AuroraDSQL().insert_version("vt")
    assert sql.count("vt") == 2
    assert "COALESCE((SELECT MAX(id) FROM vt), 0) + 1" in sql


def test_turso_matches_sqlite():
    turso, sqlite = Turso(), SQLite3()
    assert turso.create_table("x") == sqlite.create_table("x")
    assert turso.insert_version("x") == sqlite.insert_version("x")
    assert turso.delete_version("x") == sqlite.delete_version("x")
    assert turso.get_migration_by_version("x") == sqlite.get_migration_by_version("x")
    assert turso.list_migrations("x") == sqlite.list_migrations("x")
    assert turso.get_latest_version("x") == sqlite.get_latest_version("x")


def test_create_if_not_exists_only_where_source_has_it():
    assert ClickHouse().create_table("t").startswith("CREATE TABLE IF NOT EXISTS t (")
    assert StarRocks().create_table("t").startswith("CREATE TABLE IF NOT EXISTS t (")
    assert Postgres().create_table("t").startswith("CREATE TABLE t (")


def test_spanner_and_clickhouse_list_by_version():
    assert Spanner().list_migrations("t").endswith("ORDER BY version_id DESC")
    assert ClickHouse().list_migrations("t").endswith("ORDER BY version_id DESC")
    assert YDB().list_migrations("t").endswith("ORDER BY __discard_column_tstamp DESC")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("schema.table", ("schema", "table")),
        ("table", ("", "table")),
        ("a.b.c", ("a", "b.c")),
    ],
)
def test_parse_table_identifier(name, expected):
    assert parse_table_identifier(name) == expected


@pytest.mark.parametrize("cls", [Postgres, AuroraDSQL])
def test_pg_table_exists(cls):
    with_schema = cls().table_exists("myschema.versions")
    assert "schemaname = 'myschema'" in with_schema
    assert "tablename = 'versions'" in with_schema
    plain = cls().table_exists("versions")
    assert "current_schema()" in plain
    assert "tablename = 'versions'" in plain


def test_mysql_table_exists():
    with_schema = MySQL().table_exists("db1.versions")
    assert "table_schema = 'db1'" in with_schema
    assert "table_name = 'versions'" in with_schema
    plain = MySQL().table_exists("versions")
    assert "database()" in plain
    assert "table_name = 'versions'" in plain


def test_only_extenders_have_table_exists():
    for q in (Postgres(), MySQL(), AuroraDSQL()):
        assert isinstance(q, QuerierExtender)
        assert q.table_exists("t").startswith("SELECT EXISTS")
    for q in (SQLite3(), ClickHouse(), Spanner(), SQLServer(), YDB()):
        assert not isinstance(q, QuerierExtender)
        with pytest.raises(AttributeError):
            q.table_exists("t")


def test_abstract_querier_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Querier()
    with pytest.raises(TypeError):
        QuerierExtender()


def test_dialect_lookup_by_value():
    assert Dialect("postgres") is Dialect.POSTGRES
    assert str(Dialect.SQLITE3) == "sqlite3"
    with pytest.raises(ValueError):
        Dialect("nosuchdb")