import sqlite3

import pytest

from slam.db.adapters import LegacyConnection, ResultSet
from slam.db.config import DbSettings
from slam.db.exceptions import DbError, QueryError
from slam.db.models import QueryType


def test_connection_is_lazy(settings):
    calls = []

    def connect():
        calls.append(1)
        return sqlite3.connect(":memory:", isolation_level=None)

    db = LegacyConnection(settings=settings, connect=connect, driver=sqlite3)
    db.close()

    assert calls == []

    db.query("SELECT 1")
    db.query("SELECT 2")

    assert calls == [1]

    db.close()
    db.get_connection()

    assert calls == [1, 1]
    db.close()


def test_walk_records(legacy):
    legacy.query("INSERT INTO user (name) VALUES ('Bob')")

    assert legacy.affected_rows() == 1
    assert legacy.last_insert_id() == 1

    legacy.query("INSERT INTO user (name) VALUES ('Alice')")
    result = legacy.query("SELECT id, name FROM user ORDER BY id")

    assert isinstance(result, ResultSet)
    assert legacy.query_id() is result
    assert legacy.num_rows() == 2

    names = []
    while legacy.next_record():
        names.append(legacy.f("name"))

    assert names == ["Bob", "Alice"]
    assert legacy.record is None
    assert legacy.query_id() is None


def test_next_record_without_query(legacy):
    with pytest.raises(DbError):
        legacy.next_record()


def test_num_rows_without_query(legacy):
    with pytest.raises(DbError):
        legacy.num_rows()


def test_new_query_frees_previous_result(legacy):
    legacy.query("SELECT 1")
    result = legacy.query("UPDATE user SET name = 'x'")

    assert result is None
    assert legacy.query_id() is None
    assert legacy.affected_rows() == 0


def test_query_error(legacy):
    with pytest.raises(QueryError) as exc_info:
        legacy.query("SELECT * FROM missing")

    assert exc_info.value.message.endswith("\n\nSELECT * FROM missing")
    assert exc_info.value.query == "SELECT * FROM missing"
    assert isinstance(exc_info.value.__cause__, sqlite3.Error)


def test_escaped_value_round_trips(legacy):
    name = legacy.escape("O'Reilly")
    legacy.query(f"INSERT INTO user (name) VALUES ('{name}')")
    legacy.query("SELECT name FROM user")

    assert legacy.next_record()
    assert legacy.f("name") == "O'Reilly"
    assert legacy.escape(42) == "42"


def test_escaped_value_stays_inside_literal(legacy):
    legacy.query("INSERT INTO user (name) VALUES ('Bob')")
    crafted = "x\\' OR 1=1 --"

    legacy.query(f"SELECT name FROM user WHERE name = '{legacy.escape(crafted)}'")

    assert legacy.num_rows() == 0


def test_escape_uses_connection_escaping(settings):
    class EscapingConnection:
        def escape_string(self, value):
            return value.replace("'", "\\'")

        def close(self):
            pass

    db = LegacyConnection(settings=settings, connect=EscapingConnection, driver=sqlite3)

    assert db.escape("O'Reilly") == "O\\'Reilly"


def test_metadata(legacy):
    fields = legacy.metadata("user")

    assert [field["name"] for field in fields] == ["id", "name"]
    assert all(field["table"] == "user" for field in fields)
    assert legacy.query_id() is None


def test_profiling_from_settings():
    settings = DbSettings(ENABLE_PROFILING=True, _env_file=None)
    db = LegacyConnection(
        settings=settings,
        connect=lambda: sqlite3.connect(":memory:", isolation_level=None),
        driver=sqlite3,
    )
    profiler = db.get_profiler()

    db.query("CREATE TABLE user (id INTEGER PRIMARY KEY ASC, name)")
    db.query("INSERT INTO user (name) VALUES ('Bob')")
    db.query("SELECT name FROM user")
    with pytest.raises(QueryError):
        db.query("SELECT * FROM missing")

    assert profiler.get_total_num_queries() == 4
    assert profiler.get_total_num_queries(QueryType.SELECT) == 2
    assert profiler.get_total_num_queries(QueryType.INSERT) == 1
    assert profiler.get_last_query_profile().has_ended()
    db.close()


def test_profiling_disabled_by_default(legacy):
    legacy.query("SELECT 1")

    assert legacy.get_profiler().get_total_num_queries() == 0
