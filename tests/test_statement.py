import sqlite3

import pytest

from slam.db.exceptions import QueryError
from slam.db.models import QueryType


def test_statement_prepared_while_disabled_is_never_profiled(pdo):
    profiler = pdo.get_profiler()
    stmt = pdo.prepare("SELECT 1")
    profiler.set_enabled(True)

    assert stmt.query_id is None
    assert stmt.execute() is True
    assert stmt.execute() is True
    assert profiler.get_total_num_queries() == 0


def test_first_execution_reuses_prepared_profile(pdo):
    profiler = pdo.get_profiler().set_enabled(True)
    stmt = pdo.prepare("SELECT 1")
    handle = stmt.query_id

    stmt.execute()

    assert stmt.query_id == handle
    assert profiler.get_total_num_queries() == 1
    assert profiler.get_query_profile(handle).has_ended()


def test_reexecution_records_one_profile_per_execution(pdo):
    profiler = pdo.get_profiler().set_enabled(True)
    stmt = pdo.prepare("SELECT 1")

    stmt.execute()
    first = stmt.query_id
    stmt.execute()
    second = stmt.query_id
    stmt.execute()
    third = stmt.query_id

    assert first < second < third
    profiles = profiler.get_query_profiles()
    assert list(profiles) == [first, second, third]
    assert all(p.query == "SELECT 1" and p.has_ended() for p in profiles.values())


def test_positional_params_are_recorded_one_based(pdo):
    profiler = pdo.get_profiler().set_enabled(True)
    stmt = pdo.prepare("SELECT ? AS left_value, ? AS right_value")

    stmt.execute(["a", "b"])

    assert profiler.get_query_profile(stmt.query_id).get_query_params() == {1: "a", 2: "b"}
    assert stmt.fetch() == {"left_value": "a", "right_value": "b"}


def test_named_params_are_recorded_unchanged(pdo):
    profiler = pdo.get_profiler().set_enabled(True)
    stmt = pdo.prepare("SELECT :name AS name")

    stmt.execute({"name": "x"})

    assert profiler.get_query_profile(stmt.query_id).get_query_params() == {"name": "x"}
    assert stmt.fetch() == {"name": "x"}


def test_clone_does_not_carry_params(pdo):
    profiler = pdo.get_profiler().set_enabled(True)
    stmt = pdo.prepare("SELECT :name AS value")

    stmt.execute({"name": "a", "note": "first run"})
    first = stmt.query_id
    stmt.execute({"name": "b"})

    assert profiler.get_query_profile(first).get_query_params() == {"name": "a", "note": "first run"}
    assert profiler.get_query_profile(stmt.query_id).get_query_params() == {"name": "b"}
    assert stmt.fetch_column() == "b"


def test_failed_execution_is_still_ended(pdo):
    profiler = pdo.get_profiler().set_enabled(True)
    pdo.exec("DROP TABLE user")
    stmt = pdo.prepare("SELECT * FROM user")

    with pytest.raises(QueryError) as exc_info:
        stmt.execute()

    assert isinstance(exc_info.value.__cause__, sqlite3.Error)
    assert exc_info.value.query == "SELECT * FROM user"
    assert profiler.get_query_profile(stmt.query_id).has_ended()


def test_fetching_rows(pdo):
    pdo.insert("user", {"name": "Bob"})
    pdo.insert("user", {"name": "Alice"})

    stmt = pdo.query("SELECT id, name FROM user ORDER BY id")

    assert [row["name"] for row in stmt] == ["Bob", "Alice"]
    assert stmt.fetch() is None
    stmt.close()


def test_insert_statement_is_categorised(pdo):
    profiler = pdo.get_profiler().set_enabled(True)

    stmt = pdo.insert("user", {"name": "Bob"})

    assert stmt.row_count() == 1
    assert profiler.get_query_profile(stmt.query_id).query_type == QueryType.INSERT
