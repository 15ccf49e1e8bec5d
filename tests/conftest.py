import sqlite3

import pytest

from slam.db.adapters import LegacyConnection, PdoConnection
from slam.db.config import DbSettings
from slam.db.models import query_profile
from slam.db.services.profiler import Profiler


class FakeClock:
    """Clock returning a settable time."""

    def __init__(self, current: float = 1000.0):
        self.current = current

    def __call__(self) -> float:
        return self.current


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr(query_profile, "now", fake)
    return fake


@pytest.fixture
def settings():
    return DbSettings(_env_file=None)


@pytest.fixture
def profiler():
    return Profiler(enabled=True)


@pytest.fixture
def pdo(settings):
    connection = PdoConnection("sqlite::memory:", "", "", {"connection_charset": "UTF-8"}, settings=settings)
    connection.exec("CREATE TABLE user (id INTEGER PRIMARY KEY ASC, name)")
    yield connection
    connection.close()


@pytest.fixture
def legacy(settings):
    connection = LegacyConnection(
        settings=settings,
        connect=lambda: sqlite3.connect(":memory:", isolation_level=None),
        driver=sqlite3,
    )
    connection.query("CREATE TABLE user (id INTEGER PRIMARY KEY ASC, name)")
    yield connection
    connection.close()
