import logging
import sqlite3
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence

import pymysql

from ..config import DbSettings, get_settings
from ..decorators import profiled, profiled_statement
from ..exceptions import DbError, QueryError
from ..models.query_profile import QueryType
from ..services.metrics import install_metrics
from ..services.profiler import Profiler
from .statement import ProfiledStatement

logger = logging.getLogger(__name__)

# DSN keys understood by the MySQL driver, in the order they are written
DSN_KEYS = ("host", "port", "dbname", "unix_socket")

_PLACEHOLDERS = {
    "qmark": "?",
    "format": "%s",
    "pyformat": "%s",
}


def parse_dsn(dsn: str) -> Dict[str, str]:
    """Split the ``key=value;`` part of a DSN into a mapping."""
    _, _, body = dsn.partition(":")
    params = {}
    for pair in body.split(";"):
        key, sep, value = pair.partition("=")
        if sep and key.strip():
            params[key.strip()] = value.strip()
    return params


def build_dsn(dsn_custom: Optional[Mapping[str, Any]] = None, settings: Optional[DbSettings] = None) -> str:
    """
    Build a MySQL DSN from the configured defaults.

    Values in ``dsn_custom`` override the defaults; empty values are left out
    and keys other than host, port, dbname and unix_socket are ignored.
    """
    settings = settings or get_settings()
    dsn_array = {
        "host": settings.HOST,
        "port": settings.PORT,
        "dbname": settings.DATABASE,
        "unix_socket": settings.SOCKET,
    }
    dsn_array.update(dsn_custom or {})

    dsn = "mysql:"
    for key in DSN_KEYS:
        if dsn_array.get(key):
            dsn += f"{key}={dsn_array[key]};"
    return dsn


class PdoConnection:
    """
    Connection object handing out profiled prepared statements.

    Supports ``sqlite:<path>`` and ``mysql:host=...;dbname=...;`` DSNs. Every
    statement goes through the connection's profiler, which stays disabled
    unless turned on in settings or through ``get_profiler().set_enabled(True)``.

    Usage:
        with PdoConnection("sqlite::memory:") as pdo:
            pdo.exec("CREATE TABLE user (id INTEGER PRIMARY KEY, name)")
            pdo.insert("user", {"name": "Bob"})
            users = pdo.query("SELECT id, name FROM user").fetch_all()
    """

    def __init__(
        self,
        dsn: str,
        username: str = "",
        password: str = "",
        options: Optional[Mapping[str, Any]] = None,
        settings: Optional[DbSettings] = None,
    ):
        self.settings = settings or get_settings()
        self._db_params = {
            "dsn": dsn,
            "username": username,
            "password": password,
            "options": dict(options or {}),
        }
        self._profiler: Optional[Profiler] = None
        self.start_time = time.time()

        with self.get_profiler().profile_query("connect", QueryType.CONNECT):
            self._driver, self._connection = self._connect(dsn, username, password, dict(options or {}))

        logger.info(f"Connected to {dsn.partition(':')[0]} database")

    def _connect(self, dsn: str, username: str, password: str, options: Dict[str, Any]):
        prefix = dsn.partition(":")[0]
        charset = options.pop("connection_charset", None)

        if prefix == "sqlite":
            path = dsn.partition(":")[2] or ":memory:"
            with self.driver_errors(dsn, sqlite3):
                return sqlite3, sqlite3.connect(path, isolation_level=None, **options)

        if prefix == "mysql":
            params = parse_dsn(dsn)
            connect_args: Dict[str, Any] = {
                "host": params.get("host", self.settings.HOST),
                "user": username,
                "password": password,
                "database": params.get("dbname") or None,
                "charset": charset or self.settings.CONNECTION_CHARSET,
                "autocommit": True,
            }
            if params.get("port"):
                connect_args["port"] = int(params["port"])
            if params.get("unix_socket"):
                connect_args["unix_socket"] = params["unix_socket"]
            connect_args.update(options)
            with self.driver_errors(dsn, pymysql):
                return pymysql, pymysql.connect(**connect_args)

        raise DbError(f"Unsupported DSN '{dsn}'")

    @contextmanager
    def driver_errors(self, query: str, driver: Any = None) -> Iterator[None]:
        """Translate driver exceptions raised in the block into ``QueryError``."""
        driver = driver or self._driver
        try:
            yield
        except driver.Error as e:
            raise QueryError.from_driver(e, query) from e

    @staticmethod
    def build_dsn(dsn_custom: Optional[Mapping[str, Any]] = None, settings: Optional[DbSettings] = None) -> str:
        return build_dsn(dsn_custom, settings)

    def get_db_params(self) -> Dict[str, Any]:
        return self._db_params

    def get_connection(self):
        """The underlying DB-API connection."""
        return self._connection

    def get_profiler(self) -> Profiler:
        if self._profiler is None:
            self._profiler = Profiler(
                enabled=self.settings.ENABLE_PROFILING,
                slow_query_threshold_secs=self.settings.slow_query_threshold_secs,
                max_query_length=self.settings.MAX_QUERY_LENGTH,
            )
            if self.settings.ENABLE_PROMETHEUS:
                install_metrics(self._profiler)

        return self._profiler

    @property
    def placeholder(self) -> str:
        """Positional parameter marker of the driver."""
        return _PLACEHOLDERS[self._driver.paramstyle]

    @profiled_statement()
    def exec(self, statement: str) -> int:
        """Run a statement without parameters, returning the affected row count."""
        cursor = self._connection.cursor()
        try:
            with self.driver_errors(statement):
                cursor.execute(statement)
            return cursor.rowcount
        finally:
            cursor.close()

    def prepare(self, statement: str) -> ProfiledStatement:
        return ProfiledStatement(self, statement)

    def query(self, statement: str, binds: Sequence[Any] = ()) -> ProfiledStatement:
        stmt = self.prepare(statement)
        stmt.execute(binds)
        return stmt

    def insert(self, table_name: str, data: Mapping[str, Any]) -> ProfiledStatement:
        placeholders = ", ".join([self.placeholder] * len(data))
        return self.query(
            f"INSERT INTO {table_name} ({', '.join(data.keys())}) VALUES ({placeholders})",
            list(data.values()),
        )

    def update(self, table_name: str, data: Mapping[str, Any], identifier: Mapping[str, Any]) -> ProfiledStatement:
        assignments = ", ".join(f"{column} = {self.placeholder}" for column in data)
        criteria = " AND ".join(f"{column} = {self.placeholder}" for column in identifier)
        return self.query(
            f"UPDATE {table_name} SET {assignments} WHERE {criteria}",
            list(data.values()) + list(identifier.values()),
        )

    def delete(self, table_name: str, identifier: Mapping[str, Any]) -> ProfiledStatement:
        criteria = " AND ".join(f"{column} = {self.placeholder}" for column in identifier)
        return self.query(f"DELETE FROM {table_name} WHERE {criteria}", list(identifier.values()))

    @profiled("begin", QueryType.TRANSACTION)
    def begin_transaction(self) -> "PdoConnection":
        cursor = self._connection.cursor()
        try:
            with self.driver_errors("BEGIN"):
                cursor.execute("BEGIN")
        finally:
            cursor.close()
        return self

    @profiled("commit", QueryType.TRANSACTION)
    def commit(self) -> "PdoConnection":
        with self.driver_errors("COMMIT"):
            self._connection.commit()
        return self

    @profiled("rollback", QueryType.TRANSACTION)
    def roll_back(self) -> "PdoConnection":
        with self.driver_errors("ROLLBACK"):
            self._connection.rollback()
        return self

    def quote_identifier(self, name: str) -> str:
        """Quote a possibly dotted identifier such as ``schema.table``."""
        return ".".join(self.quote_single_identifier(part) for part in name.split("."))

    @staticmethod
    def quote_single_identifier(name: str) -> str:
        return "`" + name.replace("`", "``") + "`"

    def close(self) -> None:
        self._connection.close()
        logger.info("Connection closed")

    def __enter__(self) -> "PdoConnection":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
