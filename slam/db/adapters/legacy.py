import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

import pymysql

from ..config import DbSettings, get_settings
from ..exceptions import DbError, QueryError
from ..services.profiler import Profiler

logger = logging.getLogger(__name__)


class ResultSet:
    """Buffered rows of one query, consumed front to back."""

    def __init__(self, description, rows):
        self.description = list(description)
        self.columns = [column[0] for column in self.description]
        self._rows = [dict(zip(self.columns, row)) for row in rows]
        self._position = 0

    @property
    def num_rows(self) -> int:
        return len(self._rows)

    def fetch_assoc(self) -> Optional[Dict[str, Any]]:
        if self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        return row

    def free(self) -> None:
        self._rows = []
        self._position = 0

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        row = self.fetch_assoc()
        while row is not None:
            yield row
            row = self.fetch_assoc()


class LegacyConnection:
    """
    Procedural database wrapper: run a query, then walk its records.

    The driver connection is opened on first use. By default it is a PyMySQL
    connection built from settings; pass ``connect`` (a callable returning a
    DB-API connection) and the matching ``driver`` module to use another one.

    Usage:
        db = LegacyConnection()
        db.query("SELECT id, name FROM user")
        while db.next_record():
            print(db.f("name"))
    """

    def __init__(
        self,
        settings: Optional[DbSettings] = None,
        connect: Optional[Callable[[], Any]] = None,
        driver: Any = pymysql,
    ):
        self.settings = settings or get_settings()
        self.record: Optional[Dict[str, Any]] = None
        self._connect_func = connect or self._connect_mysql
        self._driver = driver
        self._connection = None
        self._result: Optional[ResultSet] = None
        self._affected_rows = 0
        self._insert_id = None
        self._profiler = Profiler(
            enabled=self.settings.ENABLE_PROFILING,
            slow_query_threshold_secs=self.settings.slow_query_threshold_secs,
            max_query_length=self.settings.MAX_QUERY_LENGTH,
        )

    def _connect_mysql(self):
        return pymysql.connect(
            host=self.settings.HOST,
            port=self.settings.PORT,
            user=self.settings.USER,
            password=self.settings.PASSWORD,
            database=self.settings.DATABASE or None,
            unix_socket=self.settings.SOCKET or None,
            charset=self.settings.CONNECTION_CHARSET,
            autocommit=True,
        )

    def _connect(self) -> None:
        if self._connection is not None:
            return

        try:
            self._connection = self._connect_func()
        except self._driver.Error as e:
            raise QueryError.from_driver(e, "connect") from e
        logger.info("Database connection opened")

    def close(self) -> None:
        """Close the driver connection; the next call reconnects."""
        if self._connection is None:
            return

        self._connection.close()
        self._connection = None
        logger.info("Database connection closed")

    def get_connection(self):
        self._connect()
        return self._connection

    def get_profiler(self) -> Profiler:
        return self._profiler

    def escape(self, value: Any) -> str:
        """
        Escape a value for embedding inside a quoted SQL string.

        Uses the connection's own escaping (honouring the server SQL mode on
        MySQL); drivers without one get standard SQL quote doubling.
        """
        connection = self.get_connection()
        escape_string = getattr(connection, "escape_string", None)
        if escape_string is None:
            return str(value).replace("'", "''")
        return escape_string(str(value))

    def query_id(self) -> Optional[ResultSet]:
        """The active result set, if any."""
        return self._result

    def free(self) -> "LegacyConnection":
        if self._result is not None:
            self._result.free()
        self._result = None
        return self

    def query(self, query: str) -> Optional[ResultSet]:
        """
        Execute a statement and buffer its rows.

        Returns the result set for statements producing rows, None otherwise.

        Raises:
            QueryError: the driver rejected the statement
        """
        self._connect()

        if self._result is not None:
            self.free()

        cursor = self._connection.cursor()
        try:
            with self._profiler.profile_query(query):
                try:
                    cursor.execute(query)
                    if cursor.description is not None:
                        self._result = ResultSet(cursor.description, cursor.fetchall())
                except self._driver.Error as e:
                    raise QueryError.from_driver(e, query) from e
            self._affected_rows = cursor.rowcount
            self._insert_id = cursor.lastrowid
        finally:
            cursor.close()

        return self._result

    def next_record(self) -> bool:
        """Load the next row into ``record``; frees the result once exhausted."""
        self._connect()

        if self._result is None:
            raise DbError("No query active for next_record()")

        self.record = self._result.fetch_assoc()

        if self.record is None:
            self.free()
            return False

        return True

    def affected_rows(self) -> int:
        return self._affected_rows

    def num_rows(self) -> int:
        if self._result is None:
            raise DbError("No query active for num_rows()")
        return self._result.num_rows

    def f(self, name: str) -> Any:
        """Value of a column in the current record."""
        if self.record is None:
            raise DbError("No current record")
        return self.record[name]

    def metadata(self, table: str) -> List[Dict[str, Any]]:
        """Describe the columns of a table."""
        result = self.query(f"SELECT * FROM {table} WHERE FALSE")
        fields = [
            {
                "table": table,
                "name": column[0],
                "type": column[1],
                "length": column[3],
                "nullable": column[6],
            }
            for column in result.description
        ]
        self.free()
        return fields

    def last_insert_id(self) -> Any:
        return self._insert_id
