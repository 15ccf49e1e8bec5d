from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from ..services.profiler import Profiler

if TYPE_CHECKING:
    from .pdo import PdoConnection

BoundParams = Union[Mapping[Union[int, str], Any], Sequence[Any]]


class ProfiledStatement:
    """
    Prepared statement that records one profile per execution.

    The profiler handle is taken when the statement is prepared. A statement
    prepared while profiling was disabled is never profiled. When an already
    profiled statement runs again, its finished profile is cloned so that each
    execution gets its own entry in the profiler log.
    """

    def __init__(self, adapter: "PdoConnection", query_string: str):
        self.query_string = query_string
        self._adapter = adapter
        self._cursor = adapter.get_connection().cursor()
        self._query_id: Optional[int] = adapter.get_profiler().query_start(query_string)

    @property
    def query_id(self) -> Optional[int]:
        """Profiler handle of the current or latest execution."""
        return self._query_id

    def _profiler(self) -> Profiler:
        return self._adapter.get_profiler()

    def _execute(self, bound_input_params: Optional[BoundParams]) -> None:
        with self._adapter.driver_errors(self.query_string):
            if bound_input_params:
                self._cursor.execute(self.query_string, bound_input_params)
            else:
                self._cursor.execute(self.query_string)

    def execute(self, bound_input_params: Optional[BoundParams] = None) -> bool:
        """
        Run the statement with the given parameters.

        Returns True on success; driver failures raise ``QueryError``.
        """
        if self._query_id is None:
            self._execute(bound_input_params)
            return True

        profiler = self._profiler()
        profile = profiler.get_query_profile(self._query_id)

        if profile.has_ended():
            self._query_id = profiler.query_clone(profile)
            profile = profiler.get_query_profile(self._query_id)

        if bound_input_params:
            profile.bind_params(bound_input_params)

        profile.start()

        try:
            self._execute(bound_input_params)
        finally:
            profiler.query_end(self._query_id)

        return True

    def _columns(self) -> List[str]:
        return [column[0] for column in self._cursor.description or ()]

    def fetch(self) -> Optional[Dict[str, Any]]:
        """Next row as a column-name mapping, None when exhausted."""
        row = self._cursor.fetchone()
        if row is None:
            return None
        return dict(zip(self._columns(), row))

    def fetch_all(self) -> List[Dict[str, Any]]:
        columns = self._columns()
        return [dict(zip(columns, row)) for row in self._cursor.fetchall()]

    def fetch_column(self, index: int = 0) -> Any:
        row = self._cursor.fetchone()
        if row is None:
            return None
        return row[index]

    def row_count(self) -> int:
        """Rows affected by the last INSERT, UPDATE or DELETE."""
        return self._cursor.rowcount

    def close(self) -> None:
        self._cursor.close()

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        row = self.fetch()
        while row is not None:
            yield row
            row = self.fetch()

    def __repr__(self) -> str:
        return f"<ProfiledStatement query_id={self._query_id} {self.query_string!r}>"
