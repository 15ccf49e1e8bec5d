"""
Query profiler service for tracking the statements run on one connection.
"""
import itertools
import logging
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from ..exceptions import ProfilerError, QueryAlreadyEndedError, QueryNotFoundError
from ..models.query_profile import ProfileStatus, QueryProfile, QueryProfileSummary, QueryType

# Create logger
logger = logging.getLogger(__name__)

QueryListener = Callable[[int, QueryProfile], None]

# Statement prefixes recognised when no query type is given
_QUERY_TYPE_PREFIXES: Dict[str, QueryType] = {
    "insert": QueryType.INSERT,
    "update": QueryType.UPDATE,
    "delete": QueryType.DELETE,
    "select": QueryType.SELECT,
}


def guess_query_type(query: str) -> QueryType:
    """Infer the category of a statement from its first six characters."""
    return _QUERY_TYPE_PREFIXES.get(query.lstrip()[:6].lower(), QueryType.QUERY)


class Profiler:
    """
    Ledger of query profiles for a single connection.

    Each started query gets an integer handle. Handles grow monotonically in
    insertion order until ``clear()`` is called. A disabled profiler records
    nothing: ``query_start`` returns ``None`` and ``query_end`` reports
    ``ProfileStatus.IGNORED``.

    The profiler is not thread-safe; share an instance between threads only
    behind a lock.

    Usage:
        profiler = Profiler(enabled=True)

        handle = profiler.query_start("SELECT * FROM user")
        cursor.execute("SELECT * FROM user")
        profiler.query_end(handle)

        # Or, ending the query even if the statement fails
        with profiler.profile_query("DELETE FROM user"):
            cursor.execute("DELETE FROM user")

        profiler.get_total_elapsed_secs(QueryType.SELECT | QueryType.DELETE)
    """

    def __init__(
        self,
        enabled: bool = False,
        slow_query_threshold_secs: Optional[float] = None,
        max_query_length: int = 1000,
    ):
        self.slow_query_threshold_secs = slow_query_threshold_secs
        self.max_query_length = max_query_length
        self._enabled = bool(enabled)
        self._query_profiles: Dict[int, QueryProfile] = {}
        self._handles = itertools.count()
        self._listeners: List[QueryListener] = []

    def get_enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> "Profiler":
        self._enabled = bool(enabled)
        logger.info(f"Query profiling {'enabled' if self._enabled else 'disabled'}")
        return self

    def clear(self) -> "Profiler":
        """Drop every recorded profile; handle numbering starts over."""
        self._query_profiles = {}
        self._handles = itertools.count()
        logger.info("Cleared query profiles")
        return self

    def add_listener(self, listener: QueryListener) -> None:
        """Register a callback invoked with (handle, profile) after each stored query end."""
        self._listeners.append(listener)

    def remove_listener(self, listener: QueryListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _append(self, profile: QueryProfile) -> int:
        handle = next(self._handles)
        self._query_profiles[handle] = profile
        return handle

    def query_clone(self, profile: QueryProfile) -> int:
        """Add a fresh copy of an existing profile and return its handle."""
        return self._append(profile.clone())

    def query_start(self, query_text: str, query_type: Optional[QueryType] = None) -> Optional[int]:
        """
        Start profiling a query.

        Args:
            query_text: The statement about to be executed
            query_type: Category of the statement, guessed from the text if omitted

        Raises:
            ProfilerError: query_type is not exactly one category

        Returns:
            The handle to pass to ``query_end``, or None when profiling is disabled
        """
        if not self._enabled:
            return None

        if query_type is None:
            query_type = guess_query_type(query_text)
        elif query_type not in list(QueryType):
            raise ProfilerError(f"A profiled query needs exactly one query type, got {query_type!r}.")

        return self._append(QueryProfile(query=query_text, query_type=query_type))

    def query_end(self, handle: Optional[int]) -> ProfileStatus:
        """
        Stop the clock for a started query.

        Raises:
            QueryNotFoundError: the handle is not in the log
            QueryAlreadyEndedError: the query was already ended
        """
        if not self._enabled:
            return ProfileStatus.IGNORED

        if handle not in self._query_profiles:
            raise QueryNotFoundError(handle, f"Profiler has no query with handle '{handle}'.")

        profile = self._query_profiles[handle]

        if profile.has_ended():
            raise QueryAlreadyEndedError(handle)

        profile.end()

        elapsed = profile.get_elapsed_secs()
        if self.slow_query_threshold_secs is not None and elapsed >= self.slow_query_threshold_secs:
            logger.debug(
                f"Slow {profile.query_type.name} query: {elapsed * 1000:.2f}ms - "
                f"{profile.query[:self.max_query_length]}"
            )

        for listener in list(self._listeners):
            listener(handle, profile)

        return ProfileStatus.STORED

    @contextmanager
    def profile_query(self, query_text: str, query_type: Optional[QueryType] = None) -> Iterator[Optional[int]]:
        """
        Context manager profiling the enclosed statement.

        The query is ended when the block exits, whether or not it raised.
        Yields the handle (None when profiling is disabled).
        """
        handle = self.query_start(query_text, query_type)
        try:
            yield handle
        finally:
            self.query_end(handle)

    def get_query_profile(self, handle: int) -> QueryProfile:
        if handle not in self._query_profiles:
            raise QueryNotFoundError(handle)

        return self._query_profiles[handle]

    @staticmethod
    def _matches(profile: QueryProfile, query_type: Optional[QueryType]) -> bool:
        if query_type is None:
            return True
        return bool(profile.query_type & query_type)

    def get_query_profiles(
        self,
        query_type: Optional[QueryType] = None,
        show_unfinished: bool = False,
    ) -> Dict[int, QueryProfile]:
        """
        Get profiles by handle, optionally filtered by query type.

        Args:
            query_type: Query types to keep, combined with ``|``
            show_unfinished: Whether to include queries that have not ended
        """
        return {
            handle: profile
            for handle, profile in self._query_profiles.items()
            if (profile.has_ended() or show_unfinished) and self._matches(profile, query_type)
        }

    def get_total_elapsed_secs(self, query_type: Optional[QueryType] = None) -> float:
        """Total seconds spent in finished queries of the given types."""
        elapsed_secs = 0.0
        for profile in self._query_profiles.values():
            if profile.has_ended() and self._matches(profile, query_type):
                elapsed_secs += profile.get_elapsed_secs()
        return elapsed_secs

    def get_total_num_queries(self, query_type: Optional[QueryType] = None) -> int:
        """
        Count profiled queries.

        Without a filter every logged query is counted, finished or not. With a
        filter only finished queries of the given types are counted.
        """
        if query_type is None:
            return len(self._query_profiles)

        return sum(
            1 for profile in self._query_profiles.values()
            if profile.has_ended() and self._matches(profile, query_type)
        )

    def get_last_query_profile(self) -> Optional[QueryProfile]:
        if not self._query_profiles:
            return None
        return next(reversed(self._query_profiles.values()))

    def get_summary(self, query_type: Optional[QueryType] = None) -> QueryProfileSummary:
        """Aggregate statistics over the profiles matching the given types."""
        matching = [p for p in self._query_profiles.values() if self._matches(p, query_type)]
        finished = [p for p in matching if p.has_ended()]
        elapsed = [p.get_elapsed_secs() for p in finished]

        query_types: Dict[str, int] = {}
        for profile in finished:
            name = profile.query_type.name
            query_types[name] = query_types.get(name, 0) + 1

        total = sum(elapsed)
        return QueryProfileSummary(
            count=len(finished),
            unfinished_count=len(matching) - len(finished),
            total_elapsed_secs=total,
            avg_elapsed_secs=total / len(finished) if finished else 0.0,
            max_elapsed_secs=max(elapsed, default=0.0),
            query_types=query_types,
        )
