from typing import Any, Optional


class DbError(Exception):
    """Base class for every error raised by the data-access layer."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class ProfilerError(DbError):
    """The profiler was used incorrectly by its caller."""


class QueryNotFoundError(ProfilerError):
    def __init__(self, handle: Any, message: Optional[str] = None):
        super().__init__(message or f"Query handle '{handle}' not found in profiler log.")
        self.handle = handle


class QueryAlreadyEndedError(ProfilerError):
    def __init__(self, handle: Any):
        super().__init__(f"Query with profiler handle '{handle}' has already ended.")
        self.handle = handle


class QueryError(DbError):
    """The database driver rejected a statement."""

    def __init__(self, message: str, query: Optional[str] = None, code: Optional[int] = None):
        super().__init__(message, code)
        self.query = query

    @classmethod
    def from_driver(cls, exc: Exception, query: str) -> "QueryError":
        """
        Build from a DB-API exception, keeping the driver's error number.

        MySQL drivers raise with ``(errno, message)`` arguments, SQLite exposes
        ``sqlite_errorcode``.
        """
        code = getattr(exc, "sqlite_errorcode", None)
        message = str(exc)
        if len(exc.args) >= 2 and isinstance(exc.args[0], int):
            code, message = exc.args[0], str(exc.args[1])
        return cls(f"{message}\n\n{query}", query=query, code=code)
