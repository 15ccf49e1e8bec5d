import functools
from typing import Any, Callable, Optional, TypeVar, cast

from .models.query_profile import QueryType

# Type variables for decorator functions
F = TypeVar('F', bound=Callable[..., Any])


def profiled(query_text: str, query_type: Optional[QueryType] = None) -> Callable[[F], F]:
    """
    Decorator to profile a connection method as one query.

    The decorated method must belong to an object exposing ``get_profiler()``.

    Usage:
    ```python
    class Connection:
        @profiled("commit", QueryType.TRANSACTION)
        def commit(self):
            self._connection.commit()
            return self
    ```
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            with self.get_profiler().profile_query(query_text, query_type):
                return func(self, *args, **kwargs)

        return cast(F, wrapper)

    return decorator


def profiled_statement(query_type: Optional[QueryType] = None) -> Callable[[F], F]:
    """
    Decorator to profile a connection method whose first argument is the SQL text.

    Usage:
    ```python
    class Connection:
        @profiled_statement()
        def exec(self, statement):
            return self._cursor().execute(statement).rowcount
    ```
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self, statement, *args, **kwargs):
            with self.get_profiler().profile_query(statement, query_type):
                return func(self, statement, *args, **kwargs)

        return cast(F, wrapper)

    return decorator
