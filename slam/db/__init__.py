"""
Data-access layer for the Slam applications.

This package wraps DB-API connections behind two adapters, a procedural
wrapper and a prepared-statement connection, and provides a query profiler
recording the timing and parameters of executed statements.
"""

from .__version__ import __version__
from .config import DbSettings, get_settings
from .exceptions import DbError, ProfilerError, QueryAlreadyEndedError, QueryError, QueryNotFoundError
from .models.query_profile import ProfileStatus, QueryProfile, QueryProfileSummary, QueryType
from .services.profiler import Profiler
from .adapters import ConnectionRegistry, LegacyConnection, PdoConnection, ProfiledStatement

# Export public API
__all__ = [
    "__version__",
    "DbSettings",
    "get_settings",
    "DbError",
    "ProfilerError",
    "QueryAlreadyEndedError",
    "QueryError",
    "QueryNotFoundError",
    "ProfileStatus",
    "QueryProfile",
    "QueryProfileSummary",
    "QueryType",
    "Profiler",
    "ConnectionRegistry",
    "LegacyConnection",
    "PdoConnection",
    "ProfiledStatement",
]
