from .query_profile import (
    ProfileStatus,
    QueryProfile,
    QueryProfileSummary,
    QueryType,
    shift_params,
)

__all__ = [
    "ProfileStatus",
    "QueryProfile",
    "QueryProfileSummary",
    "QueryType",
    "shift_params",
]
