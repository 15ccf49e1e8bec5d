import time
from enum import Enum, IntFlag
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, Field, field_validator

ParamKey = Union[int, str]


def now() -> float:
    """Current wall-clock time in seconds with sub-second resolution."""
    return time.time()


class QueryType(IntFlag):
    """Categories of profiled statements, combinable as filters"""
    CONNECT = 1
    QUERY = 2
    INSERT = 4
    UPDATE = 8
    DELETE = 16
    SELECT = 32
    TRANSACTION = 64


class ProfileStatus(str, Enum):
    """Outcome of ending a query on the profiler"""
    STORED = "stored"
    IGNORED = "ignored"


def shift_params(params: Union[Mapping[ParamKey, Any], Sequence[Any]]) -> Dict[ParamKey, Any]:
    """
    Normalise bound parameters for storage on a profile.

    Sequences are read as index-keyed mappings. When key ``0`` is present the
    integer keys are renumbered from 1 in iteration order, so positional
    parameters are recorded 1-based; string keys are kept as they are.
    """
    if isinstance(params, Mapping):
        items = list(params.items())
    else:
        items = list(enumerate(params))

    if not any(key == 0 and isinstance(key, int) for key, _ in items):
        return dict(items)

    shifted: Dict[ParamKey, Any] = {}
    position = 1
    for key, value in items:
        if isinstance(key, int):
            shifted[position] = value
            position += 1
        else:
            shifted[key] = value
    return shifted


class QueryProfile(BaseModel):
    """Timing and parameters of one execution of a query"""
    query: str = Field(..., description="The literal query text")
    query_type: QueryType = Field(..., description="Category of the query")
    started_at: Optional[float] = Field(None, description="When execution started")
    ended_at: Optional[float] = Field(None, description="When execution ended, unset while running")
    bound_params: Dict[ParamKey, Any] = Field(default_factory=dict, description="Parameters bound for this execution")

    @field_validator("query_type")
    @classmethod
    def single_query_type(cls, value: QueryType) -> QueryType:
        if value not in list(QueryType):
            raise ValueError("a profile has exactly one query type")
        return value

    def model_post_init(self, __context: Any) -> None:
        if self.started_at is None:
            self.start()

    def start(self) -> None:
        self.started_at = now()

    def end(self) -> None:
        self.ended_at = now()

    def has_ended(self) -> bool:
        return self.ended_at is not None

    def bind_param(self, param: ParamKey, value: Any) -> None:
        self.bound_params[param] = value

    def bind_params(self, params: Union[Mapping[ParamKey, Any], Sequence[Any]]) -> None:
        for param, value in shift_params(params).items():
            self.bind_param(param, value)

    def get_query_params(self) -> Dict[ParamKey, Any]:
        return self.bound_params

    def get_elapsed_secs(self) -> Optional[float]:
        """Seconds between start and end, or None while the query is running."""
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at

    def clone(self) -> "QueryProfile":
        """
        Fork a fresh profile for another execution of the same query.

        Only the query text and type are carried over; the copy has no bound
        parameters, no end time and a new start time.
        """
        return QueryProfile(query=self.query, query_type=self.query_type)


class QueryProfileSummary(BaseModel):
    """Summary statistics for a group of profiled queries"""
    count: int = Field(..., description="Number of finished queries")
    unfinished_count: int = Field(..., description="Number of queries still running")
    total_elapsed_secs: float = Field(..., description="Total time of finished queries in seconds")
    avg_elapsed_secs: float = Field(..., description="Average time of finished queries in seconds")
    max_elapsed_secs: float = Field(..., description="Slowest finished query in seconds")
    query_types: Dict[str, int] = Field(..., description="Distribution of query types")
