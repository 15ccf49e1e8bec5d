import logging

from prometheus_client import REGISTRY, Counter, Histogram, generate_latest

from ..config import get_settings
from ..models.query_profile import QueryProfile
from .profiler import Profiler

settings = get_settings()

logger = logging.getLogger(__name__)

# Prometheus metrics
QUERIES = Counter(
    "db_queries_total",
    "Total count of profiled queries by query type.",
    ["query_type"],
)
QUERY_PROCESSING_TIME = Histogram(
    "db_query_duration_seconds",
    "Histogram of query execution time by query type (in seconds)",
    ["query_type"],
    buckets=settings.QUERY_DURATION_BUCKETS,
)


def observe_query(handle: int, profile: QueryProfile) -> None:
    """Profiler listener recording a finished query."""
    query_type = profile.query_type.name.lower()
    QUERIES.labels(query_type=query_type).inc()
    QUERY_PROCESSING_TIME.labels(query_type=query_type).observe(profile.get_elapsed_secs())


def install_metrics(profiler: Profiler):
    """Feed every query ended on the profiler into the Prometheus metrics."""
    profiler.add_listener(observe_query)
    logger.info("Prometheus query metrics installed")
    return observe_query


def generate_metrics() -> bytes:
    """Render the default registry in the Prometheus text format."""
    return generate_latest(REGISTRY)
