from .legacy import LegacyConnection, ResultSet
from .pdo import PdoConnection, build_dsn, parse_dsn
from .registry import ConnectionRegistry
from .statement import ProfiledStatement

__all__ = [
    "ConnectionRegistry",
    "LegacyConnection",
    "PdoConnection",
    "ProfiledStatement",
    "ResultSet",
    "build_dsn",
    "parse_dsn",
]
