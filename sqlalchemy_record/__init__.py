from .base import (
    Gateway, CancelToken, Query, Record, Field, KeyValueTable, Scalar, ScalarKind,
    ClauseSet, ALL, COLUMN_ID, DEFAULT_ID, META_TABLE,
)
from .base.context import get_default_gateway, set_default_gateway, use_gateway
from .config import GatewayConfig, load_config
from .exceptions import (
    RecordError, QueryError, CancelledError, UnboundQueryError, NoDatabaseError,
    MappingError, UnsupportedTypeError, ShapeMismatchError,
)

__all__ = [
    "Gateway",
    "CancelToken",
    "Query",
    "Record",
    "Field",
    "KeyValueTable",
    "Scalar",
    "ScalarKind",
    "ClauseSet",
    "ALL",
    "COLUMN_ID",
    "DEFAULT_ID",
    "META_TABLE",
    "get_default_gateway",
    "set_default_gateway",
    "use_gateway",
    "GatewayConfig",
    "load_config",
    "RecordError",
    "QueryError",
    "CancelledError",
    "UnboundQueryError",
    "NoDatabaseError",
    "MappingError",
    "UnsupportedTypeError",
    "ShapeMismatchError",
]

__version__ = '0.1.0'
