from .gateway import Gateway, CancelToken, META_TABLE
from .query import Query
from .record import Record, Field, DEFAULT_ID
from .key_value import KeyValueTable
from .scalar import Scalar, ScalarKind
from .statement import ALL, COLUMN_ID, ClauseSet

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
]
