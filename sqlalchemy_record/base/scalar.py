from dataclasses import dataclass
from enum import Enum
import math
import struct

from ..exceptions import QueryError, UnsupportedTypeError

INT32_MIN = -2 ** 31
INT32_MAX = 2 ** 31 - 1
INT64_MIN = -2 ** 63
INT64_MAX = 2 ** 63 - 1


class ScalarKind(Enum):
    INTEGER = "integer"
    BIGINT = "bigint"
    TEXT = "text"
    BOOLEAN = "boolean"
    REAL = "real"
    DOUBLE = "double"
    NULL = "null"


def _check_int(value, low, high, kind):
    if not low <= value <= high:
        raise UnsupportedTypeError(f"{value} does not fit in a {kind.value} column")
    return int(value)


def _to_single_precision(value):
    if not math.isfinite(value):
        return float(value)
    return struct.unpack("f", struct.pack("f", value))[0]


# Driver conversion for every kind, SQLite stores booleans as 1/0
_TO_DRIVER = {
    ScalarKind.INTEGER: lambda v: _check_int(v, INT32_MIN, INT32_MAX, ScalarKind.INTEGER),
    ScalarKind.BIGINT: lambda v: _check_int(v, INT64_MIN, INT64_MAX, ScalarKind.BIGINT),
    ScalarKind.TEXT: str,
    ScalarKind.BOOLEAN: lambda v: 1 if v else 0,
    ScalarKind.REAL: lambda v: _to_single_precision(float(v)),
    ScalarKind.DOUBLE: float,
    ScalarKind.NULL: lambda v: None,
}

# Python values accepted when a kind is declared up front (bool is an int subclass)
_ACCEPTED_TYPES = {
    ScalarKind.INTEGER: (int,),
    ScalarKind.BIGINT: (int,),
    ScalarKind.TEXT: (str,),
    ScalarKind.BOOLEAN: (bool, int),
    ScalarKind.REAL: (float, int),
    ScalarKind.DOUBLE: (float, int),
    ScalarKind.NULL: (type(None),),
}

# Row values coming back from SQLite, converted to the declared kind
_FROM_DRIVER = {
    ScalarKind.INTEGER: int,
    ScalarKind.BIGINT: int,
    ScalarKind.TEXT: str,
    ScalarKind.BOOLEAN: bool,
    ScalarKind.REAL: float,
    ScalarKind.DOUBLE: float,
    ScalarKind.NULL: lambda v: None,
}

for _table in (_TO_DRIVER, _ACCEPTED_TYPES, _FROM_DRIVER):
    _missing = set(ScalarKind) - set(_table)
    if _missing:
        raise RuntimeError(f"Scalar kinds without a handler: {sorted(k.value for k in _missing)}")


@dataclass(frozen=True)
class Scalar:
    """
    A value that can be bound to a ``?`` placeholder, tagged with its kind.
    """
    kind: ScalarKind
    value: object

    @classmethod
    def of(cls, value):
        """
        Classify a plain Python value.

        ``bool`` is checked before ``int``; integers outside the 32-bit range
        are BIGINT. Anything that is not one of the supported kinds raises
        ``UnsupportedTypeError`` instead of being skipped.
        """
        if isinstance(value, Scalar):
            return value
        if value is None:
            return cls(ScalarKind.NULL, None)
        if isinstance(value, bool):
            return cls(ScalarKind.BOOLEAN, value)
        if isinstance(value, int):
            if INT32_MIN <= value <= INT32_MAX:
                return cls(ScalarKind.INTEGER, value)
            return cls(ScalarKind.BIGINT, value)
        if isinstance(value, str):
            return cls(ScalarKind.TEXT, value)
        if isinstance(value, float):
            return cls(ScalarKind.DOUBLE, value)

        raise UnsupportedTypeError(f"Cannot bind value of type {type(value).__name__}: {value!r}")

    @classmethod
    def of_kind(cls, kind, value):
        if value is None:
            return cls(ScalarKind.NULL, None)
        if isinstance(value, Scalar):
            value = value.value
        if not isinstance(value, _ACCEPTED_TYPES[kind]):
            raise UnsupportedTypeError(
                f"Expected a {kind.value} value, got {type(value).__name__}: {value!r}"
            )
        return cls(kind, value)

    @classmethod
    def real(cls, value):
        return cls.of_kind(ScalarKind.REAL, value)

    @classmethod
    def bigint(cls, value):
        return cls.of_kind(ScalarKind.BIGINT, value)

    @property
    def is_text(self):
        return self.kind is ScalarKind.TEXT

    def to_driver(self):
        return _TO_DRIVER[self.kind](self.value)

    def to_literal(self):
        """
        Render the value as an SQL literal, for the kinds where that is safe.

        Returns ``None`` for text and non-finite floats: those must be bound.
        """
        if self.kind is ScalarKind.TEXT:
            return None
        if self.kind is ScalarKind.NULL:
            return "NULL"
        value = self.to_driver()
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return repr(value)


def from_driver(kind, value):
    if value is None:
        return None
    return _FROM_DRIVER[kind](value)


class BoundParameters:
    """
    Positional parameters of one statement, 1-based like SQL placeholders.
    """
    def __init__(self):
        self._values = {}

    def set(self, position, scalar):
        if position < 1:
            raise QueryError(f"Invalid placeholder position {position}")
        self._values[position] = scalar

    def __len__(self):
        return len(self._values)

    def __getitem__(self, position):
        return self._values[position]

    def as_tuple(self):
        expected = range(1, len(self._values) + 1)
        if sorted(self._values) != list(expected):
            raise QueryError(f"Placeholder positions are not contiguous: {sorted(self._values)}")

        return tuple(self._values[pos].to_driver() for pos in expected)


def bind(params, values, start=1):
    """
    Bind ``values`` at consecutive positions from ``start``.

    Returns the next free position.
    """
    position = start
    for value in values or ():
        params.set(position, Scalar.of(value))
        position += 1
    return position
