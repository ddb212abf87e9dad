class RecordError(Exception):
    """Base class for every error raised by sqlalchemy_record."""


class QueryError(RecordError):
    """
    The database rejected a statement (malformed SQL, constraint violation...)
    or the statement could not be assembled.

    The driver exception, when there is one, is kept in ``orig``.
    """
    def __init__(self, message, orig=None):
        super().__init__(message)
        self.orig = orig


class CancelledError(QueryError):
    """The statement was interrupted through its cancel token."""


class UnboundQueryError(RecordError):
    """A record-mapping operation was called on a query with no record type."""


class NoDatabaseError(RecordError):
    """No gateway was given and no default gateway is registered."""


class MappingError(RecordError):
    """A Record declaration or a row does not match the mapped columns."""


class UnsupportedTypeError(RecordError, TypeError):
    """A value cannot be bound as, or does not fit in, the requested kind."""


class ShapeMismatchError(RecordError, ValueError):
    """A batch does not match its template record, or is shorter than its limit."""
