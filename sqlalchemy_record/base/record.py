from sqlalchemy import BigInteger, Boolean, Column, Double, Float, Integer, MetaData, String, Table

from ..exceptions import MappingError, ShapeMismatchError
from ..helpers.utils import chunk_generator
from .context import resolve_gateway
from .query import Query
from .scalar import Scalar, ScalarKind, from_driver
from .statement import COLUMN_ID

DEFAULT_ID = -1

SQL_TYPES = {
    ScalarKind.INTEGER: Integer,
    ScalarKind.BIGINT: BigInteger,
    ScalarKind.TEXT: String,
    ScalarKind.BOOLEAN: Boolean,
    ScalarKind.REAL: Float,
    ScalarKind.DOUBLE: Double,
}


class Field:
    """
    A mapped column on a Record subclass.

        class Widget(Record):
            stringvar = Field(ScalarKind.TEXT)
            intvar = Field(ScalarKind.INTEGER, default=0)

    The column name defaults to the lower-cased attribute name. Values are
    checked against ``kind`` when assigned and stored the way the column
    will read them back (REAL rounded to single precision, BOOLEAN as bool).
    """
    def __init__(self, kind, column=None, default=None, length=None):
        if kind not in SQL_TYPES:
            raise MappingError(f"Cannot map a column of kind {kind.value}")
        self.kind = kind
        self.column = column
        self.default = default
        self.length = length
        self.name = None

    def __set_name__(self, owner, name):
        self.name = name
        if self.column is None:
            self.column = name.lower()

    def __get__(self, instance, owner):
        if instance is None:
            return self
        return instance.__dict__.get(self.name, self.default)

    def __set__(self, instance, value):
        instance.__dict__[self.name] = self.load(Scalar.of_kind(self.kind, value).to_driver())

    def __repr__(self):
        return f"Field({self.name} -> {self.column}: {self.kind.value})"

    def load(self, value):
        return from_driver(self.kind, value)

    def sql_column(self):
        sql_type = SQL_TYPES[self.kind]
        if self.kind is ScalarKind.TEXT and self.length:
            sql_type = String(self.length)
        return Column(self.column, sql_type)


class Schema:
    def __init__(self, fields):
        self.fields = list(fields)
        self.by_column = {}
        for field in self.fields:
            if field.column == COLUMN_ID:
                raise MappingError(f"'{COLUMN_ID}' is the identity column and cannot be declared as a field")
            if field.column in self.by_column:
                raise MappingError(
                    f"Column '{field.column}' is mapped by both "
                    f"'{self.by_column[field.column].name}' and '{field.name}'"
                )
            self.by_column[field.column] = field
        self.by_name = {field.name: field for field in self.fields}

    @property
    def columns(self):
        return [field.column for field in self.fields]


class Record:
    """
    One row of a table, identified by its ``id``.

    Subclasses declare their columns with ``Field``; the table is named after
    the lower-cased class name unless ``__tablename__`` is set. A record that
    was never saved has ``id == DEFAULT_ID``.

    The mapping hooks ``insert_values``, ``set_values`` and ``fast_values``
    can be overridden for columns that need custom handling.
    """
    __tablename__ = None
    __schema__ = Schema([])
    _table_name = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        fields = {}
        for klass in reversed(cls.__mro__):
            for name, value in vars(klass).items():
                if isinstance(value, Field):
                    fields[name] = value

        cls.__schema__ = Schema(fields.values())
        cls._table_name = cls.__dict__.get("__tablename__") or cls.__name__.lower()

    def __init__(self, **values):
        self.id = DEFAULT_ID
        for name, value in values.items():
            if name not in self.__schema__.by_name:
                raise TypeError(f"{type(self).__name__} has no field '{name}'")
            setattr(self, name, value)

    def __repr__(self):
        return f"{type(self).__name__}(id={self.id})"

    def __eq__(self, other):
        if not isinstance(other, Record):
            return NotImplemented
        if self.is_saved() and other.is_saved():
            return type(self) is type(other) and self.id == other.id
        return self is other

    __hash__ = None

    @classmethod
    def table_name(cls):
        if cls._table_name is None:
            raise MappingError(f"{cls.__name__} is not mapped to a table, subclass it")
        return cls._table_name

    @classmethod
    def columns(cls):
        return cls.__schema__.columns

    @classmethod
    def query(cls, gateway=None):
        return Query(gateway).from_(cls)

    def is_saved(self):
        return self.id > DEFAULT_ID

    # Mapping

    def get_values(self):
        """Column to value mapping of the record, identity included."""
        values = {COLUMN_ID: self.id}
        self.insert_values(values)
        return values

    def insert_values(self, values):
        for field in self.__schema__.fields:
            values[field.column] = field.__get__(self, type(self))
        return values

    def bound_values(self):
        """``get_values()`` with every field value tagged with its declared kind."""
        values = self.get_values()
        for column, field in self.__schema__.by_column.items():
            if column in values:
                values[column] = Scalar.of_kind(field.kind, values[column])
        return values

    def sorted_columns(self):
        return sorted(self.insert_values({}))

    def fast_values(self):
        """Field values ordered by column name and tagged with their kind, as used by batch inserts."""
        values = self.insert_values({})
        by_column = self.__schema__.by_column
        return tuple(
            Scalar.of_kind(by_column[col].kind, values[col]) if col in by_column else values[col]
            for col in sorted(values)
        )

    @classmethod
    def from_row(cls, row):
        record = cls()
        record.set_from_row(row)
        return record

    def set_from_row(self, row):
        mapping = getattr(row, "_mapping", row)
        if COLUMN_ID not in mapping:
            raise MappingError(f"Row for {type(self).__name__} has no '{COLUMN_ID}' column")
        self.id = mapping[COLUMN_ID]
        self.set_values(mapping)

    def set_values(self, mapping):
        for field in self.__schema__.fields:
            if field.column not in mapping:
                raise MappingError(f"Row for {type(self).__name__} has no '{field.column}' column")
            setattr(self, field.name, field.load(mapping[field.column]))

    # Persistence

    def save(self, gateway=None):
        """INSERT the record if it was never saved, UPDATE its row otherwise."""
        query = Query(gateway).from_(self)
        if self.is_saved():
            query.update(self.bound_values(), id=self.id)
        else:
            self.id = query.insert(self.bound_values())
        return self

    def drop(self, gateway=None):
        """
        Delete the record's row. The record becomes unsaved again.

        Returns the number of rows deleted.
        """
        if not self.is_saved():
            return 0
        deleted = Query(gateway).from_(self).drop(self.id)
        self.id = DEFAULT_ID
        return deleted

    @classmethod
    def insert_many(cls, records, gateway=None, chunk_size=None, inline_literals=False):
        """
        Insert ``records`` with multi-row INSERTs, ``chunk_size`` rows per statement.

        Ids are not set on the records. Returns the number of rows inserted.
        """
        gateway = resolve_gateway(gateway)
        records = list(records)
        for record in records:
            if not isinstance(record, cls):
                raise ShapeMismatchError(f"{record!r} is not a {cls.__name__}")

        if chunk_size is None:
            return gateway.batch_insert(records, inline_literals=inline_literals)

        return sum(
            gateway.batch_insert(chunk, inline_literals=inline_literals)
            for chunk in chunk_generator(records, chunk_size)
        )

    # Schema

    @classmethod
    def table(cls):
        return Table(
            cls.table_name(),
            MetaData(),
            Column(COLUMN_ID, Integer, primary_key=True, autoincrement=True),
            *(field.sql_column() for field in cls.__schema__.fields),
            sqlite_autoincrement=True,
        )

    @classmethod
    def create_table(cls, gateway=None, drop_existing=True):
        resolve_gateway(gateway).create_table(cls.table(), drop_existing=drop_existing)

    @classmethod
    def drop_table(cls, gateway=None):
        resolve_gateway(gateway).drop_table(cls.table())
