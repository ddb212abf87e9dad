from dataclasses import replace

from ..exceptions import QueryError, UnboundQueryError
from .context import resolve_gateway
from .statement import COLUMN_ID, ClauseSet


class Query:
    """
    Fluent SELECT/UPDATE/DELETE builder.

    Chain methods mutate the query and return it, terminal methods run it
    through the gateway. When the query is bound to a Record subclass
    (``from_(MyRecord)``), rows are mapped to instances of it.

        Query(gateway).from_(Widget).where("intvar > ?", 5).order_by("intvar").all()
    """
    def __init__(self, gateway=None, table=None):
        self.gateway = gateway
        self.clauses = ClauseSet(table=table)
        self.record_type = None

    def __repr__(self):
        target = self.record_type.__name__ if self.record_type else self.clauses.table
        return f"Query({target} where={self.clauses.where!r} args={self.clauses.where_args!r})"

    @property
    def database(self):
        return resolve_gateway(self.gateway)

    @property
    def table(self):
        return self._checked_clauses().table

    def db(self, gateway):
        self.gateway = gateway
        return self

    def where(self, condition, *args):
        """
        Add a WHERE condition with its ``?`` arguments.

        Called again, the conditions are combined as ``(first) AND (second)``
        and the arguments appended in call order.
        """
        self.clauses.add_where(condition, args)
        return self

    def where_id(self, id):
        return self.where(f"{COLUMN_ID}=?", id)

    def select(self, select):
        self.clauses.select = select
        return self

    def group_by(self, group_by):
        self.clauses.group_by = group_by
        return self

    def order_by(self, order_by):
        self.clauses.order_by = order_by
        return self

    def limit(self, limit):
        self.clauses.limit = limit
        return self

    def from_(self, target):
        """
        Set the table from a name, a Record subclass or a Record instance.

        Record targets also bind the query to that type for ``all()``,
        ``first()`` and ``find()``.
        """
        if isinstance(target, str):
            self.clauses.table = target
            return self

        record_type = target if isinstance(target, type) else type(target)
        if not hasattr(record_type, "from_row"):
            raise TypeError(f"Cannot query from {target!r}")

        self.record_type = record_type
        self.clauses.table = record_type.table_name()
        return self

    in_ = from_

    def _checked_clauses(self):
        if self.clauses.table is None:
            raise QueryError("No table set, call from_() first")
        return self.clauses

    def _require_record_type(self):
        if self.record_type is None:
            raise UnboundQueryError(f"{self!r} is not bound to a record type")
        return self.record_type

    # Cursors

    def all_cursor(self, token=None):
        return self.database.query_clauses(self._checked_clauses(), token=token)

    def first_cursor(self, token=None):
        return self.database.query_clauses(replace(self._checked_clauses(), limit=1), token=token)

    # Record mapping

    def all(self, token=None):
        record_type = self._require_record_type()
        return [record_type.from_row(row) for row in self.all_cursor(token=token)]

    def first(self, token=None):
        record_type = self._require_record_type()
        row = self.first_cursor(token=token).first()
        if row is None:
            return None
        return record_type.from_row(row)

    def find(self, id, token=None):
        return self.where_id(id).first(token=token)

    # Aggregates

    def scalar(self, expression, token=None):
        """Run the query selecting ``expression`` and return row 1, column 1."""
        clauses = replace(self._checked_clauses(), select=expression, limit=1)
        return self.database.query_clauses(clauses, token=token).scalar()

    def count(self, column="*"):
        return int(self.scalar(f"count({column})") or 0)

    def sum(self, column):
        return self.scalar(f"sum({column})")

    def min(self, column):
        return self.scalar(f"min({column})")

    def max(self, column):
        return self.scalar(f"max({column})")

    # Writes

    def insert(self, values):
        return self.database.insert(self.table, values)

    def update(self, values, id=None):
        """
        Update the rows matching the WHERE clause, or the row ``id`` if given.

        The identity column is never written. Returns the number of rows changed.
        """
        values = {col: value for col, value in values.items() if col != COLUMN_ID}
        if id is not None:
            return self.database.update(self.table, values, f"{COLUMN_ID}=?", [id])
        return self.database.update(self.table, values, self.clauses.where, self.clauses.where_args)

    def drop(self, id=None):
        if id is not None:
            return self.database.delete(self.table, f"{COLUMN_ID}=?", [id])
        return self.database.delete(self.table, self.clauses.where, self.clauses.where_args)

    def sql(self, sql, *args):
        return self.database.raw_query(sql, args)
