from dataclasses import dataclass, field
from typing import Any, List, Optional

from .scalar import Scalar

COLUMN_ID = "id"
ALL = -1


@dataclass
class ClauseSet:
    """
    The parts of a SELECT before rendering.

    Clauses left to ``None`` are left out of the SQL entirely, a blank string
    is rendered as given.
    """
    table: Optional[str] = None
    select: Optional[str] = None
    where: Optional[str] = None
    where_args: List[Any] = field(default_factory=list)
    group_by: Optional[str] = None
    order_by: Optional[str] = None
    limit: int = ALL

    def add_where(self, condition, args=()):
        if self.where is None:
            self.where = condition
            self.where_args = list(args)
        else:
            self.where = f"({self.where}) AND ({condition})"
            self.where_args = self.where_args + list(args)


def render_select(clauses: ClauseSet) -> str:
    sql = f"SELECT {'*' if clauses.select is None else clauses.select} FROM {clauses.table}"
    if clauses.where is not None:
        sql += f" WHERE {clauses.where}"
    if clauses.group_by is not None:
        sql += f" GROUP BY {clauses.group_by}"
    if clauses.order_by is not None:
        sql += f" ORDER BY {clauses.order_by}"
    if clauses.limit != ALL:
        sql += f" LIMIT {int(clauses.limit)}"
    return sql


def render_update(table, columns, where=None) -> str:
    assignments = ", ".join(f"{col}=?" for col in columns)
    sql = f"UPDATE {table} SET {assignments}"
    if where is not None:
        sql += f" WHERE {where}"
    return sql


def render_insert(table, columns) -> str:
    columns = [col for col in columns if col != COLUMN_ID]
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"


def render_delete(table, where=None) -> str:
    sql = f"DELETE FROM {table}"
    if where is not None:
        sql += f" WHERE {where}"
    return sql


def render_batch_insert(table, columns, rows, inline_literals=False):
    """
    Render one multi-row INSERT.

    ``rows`` are sequences of values in ``columns`` order. By default every
    value becomes a placeholder. With ``inline_literals`` numbers, booleans
    (``1``/``0``) and NULL are written into the SQL text and only strings are
    bound, in row-major order.

    Returns ``(sql, args)``.
    """
    groups = []
    args = []
    for row in rows:
        parts = []
        for value in row:
            scalar = Scalar.of(value)
            literal = scalar.to_literal() if inline_literals else None
            if literal is None:
                parts.append("?")
                args.append(scalar)
            else:
                parts.append(literal)
        groups.append(f"({','.join(parts)})")

    sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES {', '.join(groups)}"
    return sql, args
