from contextlib import contextmanager
from pathlib import Path
import sqlite3
import threading

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..exceptions import CancelledError, QueryError, ShapeMismatchError
from ..logger import logger
from .context import use_gateway
from .key_value import KeyValueTable
from .scalar import BoundParameters, bind
from .statement import (
    ALL, COLUMN_ID, ClauseSet,
    render_batch_insert, render_delete, render_insert, render_select, render_update,
)

META_TABLE = "meta_table"
VERSION_KEY = "db_version"


class CancelToken:
    """
    Cancellation handle for one gateway call.

    Obtain it with ``Gateway.statement()`` and pass it as ``token=`` to the
    call; ``cancel()`` can then be used from another thread.
    """
    def __init__(self, gateway):
        self._gateway = gateway
        self._running = False
        self._cancelled = False

    @property
    def running(self):
        return self._running

    @property
    def cancelled(self):
        return self._cancelled

    def cancel(self):
        """
        Interrupt the call this token is attached to.

        Returns ``False`` when the call is not currently executing.
        """
        if not self._running:
            return False
        self._cancelled = True
        self._gateway._interrupt()
        return True


class Gateway:
    """
    Owns the single SQLite connection and runs every statement of the package.

    ``path=None`` opens an in-memory database. ``version`` is the schema
    version recorded in the meta table by ``upgrade()``.
    """
    def __init__(self, path=None, version=0, echo=False, url=None):
        self.path = path
        self.version = version
        self.echo = echo
        self._url = url

        self._engine = None
        self._connection = None
        self._driver_connection = None
        self._autocommit = True

        self._in_flight = set()
        self._in_flight_lock = threading.Lock()
        self._batch_lock = threading.RLock()

    @classmethod
    def from_config(cls, config):
        return cls(path=config.path, version=config.version, echo=config.echo)

    def __repr__(self):
        location = self.path or ":memory:"
        return f"Gateway({location}, version={self.version})"

    def __enter__(self):
        if self.closed:
            self.open()
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _database_url(self):
        if self._url is not None:
            return self._url
        if self.path is None:
            return URL.create("sqlite")
        return URL.create("sqlite", database=str(Path(self.path).resolve()))

    def open(self):
        """
        Open the connection, closing the current one first if any.

        Runs ``upgrade()`` once connected. Returns ``self``.
        """
        self.close()

        logger.debug(f"Opening database {self.path or ':memory:'}")
        self._engine = create_engine(
            self._database_url(),
            echo=self.echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        self._connection = self._engine.connect()
        self._driver_connection = self._connection.connection.driver_connection
        self._autocommit = True

        self.upgrade()
        return self

    def close(self):
        if self._connection is None:
            return

        logger.debug(f"Closing database {self.path or ':memory:'}")
        try:
            self._connection.close()
        finally:
            self._engine.dispose()
            self._connection = None
            self._driver_connection = None
            self._engine = None

    @property
    def closed(self):
        return self._connection is None

    @property
    def connection(self):
        if self._connection is None:
            raise QueryError("The database is not open")
        return self._connection

    @contextmanager
    def as_default(self):
        """Make this gateway the default one inside the ``with`` block."""
        with use_gateway(self) as gateway:
            yield gateway

    # Transactions

    def disable_commit(self):
        """Stop committing after every write, e.g. around a bulk import."""
        self._autocommit = False

    def commit(self):
        """Commit pending changes and re-enable autocommit."""
        logger.debug("Committing ...")
        self.connection.commit()
        self._autocommit = True

    def rollback(self):
        logger.debug("Rolling back ...")
        self.connection.rollback()
        self._autocommit = True

    def _after_write(self):
        if self._autocommit:
            self._connection.commit()

    # Cancellation

    def statement(self):
        return CancelToken(self)

    def cancel(self):
        """
        Cancel every statement currently executing.

        Returns whether there was one to cancel.
        """
        with self._in_flight_lock:
            tokens = list(self._in_flight)

        cancelled = False
        for token in tokens:
            cancelled = token.cancel() or cancelled
        return cancelled

    def _interrupt(self):
        driver_connection = self._driver_connection
        if driver_connection is not None:
            logger.debug("Interrupting running statement")
            driver_connection.interrupt()

    @contextmanager
    def _track(self, token):
        with self._in_flight_lock:
            self._in_flight.add(token)
            token._running = True
        try:
            yield token
        finally:
            with self._in_flight_lock:
                token._running = False
                self._in_flight.discard(token)

    def _execute(self, sql, params=None, token=None):
        connection = self.connection
        token = token or CancelToken(self)
        args = params.as_tuple() if params is not None and len(params) else None

        logger.debug(f"Executing: {sql} {args if args else ''}")
        with self._track(token):
            try:
                result = connection.exec_driver_sql(sql, args)
                if result.returns_rows:
                    # rows are fetched inside the tracked call
                    result = result.freeze()()
                return result
            except SQLAlchemyError as exc:
                orig = getattr(exc, "orig", None)
                if token.cancelled:
                    raise CancelledError(f"Statement cancelled: {sql}", orig=orig) from exc
                raise QueryError(f"{orig or exc} [{sql}]", orig=orig) from exc

    # Statements

    def query(self, table, select=None, where=None, where_args=None, group_by=None,
              order_by=None, limit=ALL, token=None):
        """
        Run a SELECT and return its rows as a buffered ``Result``.

        ``None`` clauses are left out of the SQL, blank strings are not.
        ``where_args`` fill the WHERE placeholders, from position 1.
        """
        clauses = ClauseSet(
            table=table, select=select, where=where, where_args=list(where_args or []),
            group_by=group_by, order_by=order_by, limit=limit,
        )
        return self.query_clauses(clauses, token=token)

    def query_clauses(self, clauses, token=None):
        if clauses.table is None:
            raise QueryError("No table to query from")
        if clauses.where is None and clauses.where_args:
            raise QueryError("WHERE arguments given without a WHERE clause")

        params = BoundParameters()
        bind(params, clauses.where_args, 1)
        return self._execute(render_select(clauses), params, token)

    def update(self, table, values, where=None, where_args=None, token=None):
        """
        Run an UPDATE and return the number of rows changed.

        ``values`` are bound first (positions 1..N in their key order), then
        ``where_args`` (N+1 onward).
        """
        if not values:
            raise QueryError(f"Nothing to update in {table}")
        if where is None and where_args:
            raise QueryError("WHERE arguments given without a WHERE clause")

        columns = list(values)
        params = BoundParameters()
        bind(params, where_args, len(columns) + 1)
        bind(params, [values[col] for col in columns], 1)

        result = self._execute(render_update(table, columns, where), params, token)
        self._after_write()
        return result.rowcount

    def insert(self, table, values, token=None):
        """
        Insert one row and return its generated id.

        The identity column is never inserted; SQLite assigns it.
        """
        values = {col: value for col, value in values.items() if col != COLUMN_ID}
        columns = list(values)

        params = BoundParameters()
        bind(params, [values[col] for col in columns], 1)

        result = self._execute(render_insert(table, columns), params, token)
        self._after_write()
        return result.lastrowid

    def batch_insert(self, records, limit=None, inline_literals=False, token=None):
        """
        Insert the first ``limit`` records (all by default) with one statement.

        The first record is the template: its sorted columns set the column
        order, and every other record must be of the same type. Generated ids
        are not set on the records. Returns the number of rows inserted.
        """
        with self._batch_lock:
            records = list(records)
            if limit is None:
                limit = len(records)
            elif limit < 0:
                raise ValueError(f"Invalid batch limit: {limit}")
            elif limit > len(records):
                raise ShapeMismatchError(f"Batch limit {limit} exceeds the {len(records)} records given")

            if limit == 0:
                return 0

            template = records[0]
            columns = template.sorted_columns()
            rows = []
            for record in records[:limit]:
                if type(record) is not type(template):
                    raise ShapeMismatchError(
                        f"Cannot batch {type(record).__name__} with {type(template).__name__} records"
                    )
                row = record.fast_values()
                if len(row) != len(columns):
                    raise ShapeMismatchError(
                        f"{record!r} has {len(row)} values, the batch has {len(columns)} columns"
                    )
                rows.append(row)

            sql, args = render_batch_insert(template.table_name(), columns, rows, inline_literals)
            params = BoundParameters()
            bind(params, args, 1)

            result = self._execute(sql, params, token)
            self._after_write()
            return result.rowcount

    def delete(self, table, where=None, where_args=None, token=None):
        if where is None and where_args:
            raise QueryError("WHERE arguments given without a WHERE clause")

        params = BoundParameters()
        bind(params, where_args, 1)

        result = self._execute(render_delete(table, where), params, token)
        self._after_write()
        return result.rowcount

    def raw_query(self, sql, args=(), token=None):
        params = BoundParameters()
        bind(params, args, 1)
        return self._execute(sql, params, token)

    def run(self, sql, token=None):
        """Run one statement that returns nothing (DDL, INSERT...)."""
        self._execute(sql, token=token)
        self._after_write()

    def run_script(self, sql):
        """Run several ``;`` separated statements. Pending changes are committed first."""
        driver_connection = self._driver_connection
        if driver_connection is None:
            raise QueryError("The database is not open")

        self.connection.commit()
        logger.debug(f"Executing script: {sql}")
        try:
            driver_connection.executescript(sql)
        except sqlite3.Error as exc:
            raise QueryError(f"{exc} [{sql}]", orig=exc) from exc

    def create_table(self, table, drop_existing=False):
        """Create a SQLAlchemy ``Table``, dropping it first if asked to."""
        try:
            if drop_existing:
                table.drop(self.connection, checkfirst=True)
            table.create(self.connection)
        except SQLAlchemyError as exc:
            raise QueryError(f"Could not create table {table.name}: {exc}", orig=getattr(exc, "orig", None)) from exc
        self._after_write()

    def drop_table(self, table):
        try:
            table.drop(self.connection, checkfirst=True)
        except SQLAlchemyError as exc:
            raise QueryError(f"Could not drop table {table.name}: {exc}", orig=getattr(exc, "orig", None)) from exc
        self._after_write()

    def has_table(self, name):
        return inspect(self.connection).has_table(name)

    # Version bookkeeping

    def upgrade(self):
        """
        Record ``version`` in the meta table, calling ``on_upgrade`` when it changed.

        A database without a meta table has version -1.
        """
        meta = KeyValueTable(META_TABLE)
        if self.has_table(META_TABLE):
            meta.load(self)
            stored = meta.get(VERSION_KEY)
            old_version = int(stored) if stored is not None and stored.isdigit() else -1
        else:
            meta.create_table(self)
            old_version = -1

        if old_version == self.version:
            return

        logger.debug(f"Upgrading database from version {old_version} to {self.version}")
        self.on_upgrade(old_version, self.version)

        meta.put(VERSION_KEY, str(self.version))
        meta.save(self)

    def on_upgrade(self, old_version, new_version):
        """Override to bring the schema from ``old_version`` to ``new_version``."""
