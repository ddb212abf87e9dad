from sqlalchemy import Column, MetaData, String, Table, Text

from ..logger import logger
from .context import resolve_gateway
from .pending_changes import Entry, EntryEvent, EntryMode, Statement, pending_statement
from .query import Query

KEY_COLUMN = "key"
VALUE_COLUMN = "value"
KEY_LENGTH = 50


class KeyValueTable:
    """
    A string to string mapping stored as the rows of a two column table.

    Changes stay in memory until ``save()``, which only writes the entries
    that were added, edited or removed since the last load or save.
    """
    def __init__(self, table_name):
        self.table_name = table_name
        self._entries = {}
        self._saved = False

    def __repr__(self):
        return f"KeyValueTable({self.table_name}, {len(self)} keys)"

    def __contains__(self, key):
        return self.has(key)

    def __len__(self):
        return sum(1 for entry in self._entries.values() if entry.visible)

    def __iter__(self):
        return iter(self.keys())

    def keys(self):
        return [key for key, entry in self._entries.items() if entry.visible]

    def items(self):
        return [(key, entry.value) for key, entry in self._entries.items() if entry.visible]

    def get(self, key, default=None):
        entry = self._entries.get(key)
        if entry is None or not entry.visible:
            return default
        return entry.value

    def has(self, key):
        entry = self._entries.get(key)
        return entry is not None and entry.visible

    def put(self, key, value):
        entry = self._entries.get(key)
        if entry is None:
            self._entries[key] = Entry(value, EntryMode.NEW)
        else:
            entry.apply(EntryEvent.PUT)
            entry.value = value
        self._saved = False

    def remove(self, key):
        """
        Mark ``key`` for removal. Removing it a second time before saving
        brings it back.

        Returns whether the key was known.
        """
        entry = self._entries.get(key)
        if entry is None:
            return False
        entry.apply(EntryEvent.REMOVE)
        self._saved = False
        return True

    def mode(self, key):
        entry = self._entries.get(key)
        return entry.mode if entry is not None else None

    def is_saved(self):
        return self._saved

    def load(self, gateway=None):
        """Replace the mapping with the table's current rows."""
        self.load_rows(Query(resolve_gateway(gateway)).from_(self.table_name).all_cursor())

    def load_rows(self, rows):
        entries = {}
        for row in rows:
            mapping = row._mapping
            entries[mapping[KEY_COLUMN]] = Entry(mapping[VALUE_COLUMN], EntryMode.LOADED, stored=True)

        self._entries = entries
        self._saved = True

    def save(self, gateway=None):
        """
        Write the pending entries, one statement each.

        An entry is marked saved as soon as its statement ran, so a failing
        statement leaves the entries before it saved and the rest pending.
        """
        gateway = resolve_gateway(gateway)

        for key, entry in list(self._entries.items()):
            statement = pending_statement(entry)

            query = Query(gateway).from_(self.table_name)
            if statement is Statement.INSERT:
                query.insert({KEY_COLUMN: key, VALUE_COLUMN: entry.value})
            elif statement is Statement.UPDATE:
                query.where(f"{KEY_COLUMN}=?", key).update({VALUE_COLUMN: entry.value})
            elif statement is Statement.DELETE:
                query.where(f"{KEY_COLUMN}=?", key).drop()

            if entry.visible:
                entry.apply(EntryEvent.SAVE)
            else:
                del self._entries[key]

        logger.debug(f"Saved {len(self._entries)} keys to '{self.table_name}'")
        self._saved = True

    def table(self):
        return Table(
            self.table_name,
            MetaData(),
            Column(KEY_COLUMN, String(KEY_LENGTH)),
            Column(VALUE_COLUMN, Text),
        )

    def create_table(self, gateway=None):
        """Create the table, dropping any existing one."""
        resolve_gateway(gateway).create_table(self.table(), drop_existing=True)

    def drop_table(self, gateway=None):
        resolve_gateway(gateway).drop_table(self.table())
