from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EntryMode(Enum):
    LOADED = "loaded"
    NEW = "new"
    EDITED = "edited"
    REMOVED = "removed"


class EntryEvent(Enum):
    PUT = "put"
    REMOVE = "remove"
    SAVE = "save"


class Statement(Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class Entry:
    value: str
    mode: EntryMode = EntryMode.NEW
    # Whether the key has a row in the table
    stored: bool = False
    # Mode to go back to when a removal is toggled off
    restore_mode: Optional[EntryMode] = None

    @property
    def visible(self):
        return self.mode is not EntryMode.REMOVED

    def apply(self, event):
        mode = transition(self, event)
        if mode is EntryMode.REMOVED:
            self.restore_mode = self.mode
        elif self.mode is EntryMode.REMOVED:
            self.restore_mode = None
        self.mode = mode
        if event is EntryEvent.SAVE:
            self.stored = True


def transition(entry, event):
    """
    Next mode of ``entry`` after ``event``.

    Removing a removed entry restores the mode it had before, so a double
    remove is a no-op. A put on a removed entry is an edit of the stored row,
    or a new row if it was never stored.
    """
    mode = entry.mode

    if event is EntryEvent.PUT:
        if mode is EntryMode.REMOVED and not entry.stored:
            return EntryMode.NEW
        return EntryMode.EDITED

    if event is EntryEvent.REMOVE:
        if mode is EntryMode.REMOVED:
            return entry.restore_mode or EntryMode.LOADED
        return EntryMode.REMOVED

    if event is EntryEvent.SAVE:
        return EntryMode.LOADED

    raise ValueError(f"Unknown entry event: {event!r}")


def pending_statement(entry):
    """The statement that brings the table in line with ``entry``, or ``None``."""
    mode = entry.mode

    if mode is EntryMode.LOADED:
        return None
    if mode is EntryMode.NEW:
        return Statement.INSERT
    if mode is EntryMode.EDITED:
        return Statement.UPDATE if entry.stored else Statement.INSERT
    if mode is EntryMode.REMOVED:
        return Statement.DELETE if entry.stored else None

    raise ValueError(f"Unknown entry mode: {mode!r}")
