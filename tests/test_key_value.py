import pytest

from sqlalchemy_record import KeyValueTable, QueryError
from sqlalchemy_record.base.pending_changes import (
    Entry, EntryEvent, EntryMode, Statement, pending_statement, transition,
)


@pytest.fixture
def table(gateway):
    table = KeyValueTable("testhash")
    table.create_table(gateway)
    table.put("key1", "Secret value")
    table.put("key2", "VALUES")
    table.save(gateway)
    return table


def reload(gateway):
    fresh = KeyValueTable("testhash")
    fresh.load(gateway)
    return fresh


def dml(statements):
    return [sql.split()[0] for sql, _ in statements if not sql.startswith("SELECT")]


class TestKeyValueTable:
    def test_load(self, table, gateway):
        loaded = reload(gateway)

        assert loaded.get("key1") == "Secret value"
        assert loaded.get("key2") == "VALUES"
        assert loaded.is_saved()
        assert loaded.mode("key1") is EntryMode.LOADED

    def test_save(self, table, gateway):
        table.put("things", "THINGS ARE THINGS")
        table.save(gateway)

        assert reload(gateway).get("things") == "THINGS ARE THINGS"

    def test_update(self, table, gateway):
        table.put("key1", "Changed")
        assert table.mode("key1") is EntryMode.EDITED
        table.save(gateway)

        loaded = reload(gateway)
        assert loaded.get("key1") == "Changed"
        assert len(loaded) == 2

    def test_remove(self, table, gateway):
        assert table.remove("key1") is True
        assert table.has("key1") is False
        assert table.get("key1") is None
        table.save(gateway)

        assert reload(gateway).has("key1") is False
        assert "key1" not in table

    def test_remove_unknown_key(self, table):
        assert table.remove("missing") is False
        assert table.is_saved()

    def test_double_remove_restores(self, table, gateway):
        table.remove("key1")
        table.remove("key1")

        assert table.has("key1")
        assert table.mode("key1") is EntryMode.LOADED
        table.save(gateway)

        assert reload(gateway).get("key1") == "Secret value"

    def test_is_saved(self, table, gateway):
        assert table.is_saved()

        table.put("New", "not saved")
        assert not table.is_saved()

        table.save(gateway)
        assert table.is_saved()

    def test_save_emits_minimal_statements(self, table, gateway, statements):
        table.put("key1", "edited")
        table.remove("key2")
        table.put("key3", "new")
        table.save(gateway)

        assert sorted(dml(statements)) == ["DELETE", "INSERT", "UPDATE"]
        assert all(table.mode(key) is EntryMode.LOADED for key in table)

        statements.clear()
        table.save(gateway)
        assert dml(statements) == []

    def test_new_entry_put_twice(self, gateway, statements):
        table = KeyValueTable("testhash")
        table.create_table(gateway)
        statements.clear()

        table.put("key", "first")
        table.put("key", "second")
        assert table.mode("key") is EntryMode.EDITED
        table.save(gateway)

        assert dml(statements) == ["INSERT"]
        assert reload(gateway).get("key") == "second"

    def test_removed_before_saving(self, gateway, statements):
        table = KeyValueTable("testhash")
        table.create_table(gateway)
        statements.clear()

        table.put("key", "value")
        table.remove("key")
        table.save(gateway)

        assert dml(statements) == []
        assert len(table) == 0

    def test_failed_save_keeps_written_entries_saved(self, gateway):
        gateway.run("CREATE TABLE checked (key varchar(50), value text CHECK (value <> 'bad'))")
        table = KeyValueTable("checked")
        table.put("a", "ok")
        table.put("b", "bad")

        with pytest.raises(QueryError):
            table.save(gateway)
        assert table.mode("a") is EntryMode.LOADED
        assert table.mode("b") is EntryMode.NEW
        assert not table.is_saved()

        table.put("b", "good")
        table.save(gateway)

        rows = gateway.raw_query("SELECT key FROM checked ORDER BY key").all()
        assert [row[0] for row in rows] == ["a", "b"]
        assert table.is_saved()

    def test_load_replaces_mapping(self, table, gateway):
        other = KeyValueTable("testhash")
        other.put("local", "only in memory")
        other.load(gateway)

        assert not other.has("local")
        assert sorted(other.keys()) == ["key1", "key2"]
        assert dict(other.items()) == {"key1": "Secret value", "key2": "VALUES"}

    def test_drop_table(self, table, gateway):
        table.drop_table(gateway)
        assert not gateway.has_table("testhash")


class TestTransitions:
    def test_put(self):
        assert transition(Entry("v", EntryMode.LOADED, stored=True), EntryEvent.PUT) is EntryMode.EDITED
        assert transition(Entry("v", EntryMode.NEW), EntryEvent.PUT) is EntryMode.EDITED
        assert transition(Entry("v", EntryMode.REMOVED, stored=True), EntryEvent.PUT) is EntryMode.EDITED
        assert transition(Entry("v", EntryMode.REMOVED), EntryEvent.PUT) is EntryMode.NEW

    def test_remove_toggles(self):
        entry = Entry("v", EntryMode.EDITED, stored=True)

        entry.apply(EntryEvent.REMOVE)
        assert entry.mode is EntryMode.REMOVED

        entry.apply(EntryEvent.REMOVE)
        assert entry.mode is EntryMode.EDITED

    def test_save(self):
        entry = Entry("v", EntryMode.NEW)
        entry.apply(EntryEvent.SAVE)

        assert entry.mode is EntryMode.LOADED
        assert entry.stored

    @pytest.mark.parametrize("mode,stored,statement", [
        (EntryMode.LOADED, True, None),
        (EntryMode.NEW, False, Statement.INSERT),
        (EntryMode.EDITED, True, Statement.UPDATE),
        (EntryMode.EDITED, False, Statement.INSERT),
        (EntryMode.REMOVED, True, Statement.DELETE),
        (EntryMode.REMOVED, False, None),
    ])
    def test_pending_statement(self, mode, stored, statement):
        assert pending_statement(Entry("v", mode, stored=stored)) is statement
