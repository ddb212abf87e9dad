import threading
import time

import pytest

from sqlalchemy_record import (
    CancelledError, Gateway, GatewayConfig, KeyValueTable, META_TABLE, Query, QueryError,
)

from models import Widget

LONG_QUERY = (
    "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c) "
    "SELECT count(*) FROM (SELECT x FROM c LIMIT 1000000000)"
)


class RecordingGateway(Gateway):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.upgrades = []

    def on_upgrade(self, old_version, new_version):
        self.upgrades.append((old_version, new_version))


class TestLifecycle:
    def test_open_close(self):
        gateway = Gateway()
        assert gateway.closed

        assert gateway.open() is gateway
        assert not gateway.closed

        gateway.close()
        assert gateway.closed
        gateway.close()

    def test_context_manager(self):
        with Gateway() as gateway:
            assert not gateway.closed
        assert gateway.closed

    def test_closed_gateway_raises(self):
        with pytest.raises(QueryError):
            Gateway().query("widget")

    def test_meta_table_version(self, gateway):
        meta = KeyValueTable(META_TABLE)
        meta.load(gateway)
        assert meta.get("db_version") == "0"

    def test_upgrade_hook(self, tmp_path):
        path = tmp_path / "data.db"

        with RecordingGateway(path, version=0) as gateway:
            assert gateway.upgrades == [(-1, 0)]

        with RecordingGateway(path, version=2) as gateway:
            assert gateway.upgrades == [(0, 2)]

        with RecordingGateway(path, version=2) as gateway:
            assert gateway.upgrades == []

    def test_from_config(self, tmp_path):
        config = GatewayConfig(path=str(tmp_path / "config.db"), version=3)
        with Gateway.from_config(config) as gateway:
            meta = KeyValueTable(META_TABLE)
            meta.load(gateway)
            assert meta.get("db_version") == "3"

        assert (tmp_path / "config.db").exists()


class TestStatements:
    def test_query(self, widgets, gateway):
        rows = gateway.query("widget", where="intvar > ?", where_args=[5], order_by="intvar DESC").all()
        assert [row.intvar for row in rows] == [9, 8, 7, 6]

        rows = gateway.query("widget", select="count(*) AS n", group_by="boolvar").all()
        assert [row.n for row in rows] == [5, 5]

        rows = gateway.query("widget", limit=3).all()
        assert len(rows) == 3

    def test_where_args_without_where(self, widgets, gateway):
        with pytest.raises(QueryError):
            gateway.query("widget", where_args=[1])

        with pytest.raises(QueryError):
            gateway.delete("widget", where_args=[1])

    def test_insert_returns_id(self, widgets, gateway):
        row_id = gateway.insert("widget", {"id": 500, "stringvar": "new", "intvar": 42, "boolvar": True})
        assert row_id == 11

        row = gateway.query("widget", where="id = ?", where_args=[row_id]).one()
        assert row.stringvar == "new"
        assert row.boolvar == 1

    def test_update_binds_values_before_where_args(self, widgets, gateway):
        changed = gateway.update(
            "widget",
            {"intvar": 69, "stringvar": "changed"},
            "boolvar = ? AND intvar < ?",
            [True, 5],
        )
        assert changed == 3

        rows = gateway.query("widget", where="intvar = ?", where_args=[69]).all()
        assert sorted(row.id for row in rows) == [1, 3, 5]
        assert all(row.stringvar == "changed" for row in rows)

    def test_delete(self, widgets, gateway):
        assert gateway.delete("widget", "boolvar = ?", [False]) == 5
        assert gateway.delete("widget") == 5

    def test_raw_query(self, widgets, gateway):
        result = gateway.raw_query(
            "SELECT count(*) AS count FROM widget WHERE stringvar LIKE ? AND boolvar = ?",
            ["%test%", True],
        )
        assert result.scalar() == 3

    def test_run_and_run_script(self, gateway):
        gateway.run("CREATE TABLE things (id integer primary key, name varchar(20) UNIQUE)")
        gateway.run_script(
            "DROP TABLE IF EXISTS things; "
            "CREATE TABLE things (id integer primary key, name varchar(20) UNIQUE); "
            "INSERT INTO things (name) VALUES ('one');"
        )
        assert Query(gateway).from_("things").count() == 1

    def test_malformed_sql(self, gateway):
        with pytest.raises(QueryError) as excinfo:
            gateway.run("SELEC nonsense")
        assert excinfo.value.orig is not None

        with pytest.raises(QueryError):
            gateway.run_script("CREATE TABL broken;")

    def test_constraint_violation(self, gateway):
        gateway.run("CREATE TABLE things (id integer primary key, name varchar(20) UNIQUE)")
        gateway.insert("things", {"name": "one"})

        with pytest.raises(QueryError):
            gateway.insert("things", {"name": "one"})

    def test_error_while_fetching_rows(self, gateway):
        gateway.run("CREATE TABLE numbers (v integer)")
        gateway.insert("numbers", {"v": 1})
        gateway.insert("numbers", {"v": -2 ** 63})

        with pytest.raises(QueryError) as excinfo:
            gateway.raw_query("SELECT abs(v) FROM numbers ORDER BY rowid")
        assert excinfo.value.orig is not None

    def test_missing_table(self, gateway):
        with pytest.raises(QueryError):
            gateway.query("missing").all()


class TestTransactions:
    def test_disable_commit(self, tmp_path):
        path = tmp_path / "data.db"
        with Gateway(path) as writer:
            Widget.create_table(writer)

            with Gateway(path) as reader:
                writer.disable_commit()
                Widget(stringvar="pending", intvar=1).save(writer)

                assert Query(writer).from_(Widget).count() == 1
                assert Query(reader).from_(Widget).count() == 0

                writer.commit()
                assert Query(reader).from_(Widget).count() == 1

    def test_rollback(self, widgets, gateway):
        gateway.disable_commit()
        gateway.delete("widget")
        assert Query(gateway).from_(Widget).count() == 0

        gateway.rollback()
        assert Query(gateway).from_(Widget).count() == 10


class TestCancel:
    def test_nothing_to_cancel(self, gateway):
        assert gateway.cancel() is False

        token = gateway.statement()
        assert token.cancel() is False
        assert not token.cancelled

    def _cancel_when_running(self, token, cancel):
        deadline = time.monotonic() + 10
        while not token.running and time.monotonic() < deadline:
            time.sleep(0.001)

        # keep interrupting until the statement is gone
        while token.running:
            time.sleep(0.05)
            cancel()

    def test_cancel_token(self, gateway):
        token = gateway.statement()
        thread = threading.Thread(target=self._cancel_when_running, args=(token, token.cancel))
        thread.start()

        with pytest.raises(CancelledError):
            gateway.raw_query(LONG_QUERY, token=token)
        thread.join()

        assert token.cancelled
        assert not token.running
        assert gateway.raw_query("SELECT 1").scalar() == 1

    def test_cancel_all(self, gateway):
        token = gateway.statement()
        thread = threading.Thread(target=self._cancel_when_running, args=(token, gateway.cancel))
        thread.start()

        with pytest.raises(CancelledError):
            gateway.raw_query(LONG_QUERY, token=token)
        thread.join()

        assert gateway.cancel() is False
