import pytest

from sqlalchemy import event

from sqlalchemy_record import Gateway

from models import VALUES, Widget


@pytest.fixture
def gateway():
    gateway = Gateway().open()
    yield gateway
    gateway.close()


@pytest.fixture
def widgets(gateway):
    Widget.create_table(gateway)

    records = []
    for i in range(10):
        widget = Widget(
            stringvar=VALUES[i % len(VALUES)],
            boolvar=(i % 2) == 0,
            intvar=i,
        )
        widget.save(gateway)
        records.append(widget)

    return records


@pytest.fixture
def statements(gateway):
    """SQL text and parameters of every statement run on the gateway's connection."""
    captured = []

    def _capture(conn, cursor, statement, parameters, context, executemany):
        captured.append((statement, parameters))

    event.listen(gateway.connection, "before_cursor_execute", _capture)
    yield captured
    event.remove(gateway.connection, "before_cursor_execute", _capture)
