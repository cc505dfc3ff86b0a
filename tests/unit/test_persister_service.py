"""
Unit tests for the order persister and the debounced autosave session.

Run: pytest tests/unit/test_persister_service.py -v
"""

import pytest
from datetime import date
from unittest.mock import MagicMock

from models.order import Order, OrderLine, OrderStatus, SelectionEntry
from services.order_service import OrderService
from services.persister_service import AutosaveSession, OrderPersister, selection_hash
from exceptions import OrderLockedError, PersistenceError
from tests.factories import LineFactory, OrderFactory


def on(qty: int) -> SelectionEntry:
    return SelectionEntry(checked=True, qty=qty)


class FakeTimer:
    """threading.Timer stand-in fired by hand."""

    created = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.cancelled = False
        self.started = False
        self.daemon = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


@pytest.fixture(autouse=True)
def reset_timers():
    FakeTimer.created = []
    yield


# ===================
# CONTENT HASH
# ===================

class TestSelectionHash:
    """Tests for selection_hash()"""

    def test_order_independent(self):
        assert selection_hash({"A": on(1), "B": on(2)}) == selection_hash({"B": on(2), "A": on(1)})

    def test_unchecked_entries_ignored(self):
        with_off = {"A": on(1), "B": SelectionEntry(checked=False, qty=5)}

        assert selection_hash(with_off) == selection_hash({"A": on(1)})

    def test_quantity_changes_hash(self):
        assert selection_hash({"A": on(1)}) != selection_hash({"A": on(2)})


# ===================
# PERSISTER
# ===================

@pytest.fixture
def order_service(mock_db):
    return OrderService()


class TestOrderPersisterDraft:
    """Draft orders: stored lines become exactly the desired lines."""

    def test_replace_lines(self, order_service, mock_supabase):
        mock_supabase.set_table_data("order_items", [
            LineFactory.create("o1", "A", qty=1),
            LineFactory.create("o1", "B", qty=4),
            LineFactory.create("o2", "B", qty=7),
        ])
        order = Order(**OrderFactory.create(id="o1"))

        OrderPersister(order_service).write(order, [
            OrderLine(order_id="o1", product_id="A", qty=3),
            OrderLine(order_id="o1", product_id="C", qty=2),
        ])

        rows = mock_supabase.get_table_data("order_items")
        o1 = {r["product_id"]: r["qty"] for r in rows if r["order_id"] == "o1"}
        assert o1 == {"A": 3, "C": 2}
        # other orders untouched
        assert [r["qty"] for r in rows if r["order_id"] == "o2"] == [7]

    def test_upsert_happens_before_delete(self, order_service, mock_supabase):
        mock_supabase.set_table_data("order_items", [LineFactory.create("o1", "B", qty=4)])
        order = Order(**OrderFactory.create(id="o1"))

        OrderPersister(order_service).write(order, [OrderLine(order_id="o1", product_id="A", qty=1)])

        ops = [op for table, op in mock_supabase.calls if table == "order_items"]
        assert ops.index("upsert") < ops.index("delete")

    def test_empty_selection_clears_lines(self, order_service, mock_supabase):
        mock_supabase.set_table_data("order_items", [LineFactory.create("o1", "A", qty=1)])
        order = Order(**OrderFactory.create(id="o1"))

        OrderPersister(order_service).write(order, [])

        assert mock_supabase.get_table_data("order_items") == []


class TestOrderPersisterSent:
    """Sent orders: running totals only grow."""

    def test_only_growing_products_written(self, order_service, mock_supabase):
        mock_supabase.set_table_data("order_items", [
            LineFactory.create("o1", "A", qty=3),
            LineFactory.create("o1", "B", qty=2),
        ])
        order = Order(**OrderFactory.create_sent(id="o1"))

        written = OrderPersister(order_service).write(order, [
            OrderLine(order_id="o1", product_id="A", qty=5),
            OrderLine(order_id="o1", product_id="B", qty=1),
            OrderLine(order_id="o1", product_id="C", qty=1),
        ])

        assert written == 2
        totals = {r["product_id"]: r["qty"] for r in mock_supabase.get_table_data("order_items")}
        assert totals == {"A": 5, "B": 2, "C": 1}

    def test_never_deletes(self, order_service, mock_supabase):
        mock_supabase.set_table_data("order_items", [LineFactory.create("o1", "A", qty=3)])
        order = Order(**OrderFactory.create_sent(id="o1"))

        written = OrderPersister(order_service).write(order, [])

        assert written == 0
        assert len(mock_supabase.get_table_data("order_items")) == 1

    def test_archived_rejected(self, order_service):
        order = Order(**OrderFactory.create(id="o1", status="archived"))

        with pytest.raises(OrderLockedError):
            OrderPersister(order_service).write(order, [OrderLine(product_id="A", qty=1)])

    def test_remote_failure_is_explained(self, order_service, mock_supabase):
        mock_supabase.fail("order_items", "new row violates row-level security policy", op="upsert")
        order = Order(**OrderFactory.create(id="o1"))

        with pytest.raises(PersistenceError) as exc_info:
            OrderPersister(order_service).write(order, [OrderLine(order_id="o1", product_id="A", qty=1)])

        assert "RLS" in exc_info.value.explanation
        assert exc_info.value.status_code == 500


# ===================
# AUTOSAVE SESSION
# ===================

class TestAutosaveSession:
    """Tests for AutosaveSession."""

    def make_session(self, save=None, **kwargs):
        save = save or MagicMock()
        session = AutosaveSession(save=save, quiet_period=0.6, timer_factory=FakeTimer, **kwargs)
        return session, save

    def test_burst_collapses_into_one_write(self):
        session, save = self.make_session()

        session.schedule({"A": on(1)})
        session.schedule({"A": on(2)})
        session.schedule({"A": on(3)})

        assert [t.cancelled for t in FakeTimer.created] == [True, True, False]
        assert session.status == "pending"

        FakeTimer.created[-1].fire()

        save.assert_called_once_with({"A": on(3)})
        assert session.status == "idle"

    def test_quiet_period_passed_to_timer(self):
        session, _ = self.make_session()

        session.schedule({"A": on(1)})

        assert FakeTimer.created[0].interval == 0.6
        assert FakeTimer.created[0].started is True

    def test_identical_content_not_rewritten(self):
        session, save = self.make_session()

        session.schedule({"A": on(1)})
        FakeTimer.created[-1].fire()
        session.schedule({"B": SelectionEntry(checked=False, qty=0), "A": on(1)})
        FakeTimer.created[-1].fire()

        assert save.call_count == 1

    def test_mark_saved_skips_first_write(self):
        session, save = self.make_session()
        session.mark_saved({"A": on(1)})

        session.schedule({"A": on(1)})

        assert session.flush() is False
        save.assert_not_called()

    def test_mirror_runs_immediately(self):
        mirror = MagicMock()
        session, save = self.make_session(mirror=mirror)

        session.schedule({"A": on(1)})

        mirror.assert_called_once_with({"A": on(1)})
        save.assert_not_called()

    def test_close_cancels_pending_write(self):
        session, save = self.make_session()

        session.schedule({"A": on(1)})
        session.close()
        FakeTimer.created[-1].fire()

        save.assert_not_called()
        assert session.status == "closed"
        assert session.schedule({"A": on(2)}) is False

    def test_failure_keeps_error_and_retries_on_next_change(self):
        save = MagicMock(side_effect=[PersistenceError("upsert", Exception("permission denied")), None])
        on_error = MagicMock()
        session, _ = self.make_session(save=save, on_error=on_error)

        session.schedule({"A": on(1)})
        assert session.flush() is False

        assert session.status == "error"
        assert "Permission" in session.last_error
        on_error.assert_called_once()

        session.schedule({"A": on(1)})
        assert session.flush() is True
        assert session.last_error is None

    def test_flush_without_pending(self):
        session, save = self.make_session()

        assert session.flush() is False
        save.assert_not_called()

    def test_unexpected_error_does_not_leave_session_saving(self):
        save = MagicMock(side_effect=[IndexError("list index out of range"), None])
        on_error = MagicMock()
        session, _ = self.make_session(save=save, on_error=on_error)

        session.schedule({"A": on(1)})
        assert session.flush() is False

        assert session.saving is False
        assert session.status == "error"
        assert session.last_error == "list index out of range"
        assert isinstance(on_error.call_args.args[0], IndexError)

        session.schedule({"A": on(1)})
        assert session.flush() is True
        assert session.status == "idle"

    def test_superseded_timer_callback_is_ignored(self):
        session, save = self.make_session()

        session.schedule({"A": on(1)})
        session.schedule({"A": on(2)})
        # the first timer was already running when cancel() came in
        FakeTimer.created[0].function()

        save.assert_not_called()
        assert FakeTimer.created[1].cancelled is False
        assert session.status == "pending"

        FakeTimer.created[1].fire()
        save.assert_called_once_with({"A": on(2)})

    def test_flush_during_write_keeps_pending_selection(self):
        inner = []

        def save(selection):
            if not inner:
                session.schedule({"A": on(2)})
                inner.append(session.flush())

        session, _ = self.make_session(save=MagicMock(side_effect=save))

        session.schedule({"A": on(1)})
        assert session.flush() is True

        assert inner == [False]
        assert session.status == "pending"
        FakeTimer.created[-1].fire()
        assert session._save.call_args_list[-1].args[0] == {"A": on(2)}
        assert session._save.call_count == 2

    def test_timer_firing_during_write_is_rescheduled(self):
        def save(selection):
            if selection == {"A": on(1)}:
                session.schedule({"A": on(2)})
                FakeTimer.created[-1].fire()

        session, _ = self.make_session(save=MagicMock(side_effect=save))

        session.schedule({"A": on(1)})
        session.flush()

        assert len(FakeTimer.created) == 3
        assert session.status == "pending"
        FakeTimer.created[-1].fire()
        assert session._save.call_count == 2
        assert session.status == "idle"
