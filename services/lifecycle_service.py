"""
Order lifecycle: the single entry point used by routes.

Orders move draft → sent → archived and never back. The selection is the
only mutable input; everything in an OrderView (rajout, locks, stage,
summary) is recomputed from it on every call.

Flow of a write:
    1. Resolve supplier and delivery date (validation errors, no I/O)
    2. Read the current order, its lines and its baseline
    3. Check the cutoff gate and floor locked products at their baseline
    4. Mirror the selection locally, then persist it remotely
"""

from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, Optional

import structlog

from config import get_supplier
from models.order import (
    Order,
    OrderLine,
    OrderStatus,
    OrderView,
    OutboundMessage,
    Selection,
    SelectionEntry,
    is_valid_status_transition,
)
from models.supplier import SupplierConfig
from services.baseline_service import BaselineStore
from services.calendar_service import (
    cutoff_instant,
    local_now,
    local_tz,
    normalize_delivery,
    require_iso_date,
    urgency_stage,
)
from services.cutoff_service import can_modify, is_sent, locked_products, order_cutoff
from services.delta_service import compute_delta
from services.history_service import HistoryService
from services.message_service import compose_initial_text, compose_rajout_text, compose_subject
from services.order_service import OrderService, get_order_service
from services.persister_service import AutosaveSession, OrderPersister
from services.product_service import ProductService, get_product_service
from services.selection_service import (
    active_quantities,
    carry_over as carry_over_lines,
    clean_selection,
    enforce_minimums,
    line_totals,
    merge_selection,
    remove_product,
    remove_rajout,
    selection_to_lines,
    set_quantity,
    set_rajout,
    summarize,
    toggle_product,
)
from services.snapshot_store import SnapshotStore, get_snapshot_store, selection_key
from exceptions import (
    EmptyOrderError,
    InvalidStatusTransitionError,
    NoRajoutError,
    OrderLockedError,
    OrderNotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# action name -> (selection function, takes a quantity)
EDIT_ACTIONS = {
    "toggle": (toggle_product, False),
    "set_quantity": (set_quantity, True),
    "remove": (remove_product, False),
    "set_rajout": (set_rajout, True),
    "remove_rajout": (remove_rajout, False),
}


class _OrderState:
    """Everything read from the stores for one (supplier, delivery date)."""

    def __init__(
        self,
        supplier: SupplierConfig,
        delivery_date: date,
        order: Optional[Order],
        lines: list[OrderLine],
        baseline: dict[str, int],
        selection: Selection,
    ):
        self.supplier = supplier
        self.delivery_date = delivery_date
        self.order = order
        self.lines = lines
        self.baseline = baseline
        self.selection = selection


class OrderLifecycle:
    """
    Order lifecycle business logic.

    Composes the remote order store, the catalog, the baseline store and
    the local selection cache.
    """

    def __init__(
        self,
        order_service: Optional[OrderService] = None,
        product_service: Optional[ProductService] = None,
        baseline_store: Optional[BaselineStore] = None,
        snapshot_store: Optional[SnapshotStore] = None,
        history_service: Optional[HistoryService] = None,
    ):
        self.order_service = order_service or get_order_service()
        self.product_service = product_service or get_product_service()
        self.snapshot_store = snapshot_store or get_snapshot_store()
        self.baseline_store = baseline_store or BaselineStore(self.snapshot_store)
        self.history_service = history_service or HistoryService(
            self.order_service, self.product_service
        )
        self.persister = OrderPersister(self.order_service)

    # ===================
    # STATE
    # ===================

    def _cached_selection(self, supplier_key: str, delivery_date: date) -> Selection:
        raw = self.snapshot_store.get(selection_key(supplier_key, delivery_date.isoformat()))
        if isinstance(raw, Mapping):
            return clean_selection(raw.get("selection"))
        return {}

    def _cache_selection(self, supplier_key: str, delivery_date: date, selection: Mapping[str, Any]) -> None:
        payload = {
            "delivery_iso": delivery_date.isoformat(),
            "selection": {
                pid: (entry.model_dump() if isinstance(entry, SelectionEntry) else dict(entry))
                for pid, entry in selection.items()
            },
        }
        self.snapshot_store.set(selection_key(supplier_key, delivery_date.isoformat()), payload)

    def _read_state(self, supplier: SupplierConfig, delivery_date: date) -> _OrderState:
        order = self.order_service.find_current(supplier.key, delivery_date)
        lines = self.order_service.get_lines(order.id) if order else []

        baseline: dict[str, int] = {}
        if is_sent(order):
            baseline = self.baseline_store.ensure(order.id, lines).as_map()

        selection = merge_selection(
            line_totals(lines),
            self._cached_selection(supplier.key, delivery_date),
        )
        selection = enforce_minimums(selection, order, baseline)
        return _OrderState(supplier, delivery_date, order, lines, baseline, selection)

    def _resolve(self, supplier_key: str, delivery: Any) -> tuple[SupplierConfig, date]:
        """Supplier and strict delivery date; raises before any remote call."""
        return get_supplier(supplier_key), require_iso_date(delivery)

    def _cutoff(self, state: _OrderState) -> datetime:
        supplier = state.supplier
        if state.order is not None:
            return order_cutoff(state.order, supplier.cutoff_hour, supplier.cutoff_minute, tz=local_tz())
        return cutoff_instant(state.delivery_date, supplier.cutoff_hour, supplier.cutoff_minute, tz=local_tz())

    def _check_modifiable(self, state: _OrderState, now: datetime) -> None:
        supplier = state.supplier
        if not can_modify(state.order, now, supplier.cutoff_hour, supplier.cutoff_minute):
            raise OrderLockedError(
                state.order.id if state.order else None,
                self._cutoff(state).isoformat()
            )

    def _view(self, state: _OrderState, now: datetime) -> OrderView:
        supplier = state.supplier
        products = self.product_service.get_catalog_map(supplier.key)
        sent = is_sent(state.order)

        return OrderView(
            supplier_key=supplier.key,
            supplier_label=supplier.label,
            delivery_date=state.delivery_date,
            order=state.order,
            is_sent=sent,
            can_modify=can_modify(state.order, now, supplier.cutoff_hour, supplier.cutoff_minute),
            stage=urgency_stage(state.delivery_date, now, supplier.cutoff_hour, supplier.cutoff_minute),
            cutoff_at=self._cutoff(state),
            selection=state.selection,
            baseline=state.baseline,
            rajout=compute_delta(state.baseline, state.selection, products) if sent else [],
            locked_products=locked_products(state.order, state.baseline),
            summary=summarize(selection_to_lines(state.selection, products)),
        )

    # ===================
    # READ OPERATIONS
    # ===================

    def load(
        self,
        supplier_key: str,
        delivery: Any = None,
        now: Optional[datetime] = None
    ) -> OrderView:
        """
        Editor state for a supplier and delivery date.

        A missing, invalid or past delivery date falls back to the next
        allowed delivery day.
        """
        supplier = get_supplier(supplier_key)
        now = now or local_now()
        delivery_date = normalize_delivery(delivery, supplier.allowed_weekdays, now.date()).delivery_date

        state = self._read_state(supplier, delivery_date)
        logger.debug(
            "order_loaded",
            supplier_key=supplier.key,
            delivery_date=str(delivery_date),
            order_id=state.order.id if state.order else None,
            sent=is_sent(state.order)
        )
        return self._view(state, now)

    # ===================
    # WRITE OPERATIONS
    # ===================

    def _persist(self, state: _OrderState, selection: Selection) -> Optional[Order]:
        """Cache then write selection; creates the order on first content."""
        supplier = state.supplier
        self._cache_selection(supplier.key, state.delivery_date, selection)

        products = self.product_service.get_catalog_map(supplier.key)
        order = state.order
        lines = selection_to_lines(selection, products, order.id if order else None)
        if order is None and not lines:
            return None
        if order is None:
            order = self.order_service.ensure_order(supplier.key, state.delivery_date)
            lines = [line.model_copy(update={"order_id": order.id}) for line in lines]

        self.persister.write(order, lines)
        return order

    def save_selection(
        self,
        supplier_key: str,
        delivery: Any,
        selection: Mapping[str, Any],
        now: Optional[datetime] = None
    ) -> OrderView:
        """
        Replace the whole selection.

        Raises:
            OrderLockedError: If the order is past its cutoff or archived
            PersistenceError: If the remote write fails (local cache is kept)
        """
        supplier, delivery_date = self._resolve(supplier_key, delivery)
        now = now or local_now()

        state = self._read_state(supplier, delivery_date)
        self._check_modifiable(state, now)

        state.selection = enforce_minimums(selection, state.order, state.baseline)
        state.order = self._persist(state, state.selection) or state.order

        logger.info(
            "selection_saved",
            supplier_key=supplier.key,
            delivery_date=str(delivery_date),
            product_count=len(active_quantities(state.selection))
        )
        return self._view(state, now)

    def edit_item(
        self,
        supplier_key: str,
        delivery: Any,
        product_id: str,
        action: str,
        qty: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> OrderView:
        """
        Apply one editor action (toggle, set_quantity, remove, set_rajout,
        remove_rajout) to one product and save.
        """
        if action not in EDIT_ACTIONS:
            raise ValidationError(
                f"Unknown edit action: {action}",
                code="INVALID_EDIT_ACTION",
                details={"action": action}
            )
        operation, needs_qty = EDIT_ACTIONS[action]
        if needs_qty and qty is None:
            raise ValidationError(
                f"{action} requires qty",
                code="QTY_REQUIRED",
                details={"action": action}
            )

        supplier, delivery_date = self._resolve(supplier_key, delivery)
        if not str(product_id or "").strip():
            raise ValidationError("Product id is required", code="INVALID_PRODUCT_ID")
        now = now or local_now()

        state = self._read_state(supplier, delivery_date)
        self._check_modifiable(state, now)

        args = (state.selection, str(product_id).strip())
        if needs_qty:
            args += (qty,)
        state.selection = operation(*args, state.order, state.baseline)
        state.order = self._persist(state, state.selection) or state.order
        return self._view(state, now)

    def carry_over(
        self,
        supplier_key: str,
        delivery: Any,
        product_ids: Optional[Iterable[str]] = None,
        now: Optional[datetime] = None
    ) -> OrderView:
        """Add the products of the last delivered order that are missing."""
        supplier, delivery_date = self._resolve(supplier_key, delivery)
        now = now or local_now()

        state = self._read_state(supplier, delivery_date)
        self._check_modifiable(state, now)

        previous = self.history_service.get_last_delivered(supplier.key, today=now.date())
        state.selection = enforce_minimums(
            carry_over_lines(state.selection, previous.lines, product_ids),
            state.order,
            state.baseline,
        )
        state.order = self._persist(state, state.selection) or state.order

        logger.info(
            "carry_over_applied",
            supplier_key=supplier.key,
            delivery_date=str(delivery_date),
            previous_delivery=str(previous.delivery_date)
        )
        return self._view(state, now)

    def send(
        self,
        supplier_key: str,
        delivery: Any,
        selection: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None
    ) -> OrderView:
        """
        Send the initial order: persist lines, stamp sent_at / cutoff_at,
        capture the baseline.

        Raises:
            EmptyOrderError: If no product is checked
            InvalidStatusTransitionError: If the order was already sent
        """
        supplier, delivery_date = self._resolve(supplier_key, delivery)
        now = now or local_now()

        state = self._read_state(supplier, delivery_date)
        if state.order is not None and not is_valid_status_transition(state.order.status, OrderStatus.SENT):
            raise InvalidStatusTransitionError(state.order.status.value, OrderStatus.SENT.value)

        if selection is not None:
            state.selection = clean_selection(selection)
        if not active_quantities(state.selection):
            raise EmptyOrderError(supplier.key, delivery_date.isoformat())

        order = self._persist(state, state.selection)
        cutoff = cutoff_instant(delivery_date, supplier.cutoff_hour, supplier.cutoff_minute, tz=local_tz())
        order = self.order_service.mark_sent(order.id, sent_at=now, cutoff_at=cutoff)

        state.order = order
        state.lines = self.order_service.get_lines(order.id)
        state.baseline = self.baseline_store.capture(order.id, state.lines).as_map()

        logger.info(
            "order_sent",
            order_id=order.id,
            supplier_key=supplier.key,
            delivery_date=str(delivery_date),
            line_count=len(state.baseline)
        )
        return self._view(state, now)

    def absorb_rajout(
        self,
        supplier_key: str,
        delivery: Any,
        now: Optional[datetime] = None
    ) -> OrderView:
        """
        Mark the pending rajout as received by the supplier: the current
        totals become the new baseline.

        Raises:
            NoRajoutError: If the order is not sent or has no rajout
        """
        supplier, delivery_date = self._resolve(supplier_key, delivery)
        now = now or local_now()

        state = self._read_state(supplier, delivery_date)
        if not is_sent(state.order):
            raise NoRajoutError(state.order.id if state.order else "")

        if not compute_delta(state.baseline, state.selection):
            raise NoRajoutError(state.order.id)

        if can_modify(state.order, now, supplier.cutoff_hour, supplier.cutoff_minute):
            self._persist(state, state.selection)

        current = selection_to_lines(state.selection, {}, state.order.id)
        state.baseline = self.baseline_store.absorb(state.order.id, current).as_map()

        logger.info(
            "rajout_absorbed",
            order_id=state.order.id,
            supplier_key=supplier.key,
            delivery_date=str(delivery_date)
        )
        return self._view(state, now)

    def archive(
        self,
        supplier_key: str,
        delivery: Any,
        now: Optional[datetime] = None
    ) -> Order:
        """
        Archive a sent order once the delivery has been checked.

        Raises:
            OrderNotFoundError: If there is no current order
            InvalidStatusTransitionError: If the order is still a draft
        """
        supplier, delivery_date = self._resolve(supplier_key, delivery)

        order = self.order_service.find_current(supplier.key, delivery_date)
        if order is None:
            raise OrderNotFoundError(f"{supplier.key}/{delivery_date.isoformat()}")
        if not is_valid_status_transition(order.status, OrderStatus.ARCHIVED):
            raise InvalidStatusTransitionError(order.status.value, OrderStatus.ARCHIVED.value)

        archived = self.order_service.archive(order.id)
        self.snapshot_store.delete(selection_key(supplier.key, delivery_date.isoformat()))

        logger.info("order_archived", order_id=order.id, supplier_key=supplier.key)
        return archived

    # ===================
    # MESSAGES & AUTOSAVE
    # ===================

    def compose_message(
        self,
        supplier_key: str,
        delivery: Any,
        kind: str = "initial",
        lang: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> OutboundMessage:
        """Text and e-mail subject for the initial order or the rajout."""
        if kind not in ("initial", "rajout"):
            raise ValidationError(
                f"Unknown message kind: {kind}",
                code="INVALID_MESSAGE_KIND",
                details={"kind": kind}
            )
        supplier, delivery_date = self._resolve(supplier_key, delivery)
        now = now or local_now()

        state = self._read_state(supplier, delivery_date)
        products = self.product_service.get_catalog_map(supplier.key)

        if kind == "rajout":
            delta = compute_delta(state.baseline, state.selection, products) if is_sent(state.order) else []
            text = compose_rajout_text(supplier.label, delivery_date, delta, lang)
            count = len(delta)
        else:
            lines = selection_to_lines(state.selection, products)
            text = compose_initial_text(supplier.label, delivery_date, lines, lang)
            count = len(lines)

        return OutboundMessage(
            kind=kind,
            subject=compose_subject(kind, supplier.label, delivery_date, lang),
            text=text,
            line_count=count,
        )

    def open_autosave(
        self,
        supplier_key: str,
        delivery: Any,
        on_error: Optional[Callable] = None,
        **kwargs
    ) -> AutosaveSession:
        """
        Debounced saver bound to one (supplier, delivery date).

        The local cache is mirrored on every schedule(); the remote write
        happens after the quiet period.
        """
        supplier, delivery_date = self._resolve(supplier_key, delivery)
        return AutosaveSession(
            save=lambda selection: self.save_selection(supplier.key, delivery_date, selection),
            mirror=lambda selection: self._cache_selection(supplier.key, delivery_date, selection),
            on_error=on_error,
            **kwargs
        )


# Singleton instance
_order_lifecycle: Optional[OrderLifecycle] = None


def get_order_lifecycle() -> OrderLifecycle:
    """Get or create OrderLifecycle instance."""
    global _order_lifecycle
    if _order_lifecycle is None:
        _order_lifecycle = OrderLifecycle()
    return _order_lifecycle
