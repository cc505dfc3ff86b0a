"""
Order persistence policy and debounced autosave.

OrderPersister decides how a selection reaches the remote store depending
on the order status. AutosaveSession collapses bursts of edits into one
write after a quiet period and skips writes whose content did not change.
"""

import functools
import hashlib
import json
import threading
from typing import Callable, Mapping, Optional

import structlog

from config.settings import settings
from models.order import Order, OrderLine, OrderStatus, SelectionEntry
from services.order_service import OrderService
from services.selection_service import active_quantities, line_totals
from exceptions import AppError, OrderLockedError

logger = structlog.get_logger(__name__)


def selection_hash(selection: Mapping[str, SelectionEntry]) -> str:
    """
    Deterministic hash of the checked (product_id, qty) pairs.

    Unchecked entries and entry order do not change the hash.
    """
    normalized = sorted(active_quantities(selection).items())
    content = json.dumps(normalized)
    return hashlib.md5(content.encode()).hexdigest()


class OrderPersister:
    """
    Writes order lines with the policy matching the order status.

    - draft: stored lines become exactly the given lines
    - sent: running totals only grow (qty = max(stored, desired))
    - archived: rejected
    """

    def __init__(self, order_service: OrderService):
        self.order_service = order_service

    def write(self, order: Order, lines: list[OrderLine]) -> int:
        """
        Persist lines for order.

        Returns:
            Number of rows written or deleted

        Raises:
            OrderLockedError: If the order is archived
            PersistenceError: If the remote store rejects the write
        """
        if order.status == OrderStatus.ARCHIVED:
            raise OrderLockedError(order.id)

        if order.status == OrderStatus.DRAFT:
            deleted = self.order_service.replace_lines(order.id, lines)
            return len(lines) + deleted

        return self._converge(order, lines)

    def _converge(self, order: Order, lines: list[OrderLine]) -> int:
        stored = line_totals(self.order_service.get_lines(order.id))

        growing = []
        for line in lines:
            previous = stored.get(line.product_id, 0)
            if line.qty > previous:
                growing.append(line.model_copy(update={"qty": max(previous, line.qty)}))

        if not growing:
            logger.debug("sent_order_unchanged", order_id=order.id)
            return 0

        logger.info(
            "sent_order_converging",
            order_id=order.id,
            growing=[line.product_id for line in growing]
        )
        return self.order_service.upsert_totals(order.id, growing)


class AutosaveSession:
    """
    Debounced writer for one editor session.

    schedule() restarts the quiet-period timer; the write runs once the
    timer fires. The last successfully saved content hash is remembered and
    identical content is not written again. Failures leave the selection as
    it is and are exposed through last_error until the next success.

    Usage:
        session = AutosaveSession(save=lambda sel: lifecycle.save_selection(...))
        session.schedule(selection)
        ...
        session.close()
    """

    def __init__(
        self,
        save: Callable[[dict], object],
        quiet_period: Optional[float] = None,
        timer_factory: Callable = threading.Timer,
        mirror: Optional[Callable[[dict], object]] = None,
        on_error: Optional[Callable[[Exception], object]] = None,
    ):
        self._save = save
        self._quiet_period = settings.autosave_quiet_seconds if quiet_period is None else quiet_period
        self._timer_factory = timer_factory
        self._mirror = mirror
        self._on_error = on_error

        self._lock = threading.Lock()
        self._timer = None
        self._generation = 0
        self._pending: Optional[dict] = None
        self._last_hash: Optional[str] = None
        self._closed = False

        self.saving = False
        self.last_error: Optional[str] = None

    @property
    def status(self) -> str:
        """idle, pending, saving, error or closed."""
        with self._lock:
            if self._closed:
                return "closed"
            if self.saving:
                return "saving"
            if self._timer is not None:
                return "pending"
            if self.last_error:
                return "error"
            return "idle"

    def mark_saved(self, selection: Mapping[str, SelectionEntry]) -> None:
        """Record selection as already persisted (e.g. right after load)."""
        with self._lock:
            self._last_hash = selection_hash(selection)

    def schedule(self, selection: Mapping[str, SelectionEntry]) -> bool:
        """
        Queue selection for saving after the quiet period.

        The local mirror is updated immediately.

        Returns:
            False when the session is closed
        """
        snapshot = dict(selection)
        if self._mirror is not None:
            self._mirror(snapshot)

        with self._lock:
            if self._closed:
                return False
            self._pending = snapshot
            self._restart_timer()
        return True

    def flush(self) -> bool:
        """
        Write the pending selection now.

        A flush while a write is in flight does nothing and keeps the
        pending selection; it is written once the current write ends.

        Returns:
            True when a write happened and succeeded
        """
        with self._lock:
            if self.saving:
                return False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._closed or self._pending is None:
                return False
            selection = self._pending
            self._pending = None
            digest = selection_hash(selection)
            if digest == self._last_hash:
                logger.debug("autosave_skipped_unchanged")
                return False
            self.saving = True

        error = None
        saved = False
        try:
            self._save(selection)
            saved = True
        except AppError as e:
            error = e
            message = getattr(e, "explanation", None) or e.message
            logger.warning("autosave_failed", code=e.code, error=message)
        except Exception as e:
            error = e
            message = str(e) or type(e).__name__
            logger.error("autosave_failed", error_type=type(e).__name__, error=message)
        finally:
            with self._lock:
                self.saving = False
                if saved:
                    self.last_error = None
                    self._last_hash = digest
                elif error is not None:
                    self.last_error = message
                # a selection queued during the write still needs a timer
                if self._pending is not None and self._timer is None and not self._closed:
                    self._restart_timer()

        if error is not None:
            if self._on_error is not None:
                self._on_error(error)
            return False

        logger.debug("autosave_written", hash=digest)
        return True

    def _restart_timer(self) -> None:
        # caller holds self._lock
        if self._timer is not None:
            self._timer.cancel()
        self._generation += 1
        self._timer = self._timer_factory(
            self._quiet_period,
            functools.partial(self._fire, self._generation)
        )
        self._timer.daemon = True
        self._timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                # superseded by a later schedule()
                return
            self._timer = None
        self.flush()

    def close(self) -> None:
        """Cancel any pending write; nothing is written after this."""
        with self._lock:
            self._closed = True
            self._pending = None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
