"""
Business logic services.

Each service handles one domain area.
"""

from services.product_service import ProductService, get_product_service
from services.order_service import OrderService, get_order_service
from services.baseline_service import BaselineStore
from services.snapshot_store import (
    SnapshotStore,
    MemorySnapshotStore,
    JsonFileSnapshotStore,
    get_snapshot_store,
)
from services.persister_service import OrderPersister, AutosaveSession, selection_hash
from services.history_service import HistoryService, get_history_service
from services.lifecycle_service import OrderLifecycle, get_order_lifecycle

__all__ = [
    "ProductService",
    "get_product_service",
    "OrderService",
    "get_order_service",
    "BaselineStore",
    "SnapshotStore",
    "MemorySnapshotStore",
    "JsonFileSnapshotStore",
    "get_snapshot_store",
    "OrderPersister",
    "AutosaveSession",
    "selection_hash",
    "HistoryService",
    "get_history_service",
    "OrderLifecycle",
    "get_order_lifecycle",
]
