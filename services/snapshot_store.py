"""
Local snapshot store.

Per-device JSON blobs keyed by string: sent baselines and the crash-recovery
copy of the editor selection. The store is advisory only: a missing key,
an unreadable file or a failed write is logged and treated as "no data".
"""

import hashlib
import json
import re
from pathlib import Path
from typing import Any, Optional

import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)

_SAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def baseline_key(order_id: str) -> str:
    """Snapshot key of an order baseline."""
    return f"sentBaseline:{order_id}"


def selection_key(supplier_key: str, delivery_date: Any) -> str:
    """Snapshot key of a cached editor selection."""
    return f"orders_draft_{supplier_key}_{delivery_date}"


class SnapshotStore:
    """Interface shared by the local stores."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemorySnapshotStore(SnapshotStore):
    """
    In-process store.

    Values are kept as JSON text so callers never share mutable objects
    with the store.
    """

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> bool:
        try:
            self._data[key] = json.dumps(value, default=str)
            return True
        except (TypeError, ValueError) as e:
            logger.warning("snapshot_write_skipped", key=key, error=str(e))
            return False

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileSnapshotStore(SnapshotStore):
    """
    One JSON file per key under a directory.

    Key characters outside [A-Za-z0-9_.-] are replaced, and a short hash of
    the original key keeps distinct keys in distinct files.
    """

    def __init__(self, directory: Optional[str] = None):
        self.directory = Path(directory or settings.snapshot_dir)

    def _path(self, key: str) -> Path:
        digest = hashlib.md5(key.encode()).hexdigest()[:8]
        return self.directory / f"{_SAFE_KEY_RE.sub('_', key)}-{digest}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        try:
            if not path.exists():
                return None
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("snapshot_read_failed", key=key, error=str(e))
            return None

    def set(self, key: str, value: Any) -> bool:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(value, default=str), encoding="utf-8")
            tmp.replace(path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.warning("snapshot_write_failed", key=key, error=str(e))
            return False

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("snapshot_delete_failed", key=key, error=str(e))


# Singleton instance
_snapshot_store: Optional[SnapshotStore] = None


def get_snapshot_store() -> SnapshotStore:
    """Get or create the file-backed snapshot store."""
    global _snapshot_store
    if _snapshot_store is None:
        _snapshot_store = JsonFileSnapshotStore()
    return _snapshot_store
