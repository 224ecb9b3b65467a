from __future__ import annotations

import bisect
import contextlib
import json
import logging
import os
import tempfile
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Generic, List, Optional, Type, TypeVar

from pydantic import ValidationError

from app.schemas import Alert, Reading
from services.errors import StoreError
from settings import get_settings

logger = logging.getLogger(__name__)

DocumentT = TypeVar("DocumentT", Reading, Alert)


class MockCollection(Generic[DocumentT]):
    """Append-only documents indexed by device and ordered by timestamp."""

    def __init__(self, name: str, model: Type[DocumentT]) -> None:
        self.name = name
        self.model = model
        self._by_device: Dict[str, List[DocumentT]] = {}

    def insert(self, document: DocumentT) -> None:
        items = self._by_device.setdefault(document.device_id, [])
        # Equal timestamps keep arrival order.
        bisect.insort_right(items, document, key=lambda item: item.timestamp)

    def remove(self, document: DocumentT) -> None:
        items = self._by_device.get(document.device_id, [])
        for index in range(len(items) - 1, -1, -1):
            if items[index] is document:
                del items[index]
                break
        if not items:
            self._by_device.pop(document.device_id, None)

    def find(self, device_id: str, limit: int) -> List[DocumentT]:
        """Return up to ``limit`` documents, newest first."""
        items = self._by_device.get(device_id, [])
        newest = items[-limit:] if limit > 0 else []
        return [item.model_copy(deep=True) for item in reversed(newest)]

    def dump(self) -> list[dict]:
        return [
            item.model_dump(mode="json", by_alias=True)
            for device_id in sorted(self._by_device)
            for item in self._by_device[device_id]
        ]

    def load(self, payload: list[dict]) -> None:
        """Replace the contents with ``payload``; nothing changes if any entry is invalid."""
        if not isinstance(payload, list):
            raise ValueError(f"{self.name} must be a list, got {type(payload).__name__}.")
        documents = [self.model.model_validate(raw) for raw in payload]
        self._by_device = {}
        for document in documents:
            self.insert(document)

    def __len__(self) -> int:
        return sum(len(items) for items in self._by_device.values())


class WaterLevelStore:
    """Readings and alerts collections sharing one lock and one persistence file."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self.readings: MockCollection[Reading] = MockCollection("readings", Reading)
        self.alerts: MockCollection[Alert] = MockCollection("alerts", Alert)
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def insert_reading(self, reading: Reading) -> None:
        self._insert(self.readings, reading)

    def insert_alert(self, alert: Alert) -> None:
        self._insert(self.alerts, alert)

    def find_readings(self, device_id: str, limit: int) -> List[Reading]:
        with self._lock:
            return self.readings.find(device_id, limit)

    def find_alerts(self, device_id: str, limit: int) -> List[Alert]:
        with self._lock:
            return self.alerts.find(device_id, limit)

    def _insert(self, collection: MockCollection, document: DocumentT) -> None:
        stored = document.model_copy(deep=True)
        with self._lock:
            collection.insert(stored)
            try:
                self._persist()
            except (OSError, TypeError, ValueError) as exc:
                collection.remove(stored)
                raise StoreError(
                    f"Failed to persist {collection.name} document for {document.device_id!r}."
                ) from exc

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            self.readings.name: self.readings.dump(),
            self.alerts.name: self.alerts.dump(),
        }
        content = json.dumps(payload, indent=2)
        # The previous file stays in place until the new one is complete.
        fd, tmp_name = tempfile.mkstemp(
            dir=self.persistence_path.parent,
            prefix=f".{self.persistence_path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w") as handle:
                handle.write(content)
            os.replace(tmp_name, self.persistence_path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable store file %s", self.persistence_path)
            data = {}
        if not isinstance(data, dict):
            data = {}

        try:
            self.readings.load(data.get(self.readings.name, []))
            self.alerts.load(data.get(self.alerts.name, []))
        except (ValidationError, TypeError, ValueError) as exc:
            logger.warning(
                "Ignoring malformed store file %s",
                self.persistence_path,
                extra={"reason": type(exc).__name__},
            )
            self.readings.load([])
            self.alerts.load([])


@lru_cache
def build_default_store(path: Optional[str] = None) -> WaterLevelStore:
    settings = get_settings()
    store_path = settings.store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return WaterLevelStore(persistence_path=persistence)
