"""Per-device alert cooldown bookkeeping."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, ContextManager, Dict, Iterator, Optional, Protocol, Set


class CooldownPolicy(Protocol):
    """Decides whether a device may raise another alert."""

    def guard(self, device_id: str) -> ContextManager[None]: ...

    def is_eligible(self, device_id: str, now: datetime) -> bool: ...

    def record_alert(self, device_id: str, now: datetime) -> None: ...


class CooldownTracker:
    """In-memory map of device identifier to the time of its last alert.

    State is private to this process. Callers must hold ``guard(device_id)``
    across ``is_eligible`` and ``record_alert`` so two concurrent low readings
    for one device cannot both pass the check.

    ``seed`` is consulted once per device the first time it is looked up, so
    alerts stored before a restart still hold back new ones.
    """

    def __init__(
        self,
        window: timedelta,
        seed: Optional[Callable[[str], Optional[datetime]]] = None,
    ) -> None:
        self.window = window
        self.seed = seed
        self._last_alert: Dict[str, datetime] = {}
        self._seeded: Set[str] = set()
        self._device_locks: Dict[str, Lock] = {}
        self._lock = Lock()

    @contextmanager
    def guard(self, device_id: str) -> Iterator[None]:
        with self._lock:
            device_lock = self._device_locks.setdefault(device_id, Lock())
        with device_lock:
            yield

    def is_eligible(self, device_id: str, now: datetime) -> bool:
        last = self.last_alert(device_id)
        if last is None:
            return True
        return now - last > self.window

    def record_alert(self, device_id: str, now: datetime) -> None:
        with self._lock:
            self._last_alert[device_id] = now
            self._seeded.add(device_id)

    def last_alert(self, device_id: str) -> Optional[datetime]:
        with self._lock:
            if device_id in self._seeded or self.seed is None:
                return self._last_alert.get(device_id)
        seeded = self.seed(device_id)
        with self._lock:
            if device_id not in self._seeded:
                self._seeded.add(device_id)
                if seeded is not None:
                    self._last_alert[device_id] = seeded
            return self._last_alert.get(device_id)
