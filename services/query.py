"""Read-only access to stored readings and alerts."""

from __future__ import annotations

from typing import List

from app.schemas import Alert, Reading
from datastore.water_store import WaterLevelStore
from services.errors import NotFoundError

DEFAULT_HISTORY_LIMIT = 5


class QueryService:
    def __init__(self, store: WaterLevelStore) -> None:
        self.store = store

    def latest(self, device_id: str) -> Reading:
        readings = self.store.find_readings(device_id, limit=1)
        if not readings:
            raise NotFoundError(f"No data found for device {device_id!r}.")
        return readings[0]

    def history(self, device_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[Reading]:
        """Most recent readings first; an unknown device yields an empty list."""
        if limit < 1:
            raise ValueError("History limit must be a positive integer.")
        return self.store.find_readings(device_id, limit=limit)

    def latest_alert(self, device_id: str) -> Alert:
        alerts = self.store.find_alerts(device_id, limit=1)
        if not alerts:
            raise NotFoundError(f"No alert found for device {device_id!r}.")
        return alerts[0]
