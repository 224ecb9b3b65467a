"""Ingestion of tank readings: validation, alerting, persistence and fan-out."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from numbers import Real
from typing import Any, Callable, Mapping, Optional

from app.schemas import Alert, Reading
from datastore.water_store import WaterLevelStore, build_default_store
from models.records import IngestionOutcome
from services.cooldown import CooldownPolicy, CooldownTracker
from services.dispatcher import AlertDispatcher
from services.errors import DispatchError, MissingFieldsError
from services.fanout import FanoutChannel, reading_topic
from services.query import QueryService
from services.sms import build_sms_gateway
from settings import get_settings

logger = logging.getLogger(__name__)

LOW_THRESHOLD = 30.0

_DEVICE_KEYS = ("deviceId", "mobileNumber", "device_id")
_LEVEL_KEYS = ("levelPercentage", "level_percentage")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _first_present(payload: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # Integers beyond float range.
        return False


def stored_alert_time(store: WaterLevelStore) -> Callable[[str], Optional[datetime]]:
    """Cooldown seed returning the timestamp of a device's newest stored alert."""

    def seed(device_id: str) -> Optional[datetime]:
        alerts = store.find_alerts(device_id, 1)
        return alerts[0].timestamp if alerts else None

    return seed


class IngestionPipeline:
    """Coordinates a reading from arrival to persistence and real-time push.

    Per reading: a low level may raise an alert under the cooldown policy,
    then the reading is stored and published on its device topic. Alert
    failures never prevent the reading from being stored or published; a
    store failure is raised to the caller and nothing is published.
    """

    def __init__(
        self,
        store: WaterLevelStore,
        cooldown: CooldownPolicy,
        dispatcher: AlertDispatcher,
        fanout: FanoutChannel,
        low_threshold: float = LOW_THRESHOLD,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.cooldown = cooldown
        self.dispatcher = dispatcher
        self.fanout = fanout
        self.low_threshold = low_threshold
        self.clock = clock
        self.queries = QueryService(store)

    def submit_payload(self, payload: Mapping[str, Any]) -> IngestionOutcome:
        """Submit a raw JSON body as sent by a device."""
        return self.submit(
            device_id=_first_present(payload, _DEVICE_KEYS),
            distance=payload.get("distance"),
            level_percentage=_first_present(payload, _LEVEL_KEYS),
        )

    def submit(
        self,
        device_id: Any,
        distance: Any,
        level_percentage: Any,
    ) -> IngestionOutcome:
        missing = []
        if not isinstance(device_id, str) or not device_id.strip():
            missing.append("deviceId")
        if not _is_number(distance):
            missing.append("distance")
        if not _is_number(level_percentage):
            missing.append("levelPercentage")
        if missing:
            logger.warning(
                "Rejected reading",
                extra={"device_id": device_id, "reason": f"missing {', '.join(missing)}"},
            )
            raise MissingFieldsError(missing)

        device_id = device_id.strip()
        now = self.clock()
        reading = Reading(
            device_id=device_id,
            distance=float(distance),
            level_percentage=float(level_percentage),
            timestamp=now,
        )
        outcome = IngestionOutcome(reading=reading)

        if reading.level_percentage < self.low_threshold:
            outcome.alert, outcome.alert_error = self._raise_alert(reading, now)

        self.store.insert_reading(reading)
        logger.info(
            "Reading stored",
            extra={"device_id": device_id, "level_percentage": reading.level_percentage},
        )

        self.fanout.publish(reading_topic(device_id), reading.model_dump(mode="json", by_alias=True))
        return outcome

    def shutdown(self) -> None:
        self.dispatcher.shutdown()

    def _raise_alert(
        self, reading: Reading, now: datetime
    ) -> tuple[Optional[Alert], Optional[str]]:
        device_id = reading.device_id
        with self.cooldown.guard(device_id):
            if not self.cooldown.is_eligible(device_id, now):
                logger.info("Skipped alert within cooldown period", extra={"device_id": device_id})
                return None, None
            try:
                alert = self.dispatcher.dispatch(device_id, reading.level_percentage, now)
            except DispatchError as exc:
                logger.warning(
                    "Alert dispatch failed",
                    extra={"device_id": device_id, "reason": str(exc)},
                )
                return None, str(exc)
            self.cooldown.record_alert(device_id, now)
        return alert, None


@lru_cache
def build_default_pipeline() -> IngestionPipeline:
    """Factory that wires the pipeline from settings."""
    settings = get_settings()
    store = build_default_store()
    dispatcher = AlertDispatcher(
        store=store,
        gateway=build_sms_gateway(settings),
        country_code=settings.default_country_code,
        workers=settings.alert_workers,
    )
    return IngestionPipeline(
        store=store,
        cooldown=CooldownTracker(
            timedelta(seconds=settings.alert_cooldown_seconds),
            seed=stored_alert_time(store),
        ),
        dispatcher=dispatcher,
        fanout=FanoutChannel(),
        low_threshold=settings.low_level_threshold,
    )
