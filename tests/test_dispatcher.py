from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

import pytest

from datastore.water_store import WaterLevelStore
from services.dispatcher import AlertDispatcher, format_alert_message
from services.errors import DispatchError, StoreError

_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class RecordingGateway:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[tuple[str, str]] = []

    def send(self, to: str, body: str) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((to, body))


def _dispatcher(gateway: RecordingGateway, store: WaterLevelStore | None = None) -> AlertDispatcher:
    return AlertDispatcher(store=store or WaterLevelStore(), gateway=gateway, workers=1)


def test_format_alert_message_uses_two_decimals() -> None:
    assert format_alert_message(15) == (
        "Alert: Water level is critically low at 15.00%. Please check the tank."
    )
    assert "12.35%" in format_alert_message(12.349)


def test_dispatch_persists_alert_and_sends_sms() -> None:
    gateway = RecordingGateway()
    dispatcher = _dispatcher(gateway)

    alert = dispatcher.dispatch("5551234567", 15.0, _NOW)
    assert dispatcher.wait_for_deliveries(timeout=5)

    assert alert.timestamp == _NOW
    assert dispatcher.store.find_alerts("5551234567", limit=5) == [alert]
    assert gateway.sent == [("+915551234567", alert.message)]
    dispatcher.shutdown()


def test_gateway_failure_is_absorbed_and_alert_kept(caplog) -> None:
    gateway = RecordingGateway(error=RuntimeError("gateway down"))
    dispatcher = _dispatcher(gateway)

    with caplog.at_level(logging.WARNING, logger="services.dispatcher"):
        alert = dispatcher.dispatch("5551234567", 10.0, _NOW)
        assert dispatcher.wait_for_deliveries(timeout=5)

    assert dispatcher.store.find_alerts("5551234567", limit=1) == [alert]
    failures = [r for r in caplog.records if r.getMessage() == "SMS delivery failed"]
    assert failures
    assert getattr(failures[0], "alert_id", None) == alert.alert_id
    assert "gateway down" in getattr(failures[0], "reason", "")
    dispatcher.shutdown()


def test_deliver_wraps_gateway_errors() -> None:
    dispatcher = _dispatcher(RecordingGateway(error=ConnectionError("timeout")))
    alert = dispatcher.dispatch("+15551234567", 5.0, _NOW)
    dispatcher.wait_for_deliveries(timeout=5)

    with pytest.raises(DispatchError, match="\\+15551234567"):
        dispatcher.deliver(alert)
    dispatcher.shutdown()


def test_store_failure_raises_dispatch_error_without_sending() -> None:
    class FailingStore(WaterLevelStore):
        def insert_alert(self, alert) -> None:
            raise StoreError("unavailable")

    gateway = RecordingGateway()
    dispatcher = _dispatcher(gateway, store=FailingStore())

    with pytest.raises(DispatchError):
        dispatcher.dispatch("5551234567", 10.0, _NOW)

    assert dispatcher.wait_for_deliveries(timeout=1)
    assert gateway.sent == []
    dispatcher.shutdown()


def test_dispatch_does_not_wait_for_slow_gateway() -> None:
    release = threading.Event()

    class SlowGateway(RecordingGateway):
        def send(self, to: str, body: str) -> None:
            release.wait(timeout=5)
            super().send(to, body)

    gateway = SlowGateway()
    dispatcher = _dispatcher(gateway)

    dispatcher.dispatch("5551234567", 10.0, _NOW)

    assert gateway.sent == []
    assert dispatcher.wait_for_deliveries(timeout=0.05) is False
    release.set()
    assert dispatcher.wait_for_deliveries(timeout=5) is True
    assert len(gateway.sent) == 1
    dispatcher.shutdown()
