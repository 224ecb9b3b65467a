"""Low-level alert recording and best-effort SMS delivery."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from threading import Lock
from typing import Dict, Optional

from app.schemas import Alert
from datastore.water_store import WaterLevelStore
from services.errors import DispatchError, StoreError
from services.sms import SmsGateway, normalize_recipient

logger = logging.getLogger(__name__)


def format_alert_message(level_percentage: float) -> str:
    return (
        f"Alert: Water level is critically low at {level_percentage:.2f}%. "
        "Please check the tank."
    )


class AlertDispatcher:
    """Persists alerts and hands SMS delivery to a worker pool.

    An alert counts as raised once its record is stored; delivery runs on a
    worker thread and its failures are logged, never raised to the caller.
    """

    def __init__(
        self,
        store: WaterLevelStore,
        gateway: SmsGateway,
        country_code: str = "+91",
        workers: int = 4,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.country_code = country_code
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sms")
        self._futures: Dict[str, Future[None]] = {}
        self._futures_lock = Lock()

    def dispatch(self, device_id: str, level_percentage: float, now: datetime) -> Alert:
        alert = Alert(
            device_id=device_id,
            message=format_alert_message(level_percentage),
            timestamp=now,
        )
        try:
            self.store.insert_alert(alert)
        except StoreError as exc:
            raise DispatchError(f"Could not record alert for {device_id!r}.") from exc

        logger.info(
            "Alert saved: %s",
            alert.message,
            extra={"device_id": device_id, "alert_id": alert.alert_id},
        )

        try:
            future = self.executor.submit(self._deliver_quietly, alert)
        except RuntimeError:
            logger.warning(
                "SMS delivery skipped; dispatcher is shut down",
                extra={"device_id": device_id, "alert_id": alert.alert_id},
            )
            return alert
        with self._futures_lock:
            self._futures[alert.alert_id] = future
        future.add_done_callback(lambda _f, aid=alert.alert_id: self._clear_future(aid))
        return alert

    def deliver(self, alert: Alert) -> str:
        """Send the alert's SMS synchronously and return the recipient address."""
        recipient = normalize_recipient(alert.device_id, self.country_code)
        try:
            self.gateway.send(recipient, alert.message)
        except DispatchError:
            raise
        except Exception as exc:
            raise DispatchError(f"Failed to send SMS to {recipient}: {exc}") from exc
        return recipient

    def wait_for_deliveries(self, timeout: Optional[float] = None) -> bool:
        """Block until queued deliveries finish; return False on timeout."""
        with self._futures_lock:
            pending = list(self._futures.values())
        if not pending:
            return True
        _done, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = False) -> None:
        self.executor.shutdown(wait=wait_for_pending, cancel_futures=not wait_for_pending)
        close = getattr(self.gateway, "close", None)
        if callable(close):
            close()

    def _deliver_quietly(self, alert: Alert) -> None:
        try:
            recipient = self.deliver(alert)
        except DispatchError as exc:
            logger.warning(
                "SMS delivery failed",
                extra={"device_id": alert.device_id, "alert_id": alert.alert_id, "reason": str(exc)},
            )
            return
        logger.info(
            "SMS sent",
            extra={"device_id": alert.device_id, "alert_id": alert.alert_id, "recipient": recipient},
        )

    def _clear_future(self, alert_id: str) -> None:
        with self._futures_lock:
            self._futures.pop(alert_id, None)
