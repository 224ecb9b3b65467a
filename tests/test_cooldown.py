"""Unit tests for the per-device cooldown tracker."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

from services.cooldown import CooldownTracker

_T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _tracker(seconds: float = 300) -> CooldownTracker:
    return CooldownTracker(timedelta(seconds=seconds))


def test_unknown_device_is_eligible() -> None:
    tracker = _tracker()

    assert tracker.is_eligible("5551234567", _T0) is True
    assert tracker.last_alert("5551234567") is None


def test_device_is_ineligible_inside_window() -> None:
    tracker = _tracker()
    tracker.record_alert("5551234567", _T0)

    assert tracker.is_eligible("5551234567", _T0 + timedelta(seconds=2)) is False
    assert tracker.is_eligible("5551234567", _T0 + timedelta(seconds=300)) is False


def test_device_becomes_eligible_after_window() -> None:
    tracker = _tracker()
    tracker.record_alert("5551234567", _T0)

    assert tracker.is_eligible("5551234567", _T0 + timedelta(seconds=300, microseconds=1))


def test_record_alert_overwrites_previous_entry() -> None:
    tracker = _tracker()
    tracker.record_alert("5551234567", _T0)
    later = _T0 + timedelta(minutes=10)

    tracker.record_alert("5551234567", later)

    assert tracker.last_alert("5551234567") == later
    assert tracker.is_eligible("5551234567", later + timedelta(seconds=1)) is False


def test_devices_are_tracked_independently() -> None:
    tracker = _tracker()
    tracker.record_alert("device-a", _T0)

    assert tracker.is_eligible("device-a", _T0) is False
    assert tracker.is_eligible("device-b", _T0) is True


def test_guard_serializes_check_and_record_for_one_device() -> None:
    tracker = _tracker()
    winners: list[int] = []
    barrier = threading.Barrier(8)

    def attempt(index: int) -> None:
        barrier.wait(timeout=2.0)
        with tracker.guard("5551234567"):
            if tracker.is_eligible("5551234567", _T0):
                # Widen the window in which an unguarded check would race.
                threading.Event().wait(0.01)
                tracker.record_alert("5551234567", _T0)
                winners.append(index)

    threads = [threading.Thread(target=attempt, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5.0)

    assert len(winners) == 1


def test_guards_for_different_devices_do_not_block_each_other() -> None:
    tracker = _tracker()
    entered = threading.Event()

    def hold_other_device() -> None:
        with tracker.guard("device-b"):
            entered.set()

    with tracker.guard("device-a"):
        thread = threading.Thread(target=hold_other_device)
        thread.start()
        assert entered.wait(timeout=1.0)
        thread.join(timeout=1.0)


def test_seed_supplies_last_alert_for_unseen_device() -> None:
    calls = []

    def seed(device_id: str):
        calls.append(device_id)
        return _T0 if device_id == "5551234567" else None

    tracker = CooldownTracker(timedelta(seconds=300), seed=seed)

    assert tracker.is_eligible("5551234567", _T0 + timedelta(seconds=10)) is False
    assert tracker.is_eligible("5551234567", _T0 + timedelta(seconds=20)) is False
    assert tracker.is_eligible("5559999999", _T0) is True
    assert tracker.is_eligible("5559999999", _T0) is True
    assert calls == ["5551234567", "5559999999"]


def test_recorded_alert_takes_precedence_over_seed() -> None:
    tracker = CooldownTracker(timedelta(seconds=300), seed=lambda _device_id: _T0)
    later = _T0 + timedelta(seconds=600)

    tracker.record_alert("5551234567", later)

    assert tracker.last_alert("5551234567") == later
