"""Unit tests for the readings/alerts document store."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from app.schemas import Alert, Reading
from datastore.water_store import WaterLevelStore
from services.errors import StoreError

_T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _reading(device_id: str = "5551234567", offset: int = 0, level: float = 50.0) -> Reading:
    return Reading(
        device_id=device_id,
        distance=12.5,
        level_percentage=level,
        timestamp=_T0 + timedelta(seconds=offset),
    )


def test_find_readings_returns_newest_first_within_limit() -> None:
    store = WaterLevelStore()
    for offset in (0, 20, 10, 30):
        store.insert_reading(_reading(offset=offset))

    found = store.find_readings("5551234567", limit=3)

    assert [item.timestamp for item in found] == [
        _T0 + timedelta(seconds=30),
        _T0 + timedelta(seconds=20),
        _T0 + timedelta(seconds=10),
    ]


def test_find_readings_unknown_device_returns_empty_list() -> None:
    store = WaterLevelStore()
    store.insert_reading(_reading())

    assert store.find_readings("unknown-device", limit=5) == []


def test_find_readings_filters_by_device() -> None:
    store = WaterLevelStore()
    store.insert_reading(_reading(device_id="device-a", offset=0))
    store.insert_reading(_reading(device_id="device-b", offset=5))

    found = store.find_readings("device-a", limit=5)

    assert [item.device_id for item in found] == ["device-a"]


def test_returned_documents_are_copies() -> None:
    store = WaterLevelStore()
    original = _reading()
    store.insert_reading(original)

    fetched = store.find_readings(original.device_id, limit=1)[0]

    assert fetched == original
    assert fetched is not original


def test_alerts_are_stored_separately_from_readings() -> None:
    store = WaterLevelStore()
    alert = Alert(device_id="5551234567", message="low", timestamp=_T0)

    store.insert_alert(alert)

    assert store.find_alerts("5551234567", limit=1) == [alert]
    assert store.find_readings("5551234567", limit=1) == []


def test_insert_persists_to_disk_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    store = WaterLevelStore(persistence_path=path)
    reading = _reading(level=12.0)
    alert = Alert(device_id=reading.device_id, message="low", timestamp=_T0)

    store.insert_reading(reading)
    store.insert_alert(alert)

    payload = json.loads(path.read_text())
    assert payload["readings"][0]["deviceId"] == reading.device_id
    assert payload["alerts"][0]["alertId"] == alert.alert_id

    reloaded = WaterLevelStore(persistence_path=path)
    assert reloaded.find_readings(reading.device_id, limit=5) == [reading]
    assert reloaded.find_alerts(reading.device_id, limit=5) == [alert]


def test_corrupt_file_is_treated_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    path.write_text("{not json")

    store = WaterLevelStore(persistence_path=path)

    assert store.find_readings("5551234567", limit=5) == []


def test_failed_write_rolls_back_and_raises_store_error(tmp_path: Path) -> None:
    class BrokenStore(WaterLevelStore):
        def _persist(self) -> None:
            raise OSError("disk full")

    store = BrokenStore(persistence_path=tmp_path / "store.json")

    with pytest.raises(StoreError):
        store.insert_reading(_reading())

    assert store.find_readings("5551234567", limit=5) == []
    assert len(store.readings) == 0


@pytest.mark.parametrize(
    "payload",
    [
        {"readings": [{"deviceId": "5551234567"}], "alerts": []},
        {"readings": {"deviceId": "5551234567"}, "alerts": []},
        {"readings": [], "alerts": "none"},
    ],
)
def test_malformed_documents_are_treated_as_empty(tmp_path: Path, payload) -> None:
    path = tmp_path / "store.json"
    path.write_text(json.dumps(payload))

    store = WaterLevelStore(persistence_path=path)

    assert len(store.readings) == 0
    assert len(store.alerts) == 0
    store.insert_reading(_reading())
    assert len(store.readings) == 1


def test_one_invalid_entry_discards_the_whole_file(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    valid = _reading().model_dump(mode="json", by_alias=True)
    path.write_text(json.dumps({"readings": [valid, {"distance": "far"}], "alerts": []}))

    store = WaterLevelStore(persistence_path=path)

    assert store.find_readings("5551234567", limit=5) == []


def test_failed_write_keeps_previous_file(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "store.json"
    store = WaterLevelStore(persistence_path=path)
    first = _reading(offset=0)
    store.insert_reading(first)
    before = path.read_text()

    def failing_replace(src, dst) -> None:
        raise OSError("disk full")

    monkeypatch.setattr("datastore.water_store.os.replace", failing_replace)

    with pytest.raises(StoreError):
        store.insert_reading(_reading(offset=10))

    monkeypatch.undo()
    assert path.read_text() == before
    assert [p.name for p in tmp_path.iterdir()] == ["store.json"]
    reloaded = WaterLevelStore(persistence_path=path)
    assert reloaded.find_readings(first.device_id, limit=5) == [first]
