"""Pydantic schemas for persisted entities and the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Serialized with camelCase keys, populated by either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Reading(_CamelModel):
    """A single timestamped measurement from one tank sensor."""

    device_id: str = Field(..., min_length=1, description="Phone-number-shaped device identifier.")
    distance: float = Field(..., description="Raw sensor distance in sensor units.")
    level_percentage: float = Field(..., description="Tank fill level, nominally 0-100.")
    timestamp: datetime = Field(..., description="Server-assigned ingestion time (UTC).")


class Alert(_CamelModel):
    """A low-level notification raised for a device."""

    alert_id: str = Field(default_factory=lambda: str(uuid4()))
    device_id: str = Field(..., min_length=1)
    message: str
    timestamp: datetime


class IngestResponse(_CamelModel):
    """Acknowledgement returned once a reading has been persisted."""

    message: str = "Data saved successfully"
    reading: Reading
