"""Domain records shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.schemas import Alert, Reading


@dataclass(slots=True)
class IngestionOutcome:
    """Result of an accepted submission."""

    reading: Reading
    alert: Optional[Alert] = None
    alert_error: Optional[str] = None

    @property
    def alerted(self) -> bool:
        return self.alert is not None
