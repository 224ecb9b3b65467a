"""Failure modes of the ingestion and query services."""

from __future__ import annotations

from typing import Iterable


class MissingFieldsError(ValueError):
    """A submitted reading lacks a required field or carries a non-numeric value."""

    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = tuple(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")


class StoreError(RuntimeError):
    """The backing store could not durably record or read a document."""


class DispatchError(RuntimeError):
    """An alert could not be recorded or its notification could not be delivered."""


class NotFoundError(KeyError):
    """No document exists for the requested device."""

    def __str__(self) -> str:
        # KeyError.__str__ wraps the message in quotes.
        return str(self.args[0]) if self.args else ""
