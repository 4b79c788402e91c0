"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

CaseRecord = dict[str, "str | None"]


@dataclass(slots=True, frozen=True)
class Prediction:
    """A scored candidate value for a structured field."""

    value: str
    confidence: float
    classification_id: str


@dataclass(slots=True, frozen=True)
class SuggestionSet:
    """Ranked predictions per field name, as returned by one classification call."""

    fields: dict[str, tuple[Prediction, ...]] = field(default_factory=dict)
    response_id: str | None = None

    def get(self, field_name: str) -> tuple[Prediction, ...]:
        return self.fields.get(field_name, ())


@dataclass(slots=True, frozen=True)
class DocumentSuggestion:
    """A knowledge document related to the case being written."""

    unique_id: str
    title: str
    click_uri: str
    excerpt: str = ""


@dataclass(slots=True, frozen=True)
class DocumentSuggestionSet:
    documents: tuple[DocumentSuggestion, ...] = ()
    response_id: str | None = None


@dataclass(slots=True)
class TicketSnapshot:
    """Subject/description/reason mirrors sent alongside analytics events."""

    subject: str | None = None
    description: str | None = None
    reason: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "description": self.description,
            "custom": {"reason": self.reason},
        }


@dataclass(slots=True, frozen=True)
class SinkCall:
    """One call against an analytics sink, e.g. `set_action` or `send`."""

    method: str
    args: tuple[Any, ...] = ()
