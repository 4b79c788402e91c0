"""Keeps the workflow engine's copy of the case in step with local edits."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping


def serialize_record(record: Mapping[str, str | None]) -> str:
    """Deterministic compact JSON encoding of the record under edit."""
    return json.dumps(dict(record), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class WorkflowEngine(ABC):
    """Host that owns the multi-step form this flow screen lives in."""

    @abstractmethod
    def attribute_changed(self, name: str, value: str) -> None:
        """Receive an updated output attribute of the screen."""

    @abstractmethod
    def navigate_next(self) -> None:
        """Advance to the next screen."""


class InMemoryWorkflowEngine(WorkflowEngine):
    """Records notifications; used by the HTTP host and in tests."""

    def __init__(self) -> None:
        self.attributes: dict[str, str] = {}
        self.changes: list[tuple[str, str]] = []
        self.step = 0

    def attribute_changed(self, name: str, value: str) -> None:
        self.attributes[name] = value
        self.changes.append((name, value))

    def navigate_next(self) -> None:
        self.step += 1


class FormStateSynchronizer:
    """Serializes the record and publishes it to the engine, once per call."""

    def __init__(self, engine: WorkflowEngine, *, attribute_name: str = "caseData") -> None:
        self._engine = engine
        self.attribute_name = attribute_name
        self._snapshot: str | None = None

    @property
    def snapshot(self) -> str | None:
        return self._snapshot

    def seed(self, snapshot: str | None) -> None:
        """Accept a value set by the engine without echoing it back."""
        self._snapshot = snapshot

    def sync(self, record: Mapping[str, str | None]) -> str:
        self._snapshot = serialize_record(record)
        self._engine.attribute_changed(self.attribute_name, self._snapshot)
        return self._snapshot
