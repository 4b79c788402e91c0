"""Analytics sink interface and implementations."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from case_assist.config import CollectorConfig
from case_assist.types import SinkCall

logger = logging.getLogger(__name__)

EVENT_CATEGORY = "svc"


class AnalyticsSink(ABC):
    """Two-call analytics protocol: set the action (and ticket), then send."""

    @abstractmethod
    def set_action(self, name: str, payload: dict[str, Any] | None = None) -> None:
        """Name the action carried by the next `send`."""

    @abstractmethod
    def set_ticket(self, ticket: dict[str, Any]) -> None:
        """Attach the current ticket snapshot to subsequent events."""

    @abstractmethod
    def send(self, category: str, action: str) -> None:
        """Emit an event of `category`/`action` with the accumulated context."""


class InMemoryAnalyticsSink(AnalyticsSink):
    """Records every call in order."""

    def __init__(self) -> None:
        self.calls: list[SinkCall] = []

    def set_action(self, name: str, payload: dict[str, Any] | None = None) -> None:
        self.calls.append(SinkCall("set_action", (name, payload)))

    def set_ticket(self, ticket: dict[str, Any]) -> None:
        self.calls.append(SinkCall("set_ticket", (ticket,)))

    def send(self, category: str, action: str) -> None:
        self.calls.append(SinkCall("send", (category, action)))

    def action_names(self) -> list[str]:
        return [call.args[0] for call in self.calls if call.method == "set_action"]


class CollectorAnalyticsSink(AnalyticsSink):
    """Buffers events and delivers them to a collection endpoint on `flush`.

    Delivery is fire-and-forget: failed posts are logged and dropped.
    """

    def __init__(
        self,
        config: CollectorConfig,
        *,
        visitor_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.visitor_id = visitor_id
        self._transport = transport
        self._action: str | None = None
        self._action_data: dict[str, Any] | None = None
        self._ticket: dict[str, Any] = {}
        self._pending: list[dict[str, Any]] = []

    @property
    def pending(self) -> list[dict[str, Any]]:
        return list(self._pending)

    def set_action(self, name: str, payload: dict[str, Any] | None = None) -> None:
        self._action = name
        self._action_data = payload

    def set_ticket(self, ticket: dict[str, Any]) -> None:
        self._ticket = dict(ticket)

    def send(self, category: str, action: str) -> None:
        event: dict[str, Any] = {
            "eventCategory": category,
            "eventAction": action,
            "svcAction": self._action,
            "svcActionData": self._action_data,
            "ticket": self._ticket,
        }
        if self.visitor_id:
            event["visitorId"] = self.visitor_id
        self._pending.append(event)
        # An action describes exactly one event.
        self._action = None
        self._action_data = None

    async def flush(self) -> int:
        """Post buffered events; returns how many were delivered."""
        events, self._pending = self._pending, []
        if not events:
            return 0

        headers = {}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        delivered = 0
        async with httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(self.config.timeout_seconds),
            transport=self._transport,
        ) as client:
            for event in events:
                try:
                    response = await client.post(self.config.url, json=event)
                    response.raise_for_status()
                except httpx.HTTPError as exc:
                    logger.warning(
                        "Dropping analytics event %s: %s", event.get("svcAction"), exc
                    )
                    continue
                delivered += 1
        return delivered
