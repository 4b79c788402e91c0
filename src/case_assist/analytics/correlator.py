"""Ticket lifecycle analytics, correlated with classification responses."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from case_assist.analytics.sink import EVENT_CATEGORY, AnalyticsSink
from case_assist.config import FieldMapping
from case_assist.types import Prediction, SinkCall, TicketSnapshot


class TicketAction(str, Enum):
    TICKET_CREATE_START = "ticket_create_start"
    TICKET_FIELD_UPDATE = "ticket_field_update"
    TICKET_CLASSIFICATION_CLICK = "ticket_classification_click"
    TICKET_NEXT_STAGE = "ticket_next_stage"


FLOW_START = "flowStart"
CLICK = "click"


@dataclass(slots=True)
class AnalyticsContext:
    """Last applied classification response id plus ticket field mirrors."""

    last_response_id: str | None = None
    ticket: TicketSnapshot = field(default_factory=TicketSnapshot)


def build_create_start() -> list[SinkCall]:
    return [
        SinkCall("set_action", (TicketAction.TICKET_CREATE_START.value, None)),
        SinkCall("send", (EVENT_CATEGORY, FLOW_START)),
    ]


def build_field_update(ticket: TicketSnapshot, field_name: str) -> list[SinkCall]:
    return [
        SinkCall("set_ticket", (ticket.to_payload(),)),
        SinkCall(
            "set_action",
            (TicketAction.TICKET_FIELD_UPDATE.value, {"fieldName": field_name}),
        ),
        SinkCall("send", (EVENT_CATEGORY, CLICK)),
    ]


def build_classification_click(
    ticket: TicketSnapshot, prediction: Prediction, response_id: str | None
) -> list[SinkCall]:
    payload = {
        "classificationId": prediction.classification_id,
        "responseId": response_id,
        "classification": {
            "value": prediction.value,
            "confidence": prediction.confidence,
        },
    }
    return [
        SinkCall("set_ticket", (ticket.to_payload(),)),
        SinkCall("set_action", (TicketAction.TICKET_CLASSIFICATION_CLICK.value, payload)),
        SinkCall("send", (EVENT_CATEGORY, CLICK)),
    ]


def build_next_stage(ticket: TicketSnapshot) -> list[SinkCall]:
    return [
        SinkCall("set_ticket", (ticket.to_payload(),)),
        SinkCall("set_action", (TicketAction.TICKET_NEXT_STAGE.value, None)),
        SinkCall("send", (EVENT_CATEGORY, CLICK)),
    ]


class AnalyticsCorrelator:
    """Emits ticket events to a sink, refreshing the ticket mirrors first.

    `last_response_id` is read from the shared context at the moment the event
    is emitted, so it always names the most recently applied response.
    """

    def __init__(
        self,
        sink: AnalyticsSink,
        *,
        fields: FieldMapping | None = None,
        context: AnalyticsContext | None = None,
    ) -> None:
        self.sink = sink
        self.fields = fields or FieldMapping()
        self.context = context or AnalyticsContext()

    def ticket_create_start(self, record: Mapping[str, str | None]) -> None:
        self.refresh(record)
        self._dispatch(build_create_start())

    def ticket_field_update(self, record: Mapping[str, str | None], field_name: str) -> None:
        self.refresh(record)
        self._dispatch(build_field_update(self.context.ticket, field_name))

    def ticket_classification_click(
        self, record: Mapping[str, str | None], prediction: Prediction
    ) -> None:
        self.refresh(record)
        self._dispatch(
            build_classification_click(
                self.context.ticket, prediction, self.context.last_response_id
            )
        )

    def ticket_next_stage(self, record: Mapping[str, str | None]) -> None:
        self.refresh(record)
        self._dispatch(build_next_stage(self.context.ticket))

    def refresh(self, record: Mapping[str, str | None]) -> None:
        self.context.ticket = TicketSnapshot(
            subject=record.get(self.fields.subject),
            description=record.get(self.fields.description),
            reason=record.get(self.fields.reason),
        )

    def _dispatch(self, calls: list[SinkCall]) -> None:
        for call in calls:
            if call.method == "set_ticket":
                (ticket,) = call.args
                self.sink.set_ticket(ticket)
            elif call.method == "set_action":
                name, payload = call.args
                self.sink.set_action(name, payload)
            elif call.method == "send":
                category, action = call.args
                self.sink.send(category, action)
            else:
                raise ValueError(f"Unknown sink method: {call.method}")
