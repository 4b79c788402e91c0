"""Flow screen orchestrator: wires user input to suggestions, sync and analytics."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from case_assist.analytics.correlator import AnalyticsContext, AnalyticsCorrelator
from case_assist.analytics.sink import AnalyticsSink
from case_assist.config import FieldMapping, FlowConfig, SuggestionConfig
from case_assist.endpoint.client import ClassificationClient
from case_assist.errors import (
    InvalidRequestError,
    InvalidResponseError,
    RemoteError,
    RemoteUnavailableError,
)
from case_assist.flow.debounce import Debouncer
from case_assist.flow.store import SuggestionStore
from case_assist.flow.sync import FormStateSynchronizer, WorkflowEngine
from case_assist.types import CaseRecord, Prediction

logger = logging.getLogger(__name__)


class FlowPhase(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    FETCHING = "fetching"


class CaseAssistFlow:
    """State machine behind the case intake screen.

    Edits are applied to the local record, reported to analytics and
    published to the workflow engine immediately. Once the record is ready,
    a debounced classification request is issued; every request carries a
    sequence number and only the latest issued one may update suggestions.

    Text edits arm an asyncio timer, so `handle_field_change` needs a running
    event loop.
    """

    def __init__(
        self,
        *,
        client: ClassificationClient,
        analytics_sink: AnalyticsSink,
        workflow_engine: WorkflowEngine,
        visitor_id_provider: Callable[[], str],
        config: FlowConfig | None = None,
        suggestion_config: SuggestionConfig | None = None,
        fields: FieldMapping | None = None,
    ) -> None:
        self.config = config or FlowConfig()
        self.fields = fields or FieldMapping()
        suggestion_config = suggestion_config or SuggestionConfig()

        self.case: CaseRecord = {}
        self.store = SuggestionStore(self.fields, suggestion_config)
        self.context = AnalyticsContext()
        self.analytics = AnalyticsCorrelator(
            analytics_sink, fields=self.fields, context=self.context
        )
        self.synchronizer = FormStateSynchronizer(workflow_engine)
        self.debouncer = Debouncer(suggestion_config.debounce_seconds)

        self._client = client
        self._engine = workflow_engine
        self._visitor_id_provider = visitor_id_provider
        self._issued_sequence = 0
        self._in_flight: set[asyncio.Task[None]] = set()
        self._connected = False

    @property
    def case_data(self) -> str | None:
        return self.synchronizer.snapshot

    @case_data.setter
    def case_data(self, value: str | None) -> None:
        self.synchronizer.seed(value)

    @property
    def phase(self) -> FlowPhase:
        if self.debouncer.pending:
            return FlowPhase.PENDING
        if self._in_flight:
            return FlowPhase.FETCHING
        return FlowPhase.IDLE

    @property
    def should_show_suggestions(self) -> bool:
        return self.store.readiness(self.case)

    @property
    def reason_suggestions(self) -> tuple[Prediction, ...]:
        return self.store.get(self.fields.reason_suggestion)

    @property
    def visitor_id(self) -> str:
        return self.case.get(self.fields.visitor_id) or self._visitor_id_provider()

    def connect(self) -> None:
        """Activate the screen; the create-start event is sent only once."""
        if self._connected:
            return
        self._connected = True
        self.analytics.ticket_create_start(self.case)

    def handle_field_change(self, field_name: str, value: str | None) -> None:
        """Apply a text edit; must be called from a running event loop."""
        # Raises before the record is touched when there is no loop.
        asyncio.get_running_loop()
        self._apply_edit(field_name, value)
        if self.should_show_suggestions:
            self.debouncer.schedule(self._suggestion_request())

    def handle_picklist_change(self, field_name: str, value: str | None) -> None:
        self._apply_edit(field_name, value)

    def handle_suggestion_selected(self, field_name: str, prediction: Prediction) -> None:
        self.case[field_name] = prediction.value
        self.analytics.ticket_classification_click(self.case, prediction)
        self.synchronizer.sync(self.case)

    def handle_next(self) -> bool:
        if not self.config.can_advance():
            logger.debug("Advance requested but not available: %s", self.config.available_actions)
            return False
        self.analytics.ticket_next_stage(self.case)
        self._engine.navigate_next()
        return True

    def close(self) -> None:
        """Tear the screen down: disarm the timer and abandon in-flight fetches."""
        self.debouncer.cancel()
        for task in list(self._in_flight):
            task.cancel()

    async def wait_idle(self) -> None:
        """Wait until no debounce timer is armed and no fetch is in flight."""
        while self.debouncer.pending or self._in_flight:
            if self._in_flight:
                await asyncio.gather(*self._in_flight, return_exceptions=True)
            else:
                await asyncio.sleep(self.debouncer.delay_seconds / 4)

    def _apply_edit(self, field_name: str, value: str | None) -> None:
        self.case[field_name] = value
        self.analytics.ticket_field_update(self.case, field_name)
        self.synchronizer.sync(self.case)

    def _suggestion_request(self) -> Callable[[], None]:
        subject = self.case.get(self.fields.subject)
        description = self.case.get(self.fields.description)
        visitor_id = self.visitor_id

        def _issue() -> None:
            self._issued_sequence += 1
            task = asyncio.get_running_loop().create_task(
                self._fetch_suggestions(self._issued_sequence, subject, description, visitor_id)
            )
            self._in_flight.add(task)
            task.add_done_callback(self._on_fetch_done)

        return _issue

    async def _fetch_suggestions(
        self,
        sequence: int,
        subject: str | None,
        description: str | None,
        visitor_id: str,
    ) -> None:
        try:
            result = await self._client.fetch_suggestions(subject, description, visitor_id)
        except (InvalidRequestError, InvalidResponseError) as exc:
            logger.error("Classification request #%d rejected: %s", sequence, exc)
            return
        except (RemoteUnavailableError, RemoteError) as exc:
            logger.warning("Classification request #%d failed: %s", sequence, exc)
            return

        if sequence != self._issued_sequence or not self.store.replace(result, sequence=sequence):
            logger.debug(
                "Discarding stale classification #%d (latest issued #%d)",
                sequence,
                self._issued_sequence,
            )
            return
        self.context.last_response_id = result.response_id

    def _on_fetch_done(self, task: asyncio.Task[None]) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Classification task crashed", exc_info=exc)
