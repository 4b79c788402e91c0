"""FastAPI host that drives case assist flow sessions over HTTP."""

from __future__ import annotations

import os
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Literal

from fastapi import BackgroundTasks, FastAPI, HTTPException
from pydantic import BaseModel, Field

from case_assist.analytics.sink import (
    AnalyticsSink,
    CollectorAnalyticsSink,
    InMemoryAnalyticsSink,
)
from case_assist.config import (
    CollectorConfig,
    EndpointConfig,
    FieldMapping,
    FlowConfig,
    SuggestionConfig,
)
from case_assist.endpoint.client import ClassificationClient
from case_assist.errors import (
    InvalidRequestError,
    InvalidResponseError,
    RemoteError,
    RemoteUnavailableError,
)
from case_assist.flow.orchestrator import CaseAssistFlow
from case_assist.flow.sync import InMemoryWorkflowEngine
from case_assist.types import Prediction


def _endpoint_config_from_env() -> EndpointConfig:
    return EndpointConfig(
        base_url=os.getenv("CASE_ASSIST_BASE_URL", "http://localhost:8080"),
        api_key=os.getenv("CASE_ASSIST_API_KEY"),
    )


def _collector_config_from_env() -> CollectorConfig | None:
    url = os.getenv("CASE_ASSIST_COLLECT_URL")
    if not url:
        return None
    return CollectorConfig(url=url, api_key=os.getenv("CASE_ASSIST_API_KEY"))


class CreateSessionRequest(BaseModel):
    available_actions: list[str] = Field(default_factory=list)
    heading: str = FlowConfig.model_fields["heading"].default
    sub_heading: str = FlowConfig.model_fields["sub_heading"].default
    case_data: str | None = None
    visitor_id: str | None = None


class FieldChangeRequest(BaseModel):
    field_name: str = Field(min_length=1)
    value: str | None = None
    kind: Literal["text", "picklist"] = "text"


class SuggestionSelectRequest(BaseModel):
    field_name: str = Field(min_length=1)
    value: str
    classification_id: str
    confidence: float = Field(ge=0.0, le=1.0)


class FlowSession:
    def __init__(
        self,
        flow: CaseAssistFlow,
        engine: InMemoryWorkflowEngine,
        sink: AnalyticsSink,
    ) -> None:
        self.flow = flow
        self.engine = engine
        self.sink = sink


def create_app(
    *,
    client: ClassificationClient | None = None,
    collector_config: CollectorConfig | None = None,
    suggestion_config: SuggestionConfig | None = None,
    fields: FieldMapping | None = None,
) -> FastAPI:
    owns_client = client is None
    endpoint = client or ClassificationClient(_endpoint_config_from_env())
    sessions: dict[str, FlowSession] = {}

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_client:
            await endpoint.aclose()

    app = FastAPI(title="Case Assist Flow", version="0.1.0", lifespan=lifespan)

    def _session(session_id: str) -> FlowSession:
        session = sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
        return session

    def _schedule_flush(session: FlowSession, background: BackgroundTasks) -> None:
        if isinstance(session.sink, CollectorAnalyticsSink):
            background.add_task(session.sink.flush)

    def _state(session: FlowSession) -> dict[str, Any]:
        flow = session.flow
        return {
            "case_data": flow.case_data,
            "phase": flow.phase.value,
            "should_show_suggestions": flow.should_show_suggestions,
            "reason_suggestions": [asdict(p) for p in flow.reason_suggestions],
            "last_response_id": flow.context.last_response_id,
            "step": session.engine.step,
        }

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "sessions": len(sessions),
            "analytics_mode": "collector" if collector_config else "memory",
        }

    @app.post("/sessions")
    async def create_session(
        request: CreateSessionRequest, background: BackgroundTasks
    ) -> dict[str, Any]:
        session_id = str(uuid.uuid4())
        visitor_id = request.visitor_id or str(uuid.uuid4())
        sink: AnalyticsSink = (
            CollectorAnalyticsSink(collector_config, visitor_id=visitor_id)
            if collector_config is not None
            else InMemoryAnalyticsSink()
        )
        engine = InMemoryWorkflowEngine()
        config = FlowConfig(
            available_actions=request.available_actions,
            heading=request.heading,
            sub_heading=request.sub_heading,
        )
        flow = CaseAssistFlow(
            client=endpoint,
            analytics_sink=sink,
            workflow_engine=engine,
            visitor_id_provider=lambda: visitor_id,
            config=config,
            suggestion_config=suggestion_config,
            fields=fields,
        )
        flow.case_data = request.case_data
        flow.connect()

        session = FlowSession(flow, engine, sink)
        sessions[session_id] = session
        _schedule_flush(session, background)
        return {
            "session_id": session_id,
            "heading": config.heading,
            "sub_heading": config.sub_heading,
        }

    @app.get("/sessions/{session_id}")
    def session_state(session_id: str) -> dict[str, Any]:
        return _state(_session(session_id))

    @app.delete("/sessions/{session_id}")
    async def close_session(session_id: str) -> dict[str, Any]:
        session = _session(session_id)
        session.flow.close()
        delivered = 0
        if isinstance(session.sink, CollectorAnalyticsSink):
            delivered = await session.sink.flush()
        sessions.pop(session_id, None)
        return {"closed": True, "analytics_delivered": delivered}

    @app.post("/sessions/{session_id}/fields")
    async def change_field(
        session_id: str, request: FieldChangeRequest, background: BackgroundTasks
    ) -> dict[str, Any]:
        session = _session(session_id)
        if request.kind == "picklist":
            session.flow.handle_picklist_change(request.field_name, request.value)
        else:
            session.flow.handle_field_change(request.field_name, request.value)
        _schedule_flush(session, background)
        return _state(session)

    @app.post("/sessions/{session_id}/suggestions/select")
    async def select_suggestion(
        session_id: str, request: SuggestionSelectRequest, background: BackgroundTasks
    ) -> dict[str, Any]:
        session = _session(session_id)
        session.flow.handle_suggestion_selected(
            request.field_name,
            Prediction(
                value=request.value,
                confidence=request.confidence,
                classification_id=request.classification_id,
            ),
        )
        _schedule_flush(session, background)
        return _state(session)

    @app.post("/sessions/{session_id}/next")
    async def next_stage(session_id: str, background: BackgroundTasks) -> dict[str, Any]:
        session = _session(session_id)
        advanced = session.flow.handle_next()
        _schedule_flush(session, background)
        return {"advanced": advanced, "step": session.engine.step}

    @app.post("/sessions/{session_id}/settle")
    async def settle(session_id: str) -> dict[str, Any]:
        session = _session(session_id)
        await session.flow.wait_idle()
        return _state(session)

    @app.post("/sessions/{session_id}/documents")
    async def document_suggestions(session_id: str) -> dict[str, Any]:
        session = _session(session_id)
        flow = session.flow
        try:
            result = await endpoint.fetch_document_suggestions(
                flow.case.get(flow.fields.subject),
                flow.case.get(flow.fields.description),
                flow.visitor_id,
            )
        except InvalidRequestError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except (RemoteUnavailableError, RemoteError, InvalidResponseError) as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {
            "response_id": result.response_id,
            "items": [asdict(doc) for doc in result.documents],
        }

    return app


app = create_app(collector_config=_collector_config_from_env())
