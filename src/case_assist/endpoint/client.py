"""Async client for the remote case classification and document suggestion API."""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from case_assist.config import EndpointConfig
from case_assist.errors import (
    InvalidRequestError,
    InvalidResponseError,
    RemoteError,
    RemoteUnavailableError,
)
from case_assist.types import (
    DocumentSuggestion,
    DocumentSuggestionSet,
    Prediction,
    SuggestionSet,
)


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PredictionPayload(_WireModel):
    id: str
    value: str
    confidence: float = Field(ge=0.0, le=1.0)


class FieldPredictionsPayload(_WireModel):
    predictions: list[PredictionPayload] = Field(default_factory=list)


class ClassifyResponse(_WireModel):
    response_id: str | None = Field(default=None, alias="responseId")
    fields: dict[str, FieldPredictionsPayload] = Field(default_factory=dict)


class DocumentPayload(_WireModel):
    unique_id: str = Field(alias="uniqueId")
    title: str
    click_uri: str = Field(alias="clickUri")
    excerpt: str = ""


class DocumentsResponse(_WireModel):
    response_id: str | None = Field(default=None, alias="responseId")
    documents: list[DocumentPayload] = Field(default_factory=list)


def build_request_payload(
    subject: str | None, description: str | None, visitor_id: str
) -> dict[str, Any]:
    """Build the outgoing body; fields without text are left out entirely."""
    fields: dict[str, dict[str, str]] = {}
    if subject:
        fields["subject"] = {"value": subject}
    if description:
        fields["description"] = {"value": description}
    if not fields:
        raise InvalidRequestError("subject or description must be provided")
    return {"fields": fields, "visitorId": visitor_id}


class ClassificationClient:
    """Typed wrapper around the classify and document suggestion endpoints.

    Failures are raised as `CaseAssistError` subclasses and never retried
    here; the caller decides what to do with them.
    """

    def __init__(
        self,
        config: EndpointConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        headers = {"Accept": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            headers=headers,
            timeout=httpx.Timeout(config.timeout_seconds),
            transport=transport,
        )

    async def fetch_suggestions(
        self, subject: str | None, description: str | None, visitor_id: str
    ) -> SuggestionSet:
        payload = build_request_payload(subject, description, visitor_id)
        data = await self._post(self.config.classify_path, payload)
        try:
            parsed = ClassifyResponse.model_validate(data)
        except ValidationError as exc:
            raise InvalidResponseError(f"Malformed classification payload: {exc}") from exc

        return SuggestionSet(
            fields={
                name: tuple(
                    Prediction(
                        value=item.value,
                        confidence=item.confidence,
                        classification_id=item.id,
                    )
                    for item in entry.predictions
                )
                for name, entry in parsed.fields.items()
            },
            response_id=parsed.response_id,
        )

    async def fetch_document_suggestions(
        self, subject: str | None, description: str | None, visitor_id: str
    ) -> DocumentSuggestionSet:
        payload = build_request_payload(subject, description, visitor_id)
        data = await self._post(self.config.documents_path, payload)
        try:
            parsed = DocumentsResponse.model_validate(data)
        except ValidationError as exc:
            raise InvalidResponseError(f"Malformed document payload: {exc}") from exc

        return DocumentSuggestionSet(
            documents=tuple(
                DocumentSuggestion(
                    unique_id=doc.unique_id,
                    title=doc.title,
                    click_uri=doc.click_uri,
                    excerpt=doc.excerpt,
                )
                for doc in parsed.documents
            ),
            response_id=parsed.response_id,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        try:
            response = await self._http.post(path, json=payload)
        except httpx.DecodingError as exc:
            raise InvalidResponseError(f"{path}: undecodable body: {exc!r}") from exc
        except httpx.RequestError as exc:
            raise RemoteUnavailableError(f"{path}: {exc!r}") from exc

        if not response.is_success:
            raise RemoteError(_error_message(response), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise InvalidResponseError(f"{path}: response is not JSON") from exc


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {response.status_code}"
