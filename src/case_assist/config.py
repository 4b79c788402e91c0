"""Configuration models for the case assist flow."""

from __future__ import annotations

from pydantic import BaseModel, Field

NEXT_ACTION = "NEXT"


class FieldMapping(BaseModel):
    """Maps flow concepts to record field names and suggestion keys."""

    subject: str = "Subject"
    description: str = "Description"
    reason: str = "Reason"
    visitor_id: str = "visitorId"
    reason_suggestion: str = "sfreason"


class SuggestionConfig(BaseModel):
    """Configures search-as-you-type behavior."""

    debounce_seconds: float = Field(default=0.5, gt=0.0)
    min_description_length: int = Field(default=10, ge=0)


class FlowConfig(BaseModel):
    """Options handed to the flow screen by the workflow engine."""

    available_actions: list[str] = Field(default_factory=list)
    heading: str = "How can we help you today?"
    sub_heading: str = "Select related categories"

    def can_advance(self) -> bool:
        return NEXT_ACTION in self.available_actions


class EndpointConfig(BaseModel):
    """Configures the remote classification / document suggestion endpoint."""

    base_url: str = Field(min_length=1)
    classify_path: str = "/classify"
    documents_path: str = "/documents/suggest"
    api_key: str | None = None
    timeout_seconds: float = Field(default=5.0, gt=0.0)


class CollectorConfig(BaseModel):
    """Configures the analytics collection endpoint."""

    url: str = Field(min_length=1)
    api_key: str | None = None
    timeout_seconds: float = Field(default=2.0, gt=0.0)
