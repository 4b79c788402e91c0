"""Case Assist flow package."""

from .config import EndpointConfig, FieldMapping, FlowConfig, SuggestionConfig

__all__ = ["EndpointConfig", "FieldMapping", "FlowConfig", "SuggestionConfig"]
