"""Next edit suggestions: engine contract, default engine, provider and factory."""

from .engine import NextEditEngine, NextEditRequestContext, NextEditResult, RequestLogContext
from .factory import NextEditProviderOptions, create_github_service, create_next_edit_provider, setup_services
from .llm_engine import EditWindow, LlmNextEditEngine, minimal_replacement
from .provider import NextEditProvider, NextEditSuggestion
from .telemetry_builder import (
    EVENT_NAME,
    EngineTelemetryBuilder,
    NextEditTelemetryBuilder,
    NextEditTelemetrySender,
)

__all__ = [
    "EVENT_NAME",
    "EditWindow",
    "EngineTelemetryBuilder",
    "LlmNextEditEngine",
    "NextEditEngine",
    "NextEditProvider",
    "NextEditProviderOptions",
    "NextEditRequestContext",
    "NextEditResult",
    "NextEditSuggestion",
    "NextEditTelemetryBuilder",
    "NextEditTelemetrySender",
    "RequestLogContext",
    "create_github_service",
    "create_next_edit_provider",
    "minimal_replacement",
    "setup_services",
]
