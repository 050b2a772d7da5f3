"""Services wiring host capabilities into editwise components.

Services:
    - InstantiationServiceBuilder / InstantiationService: composition root
    - FetcherService / HttpxFetcher: network capability adapters
    - TelemetryService / InMemoryTelemetrySender: telemetry forwarding
    - EditwiseSettings: endpoints and tuning knobs
"""

from .capabilities import (
    FETCHER_SERVICE,
    GITHUB_API,
    GITHUB_SERVICE,
    IGNORE_SERVICE,
    LANGUAGE_CONTEXT_PROVIDER,
    NES_TELEMETRY_SENDER,
    NEXT_EDIT_ENGINE,
    SETTINGS,
    TELEMETRY_SERVICE,
    TOKEN_PROVIDER,
    WORKSPACE,
    ContextItem,
    FetchOptions,
    LogLevel,
    NullIgnoreService,
    NullLanguageContextProvider,
    StaticTokenProvider,
)
from .fetcher import FetchAbortedError, FetcherService, HttpxFetcher
from .instantiation import (
    InstantiationService,
    InstantiationServiceBuilder,
    ServiceIdentifier,
    SyncDescriptor,
    inject,
    service_dependencies,
)
from .settings import EditwiseSettings
from .telemetry import InMemoryTelemetrySender, RecordedTelemetryEvent, TelemetryService

__all__ = [
    # Composition root
    "InstantiationService",
    "InstantiationServiceBuilder",
    "ServiceIdentifier",
    "SyncDescriptor",
    "inject",
    "service_dependencies",
    # Identifiers
    "FETCHER_SERVICE",
    "GITHUB_API",
    "GITHUB_SERVICE",
    "IGNORE_SERVICE",
    "LANGUAGE_CONTEXT_PROVIDER",
    "NES_TELEMETRY_SENDER",
    "NEXT_EDIT_ENGINE",
    "SETTINGS",
    "TELEMETRY_SERVICE",
    "TOKEN_PROVIDER",
    "WORKSPACE",
    # Capabilities
    "ContextItem",
    "FetchOptions",
    "LogLevel",
    "NullIgnoreService",
    "NullLanguageContextProvider",
    "StaticTokenProvider",
    # Fetcher
    "FetchAbortedError",
    "FetcherService",
    "HttpxFetcher",
    # Settings
    "EditwiseSettings",
    # Telemetry
    "InMemoryTelemetrySender",
    "RecordedTelemetryEvent",
    "TelemetryService",
]
