"""Assemble providers and services from host capabilities."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..github.api import GitHubApiClient
from ..github.service import GitHubService
from ..services.capabilities import (
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
    Fetcher,
    IgnoreService,
    LanguageContextProvider,
    LogTarget,
    NullIgnoreService,
    NullLanguageContextProvider,
    ObservableWorkspace,
    TelemetrySender,
    TokenProvider,
)
from ..services.fetcher import FetcherService
from ..services.instantiation import InstantiationService, InstantiationServiceBuilder, SyncDescriptor, inject
from ..services.settings import EditwiseSettings
from ..services.telemetry import TelemetryService
from ..utils.logging import LogTargetHandler, attach_log_target, detach_log_target
from .engine import NextEditEngine
from .llm_engine import LlmNextEditEngine
from .provider import NextEditProvider
from .telemetry_builder import NextEditTelemetrySender

__all__ = [
    "NextEditProviderOptions",
    "create_github_service",
    "create_next_edit_provider",
    "setup_services",
]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class NextEditProviderOptions:
    """Capabilities supplied by the host.

    ``workspace`` is only required for the suggestion provider. Optional
    capabilities fall back to null implementations; ``engine`` replaces the
    default :class:`LlmNextEditEngine`.
    """

    fetcher: Fetcher
    token_provider: TokenProvider
    telemetry_sender: TelemetrySender
    workspace: ObservableWorkspace | None = None
    log_target: LogTarget | None = None
    settings: EditwiseSettings | None = None
    ignore_service: IgnoreService | None = None
    language_context_provider: LanguageContextProvider | None = None
    engine: NextEditEngine | None = None


@inject(settings=SETTINGS)
def _create_telemetry_service(sender: TelemetrySender, *, settings: EditwiseSettings) -> TelemetryService:
    return TelemetryService(sender, enabled=settings.telemetry_enabled)


def setup_services(options: NextEditProviderOptions) -> InstantiationService:
    """Bind every capability and default collaborator, then seal."""

    settings = (options.settings or EditwiseSettings.from_env()).clamp()
    builder = InstantiationServiceBuilder()
    builder.define(SETTINGS, settings)
    builder.define(TOKEN_PROVIDER, options.token_provider)
    builder.define(FETCHER_SERVICE, SyncDescriptor(FetcherService, (options.fetcher,)))
    builder.define(TELEMETRY_SERVICE, SyncDescriptor(_create_telemetry_service, (options.telemetry_sender,)))
    if options.workspace is not None:
        builder.define(WORKSPACE, options.workspace)
    builder.define(IGNORE_SERVICE, options.ignore_service or SyncDescriptor(NullIgnoreService))
    builder.define(
        LANGUAGE_CONTEXT_PROVIDER,
        options.language_context_provider or SyncDescriptor(NullLanguageContextProvider),
    )
    builder.define(GITHUB_API, SyncDescriptor(GitHubApiClient))
    builder.define(GITHUB_SERVICE, SyncDescriptor(GitHubService))
    builder.define(NEXT_EDIT_ENGINE, options.engine or SyncDescriptor(LlmNextEditEngine))
    builder.define(NES_TELEMETRY_SENDER, SyncDescriptor(NextEditTelemetrySender))
    return builder.seal()


class _ProviderScope:
    """Resources a provider releases when it is disposed."""

    def __init__(self, services: InstantiationService, log_handler: LogTargetHandler | None) -> None:
        self.services = services
        self._log_handler = log_handler

    def dispose(self) -> None:
        try:
            self.services.dispose()
        finally:
            if self._log_handler is not None:
                detach_log_target(self._log_handler)
                self._log_handler = None


def create_next_edit_provider(options: NextEditProviderOptions) -> NextEditProvider:
    """Build a :class:`NextEditProvider` wired to ``options``.

    Raises:
        ConfigurationError: if ``options.workspace`` is missing.
    """

    services = setup_services(options)
    log_handler = attach_log_target(options.log_target) if options.log_target is not None else None
    scope = _ProviderScope(services, log_handler)
    try:
        provider = services.create_instance(NextEditProvider, scope)
    except BaseException:
        scope.dispose()
        raise
    LOGGER.info("Created next edit provider %s", provider.get_id())
    return provider


def create_github_service(options: NextEditProviderOptions) -> GitHubService:
    """Build the validated GitHub service from the same capability set."""

    return setup_services(options).get(GITHUB_SERVICE)
