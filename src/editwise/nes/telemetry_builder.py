"""Per-suggestion telemetry accumulation and the one-shot sender.

Each suggestion owns a :class:`NextEditTelemetryBuilder`. The provider fills
it in as the suggestion moves through its lifecycle; the engine adds its own
facts through :attr:`NextEditTelemetryBuilder.engine_builder`. At the end of
the lifecycle :class:`NextEditTelemetrySender` turns the builder into exactly
one ``provideInlineEdit`` event and the builder is disposed.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Literal

from ..services.capabilities import TELEMETRY_SERVICE
from ..services.instantiation import inject
from ..services.telemetry import TelemetryService

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..core.ranges import StringReplacement
    from ..editor.document_model import WorkspaceDocument

__all__ = [
    "EVENT_NAME",
    "EngineTelemetryBuilder",
    "NextEditTelemetryBuilder",
    "NextEditTelemetrySender",
]

LOGGER = logging.getLogger(__name__)

EVENT_NAME = "provideInlineEdit"

Acceptance = Literal["notAccepted", "accepted", "rejected"]


class EngineTelemetryBuilder:
    """Collects engine-specific properties and measurements."""

    __slots__ = ("_properties", "_measurements")

    def __init__(self) -> None:
        self._properties: dict[str, str] = {}
        self._measurements: dict[str, float] = {}

    def set_property(self, name: str, value: object | None) -> None:
        if value is None:
            self._properties.pop(name, None)
        else:
            self._properties[name] = str(value)

    def set_measurement(self, name: str, value: float | None) -> None:
        if value is None:
            self._measurements.pop(name, None)
        else:
            self._measurements[name] = float(value)

    @property
    def properties(self) -> dict[str, str]:
        return dict(self._properties)

    @property
    def measurements(self) -> dict[str, float]:
        return dict(self._measurements)


class NextEditTelemetryBuilder:
    """Mutable telemetry record for one suggestion."""

    def __init__(
        self,
        provider_id: str,
        document: "WorkspaceDocument",
        *,
        clock=time.monotonic,
    ) -> None:
        self._provider_id = provider_id
        self._document_uri = document.id.uri
        self._language_id = document.language_id
        self._document_length = len(document.text)
        self._clock = clock
        self._started = clock()
        self._completed: float | None = None
        self._opportunity_id: str | None = None
        self._shown_count = 0
        self._acceptance: Acceptance = "notAccepted"
        self._status: str = "notAccepted"
        self._superseded_by: str | None = None
        self._edit_length: int | None = None
        self._has_edit = False
        self._error_code: str | None = None
        self._engine = EngineTelemetryBuilder()
        self._sent = False
        self._disposed = False

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    @property
    def engine_builder(self) -> EngineTelemetryBuilder:
        """Hook handed to the engine for its own facts."""

        return self._engine

    @property
    def opportunity_id(self) -> str | None:
        return self._opportunity_id

    def set_opportunity_id(self, opportunity_id: str) -> None:
        self._opportunity_id = opportunity_id

    def set_as_shown(self) -> None:
        self._shown_count += 1

    @property
    def was_shown(self) -> bool:
        return self._shown_count > 0

    def set_acceptance(self, acceptance: Acceptance) -> None:
        self._acceptance = acceptance

    @property
    def status(self) -> str:
        return self._status

    def set_status(self, status: str) -> None:
        self._status = status

    @property
    def superseded_by(self) -> str | None:
        return self._superseded_by

    def set_superseded_by(self, request_uuid: str) -> None:
        self._superseded_by = request_uuid

    def set_error(self, code: str) -> None:
        self._error_code = code

    def set_edit(self, edit: "StringReplacement | None") -> None:
        """Record the computed edit and mark the request as completed."""

        self._completed = self._clock()
        self._has_edit = edit is not None
        self._edit_length = len(edit.new_text) if edit is not None else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_sent(self) -> bool:
        return self._sent

    def mark_sent(self) -> None:
        self._sent = True

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        self._disposed = True

    def build(self) -> tuple[dict[str, str | None], dict[str, float | None]]:
        """Return ``(properties, measurements)`` for the telemetry event."""

        completed = self._completed if self._completed is not None else self._clock()
        properties: dict[str, str | None] = {
            "opportunityId": self._opportunity_id,
            "providerId": self._provider_id,
            "documentUri": self._document_uri,
            "languageId": self._language_id,
            "acceptance": self._acceptance,
            "status": self._status,
            "supersededBy": self._superseded_by,
            "wasShown": "true" if self.was_shown else "false",
            "hasEdit": "true" if self._has_edit else "false",
            "errorCode": self._error_code,
        }
        for name, value in self._engine.properties.items():
            properties.setdefault(f"engine.{name}", value)
        measurements: dict[str, float | None] = {
            "documentLength": float(self._document_length),
            "requestLatencyMs": round((completed - self._started) * 1000.0, 3),
            "editLength": float(self._edit_length) if self._edit_length is not None else None,
            "shownCount": float(self._shown_count),
        }
        for name, value in self._engine.measurements.items():
            measurements.setdefault(f"engine.{name}", value)
        return properties, measurements


@inject(telemetry=TELEMETRY_SERVICE)
class NextEditTelemetrySender:
    """Sends one ``provideInlineEdit`` event per builder."""

    def __init__(self, *, telemetry: TelemetryService) -> None:
        self._telemetry = telemetry

    def send_for_builder(self, builder: NextEditTelemetryBuilder) -> bool:
        """Send ``builder``'s event; returns False if it was already sent or disposed."""

        if builder.is_sent or builder.is_disposed:
            LOGGER.warning(
                "Telemetry for opportunity %s was already finalized; not sending again",
                builder.opportunity_id,
            )
            return False
        properties, measurements = builder.build()
        builder.mark_sent()
        self._telemetry.send_event(EVENT_NAME, properties, measurements)
        LOGGER.debug("Sent %s for opportunity %s (%s)", EVENT_NAME, builder.opportunity_id, builder.status)
        return True
