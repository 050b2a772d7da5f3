"""Error taxonomy shared across the editwise packages.

Every error carries a machine-readable ``code`` and a ``details`` mapping so
hosts can report failures without parsing messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar, Sequence

if TYPE_CHECKING:
    from .validators import ValidationFailure

__all__ = [
    "EditwiseError",
    "ConfigurationError",
    "ValidationError",
    "NotFoundError",
    "DocumentNotFoundError",
    "TransportError",
    "HttpStatusError",
    "GraphQLError",
    "CancellationError",
]


class EditwiseError(Exception):
    """Base class for all editwise errors."""

    code: ClassVar[str] = "editwise_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = {"code": self.code}
        self.details.update({key: value for key, value in details.items() if value is not None})

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for logs and telemetry."""

        payload: dict[str, Any] = {"error": self.code, "message": self.message}
        extra = {key: value for key, value in self.details.items() if key != "code"}
        if extra:
            payload["details"] = extra
        return payload


class ConfigurationError(EditwiseError):
    """Raised when capabilities cannot be wired together."""

    code = "configuration_error"


class ValidationError(EditwiseError):
    """Raised when an external payload does not match its declared shape."""

    code = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        failure: "ValidationFailure | None" = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(
            message,
            operation=operation,
            path=failure.path_text if failure is not None and failure.path else None,
        )
        self.failure = failure
        self.operation = operation


class NotFoundError(EditwiseError):
    """Raised when a must-exist resource is unknown."""

    code = "not_found"


class DocumentNotFoundError(NotFoundError):
    """Raised when the workspace does not know a document identity."""

    code = "document_not_found"

    def __init__(self, document_id: str) -> None:
        super().__init__("DocumentNotFound", document_id=document_id)
        self.document_id = document_id


class TransportError(EditwiseError):
    """Network level failure classified through the fetcher's predicates.

    ``kind`` is one of ``abort``, ``disconnected`` or ``fetcher``.
    """

    code = "transport_error"

    def __init__(self, message: str, *, kind: str = "fetcher", route: str | None = None) -> None:
        super().__init__(message, kind=kind, route=route)
        self.kind = kind
        self.route = route


class HttpStatusError(EditwiseError):
    """Raised for an unhandled non-2xx response."""

    code = "http_status"

    def __init__(self, status: int, *, route: str | None = None, message: str | None = None) -> None:
        super().__init__(message or f"Request failed with status {status}", status=status, route=route)
        self.status = status
        self.route = route


class GraphQLError(EditwiseError):
    """Raised when a GraphQL envelope carries ``errors`` entries."""

    code = "graphql_error"

    def __init__(self, messages: Sequence[str]) -> None:
        joined = "; ".join(messages) or "GraphQL request failed"
        super().__init__(joined, messages=list(messages))
        self.messages = list(messages)


class CancellationError(EditwiseError):
    """Raised when a cooperative cancellation request stops an operation."""

    code = "cancelled"

    def __init__(self, message: str = "Operation cancelled") -> None:
        super().__init__(message)
