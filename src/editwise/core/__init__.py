"""Core primitives: validators, errors, ranges and cancellation."""

from .cancellation import CancellationToken, CancellationTokenSource
from .errors import (
    CancellationError,
    ConfigurationError,
    DocumentNotFoundError,
    EditwiseError,
    GraphQLError,
    HttpStatusError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from .ranges import OffsetRange, StringReplacement, offset_to_position, position_to_offset
from .validators import (
    ValidationFailure,
    ValidationResult,
    Validator,
    v_array,
    v_boolean,
    v_enum,
    v_null,
    v_number,
    v_obj,
    v_required,
    v_string,
    v_union,
)

__all__ = [
    # Cancellation
    "CancellationToken",
    "CancellationTokenSource",
    # Errors
    "CancellationError",
    "ConfigurationError",
    "DocumentNotFoundError",
    "EditwiseError",
    "GraphQLError",
    "HttpStatusError",
    "NotFoundError",
    "TransportError",
    "ValidationError",
    # Ranges
    "OffsetRange",
    "StringReplacement",
    "offset_to_position",
    "position_to_offset",
    # Validators
    "ValidationFailure",
    "ValidationResult",
    "Validator",
    "v_array",
    "v_boolean",
    "v_enum",
    "v_null",
    "v_number",
    "v_obj",
    "v_required",
    "v_string",
    "v_union",
]
