"""Composable validators for untrusted JSON payloads.

Validators check runtime shape only. They never raise: every call returns a
:class:`ValidationResult` holding either the validated content or a
:class:`ValidationFailure` whose path names the offending field.

Example::

    v_user = v_obj({
        "login": v_required(v_string()),
        "name": v_required(v_union(v_string(), v_null())),
    })
    result = v_user.validate(payload)
    if result.error is not None:
        LOGGER.error("Invalid user payload: %s", result.error.message)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Generic, Sequence, TypeVar

__all__ = [
    "ValidationFailure",
    "ValidationResult",
    "Validator",
    "RequiredField",
    "v_string",
    "v_number",
    "v_boolean",
    "v_null",
    "v_enum",
    "v_union",
    "v_array",
    "v_obj",
    "v_required",
]

T = TypeVar("T")
PathPart = str | int


@dataclass(slots=True, frozen=True)
class ValidationFailure:
    """Structured reason describing why a value was rejected."""

    reason: str
    path: tuple[PathPart, ...] = ()

    @property
    def path_text(self) -> str:
        """Return the failure path as ``actor.login`` / ``files[2].status``."""

        text = ""
        for part in self.path:
            if isinstance(part, int):
                text += f"[{part}]"
            else:
                text += f".{part}" if text else part
        return text

    @property
    def message(self) -> str:
        path = self.path_text
        return f"{path}: {self.reason}" if path else self.reason

    def within(self, part: PathPart) -> "ValidationFailure":
        """Return a copy nested under ``part``."""

        return ValidationFailure(self.reason, (part, *self.path))

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True, frozen=True)
class ValidationResult(Generic[T]):
    """Outcome of a validation: ``content`` when ``error`` is ``None``."""

    content: T | None = None
    error: ValidationFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, content: T) -> "ValidationResult[T]":
        return cls(content=content)

    @classmethod
    def failure(cls, reason: str | ValidationFailure) -> "ValidationResult[T]":
        if isinstance(reason, ValidationFailure):
            return cls(error=reason)
        return cls(error=ValidationFailure(reason))


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


class Validator(Generic[T]):
    """Base class for all validators."""

    def validate(self, value: Any) -> ValidationResult[T]:  # pragma: no cover - abstract
        raise NotImplementedError

    def is_valid(self, value: Any) -> bool:
        return self.validate(value).ok


class _TypeValidator(Validator[T]):
    __slots__ = ("_kind",)

    def __init__(self, kind: str) -> None:
        self._kind = kind

    def _matches(self, value: Any) -> bool:  # pragma: no cover - abstract
        raise NotImplementedError

    def validate(self, value: Any) -> ValidationResult[T]:
        if self._matches(value):
            return ValidationResult.success(value)
        return ValidationResult.failure(f"expected {self._kind}, got {_describe(value)}")


class _StringValidator(_TypeValidator[str]):
    def _matches(self, value: Any) -> bool:
        return isinstance(value, str)


class _NumberValidator(_TypeValidator[float]):
    def _matches(self, value: Any) -> bool:
        # bool is an int subclass but never a JSON number
        return isinstance(value, (int, float)) and not isinstance(value, bool)


class _BooleanValidator(_TypeValidator[bool]):
    def _matches(self, value: Any) -> bool:
        return isinstance(value, bool)


class _NullValidator(_TypeValidator[None]):
    def _matches(self, value: Any) -> bool:
        return value is None


class _EnumValidator(Validator[T]):
    __slots__ = ("_values",)

    def __init__(self, values: Sequence[T]) -> None:
        self._values = tuple(values)

    def validate(self, value: Any) -> ValidationResult[T]:
        for allowed in self._values:
            if type(value) is type(allowed) and value == allowed:
                return ValidationResult.success(value)
        options = ", ".join(repr(item) for item in self._values)
        return ValidationResult.failure(f"expected one of {options}, got {value!r}")


class _UnionValidator(Validator[Any]):
    __slots__ = ("_branches",)

    def __init__(self, branches: Sequence[Validator[Any]]) -> None:
        if not branches:
            raise ValueError("v_union requires at least one validator")
        self._branches = tuple(branches)

    def validate(self, value: Any) -> ValidationResult[Any]:
        result: ValidationResult[Any] = ValidationResult.failure("no union branch matched")
        for branch in self._branches:
            result = branch.validate(value)
            if result.ok:
                return result
        return result


class _ArrayValidator(Validator[list[T]]):
    __slots__ = ("_item",)

    def __init__(self, item: Validator[T]) -> None:
        self._item = item

    def validate(self, value: Any) -> ValidationResult[list[T]]:
        if not isinstance(value, (list, tuple)):
            return ValidationResult.failure(f"expected array, got {_describe(value)}")
        items: list[T] = []
        for index, element in enumerate(value):
            result = self._item.validate(element)
            if result.error is not None:
                return ValidationResult.failure(result.error.within(index))
            items.append(result.content)  # type: ignore[arg-type]
        return ValidationResult.success(items)


@dataclass(slots=True, frozen=True)
class RequiredField(Generic[T]):
    """Marks an object field whose absence is a failure."""

    validator: Validator[T]


class _ObjectValidator(Validator[dict[str, Any]]):
    __slots__ = ("_shape",)

    def __init__(self, shape: Mapping[str, "Validator[Any] | RequiredField[Any]"]) -> None:
        self._shape = dict(shape)

    def validate(self, value: Any) -> ValidationResult[dict[str, Any]]:
        if not isinstance(value, Mapping):
            return ValidationResult.failure(f"expected object, got {_describe(value)}")
        content: dict[str, Any] = {}
        for key, field_validator in self._shape.items():
            required = isinstance(field_validator, RequiredField)
            validator = field_validator.validator if required else field_validator
            if key not in value:
                if required:
                    return ValidationResult.failure(ValidationFailure("missing required field", (key,)))
                continue
            result = validator.validate(value[key])
            if result.error is not None:
                return ValidationResult.failure(result.error.within(key))
            content[key] = result.content
        return ValidationResult.success(content)


def v_string() -> Validator[str]:
    return _StringValidator("string")


def v_number() -> Validator[float]:
    return _NumberValidator("number")


def v_boolean() -> Validator[bool]:
    return _BooleanValidator("boolean")


def v_null() -> Validator[None]:
    return _NullValidator("null")


def v_enum(*values: T) -> Validator[T]:
    return _EnumValidator(values)


def v_union(*validators: Validator[Any]) -> Validator[Any]:
    """Accept a value matching any branch; failures report the last branch."""

    return _UnionValidator(validators)


def v_array(item: Validator[T]) -> Validator[list[T]]:
    return _ArrayValidator(item)


def v_obj(shape: Mapping[str, "Validator[Any] | RequiredField[Any]"]) -> Validator[dict[str, Any]]:
    """Validate a mapping field by field.

    Fields wrapped with :func:`v_required` must be present. Bare validators
    describe optional fields: they may be absent, but a present value is
    still validated. Undeclared keys are dropped from the content.
    """

    return _ObjectValidator(shape)


def v_required(validator: Validator[T]) -> RequiredField[T]:
    return RequiredField(validator)
