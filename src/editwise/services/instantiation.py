"""Capability composition root.

Capabilities are registered against typed :class:`ServiceIdentifier` keys on
an :class:`InstantiationServiceBuilder`. Sealing the builder yields an
:class:`InstantiationService` that constructs consumers on demand, resolving
their declared dependencies lazily and exactly once.

Example:
    >>> FETCHER = ServiceIdentifier("fetcher")
    >>> @inject(fetcher=FETCHER)
    ... class Client:
    ...     def __init__(self, base_url, *, fetcher): ...
    >>> builder = InstantiationServiceBuilder()
    >>> builder.define(FETCHER, SyncDescriptor(HttpxFetcher))
    >>> client = builder.seal().create_instance(Client, "https://api.github.com")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Generic, Mapping, TypeVar, overload

from ..core.errors import ConfigurationError

__all__ = [
    "ServiceIdentifier",
    "SyncDescriptor",
    "InstantiationServiceBuilder",
    "InstantiationService",
    "inject",
    "service_dependencies",
]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
_DEPENDENCIES_ATTR = "__service_dependencies__"


class ServiceIdentifier(Generic[T]):
    """Typed key naming one capability contract."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        if not name:
            raise ValueError("service identifiers require a name")
        self.name = name

    def __repr__(self) -> str:
        return f"ServiceIdentifier({self.name!r})"

    def __str__(self) -> str:
        return self.name


@dataclass(slots=True, frozen=True)
class SyncDescriptor(Generic[T]):
    """Deferred construction recipe: ``ctor(*static_arguments, **services)``."""

    ctor: Callable[..., T]
    static_arguments: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "static_arguments", tuple(self.static_arguments))


def inject(**dependencies: ServiceIdentifier[Any]) -> Callable[[T], T]:
    """Declare the capabilities a class (or factory) receives by keyword."""

    def decorator(target: T) -> T:
        inherited = dict(getattr(target, _DEPENDENCIES_ATTR, {}))
        inherited.update(dependencies)
        setattr(target, _DEPENDENCIES_ATTR, inherited)
        return target

    return decorator


def service_dependencies(ctor: Callable[..., Any]) -> dict[str, ServiceIdentifier[Any]]:
    """Return the keyword → identifier map declared with :func:`inject`."""

    return dict(getattr(ctor, _DEPENDENCIES_ATTR, {}))


Binding = Any  # constant instance or SyncDescriptor


class InstantiationServiceBuilder:
    """Mutable registry of capability bindings."""

    def __init__(self, entries: Mapping[ServiceIdentifier[Any], Binding] | None = None) -> None:
        self._entries: dict[ServiceIdentifier[Any], Binding] = dict(entries or {})
        self._sealed = False

    def define(self, identifier: ServiceIdentifier[T], binding: "T | SyncDescriptor[T]") -> None:
        """Register ``binding`` for ``identifier``, replacing any earlier one."""

        if self._sealed:
            raise ConfigurationError(f"Cannot define {identifier} after the builder was sealed")
        if identifier in self._entries:
            LOGGER.debug("Overriding binding for %s", identifier)
        self._entries[identifier] = binding

    def has(self, identifier: ServiceIdentifier[Any]) -> bool:
        return identifier in self._entries

    def seal(self) -> "InstantiationService":
        """Freeze the registry and return a resolver for it.

        Raises:
            ConfigurationError: if the descriptor graph contains a cycle.
        """

        if self._sealed:
            raise ConfigurationError("InstantiationServiceBuilder was already sealed")
        self._check_for_cycles()
        self._sealed = True
        return InstantiationService(dict(self._entries))

    def _check_for_cycles(self) -> None:
        done: set[ServiceIdentifier[Any]] = set()

        def visit(identifier: ServiceIdentifier[Any], chain: list[ServiceIdentifier[Any]]) -> None:
            if identifier in done:
                return
            if identifier in chain:
                raise ConfigurationError(
                    f"Circular dependency: {_format_chain([*chain, identifier])}",
                )
            binding = self._entries.get(identifier)
            if isinstance(binding, SyncDescriptor):
                chain.append(identifier)
                for dependency in service_dependencies(binding.ctor).values():
                    visit(dependency, chain)
                chain.pop()
            done.add(identifier)

        for identifier in list(self._entries):
            visit(identifier, [])


class InstantiationService:
    """Sealed resolver producing memoized capability singletons."""

    def __init__(self, entries: Mapping[ServiceIdentifier[Any], Binding]) -> None:
        self._entries: dict[ServiceIdentifier[Any], Binding] = dict(entries)
        self._instances: dict[ServiceIdentifier[Any], Any] = {}
        self._created: list[Any] = []
        self._resolving: list[ServiceIdentifier[Any]] = []
        self._lock = RLock()
        self._disposed = False

    def has(self, identifier: ServiceIdentifier[Any]) -> bool:
        return identifier in self._entries

    def get(self, identifier: ServiceIdentifier[T]) -> T:
        """Resolve ``identifier`` to its singleton."""

        self._ensure_alive()
        with self._lock:
            return self._resolve(identifier)

    @overload
    def create_instance(self, ctor: SyncDescriptor[T], *args: Any) -> T: ...

    @overload
    def create_instance(self, ctor: Callable[..., T], *args: Any) -> T: ...

    def create_instance(self, ctor: Any, *args: Any) -> Any:
        """Construct ``ctor`` with ``args`` plus its declared capabilities.

        Positional arguments come first (a descriptor's static arguments
        before ``args``); each declared capability is passed by keyword.
        """

        self._ensure_alive()
        with self._lock:
            if isinstance(ctor, SyncDescriptor):
                return self._construct(ctor.ctor, (*ctor.static_arguments, *args))
            return self._construct(ctor, args)

    def dispose(self) -> None:
        """Dispose singletons constructed by this service, newest first."""

        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            created = list(reversed(self._created))
            self._created.clear()
            self._instances.clear()
        for instance in created:
            closer = getattr(instance, "dispose", None) or getattr(instance, "close", None)
            if not callable(closer):
                continue
            try:
                closer()
            except Exception:
                LOGGER.exception("Failed to dispose %s", type(instance).__name__)

    def _ensure_alive(self) -> None:
        if self._disposed:
            raise ConfigurationError("InstantiationService has been disposed")

    def _construct(self, ctor: Callable[..., Any], args: tuple[Any, ...]) -> Any:
        services = {
            name: self._resolve(identifier)
            for name, identifier in service_dependencies(ctor).items()
        }
        return ctor(*args, **services)

    def _resolve(self, identifier: ServiceIdentifier[T]) -> T:
        if identifier in self._instances:
            return self._instances[identifier]
        if identifier not in self._entries:
            requested_by = f" (requested by {_format_chain(self._resolving)})" if self._resolving else ""
            raise ConfigurationError(f"No binding defined for {identifier}{requested_by}")
        binding = self._entries[identifier]
        if not isinstance(binding, SyncDescriptor):
            self._instances[identifier] = binding
            return binding
        if identifier in self._resolving:
            raise ConfigurationError(
                f"Circular dependency: {_format_chain([*self._resolving, identifier])}",
            )
        self._resolving.append(identifier)
        try:
            instance = self._construct(binding.ctor, binding.static_arguments)
        finally:
            self._resolving.pop()
        self._instances[identifier] = instance
        self._created.append(instance)
        LOGGER.debug("Resolved %s -> %s", identifier, type(instance).__name__)
        return instance


def _format_chain(chain: list[ServiceIdentifier[Any]]) -> str:
    return " -> ".join(str(item) for item in chain)
