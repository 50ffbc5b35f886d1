"""Three-tier singleton cache with circular reference resolution.

The SingletonRegistry guarantees at most one live instance per singleton
name and lets singleton cycles resolve through early references.

Cache tiers (a name is held by at most one tier at any moment):
    singletons: fully initialized instances
    early: instantiated but not yet populated/initialized instances
    factories: suspended callbacks producing the early reference

Promotion is one-directional (factory -> early -> singleton). A name is
removed from all three tiers together on destruction or creation failure.

Locking:
    One re-entrant lock guards every tier and the dependency bookkeeping.
    ``get_or_create`` holds it for the whole ``factory()`` call, so singleton
    creation is serialized across the registry. The lock is re-entrant
    because creating one singleton recursively creates its dependencies on
    the same thread.

Example:
    >>> registry = SingletonRegistry()
    >>> service = registry.get_or_create("service", lambda: Service())
    >>> registry.get_or_create("service", lambda: Service()) is service
    True
"""

from __future__ import annotations

import threading
from typing import Any, Callable

from loguru import logger

from .errors import (
    SUPPRESSED_EXCEPTIONS_LIMIT,
    ComponentCreationError,
    ComponentCreationNotAllowedError,
    ComponentCurrentlyInCreationError,
    SingletonAlreadyRegisteredError,
)


class SingletonRegistry:
    """Shared registry for singleton instances and their dependency graph.

    Besides the three cache tiers it tracks:
        - which names are currently in creation (to detect cycles)
        - dependents and dependencies between names (to order destruction)
        - contained (inner) components of each component
        - disposable adapters to run on destruction
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._singletons: dict[str, Any] = {}
        self._early: dict[str, Any] = {}
        self._factories: dict[str, Callable[[], Any]] = {}
        self._registered: dict[str, None] = {}

        self._in_creation: set[str] = set()
        self._in_creation_check_exclusions: set[str] = set()
        self._suppressed: list[BaseException] | None = None

        self._destroying = False
        self._shut_down = False
        self._disposables: dict[str, Any] = {}
        self._contained: dict[str, set[str]] = {}
        self._dependents: dict[str, set[str]] = {}
        self._dependencies: dict[str, set[str]] = {}

    @property
    def mutex(self) -> threading.RLock:
        """The lock guarding all singleton state."""
        return self._lock

    # Registration

    def register_singleton(self, name: str, obj: Any) -> None:
        """Register an externally created object as a fully initialized singleton.

        Raises:
            SingletonAlreadyRegisteredError: If the name is already bound
        """
        if obj is None:
            raise ValueError("Singleton object must not be None")
        with self._lock:
            existing = self._singletons.get(name)
            if existing is not None:
                raise SingletonAlreadyRegisteredError(name, existing)
            self.add_singleton(name, obj)

    def add_singleton(self, name: str, obj: Any) -> None:
        """Promote an object into the fully initialized tier."""
        with self._lock:
            self._singletons[name] = obj
            self._factories.pop(name, None)
            self._early.pop(name, None)
            self._registered[name] = None

    def add_singleton_factory(self, name: str, factory: Callable[[], Any]) -> None:
        """Expose a callback producing the early reference for a singleton in creation."""
        with self._lock:
            if name not in self._singletons:
                self._factories[name] = factory
                self._early.pop(name, None)
                self._registered[name] = None

    def remove_singleton(self, name: str) -> None:
        """Remove a name from all three tiers."""
        with self._lock:
            self._singletons.pop(name, None)
            self._factories.pop(name, None)
            self._early.pop(name, None)
            self._registered.pop(name, None)

    # Lookup

    def get_singleton(self, name: str, allow_early_reference: bool = True) -> Any:
        """Return the registered object for a name, or None.

        Early references are only consulted for names currently in creation.
        With ``allow_early_reference`` the singleton factory is invoked (once)
        and its result promoted to the early tier.
        """
        obj = self._singletons.get(name)
        if obj is None and self.is_singleton_currently_in_creation(name):
            obj = self._early.get(name)
            if obj is None and allow_early_reference:
                with self._lock:
                    obj = self._singletons.get(name)
                    if obj is None:
                        obj = self._early.get(name)
                        if obj is None:
                            factory = self._factories.get(name)
                            if factory is not None:
                                obj = factory()
                                self._early[name] = obj
                                del self._factories[name]
        return obj

    def get_or_create(self, name: str, factory: Callable[[], Any]) -> Any:
        """Return the singleton for a name, creating it with ``factory`` if needed.

        Raises:
            ComponentCreationNotAllowedError: If the registry is being destroyed
            ComponentCurrentlyInCreationError: If the name is already in creation
        """
        obj = self._singletons.get(name)
        if obj is not None:
            return obj

        with self._lock:
            obj = self._singletons.get(name)
            if obj is not None:
                return obj

            if self._destroying or self._shut_down:
                raise ComponentCreationNotAllowedError(name)
            logger.trace(f"Creating shared instance of singleton component '{name}'")

            self.before_singleton_creation(name)
            new_singleton = False
            record_suppressed = self._suppressed is None
            if record_suppressed:
                self._suppressed = []
            try:
                obj = factory()
                new_singleton = True
            except SingletonAlreadyRegisteredError:
                # Produced elsewhere in the meantime: hand out the existing object
                obj = self._singletons.get(name)
                if obj is None:
                    raise
            except ComponentCreationError as ex:
                if record_suppressed:
                    for suppressed in self._suppressed or ():
                        ex.add_related_cause(suppressed)
                raise
            finally:
                if record_suppressed:
                    self._suppressed = None
                self.after_singleton_creation(name)

            if new_singleton:
                self.add_singleton(name, obj)
            return obj

    def on_suppressed_exception(self, ex: BaseException) -> None:
        """Record an exception swallowed while a top-level singleton is being created."""
        with self._lock:
            if self._suppressed is not None and len(self._suppressed) < SUPPRESSED_EXCEPTIONS_LIMIT:
                self._suppressed.append(ex)

    def contains_singleton(self, name: str) -> bool:
        return name in self._singletons

    @property
    def singleton_names(self) -> list[str]:
        with self._lock:
            return list(self._registered)

    @property
    def singleton_count(self) -> int:
        with self._lock:
            return len(self._registered)

    # In-creation tracking

    def set_currently_in_creation(self, name: str, in_creation: bool) -> None:
        """Include or exclude a name from in-creation checks."""
        with self._lock:
            if in_creation:
                self._in_creation_check_exclusions.discard(name)
            else:
                self._in_creation_check_exclusions.add(name)

    def is_currently_in_creation(self, name: str) -> bool:
        return (
            name not in self._in_creation_check_exclusions
            and self.is_singleton_currently_in_creation(name)
        )

    def is_singleton_currently_in_creation(self, name: str) -> bool:
        return name in self._in_creation

    def before_singleton_creation(self, name: str) -> None:
        """Mark a name as in creation, failing fast if it already is."""
        with self._lock:
            if name in self._in_creation_check_exclusions:
                return
            if name in self._in_creation:
                raise ComponentCurrentlyInCreationError(name)
            self._in_creation.add(name)

    def after_singleton_creation(self, name: str) -> None:
        with self._lock:
            if name not in self._in_creation_check_exclusions:
                self._in_creation.discard(name)

    # Dependency bookkeeping

    def register_disposable(self, name: str, disposable: Any) -> None:
        with self._lock:
            self._disposables[name] = disposable

    def register_contained(self, contained_name: str, containing_name: str) -> None:
        """Record an inner component, destroyed together with its container."""
        with self._lock:
            contained = self._contained.setdefault(containing_name, set())
            if contained_name in contained:
                return
            contained.add(contained_name)
        self.register_dependent(contained_name, containing_name)

    def register_dependent(self, name: str, dependent_name: str) -> None:
        """Record that ``dependent_name`` depends on ``name``."""
        with self._lock:
            self._dependents.setdefault(name, set()).add(dependent_name)
            self._dependencies.setdefault(dependent_name, set()).add(name)

    def is_dependent(self, name: str, dependent_name: str) -> bool:
        """Check if ``dependent_name`` depends on ``name``, directly or transitively."""
        with self._lock:
            return self._is_dependent(name, dependent_name, set())

    def _is_dependent(self, name: str, dependent_name: str, seen: set[str]) -> bool:
        if name in seen:
            return False
        dependents = self._dependents.get(name)
        if not dependents:
            return False
        if dependent_name in dependents:
            return True
        seen.add(name)
        return any(self._is_dependent(d, dependent_name, seen) for d in dependents)

    def has_dependents(self, name: str) -> bool:
        return bool(self._dependents.get(name))

    def get_dependents(self, name: str) -> list[str]:
        with self._lock:
            return sorted(self._dependents.get(name, ()))

    def get_dependencies(self, name: str) -> list[str]:
        with self._lock:
            return sorted(self._dependencies.get(name, ()))

    # Destruction

    def destroy_singletons(self) -> None:
        """Destroy every singleton, disposables in reverse registration order."""
        logger.trace(f"Destroying singletons in {self!r}")
        with self._lock:
            self._destroying = True
            names = list(self._disposables)

        for name in reversed(names):
            self.destroy_singleton(name)

        with self._lock:
            self._contained.clear()
            self._dependents.clear()
            self._dependencies.clear()
            self._clear_singleton_cache()

    def shutdown(self) -> None:
        """Permanently reject new singletons, then destroy the existing ones."""
        with self._lock:
            self._shut_down = True
        self.destroy_singletons()

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    def _clear_singleton_cache(self) -> None:
        self._singletons.clear()
        self._early.clear()
        self._factories.clear()
        self._registered.clear()
        self._destroying = False

    def destroy_singleton(self, name: str) -> None:
        """Remove a singleton and destroy it along with its dependents.

        Never raises: destruction failures are logged and teardown continues.
        """
        self.remove_singleton(name)
        with self._lock:
            disposable = self._disposables.pop(name, None)
        self._destroy_component(name, disposable)

    def _destroy_component(self, name: str, disposable: Any) -> None:
        with self._lock:
            dependents = self._dependents.pop(name, set())
        if dependents:
            logger.trace(
                f"Retrieved dependent components for component '{name}': {sorted(dependents)}"
            )
        for dependent in sorted(dependents):
            self.destroy_singleton(dependent)

        if disposable is not None:
            try:
                disposable.destroy()
            except Exception as e:
                logger.opt(exception=e).warning(
                    f"Destruction of component with name '{name}' threw an exception: {e}"
                )

        with self._lock:
            contained = self._contained.pop(name, set())
        for contained_name in sorted(contained):
            self.destroy_singleton(contained_name)

        with self._lock:
            for key in list(self._dependents):
                remaining = self._dependents[key]
                remaining.discard(name)
                if not remaining:
                    del self._dependents[key]
            self._dependencies.pop(name, None)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(singletons={self.singleton_names!r})"
