"""Lifecycle protocols and callback interfaces for components.

This module defines the structural interfaces components can implement to
participate in their own lifecycle. The engine checks them with isinstance(),
so components never need to inherit from them explicitly.

Protocols:
    Initializable: initialize() runs after properties are populated
    Disposable: dispose() runs when the component is destroyed
    ComponentNameAware: receives the name it was registered under
    ClassResolverAware: receives the resolver used for dotted class paths
    ComponentFactoryAware: receives the owning factory
    SmartInitializingComponent: notified once all eager singletons exist

Lifecycle Patterns:
    1. Aware callbacks (name, class resolver, factory)
    2. Before-initialization post-processors
    3. Initializable.initialize(), then custom init methods
    4. After-initialization post-processors
    5. Disposable.dispose(), then the custom destroy method

Example:
    >>> class ConnectionPool:
    ...     def initialize(self):
    ...         self.pool = create_pool()
    ...
    ...     def dispose(self):
    ...         self.pool.close()

Note:
    Coroutine implementations of initialize()/dispose() are run to
    completion with asyncio.run(), so they must not be invoked from inside
    a running event loop.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Protocol, runtime_checkable


@runtime_checkable
class Initializable(Protocol):
    """Protocol for components that need initialization after population."""

    def initialize(self) -> None:
        """Initialize the component once all properties are set."""
        ...


@runtime_checkable
class Disposable(Protocol):
    """Protocol for components that need cleanup on destruction.

    Note:
        Dispose methods should be idempotent; a component may be destroyed
        by its scope and again by an explicit destroy call.
    """

    def dispose(self) -> None:
        """Release the component's resources."""
        ...


@runtime_checkable
class ComponentNameAware(Protocol):
    def set_component_name(self, name: str) -> None: ...


@runtime_checkable
class ClassResolverAware(Protocol):
    def set_class_resolver(self, resolver: Callable[[str], type]) -> None: ...


@runtime_checkable
class ComponentFactoryAware(Protocol):
    def set_component_factory(self, factory: Any) -> None: ...


@runtime_checkable
class SmartInitializingComponent(Protocol):
    """Protocol for singletons notified after eager pre-instantiation ends."""

    def after_singletons_instantiated(self) -> None: ...


class NullComponent:
    """Placeholder stored in caches for a component that resolved to None."""

    _instance: NullComponent | None = None

    def __new__(cls) -> NullComponent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NullComponent"


NULL_COMPONENT = NullComponent()


def call_lifecycle_method(method: Callable[[], Any]) -> Any:
    """Invoke a lifecycle callback, running coroutines to completion."""
    if inspect.iscoroutinefunction(method):
        return asyncio.run(method())
    result = method()
    if inspect.iscoroutine(result):
        return asyncio.run(result)
    return result
