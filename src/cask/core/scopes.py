"""Custom component scopes.

Besides the built-in singleton and prototype scopes, a factory can delegate
instance management to any object implementing the ``Scope`` protocol,
registered under a name with ``ComponentFactory.register_scope``.

Classes:
    Scope: Protocol for custom scope implementations
    ContextScope: Scope backed by contextvars, active inside ``activate()``
    ScopeActivation: Context manager entering/exiting a ContextScope

Scope Lifecycle:
    1. Scope Entry: ``with scope.activate():`` (or ``async with``)
    2. Component Resolution: instances cached within the active scope
    3. Scope Exit: destruction callbacks run in reverse creation order

Example:
    >>> request_scope = ContextScope("request")
    >>> factory.register_scope("request", request_scope)
    >>> factory.register_definition(
    ...     "request_context", ComponentDefinition(RequestContext, scope="request")
    ... )
    >>> with request_scope.activate():
    ...     ctx1 = factory.get_component("request_context")
    ...     ctx2 = factory.get_component("request_context")
    ...     assert ctx1 is ctx2
    >>> # ctx1 is destroyed here

Thread Safety:
    - ContextScope keeps its instances in a ContextVar
    - Each thread/task activating the scope has isolated instances
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from typing import Any, Callable, Protocol, runtime_checkable

from loguru import logger

from .errors import ScopeError


@runtime_checkable
class Scope(Protocol):
    """Protocol for custom scopes."""

    def get(self, name: str, object_factory: Callable[[], Any]) -> Any:
        """Return the scoped object for a name, creating it with object_factory if absent."""
        ...

    def remove(self, name: str) -> Any:
        """Remove and return the scoped object for a name (None if absent)."""
        ...

    def register_destruction_callback(self, name: str, callback: Callable[[], None]) -> None:
        """Register a callback to run when the scoped object is destroyed."""
        ...


class _ScopeState:
    def __init__(self) -> None:
        self.instances: dict[str, Any] = {}
        self.callbacks: dict[str, Callable[[], None]] = {}


class ContextScope:
    """Scope that uses contextvars for isolated storage per thread or task."""

    def __init__(self, name: str):
        self.name = name
        self._state: ContextVar[_ScopeState | None] = ContextVar(f"scope_{name}", default=None)

    @property
    def is_active(self) -> bool:
        return self._state.get() is not None

    def _current(self) -> _ScopeState:
        state = self._state.get()
        if state is None:
            raise ScopeError(f"Scope '{self.name}' is not active")
        return state

    def get(self, name: str, object_factory: Callable[[], Any]) -> Any:
        state = self._current()
        obj = state.instances.get(name)
        if obj is None:
            obj = object_factory()
            state.instances[name] = obj
        return obj

    def remove(self, name: str) -> Any:
        state = self._current()
        state.callbacks.pop(name, None)
        return state.instances.pop(name, None)

    def register_destruction_callback(self, name: str, callback: Callable[[], None]) -> None:
        self._current().callbacks[name] = callback

    def activate(self) -> ScopeActivation:
        return ScopeActivation(self)

    def _enter(self) -> Token:
        return self._state.set(_ScopeState())

    def _exit(self, token: Token) -> None:
        state = self._state.get()
        self._state.reset(token)
        if state is None:
            return
        for name, callback in reversed(list(state.callbacks.items())):
            try:
                callback()
            except Exception as e:
                logger.opt(exception=e).warning(
                    f"Destruction callback for scoped component '{name}' in scope "
                    f"'{self.name}' threw an exception: {e}"
                )
        state.instances.clear()
        state.callbacks.clear()


class ScopeActivation:
    """Context manager for entering/exiting a ContextScope."""

    def __init__(self, scope: ContextScope):
        self.scope = scope
        self._token: Token | None = None

    def __enter__(self) -> ContextScope:
        self._token = self.scope._enter()
        return self.scope

    def __exit__(self, *args) -> None:
        self.scope._exit(self._token)

    async def __aenter__(self) -> ContextScope:
        return self.__enter__()

    async def __aexit__(self, *args) -> None:
        self.__exit__(*args)
