"""Decorator-driven lifecycle callbacks.

``@post_construct`` marks methods to run after property population (before
the Initializable and custom init callbacks); ``@pre_destroy`` marks methods
to run when the component is destroyed (before dispose() and the custom
destroy method).

Both are handled by LifecycleAnnotationPostProcessor, which the
ComponentContext registers by default. The methods it handles are recorded
on the merged definition as externally managed, so a method named both by
a decorator and by the definition is only invoked once.

Example:
    >>> class Cache:
    ...     @post_construct
    ...     def warm_up(self):
    ...         self.entries = load_entries()
    ...
    ...     @pre_destroy
    ...     def flush(self):
    ...         save_entries(self.entries)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from loguru import logger

from .errors import ComponentCreationError
from .ordering import LOWEST_PRECEDENCE, PriorityOrdered
from .post_processors import DestructionAwarePostProcessor, MergedDefinitionPostProcessor
from .types import call_lifecycle_method

if TYPE_CHECKING:
    from .definition import MergedDefinition

F = TypeVar("F", bound=Callable[..., Any])

_POST_CONSTRUCT_ATTR = "__cask_post_construct__"
_PRE_DESTROY_ATTR = "__cask_pre_destroy__"


def post_construct(method: F) -> F:
    """Mark a method to be called once the component is populated."""
    setattr(method, _POST_CONSTRUCT_ATTR, True)
    return method


def pre_destroy(method: F) -> F:
    """Mark a method to be called when the component is destroyed."""
    setattr(method, _PRE_DESTROY_ATTR, True)
    return method


@dataclass(frozen=True)
class LifecycleMetadata:
    init_methods: tuple[str, ...]
    destroy_methods: tuple[str, ...]


def _find_lifecycle_methods(component_class: type) -> LifecycleMetadata:
    """Collect decorated method names, base classes first."""
    init_methods: list[str] = []
    destroy_methods: list[str] = []
    for klass in reversed(component_class.__mro__):
        for attr_name, member in vars(klass).items():
            if not callable(member):
                continue
            if getattr(member, _POST_CONSTRUCT_ATTR, False) and attr_name not in init_methods:
                init_methods.append(attr_name)
            if getattr(member, _PRE_DESTROY_ATTR, False) and attr_name not in destroy_methods:
                destroy_methods.insert(0, attr_name)
    return LifecycleMetadata(tuple(init_methods), tuple(destroy_methods))


class LifecycleAnnotationPostProcessor(
    MergedDefinitionPostProcessor, DestructionAwarePostProcessor, PriorityOrdered
):
    """Invokes ``@post_construct`` and ``@pre_destroy`` methods."""

    def __init__(self) -> None:
        self._metadata: dict[type, LifecycleMetadata] = {}
        self._lock = threading.Lock()

    def get_order(self) -> int:
        return LOWEST_PRECEDENCE - 3

    def find_metadata(self, component_class: type) -> LifecycleMetadata:
        metadata = self._metadata.get(component_class)
        if metadata is None:
            with self._lock:
                metadata = self._metadata.get(component_class)
                if metadata is None:
                    metadata = _find_lifecycle_methods(component_class)
                    self._metadata[component_class] = metadata
        return metadata

    def post_process_merged_definition(
        self, definition: MergedDefinition, component_class: type, name: str
    ) -> None:
        metadata = self.find_metadata(component_class)
        for method_name in metadata.init_methods:
            definition.register_externally_managed_init_method(method_name)
        for method_name in metadata.destroy_methods:
            definition.register_externally_managed_destroy_method(method_name)

    def before_initialization(self, component: Any, name: str) -> Any:
        metadata = self.find_metadata(type(component))
        for method_name in metadata.init_methods:
            logger.trace(f"Invoking @post_construct method '{method_name}' on component '{name}'")
            try:
                call_lifecycle_method(getattr(component, method_name))
            except Exception as e:
                raise ComponentCreationError(
                    name, f"Invocation of @post_construct method '{method_name}' failed", e
                ) from e
        return component

    def before_destruction(self, component: Any, name: str) -> None:
        metadata = self.find_metadata(type(component))
        for method_name in metadata.destroy_methods:
            logger.trace(f"Invoking @pre_destroy method '{method_name}' on component '{name}'")
            try:
                call_lifecycle_method(getattr(component, method_name))
            except Exception as e:
                logger.opt(exception=e).warning(
                    f"Invocation of @pre_destroy method '{method_name}' failed on "
                    f"component '{name}': {e}"
                )

    def requires_destruction(self, component: Any) -> bool:
        return bool(self.find_metadata(type(component)).destroy_methods)
