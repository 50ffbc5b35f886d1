"""Destruction callbacks for components.

A DisposableAdapter is registered for every singleton (or custom-scoped
component) that needs teardown. On destruction it runs, in order:

    1. before_destruction() of every destruction-aware post-processor
    2. dispose(), when the component implements Disposable
    3. the definition's destroy method; "(inferred)" means close(), else shutdown()

Each step logs and swallows its own failure so the remaining steps still run.
"""

from __future__ import annotations

from typing import Any, Callable

from loguru import logger

from .definition import INFERRED_METHOD, MergedDefinition
from .errors import DefinitionValidationError
from .post_processors import DestructionAwarePostProcessor
from .types import Disposable, NullComponent, call_lifecycle_method

_INFERRED_CANDIDATES = ("close", "shutdown")


def _infer_destroy_method(component: Any) -> str | None:
    for candidate in _INFERRED_CANDIDATES:
        if callable(getattr(component, candidate, None)):
            return candidate
    return None


def _destroy_method_name(component: Any, definition: MergedDefinition) -> str | None:
    name = definition.destroy_method_name
    if name == INFERRED_METHOD:
        if isinstance(component, Disposable):
            return None
        return _infer_destroy_method(component)
    return name or None


def has_destroy_method(component: Any, definition: MergedDefinition) -> bool:
    if isinstance(component, NullComponent):
        return False
    if isinstance(component, Disposable):
        return True
    return _destroy_method_name(component, definition) is not None


def requires_destruction(
    component: Any,
    definition: MergedDefinition,
    processors: tuple[DestructionAwarePostProcessor, ...],
) -> bool:
    """Check if a component needs a DisposableAdapter."""
    if isinstance(component, NullComponent):
        return False
    if has_destroy_method(component, definition):
        return True
    return any(p.requires_destruction(component) for p in processors)


class DisposableAdapter:
    """Runs all destruction callbacks of one component instance."""

    def __init__(
        self,
        component: Any,
        name: str,
        definition: MergedDefinition,
        processors: tuple[DestructionAwarePostProcessor, ...] = (),
    ):
        self.component = component
        self.name = name
        self.invoke_dispose = isinstance(
            component, Disposable
        ) and not definition.is_externally_managed_destroy_method("dispose")
        self.processors = tuple(p for p in processors if p.requires_destruction(component))

        self.destroy_method: Callable[[], Any] | None = None
        method_name = _destroy_method_name(component, definition)
        if (
            method_name is not None
            and not (self.invoke_dispose and method_name == "dispose")
            and not definition.is_externally_managed_destroy_method(method_name)
        ):
            method = getattr(component, method_name, None)
            if callable(method):
                self.destroy_method = method
            elif definition.enforce_destroy_method:
                raise DefinitionValidationError(
                    f"Could not find a destroy method named '{method_name}' "
                    f"on component with name '{name}'"
                )
            else:
                logger.debug(
                    f"Skipping missing optional destroy method '{method_name}' "
                    f"of component '{name}'"
                )
        self.destroy_method_name = method_name

    def destroy(self) -> None:
        for processor in self.processors:
            try:
                processor.before_destruction(self.component, self.name)
            except Exception as e:
                logger.opt(exception=e).warning(
                    f"{type(processor).__name__} failed before destruction of "
                    f"component '{self.name}': {e}"
                )

        if self.invoke_dispose:
            logger.trace(f"Invoking dispose() on component with name '{self.name}'")
            try:
                call_lifecycle_method(self.component.dispose)
            except Exception as e:
                logger.opt(exception=e).warning(
                    f"Invocation of dispose method failed on component with name "
                    f"'{self.name}': {e}"
                )

        if self.destroy_method is not None:
            logger.trace(
                f"Invoking custom destroy method '{self.destroy_method_name}' on component "
                f"with name '{self.name}'"
            )
            try:
                call_lifecycle_method(self.destroy_method)
            except Exception as e:
                logger.opt(exception=e).warning(
                    f"Custom destroy method '{self.destroy_method_name}' on component with "
                    f"name '{self.name}' threw an exception: {e}"
                )

    def __call__(self) -> None:
        self.destroy()
