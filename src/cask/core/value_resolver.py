"""Resolution of values declared on definitions.

Constructor argument values and property values are resolved right before
injection:

    ComponentReference      -> the referenced component (parent factory if to_parent)
    DefinitionHolder        -> a new inner component created from the nested definition
    ComponentDefinition     -> same, under a generated name
    TypedValue              -> embedded value resolvers applied, then converted
    list/tuple/set/dict     -> resolved element-wise
    anything else           -> returned unchanged

Inner components are registered as contained by the outer component, so
they are destroyed together with it.
"""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Any

from .definition import (
    ComponentDefinition,
    ComponentReference,
    DefinitionHolder,
    MergedDefinition,
    TypedValue,
)
from .errors import CaskError, ComponentCreationError, DefinitionNotFoundError
from .types import NullComponent

if TYPE_CHECKING:
    from .factory import ComponentFactory

_inner_ids = itertools.count(1)

INNER_COMPONENT_PREFIX = "(inner component)#"


class DefinitionValueResolver:
    """Resolves the values of one definition while its component is being created."""

    def __init__(self, factory: ComponentFactory, name: str, definition: MergedDefinition):
        self.factory = factory
        self.name = name
        self.definition = definition

    def resolve(self, label: str, value: Any) -> Any:
        """Resolve a declared value.

        Args:
            label: Description of the injection point for error messages
            value: Declared value
        """
        if isinstance(value, ComponentReference):
            return self.resolve_reference(label, value)
        if isinstance(value, DefinitionHolder):
            return self.resolve_inner(label, value.name, value.definition)
        if isinstance(value, ComponentDefinition):
            return self.resolve_inner(label, None, value)
        if isinstance(value, TypedValue):
            return self.resolve_typed_value(label, value)
        if isinstance(value, list):
            return [self.resolve(f"{label}[{i}]", item) for i, item in enumerate(value)]
        if isinstance(value, tuple):
            return tuple(self.resolve(f"{label}[{i}]", item) for i, item in enumerate(value))
        if isinstance(value, (set, frozenset)):
            return type(value)(self.resolve(label, item) for item in value)
        if isinstance(value, dict):
            return {
                self.resolve(label, k): self.resolve(f"{label}[{k!r}]", v) for k, v in value.items()
            }
        return value

    def resolve_reference(self, label: str, reference: ComponentReference) -> Any:
        try:
            if reference.to_parent:
                parent = self.factory.parent
                if parent is None:
                    raise DefinitionNotFoundError(
                        reference.name,
                        message=f"Cannot resolve reference to component '{reference.name}' "
                        "in parent factory: no parent factory available",
                    )
                component = parent.get_component(reference.name)
            else:
                component = self.factory.get_component(reference.name)
                self.factory.register_dependent(reference.name, self.name)
        except ComponentCreationError:
            raise
        except CaskError as e:
            raise ComponentCreationError(
                self.name,
                f"Cannot resolve reference to component '{reference.name}' while setting {label}",
                e,
            ) from e
        return None if isinstance(component, NullComponent) else component

    def resolve_inner(
        self, label: str, inner_name: str | None, inner_definition: ComponentDefinition
    ) -> Any:
        """Create an inner component from a nested definition."""
        if inner_name is None:
            inner_name = f"{INNER_COMPONENT_PREFIX}{next(_inner_ids)}"
        try:
            merged = self.factory.registry.merge(inner_name, inner_definition, self.definition)
            self.factory.singletons.register_contained(inner_name, self.name)
            for dependency in merged.depends_on:
                self.factory.register_dependent(dependency, inner_name)
                self.factory.get_component(dependency)
            inner = self.factory.pipeline.create_component(inner_name, merged)
            inner = self.factory.get_object_for_instance(inner, inner_name, inner_name, merged)
        except ComponentCreationError:
            raise
        except CaskError as e:
            raise ComponentCreationError(
                self.name, f"Cannot create inner component '{inner_name}' while setting {label}", e
            ) from e
        return None if isinstance(inner, NullComponent) else inner

    def resolve_typed_value(self, label: str, typed: TypedValue) -> Any:
        value = typed.value
        if isinstance(value, str):
            value = self.factory.resolve_embedded_value(value)
        else:
            value = self.resolve(label, value)
        if typed.target_type is None:
            return value
        return self.factory.converter.convert(value, typed.target_type, f"{self.name}.{label}")
