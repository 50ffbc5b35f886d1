"""Injection point descriptors.

A DependencyDescriptor describes one place a dependency is injected: a
constructor or factory method parameter, or a property. The resolver uses
it to find candidates by type, apply qualifiers, decide whether a missing
dependency is an error, and fall back to the parameter or property name
when several candidates match.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .analyzer import (
    collection_kind,
    get_optional_inner,
    get_qualifier,
    is_optional,
    strip_annotated,
    type_name,
)
from .introspection import Parameter


@dataclass
class DependencyDescriptor:
    """One injection point.

    Attributes:
        declared_type: Type hint as declared (may be Optional/Annotated/collection)
        name: Parameter or property name, used as a tie-break hint
        required: Whether a missing dependency is an error
        owner: Class or callable declaring the injection point
        parameter: Constructor/factory parameter, when this is one
        eager: Resolve immediately (False would allow lazy proxies)
    """

    declared_type: Any
    name: str | None = None
    required: bool = True
    owner: Any = None
    parameter: Parameter | None = None
    eager: bool = True

    def __post_init__(self) -> None:
        if is_optional(self.declared_type):
            self.required = False

    @classmethod
    def for_parameter(cls, parameter: Parameter, owner: Any = None) -> DependencyDescriptor:
        return cls(
            declared_type=parameter.type_hint,
            name=parameter.name,
            required=not parameter.has_default,
            owner=owner,
            parameter=parameter,
        )

    @classmethod
    def for_property(
        cls, name: str, declared_type: Any, owner: Any = None, required: bool = True
    ) -> DependencyDescriptor:
        return cls(declared_type=declared_type, name=name, required=required, owner=owner)

    @property
    def dependency_type(self) -> Any:
        """Declared type with Optional and Annotated stripped."""
        base, _ = strip_annotated(get_optional_inner(self.declared_type))
        return base

    @property
    def qualifier(self) -> str | None:
        return get_qualifier(self.declared_type)

    @property
    def collection(self) -> tuple[Any, Any] | None:
        """(origin, element_type) when this injection point collects components."""
        return collection_kind(self.declared_type)

    @property
    def is_property(self) -> bool:
        return self.parameter is None

    def describe(self) -> str:
        owner = type_name(self.owner) if self.owner is not None else "?"
        kind = "property" if self.is_property else "parameter"
        return f"{kind} '{self.name}' of {owner} (type {type_name(self.dependency_type)})"

    def __repr__(self) -> str:
        return self.describe()
