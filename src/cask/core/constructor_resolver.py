"""Constructor and factory method resolution.

A component class has one implicit constructor, the class itself (its
``__init__`` signature), plus any classmethods marked ``@constructor``.
Constructor autowiring tries the candidates widest first and takes the
first whose every parameter can be bound:

    1. an explicit argument (for prototypes requested with arguments)
    2. a declared constructor argument value (indexed, then named, then generic)
    3. an autowired component (non-simple parameter types only)
    4. the parameter's default value

Candidates are ordered public (no leading underscore) first, then by
descending parameter count; among equal counts declaration order wins.
A candidate that fails to bind with UnsatisfiedDependencyError is skipped
and the failure recorded as a suppressed exception.

The chosen constructor and a reusable argument plan are cached on the
merged definition, so later creations skip resolution.

Example:
    >>> class Repository:
    ...     def __init__(self, url: str):
    ...         self.url = url
    ...
    ...     @constructor
    ...     @classmethod
    ...     def from_settings(cls, settings: Settings) -> Repository:
    ...         return cls(settings.url)
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from loguru import logger

from .analyzer import get_type_hints_safe, is_simple_type, type_name
from .definition import AutowireMode, MergedDefinition, ValueHolder
from .dependency import DependencyDescriptor
from .errors import (
    ComponentCreationError,
    DefinitionStoreError,
    SingletonAlreadyRegisteredError,
    UnsatisfiedDependencyError,
)
from .introspection import Parameter, get_parameters
from .types import NULL_COMPONENT
from .value_resolver import DefinitionValueResolver

if TYPE_CHECKING:
    from .factory import ComponentFactory

F = TypeVar("F", bound=Callable[..., Any])

_CONSTRUCTOR_ATTR = "__cask_constructor__"


def constructor(method: F) -> F:
    """Mark a classmethod as an alternate constructor for autowiring."""
    target = method.__func__ if isinstance(method, classmethod) else method
    setattr(target, _CONSTRUCTOR_ATTR, True)
    return method


def is_constructor(member: Any) -> bool:
    target = member.__func__ if isinstance(member, classmethod) else member
    return getattr(target, _CONSTRUCTOR_ATTR, False)


def candidate_constructors(component_class: type) -> list[Callable[..., Any]]:
    """Return the class itself followed by its ``@constructor`` classmethods."""
    result: list[Callable[..., Any]] = [component_class]
    seen = set()
    for klass in component_class.__mro__:
        for attr_name, member in vars(klass).items():
            if attr_name in seen or not isinstance(member, classmethod):
                continue
            seen.add(attr_name)
            if is_constructor(member):
                result.append(getattr(component_class, attr_name))
    return result


def _constructor_name(candidate: Callable[..., Any]) -> str:
    return candidate.__name__


def _sort_key(candidate: Callable[..., Any]) -> tuple[int, int]:
    public = 0 if not _constructor_name(candidate).startswith("_") else 1
    return (public, -len(get_parameters(candidate)))


# Argument plan entries
_VALUE = "value"
_AUTOWIRED = "autowired"
_SHORTCUT = "shortcut"
_DEFAULT = "default"


@dataclass
class _ArgumentHolder:
    args: list[Any] = field(default_factory=list)
    kwargs: dict[str, Any] = field(default_factory=dict)
    plan: list[tuple[Any, ...]] = field(default_factory=list)
    autowired_names: set[str] = field(default_factory=set)

    def bind(self, parameter: Parameter, value: Any) -> None:
        if parameter.kind is inspect.Parameter.POSITIONAL_ONLY:
            self.args.append(value)
        else:
            self.kwargs[parameter.name] = value

    def bind_default(self, parameter: Parameter) -> None:
        # Positional-only slots cannot be skipped without shifting later arguments
        if parameter.kind is inspect.Parameter.POSITIONAL_ONLY:
            self.args.append(parameter.default)


class ConstructorResolver:
    """Autowires constructors and factory methods for the creation pipeline."""

    def __init__(self, factory: ComponentFactory):
        self.factory = factory

    def autowire_constructor(
        self,
        name: str,
        definition: MergedDefinition,
        chosen: list[Callable[..., Any]] | None = None,
        explicit_args: tuple | None = None,
    ) -> Any:
        """Instantiate a component through the widest satisfiable constructor.

        Args:
            name: Component name
            definition: Merged definition with a resolved target type
            chosen: Candidate constructors determined by post-processors
            explicit_args: Arguments passed to get_component (prototypes)
        """
        if explicit_args is None:
            with definition.constructor_lock:
                cached = definition.resolved_constructor
                plan = definition.prepared_arguments
                resolved = definition.constructor_arguments_resolved
            if cached is not None and resolved:
                holder = self._replay_plan(name, definition, plan)
                return self._instantiate(name, definition, cached, holder)

        component_class = definition.resolved_class
        candidates = list(chosen) if chosen else candidate_constructors(component_class)
        autowiring = bool(chosen) or definition.autowire_mode is AutowireMode.CONSTRUCTOR
        candidates.sort(key=_sort_key)

        values = definition.constructor_args
        min_args = len(explicit_args) if explicit_args is not None else values.min_positional
        resolver = DefinitionValueResolver(self.factory, name, definition)

        causes: list[UnsatisfiedDependencyError] = []
        for candidate in candidates:
            parameters = get_parameters(candidate)
            if len(parameters) < min_args:
                continue
            try:
                if explicit_args is not None:
                    holder = self._explicit_arguments(name, candidate, parameters, explicit_args)
                else:
                    holder = self._create_arguments(
                        name, definition, resolver, parameters, candidate, autowiring
                    )
            except UnsatisfiedDependencyError as ex:
                logger.trace(
                    f"Ignoring constructor {_constructor_name(candidate)}() of component "
                    f"'{name}': {ex}"
                )
                causes.append(ex)
                continue

            if explicit_args is None:
                with definition.constructor_lock:
                    definition.resolved_constructor = candidate
                    definition.prepared_arguments = holder.plan
                    definition.constructor_arguments_resolved = True
            self._register_dependents(name, holder)
            return self._instantiate(name, definition, candidate, holder)

        if causes:
            for cause in causes[:-1]:
                self.factory.singletons.on_suppressed_exception(cause)
            raise causes[-1]
        raise ComponentCreationError(
            name,
            f"Could not resolve matching constructor on class [{type_name(component_class)}] "
            "(hint: specify index/type/name arguments for simple parameters to avoid "
            "type ambiguities)",
        )

    def instantiate_using_factory_method(
        self, name: str, definition: MergedDefinition, explicit_args: tuple | None = None
    ) -> Any:
        """Instantiate a component by calling its factory method."""
        factory_name = definition.factory_component_name
        if factory_name is not None:
            if factory_name == name:
                raise DefinitionStoreError(
                    "factory-component reference points back to the same definition", name
                )
            factory_instance = self.factory.get_component(factory_name)
            if definition.is_singleton and self.factory.singletons.contains_singleton(name):
                raise SingletonAlreadyRegisteredError(
                    name, self.factory.singletons.get_singleton(name)
                )
            self.factory.register_dependent(factory_name, name)
            owner: Any = factory_instance
        else:
            owner = definition.resolved_class

        method_name = definition.factory_method_name
        method = getattr(owner, method_name, None)
        if method is None or not callable(method):
            owner_type = owner if isinstance(owner, type) else type(owner)
            raise ComponentCreationError(
                name,
                f"No factory method '{method_name}' found on [{type_name(owner_type)}]",
            )
        parameters = get_parameters(method)
        if definition.factory_method_return_type is None:
            definition.factory_method_return_type = get_type_hints_safe(method).get("return")

        if explicit_args is not None:
            holder = self._explicit_arguments(name, method, parameters, explicit_args)
        else:
            with definition.constructor_lock:
                plan = definition.prepared_arguments
                resolved = definition.constructor_arguments_resolved
            if resolved:
                holder = self._replay_plan(name, definition, plan)
            else:
                resolver = DefinitionValueResolver(self.factory, name, definition)
                holder = self._create_arguments(
                    name, definition, resolver, parameters, method, autowiring=True
                )
                with definition.constructor_lock:
                    definition.resolved_factory_method = method_name
                    definition.prepared_arguments = holder.plan
                    definition.constructor_arguments_resolved = True
                self._register_dependents(name, holder)

        instance = self.factory.instantiation_strategy.instantiate_with_factory_method(
            name, method, tuple(holder.args), holder.kwargs
        )
        return NULL_COMPONENT if instance is None else instance

    def _instantiate(
        self,
        name: str,
        definition: MergedDefinition,
        candidate: Callable[..., Any],
        holder: _ArgumentHolder,
    ) -> Any:
        return self.factory.instantiation_strategy.instantiate(
            definition, name, self.factory, candidate, tuple(holder.args), holder.kwargs
        )

    def _register_dependents(self, name: str, holder: _ArgumentHolder) -> None:
        for autowired in holder.autowired_names:
            self.factory.register_dependent(autowired, name)
            logger.debug(
                f"Autowiring by type from component name '{name}' via constructor "
                f"to component named '{autowired}'"
            )

    def _explicit_arguments(
        self,
        name: str,
        candidate: Callable[..., Any],
        parameters: tuple[Parameter, ...],
        explicit_args: tuple,
    ) -> _ArgumentHolder:
        required = [p for p in parameters if not p.has_default]
        if len(explicit_args) < len(required) or len(explicit_args) > len(parameters):
            raise UnsatisfiedDependencyError(
                name,
                f"{_constructor_name(candidate)}()",
                f"expected {len(required)}..{len(parameters)} arguments, "
                f"got {len(explicit_args)}",
            )
        holder = _ArgumentHolder()
        for parameter, value in zip(parameters, explicit_args):
            converted = self.factory.converter.convert(value, parameter.type_hint, parameter.name)
            holder.bind(parameter, converted)
        return holder

    def _create_arguments(
        self,
        name: str,
        definition: MergedDefinition,
        resolver: DefinitionValueResolver,
        parameters: tuple[Parameter, ...],
        candidate: Callable[..., Any],
        autowiring: bool,
    ) -> _ArgumentHolder:
        """Bind every parameter of a candidate, recording a reusable plan."""
        values = definition.constructor_args
        holder = _ArgumentHolder()
        used_generic: set[int] = set()
        owner = candidate

        for parameter in parameters:
            value_holder: ValueHolder | None = None
            if not parameter.keyword_only:
                value_holder = values.get_indexed(parameter.index)
            if value_holder is None:
                value_holder = values.get_named(parameter.name)
            if value_holder is None:
                value_holder = values.get_generic(
                    parameter.type_hint if parameter.type_hint is not Any else None, used_generic
                )

            if value_holder is not None:
                value = self._convert_value(name, resolver, parameter, value_holder, owner)
                holder.bind(parameter, value)
                holder.plan.append((_VALUE, parameter, value_holder))
                continue

            descriptor = DependencyDescriptor.for_parameter(parameter, owner)
            if not autowiring or is_simple_type(parameter.type_hint):
                if parameter.has_default:
                    holder.bind_default(parameter)
                    holder.plan.append((_DEFAULT, parameter))
                    continue
                raise UnsatisfiedDependencyError(
                    name,
                    descriptor,
                    "Ambiguous argument values for parameter - did you specify the correct "
                    "component references as arguments?",
                )

            autowired: set[str] = set()
            value = self.factory.resolver.resolve_dependency(descriptor, name, autowired)
            if value is None and parameter.has_default:
                holder.bind_default(parameter)
                holder.plan.append((_DEFAULT, parameter))
                continue
            holder.bind(parameter, value)
            holder.autowired_names |= autowired
            if len(autowired) == 1 and descriptor.collection is None:
                holder.plan.append((_SHORTCUT, parameter, next(iter(autowired)), descriptor))
            else:
                holder.plan.append((_AUTOWIRED, parameter, descriptor))

        return holder

    def _convert_value(
        self,
        name: str,
        resolver: DefinitionValueResolver,
        parameter: Parameter,
        value_holder: ValueHolder,
        owner: Any,
    ) -> Any:
        label = f"constructor argument '{parameter.name}'"
        resolved = resolver.resolve(label, value_holder.value)
        try:
            return self.factory.converter.convert(
                resolved, parameter.type_hint, f"{type_name(owner)}({parameter.name})"
            )
        except ComponentCreationError:
            raise
        except Exception as e:
            raise UnsatisfiedDependencyError(
                name, DependencyDescriptor.for_parameter(parameter, owner), str(e), e
            ) from e

    def _replay_plan(
        self, name: str, definition: MergedDefinition, plan: list[tuple[Any, ...]]
    ) -> _ArgumentHolder:
        """Rebuild arguments from a cached plan; references are re-resolved."""
        holder = _ArgumentHolder(plan=plan)
        resolver = DefinitionValueResolver(self.factory, name, definition)
        for entry in plan:
            kind, parameter = entry[0], entry[1]
            if kind == _DEFAULT:
                holder.bind_default(parameter)
                continue
            if kind == _VALUE:
                value = self._convert_value(
                    name, resolver, parameter, entry[2], definition.resolved_class
                )
            elif kind == _SHORTCUT:
                value = self.factory.get_component(entry[2])
                holder.autowired_names.add(entry[2])
            else:
                autowired: set[str] = set()
                value = self.factory.resolver.resolve_dependency(entry[2], name, autowired)
                holder.autowired_names |= autowired
            holder.bind(parameter, value)
        self._register_dependents(name, holder)
        return holder
