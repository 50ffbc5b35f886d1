"""Component definitions: declarative metadata describing how to build a component.

A ComponentDefinition is the single source of truth for how one named
component is built: its class (or a dotted path resolved lazily), scope,
constructor argument values, property values, lifecycle method names,
autowiring policy and dependency ordering hints.

Definitions may inherit from a parent definition by name. Before any
instance is created the inheritance chain is flattened into a
MergedDefinition, which also carries the lazily-filled resolution caches
(resolved class, chosen constructor, factory method return type, the
post-processed flag) guarded by per-definition locks.

Classes:
    ScopeType: Built-in scope names
    AutowireMode: How unset dependencies are filled automatically
    DependencyCheck: Which declared properties must end up populated
    ComponentReference: Value marker pointing at another component
    TypedValue: Raw value converted to a target type on injection
    DefinitionHolder: Nested (inner) definition with an optional name
    ConstructorArgumentValues: Indexed, named and generic constructor args
    PropertyValues: Ordered property name -> value mapping
    LookupOverride, ReplaceOverride: Method overrides applied by subclassing
    ComponentDefinition: Metadata for one component
    MergedDefinition: Flattened definition plus resolution caches

Example:
    >>> definition = ComponentDefinition(
    ...     component_class=UserService,
    ...     constructor_args=ConstructorArgumentValues.of(ComponentReference("repo")),
    ...     property_values=PropertyValues.of(timeout=TypedValue("30", int)),
    ...     init_method_names=("start",),
    ...     destroy_method_name=INFERRED_METHOD,
    ... )
    >>> factory.register_definition("user_service", definition)
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Protocol, runtime_checkable

from typing_extensions import TypeAlias

from .errors import DefinitionValidationError

# Destroy method name meaning "close() or shutdown(), whichever exists"
INFERRED_METHOD = "(inferred)"

ClassSpec: TypeAlias = "type | str | None"


class ScopeType:
    """Core scope types as simple string constants."""

    SINGLETON = "singleton"
    PROTOTYPE = "prototype"
    DEFAULT = ""


class AutowireMode(Enum):
    """How a definition's unset dependencies are filled."""

    NO = "no"
    BY_NAME = "by_name"
    BY_TYPE = "by_type"
    CONSTRUCTOR = "constructor"


class DependencyCheck(Enum):
    """Which writable properties must be populated after autowiring."""

    NONE = "none"
    OBJECTS = "objects"  # Non-simple (component) properties only
    SIMPLE = "simple"  # Simple value properties only
    ALL = "all"


class Role(Enum):
    APPLICATION = 0
    SUPPORT = 1
    INFRASTRUCTURE = 2


@dataclass(frozen=True)
class ComponentReference:
    """Value marker that resolves to another component at injection time."""

    name: str
    to_parent: bool = False


@dataclass(frozen=True)
class TypedValue:
    """A raw value converted to ``target_type`` when it is injected.

    When ``target_type`` is None the declared type of the injection point
    is used.
    """

    value: Any
    target_type: Any = None


@dataclass
class DefinitionHolder:
    """A nested definition used as a value; it becomes an inner component."""

    definition: ComponentDefinition
    name: str | None = None


@dataclass
class ValueHolder:
    """One constructor argument value with optional type and name hints."""

    value: Any
    type: Any = None
    name: str | None = None


class ConstructorArgumentValues:
    """Constructor argument values, positional (indexed), named or generic.

    Indexed values bind to the parameter at that position, named values to
    the parameter of that name, and generic values to the first remaining
    parameter whose declared type matches.
    """

    def __init__(self) -> None:
        self.indexed: dict[int, ValueHolder] = {}
        self.named: dict[str, ValueHolder] = {}
        self.generic: list[ValueHolder] = []

    @classmethod
    def of(cls, *args: Any, **kwargs: Any) -> ConstructorArgumentValues:
        """Build values from positional (indexed) and keyword (named) args."""
        values = cls()
        for index, value in enumerate(args):
            values.add_indexed(index, value)
        for name, value in kwargs.items():
            values.add_named(name, value)
        return values

    def add_indexed(self, index: int, value: Any, type: Any = None) -> None:
        if index < 0:
            raise ValueError("Constructor argument index must not be negative")
        self.indexed[index] = value if isinstance(value, ValueHolder) else ValueHolder(value, type)

    def add_named(self, name: str, value: Any, type: Any = None) -> None:
        self.named[name] = (
            value if isinstance(value, ValueHolder) else ValueHolder(value, type, name)
        )

    def add_generic(self, value: Any, type: Any = None) -> None:
        self.generic.append(value if isinstance(value, ValueHolder) else ValueHolder(value, type))

    def get_indexed(self, index: int) -> ValueHolder | None:
        return self.indexed.get(index)

    def get_named(self, name: str) -> ValueHolder | None:
        return self.named.get(name)

    def get_generic(self, required_type: Any, used: set[int]) -> ValueHolder | None:
        """Return the first unused generic value whose type hint fits."""
        from .analyzer import is_assignable, is_instance_of

        for position, holder in enumerate(self.generic):
            if position in used:
                continue
            if holder.type is not None:
                if required_type is None or is_assignable(holder.type, required_type):
                    used.add(position)
                    return holder
            elif required_type is None or is_instance_of(holder.value, required_type):
                used.add(position)
                return holder
        return None

    def merge(self, other: ConstructorArgumentValues) -> None:
        """Copy all values from ``other``; its indexed/named values win."""
        for index, holder in other.indexed.items():
            self.indexed[index] = copy.copy(holder)
        for name, holder in other.named.items():
            self.named[name] = copy.copy(holder)
        for holder in other.generic:
            if holder not in self.generic:
                self.generic.append(copy.copy(holder))

    @property
    def count(self) -> int:
        return len(self.indexed) + len(self.named) + len(self.generic)

    @property
    def min_positional(self) -> int:
        """Number of positional parameters needed to bind every indexed value."""
        return max(self.indexed) + 1 if self.indexed else 0

    def is_empty(self) -> bool:
        return self.count == 0

    def copy(self) -> ConstructorArgumentValues:
        clone = ConstructorArgumentValues()
        clone.merge(self)
        return clone

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConstructorArgumentValues):
            return NotImplemented
        return (
            self.indexed == other.indexed
            and self.named == other.named
            and self.generic == other.generic
        )

    def __repr__(self) -> str:
        return (
            f"ConstructorArgumentValues(indexed={self.indexed!r}, "
            f"named={self.named!r}, generic={self.generic!r})"
        )


@dataclass
class PropertyValue:
    """A single property assignment.

    ``optional`` skips unknown properties; ``converted`` marks values that are
    already resolved and must be assigned as-is.
    """

    name: str
    value: Any
    optional: bool = False
    converted: bool = False


class PropertyValues:
    """Ordered collection of property values keyed by property name."""

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self._values: dict[str, PropertyValue] = {}
        for name, value in (values or {}).items():
            self.add(name, value)

    @classmethod
    def of(cls, **values: Any) -> PropertyValues:
        return cls(values)

    def add(self, name: str, value: Any, optional: bool = False) -> PropertyValues:
        if isinstance(value, PropertyValue):
            self._values[name] = value
        else:
            self._values[name] = PropertyValue(name, value, optional)
        return self

    def get(self, name: str) -> PropertyValue | None:
        return self._values.get(name)

    def remove(self, name: str) -> None:
        self._values.pop(name, None)

    def contains(self, name: str) -> bool:
        return name in self._values

    def names(self) -> list[str]:
        return list(self._values)

    def merge(self, other: PropertyValues) -> None:
        for pv in other:
            self._values[pv.name] = PropertyValue(pv.name, pv.value, pv.optional)

    def copy(self) -> PropertyValues:
        clone = PropertyValues()
        clone.merge(self)
        return clone

    def is_empty(self) -> bool:
        return not self._values

    def __iter__(self) -> Iterator[PropertyValue]:
        return iter(list(self._values.values()))

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PropertyValues):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"PropertyValues({ {pv.name: pv.value for pv in self}!r})"


@runtime_checkable
class MethodReplacer(Protocol):
    """Reimplements a method on instances produced by a ReplaceOverride."""

    def reimplement(self, obj: Any, method_name: str, args: tuple, kwargs: dict) -> Any: ...


@dataclass(frozen=True)
class LookupOverride:
    """Override a method so it returns a component from the factory.

    With no ``component_name`` the method's return annotation is used to
    look the component up by type.
    """

    method_name: str
    component_name: str | None = None


@dataclass(frozen=True)
class ReplaceOverride:
    """Override a method with an arbitrary MethodReplacer."""

    method_name: str
    replacer: Any


MethodOverride: TypeAlias = "LookupOverride | ReplaceOverride"


@dataclass
class ComponentDefinition:
    """Complete metadata for one component.

    Attributes:
        component_class: Class to instantiate, or a dotted path resolved lazily
        parent_name: Name of a parent definition to inherit from
        scope: "singleton", "prototype", a custom scope name, or "" (inherit)
        abstract: Template-only definition that is never instantiated
        lazy_init: Skip eager pre-instantiation (None = inherit/False)
        autowire_mode: How unset dependencies are filled
        dependency_check: Which writable properties must end up populated
        depends_on: Names that must be created (and destroyed later) first
        autowire_candidate: Whether by-type autowiring may choose this component
        primary: Wins by-type ties among several candidates
        priority: Tie-break priority (lower wins), overrides the class's @priority
        qualifiers: Values matched against Qualifier("...") injection points
        instance_supplier: Callback producing the raw instance
        factory_component_name: Component whose method builds this one
        factory_method_name: Method (on the class or factory component) to call
        constructor_args: Constructor or factory method argument values
        property_values: Property values applied after instantiation
        method_overrides: Lookup/replace overrides applied by subclassing
        init_method_names: Custom init methods called after initialize()
        destroy_method_name: Custom destroy method, or INFERRED_METHOD
        enforce_init_method: Missing init method is an error (else skipped)
        enforce_destroy_method: Missing destroy method is an error (else skipped)
        synthetic: Infrastructure definition that skips post-processors
        role: Application, support or infrastructure
        description: Human readable description
        attributes: Arbitrary metadata
    """

    component_class: ClassSpec = None
    parent_name: str | None = None
    scope: str = ScopeType.DEFAULT
    abstract: bool = False
    lazy_init: bool | None = None
    autowire_mode: AutowireMode = AutowireMode.NO
    dependency_check: DependencyCheck = DependencyCheck.NONE
    depends_on: tuple[str, ...] = ()
    autowire_candidate: bool = True
    primary: bool = False
    priority: int | None = None
    qualifiers: set[str] = field(default_factory=set)
    instance_supplier: Callable[[], Any] | None = None
    factory_component_name: str | None = None
    factory_method_name: str | None = None
    constructor_args: ConstructorArgumentValues = field(default_factory=ConstructorArgumentValues)
    property_values: PropertyValues = field(default_factory=PropertyValues)
    method_overrides: list[MethodOverride] = field(default_factory=list)
    init_method_names: tuple[str, ...] = ()
    destroy_method_name: str | None = None
    enforce_init_method: bool = True
    enforce_destroy_method: bool = True
    synthetic: bool = False
    role: Role = Role.APPLICATION
    description: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.depends_on, str):
            self.depends_on = (self.depends_on,)
        else:
            self.depends_on = tuple(self.depends_on)
        if isinstance(self.init_method_names, str):
            self.init_method_names = (self.init_method_names,)
        else:
            self.init_method_names = tuple(self.init_method_names)
        if isinstance(self.constructor_args, (list, tuple)):
            self.constructor_args = ConstructorArgumentValues.of(*self.constructor_args)
        if isinstance(self.property_values, dict):
            self.property_values = PropertyValues(self.property_values)
        self.qualifiers = set(self.qualifiers)

    @property
    def is_singleton(self) -> bool:
        return self.scope in (ScopeType.SINGLETON, ScopeType.DEFAULT)

    @property
    def is_prototype(self) -> bool:
        return self.scope == ScopeType.PROTOTYPE

    @property
    def is_lazy_init(self) -> bool:
        return bool(self.lazy_init)

    @property
    def has_class(self) -> bool:
        return isinstance(self.component_class, type)

    @property
    def class_name(self) -> str | None:
        if isinstance(self.component_class, type):
            return f"{self.component_class.__module__}.{self.component_class.__qualname__}"
        return self.component_class

    def has_constructor_args(self) -> bool:
        return not self.constructor_args.is_empty()

    def validate(self) -> None:
        """Validate metadata that does not need the class to be resolved."""
        if self.method_overrides and self.factory_method_name:
            raise DefinitionValidationError(
                "Cannot combine factory method with container-generated method overrides: "
                "the factory method must create the concrete instance."
            )
        if self.factory_component_name and not self.factory_method_name:
            raise DefinitionValidationError(
                "A factory component name requires a factory method name"
            )

    def override_from(self, other: ComponentDefinition) -> None:
        """Apply every value explicitly set on ``other`` (a child) onto self."""
        if other.component_class is not None:
            self.component_class = other.component_class
        if other.scope:
            self.scope = other.scope
        self.abstract = other.abstract
        if other.lazy_init is not None:
            self.lazy_init = other.lazy_init
        if other.factory_component_name is not None:
            self.factory_component_name = other.factory_component_name
        if other.factory_method_name is not None:
            self.factory_method_name = other.factory_method_name
        self.role = other.role
        self.constructor_args.merge(other.constructor_args)
        self.property_values.merge(other.property_values)
        self.method_overrides.extend(
            o for o in other.method_overrides if o not in self.method_overrides
        )
        if other.instance_supplier is not None:
            self.instance_supplier = other.instance_supplier
        self.autowire_mode = other.autowire_mode
        self.dependency_check = other.dependency_check
        if other.depends_on:
            self.depends_on = other.depends_on
        self.autowire_candidate = other.autowire_candidate
        self.primary = other.primary
        if other.priority is not None:
            self.priority = other.priority
        self.qualifiers |= other.qualifiers
        if other.init_method_names:
            self.init_method_names = other.init_method_names
            self.enforce_init_method = other.enforce_init_method
        if other.destroy_method_name is not None:
            self.destroy_method_name = other.destroy_method_name
            self.enforce_destroy_method = other.enforce_destroy_method
        self.synthetic = other.synthetic
        if other.description is not None:
            self.description = other.description
        self.attributes.update(other.attributes)

    def copy(self) -> ComponentDefinition:
        """Copy with independent argument/property/override containers."""
        clone = copy.copy(self)
        clone.constructor_args = self.constructor_args.copy()
        clone.property_values = self.property_values.copy()
        clone.method_overrides = list(self.method_overrides)
        clone.qualifiers = set(self.qualifiers)
        clone.attributes = dict(self.attributes)
        return clone


@dataclass(eq=False)
class MergedDefinition(ComponentDefinition):
    """A definition with its parent chain flattened, plus resolution caches.

    The cache fields below are filled lazily during creation. Constructor
    caches are guarded by ``constructor_lock`` and the one-time
    merged-definition post-processing by ``post_processing_lock``; both are
    per-definition and distinct from the global singleton lock.
    """

    stale: bool = field(default=False, init=False, repr=False)
    resolved_class: type | None = field(default=None, init=False, repr=False)
    resolved_target_type: Any = field(default=None, init=False, repr=False)
    factory_method_return_type: Any = field(default=None, init=False, repr=False)
    resolved_factory_method: Any = field(default=None, init=False, repr=False)
    resolved_constructor: Any = field(default=None, init=False, repr=False)
    constructor_arguments_resolved: bool = field(default=False, init=False, repr=False)
    prepared_arguments: Any = field(default=None, init=False, repr=False)
    post_processed: bool = field(default=False, init=False, repr=False)
    # None = unknown, True = a short-circuit instance was produced, False = none
    before_instantiation_resolved: bool | None = field(default=None, init=False, repr=False)
    is_factory_component: bool | None = field(default=None, init=False, repr=False)
    generated_class: type | None = field(default=None, init=False, repr=False)
    method_overrides_validated: bool = field(default=False, init=False, repr=False)
    externally_managed_init_methods: set[str] = field(default_factory=set, init=False, repr=False)
    externally_managed_destroy_methods: set[str] = field(
        default_factory=set, init=False, repr=False
    )
    post_processing_lock: Any = field(default_factory=threading.Lock, init=False, repr=False)
    constructor_lock: Any = field(default_factory=threading.RLock, init=False, repr=False)

    @classmethod
    def from_definition(cls, definition: ComponentDefinition) -> MergedDefinition:
        """Create a merged definition from a plain or merged definition."""
        merged = cls()
        merged.component_class = definition.component_class
        merged.parent_name = None
        merged.scope = definition.scope
        merged.abstract = definition.abstract
        merged.lazy_init = definition.lazy_init
        merged.autowire_mode = definition.autowire_mode
        merged.dependency_check = definition.dependency_check
        merged.depends_on = definition.depends_on
        merged.autowire_candidate = definition.autowire_candidate
        merged.primary = definition.primary
        merged.priority = definition.priority
        merged.qualifiers = set(definition.qualifiers)
        merged.instance_supplier = definition.instance_supplier
        merged.factory_component_name = definition.factory_component_name
        merged.factory_method_name = definition.factory_method_name
        merged.constructor_args = definition.constructor_args.copy()
        merged.property_values = definition.property_values.copy()
        merged.method_overrides = list(definition.method_overrides)
        merged.init_method_names = definition.init_method_names
        merged.destroy_method_name = definition.destroy_method_name
        merged.enforce_init_method = definition.enforce_init_method
        merged.enforce_destroy_method = definition.enforce_destroy_method
        merged.synthetic = definition.synthetic
        merged.role = definition.role
        merged.description = definition.description
        merged.attributes = dict(definition.attributes)
        return merged

    def copy_caches_from(self, previous: MergedDefinition) -> None:
        """Carry type caches over from a stale merged definition of the same class."""
        if previous.component_class != self.component_class:
            return
        if previous.factory_method_name != self.factory_method_name:
            return
        self.resolved_class = previous.resolved_class
        self.resolved_target_type = previous.resolved_target_type
        self.factory_method_return_type = previous.factory_method_return_type
        self.is_factory_component = previous.is_factory_component

    def register_externally_managed_init_method(self, name: str) -> None:
        self.externally_managed_init_methods.add(name)

    def is_externally_managed_init_method(self, name: str) -> bool:
        return name in self.externally_managed_init_methods

    def register_externally_managed_destroy_method(self, name: str) -> None:
        self.externally_managed_destroy_methods.add(name)

    def is_externally_managed_destroy_method(self, name: str) -> bool:
        return name in self.externally_managed_destroy_methods

    def validate_method_overrides(self, resolved_class: type) -> None:
        """Check every method override names a method on ``resolved_class``."""
        for override in self.method_overrides:
            method = getattr(resolved_class, override.method_name, None)
            if method is None or not callable(method):
                raise DefinitionValidationError(
                    f"Invalid method override: no method with name '{override.method_name}' "
                    f"on class [{resolved_class.__qualname__}]"
                )
        self.method_overrides_validated = True
