"""The component factory: registration, lookup, creation and destruction.

ComponentFactory ties the engine together. It owns the definition registry,
the singleton registry, the post-processor chain and the creation pipeline,
and exposes the lookup API used by applications and by the engine itself.

Lookup:
    ``get_component(name)`` returns the singleton (creating it on first use),
    a new prototype instance, or the instance held by a custom scope.
    A name prefixed with ``&`` returns a FactoryComponent itself instead of
    its product. Names not defined locally are delegated to the parent factory.

Type queries:
    ``get_type``, ``is_type_match``, ``get_names_for_type`` and
    ``get_components_of_type`` predict component types from definitions
    without creating components, except factory components whose product
    type is only known from an instance.

Example:
    >>> factory = ComponentFactory()
    >>> factory.register("repo", Repository)
    >>> factory.register("svc", UserService)       # __init__(self, repo: Repository)
    >>> factory.get_component("svc").repo is factory.get_component("repo")
    True
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterator

from loguru import logger

from .analyzer import get_type_hints_safe, is_assignable, is_instance_of, type_name
from .config import FactoryConfig
from .conversion import DefaultValueConverter, load_class
from .definition import (
    AutowireMode,
    ComponentDefinition,
    DependencyCheck,
    MergedDefinition,
    ScopeType,
)
from .dependency import DependencyDescriptor
from .disposable import DisposableAdapter
from .errors import (
    CaskError,
    ComponentClassNotFoundError,
    ComponentCreationError,
    ComponentCurrentlyInCreationError,
    ComponentIsAbstractError,
    ComponentIsNotAFactoryError,
    ComponentNotOfRequiredTypeError,
    DefinitionNotFoundError,
    ScopeError,
    SingletonAlreadyRegisteredError,
)
from .factory_components import (
    FACTORY_PREFIX,
    FactoryComponent,
    FactoryComponentRegistry,
    SmartFactoryComponent,
    is_factory_dereference,
    product_type_of,
    transformed_name,
)
from .pipeline import CreationPipeline
from .post_processors import ComponentPostProcessor, PostProcessorChain
from .registry import DefinitionRegistry
from .resolver import DependencyResolver
from .scopes import Scope
from .strategy import SubclassingInstantiationStrategy
from .types import NullComponent, SmartInitializingComponent, call_lifecycle_method


class _ManagedSingletonRegistry(FactoryComponentRegistry):
    """Singleton registry applying the factory's post-processors to factory products."""

    def __init__(self, factory: ComponentFactory):
        super().__init__()
        self._factory = factory

    def post_process_factory_product(self, obj: Any, name: str) -> Any:
        return self._factory.post_processors.apply_after_initialization(obj, name)


class ComponentFactory:
    """Lifecycle engine for named components.

    Attributes:
        config: Factory switches (circular references, overriding, caching)
        parent: Parent factory consulted for names not defined here
        registry: Definition storage and merging
        singletons: Three-tier singleton cache and dependency bookkeeping
        post_processors: Ordered component post-processors
        converter: Converts declared values to injection point types
        instantiation_strategy: Turns constructors and arguments into instances
        resolver: Finds components for injection points
        pipeline: Builds component instances
    """

    def __init__(self, config: FactoryConfig | None = None, parent: ComponentFactory | None = None):
        self.config = config or FactoryConfig()
        self.parent = parent

        self.registry = DefinitionRegistry(self.config)
        self.registry.on_reset = self._reset_definition
        if parent is not None:
            self.registry.parent_lookup = parent.get_merged_definition

        self.singletons = _ManagedSingletonRegistry(self)
        self.post_processors = PostProcessorChain()
        self.converter = DefaultValueConverter()
        self.instantiation_strategy = SubclassingInstantiationStrategy()
        self.resolver = DependencyResolver(self)
        self.pipeline = CreationPipeline(self)

        self.resolvable_dependencies: dict[type, Any] = {}
        self._scopes: dict[str, Scope] = {}
        self._embedded_value_resolvers: list[Callable[[str], str | None]] = []
        self._already_created: set[str] = set()
        self._created_lock = threading.Lock()
        self._prototypes_in_creation = threading.local()

        self.register_resolvable_dependency(ComponentFactory, self)

    @property
    def constructor_resolver(self):
        return self.pipeline.constructor_resolver

    @property
    def class_resolver(self) -> Callable[[str], type]:
        """Resolves dotted class paths to classes."""
        return load_class

    # Registration

    def register_definition(self, name: str, definition: ComponentDefinition) -> None:
        """Register a component definition under a name.

        Raises:
            DefinitionStoreError: If the definition is invalid
            DefinitionOverrideError: If the name is taken and overriding is disabled
        """
        had_singleton = self.singletons.contains_singleton(name)
        replacing = self.registry.contains(name)
        self.registry.register(name, definition)
        # A replaced definition is reset by the registry itself
        if had_singleton and not replacing:
            self.registry.reset(name)

    def register(
        self, name: str, component_class: type | str | None = None, **attributes: Any
    ) -> ComponentDefinition:
        """Register a definition built from a class and definition attributes.

        Example:
            >>> factory.register("cache", Cache, scope="prototype", lazy_init=True)
        """
        definition = ComponentDefinition(component_class, **attributes)
        self.register_definition(name, definition)
        return definition

    def remove_definition(self, name: str) -> None:
        self.registry.remove(name)

    def register_singleton(self, name: str, obj: Any) -> None:
        """Register an already created object as a singleton under a name."""
        self.singletons.register_singleton(name, obj)
        logger.debug(f"Registered singleton '{name}' of type {type(obj).__name__}")

    def register_scope(self, name: str, scope: Scope) -> None:
        if name in (ScopeType.SINGLETON, ScopeType.PROTOTYPE):
            raise ValueError("Cannot replace existing scopes 'singleton' and 'prototype'")
        previous = self._scopes.get(name)
        if previous is not None and previous is not scope:
            logger.debug(f"Replacing scope '{name}' from [{previous!r}] to [{scope!r}]")
        self._scopes[name] = scope

    def get_registered_scope(self, name: str) -> Scope:
        """Return the custom scope registered under a name.

        Raises:
            ScopeError: If no scope is registered under the name
        """
        scope = self._scopes.get(name)
        if scope is None:
            raise ScopeError(f"No scope registered for scope name '{name}'")
        return scope

    @property
    def registered_scope_names(self) -> list[str]:
        return list(self._scopes)

    def register_resolvable_dependency(self, dependency_type: type, value: Any) -> None:
        """Inject ``value`` wherever ``dependency_type`` is required."""
        if not isinstance(value, dependency_type):
            raise ValueError(
                f"Value [{value!r}] does not implement specified dependency type "
                f"[{type_name(dependency_type)}]"
            )
        self.resolvable_dependencies[dependency_type] = value

    def add_post_processor(self, processor: ComponentPostProcessor) -> None:
        self.post_processors.add(processor)

    def add_embedded_value_resolver(self, resolver: Callable[[str], str | None]) -> None:
        """Add a resolver applied to string values, e.g. for placeholder expansion."""
        self._embedded_value_resolvers.append(resolver)

    def resolve_embedded_value(self, value: str) -> str | None:
        result: str | None = value
        for resolver in self._embedded_value_resolvers:
            result = resolver(result)
            if result is None:
                return None
        return result

    def register_converter(self, target_type: Any, converter: Callable[[Any], Any]) -> None:
        self.converter.register_converter(target_type, converter)

    def register_dependent(self, name: str, dependent_name: str) -> None:
        """Record that ``dependent_name`` depends on ``name`` (for destruction order)."""
        self.singletons.register_dependent(transformed_name(name), dependent_name)

    # Lookup

    def get_component(
        self, name: str, required_type: Any = None, *, args: tuple | None = None
    ) -> Any:
        """Return the component registered under a name.

        Args:
            name: Component name; prefix with '&' to get a FactoryComponent itself
            required_type: Type the component must be an instance of
            args: Explicit constructor or factory method arguments (prototypes)

        Returns:
            The component, or None when it resolved to None

        Raises:
            DefinitionNotFoundError: If no component exists under the name
            ComponentNotOfRequiredTypeError: If the component has the wrong type
            ComponentCreationError: If the component cannot be created
        """
        return self._do_get_component(name, required_type, args)

    def _do_get_component(
        self,
        name: str,
        required_type: Any = None,
        args: tuple | None = None,
        type_check_only: bool = False,
    ) -> Any:
        component_name = transformed_name(name)

        shared = self.singletons.get_singleton(component_name)
        if shared is not None and args is None:
            if self.singletons.is_singleton_currently_in_creation(component_name):
                logger.trace(
                    f"Returning eagerly cached instance of singleton component "
                    f"'{component_name}' that is not fully initialized yet - a consequence "
                    "of a circular reference"
                )
            else:
                logger.trace(f"Returning cached instance of singleton component '{component_name}'")
            component = self.get_object_for_instance(shared, name, component_name, None)
            return self._adapt_component_instance(component_name, component, required_type)

        if self.is_prototype_currently_in_creation(component_name):
            raise ComponentCurrentlyInCreationError(component_name)

        if self.parent is not None and not self.contains_definition(component_name):
            return self.parent._do_get_component(name, required_type, args, type_check_only)

        if not type_check_only:
            self._mark_created(component_name)
        try:
            merged = self.get_merged_definition(component_name)
            if merged.abstract:
                raise ComponentIsAbstractError(component_name)
            self._initialize_depends_on(component_name, merged)

            if merged.is_singleton:
                shared = self.singletons.get_or_create(
                    component_name, lambda: self._create_singleton(component_name, merged, args)
                )
                component = self.get_object_for_instance(shared, name, component_name, merged)
            elif merged.is_prototype:
                instance = self._create_prototype(component_name, merged, args)
                component = self.get_object_for_instance(instance, name, component_name, merged)
            else:
                scope = self.get_registered_scope(merged.scope)
                instance = scope.get(
                    component_name, lambda: self._create_prototype(component_name, merged, args)
                )
                component = self.get_object_for_instance(instance, name, component_name, merged)
        except Exception:
            with self._created_lock:
                self._already_created.discard(component_name)
            raise

        return self._adapt_component_instance(component_name, component, required_type)

    def _initialize_depends_on(self, name: str, merged: MergedDefinition) -> None:
        for dependency in merged.depends_on:
            if self.singletons.is_dependent(name, dependency):
                raise ComponentCreationError(
                    name, f"Circular depends-on relationship between '{name}' and '{dependency}'"
                )
            self.register_dependent(dependency, name)
            try:
                self.get_component(dependency)
            except DefinitionNotFoundError as e:
                raise ComponentCreationError(
                    name, f"'{name}' depends on missing component '{dependency}'", e
                ) from e

    def _create_singleton(self, name: str, merged: MergedDefinition, args: tuple | None) -> Any:
        try:
            return self.pipeline.create_component(name, merged, args)
        except SingletonAlreadyRegisteredError:
            raise
        except Exception:
            # Drop the early reference and any dependents created against it
            self.destroy_singleton(name)
            raise

    def _create_prototype(self, name: str, merged: MergedDefinition, args: tuple | None) -> Any:
        in_creation = self._prototype_names()
        in_creation.add(name)
        try:
            return self.pipeline.create_component(name, merged, args)
        finally:
            in_creation.discard(name)

    def _prototype_names(self) -> set[str]:
        names = getattr(self._prototypes_in_creation, "names", None)
        if names is None:
            names = set()
            self._prototypes_in_creation.names = names
        return names

    def is_prototype_currently_in_creation(self, name: str) -> bool:
        """Check if a non-singleton is being created on the current thread."""
        return name in self._prototype_names()

    def is_currently_in_creation(self, name: str) -> bool:
        return self.singletons.is_currently_in_creation(
            name
        ) or self.is_prototype_currently_in_creation(name)

    def _adapt_component_instance(self, name: str, component: Any, required_type: Any) -> Any:
        if isinstance(component, NullComponent):
            return None
        if required_type is not None and not is_instance_of(component, required_type):
            raise ComponentNotOfRequiredTypeError(name, required_type, type(component))
        return component

    def get_object_for_instance(
        self,
        instance: Any,
        name: str,
        component_name: str,
        merged: MergedDefinition | None,
    ) -> Any:
        """Return the exposed object for a raw instance: a factory's product or itself."""
        if is_factory_dereference(name):
            if isinstance(instance, NullComponent):
                return instance
            if not isinstance(instance, FactoryComponent):
                raise ComponentIsNotAFactoryError(component_name, type(instance))
            if merged is not None:
                merged.is_factory_component = True
            return instance

        if not isinstance(instance, FactoryComponent):
            return instance

        if merged is not None:
            merged.is_factory_component = True
        else:
            cached = self.singletons.get_cached_object_for_factory_component(component_name)
            if cached is not None:
                return cached
            if self.contains_definition(component_name):
                merged = self.get_merged_definition(component_name)
        synthetic = merged is not None and merged.synthetic
        return self.singletons.get_object_from_factory_component(
            instance, component_name, not synthetic
        )

    def get_component_by_type(self, required_type: Any) -> Any:
        """Return the single component matching a type.

        Raises:
            DefinitionNotFoundError: If no component matches
            NoUniqueComponentError: If several components match and none is preferred
        """
        descriptor = DependencyDescriptor(declared_type=required_type)
        return self.resolver.do_resolve_dependency(descriptor, None)

    def get_components_of_type(
        self,
        component_type: Any,
        include_non_singletons: bool = True,
        allow_eager_init: bool = True,
    ) -> dict[str, Any]:
        """Return every component matching a type, keyed by name."""
        result: dict[str, Any] = {}
        names = self.get_names_for_type(component_type, include_non_singletons, allow_eager_init)
        for name in names:
            try:
                component = self.get_component(name)
            except ComponentCreationError as e:
                if e.contains(ComponentCurrentlyInCreationError):
                    logger.debug(
                        f"Ignoring match to currently created component '{name}': {e.message}"
                    )
                    self.singletons.on_suppressed_exception(e)
                    continue
                raise
            if component is not None:
                result[name] = component
        return result

    # Definitions

    def contains_definition(self, name: str) -> bool:
        return self.registry.contains(name)

    def get_merged_definition(self, name: str) -> MergedDefinition:
        """Return the merged definition for a name, searching parent factories.

        Raises:
            DefinitionNotFoundError: If no factory in the hierarchy defines the name
        """
        name = transformed_name(name)
        if not self.registry.contains(name) and self.parent is not None:
            return self.parent.get_merged_definition(name)
        return self.registry.get_merged(name)

    def find_merged_definition(self, name: str) -> MergedDefinition | None:
        try:
            return self.get_merged_definition(name)
        except DefinitionNotFoundError:
            return None

    def contains_component(self, name: str) -> bool:
        """Check for a definition or singleton under a name, including parents."""
        component_name = transformed_name(name)
        if self.singletons.contains_singleton(component_name) or self.contains_definition(
            component_name
        ):
            return not is_factory_dereference(name) or self.is_factory_component(name)
        return self.parent is not None and self.parent.contains_component(name)

    def contains_local_component(self, name: str) -> bool:
        component_name = transformed_name(name)
        return self.singletons.contains_singleton(component_name) or self.contains_definition(
            component_name
        )

    @property
    def definition_names(self) -> list[str]:
        return self.registry.names

    @property
    def definition_count(self) -> int:
        return self.registry.count

    def _reset_definition(self, name: str) -> None:
        self.destroy_singleton(name)
        self.post_processors.apply_reset_definition(name)

    def _mark_created(self, name: str) -> None:
        with self._created_lock:
            self._already_created.add(name)

    def has_creation_started(self) -> bool:
        return bool(self._already_created)

    def remove_singleton_if_created_for_type_check_only(self, name: str) -> bool:
        """Drop a singleton that only ever served a type check; True if dropped."""
        with self._created_lock:
            created = name in self._already_created
        if created:
            return False
        self.singletons.remove_singleton(name)
        return True

    # Type queries

    def resolve_component_class(self, definition: MergedDefinition, name: str) -> type | None:
        """Resolve (and cache) the class of a definition.

        Raises:
            ComponentClassNotFoundError: If a dotted class path cannot be imported
        """
        if definition.resolved_class is not None:
            return definition.resolved_class
        class_ref = definition.component_class
        if class_ref is None:
            return None
        if isinstance(class_ref, type):
            component_class = class_ref
        else:
            try:
                component_class = load_class(class_ref)
            except (ImportError, AttributeError) as e:
                raise ComponentClassNotFoundError(name, class_ref, e) from e
        definition.resolved_class = component_class
        return component_class

    def determine_target_type(self, name: str, definition: MergedDefinition) -> Any:
        """Return the type the definition will instantiate, without creating it."""
        target = definition.resolved_target_type
        if target is not None:
            return target
        if definition.factory_method_name is not None:
            target = self._factory_method_type(name, definition)
        elif definition.component_class is not None:
            target = self._class_for_type_match(name, definition)
        elif definition.instance_supplier is not None:
            target = get_type_hints_safe(definition.instance_supplier).get("return")
        if isinstance(target, str):
            target = None
        if target is not None:
            definition.resolved_target_type = target
        return target

    def _class_for_type_match(self, name: str, definition: MergedDefinition) -> type | None:
        if isinstance(definition.component_class, type):
            return definition.component_class
        if not self.config.allow_eager_class_loading:
            return definition.resolved_class
        try:
            return self.resolve_component_class(definition, name)
        except ComponentClassNotFoundError as e:
            logger.debug(f"Ignoring unresolvable class of component '{name}' for type match: {e}")
            return None

    def _factory_method_type(self, name: str, definition: MergedDefinition) -> Any:
        if definition.factory_method_return_type is not None:
            return definition.factory_method_return_type
        if definition.factory_component_name is not None:
            owner = self.get_type(definition.factory_component_name)
        else:
            owner = self._class_for_type_match(name, definition)
        method = getattr(owner, definition.factory_method_name, None) if owner else None
        if method is None:
            return None
        return_type = get_type_hints_safe(method).get("return")
        if return_type is None or isinstance(return_type, str):
            return None
        definition.factory_method_return_type = return_type
        return return_type

    def predict_component_type(self, name: str, definition: MergedDefinition) -> Any:
        """Target type of a definition, as post-processors predict it."""
        target = self.determine_target_type(name, definition)
        if (
            isinstance(target, type)
            and not definition.synthetic
            and self.post_processors.has_instantiation_aware
        ):
            predicted = self.post_processors.predict_type(target, name)
            if predicted is not None:
                return predicted
        return target

    def is_factory_component(self, name: str) -> bool:
        """Check if the component under a name is a FactoryComponent."""
        component_name = transformed_name(name)
        instance = self.singletons.get_singleton(component_name, allow_early_reference=False)
        if instance is not None:
            return isinstance(instance, FactoryComponent)
        if not self.contains_definition(component_name) and self.parent is not None:
            return self.parent.is_factory_component(name)
        merged = self.find_merged_definition(component_name)
        return merged is not None and self._is_factory_definition(component_name, merged)

    def _is_factory_definition(self, name: str, merged: MergedDefinition) -> bool:
        if merged.is_factory_component is None:
            target = self.predict_component_type(name, merged)
            merged.is_factory_component = isinstance(target, type) and issubclass(
                target, FactoryComponent
            )
        return merged.is_factory_component

    def get_type(self, name: str, allow_factory_init: bool = True) -> Any:
        """Return the type of the component under a name, or None if unknown.

        For a FactoryComponent this is its product type; ``&name`` gives the
        factory's own type.
        """
        component_name = transformed_name(name)
        instance = self.singletons.get_singleton(component_name, allow_early_reference=False)
        if instance is not None and not isinstance(instance, NullComponent):
            if isinstance(instance, FactoryComponent) and not is_factory_dereference(name):
                return self.singletons.get_type_for_factory_component(instance)
            return type(instance)

        if not self.contains_definition(component_name) and self.parent is not None:
            return self.parent.get_type(name, allow_factory_init)

        merged = self.find_merged_definition(component_name)
        if merged is None:
            return None
        target = self.predict_component_type(component_name, merged)
        if target is None:
            return None
        if isinstance(target, type) and issubclass(target, FactoryComponent):
            if is_factory_dereference(name):
                return target
            return self._factory_product_type(component_name, merged, target, allow_factory_init)
        return None if is_factory_dereference(name) else target

    def _factory_product_type(
        self, name: str, merged: MergedDefinition, factory_class: type, allow_init: bool
    ) -> Any:
        product_type = product_type_of(factory_class)
        if product_type is not None or not allow_init or not merged.is_singleton:
            return product_type
        if self.singletons.is_singleton_currently_in_creation(name):
            return None
        try:
            factory = self._do_get_component(FACTORY_PREFIX + name, type_check_only=True)
        except ComponentCreationError as e:
            logger.debug(f"Ignoring failed FactoryComponent '{name}' for type check: {e.message}")
            self.singletons.on_suppressed_exception(e)
            return None
        return self.singletons.get_type_for_factory_component(factory)

    def is_type_match(self, name: str, type_to_match: Any, allow_factory_init: bool = True) -> bool:
        """Check if the component under a name is assignable to a type."""
        component_type = self.get_type(name, allow_factory_init)
        return component_type is not None and is_assignable(component_type, type_to_match)

    def get_names_for_type(
        self,
        component_type: Any,
        include_non_singletons: bool = True,
        allow_eager_init: bool = True,
    ) -> list[str]:
        """Return the names of local components matching a type, in registration order.

        Args:
            component_type: Type to match
            include_non_singletons: Also match prototype and custom-scoped components
            allow_eager_init: Allow creating factory components to learn their product type
        """
        result: list[str] = []
        for name in self.registry.names:
            try:
                merged = self.get_merged_definition(name)
            except CaskError as e:
                logger.debug(f"Ignoring definition '{name}' for type match: {e}")
                continue
            if merged.abstract:
                continue
            if (
                not allow_eager_init
                and merged.factory_component_name is not None
                and not self.singletons.contains_singleton(merged.factory_component_name)
            ):
                continue
            if not (include_non_singletons or merged.is_singleton):
                continue

            is_factory = self._is_factory_definition(name, merged)
            if self.is_type_match(name, component_type, allow_eager_init):
                result.append(name)
            elif is_factory and self.is_type_match(FACTORY_PREFIX + name, component_type):
                result.append(FACTORY_PREFIX + name)

        for name in self.singletons.singleton_names:
            if name in self.registry or name in result:
                continue
            instance = self.singletons.get_singleton(name, allow_early_reference=False)
            if instance is None or isinstance(instance, NullComponent):
                continue
            if isinstance(instance, FactoryComponent):
                product_type = self.singletons.get_type_for_factory_component(instance)
                if (include_non_singletons or instance.is_singleton()) and (
                    product_type is not None and is_assignable(product_type, component_type)
                ):
                    result.append(name)
                    continue
                if is_instance_of(instance, component_type):
                    result.append(FACTORY_PREFIX + name)
            elif is_instance_of(instance, component_type):
                result.append(name)
        return result

    def get_names_for_type_including_ancestors(
        self,
        component_type: Any,
        include_non_singletons: bool = True,
        allow_eager_init: bool = True,
    ) -> list[str]:
        result = self.get_names_for_type(component_type, include_non_singletons, allow_eager_init)
        if self.parent is not None:
            inherited = self.parent.get_names_for_type_including_ancestors(
                component_type, include_non_singletons, allow_eager_init
            )
            result.extend(
                name
                for name in inherited
                if name not in result and not self.contains_local_component(name)
            )
        return result

    def is_singleton(self, name: str) -> bool:
        component_name = transformed_name(name)
        instance = self.singletons.get_singleton(component_name, allow_early_reference=False)
        if instance is not None:
            if isinstance(instance, FactoryComponent):
                return is_factory_dereference(name) or instance.is_singleton()
            return True
        if not self.contains_definition(component_name) and self.parent is not None:
            return self.parent.is_singleton(name)
        merged = self.get_merged_definition(component_name)
        if not merged.is_singleton:
            return False
        if self._is_factory_definition(component_name, merged) and not is_factory_dereference(name):
            factory = self.get_component(FACTORY_PREFIX + component_name)
            return factory.is_singleton()
        return True

    def is_prototype(self, name: str) -> bool:
        component_name = transformed_name(name)
        if not self.contains_definition(component_name) and self.parent is not None:
            return self.parent.is_prototype(name)
        merged = self.get_merged_definition(component_name)
        if merged.is_prototype:
            return not is_factory_dereference(name) or self._is_factory_definition(
                component_name, merged
            )
        if is_factory_dereference(name) or not self._is_factory_definition(component_name, merged):
            return False
        factory = self.get_component(FACTORY_PREFIX + component_name)
        if isinstance(factory, SmartFactoryComponent):
            return factory.is_prototype()
        return not factory.is_singleton()

    # Lifecycle

    def preinstantiate_singletons(self) -> None:
        """Create every non-lazy singleton, then notify SmartInitializingComponents."""
        logger.trace(f"Pre-instantiating singletons in {self!r}")
        names = list(self.registry.names)
        for name in names:
            merged = self.get_merged_definition(name)
            if merged.abstract or not merged.is_singleton or merged.is_lazy_init:
                continue
            if self.is_factory_component(name):
                factory = self.get_component(FACTORY_PREFIX + name)
                if isinstance(factory, SmartFactoryComponent) and factory.is_eager_init():
                    self.get_component(name)
            else:
                self.get_component(name)

        for name in names:
            instance = self.singletons.get_singleton(name)
            if isinstance(instance, SmartInitializingComponent):
                logger.trace(f"Invoking after_singletons_instantiated() on component '{name}'")
                call_lifecycle_method(instance.after_singletons_instantiated)

    def autowire_instance(
        self,
        existing: Any,
        mode: AutowireMode = AutowireMode.BY_TYPE,
        dependency_check: bool = False,
    ) -> None:
        """Populate the properties of an externally created object.

        Args:
            existing: Object to populate
            mode: AutowireMode.BY_NAME or AutowireMode.BY_TYPE
            dependency_check: Fail if object-typed properties remain unset
        """
        if mode not in (AutowireMode.BY_NAME, AutowireMode.BY_TYPE, AutowireMode.NO):
            raise ValueError("Just constructor autowiring is not supported for existing objects")
        definition = MergedDefinition.from_definition(
            ComponentDefinition(
                type(existing),
                scope=ScopeType.PROTOTYPE,
                autowire_mode=mode,
                dependency_check=(
                    DependencyCheck.OBJECTS if dependency_check else DependencyCheck.NONE
                ),
            )
        )
        definition.resolved_class = type(existing)
        self.pipeline.populate(type(existing).__qualname__, definition, existing)

    def initialize_component(self, existing: Any, name: str) -> Any:
        """Run aware callbacks, init callbacks and post-processors on an existing object."""
        return self.pipeline.initialize(name, existing, None)

    def destroy_component(self, name: str, instance: Any) -> None:
        """Run the destruction callbacks of a (prototype) instance."""
        merged = self.get_merged_definition(name)
        DisposableAdapter(instance, name, merged, self.post_processors.destruction_aware).destroy()

    def destroy_scoped_component(self, name: str) -> None:
        """Remove a custom-scoped component from its active scope and destroy it."""
        merged = self.get_merged_definition(name)
        if merged.is_singleton or merged.is_prototype:
            raise ValueError(f"Component '{name}' does not have a custom scope")
        instance = self.get_registered_scope(merged.scope).remove(name)
        if instance is not None:
            self.destroy_component(name, instance)

    def destroy_singleton(self, name: str) -> None:
        self.singletons.destroy_singleton(name)

    def destroy_singletons(self) -> None:
        """Destroy every singleton; the factory can create them again afterwards."""
        self.singletons.destroy_singletons()
        with self._created_lock:
            self._already_created.clear()

    def shutdown(self) -> None:
        """Destroy every singleton and reject any further singleton creation."""
        logger.debug(f"Shutting down {self!r}")
        self.singletons.shutdown()

    # Dict-like interface

    def __getitem__(self, name: str) -> Any:
        return self.get_component(name)

    def __setitem__(self, name: str, value: Any) -> None:
        if isinstance(value, ComponentDefinition):
            self.register_definition(name, value)
        elif isinstance(value, (type, str)):
            self.register(name, value)
        else:
            self.register_singleton(name, value)

    def __delitem__(self, name: str) -> None:
        self.remove_definition(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.contains_component(name)

    def __len__(self) -> int:
        return self.registry.count

    def __iter__(self) -> Iterator[str]:
        return iter(self.registry.names)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(definitions={self.registry.names!r}, "
            f"parent={type(self.parent).__name__ if self.parent else None})"
        )
