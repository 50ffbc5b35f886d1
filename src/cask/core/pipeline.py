"""The creation pipeline: how one component instance is built.

Creating a component runs these stages in order:

    1. Resolve the class (dotted paths are imported lazily)
    2. Give instantiation-aware post-processors a chance to return a
       substitute; a substitute skips everything but after-initialization
    3. Instantiate through constructor autowiring, the factory method, the
       instance supplier or the plain constructor
    4. Post-process the merged definition (once per merged definition)
    5. Expose an early reference for singletons in creation
    6. Populate properties (explicit values, by-name/by-type autowiring,
       dependency checks)
    7. Initialize: aware callbacks, before-initialization, initialize(),
       custom init methods, after-initialization
    8. Reconcile the early reference with the final object
    9. Register destruction callbacks

Any failure after class resolution surfaces as a single ComponentCreationError
carrying the component name; creation errors raised for nested components
pass through unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from .analyzer import is_class_var, is_optional, is_simple_type
from .config import RawInjectionPolicy
from .constructor_resolver import ConstructorResolver, candidate_constructors
from .definition import (
    AutowireMode,
    DependencyCheck,
    MergedDefinition,
    PropertyValue,
    PropertyValues,
)
from .dependency import DependencyDescriptor
from .disposable import DisposableAdapter, requires_destruction
from .errors import (
    ComponentCreationError,
    ComponentCurrentlyInCreationError,
    DefinitionValidationError,
    SingletonAlreadyRegisteredError,
    UnsatisfiedDependencyError,
)
from .introspection import ComponentWrapper, get_parameters
from .ordering import PriorityOrdered
from .types import (
    NULL_COMPONENT,
    ClassResolverAware,
    ComponentFactoryAware,
    ComponentNameAware,
    Initializable,
    NullComponent,
    call_lifecycle_method,
)
from .value_resolver import DefinitionValueResolver

if TYPE_CHECKING:
    from .factory import ComponentFactory


class CreationPipeline:
    """Builds, populates and initializes component instances for a factory."""

    def __init__(self, factory: ComponentFactory):
        self.factory = factory
        self.constructor_resolver = ConstructorResolver(factory)

    @property
    def post_processors(self):
        return self.factory.post_processors

    def create_component(
        self, name: str, definition: MergedDefinition, args: tuple | None = None
    ) -> Any:
        """Create a fully initialized instance for a merged definition.

        Args:
            name: Component name
            definition: Merged definition
            args: Explicit constructor or factory method arguments

        Returns:
            The exposed object (possibly wrapped by post-processors)

        Raises:
            ComponentClassNotFoundError: If the class cannot be resolved
            ComponentCreationError: If any later stage fails
        """
        logger.trace(f"Creating instance of component '{name}'")
        component_class = self.factory.resolve_component_class(definition, name)
        if (
            component_class is not None
            and definition.method_overrides
            and not definition.method_overrides_validated
        ):
            definition.validate_method_overrides(component_class)

        try:
            shortcut = self.resolve_before_instantiation(name, definition)
        except ComponentCreationError:
            raise
        except Exception as e:
            raise ComponentCreationError(
                name, "Post-processing before instantiation of component failed", e
            ) from e
        if shortcut is not None:
            return shortcut

        try:
            instance = self.do_create(name, definition, args)
        except (ComponentCreationError, SingletonAlreadyRegisteredError):
            raise
        except Exception as e:
            raise ComponentCreationError(
                name, "Unexpected exception during component creation", e
            ) from e
        logger.trace(f"Finished creating instance of component '{name}'")
        return instance

    def resolve_before_instantiation(self, name: str, definition: MergedDefinition) -> Any:
        """Let instantiation-aware post-processors short-circuit creation."""
        instance = None
        if definition.before_instantiation_resolved is not False:
            if not definition.synthetic and self.post_processors.has_instantiation_aware:
                target = self.factory.determine_target_type(name, definition)
                if target is not None:
                    instance = self.post_processors.apply_before_instantiation(target, name)
                    if instance is not None:
                        instance = self.post_processors.apply_after_initialization(instance, name)
            definition.before_instantiation_resolved = instance is not None
        return instance

    def do_create(
        self, name: str, definition: MergedDefinition, args: tuple | None = None
    ) -> Any:
        instance = self.create_instance(name, definition, args)

        with definition.post_processing_lock:
            if not definition.post_processed:
                try:
                    self.post_processors.apply_merged_definition(definition, type(instance), name)
                except Exception as e:
                    raise ComponentCreationError(
                        name, "Post-processing of merged definition failed", e
                    ) from e
                definition.post_processed = True

        early_exposure = (
            definition.is_singleton
            and self.factory.config.allow_circular_references
            and self.factory.singletons.is_singleton_currently_in_creation(name)
        )
        if early_exposure:
            logger.trace(
                f"Eagerly caching component '{name}' to allow for resolving "
                "potential circular references"
            )
            raw = instance
            self.factory.singletons.add_singleton_factory(
                name, lambda: self.get_early_reference(name, definition, raw)
            )

        self.populate(name, definition, instance)
        exposed = self.initialize(name, instance, definition)

        if early_exposure:
            early = self.factory.singletons.get_singleton(name, allow_early_reference=False)
            if early is not None:
                if exposed is instance:
                    exposed = early
                elif exposed is not early and self.factory.singletons.has_dependents(name):
                    self._check_raw_injection(name)

        self.register_disposable_if_necessary(name, exposed, definition)
        return exposed

    def _check_raw_injection(self, name: str) -> None:
        """Apply the raw-injection policy to dependents that got the unwrapped object."""
        policy = self.factory.config.raw_injection_policy
        dependents = self.factory.singletons.get_dependents(name)
        if policy is RawInjectionPolicy.STRICT:
            offending = dependents
        else:
            offending = [
                d
                for d in dependents
                if not self.factory.remove_singleton_if_created_for_type_check_only(d)
            ]
        if not offending:
            return
        if policy is RawInjectionPolicy.TOLERATE:
            logger.warning(
                f"Component '{name}' was injected into [{', '.join(offending)}] in its raw "
                "version as part of a circular reference, but has eventually been wrapped"
            )
            return
        raise ComponentCurrentlyInCreationError(
            name,
            f"Component with name '{name}' has been injected into other components "
            f"[{', '.join(offending)}] in its raw version as part of a circular reference, "
            "but has eventually been wrapped. This means that said other components do "
            "not use the final version of the component.",
        )

    def get_early_reference(self, name: str, definition: MergedDefinition, instance: Any) -> Any:
        if definition.synthetic or not self.post_processors.has_instantiation_aware:
            return instance
        return self.post_processors.get_early_reference(instance, name)

    # Instantiation

    def create_instance(
        self, name: str, definition: MergedDefinition, args: tuple | None = None
    ) -> Any:
        """Instantiate the raw object for a definition."""
        component_class = definition.resolved_class

        if definition.factory_method_name is not None:
            return self.constructor_resolver.instantiate_using_factory_method(
                name, definition, args
            )

        if component_class is None:
            if definition.instance_supplier is not None:
                return self.obtain_from_supplier(name, definition)
            raise ComponentCreationError(
                name, "No component class, factory method or instance supplier specified"
            )

        chosen = self.post_processors.determine_candidate_constructors(component_class, name)
        if (
            chosen
            or definition.autowire_mode is AutowireMode.CONSTRUCTOR
            or definition.has_constructor_args()
            or args is not None
        ):
            return self.constructor_resolver.autowire_constructor(name, definition, chosen, args)

        if definition.instance_supplier is not None:
            return self.obtain_from_supplier(name, definition)

        candidates = candidate_constructors(component_class)
        if len(candidates) > 1 or get_parameters(component_class):
            # A class whose construction needs arguments is autowired implicitly
            return self.constructor_resolver.autowire_constructor(name, definition, candidates)

        return self.factory.instantiation_strategy.instantiate(definition, name, self.factory)

    def obtain_from_supplier(self, name: str, definition: MergedDefinition) -> Any:
        logger.trace(f"Obtaining instance of component '{name}' from its instance supplier")
        instance = definition.instance_supplier()
        return NULL_COMPONENT if instance is None else instance

    # Population

    def populate(self, name: str, definition: MergedDefinition, instance: Any) -> None:
        """Apply explicit and autowired property values to a raw instance."""
        if isinstance(instance, NullComponent):
            if not definition.property_values.is_empty():
                raise ComponentCreationError(name, "Cannot apply property values to None instance")
            return

        processors = self.post_processors
        if not definition.synthetic and processors.has_instantiation_aware:
            if not processors.apply_after_instantiation(instance, name):
                return

        wrapper = ComponentWrapper(instance, self.factory.converter)
        values = definition.property_values
        if definition.autowire_mode in (AutowireMode.BY_NAME, AutowireMode.BY_TYPE):
            values = values.copy()
            if definition.autowire_mode is AutowireMode.BY_NAME:
                self.autowire_by_name(name, definition, wrapper, values)
            else:
                self.autowire_by_type(name, definition, wrapper, values)

        if not definition.synthetic and processors.has_instantiation_aware:
            result = processors.apply_process_properties(values, instance, name)
            if result is None:
                return
            values = result

        if definition.dependency_check is not DependencyCheck.NONE:
            self.check_dependencies(name, definition, wrapper, values)

        if values:
            self.apply_property_values(name, definition, wrapper, values)

    def unsatisfied_non_simple_properties(
        self, wrapper: ComponentWrapper, values: PropertyValues
    ) -> list[str]:
        """Writable properties that are unset, not given explicitly and not simple."""
        result = []
        for prop_name, descriptor in wrapper.properties().items():
            hint = descriptor.type_hint
            if prop_name in values or isinstance(hint, str) or is_class_var(hint):
                continue
            if is_simple_type(hint) or wrapper.is_set(prop_name):
                continue
            result.append(prop_name)
        return result

    def autowire_by_name(
        self,
        name: str,
        definition: MergedDefinition,
        wrapper: ComponentWrapper,
        values: PropertyValues,
    ) -> None:
        for prop_name in self.unsatisfied_non_simple_properties(wrapper, values):
            if self.factory.contains_component(prop_name):
                component = self.factory.get_component(prop_name)
                values.add(prop_name, PropertyValue(prop_name, component, converted=True))
                self.factory.register_dependent(prop_name, name)
                logger.debug(
                    f"Added autowiring by name from component name '{name}' via property "
                    f"'{prop_name}' to component named '{prop_name}'"
                )
            else:
                logger.trace(
                    f"Not autowiring property '{prop_name}' of component '{name}' by name: "
                    "no matching component found"
                )

    def autowire_by_type(
        self,
        name: str,
        definition: MergedDefinition,
        wrapper: ComponentWrapper,
        values: PropertyValues,
    ) -> None:
        eager = not isinstance(wrapper.instance, PriorityOrdered)
        for prop_name in self.unsatisfied_non_simple_properties(wrapper, values):
            hint = wrapper.property_type(prop_name)
            if hint is Any or hint is object:
                continue
            descriptor = DependencyDescriptor.for_property(
                prop_name, hint, owner=wrapper.wrapped_class, required=not is_optional(hint)
            )
            descriptor.eager = eager
            autowired: set[str] = set()
            component = self.factory.resolver.resolve_dependency(descriptor, name, autowired)
            if component is not None:
                values.add(prop_name, PropertyValue(prop_name, component, converted=True))
            for autowired_name in autowired:
                self.factory.register_dependent(autowired_name, name)
                logger.debug(
                    f"Autowiring by type from component name '{name}' via property "
                    f"'{prop_name}' to component named '{autowired_name}'"
                )

    def check_dependencies(
        self,
        name: str,
        definition: MergedDefinition,
        wrapper: ComponentWrapper,
        values: PropertyValues,
    ) -> None:
        """Fail when properties the dependency check covers remain unset."""
        check = definition.dependency_check
        for prop_name, descriptor in wrapper.properties().items():
            if prop_name in values or wrapper.is_set(prop_name):
                continue
            simple = is_simple_type(descriptor.type_hint)
            if (
                check is DependencyCheck.ALL
                or (check is DependencyCheck.SIMPLE and simple)
                or (check is DependencyCheck.OBJECTS and not simple)
            ):
                raise UnsatisfiedDependencyError(
                    name,
                    f"property '{prop_name}'",
                    "Set this property value or disable dependency checking for this component.",
                )

    def apply_property_values(
        self,
        name: str,
        definition: MergedDefinition,
        wrapper: ComponentWrapper,
        values: PropertyValues,
    ) -> None:
        resolver = DefinitionValueResolver(self.factory, name, definition)
        for pv in values:
            if pv.converted:
                wrapper.set_property_value(pv.name, pv.value, pv.optional, convert=False)
                continue
            resolved = resolver.resolve(f"property '{pv.name}'", pv.value)
            wrapper.set_property_value(pv.name, resolved, pv.optional)

    # Initialization

    def initialize(
        self, name: str, instance: Any, definition: MergedDefinition | None = None
    ) -> Any:
        """Run aware callbacks, init callbacks and the initialization post-processors."""
        self.invoke_aware_methods(name, instance)

        synthetic = definition is not None and definition.synthetic
        wrapped = instance
        if not synthetic:
            wrapped = self.post_processors.apply_before_initialization(wrapped, name)

        try:
            self.invoke_init_methods(name, wrapped, definition)
        except ComponentCreationError:
            raise
        except Exception as e:
            raise ComponentCreationError(name, "Invocation of init method failed", e) from e

        if not synthetic:
            wrapped = self.post_processors.apply_after_initialization(wrapped, name)
        return wrapped

    def invoke_aware_methods(self, name: str, instance: Any) -> None:
        if isinstance(instance, ComponentNameAware):
            instance.set_component_name(name)
        if isinstance(instance, ClassResolverAware):
            instance.set_class_resolver(self.factory.class_resolver)
        if isinstance(instance, ComponentFactoryAware):
            instance.set_component_factory(self.factory)

    def invoke_init_methods(
        self, name: str, instance: Any, definition: MergedDefinition | None
    ) -> None:
        if isinstance(instance, NullComponent):
            return
        is_initializable = isinstance(instance, Initializable)
        if is_initializable and (
            definition is None or not definition.is_externally_managed_init_method("initialize")
        ):
            logger.trace(f"Invoking initialize() on component with name '{name}'")
            call_lifecycle_method(instance.initialize)

        if definition is None:
            return
        for method_name in definition.init_method_names:
            if not method_name or (is_initializable and method_name == "initialize"):
                continue
            if definition.is_externally_managed_init_method(method_name):
                continue
            self.invoke_custom_init_method(name, instance, definition, method_name)

    def invoke_custom_init_method(
        self, name: str, instance: Any, definition: MergedDefinition, method_name: str
    ) -> None:
        method = getattr(instance, method_name, None)
        if method is None or not callable(method):
            if definition.enforce_init_method:
                raise DefinitionValidationError(
                    f"Could not find an init method named '{method_name}' "
                    f"on component with name '{name}'"
                )
            logger.debug(
                f"No default init method named '{method_name}' found on component "
                f"with name '{name}'"
            )
            return
        logger.trace(f"Invoking init method '{method_name}' on component with name '{name}'")
        call_lifecycle_method(method)

    # Destruction

    def register_disposable_if_necessary(
        self, name: str, instance: Any, definition: MergedDefinition
    ) -> None:
        """Register destruction callbacks for singletons and custom-scoped components."""
        if definition.is_prototype:
            return
        processors = self.post_processors.destruction_aware
        if not requires_destruction(instance, definition, processors):
            return
        try:
            adapter = DisposableAdapter(instance, name, definition, processors)
        except DefinitionValidationError as e:
            raise ComponentCreationError(name, "Invalid destruction signature", e) from e
        if definition.is_singleton:
            self.factory.singletons.register_disposable(name, adapter)
        else:
            scope = self.factory.get_registered_scope(definition.scope)
            scope.register_destruction_callback(name, adapter)
