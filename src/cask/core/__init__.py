"""Core components of the Cask component container.

This module exports the building blocks for defining components, creating
them through the factory and driving their lifecycle through a context.

Key Components:
    ComponentDefinition: Metadata describing how a component is built
    DefinitionRegistry: Name-keyed definition store with parent merging
    SingletonRegistry: Three-tier singleton cache with early references
    DependencyResolver: By-type candidate selection for injection points
    ComponentFactory: Creates, wires, initializes and destroys components
    ComponentContext: Refresh/close orchestration with post-processors and events

Usage Example:
    >>> from cask.core import ComponentContext
    >>>
    >>> class Repository: ...
    >>>
    >>> class UserService:
    ...     def __init__(self, repo: Repository):
    ...         self.repo = repo
    >>>
    >>> context = ComponentContext()
    >>> context.register("repo", Repository)
    >>> context.register("svc", UserService)
    >>> context.refresh()
    >>> context.get_component("svc").repo is context.get_component("repo")
    True
"""

from cask.core.analyzer import Qualifier
from cask.core.config import FactoryConfig, RawInjectionPolicy
from cask.core.constructor_resolver import constructor
from cask.core.context import (
    ComponentContext,
    ContextClosedEvent,
    ContextEvent,
    ContextRefreshedEvent,
    EventListener,
    EventMulticaster,
    SimpleEventMulticaster,
)
from cask.core.conversion import DefaultValueConverter
from cask.core.definition import (
    INFERRED_METHOD,
    AutowireMode,
    ComponentDefinition,
    ComponentReference,
    ConstructorArgumentValues,
    DefinitionHolder,
    DependencyCheck,
    LookupOverride,
    MergedDefinition,
    MethodReplacer,
    PropertyValue,
    PropertyValues,
    ReplaceOverride,
    Role,
    ScopeType,
    TypedValue,
)
from cask.core.dependency import DependencyDescriptor
from cask.core.errors import (
    CaskError,
    ComponentClassNotFoundError,
    ComponentCreationError,
    ComponentCreationNotAllowedError,
    ComponentCurrentlyInCreationError,
    ComponentIsAbstractError,
    ComponentIsNotAFactoryError,
    ComponentNotOfRequiredTypeError,
    ConversionError,
    DefinitionNotFoundError,
    DefinitionOverrideError,
    DefinitionStoreError,
    DefinitionValidationError,
    NotWritablePropertyError,
    NoUniqueComponentError,
    ScopeError,
    SingletonAlreadyRegisteredError,
    UnsatisfiedDependencyError,
)
from cask.core.factory import ComponentFactory
from cask.core.factory_components import FACTORY_PREFIX, FactoryComponent, SmartFactoryComponent
from cask.core.lifecycle import LifecycleAnnotationPostProcessor, post_construct, pre_destroy
from cask.core.ordering import (
    HIGHEST_PRECEDENCE,
    LOWEST_PRECEDENCE,
    Ordered,
    PriorityOrdered,
    order,
    priority,
)
from cask.core.post_processors import (
    ComponentPostProcessor,
    DestructionAwarePostProcessor,
    FactoryPostProcessor,
    InstantiationAwarePostProcessor,
    MergedDefinitionPostProcessor,
    RegistryPostProcessor,
    SmartInstantiationAwarePostProcessor,
)
from cask.core.registry import DefinitionRegistry
from cask.core.resolver import DependencyResolver
from cask.core.scopes import ContextScope, Scope
from cask.core.singletons import SingletonRegistry
from cask.core.types import (
    NULL_COMPONENT,
    ClassResolverAware,
    ComponentFactoryAware,
    ComponentNameAware,
    Disposable,
    Initializable,
    SmartInitializingComponent,
)

__all__ = [
    # Definitions
    "ComponentDefinition",
    "MergedDefinition",
    "ScopeType",
    "AutowireMode",
    "DependencyCheck",
    "Role",
    "ComponentReference",
    "TypedValue",
    "DefinitionHolder",
    "ConstructorArgumentValues",
    "PropertyValue",
    "PropertyValues",
    "LookupOverride",
    "ReplaceOverride",
    "MethodReplacer",
    "INFERRED_METHOD",
    "DefinitionRegistry",
    # Container
    "ComponentFactory",
    "ComponentContext",
    "FactoryConfig",
    "RawInjectionPolicy",
    "SingletonRegistry",
    "DependencyResolver",
    "DependencyDescriptor",
    "DefaultValueConverter",
    "Qualifier",
    "constructor",
    # Factory components
    "FactoryComponent",
    "SmartFactoryComponent",
    "FACTORY_PREFIX",
    # Scopes
    "Scope",
    "ContextScope",
    # Post-processors
    "ComponentPostProcessor",
    "InstantiationAwarePostProcessor",
    "SmartInstantiationAwarePostProcessor",
    "DestructionAwarePostProcessor",
    "MergedDefinitionPostProcessor",
    "FactoryPostProcessor",
    "RegistryPostProcessor",
    "LifecycleAnnotationPostProcessor",
    # Ordering
    "Ordered",
    "PriorityOrdered",
    "order",
    "priority",
    "HIGHEST_PRECEDENCE",
    "LOWEST_PRECEDENCE",
    # Lifecycle
    "Initializable",
    "Disposable",
    "ComponentNameAware",
    "ClassResolverAware",
    "ComponentFactoryAware",
    "SmartInitializingComponent",
    "NULL_COMPONENT",
    "post_construct",
    "pre_destroy",
    # Events
    "ContextEvent",
    "ContextRefreshedEvent",
    "ContextClosedEvent",
    "EventListener",
    "EventMulticaster",
    "SimpleEventMulticaster",
    # Errors
    "CaskError",
    "DefinitionStoreError",
    "ComponentClassNotFoundError",
    "DefinitionOverrideError",
    "DefinitionNotFoundError",
    "NoUniqueComponentError",
    "DefinitionValidationError",
    "ComponentCreationError",
    "ComponentCurrentlyInCreationError",
    "UnsatisfiedDependencyError",
    "ComponentCreationNotAllowedError",
    "ComponentIsAbstractError",
    "ComponentNotOfRequiredTypeError",
    "ComponentIsNotAFactoryError",
    "SingletonAlreadyRegisteredError",
    "ScopeError",
    "ConversionError",
    "NotWritablePropertyError",
]
