"""Cask - component lifecycle and dependency resolution for Python applications.

Cask builds objects from definitions: it instantiates them through
constructors, factory methods or suppliers, injects their dependencies by
name or type, runs their initialization callbacks and destroys them in
dependency order. Singletons referencing each other through properties are
resolved through early references.

Key Features:
    - Definitions with parent inheritance, scopes and lazy initialization
    - Constructor, factory method and property autowiring by type or name
    - Primary/priority/qualifier disambiguation among candidates
    - Circular singleton references via early exposure
    - Factory components and the "&" dereference prefix
    - Post-processor hooks around instantiation, initialization and destruction
    - A context with refresh/close lifecycle and event publishing

Quick Start:
    >>> from cask import ComponentContext
    >>>
    >>> class Repository:
    ...     pass
    >>>
    >>> class UserService:
    ...     def __init__(self, repo: Repository):
    ...         self.repo = repo
    >>>
    >>> with ComponentContext() as context:
    ...     context.register("repo", Repository)
    ...     context.register("svc", UserService)
    ...     context.refresh()
    ...     service = context.get_component("svc")
"""

__version__ = "0.1.0"

# Core exports
from cask.core.config import FactoryConfig, RawInjectionPolicy
from cask.core.context import ComponentContext, ContextClosedEvent, ContextRefreshedEvent
from cask.core.definition import (
    AutowireMode,
    ComponentDefinition,
    ComponentReference,
    ScopeType,
)
from cask.core.errors import (
    CaskError,
    ComponentCreationError,
    ComponentCurrentlyInCreationError,
    DefinitionNotFoundError,
    NoUniqueComponentError,
    UnsatisfiedDependencyError,
)
from cask.core.factory import ComponentFactory
from cask.core.factory_components import FactoryComponent
from cask.core.lifecycle import post_construct, pre_destroy
from cask.core.ordering import order, priority
from cask.core.types import Disposable, Initializable

__all__ = [
    # Container
    "ComponentFactory",
    "ComponentContext",
    "FactoryConfig",
    "RawInjectionPolicy",
    # Definitions
    "ComponentDefinition",
    "ComponentReference",
    "AutowireMode",
    "ScopeType",
    "FactoryComponent",
    # Lifecycle
    "Initializable",
    "Disposable",
    "post_construct",
    "pre_destroy",
    "order",
    "priority",
    # Events
    "ContextRefreshedEvent",
    "ContextClosedEvent",
    # Errors
    "CaskError",
    "ComponentCreationError",
    "ComponentCurrentlyInCreationError",
    "DefinitionNotFoundError",
    "NoUniqueComponentError",
    "UnsatisfiedDependencyError",
]
