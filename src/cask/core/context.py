"""Component context: refresh/close orchestration over a ComponentFactory.

A ComponentContext drives a factory through its startup and shutdown:

    refresh():
        1. Prepare the factory (resolvable dependencies, built-in post-processors)
        2. Run registry and factory post-processors
        3. Register component post-processors defined as components
        4. Set up event multicasting and listeners
        5. Pre-instantiate every non-lazy singleton
        6. Publish ContextRefreshedEvent

    close():
        Publish ContextClosedEvent and destroy every singleton

If refresh fails, the singletons created so far are destroyed and the error
is re-raised.

Example:
    >>> with ComponentContext() as context:
    ...     context.register("repo", Repository)
    ...     context.register("svc", UserService)
    ...     context.refresh()
    ...     service = context.get_component("svc")
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from .config import FactoryConfig
from .definition import ComponentDefinition, MergedDefinition, Role
from .delegate import invoke_factory_post_processors, register_component_post_processors
from .errors import CaskError
from .factory import ComponentFactory
from .lifecycle import LifecycleAnnotationPostProcessor
from .post_processors import (
    DestructionAwarePostProcessor,
    FactoryPostProcessor,
    MergedDefinitionPostProcessor,
)
from .types import call_lifecycle_method

LIFECYCLE_PROCESSOR_NAME = "cask.internal.lifecycle_annotation_processor"
EVENT_MULTICASTER_NAME = "event_multicaster"


@dataclass
class ContextEvent:
    """Base class for events published by a context."""

    source: Any
    payload: dict[str, Any] = field(default_factory=dict)


class ContextRefreshedEvent(ContextEvent):
    pass


class ContextClosedEvent(ContextEvent):
    pass


@runtime_checkable
class EventListener(Protocol):
    """Protocol for components receiving the events a context publishes."""

    def on_event(self, event: Any) -> None: ...


@runtime_checkable
class EventMulticaster(Protocol):
    """Protocol for objects delivering events to the registered listeners."""

    def add_listener(self, listener: EventListener) -> None: ...

    def remove_listener(self, listener: EventListener) -> None: ...

    def multicast(self, event: Any) -> None: ...


class SimpleEventMulticaster:
    """Delivers every event to every listener synchronously, in registration order.

    Coroutine listeners are run to completion. A listener failure is passed
    to ``error_handler`` when one is set, and raised otherwise.
    """

    def __init__(self, error_handler=None):
        self._listeners: list[EventListener] = []
        self._lock = threading.Lock()
        self.error_handler = error_handler

    @property
    def listeners(self) -> list[EventListener]:
        with self._lock:
            return list(self._listeners)

    def add_listener(self, listener: EventListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def multicast(self, event: Any) -> None:
        for listener in self.listeners:
            try:
                call_lifecycle_method(lambda: listener.on_event(event))
            except Exception as e:
                if self.error_handler is None:
                    raise
                self.error_handler(e)


class ListenerDetector(MergedDefinitionPostProcessor, DestructionAwarePostProcessor):
    """Registers singleton components implementing EventListener with the context."""

    def __init__(self, context: ComponentContext):
        self.context = context
        self._singleton_names: dict[str, bool] = {}

    def post_process_merged_definition(
        self, definition: MergedDefinition, component_class: type, name: str
    ) -> None:
        if issubclass(component_class, EventListener):
            self._singleton_names[name] = definition.is_singleton

    def after_initialization(self, component: Any, name: str) -> Any:
        if isinstance(component, EventListener):
            singleton = self._singleton_names.get(name)
            if singleton:
                self.context.add_listener(component)
            elif singleton is False:
                logger.warning(
                    f"Component '{name}' implements EventListener but is not reachable for "
                    "event multicasting by its context because it does not have singleton scope"
                )
                self._singleton_names.pop(name, None)
        return component

    def before_destruction(self, component: Any, name: str) -> None:
        if isinstance(component, EventListener):
            self.context.multicaster.remove_listener(component)

    def requires_destruction(self, component: Any) -> bool:
        return isinstance(component, EventListener)

    def reset_definition(self, name: str) -> None:
        self._singleton_names.pop(name, None)


class ComponentContext:
    """Application context running a factory's full startup and shutdown.

    Attributes:
        factory: The underlying ComponentFactory
        parent: Parent context whose factory is the parent factory
        multicaster: Delivers published events to listeners
    """

    def __init__(
        self,
        factory: ComponentFactory | None = None,
        config: FactoryConfig | None = None,
        parent: ComponentContext | None = None,
        name: str | None = None,
    ):
        self.parent = parent
        if factory is None:
            factory = ComponentFactory(config, parent.factory if parent is not None else None)
        self.factory = factory
        self.name = name or f"{type(self).__name__}@{id(self):x}"
        self.multicaster: EventMulticaster = SimpleEventMulticaster()

        self._factory_post_processors: list[FactoryPostProcessor] = []
        self._listeners: list[EventListener] = []
        self._listener_detector = ListenerDetector(self)
        self._lock = threading.RLock()
        self._refreshed = False
        self._active = False
        self._closed = False

    @property
    def is_active(self) -> bool:
        return self._active

    # Configuration

    def add_factory_post_processor(self, processor: FactoryPostProcessor) -> None:
        self._factory_post_processors.append(processor)

    @property
    def factory_post_processors(self) -> list[FactoryPostProcessor]:
        return list(self._factory_post_processors)

    def add_listener(self, listener: EventListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)
        self.multicaster.add_listener(listener)

    def register(self, name: str, component_class: Any = None, **attributes: Any):
        return self.factory.register(name, component_class, **attributes)

    def register_definition(self, name: str, definition: ComponentDefinition) -> None:
        self.factory.register_definition(name, definition)

    def register_singleton(self, name: str, obj: Any) -> None:
        self.factory.register_singleton(name, obj)

    # Lifecycle

    def refresh(self) -> None:
        """Start the context: post-process definitions and create all eager singletons.

        Raises:
            CaskError: If the context was refreshed before
            ComponentCreationError: If a singleton cannot be created
        """
        with self._lock:
            if self._refreshed:
                raise CaskError(
                    f"{self.name} does not support multiple refresh attempts: "
                    "just call 'refresh' once"
                )
            self._refreshed = True
            logger.info(f"Refreshing {self.name}")
            self._closed = False
            self._active = True

            self.prepare_factory()
            try:
                self.post_process_factory()
                invoke_factory_post_processors(self.factory, self._factory_post_processors)
                register_component_post_processors(
                    self.factory, trailing=[self._listener_detector]
                )
                self.init_multicaster()
                self.on_refresh()
                self.register_listeners()
                self.factory.preinstantiate_singletons()
                self.publish_event(ContextRefreshedEvent(self))
            except Exception as e:
                logger.opt(exception=e).warning(
                    f"Exception encountered during context refresh - cancelling refresh "
                    f"attempt: {e}"
                )
                self.factory.destroy_singletons()
                self._active = False
                raise
            logger.info(
                f"Refreshed {self.name} with {self.factory.definition_count} definitions"
            )

    def prepare_factory(self) -> None:
        """Register the context itself and the built-in post-processors."""
        self.factory.register_resolvable_dependency(ComponentContext, self)
        if not self.factory.contains_definition(LIFECYCLE_PROCESSOR_NAME):
            self.factory.register_definition(
                LIFECYCLE_PROCESSOR_NAME,
                ComponentDefinition(LifecycleAnnotationPostProcessor, role=Role.INFRASTRUCTURE),
            )
        self.factory.add_post_processor(self._listener_detector)

    def post_process_factory(self) -> None:
        """Hook for subclasses to modify the factory before post-processors run."""

    def on_refresh(self) -> None:
        """Hook for subclasses to create special components before singletons."""

    def init_multicaster(self) -> None:
        if self.factory.contains_local_component(EVENT_MULTICASTER_NAME):
            multicaster = self.factory.get_component(EVENT_MULTICASTER_NAME)
            if not isinstance(multicaster, EventMulticaster):
                raise CaskError(
                    f"Component '{EVENT_MULTICASTER_NAME}' does not implement EventMulticaster"
                )
            self.multicaster = multicaster
            logger.trace(f"Using event multicaster [{multicaster!r}]")
        else:
            self.factory.register_singleton(EVENT_MULTICASTER_NAME, self.multicaster)

    def register_listeners(self) -> None:
        for listener in self._listeners:
            self.multicaster.add_listener(listener)

    def publish_event(self, event: Any) -> None:
        """Hand an event to every listener, then to the parent context."""
        self.multicaster.multicast(event)
        if self.parent is not None:
            self.parent.publish_event(event)

    def close(self) -> None:
        """Publish ContextClosedEvent and destroy every singleton."""
        with self._lock:
            if not self._active or self._closed:
                return
            logger.info(f"Closing {self.name}")
            try:
                self.publish_event(ContextClosedEvent(self))
            except Exception as e:
                logger.opt(exception=e).warning(
                    f"Exception thrown from listener handling ContextClosedEvent: {e}"
                )
            self.factory.destroy_singletons()
            self._active = False
            self._closed = True

    def _assert_active(self) -> None:
        if not self._active:
            if self._closed:
                raise CaskError(f"{self.name} has been closed already")
            raise CaskError(f"{self.name} has not been refreshed yet")

    # Lookup

    def get_component(self, name: str, required_type: Any = None, *, args: tuple | None = None):
        self._assert_active()
        return self.factory.get_component(name, required_type, args=args)

    def get_component_by_type(self, required_type: Any) -> Any:
        self._assert_active()
        return self.factory.get_component_by_type(required_type)

    def get_components_of_type(self, component_type: Any) -> dict[str, Any]:
        self._assert_active()
        return self.factory.get_components_of_type(component_type)

    def contains_component(self, name: str) -> bool:
        return self.factory.contains_component(name)

    def __getitem__(self, name: str) -> Any:
        return self.get_component(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.contains_component(name)

    def __enter__(self) -> ComponentContext:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, active={self._active})"
