"""Factory components: components whose instance produces the exposed object.

A FactoryComponent registered as ``"connection"`` is itself a singleton, but
``get_component("connection")`` returns the product of its ``get_object()``.
The factory itself is reached with the ``&`` prefix: ``"&connection"``.

Products of singleton factories are cached separately from the factories
themselves and receive the after-initialization post-processor pass once.

Example:
    >>> class ConnectionFactory(FactoryComponent[Connection]):
    ...     def get_object(self) -> Connection:
    ...         return Connection(self.url)
    >>>
    >>> factory.register_definition("connection", ComponentDefinition(ConnectionFactory))
    >>> factory.get_component("connection")   # Connection
    >>> factory.get_component("&connection")  # ConnectionFactory
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar, get_args, get_origin

from loguru import logger

from .errors import ComponentCreationError, ComponentCurrentlyInCreationError
from .singletons import SingletonRegistry
from .types import NULL_COMPONENT

T = TypeVar("T")

FACTORY_PREFIX = "&"


class FactoryComponent(ABC, Generic[T]):
    """A component that produces another object."""

    @abstractmethod
    def get_object(self) -> T:
        """Return the product (may be None)."""

    def get_object_type(self) -> type | None:
        """Return the product type, by default the class's generic argument."""
        return product_type_of(type(self))

    def is_singleton(self) -> bool:
        """Whether every get_object() call returns the same shared product."""
        return True


class SmartFactoryComponent(FactoryComponent[T]):
    def is_prototype(self) -> bool:
        return False

    def is_eager_init(self) -> bool:
        """Request product creation during singleton pre-instantiation."""
        return False


def is_factory_dereference(name: str | None) -> bool:
    return name is not None and name.startswith(FACTORY_PREFIX)


def transformed_name(name: str) -> str:
    """Strip every leading '&' from a component name."""
    return name.lstrip(FACTORY_PREFIX)


def product_type_of(factory_class: type) -> type | None:
    """Find T in ``FactoryComponent[T]`` among a class's generic bases."""
    for klass in factory_class.__mro__:
        for base in getattr(klass, "__orig_bases__", ()):
            origin = get_origin(base)
            if isinstance(origin, type) and issubclass(origin, FactoryComponent):
                args = get_args(base)
                if args and not isinstance(args[0], TypeVar):
                    return args[0]
    return None


class FactoryComponentRegistry(SingletonRegistry):
    """SingletonRegistry that also caches products of singleton factory components."""

    def __init__(self) -> None:
        super().__init__()
        self._factory_objects: dict[str, Any] = {}

    def get_type_for_factory_component(self, factory: FactoryComponent) -> type | None:
        try:
            return factory.get_object_type()
        except Exception as e:
            logger.opt(exception=e).debug(
                f"FactoryComponent {type(factory).__name__} threw exception from get_object_type"
            )
            return None

    def get_cached_object_for_factory_component(self, name: str) -> Any:
        return self._factory_objects.get(name)

    def get_object_from_factory_component(
        self, factory: FactoryComponent, name: str, should_post_process: bool
    ) -> Any:
        """Return the product of a factory, caching it for singleton factories."""
        if factory.is_singleton() and self.contains_singleton(name):
            with self.mutex:
                obj = self._factory_objects.get(name)
                if obj is None:
                    obj = self._invoke_factory(factory, name)
                    already_there = self._factory_objects.get(name)
                    if already_there is not None:
                        obj = already_there
                    else:
                        if should_post_process:
                            if self.is_singleton_currently_in_creation(name):
                                # Hand back the raw product; it is cached once creation ends
                                return obj
                            self.before_singleton_creation(name)
                            try:
                                obj = self.post_process_factory_product(obj, name)
                            except ComponentCreationError:
                                raise
                            except Exception as e:
                                raise ComponentCreationError(
                                    name, "Post-processing of FactoryComponent's product failed", e
                                ) from e
                            finally:
                                self.after_singleton_creation(name)
                        if self.contains_singleton(name):
                            self._factory_objects[name] = obj
                return obj

        obj = self._invoke_factory(factory, name)
        if should_post_process:
            try:
                obj = self.post_process_factory_product(obj, name)
            except ComponentCreationError:
                raise
            except Exception as e:
                raise ComponentCreationError(
                    name, "Post-processing of FactoryComponent's product failed", e
                ) from e
        return obj

    def _invoke_factory(self, factory: FactoryComponent, name: str) -> Any:
        try:
            obj = factory.get_object()
        except ComponentCreationError:
            raise
        except Exception as e:
            raise ComponentCreationError(
                name, "FactoryComponent threw exception on object creation", e
            ) from e
        if obj is None:
            if self.is_singleton_currently_in_creation(name):
                raise ComponentCurrentlyInCreationError(
                    name, "FactoryComponent which is currently in creation returned None"
                )
            obj = NULL_COMPONENT
        return obj

    def post_process_factory_product(self, obj: Any, name: str) -> Any:
        """Hook for applying post-processors to a factory's product."""
        return obj

    def remove_singleton(self, name: str) -> None:
        with self.mutex:
            super().remove_singleton(name)
            self._factory_objects.pop(name, None)

    def _clear_singleton_cache(self) -> None:
        super()._clear_singleton_cache()
        self._factory_objects.clear()
