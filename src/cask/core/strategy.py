"""Instantiation strategies.

An instantiation strategy turns a resolved constructor (the class itself or
an alternate ``@constructor`` classmethod) or factory method plus its
arguments into a raw instance.

SimpleInstantiationStrategy calls the constructor directly and rejects
definitions with method overrides. SubclassingInstantiationStrategy, the
default, generates one subclass per merged definition implementing the
definition's lookup and replace overrides and instantiates that instead.
"""

from __future__ import annotations

import functools
import inspect
from typing import TYPE_CHECKING, Any, Callable

from loguru import logger

from .analyzer import get_type_hints_safe
from .definition import LookupOverride, MergedDefinition, ReplaceOverride
from .errors import ComponentCreationError

if TYPE_CHECKING:
    from .factory import ComponentFactory


class SimpleInstantiationStrategy:
    """Calls constructors and factory methods directly."""

    def instantiate(
        self,
        definition: MergedDefinition,
        name: str,
        factory: ComponentFactory,
        constructor: Callable[..., Any] | None = None,
        args: tuple = (),
        kwargs: dict[str, Any] | None = None,
    ) -> Any:
        """Create an instance with the given constructor (default: the class itself)."""
        component_class = definition.resolved_class
        if constructor is None:
            constructor = component_class
        if definition.method_overrides:
            return self.instantiate_with_method_injection(
                definition, name, factory, constructor, args, kwargs or {}
            )
        return constructor(*args, **(kwargs or {}))

    def instantiate_with_method_injection(
        self,
        definition: MergedDefinition,
        name: str,
        factory: ComponentFactory,
        constructor: Callable[..., Any],
        args: tuple,
        kwargs: dict[str, Any],
    ) -> Any:
        raise ComponentCreationError(
            name, "Method injection is not supported by this instantiation strategy"
        )

    def instantiate_with_factory_method(
        self,
        name: str,
        factory_method: Callable[..., Any],
        args: tuple = (),
        kwargs: dict[str, Any] | None = None,
    ) -> Any:
        logger.trace(
            f"Invoking factory method '{getattr(factory_method, '__name__', factory_method)}' "
            f"for component '{name}'"
        )
        return factory_method(*args, **(kwargs or {}))


class SubclassingInstantiationStrategy(SimpleInstantiationStrategy):
    """Implements method overrides by instantiating a generated subclass."""

    def instantiate_with_method_injection(
        self,
        definition: MergedDefinition,
        name: str,
        factory: ComponentFactory,
        constructor: Callable[..., Any],
        args: tuple,
        kwargs: dict[str, Any],
    ) -> Any:
        generated = self.generated_class(definition, factory)
        base = definition.resolved_class
        if constructor is base:
            constructor = generated
        else:
            constructor = getattr(generated, constructor.__name__)
        return constructor(*args, **kwargs)

    def generated_class(self, definition: MergedDefinition, factory: ComponentFactory) -> type:
        """Return the subclass for a definition, generating it on first use."""
        with definition.constructor_lock:
            if definition.generated_class is None:
                definition.generated_class = self._generate(definition, factory)
            return definition.generated_class

    def _generate(self, definition: MergedDefinition, factory: ComponentFactory) -> type:
        base = definition.resolved_class
        namespace: dict[str, Any] = {"__module__": base.__module__}
        for override in definition.method_overrides:
            original = getattr(base, override.method_name)
            if isinstance(override, LookupOverride):
                namespace[override.method_name] = _lookup_method(original, override, factory)
            elif isinstance(override, ReplaceOverride):
                namespace[override.method_name] = _replace_method(original, override, factory)
            else:
                raise TypeError(f"Unexpected method override: {override!r}")
        generated = type(f"{base.__name__}$$Cask", (base,), namespace)
        generated.__qualname__ = f"{base.__qualname__}$$Cask"
        logger.trace(f"Generated subclass {generated.__qualname__} for method injection")
        return generated


def _lookup_method(
    original: Callable[..., Any], override: LookupOverride, factory: ComponentFactory
) -> Callable[..., Any]:
    component_name = override.component_name
    return_type = None
    if component_name is None:
        return_type = get_type_hints_safe(original).get("return")
        if return_type is None:
            raise ComponentCreationError(
                None,
                f"Lookup method '{override.method_name}' needs a component name "
                "or a return annotation",
            )

    @functools.wraps(original)
    def lookup(self, *args: Any) -> Any:
        if component_name is not None:
            return factory.get_component(component_name, args=args or None)
        return factory.get_component_by_type(return_type)

    return lookup


def _replace_method(
    original: Callable[..., Any], override: ReplaceOverride, factory: ComponentFactory
) -> Callable[..., Any]:
    @functools.wraps(original)
    def replaced(self, *args: Any, **kwargs: Any) -> Any:
        replacer = override.replacer
        if isinstance(replacer, str):
            replacer = factory.get_component(replacer)
        return replacer.reimplement(self, override.method_name, args, kwargs)

    if inspect.iscoroutinefunction(original):

        @functools.wraps(original)
        async def replaced_async(self, *args: Any, **kwargs: Any) -> Any:
            result = replaced(self, *args, **kwargs)
            if inspect.isawaitable(result):
                return await result
            return result

        return replaced_async
    return replaced
