"""Extension hooks intercepting the component creation and destruction pipeline.

Two hook families exist.

Registry level (run by ComponentContext.refresh before any component is created):
    FactoryPostProcessor: post_process_factory(factory)
    RegistryPostProcessor: post_process_definition_registry(registry), may register
        more definitions (including more registry post-processors)

Component level (run by the creation pipeline for every component):
    ComponentPostProcessor: before/after initialization
    InstantiationAwarePostProcessor: before/after instantiation, property processing
    SmartInstantiationAwarePostProcessor: type prediction, candidate constructors,
        early references for circular resolution
    DestructionAwarePostProcessor: before destruction
    MergedDefinitionPostProcessor: one pass over each merged definition

Every hook has a pass-through default so subclasses override only what they
need. Hooks that may short-circuit return None for "no opinion".

Example:
    >>> class TimingProcessor(ComponentPostProcessor):
    ...     def after_initialization(self, component, name):
    ...         return TimingProxy(component) if name.endswith("_service") else component
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Iterator

from loguru import logger

from .definition import PropertyValues

if TYPE_CHECKING:
    from .definition import MergedDefinition


class ComponentPostProcessor:
    """Intercepts initialization of every component."""

    def before_initialization(self, component: Any, name: str) -> Any:
        """Called before init callbacks; returning None keeps the current object."""
        return component

    def after_initialization(self, component: Any, name: str) -> Any:
        """Called after init callbacks; may return a wrapper such as a proxy."""
        return component


class InstantiationAwarePostProcessor(ComponentPostProcessor):
    """Adds hooks around instantiation and property population."""

    def before_instantiation(self, component_class: type, name: str) -> Any:
        """Return a substitute object to skip default instantiation, or None."""
        return None

    def after_instantiation(self, component: Any, name: str) -> bool:
        """Return False to skip property population for this component."""
        return True

    def process_properties(
        self, property_values: PropertyValues, component: Any, name: str
    ) -> PropertyValues | None:
        """Adjust property values before they are applied; None stops population."""
        return property_values


class SmartInstantiationAwarePostProcessor(InstantiationAwarePostProcessor):
    """Adds type prediction, constructor selection and early references."""

    def predict_type(self, component_class: type, name: str) -> type | None:
        return None

    def determine_candidate_constructors(self, component_class: type, name: str) -> list | None:
        """Return the constructors to consider for autowiring, or None."""
        return None

    def get_early_reference(self, component: Any, name: str) -> Any:
        """Return the object exposed to circular references before initialization."""
        return component


class DestructionAwarePostProcessor(ComponentPostProcessor):
    def before_destruction(self, component: Any, name: str) -> None:
        pass

    def requires_destruction(self, component: Any) -> bool:
        return True


class MergedDefinitionPostProcessor(ComponentPostProcessor):
    """Inspects or adjusts each merged definition once, before population."""

    def post_process_merged_definition(
        self, definition: MergedDefinition, component_class: type, name: str
    ) -> None:
        pass

    def reset_definition(self, name: str) -> None:
        """Drop any metadata cached for a definition that was re-registered."""


class FactoryPostProcessor:
    """Runs against the factory after definitions are loaded, before instantiation."""

    def post_process_factory(self, factory: Any) -> None:
        pass


class RegistryPostProcessor(FactoryPostProcessor):
    """Runs before factory post-processors and may register further definitions."""

    def post_process_definition_registry(self, registry: Any) -> None:
        pass


class PostProcessorChain:
    """Ordered component post-processors with per-family caches.

    Adding a post-processor that is already registered moves it to the end.
    The family caches are rebuilt lazily after every change.
    """

    def __init__(self) -> None:
        self._processors: list[ComponentPostProcessor] = []
        self._lock = threading.Lock()
        self._cache: dict[type, tuple[Any, ...]] | None = None

    def add(self, processor: ComponentPostProcessor) -> None:
        if not isinstance(processor, ComponentPostProcessor):
            raise TypeError(f"{processor!r} is not a ComponentPostProcessor")
        with self._lock:
            if processor in self._processors:
                self._processors.remove(processor)
            self._processors.append(processor)
            self._cache = None
        logger.trace(f"Registered post-processor {type(processor).__name__}")

    def add_all(self, processors: list[ComponentPostProcessor]) -> None:
        for processor in processors:
            self.add(processor)

    def remove(self, processor: ComponentPostProcessor) -> None:
        with self._lock:
            if processor in self._processors:
                self._processors.remove(processor)
                self._cache = None

    def clear(self) -> None:
        with self._lock:
            self._processors.clear()
            self._cache = None

    def _family(self, kind: type) -> tuple[Any, ...]:
        with self._lock:
            if self._cache is None:
                self._cache = {}
            family = self._cache.get(kind)
            if family is None:
                family = tuple(p for p in self._processors if isinstance(p, kind))
                self._cache[kind] = family
            return family

    @property
    def processors(self) -> tuple[ComponentPostProcessor, ...]:
        return self._family(ComponentPostProcessor)

    @property
    def has_instantiation_aware(self) -> bool:
        return bool(self._family(InstantiationAwarePostProcessor))

    @property
    def has_destruction_aware(self) -> bool:
        return bool(self._family(DestructionAwarePostProcessor))

    @property
    def destruction_aware(self) -> tuple[DestructionAwarePostProcessor, ...]:
        return self._family(DestructionAwarePostProcessor)

    def __len__(self) -> int:
        return len(self._processors)

    def __iter__(self) -> Iterator[ComponentPostProcessor]:
        return iter(self.processors)

    def __contains__(self, processor: object) -> bool:
        return processor in self._processors

    # Hook application

    def apply_before_instantiation(self, component_class: type, name: str) -> Any:
        """First non-None substitute wins."""
        for processor in self._family(InstantiationAwarePostProcessor):
            result = processor.before_instantiation(component_class, name)
            if result is not None:
                return result
        return None

    def apply_after_instantiation(self, component: Any, name: str) -> bool:
        for processor in self._family(InstantiationAwarePostProcessor):
            if not processor.after_instantiation(component, name):
                logger.trace(
                    f"Property population of component '{name}' vetoed by "
                    f"{type(processor).__name__}"
                )
                return False
        return True

    def apply_process_properties(
        self, property_values: PropertyValues, component: Any, name: str
    ) -> PropertyValues | None:
        for processor in self._family(InstantiationAwarePostProcessor):
            result = processor.process_properties(property_values, component, name)
            if result is None:
                return None
            property_values = result
        return property_values

    def apply_before_initialization(self, component: Any, name: str) -> Any:
        result = component
        for processor in self._family(ComponentPostProcessor):
            current = processor.before_initialization(result, name)
            if current is None:
                return result
            result = current
        return result

    def apply_after_initialization(self, component: Any, name: str) -> Any:
        result = component
        for processor in self._family(ComponentPostProcessor):
            current = processor.after_initialization(result, name)
            if current is None:
                return result
            result = current
        return result

    def apply_merged_definition(
        self, definition: MergedDefinition, component_class: type, name: str
    ) -> None:
        for processor in self._family(MergedDefinitionPostProcessor):
            processor.post_process_merged_definition(definition, component_class, name)

    def apply_reset_definition(self, name: str) -> None:
        for processor in self._family(MergedDefinitionPostProcessor):
            processor.reset_definition(name)

    def predict_type(self, component_class: type, name: str) -> type | None:
        for processor in self._family(SmartInstantiationAwarePostProcessor):
            predicted = processor.predict_type(component_class, name)
            if predicted is not None:
                return predicted
        return None

    def determine_candidate_constructors(self, component_class: type, name: str) -> list | None:
        for processor in self._family(SmartInstantiationAwarePostProcessor):
            constructors = processor.determine_candidate_constructors(component_class, name)
            if constructors:
                return list(constructors)
        return None

    def get_early_reference(self, component: Any, name: str) -> Any:
        exposed = component
        for processor in self._family(SmartInstantiationAwarePostProcessor):
            exposed = processor.get_early_reference(exposed, name)
        return exposed

    def requires_destruction(self, component: Any) -> bool:
        return any(p.requires_destruction(component) for p in self.destruction_aware)
