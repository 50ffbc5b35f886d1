"""Post-processor orchestration for context refresh.

invoke_factory_post_processors:
    Runs registry post-processors, then factory post-processors. Processors
    defined as components are found by type and run in three groups:
    priority-ordered, ordered, then the rest. Registry post-processors may
    register further registry post-processors, so the last group is drained
    in a loop until a round finds no new ones.

register_component_post_processors:
    Instantiates component post-processors defined as components and adds
    them to the factory's chain: priority-ordered, ordered, the rest, then
    every merged-definition post-processor again (moving it to the end), and
    finally the given trailing processors (e.g. the listener detector).
    A checker logs components created before the chain was complete.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterable

from loguru import logger

from .definition import Role
from .ordering import Ordered, PriorityOrdered, find_order, sort_by_order
from .post_processors import (
    ComponentPostProcessor,
    FactoryPostProcessor,
    MergedDefinitionPostProcessor,
    RegistryPostProcessor,
)

if TYPE_CHECKING:
    from .factory import ComponentFactory


def _is_priority_ordered(factory: ComponentFactory, name: str) -> bool:
    return factory.is_type_match(name, PriorityOrdered)


def _is_ordered(factory: ComponentFactory, name: str) -> bool:
    component_type = factory.get_type(name)
    if not isinstance(component_type, type):
        return False
    return issubclass(component_type, Ordered) or find_order(component_type) is not None


def _collect(
    factory: ComponentFactory,
    kind: type,
    processed: set[str],
    predicate: Callable[[str], bool],
) -> list[Any]:
    """Instantiate unprocessed components of a kind selected by predicate, sorted."""
    names = [
        name
        for name in factory.get_names_for_type(kind, True, False)
        if name not in processed and predicate(name)
    ]
    processed.update(names)
    return sort_by_order(factory.get_component(name, kind) for name in names)


def invoke_factory_post_processors(
    factory: ComponentFactory, processors: Iterable[FactoryPostProcessor] = ()
) -> None:
    """Run every registry and factory post-processor once.

    Args:
        factory: Factory whose definitions are post-processed
        processors: Processors registered programmatically; they run first,
            in the given order
    """
    processed: set[str] = set()
    registry_processors: list[RegistryPostProcessor] = []
    regular_processors: list[FactoryPostProcessor] = []

    for processor in processors:
        if isinstance(processor, RegistryPostProcessor):
            processor.post_process_definition_registry(factory.registry)
            registry_processors.append(processor)
        else:
            regular_processors.append(processor)

    def run_registry_processors(current: list[RegistryPostProcessor]) -> None:
        for processor in current:
            logger.trace(f"Invoking registry post-processor {type(processor).__name__}")
            processor.post_process_definition_registry(factory.registry)
        registry_processors.extend(current)

    run_registry_processors(
        _collect(
            factory, RegistryPostProcessor, processed, lambda n: _is_priority_ordered(factory, n)
        )
    )
    run_registry_processors(
        _collect(factory, RegistryPostProcessor, processed, lambda n: _is_ordered(factory, n))
    )
    while True:
        current = _collect(factory, RegistryPostProcessor, processed, lambda n: True)
        if not current:
            break
        run_registry_processors(current)

    for processor in [*registry_processors, *regular_processors]:
        processor.post_process_factory(factory)

    names = [
        name
        for name in factory.get_names_for_type(FactoryPostProcessor, True, False)
        if name not in processed
    ]
    priority_names = [n for n in names if _is_priority_ordered(factory, n)]
    ordered_names = [n for n in names if n not in priority_names and _is_ordered(factory, n)]
    other_names = [n for n in names if n not in priority_names and n not in ordered_names]

    for group in (priority_names, ordered_names, other_names):
        group_processors = sort_by_order(
            factory.get_component(name, FactoryPostProcessor) for name in group
        )
        for processor in group_processors:
            logger.trace(f"Invoking factory post-processor {type(processor).__name__}")
            processor.post_process_factory(factory)

    # Factory post-processors may have changed definitions
    factory.registry.clear_metadata_cache()


class PostProcessorChecker(ComponentPostProcessor):
    """Logs components created while component post-processors are still being registered."""

    def __init__(self, factory: ComponentFactory, target_count: int):
        self.factory = factory
        self.target_count = target_count

    def after_initialization(self, component: Any, name: str) -> Any:
        if (
            not isinstance(component, ComponentPostProcessor)
            and not self._is_infrastructure(name)
            and len(self.factory.post_processors) < self.target_count
        ):
            logger.warning(
                f"Component '{name}' of type [{type(component).__qualname__}] is not eligible "
                "for getting processed by all post-processors. Is this component getting "
                "eagerly injected into a currently created post-processor?"
            )
        return component

    def _is_infrastructure(self, name: str) -> bool:
        merged = self.factory.find_merged_definition(name)
        return merged is not None and merged.role is Role.INFRASTRUCTURE


def register_component_post_processors(
    factory: ComponentFactory, trailing: Iterable[ComponentPostProcessor] = ()
) -> None:
    """Add every component post-processor defined as a component to the factory."""
    names = factory.get_names_for_type(ComponentPostProcessor, True, False)
    target_count = len(factory.post_processors) + 1 + len(names)
    factory.add_post_processor(PostProcessorChecker(factory, target_count))

    priority_processors: list[ComponentPostProcessor] = []
    internal_processors: list[ComponentPostProcessor] = []
    ordered_names: list[str] = []
    other_names: list[str] = []
    for name in names:
        if _is_priority_ordered(factory, name):
            processor = factory.get_component(name, ComponentPostProcessor)
            priority_processors.append(processor)
            if isinstance(processor, MergedDefinitionPostProcessor):
                internal_processors.append(processor)
        elif _is_ordered(factory, name):
            ordered_names.append(name)
        else:
            other_names.append(name)

    factory.post_processors.add_all(sort_by_order(priority_processors))

    for group, sort in ((ordered_names, True), (other_names, False)):
        group_processors = []
        for name in group:
            processor = factory.get_component(name, ComponentPostProcessor)
            group_processors.append(processor)
            if isinstance(processor, MergedDefinitionPostProcessor):
                internal_processors.append(processor)
        factory.post_processors.add_all(
            sort_by_order(group_processors) if sort else group_processors
        )

    factory.post_processors.add_all(sort_by_order(internal_processors))
    factory.post_processors.add_all(list(trailing))
    logger.debug(f"Registered {len(names)} component post-processors from definitions")
