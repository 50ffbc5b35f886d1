"""Definition storage and merging.

The DefinitionRegistry is the single source of truth for registered
component definitions. It stores raw definitions by name and produces
MergedDefinitions on demand by flattening parent chains.

Merging:
    - A definition without a parent is copied as-is
    - A child inherits its parent's merged values and overrides the ones it sets
    - A parent named like the child is looked up in the parent factory
    - An empty scope means singleton
    - An inner definition inside a non-singleton container takes the container's scope
    - Parent chains that loop raise DefinitionStoreError

Merged definitions are cached (unless disabled in FactoryConfig) and marked
stale when their definition, or any ancestor, is re-registered or removed.

Example:
    >>> registry = DefinitionRegistry()
    >>> registry.register("base", ComponentDefinition(abstract=True, scope="prototype"))
    >>> registry.register("child", ComponentDefinition(Service, parent_name="base"))
    >>> registry.get_merged("child").scope
    'prototype'
"""

from __future__ import annotations

import threading
from typing import Callable, Iterator

from loguru import logger

from .config import FactoryConfig
from .definition import ComponentDefinition, MergedDefinition, ScopeType
from .errors import (
    DefinitionNotFoundError,
    DefinitionOverrideError,
    DefinitionStoreError,
    DefinitionValidationError,
)


class DefinitionRegistry:
    """Registry of component definitions with merged-definition caching.

    Attributes:
        on_reset: Called with a name after its definition was replaced or removed
        parent_lookup: Returns a merged definition from a parent factory
    """

    def __init__(self, config: FactoryConfig | None = None):
        self.config = config or FactoryConfig()
        self._definitions: dict[str, ComponentDefinition] = {}
        self._merged: dict[str, MergedDefinition] = {}
        self._lock = threading.RLock()
        self.on_reset: Callable[[str], None] | None = None
        self.parent_lookup: Callable[[str], MergedDefinition] | None = None

    def register(self, name: str, definition: ComponentDefinition) -> ComponentDefinition:
        """Register a definition under a name.

        Raises:
            DefinitionStoreError: If the definition is invalid
            DefinitionOverrideError: If the name is taken and overriding is disabled
        """
        if not name:
            raise ValueError("Component name must not be empty")
        try:
            definition.validate()
        except DefinitionValidationError as e:
            raise DefinitionStoreError("Validation of definition failed", name, e) from e

        with self._lock:
            existing = self._definitions.get(name)
            if existing is not None:
                if not self.config.allow_definition_overriding:
                    raise DefinitionOverrideError(name)
                if existing is not definition:
                    logger.info(
                        f"Overriding definition for component '{name}' "
                        f"with a different definition: replacing [{existing.class_name}] "
                        f"with [{definition.class_name}]"
                    )
            self._definitions[name] = definition
            had_merged = name in self._merged

        if existing is not None or had_merged:
            self.reset(name)
        return definition

    def remove(self, name: str) -> None:
        """Remove a definition and reset everything derived from it."""
        with self._lock:
            if name not in self._definitions:
                raise DefinitionNotFoundError(name, available=self.names)
            del self._definitions[name]
        self.reset(name)

    def reset(self, name: str) -> None:
        """Invalidate the merged definition for a name and every child of it."""
        self.clear_merged(name)
        if self.on_reset is not None:
            self.on_reset(name)
        for child_name, child in list(self._definitions.items()):
            if child_name != name and child.parent_name == name:
                self.reset(child_name)

    def get(self, name: str) -> ComponentDefinition:
        """Return the raw definition registered under a name.

        Raises:
            DefinitionNotFoundError: If no definition exists
        """
        try:
            return self._definitions[name]
        except KeyError:
            raise DefinitionNotFoundError(name, available=self.names) from None

    def contains(self, name: str) -> bool:
        return name in self._definitions

    @property
    def names(self) -> list[str]:
        return list(self._definitions)

    @property
    def count(self) -> int:
        return len(self._definitions)

    # Merging

    def get_merged(self, name: str) -> MergedDefinition:
        """Return the merged definition for a name, merging it if needed.

        Raises:
            DefinitionNotFoundError: If no definition exists
            DefinitionStoreError: If the parent chain cannot be resolved
        """
        merged = self._merged.get(name)
        if merged is not None and not merged.stale:
            return merged
        return self.merge(name, self.get(name))

    def merge(
        self,
        name: str,
        definition: ComponentDefinition,
        containing: MergedDefinition | None = None,
        _visiting: set[str] | None = None,
    ) -> MergedDefinition:
        """Flatten a definition's parent chain into a MergedDefinition.

        Args:
            name: Name of the definition
            definition: Raw definition to merge
            containing: Definition of the outer component, for inner definitions
        """
        with self._lock:
            previous = None
            if containing is None:
                previous = self._merged.get(name)
                if previous is not None and not previous.stale:
                    return previous

            visiting = _visiting if _visiting is not None else set()
            if name in visiting:
                raise DefinitionStoreError(
                    f"Circular parent definition chain involving {sorted(visiting)}", name
                )
            visiting.add(name)

            if definition.parent_name is None:
                merged = MergedDefinition.from_definition(definition)
            else:
                parent = self._merged_parent(name, definition.parent_name, visiting)
                merged = MergedDefinition.from_definition(parent)
                merged.override_from(definition)

            if not merged.scope:
                merged.scope = ScopeType.SINGLETON

            if containing is not None and not containing.is_singleton and merged.is_singleton:
                merged.scope = containing.scope

            if isinstance(merged.component_class, type) and merged.method_overrides:
                merged.validate_method_overrides(merged.component_class)

            if containing is None and self.config.cache_metadata:
                self._merged[name] = merged
            if previous is not None:
                merged.copy_caches_from(previous)
            return merged

    def _merged_parent(self, name: str, parent_name: str, visiting: set[str]) -> MergedDefinition:
        if parent_name != name and parent_name in self._definitions:
            return self.merge(parent_name, self._definitions[parent_name], None, visiting)
        if self.parent_lookup is not None:
            try:
                return self.parent_lookup(parent_name)
            except DefinitionNotFoundError as e:
                raise DefinitionStoreError(
                    f"Could not resolve parent definition '{parent_name}'", name, e
                ) from e
        if parent_name == name:
            raise DefinitionStoreError(
                f"Parent name '{parent_name}' is equal to component name '{name}': "
                "cannot be resolved without a parent factory",
                name,
            )
        raise DefinitionStoreError(f"Could not resolve parent definition '{parent_name}'", name)

    def clear_merged(self, name: str) -> None:
        with self._lock:
            merged = self._merged.get(name)
            if merged is not None:
                merged.stale = True

    def clear_metadata_cache(self, keep: Callable[[str], bool] | None = None) -> None:
        """Mark merged definitions stale, except those ``keep`` selects."""
        with self._lock:
            for name, merged in self._merged.items():
                if keep is None or not keep(name):
                    merged.stale = True

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._definitions))

    def keys(self):
        return self._definitions.keys()

    def values(self):
        return self._definitions.values()

    def items(self):
        return self._definitions.items()
