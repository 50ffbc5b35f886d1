"""Dependency resolution and autowiring.

The DependencyResolver answers one question: given an injection point
(a DependencyDescriptor), which component should be injected?

Resolution Strategy:
    1. Collection injection points (list[T], set[T], tuple[T, ...],
       dict[str, T]) receive every matching candidate, sorted by order
    2. Otherwise candidates are every component whose type is assignable to
       the required type, plus registered resolvable dependencies, minus
       components that are not autowire candidates or fail the qualifier
    3. Self references are only considered when nothing else matches
    4. Exactly one candidate wins outright
    5. Several candidates are narrowed by, in order:
        a. the single candidate flagged primary
        b. the candidate with the highest priority (lowest value), only if
           every candidate declares a priority
        c. the candidate whose name equals the injection point's name
    6. Anything still ambiguous raises NoUniqueComponentError

Missing required dependencies raise UnsatisfiedDependencyError; missing
optional ones resolve to None.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from .analyzer import is_assignable, is_instance_of, type_name
from .dependency import DependencyDescriptor
from .errors import (
    ComponentCreationError,
    ComponentNotOfRequiredTypeError,
    DefinitionNotFoundError,
    NoUniqueComponentError,
    UnsatisfiedDependencyError,
)
from .factory_components import FACTORY_PREFIX
from .ordering import get_priority, sort_by_order
from .types import NullComponent

if TYPE_CHECKING:
    from .factory import ComponentFactory


@dataclass
class _Candidate:
    name: str
    instance: Any = None
    resolved: bool = False
    resolvable: bool = False


class DependencyResolver:
    """Finds the components to inject for dependency descriptors."""

    def __init__(self, factory: ComponentFactory):
        self.factory = factory

    def resolve_dependency(
        self,
        descriptor: DependencyDescriptor,
        requesting_name: str | None,
        autowired_names: set[str] | None = None,
    ) -> Any:
        """Resolve an injection point.

        Args:
            descriptor: The injection point
            requesting_name: Name of the component being injected (None for ad-hoc lookups)
            autowired_names: Receives the names of the injected components

        Returns:
            The component (or collection of components), or None when an
            optional dependency has no candidate

        Raises:
            UnsatisfiedDependencyError: If a required dependency has zero or
                ambiguous candidates
        """
        try:
            return self.do_resolve_dependency(descriptor, requesting_name, autowired_names)
        except ComponentCreationError:
            raise
        except (DefinitionNotFoundError, ComponentNotOfRequiredTypeError) as e:
            raise UnsatisfiedDependencyError(requesting_name, descriptor, str(e), e) from e

    def do_resolve_dependency(
        self,
        descriptor: DependencyDescriptor,
        requesting_name: str | None,
        autowired_names: set[str] | None = None,
    ) -> Any:
        """Resolve an injection point, raising lookup errors unwrapped."""
        if autowired_names is None:
            autowired_names = set()

        required_type = descriptor.dependency_type
        if isinstance(required_type, str):
            raise DefinitionNotFoundError(
                required_type=required_type,
                message=f"Cannot resolve unevaluated type annotation '{required_type}'",
            )

        if descriptor.collection is not None:
            return self._resolve_multiple(descriptor, requesting_name, autowired_names)

        candidates = self.find_candidates(requesting_name, required_type, descriptor)
        if not candidates:
            if descriptor.required:
                raise DefinitionNotFoundError(
                    required_type=required_type,
                    message=(
                        f"No qualifying component of type '{type_name(required_type)}' "
                        "available: expected at least 1 component which qualifies as "
                        "autowire candidate"
                    ),
                )
            return None

        if len(candidates) > 1:
            chosen = self.determine_autowire_candidate(candidates, descriptor)
            if chosen is None:
                raise NoUniqueComponentError(required_type, [c.name for c in candidates])
        else:
            chosen = candidates[0]

        if not chosen.resolvable:
            autowired_names.add(chosen.name)
        instance = chosen.instance if chosen.resolved else self.factory.get_component(chosen.name)

        if instance is None or isinstance(instance, NullComponent):
            if descriptor.required:
                raise DefinitionNotFoundError(
                    required_type=required_type,
                    message=f"Component '{chosen.name}' resolved to None for a required dependency",
                )
            return None
        if not is_instance_of(instance, required_type):
            raise ComponentNotOfRequiredTypeError(chosen.name, required_type, type(instance))
        logger.debug(
            f"Autowired {descriptor.describe()} of component '{requesting_name}' "
            f"with component '{chosen.name}'"
        )
        return instance

    def _resolve_multiple(
        self,
        descriptor: DependencyDescriptor,
        requesting_name: str | None,
        autowired_names: set[str],
    ) -> Any:
        origin, element_type = descriptor.collection
        candidates = self.find_candidates(requesting_name, element_type, descriptor, multiple=True)
        if not candidates:
            if descriptor.required:
                raise DefinitionNotFoundError(
                    required_type=element_type,
                    message=(
                        f"No qualifying component of type '{type_name(element_type)}' "
                        f"available for collection injection into {descriptor.describe()}"
                    ),
                )
            return None

        named: list[tuple[str, Any]] = []
        for candidate in candidates:
            instance = (
                candidate.instance
                if candidate.resolved
                else self.factory.get_component(candidate.name)
            )
            if instance is None or isinstance(instance, NullComponent):
                continue
            if not candidate.resolvable:
                autowired_names.add(candidate.name)
            named.append((candidate.name, instance))

        if origin is dict:
            return dict(named)
        ordered = sort_by_order(instance for _, instance in named)
        return origin(ordered)

    def find_candidates(
        self,
        requesting_name: str | None,
        required_type: Any,
        descriptor: DependencyDescriptor,
        multiple: bool = False,
    ) -> list[_Candidate]:
        """Collect autowire candidates for a required type."""
        result: list[_Candidate] = []
        for dependency_type, value in self.factory.resolvable_dependencies.items():
            if is_assignable(dependency_type, required_type) and descriptor.qualifier is None:
                result.append(
                    _Candidate(
                        f"<{type_name(dependency_type)}>", value, resolved=True, resolvable=True
                    )
                )

        names = self.factory.get_names_for_type_including_ancestors(
            required_type, include_non_singletons=True, allow_eager_init=descriptor.eager
        )
        self_references = []
        for name in names:
            if not self.is_autowire_candidate(name, descriptor):
                continue
            if self.is_self_reference(requesting_name, name):
                self_references.append(name)
                continue
            result.append(self._candidate(name, multiple))

        if not result:
            for name in self_references:
                if multiple and name == requesting_name:
                    continue
                result.append(self._candidate(name, multiple))
        return result

    def _candidate(self, name: str, multiple: bool) -> _Candidate:
        if not multiple and self.factory.singletons.contains_singleton(name):
            return _Candidate(name, self.factory.get_component(name), resolved=True)
        return _Candidate(name)

    def is_self_reference(self, requesting_name: str | None, candidate_name: str) -> bool:
        if requesting_name is None:
            return False
        if candidate_name == requesting_name:
            return True
        merged = self.factory.find_merged_definition(candidate_name)
        return merged is not None and merged.factory_component_name == requesting_name

    def is_autowire_candidate(self, name: str, descriptor: DependencyDescriptor) -> bool:
        qualifier = descriptor.qualifier
        merged = self.factory.find_merged_definition(name)
        if merged is None:
            # Manually registered singletons match on name only
            return qualifier is None or qualifier == name
        if not merged.autowire_candidate:
            return False
        if qualifier is not None:
            return qualifier == name or qualifier in merged.qualifiers
        return True

    def determine_autowire_candidate(
        self, candidates: list[_Candidate], descriptor: DependencyDescriptor
    ) -> _Candidate | None:
        """Narrow several candidates down to one, or return None."""
        primary = self._determine_primary(candidates, descriptor)
        if primary is not None:
            return primary
        prioritized = self._determine_highest_priority(candidates, descriptor)
        if prioritized is not None:
            return prioritized
        for candidate in candidates:
            if descriptor.name is not None and candidate.name == descriptor.name:
                return candidate
        return None

    def _determine_primary(
        self, candidates: list[_Candidate], descriptor: DependencyDescriptor
    ) -> _Candidate | None:
        primaries = [c for c in candidates if not c.resolvable and self.is_primary(c.name)]
        if len(primaries) > 1:
            raise NoUniqueComponentError(
                descriptor.dependency_type,
                [c.name for c in candidates],
                message=(
                    f"More than one 'primary' component found among candidates: "
                    f"{', '.join(c.name for c in primaries)}"
                ),
            )
        return primaries[0] if primaries else None

    def _determine_highest_priority(
        self, candidates: list[_Candidate], descriptor: DependencyDescriptor
    ) -> _Candidate | None:
        priorities = [(c, self.get_priority(c.name)) for c in candidates if not c.resolvable]
        if len(priorities) != len(candidates) or any(p is None for _, p in priorities):
            return None
        best = min(p for _, p in priorities)
        winners = [c for c, p in priorities if p == best]
        if len(winners) > 1:
            raise NoUniqueComponentError(
                descriptor.dependency_type,
                [c.name for c in candidates],
                message=(
                    f"Multiple components found with the same priority ('{best}') among "
                    f"candidates: {', '.join(c.name for c in winners)}"
                ),
            )
        return winners[0]

    def is_primary(self, name: str) -> bool:
        merged = self.factory.find_merged_definition(name)
        return merged is not None and merged.primary

    def get_priority(self, name: str) -> int | None:
        merged = self.factory.find_merged_definition(name)
        if merged is not None and merged.priority is not None:
            return merged.priority
        component_type = self.factory.get_type(name.lstrip(FACTORY_PREFIX))
        if component_type is None:
            return None
        return get_priority(component_type)
