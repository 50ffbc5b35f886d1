"""Tests for circular reference handling.

Singletons that reference each other through properties resolve via early
references. Constructor cycles, prototype cycles and cycles with circular
references disabled are reported as ComponentCurrentlyInCreationError.
"""

import pytest

from cask.core.config import FactoryConfig, RawInjectionPolicy
from cask.core.definition import AutowireMode, ScopeType
from cask.core.errors import ComponentCreationError, ComponentCurrentlyInCreationError
from cask.core.factory import ComponentFactory
from cask.core.post_processors import (
    ComponentPostProcessor,
    SmartInstantiationAwarePostProcessor,
)


# Property cycle
class CircularA:
    b: "CircularB" = None


class CircularB:
    a: CircularA = None


# Constructor cycle
class CtorA:
    def __init__(self, b: "CtorB"):
        self.b = b


class CtorB:
    def __init__(self, a: CtorA):
        self.a = a


class ProxyA(CircularA):
    """Stand-in for a wrapper produced by a post-processor."""

    def __init__(self, target):
        self.target = target


class WrappingProcessor(ComponentPostProcessor):
    """Wraps 'a' after initialization without offering an early reference."""

    def after_initialization(self, component, name):
        if name == "a":
            return ProxyA(component)
        return component


class EarlyWrappingProcessor(SmartInstantiationAwarePostProcessor):
    """Wraps 'a' and hands out the same wrapper to circular references."""

    def __init__(self):
        self.early = {}

    def get_early_reference(self, component, name):
        if name == "a":
            self.early[name] = ProxyA(component)
            return self.early[name]
        return component

    def after_initialization(self, component, name):
        if name == "a" and name not in self.early:
            return ProxyA(component)
        return component


class ReturningEarlyProcessor(SmartInstantiationAwarePostProcessor):
    """Returns the early wrapper of 'a' again after initialization."""

    def __init__(self):
        self.early = {}

    def get_early_reference(self, component, name):
        if name == "a":
            self.early[name] = ProxyA(component)
            return self.early[name]
        return component

    def after_initialization(self, component, name):
        return self.early.get(name, component)


def register_pair(factory, scope=ScopeType.SINGLETON):
    factory.register("a", CircularA, scope=scope, autowire_mode=AutowireMode.BY_TYPE)
    factory.register("b", CircularB, scope=scope, autowire_mode=AutowireMode.BY_TYPE)


@pytest.mark.unit
class TestSingletonCycles:
    """Test cycles between singletons."""

    def test_property_cycle_resolves(self, factory):
        """Test that singletons referencing each other get each other's final instance."""
        register_pair(factory)

        a = factory.get_component("a")
        b = factory.get_component("b")

        assert a.b is b
        assert b.a is a

    def test_property_cycle_from_either_side(self, factory):
        """Test that the lookup order does not matter."""
        register_pair(factory)

        b = factory.get_component("b")

        assert b.a.b is b

    def test_cycle_registers_dependencies_both_ways(self, factory):
        """Test that both components are recorded as dependents of each other."""
        register_pair(factory)

        factory.get_component("a")

        assert factory.singletons.get_dependents("a") == ["b"]
        assert factory.singletons.get_dependents("b") == ["a"]

    def test_property_cycle_with_circular_references_disabled(self):
        """Test that disabling early references turns the cycle into an error."""
        factory = ComponentFactory(FactoryConfig(allow_circular_references=False))
        register_pair(factory)

        with pytest.raises(ComponentCreationError) as exc_info:
            factory.get_component("a")

        assert exc_info.value.contains(ComponentCurrentlyInCreationError)
        assert not factory.singletons.contains_singleton("a")
        assert not factory.singletons.contains_singleton("b")

    def test_constructor_cycle(self, factory):
        """Test that constructor cycles cannot be resolved."""
        factory.register("a", CtorA)
        factory.register("b", CtorB)

        with pytest.raises(ComponentCurrentlyInCreationError):
            factory.get_component("a")

    def test_failed_cycle_leaves_no_partial_singletons(self, factory):
        """Test that a failed constructor cycle cleans up the early tiers."""
        factory.register("a", CtorA)
        factory.register("b", CtorB)

        with pytest.raises(ComponentCurrentlyInCreationError):
            factory.get_component("a")

        assert factory.singletons.singleton_count == 0


@pytest.mark.unit
class TestPrototypeCycles:
    """Test cycles between prototypes."""

    def test_prototype_cycle(self, factory):
        """Test that prototypes can never form a cycle."""
        register_pair(factory, scope=ScopeType.PROTOTYPE)

        with pytest.raises(ComponentCurrentlyInCreationError):
            factory.get_component("a")

    def test_prototype_referencing_singleton(self, factory):
        """Test that a prototype may depend on a singleton that depends on nothing."""
        factory.register("a", CircularA, autowire_mode=AutowireMode.NO)
        factory.register(
            "b", CircularB, scope=ScopeType.PROTOTYPE, autowire_mode=AutowireMode.BY_TYPE
        )

        first = factory.get_component("b")
        second = factory.get_component("b")

        assert first is not second
        assert first.a is second.a


@pytest.mark.unit
class TestEarlyReferenceWrapping:
    """Test reconciling early references with post-processor wrappers."""

    def test_early_reference_wrapper_is_exposed_consistently(self, factory):
        """Test that the wrapper given to the cycle is also the final singleton."""
        factory.add_post_processor(EarlyWrappingProcessor())
        register_pair(factory)

        a = factory.get_component("a")
        b = factory.get_component("b")

        assert isinstance(a, ProxyA)
        assert b.a is a
        assert a.target.b is b

    def test_early_reference_returned_after_initialization(self, factory):
        """Test that returning the already exposed early reference is consistent."""
        factory.add_post_processor(ReturningEarlyProcessor())
        register_pair(factory)

        a = factory.get_component("a")
        b = factory.get_component("b")

        assert isinstance(a, ProxyA)
        assert b.a is a
        assert a.target.b is b

    def test_raw_injection_rejected_by_default(self, factory):
        """Test that wrapping after a raw early reference was injected fails."""
        factory.add_post_processor(WrappingProcessor())
        register_pair(factory)

        with pytest.raises(ComponentCurrentlyInCreationError, match="in its raw version"):
            factory.get_component("a")

    def test_raw_injection_strict(self):
        """Test the strict raw-injection policy."""
        factory = ComponentFactory(
            FactoryConfig(raw_injection_policy=RawInjectionPolicy.STRICT)
        )
        factory.add_post_processor(WrappingProcessor())
        register_pair(factory)

        with pytest.raises(ComponentCurrentlyInCreationError, match="\\[b\\]"):
            factory.get_component("a")

    def test_raw_injection_tolerated(self, log_messages):
        """Test that the tolerant policy keeps the raw reference and warns."""
        factory = ComponentFactory(
            FactoryConfig(raw_injection_policy=RawInjectionPolicy.TOLERATE)
        )
        factory.add_post_processor(WrappingProcessor())
        register_pair(factory)

        a = factory.get_component("a")
        b = factory.get_component("b")

        assert isinstance(a, ProxyA)
        assert b.a is a.target
        assert any(
            level == "WARNING" and "in its raw version" in message
            for level, message in log_messages
        )
