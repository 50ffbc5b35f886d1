"""Tests for the post-processor hooks and the ordering helpers."""

import pytest

from cask.core.definition import ScopeType
from cask.core.ordering import (
    LOWEST_PRECEDENCE,
    Ordered,
    PriorityOrdered,
    get_order,
    get_priority,
    order,
    priority,
    sort_by_order,
)
from cask.core.post_processors import (
    ComponentPostProcessor,
    DestructionAwarePostProcessor,
    InstantiationAwarePostProcessor,
    MergedDefinitionPostProcessor,
    PostProcessorChain,
    SmartInstantiationAwarePostProcessor,
)


# Test classes
class Repository:
    pass


class Client:
    url: str = None
    timeout: int = 10

    def __init__(self):
        self.constructed = True
        self.initialized = False

    def initialize(self):
        self.initialized = True


class ClientStub(Client):
    def __init__(self):
        self.constructed = False
        self.initialized = False


class Service:
    def __init__(self):
        self.repo = None

    @classmethod
    def with_repo(cls, repo: Repository):
        service = cls()
        service.repo = repo
        return service


class RecordingProcessor(ComponentPostProcessor):
    def __init__(self, label, events):
        self.label = label
        self.events = events

    def before_initialization(self, component, name):
        self.events.append(f"{self.label}:before:{name}")
        return component

    def after_initialization(self, component, name):
        self.events.append(f"{self.label}:after:{name}")
        return component


class NoOpinionProcessor(ComponentPostProcessor):
    def after_initialization(self, component, name):
        return None


class StubbingProcessor(InstantiationAwarePostProcessor):
    def before_instantiation(self, component_class, name):
        if component_class is Client:
            return ClientStub()
        return None


class VetoProcessor(InstantiationAwarePostProcessor):
    def after_instantiation(self, component, name):
        return not isinstance(component, Client)


class TimeoutProcessor(InstantiationAwarePostProcessor):
    def process_properties(self, property_values, component, name):
        values = property_values.copy()
        values.add("timeout", "99")
        return values


class StopPopulationProcessor(InstantiationAwarePostProcessor):
    def process_properties(self, property_values, component, name):
        return None


class CountingDefinitionProcessor(MergedDefinitionPostProcessor):
    def __init__(self):
        self.processed = []
        self.resets = []

    def post_process_merged_definition(self, definition, component_class, name):
        self.processed.append((name, component_class))

    def reset_definition(self, name):
        self.resets.append(name)


class PredictingProcessor(SmartInstantiationAwarePostProcessor):
    def predict_type(self, component_class, name):
        if component_class is Client:
            return ClientStub
        return None


class ConstructorChoosingProcessor(SmartInstantiationAwarePostProcessor):
    def determine_candidate_constructors(self, component_class, name):
        if component_class is Service:
            return [Service.with_repo]
        return None


class ClosingProcessor(DestructionAwarePostProcessor):
    def __init__(self):
        self.destroyed = []

    def before_destruction(self, component, name):
        self.destroyed.append(name)

    def requires_destruction(self, component):
        return isinstance(component, Repository)


class FirstOrdered(PriorityOrdered):
    def get_order(self):
        return 100


class SecondOrdered(Ordered):
    def get_order(self):
        return 5


@order(1)
class DecoratedOrdered:
    pass


class Unordered:
    pass


@pytest.mark.unit
class TestInitializationHooks:
    """Test before/after initialization callbacks."""

    def test_processors_run_in_registration_order(self, factory):
        """Test that every processor sees the component in order."""
        events = []
        factory.add_post_processor(RecordingProcessor("a", events))
        factory.add_post_processor(RecordingProcessor("b", events))
        factory.register("repo", Repository)

        factory.get_component("repo")

        assert events == ["a:before:repo", "b:before:repo", "a:after:repo", "b:after:repo"]

    def test_none_keeps_current_object(self, factory):
        """Test that returning None stops the chain and keeps the current object."""
        events = []
        factory.add_post_processor(NoOpinionProcessor())
        factory.add_post_processor(RecordingProcessor("late", events))
        factory.register("repo", Repository)

        repo = factory.get_component("repo")

        assert isinstance(repo, Repository)
        assert events == ["late:before:repo"]

    def test_initialize_existing_object(self, factory):
        """Test that initialize_component runs the hooks on an external object."""
        events = []
        factory.add_post_processor(RecordingProcessor("a", events))
        client = Client()

        result = factory.initialize_component(client, "external")

        assert result is client
        assert client.initialized
        assert events == ["a:before:external", "a:after:external"]


@pytest.mark.unit
class TestInstantiationHooks:
    """Test hooks around instantiation and population."""

    def test_before_instantiation_shortcut(self, factory):
        """Test that a substitute skips construction, population and init callbacks."""
        events = []
        factory.add_post_processor(StubbingProcessor())
        factory.add_post_processor(RecordingProcessor("a", events))
        factory.register("client", Client, property_values={"url": "http://api"})

        client = factory.get_component("client")

        assert isinstance(client, ClientStub)
        assert not client.constructed
        assert not client.initialized
        assert client.url is None
        assert events == ["a:after:client"]

    def test_after_instantiation_veto(self, factory):
        """Test that after_instantiation returning False skips population."""
        factory.add_post_processor(VetoProcessor())
        factory.register("client", Client, property_values={"url": "http://api"})

        client = factory.get_component("client")

        assert client.url is None
        assert client.initialized

    def test_process_properties(self, factory):
        """Test that processors may add property values."""
        factory.add_post_processor(TimeoutProcessor())
        factory.register("client", Client, property_values={"url": "http://api"})

        client = factory.get_component("client")

        assert client.url == "http://api"
        assert client.timeout == 99
        assert "timeout" not in factory.get_merged_definition("client").property_values

    def test_process_properties_stops_population(self, factory):
        """Test that returning None from process_properties applies nothing."""
        factory.add_post_processor(StopPopulationProcessor())
        factory.register("client", Client, property_values={"url": "http://api"})

        assert factory.get_component("client").url is None

    def test_predict_type(self, factory):
        """Test that predicted types are used by type queries."""
        factory.add_post_processor(PredictingProcessor())
        factory.register("client", Client)

        assert factory.get_type("client") is ClientStub
        assert factory.is_type_match("client", ClientStub)

    def test_candidate_constructors(self, factory):
        """Test that processors may choose the constructors to autowire."""
        factory.register("repo", Repository)
        factory.register("chosen", Service)
        factory.add_post_processor(ConstructorChoosingProcessor())

        assert factory.get_component("chosen").repo is factory.get_component("repo")

    def test_without_candidate_constructors(self, factory):
        """Test that a no-argument class is constructed directly."""
        factory.register("repo", Repository)
        factory.register("service", Service)

        assert factory.get_component("service").repo is None


@pytest.mark.unit
class TestDefinitionHooks:
    """Test merged-definition post-processing."""

    def test_merged_definition_processed_once(self, factory):
        """Test that a prototype's merged definition is processed only once."""
        processor = CountingDefinitionProcessor()
        factory.add_post_processor(processor)
        factory.register("client", Client, scope=ScopeType.PROTOTYPE)

        for _ in range(3):
            factory.get_component("client")

        assert processor.processed == [("client", Client)]
        assert factory.get_merged_definition("client").post_processed

    def test_reset_on_reregistration(self, factory):
        """Test that processors are told when a definition is replaced."""
        processor = CountingDefinitionProcessor()
        factory.add_post_processor(processor)
        factory.register("client", Client)
        factory.get_component("client")

        factory.register("client", Client, property_values={"url": "http://new"})

        assert processor.resets == ["client"]
        assert factory.get_component("client").url == "http://new"
        assert len(processor.processed) == 2


@pytest.mark.unit
class TestDestructionHooks:
    """Test destruction-aware post-processors."""

    def test_before_destruction(self, factory):
        """Test that matching components are handed to before_destruction."""
        processor = ClosingProcessor()
        factory.add_post_processor(processor)
        factory.register("repo", Repository)
        factory.register("client", Client)
        factory.get_component("repo")
        factory.get_component("client")

        factory.destroy_singletons()

        assert processor.destroyed == ["repo"]

    def test_prototype_destruction(self, factory):
        """Test that destroy_component also runs the processors."""
        processor = ClosingProcessor()
        factory.add_post_processor(processor)
        factory.register("repo", Repository, scope=ScopeType.PROTOTYPE)
        repo = factory.get_component("repo")

        factory.destroy_singletons()
        assert processor.destroyed == []

        factory.destroy_component("repo", repo)
        assert processor.destroyed == ["repo"]


@pytest.mark.unit
class TestPostProcessorChain:
    """Test the chain container itself."""

    def test_readding_moves_to_end(self):
        """Test that adding a registered processor again moves it to the end."""
        chain = PostProcessorChain()
        first = ComponentPostProcessor()
        second = ComponentPostProcessor()

        chain.add(first)
        chain.add(second)
        chain.add(first)

        assert list(chain) == [second, first]
        assert len(chain) == 2

    def test_rejects_non_processors(self):
        """Test that only ComponentPostProcessors can be added."""
        chain = PostProcessorChain()

        with pytest.raises(TypeError):
            chain.add(object())

    def test_family_flags(self):
        """Test the per-family flags after adding and removing processors."""
        chain = PostProcessorChain()
        assert not chain.has_instantiation_aware

        smart = PredictingProcessor()
        chain.add(smart)
        chain.add(ClosingProcessor())

        assert chain.has_instantiation_aware
        assert chain.has_destruction_aware
        chain.remove(smart)
        assert not chain.has_instantiation_aware


@pytest.mark.unit
class TestOrdering:
    """Test order and priority metadata."""

    def test_sort_by_order(self):
        """Test priority-ordered first, then ascending order, then unordered."""
        first = FirstOrdered()
        second = SecondOrdered()
        decorated = DecoratedOrdered()
        plain = Unordered()

        assert sort_by_order([plain, second, decorated, first]) == [
            first,
            decorated,
            second,
            plain,
        ]

    def test_get_order(self):
        """Test reading declared order values."""
        assert get_order(DecoratedOrdered) == 1
        assert get_order(DecoratedOrdered()) == 1
        assert get_order(SecondOrdered()) == 5
        assert get_order(Unordered()) == LOWEST_PRECEDENCE

    def test_priority(self):
        """Test reading @priority from classes and instances."""

        @priority(3)
        class Preferred:
            pass

        assert get_priority(Preferred) == 3
        assert get_priority(Preferred()) == 3
        assert get_priority(Unordered) is None
