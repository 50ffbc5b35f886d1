"""Tests for the creation pipeline.

Covers instantiation (constructor arguments, factory methods, alternate
constructors), property population, dependency checks, initialization and
destruction callbacks, and method overrides.
"""

import asyncio
from dataclasses import dataclass

import pytest

from cask.core.constructor_resolver import constructor
from cask.core.definition import (
    INFERRED_METHOD,
    AutowireMode,
    ComponentDefinition,
    ComponentReference,
    ConstructorArgumentValues,
    DefinitionHolder,
    DependencyCheck,
    LookupOverride,
    ReplaceOverride,
    ScopeType,
    TypedValue,
)
from cask.core.errors import (
    ComponentCreationError,
    ConversionError,
    DefinitionStoreError,
    DefinitionValidationError,
    NotWritablePropertyError,
    UnsatisfiedDependencyError,
)
from cask.core.post_processors import ComponentPostProcessor


# Test classes
class Repository:
    pass


class Client:
    url: str = None
    timeout: int = 10
    repo: Repository = None
    tags: list[str] = None

    def __init__(self):
        self.started = False

    def start(self):
        self.started = True


class Endpoint:
    def __init__(self, url: str, retries: int, repo: Repository = None):
        self.url = url
        self.retries = retries
        self.repo = repo


class Settings:
    url = "http://settings"


class Connection:
    def __init__(self, url: str):
        self.url = url

    @constructor
    @classmethod
    def from_settings(cls, settings: Settings) -> "Connection":
        return cls(settings.url)


class LifecycleRecorder:
    def __init__(self):
        self.events = []

    def set_component_name(self, name):
        self.events.append(f"name:{name}")

    def set_component_factory(self, factory):
        self.factory = factory
        self.events.append("factory")

    def initialize(self):
        self.events.append("initialize")

    def start(self):
        self.events.append("start")

    def dispose(self):
        self.events.append("dispose")

    def stop(self):
        self.events.append("stop")


class RecordingProcessor(ComponentPostProcessor):
    def before_initialization(self, component, name):
        if isinstance(component, LifecycleRecorder):
            component.events.append("before")
        return component

    def after_initialization(self, component, name):
        if isinstance(component, LifecycleRecorder):
            component.events.append("after")
        return component


class AsyncInitialized:
    def __init__(self):
        self.ready = False

    async def initialize(self):
        await asyncio.sleep(0)
        self.ready = True


class Closeable:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class Command:
    pass


class CommandManager:
    def create_command(self) -> Command:
        raise NotImplementedError

    def command_by_type(self) -> Command:
        raise NotImplementedError

    def describe(self, subject):
        return f"original {subject}"


class ShoutingReplacer:
    def reimplement(self, obj, method_name, args, kwargs):
        return f"replaced {args[0]}".upper()


class Worker:
    def __init__(self, retries: int = 3, repo: Repository = None, /):
        self.retries = retries
        self.repo = repo


@dataclass
class PoolSettings:
    size: int = 1
    name: str = "default"


class Pool:
    settings: PoolSettings = None


class ConnectionBuilder:
    def __init__(self):
        self.prefix = "built"

    def build(self, repo: Repository) -> Endpoint:
        return Endpoint(f"{self.prefix}://db", 3, repo)

    @staticmethod
    def create(url: str) -> Endpoint:
        return Endpoint(url, 1)


@pytest.mark.unit
class TestInstantiation:
    """Test the ways a raw instance is produced."""

    def test_indexed_constructor_arguments(self, factory):
        """Test positional constructor argument values."""
        factory.register("endpoint", Endpoint, constructor_args=["http://db", "3"])

        endpoint = factory.get_component("endpoint")

        assert endpoint.url == "http://db"
        assert endpoint.retries == 3
        assert endpoint.repo is None

    def test_named_arguments_and_autowiring(self, factory):
        """Test that named values combine with autowired parameters."""
        factory.register("repo", Repository)
        factory.register(
            "endpoint",
            Endpoint,
            autowire_mode=AutowireMode.CONSTRUCTOR,
            constructor_args=ConstructorArgumentValues.of(url="http://db", retries=2),
        )

        endpoint = factory.get_component("endpoint")

        assert endpoint.retries == 2
        assert endpoint.repo is factory.get_component("repo")

    def test_reference_argument(self, factory):
        """Test that ComponentReference arguments resolve to components."""
        factory.register("repo", Repository)
        factory.register(
            "endpoint", Endpoint, constructor_args=["http://db", 1, ComponentReference("repo")]
        )

        endpoint = factory.get_component("endpoint")

        assert endpoint.repo is factory.get_component("repo")
        assert factory.singletons.get_dependents("repo") == ["endpoint"]

    def test_simple_parameter_without_value(self, factory):
        """Test that simple parameters are never autowired."""
        factory.register("endpoint", Endpoint)

        with pytest.raises(UnsatisfiedDependencyError):
            factory.get_component("endpoint")

    def test_alternate_constructor(self, factory):
        """Test that an @constructor classmethod is used when __init__ cannot be satisfied."""
        settings = Settings()
        factory.register_singleton("settings", settings)
        factory.register("connection", Connection)

        connection = factory.get_component("connection")

        assert connection.url == "http://settings"

    def test_constructor_plan_is_cached(self, factory):
        """Test that later prototypes reuse the resolved constructor."""
        factory.register("repo", Repository)
        factory.register(
            "endpoint",
            Endpoint,
            scope=ScopeType.PROTOTYPE,
            autowire_mode=AutowireMode.CONSTRUCTOR,
            constructor_args=ConstructorArgumentValues.of(url="http://db", retries=2),
        )

        first = factory.get_component("endpoint")
        merged = factory.get_merged_definition("endpoint")
        second = factory.get_component("endpoint")

        assert merged.constructor_arguments_resolved
        assert merged.resolved_constructor is Endpoint
        assert first is not second
        assert second.repo is first.repo

    def test_factory_method_on_component(self, factory):
        """Test building a component through another component's method."""
        factory.register("repo", Repository)
        factory.register("builder", ConnectionBuilder)
        factory.register("endpoint", factory_component_name="builder", factory_method_name="build")

        endpoint = factory.get_component("endpoint")

        assert endpoint.url == "built://db"
        assert endpoint.repo is factory.get_component("repo")
        assert "endpoint" in factory.singletons.get_dependents("builder")

    def test_static_factory_method(self, factory):
        """Test building a component through a static method of its class."""
        factory.register(
            "endpoint",
            ConnectionBuilder,
            factory_method_name="create",
            constructor_args=["http://static"],
        )

        endpoint = factory.get_component("endpoint")

        assert isinstance(endpoint, Endpoint)
        assert endpoint.url == "http://static"

    def test_missing_factory_method(self, factory):
        """Test that an unknown factory method fails creation."""
        factory.register("endpoint", ConnectionBuilder, factory_method_name="missing")

        with pytest.raises(ComponentCreationError, match="No factory method 'missing'"):
            factory.get_component("endpoint")

    def test_positional_only_defaults_keep_their_slots(self, factory):
        """Test that a defaulted positional-only parameter does not shift later arguments."""
        factory.register("repo", Repository)
        factory.register("worker", Worker, scope=ScopeType.PROTOTYPE)

        first = factory.get_component("worker")
        second = factory.get_component("worker")

        for worker in (first, second):
            assert worker.retries == 3
            assert worker.repo is factory.get_component("repo")
        assert first is not second


@pytest.mark.unit
class TestPopulation:
    """Test property values, autowiring and dependency checks."""

    def test_explicit_property_values_are_converted(self, factory):
        """Test that declared values are converted to the property types."""
        factory.register(
            "client", Client, property_values={"url": "http://api", "timeout": "30", "tags": "a, b"}
        )

        client = factory.get_component("client")

        assert client.url == "http://api"
        assert client.timeout == 30
        assert client.tags == ["a", "b"]

    def test_reference_property(self, factory):
        """Test that ComponentReference property values resolve to components."""
        factory.register("repo", Repository)
        factory.register("client", Client, property_values={"repo": ComponentReference("repo")})

        assert factory.get_component("client").repo is factory.get_component("repo")

    def test_typed_value(self, factory):
        """Test that TypedValue converts to its own target type."""
        factory.register("client", Client, property_values={"url": TypedValue(8080, str)})

        assert factory.get_component("client").url == "8080"

    def test_inner_definition(self, factory):
        """Test that nested definitions become unnamed inner components."""
        factory.register(
            "client",
            Client,
            property_values={"repo": DefinitionHolder(ComponentDefinition(Repository), "inner")},
        )

        client = factory.get_component("client")

        assert isinstance(client.repo, Repository)
        assert not factory.contains_component("inner")

    def test_dataclass_property_from_dict(self, factory):
        """Test that dict values build dataclass-typed properties."""
        factory.register("pool", Pool, property_values={"settings": {"size": "4"}})

        assert factory.get_component("pool").settings == PoolSettings(size=4)

    def test_conversion_failure(self, factory):
        """Test that unconvertible values fail creation with a ConversionError cause."""
        factory.register("client", Client, property_values={"timeout": "soon"})

        with pytest.raises(ComponentCreationError) as exc_info:
            factory.get_component("client")

        assert exc_info.value.contains(ConversionError)

    def test_unknown_property(self, factory):
        """Test that values for unknown properties are rejected."""
        factory.register("client", Client, property_values={"missing": 1})

        with pytest.raises(ComponentCreationError) as exc_info:
            factory.get_component("client")

        assert exc_info.value.contains(NotWritablePropertyError)

    def test_autowire_by_name(self, factory):
        """Test that unset object properties are filled by matching names."""
        factory.register("repo", Repository)
        factory.register("client", Client, autowire_mode=AutowireMode.BY_NAME)

        client = factory.get_component("client")

        assert client.repo is factory.get_component("repo")
        assert client.url is None

    def test_autowire_by_type(self, factory):
        """Test that unset object properties are filled by type."""
        factory.register("main", Repository)
        factory.register("client", Client, autowire_mode=AutowireMode.BY_TYPE)

        assert factory.get_component("client").repo is factory.get_component("main")

    def test_autowire_by_type_missing_required(self, factory):
        """Test that a required property without candidates fails."""
        factory.register("client", Client, autowire_mode=AutowireMode.BY_TYPE)

        with pytest.raises(UnsatisfiedDependencyError):
            factory.get_component("client")

    def test_explicit_value_beats_autowiring(self, factory):
        """Test that autowiring only fills properties without explicit values."""
        factory.register("main", Repository)
        factory.register("other", Repository, autowire_candidate=False)
        factory.register(
            "client",
            Client,
            autowire_mode=AutowireMode.BY_TYPE,
            property_values={"repo": ComponentReference("other")},
        )

        assert factory.get_component("client").repo is factory.get_component("other")

    def test_dependency_check_objects(self, factory):
        """Test that OBJECTS requires every object property to be set."""
        factory.register("client", Client, dependency_check=DependencyCheck.OBJECTS)

        with pytest.raises(UnsatisfiedDependencyError, match="property 'repo'"):
            factory.get_component("client")

    def test_dependency_check_simple(self, factory):
        """Test that SIMPLE requires every simple property to be set."""
        factory.register(
            "client",
            Client,
            dependency_check=DependencyCheck.SIMPLE,
            property_values={"url": "http://api"},
        )

        with pytest.raises(UnsatisfiedDependencyError, match="property 'tags'"):
            factory.get_component("client")


@pytest.mark.unit
class TestInitialization:
    """Test aware callbacks, init methods and post-processor ordering."""

    def test_lifecycle_order(self, factory):
        """Test the order of callbacks during creation and destruction."""
        factory.add_post_processor(RecordingProcessor())
        factory.register(
            "recorder", LifecycleRecorder, init_method_names=("start",), destroy_method_name="stop"
        )

        recorder = factory.get_component("recorder")
        created = list(recorder.events)
        factory.destroy_singletons()

        assert created == ["name:recorder", "factory", "before", "initialize", "start", "after"]
        assert recorder.events[-2:] == ["dispose", "stop"]
        assert recorder.factory is factory

    def test_custom_init_method(self, factory):
        """Test that init_method_names are invoked after population."""
        factory.register("client", Client, init_method_names="start")

        assert factory.get_component("client").started

    def test_missing_enforced_init_method(self, factory):
        """Test that a missing init method fails when enforced."""
        factory.register("client", Client, init_method_names=("warm_up",))

        with pytest.raises(ComponentCreationError) as exc_info:
            factory.get_component("client")

        assert exc_info.value.contains(DefinitionValidationError)

    def test_missing_optional_init_method(self, factory):
        """Test that a missing init method is skipped when not enforced."""
        factory.register(
            "client", Client, init_method_names=("warm_up",), enforce_init_method=False
        )

        assert isinstance(factory.get_component("client"), Client)

    def test_failing_init_method(self, factory):
        """Test that init failures keep the original exception as root cause."""

        class Broken:
            def initialize(self):
                raise RuntimeError("cannot connect")

        factory.register("broken", Broken)

        with pytest.raises(ComponentCreationError) as exc_info:
            factory.get_component("broken")

        assert exc_info.value.component_name == "broken"
        assert isinstance(exc_info.value.root_cause(), RuntimeError)
        assert not factory.singletons.contains_singleton("broken")

    def test_async_initialize(self, factory):
        """Test that coroutine initialize methods are run to completion."""
        factory.register("async", AsyncInitialized)

        assert factory.get_component("async").ready


@pytest.mark.unit
class TestDestruction:
    """Test destroy methods of singletons and prototypes."""

    def test_custom_destroy_method(self, factory):
        """Test that destroy_method_name is called on destruction."""
        factory.register("closeable", Closeable, destroy_method_name="close")
        closeable = factory.get_component("closeable")

        factory.destroy_singleton("closeable")

        assert closeable.closed

    def test_inferred_destroy_method(self, factory):
        """Test that the inferred destroy method finds close()."""
        factory.register("closeable", Closeable, destroy_method_name=INFERRED_METHOD)
        closeable = factory.get_component("closeable")

        factory.destroy_singletons()

        assert closeable.closed

    def test_missing_enforced_destroy_method(self, factory):
        """Test that a missing destroy method fails creation when enforced."""
        factory.register("closeable", Closeable, destroy_method_name="shutdown")

        with pytest.raises(ComponentCreationError, match="Invalid destruction signature"):
            factory.get_component("closeable")

    def test_prototypes_are_not_destroyed_by_factory(self, factory):
        """Test that prototypes are handed off and destroyed only on request."""
        factory.register(
            "closeable", Closeable, scope=ScopeType.PROTOTYPE, destroy_method_name="close"
        )
        closeable = factory.get_component("closeable")

        factory.destroy_singletons()
        assert not closeable.closed

        factory.destroy_component("closeable", closeable)
        assert closeable.closed


@pytest.mark.unit
class TestMethodOverrides:
    """Test lookup and replace method injection."""

    def test_lookup_override_by_name(self, factory):
        """Test that a lookup method returns a fresh prototype on every call."""
        factory.register("command", Command, scope=ScopeType.PROTOTYPE)
        factory.register(
            "manager",
            CommandManager,
            method_overrides=[LookupOverride("create_command", "command")],
        )

        manager = factory.get_component("manager")
        first = manager.create_command()
        second = manager.create_command()

        assert isinstance(manager, CommandManager)
        assert isinstance(first, Command)
        assert first is not second

    def test_lookup_override_by_return_type(self, factory):
        """Test that a lookup method without a name uses its return annotation."""
        factory.register("command", Command)
        factory.register(
            "manager", CommandManager, method_overrides=[LookupOverride("command_by_type")]
        )

        manager = factory.get_component("manager")

        assert manager.command_by_type() is factory.get_component("command")

    def test_replace_override(self, factory):
        """Test that a replaced method delegates to its replacer."""
        factory.register(
            "manager",
            CommandManager,
            method_overrides=[ReplaceOverride("describe", ShoutingReplacer())],
        )

        assert factory.get_component("manager").describe("it") == "REPLACED IT"

    def test_replace_override_with_replacer_component(self, factory):
        """Test that a replacer may be given by component name."""
        factory.register("shouter", ShoutingReplacer)
        factory.register(
            "manager", CommandManager, method_overrides=[ReplaceOverride("describe", "shouter")]
        )

        assert factory.get_component("manager").describe("it") == "REPLACED IT"

    def test_override_of_unknown_method(self, factory):
        """Test that overrides must name an existing method."""
        factory.register("manager", CommandManager, method_overrides=[LookupOverride("missing")])

        with pytest.raises(DefinitionValidationError, match="missing"):
            factory.get_component("manager")

    def test_factory_method_with_overrides_rejected(self, factory):
        """Test that factory methods cannot be combined with method overrides."""
        with pytest.raises(DefinitionStoreError, match="Validation of definition failed"):
            factory.register(
                "manager",
                CommandManager,
                factory_method_name="create",
                method_overrides=[LookupOverride("create_command", "command")],
            )
