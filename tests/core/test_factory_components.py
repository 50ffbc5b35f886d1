"""Tests for FactoryComponent products and the '&' dereference prefix."""

import pytest

from cask.core.definition import ScopeType
from cask.core.errors import ComponentCreationError, ComponentIsNotAFactoryError
from cask.core.factory_components import (
    FactoryComponent,
    SmartFactoryComponent,
    product_type_of,
    transformed_name,
)
from cask.core.post_processors import ComponentPostProcessor


class Connection:
    def __init__(self, url):
        self.url = url
        self.processed = False


class ConnectionFactory(FactoryComponent[Connection]):
    url: str = "db://default"

    def __init__(self):
        self.calls = 0

    def get_object(self):
        self.calls += 1
        return Connection(self.url)


class PerCallConnectionFactory(ConnectionFactory):
    def is_singleton(self):
        return False


class EagerConnectionFactory(SmartFactoryComponent[Connection]):
    created = []

    def get_object(self):
        connection = Connection("db://eager")
        EagerConnectionFactory.created.append(connection)
        return connection

    def is_eager_init(self):
        return True


class DynamicFactory(FactoryComponent):
    """Product type only known from an instance."""

    def get_object(self):
        return Connection("db://dynamic")

    def get_object_type(self):
        return Connection


class EmptyFactory(FactoryComponent[Connection]):
    def get_object(self):
        return None


class BrokenFactory(FactoryComponent[Connection]):
    def get_object(self):
        raise RuntimeError("no database")


class Repository:
    pass


class MarkingProcessor(ComponentPostProcessor):
    def after_initialization(self, component, name):
        if isinstance(component, Connection):
            component.processed = True
        return component


@pytest.mark.unit
class TestProducts:
    """Test lookups returning factory products."""

    def test_product_returned(self, factory):
        """Test that the product, not the factory, is returned by name."""
        factory.register("connection", ConnectionFactory, property_values={"url": "db://main"})

        connection = factory.get_component("connection")

        assert isinstance(connection, Connection)
        assert connection.url == "db://main"

    def test_singleton_product_cached(self, factory):
        """Test that singleton factories are asked for their product once."""
        factory.register("connection", ConnectionFactory)

        first = factory.get_component("connection")
        second = factory.get_component("connection")

        assert first is second
        assert factory.get_component("&connection").calls == 1

    def test_non_singleton_factory(self, factory):
        """Test that non-singleton factories produce a new object per lookup."""
        factory.register("connection", PerCallConnectionFactory)

        first = factory.get_component("connection")
        second = factory.get_component("connection")

        assert first is not second
        assert not factory.is_singleton("connection")
        assert factory.is_prototype("connection")
        assert factory.is_singleton("&connection")

    def test_none_product(self, factory):
        """Test that a factory producing None resolves to None."""
        factory.register("connection", EmptyFactory)

        assert factory.get_component("connection") is None
        assert factory.get_component("connection") is None

    def test_failing_product(self, factory):
        """Test that get_object failures are wrapped with the component name."""
        factory.register("connection", BrokenFactory)

        with pytest.raises(ComponentCreationError) as exc_info:
            factory.get_component("connection")

        assert exc_info.value.component_name == "connection"
        assert isinstance(exc_info.value.root_cause(), RuntimeError)

    def test_product_is_post_processed(self, factory):
        """Test that products receive the after-initialization pass."""
        factory.add_post_processor(MarkingProcessor())
        factory.register("connection", ConnectionFactory)

        assert factory.get_component("connection").processed

    def test_eager_init_factory(self, factory):
        """Test that smart factories may request eager product creation."""
        EagerConnectionFactory.created.clear()
        factory.register("connection", EagerConnectionFactory)

        factory.preinstantiate_singletons()

        assert len(EagerConnectionFactory.created) == 1
        assert factory.get_component("connection") is EagerConnectionFactory.created[0]


@pytest.mark.unit
class TestDereference:
    """Test access to the factory itself."""

    def test_factory_by_prefix(self, factory):
        """Test that '&name' returns the factory component."""
        factory.register("connection", ConnectionFactory)

        assert isinstance(factory.get_component("&connection"), ConnectionFactory)
        assert factory.get_component("&connection") is factory.get_component("&connection")

    def test_prefix_on_plain_component(self, factory):
        """Test that '&name' on a plain component is rejected."""
        factory.register("repo", Repository)

        with pytest.raises(ComponentIsNotAFactoryError):
            factory.get_component("&repo")

    def test_contains_component(self, factory):
        """Test contains_component with and without the prefix."""
        factory.register("connection", ConnectionFactory)
        factory.register("repo", Repository)

        assert factory.contains_component("connection")
        assert factory.contains_component("&connection")
        assert factory.contains_component("repo")
        assert not factory.contains_component("&repo")

    def test_is_factory_component(self, factory):
        """Test factory detection before and after creation."""
        factory.register("connection", ConnectionFactory)
        factory.register("repo", Repository)

        assert factory.is_factory_component("connection")
        assert not factory.is_factory_component("repo")
        factory.get_component("connection")
        assert factory.is_factory_component("&connection")

    def test_transformed_name(self):
        """Test that every leading '&' is stripped."""
        assert transformed_name("&&connection") == "connection"
        assert transformed_name("connection") == "connection"


@pytest.mark.unit
class TestProductTypes:
    """Test type queries on factory components."""

    def test_product_type_from_generic_argument(self):
        """Test that the product type is read from FactoryComponent[T]."""
        assert product_type_of(ConnectionFactory) is Connection
        assert product_type_of(PerCallConnectionFactory) is Connection
        assert product_type_of(DynamicFactory) is None

    def test_get_type(self, factory):
        """Test that get_type reports the product type without creating anything."""
        factory.register("connection", ConnectionFactory)

        assert factory.get_type("connection") is Connection
        assert factory.get_type("&connection") is ConnectionFactory
        assert not factory.singletons.contains_singleton("connection")

    def test_dynamic_product_type(self, factory):
        """Test that a factory without a generic argument is created to learn its type."""
        factory.register("connection", DynamicFactory)

        assert factory.get_type("connection") is Connection

    def test_get_components_of_type(self, factory):
        """Test by-type lookups of products and factories."""
        factory.register("connection", ConnectionFactory)
        factory.register("repo", Repository)

        connections = factory.get_components_of_type(Connection)
        factories = factory.get_components_of_type(ConnectionFactory)

        assert list(connections) == ["connection"]
        assert connections["connection"] is factory.get_component("connection")
        assert list(factories) == ["&connection"]

    def test_product_injection(self, factory):
        """Test that products are autowired by their type."""

        class ConnectionUser:
            def __init__(self, connection: Connection):
                self.connection = connection

        factory.register("connection", ConnectionFactory)
        factory.register("user", ConnectionUser, scope=ScopeType.PROTOTYPE)

        user = factory.get_component("user")

        assert user.connection is factory.get_component("connection")
        assert "user" in factory.singletons.get_dependents("connection")
