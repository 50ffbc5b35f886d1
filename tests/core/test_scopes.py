"""Tests for custom scopes backed by ContextScope."""

import asyncio
import threading

import pytest

from cask.core.definition import ComponentReference
from cask.core.errors import ScopeError
from cask.core.scopes import ContextScope, Scope


# Test classes
class RequestContext:
    events: list = None

    def __init__(self):
        self.disposed = False

    def dispose(self):
        self.disposed = True
        if self.events is not None:
            self.events.append(type(self).__name__)


class RequestUser(RequestContext):
    pass


class Repository:
    pass


@pytest.fixture
def request_scope(factory):
    scope = ContextScope("request")
    factory.register_scope("request", scope)
    return scope


@pytest.mark.unit
class TestContextScope:
    """Test ContextScope on its own."""

    def test_implements_scope_protocol(self):
        """Test that ContextScope satisfies the Scope protocol."""
        assert isinstance(ContextScope("request"), Scope)

    def test_get_caches_within_activation(self):
        """Test that the object factory runs once per activation."""
        scope = ContextScope("request")
        calls = []

        with scope.activate():
            first = scope.get("ctx", lambda: calls.append(1) or object())
            second = scope.get("ctx", lambda: calls.append(1) or object())

        assert first is second
        assert calls == [1]

    def test_activation_state(self):
        """Test is_active inside and outside an activation."""
        scope = ContextScope("request")

        assert not scope.is_active
        with scope.activate() as active:
            assert active is scope
            assert scope.is_active
        assert not scope.is_active

    def test_inactive_scope(self):
        """Test that use outside an activation raises ScopeError."""
        scope = ContextScope("request")

        with pytest.raises(ScopeError, match="Scope 'request' is not active"):
            scope.get("ctx", object)

    def test_remove(self):
        """Test that remove returns the object and drops its callback."""
        scope = ContextScope("request")
        called = []

        with scope.activate():
            obj = scope.get("ctx", object)
            scope.register_destruction_callback("ctx", lambda: called.append("ctx"))
            assert scope.remove("ctx") is obj
            assert scope.remove("ctx") is None

        assert called == []

    def test_callbacks_run_in_reverse_order(self):
        """Test that destruction callbacks run last-registered first."""
        scope = ContextScope("request")
        called = []

        with scope.activate():
            scope.register_destruction_callback("first", lambda: called.append("first"))
            scope.register_destruction_callback("second", lambda: called.append("second"))

        assert called == ["second", "first"]

    def test_failing_callback(self, log_messages):
        """Test that a failing callback is logged and does not stop the others."""
        scope = ContextScope("request")
        called = []

        def fail():
            raise RuntimeError("boom")

        with scope.activate():
            scope.register_destruction_callback("first", lambda: called.append("first"))
            scope.register_destruction_callback("broken", fail)

        assert called == ["first"]
        assert any(
            level == "WARNING" and "'broken'" in message for level, message in log_messages
        )


@pytest.mark.unit
class TestScopedComponents:
    """Test components living in a custom scope."""

    def test_one_instance_per_activation(self, factory, request_scope):
        """Test that a scoped component is shared within an activation only."""
        factory.register("ctx", RequestContext, scope="request")

        with request_scope.activate():
            first = factory.get_component("ctx")
            assert factory.get_component("ctx") is first
        with request_scope.activate():
            second = factory.get_component("ctx")

        assert first is not second

    def test_disposed_on_exit(self, factory, request_scope):
        """Test that scoped components are destroyed when the activation ends."""
        factory.register("ctx", RequestContext, scope="request")

        with request_scope.activate():
            ctx = factory.get_component("ctx")
            assert not ctx.disposed

        assert ctx.disposed

    def test_destruction_order(self, factory, request_scope):
        """Test that scoped components are destroyed in reverse creation order."""
        events = []
        factory.register_singleton("disposed", events)
        shared = {"events": ComponentReference("disposed")}
        factory.register("ctx", RequestContext, scope="request", property_values=shared)
        factory.register("user", RequestUser, scope="request", property_values=shared)

        with request_scope.activate():
            factory.get_component("ctx")
            factory.get_component("user")

        assert events == ["RequestUser", "RequestContext"]

    def test_outside_activation(self, factory, request_scope):
        """Test that a scoped lookup without an active scope fails."""
        factory.register("ctx", RequestContext, scope="request")

        with pytest.raises(ScopeError, match="not active"):
            factory.get_component("ctx")

    def test_unknown_scope(self, factory):
        """Test that a definition naming an unregistered scope fails on lookup."""
        factory.register("ctx", RequestContext, scope="session")

        with pytest.raises(ScopeError, match="No scope registered for scope name 'session'"):
            factory.get_component("ctx")

    def test_builtin_scopes_cannot_be_replaced(self, factory):
        """Test that singleton and prototype are reserved scope names."""
        with pytest.raises(ValueError):
            factory.register_scope("singleton", ContextScope("singleton"))

    def test_registered_scope_names(self, factory, request_scope):
        """Test the list of registered scope names."""
        assert factory.registered_scope_names == ["request"]
        assert factory.get_registered_scope("request") is request_scope

    def test_destroy_scoped_component(self, factory, request_scope):
        """Test removing and destroying a scoped component before the scope ends."""
        factory.register("ctx", RequestContext, scope="request")

        with request_scope.activate():
            first = factory.get_component("ctx")
            factory.destroy_scoped_component("ctx")
            second = factory.get_component("ctx")

            assert first.disposed
            assert second is not first
            assert not second.disposed

    def test_destroy_scoped_component_requires_custom_scope(self, factory):
        """Test that destroy_scoped_component rejects singletons."""
        factory.register("repo", Repository)

        with pytest.raises(ValueError):
            factory.destroy_scoped_component("repo")

    def test_scoped_dependency_of_prototype(self, factory, request_scope):
        """Test injecting a scoped component into prototypes."""

        class Handler:
            def __init__(self, ctx: RequestContext):
                self.ctx = ctx

        factory.register("ctx", RequestContext, scope="request")
        factory.register("handler", Handler, scope="prototype")

        with request_scope.activate():
            first = factory.get_component("handler")
            second = factory.get_component("handler")

        assert first is not second
        assert first.ctx is second.ctx

    def test_thread_isolation(self, factory, request_scope):
        """Test that each thread gets its own scoped instances."""
        factory.register("ctx", RequestContext, scope="request")
        results = []
        barrier = threading.Barrier(2)

        def worker():
            with request_scope.activate():
                ctx = factory.get_component("ctx")
                barrier.wait()
                results.append(ctx)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 2
        assert results[0] is not results[1]

    def test_async_activation(self, factory, request_scope):
        """Test activating a scope with async with."""
        factory.register("ctx", RequestContext, scope="request")

        async def handle():
            async with request_scope.activate():
                ctx = factory.get_component("ctx")
                assert factory.get_component("ctx") is ctx
            return ctx

        ctx = asyncio.run(handle())

        assert ctx.disposed
        assert not request_scope.is_active
