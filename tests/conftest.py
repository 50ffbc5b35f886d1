"""Shared test fixtures and utilities."""

import pytest
from loguru import logger

from cask.core.context import ComponentContext
from cask.core.factory import ComponentFactory


@pytest.fixture
def factory():
    """Create a fresh factory for testing."""
    factory = ComponentFactory()
    yield factory
    # Cleanup singletons
    factory.destroy_singletons()


@pytest.fixture
def context():
    """Create a fresh, not yet refreshed context."""
    context = ComponentContext(name="test-context")
    yield context
    context.close()


@pytest.fixture
def log_messages():
    """Capture loguru records as (level, message) tuples."""
    messages = []

    def sink(message):
        record = message.record
        messages.append((record["level"].name, record["message"]))

    handler_id = logger.add(sink, level="TRACE")
    yield messages
    logger.remove(handler_id)
