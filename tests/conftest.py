#!/usr/bin/env python3

"""
Test Configuration and Fixtures

Provides shared fixtures for unit, integration and end-to-end testing.
"""

import shutil
import tempfile

import pytest
import pytest_asyncio

from hostlink.connection import ConnectionManager
from hostlink.host import (
    InMemoryDocumentStore, InMemorySearchIndex, InMemoryMacroRunner, InMemorySceneManager,
    InMemoryEncounterTracker, LocalFileStorage, HostServices
)
from shared.events import EventBus
from tests.test_utils import FAST_BACKOFF, FakeConnector


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    temp_path = tempfile.mkdtemp(prefix="hostlink_test_")
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest_asyncio.fixture
async def test_event_bus():
    """Create and start an event bus"""
    event_bus = EventBus()
    await event_bus.start()

    yield event_bus

    await event_bus.stop()


@pytest.fixture
def fake_connector():
    return FakeConnector()


@pytest_asyncio.fixture
async def manager(fake_connector):
    """Connection manager wired to a fake connector"""
    connection_manager = ConnectionManager(
        relay_url="ws://relay.test/relay",
        token="secret",
        client_id="group-caller",
        keepalive_interval=60.0,
        backoff=FAST_BACKOFF,
        connector=fake_connector
    )

    yield connection_manager

    await connection_manager.disconnect()


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def host_services(document_store, temp_dir):
    """In-memory host collaborators with storage in a temp directory"""
    return HostServices(
        documents=document_store,
        search=InMemorySearchIndex(document_store),
        files=LocalFileStorage(temp_dir),
        macros=InMemoryMacroRunner(document_store),
        scenes=InMemorySceneManager(document_store),
        encounters=InMemoryEncounterTracker(document_store)
    )


# Markers for different test types
def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests")
    config.addinivalue_line("markers", "property: Property based tests")
    config.addinivalue_line("markers", "websocket: Tests against a real WebSocket peer")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test file location"""
    for item in items:
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "e2e" in path:
            item.add_marker(pytest.mark.e2e)
        elif "property_based" in path:
            item.add_marker(pytest.mark.property)

        if "websocket" in item.name:
            item.add_marker(pytest.mark.websocket)
