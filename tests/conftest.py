"""
Shared fixtures for LoadMock tests.
"""

import pytest

from loadmock import MockConfig, MockModule, MockServer, URLRegistry


@pytest.fixture
def config():
    """Config with a short shutdown grace period."""
    return MockConfig(shutdown_timeout=0.5)


@pytest.fixture
def server(config):
    """A standalone, not yet started mock server; stopped after the test."""
    app = MockServer(config=config)
    yield app
    if app.running:
        app.stop()


@pytest.fixture
def registry():
    """Empty URL registry; every registered server is stopped afterwards."""
    reg = URLRegistry()
    yield reg
    reg.clear()


@pytest.fixture
def module(registry, config):
    """Module facade bound to a fresh registry."""
    mod = MockModule(registry=registry, config=config)
    yield mod
    mod.close()
