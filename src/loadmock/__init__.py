"""
LoadMock

Request mocking for load-test and integration-test scripts: register a target
URL and an Express-style route table, and outbound calls to that target are
answered by a local mock server.

This module provides:
- Routing engine with middleware (loadmock.routing)
- Mock servers (loadmock.app)
- URL registry (loadmock.registry)
- Dispatch bridge for requests and httpx (loadmock.dispatch)
- Default module-level mock(), skip(), unmock() and http
"""

from .config import MockConfig, MockOptions
from .errors import (
    MockError,
    InvalidArgument,
    InvalidPattern,
    RouteNotFound,
    HandlerFailure,
    BindError,
    ServerNotRunning,
    DuplicateTarget,
    ResolveMismatch,
    ResponseAlreadySent,
    MalformedBody,
)
from .app import MockServer, MockRequest, MockResponse, MockMetrics, Application
from .registry import URLRegistry, RegistryEntry
from .dispatch import MockHTTP, CallState, OutboundCall, install
from .module import MockModule

__version__ = "1.0.0"

default_module = MockModule(config=MockConfig.from_env())

mock = default_module.mock
skip = default_module.skip
unmock = default_module.unmock
resolve = default_module.resolve
http = default_module.http

__all__ = [
    # Module API
    'mock',
    'skip',
    'unmock',
    'resolve',
    'http',
    'default_module',
    'MockModule',

    # Servers
    'MockServer',
    'Application',
    'MockRequest',
    'MockResponse',
    'MockMetrics',

    # Registry and dispatch
    'URLRegistry',
    'RegistryEntry',
    'MockHTTP',
    'CallState',
    'OutboundCall',
    'install',

    # Configuration
    'MockConfig',
    'MockOptions',

    # Errors
    'MockError',
    'InvalidArgument',
    'InvalidPattern',
    'RouteNotFound',
    'HandlerFailure',
    'BindError',
    'ServerNotRunning',
    'DuplicateTarget',
    'ResolveMismatch',
    'ResponseAlreadySent',
    'MalformedBody',
]
