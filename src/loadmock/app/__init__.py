"""
LoadMock Mock Server Module

Express-style HTTP mock server built on FastAPI and uvicorn.

This module provides:
- Request and response objects handed to route handlers
- Read-only static file mounts
- Threaded server lifecycle (start, listen, stop)
- Request metrics
"""

from .request import MockRequest, parse_json_body
from .response import MockResponse
from .static import StaticFiles, mount_template
from .server import MockServer, MockMetrics, Application, Server

__all__ = [
    # Request/response model
    'MockRequest',
    'MockResponse',
    'parse_json_body',

    # Static files
    'StaticFiles',
    'mount_template',

    # Server
    'MockServer',
    'MockMetrics',
    'Application',
    'Server',
]
