"""
LoadMock Routing

Express-style routing engine used by every mock server.

This module provides:
- Path pattern compilation with named parameters
- Ordered route table with prefix middleware
- Handler pipeline with next() continuation
"""

from .pattern import Pattern, compile_pattern
from .router import Router, Route, MiddlewareEntry, RouteMatch, HandlerFunc, HTTP_METHODS, adapt_handler
from .pipeline import execute, Outcome, PipelineResult

__all__ = [
    # Patterns
    'Pattern',
    'compile_pattern',

    # Router
    'Router',
    'Route',
    'MiddlewareEntry',
    'RouteMatch',
    'HandlerFunc',
    'HTTP_METHODS',
    'adapt_handler',

    # Pipeline
    'execute',
    'Outcome',
    'PipelineResult',
]
