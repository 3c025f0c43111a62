"""
LoadMock Dispatch Bridge

Makes interception transparent to outbound HTTP calls.

This module provides:
- Transport adapters for requests and httpx
- MockHTTP client with blocking and awaitable calls
- Outbound call history
"""

from .adapters import ResolvingAdapter, ResolvingTransport, ResolvingAsyncTransport, install
from .client import MockHTTP, CallState, OutboundCall

__all__ = [
    # Adapters
    'ResolvingAdapter',
    'ResolvingTransport',
    'ResolvingAsyncTransport',
    'install',

    # Client
    'MockHTTP',
    'CallState',
    'OutboundCall',
]
