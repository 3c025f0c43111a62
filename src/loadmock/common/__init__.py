"""
LoadMock Common Utilities

Shared utilities and helpers used across LoadMock modules.
"""

from .utils import flatten_multi_values, parse_listen_address
from .url_utils import URLMatcher, DEFAULT_PORTS

__all__ = [
    'flatten_multi_values',
    'parse_listen_address',
    'URLMatcher',
    'DEFAULT_PORTS'
]
