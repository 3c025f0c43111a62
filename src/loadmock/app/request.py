"""
LoadMock Request Model

The `req` object handed to route handlers: method, path, protocol, route
parameters, query string, headers, cookies and parsed JSON body.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from starlette.datastructures import Headers
from starlette.requests import Request as StarletteRequest

from ..common import flatten_multi_values
from ..errors import MalformedBody


def parse_json_body(raw: bytes, content_type: str) -> Optional[Any]:
    """
    Parse a request body when it is declared as JSON.

    Args:
        raw: Raw body bytes
        content_type: Value of the Content-Type header

    Returns:
        Parsed JSON value, or None when the body is empty or not JSON

    Raises:
        MalformedBody: If the body is declared as JSON but does not parse
    """
    if not raw or not content_type.lower().startswith('application/json'):
        return None

    try:
        return json.loads(raw)
    except ValueError as e:
        raise MalformedBody(f"Invalid JSON request body: {e}") from e


@dataclass
class MockRequest:
    """
    HTTP request as seen by route handlers.

    Example:
        def show_user(req, res):
            res.json({'id': req.params['id'], 'agent': req.get('user-agent')})
    """

    method: str
    path: str
    protocol: str = 'http'
    url: str = ''
    params: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, Union[str, List[str]]] = field(default_factory=dict)
    headers: Headers = field(default_factory=Headers)
    cookies: Dict[str, str] = field(default_factory=dict)
    body: Optional[Any] = None
    raw: bytes = b''

    def get(self, field_name: str) -> str:
        """Return a request header (case-insensitive), or '' when absent."""
        return self.headers.get(field_name, '')

    def header(self, field_name: str) -> str:
        """Alias of get()."""
        return self.get(field_name)

    @classmethod
    async def from_starlette(cls, request: StarletteRequest) -> 'MockRequest':
        """
        Build a MockRequest from an incoming Starlette request.

        Raises:
            MalformedBody: If a JSON body does not parse
        """
        raw = await request.body()
        return cls.from_parts(
            method=request.method,
            path=request.url.path,
            protocol=request.url.scheme,
            url=str(request.url),
            query_pairs=request.query_params.multi_items(),
            headers=request.headers,
            cookies=dict(request.cookies),
            raw=raw
        )

    @classmethod
    def from_parts(
        cls,
        method: str,
        path: str,
        protocol: str = 'http',
        url: str = '',
        query_pairs: Optional[List[Any]] = None,
        headers: Optional[Union[Headers, Dict[str, str]]] = None,
        cookies: Optional[Dict[str, str]] = None,
        raw: bytes = b''
    ) -> 'MockRequest':
        """Build a MockRequest from plain values."""
        if not isinstance(headers, Headers):
            headers = Headers(headers=headers or {})

        return cls(
            method=method.upper(),
            path=path or '/',
            protocol=protocol or 'http',
            url=url,
            query=flatten_multi_values(list(query_pairs or [])),
            headers=headers,
            cookies=cookies or {},
            body=parse_json_body(raw, headers.get('content-type', '')),
            raw=raw
        )
