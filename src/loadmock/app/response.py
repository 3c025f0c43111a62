"""
LoadMock Response Model

The `res` object handed to route handlers. Every mutator returns the response
so calls can be chained:

    res.status(201).set('X-Request-Id', rid).json({'id': rid})

Output is buffered until the server commits it. A handler may write several
times before the commit; after the commit every mutator raises
ResponseAlreadySent.
"""

import json
from typing import Any, List, Optional, Tuple, Union

from ..errors import InvalidArgument, ResponseAlreadySent


BytesLike = Union[bytes, bytearray, memoryview]

JSON_TYPE = 'application/json; charset=utf-8'
TEXT_TYPE = 'text/plain; charset=utf-8'
HTML_TYPE = 'text/html; charset=utf-8'
BINARY_TYPE = 'application/octet-stream'


class MockResponse:
    """Buffered HTTP response built by route handlers."""

    def __init__(self):
        self.status_code = 200
        self.written = False
        self.sent = False
        self._headers: List[Tuple[str, str]] = []
        self._body = bytearray()

    def _ensure_open(self) -> None:
        if self.sent:
            raise ResponseAlreadySent('Response has already been sent')

    # ------------------------------------------------------------------
    # Headers
    # ------------------------------------------------------------------

    def set(self, field: str, value: str) -> 'MockResponse':
        """Set a header, replacing any existing values."""
        self._ensure_open()
        lowered = field.lower()
        self._headers = [(k, v) for k, v in self._headers if k.lower() != lowered]
        self._headers.append((field, str(value)))
        return self

    def append(self, field: str, value: str) -> 'MockResponse':
        """Add a header value, keeping existing values."""
        self._ensure_open()
        self._headers.append((field, str(value)))
        return self

    def type(self, mime: str) -> 'MockResponse':
        """Set the Content-Type header."""
        return self.set('Content-Type', mime)

    def vary(self, header: str) -> 'MockResponse':
        """Add a field to the Vary header unless it is already listed."""
        self._ensure_open()
        listed = {
            item.strip().lower()
            for name, value in self._headers if name.lower() == 'vary'
            for item in value.split(',')
        }
        if header.lower() not in listed:
            self._headers.append(('Vary', header))
        return self

    def get_header(self, field: str) -> Optional[str]:
        """Return the last value set for a header, or None."""
        lowered = field.lower()
        for name, value in reversed(self._headers):
            if name.lower() == lowered:
                return value
        return None

    @property
    def headers(self) -> List[Tuple[str, str]]:
        return list(self._headers)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self, code: int) -> 'MockResponse':
        """Set the HTTP status code."""
        self._ensure_open()
        if isinstance(code, bool) or not isinstance(code, int) or not 100 <= code <= 599:
            raise InvalidArgument(f"Invalid HTTP status code: {code!r}")
        self.status_code = code
        self.written = True
        return self

    def redirect(self, code: Union[int, str], location: Optional[str] = None) -> 'MockResponse':
        """
        Redirect to a location.

        Accepts redirect(301, '/new') or redirect('/new') for a 302.
        """
        if isinstance(code, str) and location is None:
            code, location = 302, code
        if location is None:
            raise InvalidArgument('Redirect location is required')
        return self.status(code).set('Location', location)

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    def write(self, data: Union[str, BytesLike]) -> 'MockResponse':
        """Append raw data to the body without touching Content-Type."""
        self._ensure_open()
        if isinstance(data, str):
            data = data.encode('utf-8')
        self._body.extend(data)
        self.written = True
        return self

    def json(self, body: Any) -> 'MockResponse':
        """Send a JSON document."""
        self.type(JSON_TYPE)
        return self.write(json.dumps(body))

    def text(self, format: str, *args: Any) -> 'MockResponse':
        """
        Send plain text, optionally %-formatted.

        Example:
            res.text('%d users', 3)
        """
        self.type(TEXT_TYPE)
        return self.write(format % args if args else format)

    def html(self, body: Union[str, BytesLike]) -> 'MockResponse':
        """Send an HTML document."""
        self.type(HTML_TYPE)
        return self.write(body)

    def binary(self, body: Union[str, BytesLike]) -> 'MockResponse':
        """Send raw bytes as application/octet-stream."""
        self.type(BINARY_TYPE)
        return self.write(body)

    def send(self, body: Any) -> 'MockResponse':
        """
        Send a body, choosing the content type from its Python type.

        bytes, bytearray, memoryview -> application/octet-stream
        str                          -> text/html
        anything else                -> application/json
        """
        if isinstance(body, (bytes, bytearray, memoryview)):
            return self.binary(body)
        if isinstance(body, str):
            return self.html(body)
        return self.json(body)

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> 'MockResponse':
        """Discard buffered status, headers and body."""
        self._ensure_open()
        self.status_code = 200
        self.written = False
        self._headers = []
        self._body = bytearray()
        return self

    def commit(self) -> Tuple[int, List[Tuple[str, str]], bytes]:
        """
        Freeze the response for delivery.

        Returns:
            Tuple of (status code, header pairs, body bytes)

        Raises:
            ResponseAlreadySent: If the response was already committed
        """
        self._ensure_open()
        self.sent = True
        return self.status_code, list(self._headers), bytes(self._body)

    def __repr__(self) -> str:
        return f"<MockResponse status={self.status_code} bytes={len(self._body)} sent={self.sent}>"
