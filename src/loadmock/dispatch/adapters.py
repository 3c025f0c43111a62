"""
LoadMock Transport Adapters

Client-side hooks that rewrite intercepted URLs before the real transport
sends them:

- ResolvingAdapter: requests HTTPAdapter (blocking)
- ResolvingTransport: httpx.BaseTransport (blocking)
- ResolvingAsyncTransport: httpx.AsyncBaseTransport (non-blocking)

Each adapter only swaps the origin; method, path, query, headers and body are
sent exactly as the caller built them. Rewritten calls always connect directly
to the mock server: proxies chosen for the original host never apply to them.

httpx mounts environment proxies ahead of a client's transport, so clients
built on the httpx wrappers should pass trust_env=False and hand any proxy for
pass-through calls to the wrapper as its `inner` transport.
"""

import logging
from typing import Optional

import httpx
import requests
from requests.adapters import HTTPAdapter

from ..registry import URLRegistry


logger = logging.getLogger("loadmock.dispatch")


class ResolvingAdapter(HTTPAdapter):
    """
    requests adapter that redirects mocked targets to their mock server.

    Example:
        session = requests.Session()
        adapter = ResolvingAdapter(registry)
        session.mount('http://', adapter)
        session.mount('https://', adapter)
    """

    def __init__(self, registry: URLRegistry, *args, **kwargs):
        self.registry = registry
        super().__init__(*args, **kwargs)

    def send(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        resolved = self.registry.resolve(request.url)
        if resolved == request.url:
            return super().send(request, **kwargs)

        logger.debug(f"{request.method} {request.url} -> {resolved}")
        request.url = resolved
        # Session proxies were selected for the original host
        return super().send(request, **{**kwargs, 'proxies': {}})


def _rewrite(registry: URLRegistry, request: httpx.Request) -> bool:
    """
    Point an httpx request at its mock server, Host header included.

    Returns:
        True if the request was rewritten
    """
    original = str(request.url)
    resolved = registry.resolve(original)
    if resolved == original:
        return False

    logger.debug(f"{request.method} {original} -> {resolved}")
    request.url = httpx.URL(resolved)
    request.headers['Host'] = request.url.netloc.decode('ascii')
    return True


class ResolvingTransport(httpx.BaseTransport):
    """
    httpx transport wrapper applying registry resolution.

    Rewritten requests go through `direct`; everything else goes through
    `inner`, which may be a proxying transport.
    """

    def __init__(
        self,
        registry: URLRegistry,
        inner: Optional[httpx.BaseTransport] = None,
        direct: Optional[httpx.BaseTransport] = None
    ):
        self.registry = registry
        self._inner = inner or httpx.HTTPTransport()
        self._direct = direct or (httpx.HTTPTransport() if inner is not None else self._inner)

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        if _rewrite(self.registry, request):
            return self._direct.handle_request(request)
        return self._inner.handle_request(request)

    def close(self) -> None:
        self._inner.close()
        if self._direct is not self._inner:
            self._direct.close()


class ResolvingAsyncTransport(httpx.AsyncBaseTransport):
    """Async httpx transport wrapper; see ResolvingTransport."""

    def __init__(
        self,
        registry: URLRegistry,
        inner: Optional[httpx.AsyncBaseTransport] = None,
        direct: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.registry = registry
        self._inner = inner or httpx.AsyncHTTPTransport()
        self._direct = direct or (httpx.AsyncHTTPTransport() if inner is not None else self._inner)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if _rewrite(self.registry, request):
            return await self._direct.handle_async_request(request)
        return await self._inner.handle_async_request(request)

    async def aclose(self) -> None:
        await self._inner.aclose()
        if self._direct is not self._inner:
            await self._direct.aclose()


def install(session: requests.Session, registry: URLRegistry) -> requests.Session:
    """
    Mount a ResolvingAdapter on a caller-owned requests session.

    Returns:
        The same session, for chaining
    """
    adapter = ResolvingAdapter(registry)
    session.mount('http://', adapter)
    session.mount('https://', adapter)
    return session
