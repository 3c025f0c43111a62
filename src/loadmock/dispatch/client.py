"""
LoadMock Dispatch Client

Host-style HTTP surface for test scripts. Blocking calls go through a
requests session; awaitable calls go through httpx AsyncClients. Both route
mocked targets to their mock servers.

Awaitable calls made inside `async with http:` share one pooled client for the
running event loop, closed when the block exits. Outside such a block each
call uses its own client, closed before the call returns, so nothing is left
open when the loop finishes.
"""

import asyncio
import logging
import threading
import time
import weakref
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

import httpx
import requests

from ..config import MockConfig
from ..registry import URLRegistry
from .adapters import ResolvingAsyncTransport, install


class CallState(Enum):
    """Progress of an outbound call."""

    ISSUED = 'issued'
    RESOLVED = 'resolved'
    SENT = 'sent'
    RESPONDED = 'responded'
    DELIVERED = 'delivered'
    FAILED = 'failed'


@dataclass
class OutboundCall:
    """Record of one outbound call made through MockHTTP."""

    method: str
    url: str
    resolved_url: str = ''
    state: CallState = CallState.ISSUED
    status_code: Optional[int] = None
    error: Optional[str] = None
    is_async: bool = False
    started: float = field(default_factory=time.time)
    elapsed_ms: float = 0.0

    @property
    def intercepted(self) -> bool:
        return bool(self.resolved_url) and self.resolved_url != self.url

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'method': self.method,
            'url': self.url,
            'resolved_url': self.resolved_url,
            'intercepted': self.intercepted,
            'state': self.state.value,
            'status_code': self.status_code,
            'error': self.error,
            'async': self.is_async,
            'elapsed_ms': round(self.elapsed_ms, 2)
        }


class MockHTTP:
    """
    HTTP client that honours mock registrations.

    Example:
        http = MockHTTP(registry)
        resp = http.get('https://api.example.com/users/1')

        async def main():
            resp = await http.async_request('GET', 'https://api.example.com/users/2')

            async with http:   # pooled connections for a burst of calls
                await asyncio.gather(*(http.async_request('GET', u) for u in urls))
    """

    def __init__(self, registry: URLRegistry, config: Optional[MockConfig] = None):
        """
        Initialize client.

        Args:
            registry: Registry consulted on every call
            config: Optional MockConfig (history_limit, log_level)
        """
        self.registry = registry
        self.config = config or MockConfig()

        self.logger = logging.getLogger("loadmock.dispatch")
        self.logger.setLevel(self.config.logging_level)

        self.session = install(requests.Session(), registry)

        self._lock = threading.Lock()
        self._async_clients: 'weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, httpx.AsyncClient]' = weakref.WeakKeyDictionary()
        self._history: Deque[OutboundCall] = deque(maxlen=self.config.history_limit)

    # ------------------------------------------------------------------
    # Blocking calls
    # ------------------------------------------------------------------

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Send a request and block until the response arrives.

        Keyword arguments are passed to requests.Session.request.
        """
        call = self._begin(method, url, is_async=False)
        try:
            call.state = CallState.SENT
            response = self.session.request(method, url, **kwargs)
        except Exception as e:
            self._fail(call, e)
            raise

        return self._deliver(call, response)

    def get(self, url: str, **kwargs) -> requests.Response:
        return self.request('GET', url, **kwargs)

    def head(self, url: str, **kwargs) -> requests.Response:
        return self.request('HEAD', url, **kwargs)

    def post(self, url: str, **kwargs) -> requests.Response:
        return self.request('POST', url, **kwargs)

    def put(self, url: str, **kwargs) -> requests.Response:
        return self.request('PUT', url, **kwargs)

    def patch(self, url: str, **kwargs) -> requests.Response:
        return self.request('PATCH', url, **kwargs)

    def delete(self, url: str, **kwargs) -> requests.Response:
        return self.request('DELETE', url, **kwargs)

    def options(self, url: str, **kwargs) -> requests.Response:
        return self.request('OPTIONS', url, **kwargs)

    # ------------------------------------------------------------------
    # Awaitable calls
    # ------------------------------------------------------------------

    async def async_request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Send a request without blocking the event loop.

        Keyword arguments are passed to httpx.AsyncClient.request.
        """
        call = self._begin(method, url, is_async=True)
        try:
            call.state = CallState.SENT
            client = self._loop_client()
            if client is not None:
                response = await client.request(method, url, **kwargs)
            else:
                async with self._new_async_client() as scoped:
                    response = await scoped.request(method, url, **kwargs)
        except Exception as e:
            self._fail(call, e)
            raise

        return self._deliver(call, response)

    def _new_async_client(self) -> httpx.AsyncClient:
        # Environment proxies would be mounted ahead of the resolving transport
        return httpx.AsyncClient(transport=ResolvingAsyncTransport(self.registry), trust_env=False)

    def _loop_client(self) -> Optional[httpx.AsyncClient]:
        """Pooled client of the running event loop, if inside `async with`."""
        loop = asyncio.get_running_loop()
        with self._lock:
            client = self._async_clients.get(loop)
        if client is None or client.is_closed:
            return None
        return client

    async def __aenter__(self) -> 'MockHTTP':
        loop = asyncio.get_running_loop()
        with self._lock:
            client = self._async_clients.get(loop)
            if client is None or client.is_closed:
                self._async_clients[loop] = self._new_async_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Call tracking
    # ------------------------------------------------------------------

    def _begin(self, method: str, url: str, is_async: bool) -> OutboundCall:
        call = OutboundCall(method=method.upper(), url=url, is_async=is_async)
        with self._lock:
            self._history.append(call)

        call.resolved_url = self.registry.resolve(url)
        call.state = CallState.RESOLVED
        return call

    def _deliver(self, call: OutboundCall, response: Any) -> Any:
        call.status_code = response.status_code
        call.state = CallState.RESPONDED
        call.elapsed_ms = (time.time() - call.started) * 1000

        self.logger.debug(
            f"{call.method} {call.url} -> {call.status_code} ({call.elapsed_ms:.1f}ms)"
            f"{' [mocked]' if call.intercepted else ''}"
        )

        call.state = CallState.DELIVERED
        return response

    def _fail(self, call: OutboundCall, error: Exception) -> None:
        call.state = CallState.FAILED
        call.error = str(error)
        call.elapsed_ms = (time.time() - call.started) * 1000
        self.logger.warning(f"{call.method} {call.url} failed: {error}")

    @property
    def history(self) -> List[OutboundCall]:
        """Most recent calls, oldest first (bounded by config.history_limit)."""
        with self._lock:
            return list(self._history)

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the blocking session."""
        self.session.close()

    @property
    def pooled_clients(self) -> int:
        """Number of open loop-level async clients."""
        with self._lock:
            return sum(1 for client in self._async_clients.values() if not client.is_closed)

    async def aclose(self) -> None:
        """Close the async client bound to the running event loop."""
        loop = asyncio.get_running_loop()
        with self._lock:
            client = self._async_clients.pop(loop, None)
        if client is not None:
            await client.aclose()
