"""
LoadMock Mock Server

FastAPI-based HTTP mock server driven by an Express-style router.

Features:
- Method-named route registration (get, post, ..., all) and prefix middleware
- Handlers run per request on worker threads, or inline in sync mode
- Read-only static directory mounts
- Background uvicorn listener with synchronous bind errors
- Graceful stop with a bounded grace period
- Metrics and logging
"""

from __future__ import annotations  # Enable forward references for type hints

import logging
import socket
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

import uvicorn
from fastapi import FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool

from ..common import parse_listen_address
from ..config import MockConfig, MockOptions
from ..errors import BindError, InvalidArgument, MalformedBody, RouteNotFound, ServerNotRunning
from ..routing import HTTP_METHODS, Outcome, PipelineResult, Router, execute
from ..routing.pipeline import not_found
from .request import MockRequest
from .response import MockResponse
from .static import StaticFiles, mount_template


# Hop-by-hop and framing headers are computed by the ASGI server
HEADERS_TO_SKIP = {'content-length', 'transfer-encoding', 'connection'}


@dataclass
class MockMetrics:
    """Track mock server metrics."""

    total_requests: int = 0
    matched_requests: int = 0
    unmatched_requests: int = 0
    failed_requests: int = 0
    start_time: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        uptime_seconds = (datetime.now() - datetime.fromisoformat(self.start_time)).total_seconds()
        return {
            'total_requests': self.total_requests,
            'matched_requests': self.matched_requests,
            'unmatched_requests': self.unmatched_requests,
            'failed_requests': self.failed_requests,
            'match_rate': round((self.matched_requests / self.total_requests * 100) if self.total_requests > 0 else 0, 2),
            'uptime_seconds': round(uptime_seconds, 2),
            'start_time': self.start_time
        }


class MockServer:
    """
    Express-style HTTP mock server.

    Routes and middleware can be registered before or after start(); a
    registration only affects requests matched after it.

    Example:
        app = MockServer()
        app.get('/user/{id}', lambda req, res: res.json({'id': req.params['id']}))
        app.start()

        print(app.host)   # 127.0.0.1:54321
        app.stop()

        # With options, as accepted by mock()
        app = MockServer({'sync': True})
    """

    def __init__(
        self,
        options: Union[MockOptions, Mapping[str, Any], None] = None,
        config: Optional[MockConfig] = None,
        sync: Optional[bool] = None
    ):
        """
        Initialize mock server.

        Args:
            options: Optional MockOptions or dict with a 'sync' flag
            config: Optional MockConfig for server behavior
            sync: Run handlers on the server event loop, one request at a time
        """
        self.config = config or MockConfig()
        opts = MockOptions.from_value(options)
        if sync is not None:
            self.sync = sync
        else:
            self.sync = opts.sync or self.config.sync

        self.router = Router()
        self.metrics = MockMetrics()
        self._metrics_lock = threading.Lock()

        self.logger = logging.getLogger("loadmock.server")
        self.logger.setLevel(self.config.logging_level)

        self._lifecycle_lock = threading.RLock()
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None
        self._address: Optional[Tuple[str, int]] = None

        self.app = self._create_app()

    # ------------------------------------------------------------------
    # Route registration
    # ------------------------------------------------------------------

    def handle(self, method: Optional[str], path: str, *handlers: Any) -> 'MockServer':
        """Register handlers for a method (None for any) and path template."""
        route = self.router.add(method, path, *handlers)
        self.logger.debug(f"Registered route {route.describe()}")
        return self

    def all(self, path: str, *handlers: Any) -> 'MockServer':
        return self.handle(None, path, *handlers)

    def get(self, path: str, *handlers: Any) -> 'MockServer':
        return self.handle('GET', path, *handlers)

    def head(self, path: str, *handlers: Any) -> 'MockServer':
        return self.handle('HEAD', path, *handlers)

    def post(self, path: str, *handlers: Any) -> 'MockServer':
        return self.handle('POST', path, *handlers)

    def put(self, path: str, *handlers: Any) -> 'MockServer':
        return self.handle('PUT', path, *handlers)

    def patch(self, path: str, *handlers: Any) -> 'MockServer':
        return self.handle('PATCH', path, *handlers)

    def delete(self, path: str, *handlers: Any) -> 'MockServer':
        return self.handle('DELETE', path, *handlers)

    def options(self, path: str, *handlers: Any) -> 'MockServer':
        return self.handle('OPTIONS', path, *handlers)

    def use(self, *args: Any) -> 'MockServer':
        """
        Register middleware, optionally scoped to a path prefix.

        Example:
            app.use(log_request)                  # every path
            app.use('/admin', require_token)      # /admin and below
        """
        if args and isinstance(args[0], str):
            prefix, handlers = args[0], args[1:]
        else:
            prefix, handlers = '/', args

        self.router.use(prefix, *handlers)
        self.logger.debug(f"Registered middleware on {prefix}")
        return self

    def static(self, mount_path: str, directory: str) -> 'MockServer':
        """
        Serve files from a directory under a mount path (GET and HEAD only).

        Raises:
            NotADirectoryError: If the directory does not exist
        """
        files = StaticFiles(directory)
        template = mount_template(mount_path)
        self.router.add('GET', template, files)
        self.router.add('HEAD', template, files)
        self.logger.debug(f"Mounted {files.directory} on {mount_path}")
        return self

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with a single catch-all route."""
        app = FastAPI(
            title="LoadMock Server",
            description="Mock HTTP server driven by registered route handlers",
            version="1.0.0",
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )

        @app.api_route("/{path:path}", methods=list(HTTP_METHODS), include_in_schema=False)
        async def mock_request(request: Request):
            """Route every incoming request through the router."""
            return await self._handle_request(request)

        return app

    async def _handle_request(self, request: Request) -> Response:
        """
        Convert an incoming request, run the pipeline and build the reply.

        Per-request failures never propagate: they become 400, 404 or 500
        responses.
        """
        start_time = time.time()
        self._count('total_requests')

        try:
            req = await MockRequest.from_starlette(request)
        except MalformedBody as e:
            self._count('failed_requests')
            self.logger.warning(f"{request.method} {request.url.path}: {e}")
            res = MockResponse()
            res.status(400).json({'error': str(e)})
            return self._to_response(res)

        if self.sync:
            res = self._serve(req)
        else:
            res = await run_in_threadpool(self._serve, req)

        elapsed_ms = (time.time() - start_time) * 1000
        self.logger.debug(f"{req.method} {req.path} -> {res.status_code} ({elapsed_ms:.1f}ms)")

        return self._to_response(res)

    def _serve(self, req: MockRequest) -> MockResponse:
        """Match the request and execute its handler chain."""
        res = MockResponse()

        try:
            match = self.router.match(req.method, req.path)
        except RouteNotFound as e:
            self._count('unmatched_requests')
            self.logger.info(str(e))
            not_found(res, self.config.fallback_status, self.config.fallback_body)
            return res

        req.params = dict(match.params)
        result = execute(
            req,
            res,
            match.chain,
            fallback_status=self.config.fallback_status,
            fallback_body=self.config.fallback_body,
            error_status=self.config.error_status,
            error_body=self.config.error_body
        )
        self._record_outcome(result)

        return res

    def _record_outcome(self, result: PipelineResult) -> None:
        if result.outcome is Outcome.FAILED:
            self._count('failed_requests')
        elif result.outcome is Outcome.NOT_FOUND:
            self._count('unmatched_requests')
        else:
            self._count('matched_requests')

    def _to_response(self, res: MockResponse) -> Response:
        """Commit a MockResponse and convert it for the ASGI server."""
        status_code, headers, body = res.commit()

        if status_code < 200 or status_code in (204, 304):
            body = b''

        response = Response(content=body, status_code=status_code)
        for name, value in headers:
            if name.lower() not in HEADERS_TO_SKIP:
                response.headers.append(name, value)

        return response

    def _count(self, name: str) -> None:
        with self._metrics_lock:
            setattr(self.metrics, name, getattr(self.metrics, name) + 1)

    def reset_metrics(self) -> None:
        """Reset metrics."""
        with self._metrics_lock:
            self.metrics = MockMetrics()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, port: Optional[int] = None, host: Optional[str] = None) -> Tuple[str, int]:
        """
        Bind and start serving on a background thread.

        Args:
            port: TCP port, 0 or None for a free port chosen by the platform
            host: Host to bind to (default from config, 127.0.0.1)

        Returns:
            Bound (host, port)

        Raises:
            BindError: If the address cannot be bound or the server does not
                come up within config.startup_timeout
        """
        with self._lifecycle_lock:
            if self.running:
                raise BindError(f"Mock server already listening on {self.host}")

            actual_host = host or self.config.host
            actual_port = self.config.port if port is None else port

            sock = self._bind(actual_host, actual_port)

            config = uvicorn.Config(
                self.app,
                log_level=self.config.log_level,
                access_log=self.config.access_log,
                log_config=None,
                lifespan="off",
                timeout_graceful_shutdown=self.grace_seconds(self.config.shutdown_timeout)
            )
            server = uvicorn.Server(config)
            thread = threading.Thread(
                target=self._run,
                args=(server, sock),
                name=f"loadmock-server-{sock.getsockname()[1]}",
                daemon=True
            )
            thread.start()

            deadline = time.monotonic() + self.config.startup_timeout
            while not server.started and thread.is_alive() and time.monotonic() < deadline:
                time.sleep(0.01)

            if not server.started:
                server.should_exit = True
                thread.join(self.config.startup_timeout)
                sock.close()
                raise BindError(f"Mock server failed to start on {actual_host}:{actual_port}")

            self._server = server
            self._thread = thread
            self._address = sock.getsockname()[:2]
            self.reset_metrics()

            self.logger.info(f"Mock server listening on {self.url}")
            return self._address

    def listen(self, addr: Union[str, int, Callable[[], Any], None] = None, callback: Optional[Callable[[], Any]] = None) -> 'MockServer':
        """
        Start listening, Express style.

        Args:
            addr: None, a port, ':port', 'port' or 'host:port'
            callback: Called with no arguments once the server is listening

        Example:
            app.listen(3000, lambda: print('listening'))
            app.listen('127.0.0.1:0')
        """
        if callable(addr) and callback is None:
            addr, callback = None, addr

        try:
            host, port = parse_listen_address(addr, self.config.host)
        except ValueError as e:
            raise InvalidArgument(str(e)) from e

        self.start(port, host)

        if callback is not None:
            callback()

        return self

    def stop(self, timeout: Optional[float] = None) -> 'MockServer':
        """
        Stop accepting connections and shut down.

        In-flight requests get `timeout` seconds (default
        config.shutdown_timeout) to finish before their tasks are cancelled.
        uvicorn counts the grace period in whole seconds, so it is rounded
        to the nearest second and never below 1 s: stop(timeout=0.1) may
        still wait about a second for busy connections.

        Raises:
            ServerNotRunning: If the server is not listening
        """
        with self._lifecycle_lock:
            server, thread = self._server, self._thread
            if server is None or thread is None or not thread.is_alive():
                raise ServerNotRunning("Mock server not running")

            grace = self.grace_seconds(self.config.shutdown_timeout if timeout is None else timeout)
            address = self.url

            server.config.timeout_graceful_shutdown = grace
            server.should_exit = True
            thread.join(grace + 1.0)

            if thread.is_alive():
                self.logger.warning(f"Mock server {address} did not stop within {grace}s, forcing exit")
                server.force_exit = True
                thread.join(1.0)

            self._server = None
            self._thread = None
            self._address = None

            self.logger.info(f"Mock server {address} stopped")
            return self

    @staticmethod
    def grace_seconds(timeout: float) -> int:
        """Grace period as uvicorn applies it: whole seconds, at least 1."""
        return max(1, int(round(timeout)))

    def _run(self, server: uvicorn.Server, sock: socket.socket) -> None:
        """Thread target: serve until should_exit is set."""
        try:
            server.run(sockets=[sock])
        except Exception:
            self.logger.exception("Mock server terminated unexpectedly")
        finally:
            sock.close()

    @staticmethod
    def _bind(host: str, port: int) -> socket.socket:
        """Bind a listening socket so address errors surface to the caller."""
        try:
            family, socktype, proto, _, sockaddr = socket.getaddrinfo(
                host, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
            )[0]
        except (OSError, UnicodeError) as e:
            raise BindError(f"Cannot resolve listen address {host}:{port}: {e}") from e

        sock = socket.socket(family, socktype, proto)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(sockaddr)
            sock.listen(128)
        except OSError as e:
            sock.close()
            raise BindError(f"Cannot bind {host}:{port}: {e}") from e

        return sock

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        server, thread = self._server, self._thread
        return (
            server is not None and thread is not None and thread.is_alive()
            and server.started and not server.should_exit
        )

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """Bound (host, port), or None when not listening."""
        return self._address

    @property
    def host(self) -> str:
        """Bound 'host:port', or '' when not listening."""
        if self._address is None:
            return ''
        host, port = self._address
        if ':' in host:
            host = f"[{host}]"
        return f"{host}:{port}"

    @property
    def url(self) -> str:
        """Base URL of the listener, or '' when not listening."""
        return f"http://{self.host}" if self._address else ''

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app

    def __enter__(self) -> 'MockServer':
        if not self.running:
            self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.running:
            self.stop()

    def __repr__(self) -> str:
        state = self.host if self.running else 'stopped'
        return f"<MockServer {state} routes={len(self.router)}>"


# Express-style names used by test scripts
Application = MockServer
Server = MockServer
