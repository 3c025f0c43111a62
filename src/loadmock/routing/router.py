"""
LoadMock Router

Ordered route table with Express-style prefix middleware.

Matching rules:
- Routes are scanned in registration order; the first route whose method and
  pattern both match wins. There is no scoring between competing patterns.
- Middleware registered with use() applies to every method when the request
  path starts with its prefix on a segment boundary. Matching middleware runs
  before the route handlers, in registration order.
- Registration replaces the internal tables wholesale, so a request that is
  already being matched keeps the snapshot it started with.
"""

import inspect
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..common import URLMatcher
from ..errors import InvalidArgument, InvalidPattern, RouteNotFound
from .pattern import Pattern, compile_pattern


HandlerFunc = Callable[[Any, Any, Callable[[], None]], None]

HTTP_METHODS = ('GET', 'HEAD', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS')


def adapt_handler(handler: Any) -> HandlerFunc:
    """
    Normalize a user handler to the (req, res, next) calling convention.

    Accepted forms:
    - a callable taking (req, res, next)
    - a callable taking (req, res); it never continues the chain
    - an object with a handle(req, res, next) method

    Raises:
        InvalidArgument: If the handler is not callable
    """
    if not callable(handler) and callable(getattr(handler, 'handle', None)):
        handler = handler.handle

    if not callable(handler):
        raise InvalidArgument(f"Handler must be callable, got {type(handler).__name__}")

    try:
        params = inspect.signature(handler).parameters.values()
    except (TypeError, ValueError):
        return handler

    positional = [
        p for p in params
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    ]
    has_varargs = any(p.kind == p.VAR_POSITIONAL for p in params)

    if not has_varargs and len(positional) == 2:
        def two_arg_handler(req, res, next):
            handler(req, res)

        two_arg_handler.__name__ = getattr(handler, '__name__', 'handler')
        two_arg_handler.__wrapped__ = handler
        return two_arg_handler

    return handler


@dataclass(frozen=True)
class Route:
    """A method and path pattern bound to an ordered handler chain."""

    method: Optional[str]
    pattern: Pattern
    handlers: Tuple[HandlerFunc, ...]

    def match(self, method: str, path: str) -> Optional[Dict[str, str]]:
        if self.method is not None and self.method != method:
            return None
        return self.pattern.match(path)

    def describe(self) -> str:
        return f"{self.method or '*'} {self.pattern.template}"


@dataclass(frozen=True)
class MiddlewareEntry:
    """Prefix-scoped handlers that run for any method."""

    prefix: str
    handlers: Tuple[HandlerFunc, ...]

    def applies_to(self, path: str) -> bool:
        return URLMatcher.path_has_prefix(path, self.prefix)


@dataclass(frozen=True)
class RouteMatch:
    """Result of resolving a request against the router."""

    chain: Tuple[HandlerFunc, ...]
    params: Dict[str, str]
    route: Optional[Route] = None

    @property
    def matched_route(self) -> bool:
        return self.route is not None


class Router:
    """
    Ordered collection of routes and prefix middleware.

    Example:
        router = Router()
        router.use('/', log_request)
        router.add('GET', '/user/{id}', load_user, show_user)

        match = router.match('GET', '/user/42')
        match.params   # => {'id': '42'}
        match.chain    # => (log_request, load_user, show_user)
    """

    def __init__(self):
        self._lock = threading.Lock()
        # (middleware, routes), swapped as one object on every registration
        self._table: Tuple[Tuple[MiddlewareEntry, ...], Tuple[Route, ...]] = ((), ())

    def add(self, method: Optional[str], template: str, *handlers: Any) -> Route:
        """
        Append a route.

        Args:
            method: HTTP method, or None to match any method
            template: Path template, e.g. '/user/{id}'
            *handlers: One or more handlers forming the route chain

        Returns:
            The registered Route

        Raises:
            InvalidPattern: If the template is malformed
            InvalidArgument: If no handler is given or a handler is not callable
        """
        pattern = compile_pattern(template)
        if not handlers:
            raise InvalidArgument(f"No handler given for route {template!r}")

        if method is not None:
            method = method.upper()
            if method not in HTTP_METHODS:
                raise InvalidArgument(f"Unsupported HTTP method: {method}")

        route = Route(method=method, pattern=pattern, handlers=tuple(adapt_handler(h) for h in handlers))

        with self._lock:
            middleware, routes = self._table
            self._table = (middleware, routes + (route,))

        return route

    def use(self, prefix: str, *handlers: Any) -> MiddlewareEntry:
        """
        Append prefix middleware.

        Args:
            prefix: Literal path prefix, '/' for every path
            *handlers: Middleware handlers

        Returns:
            The registered MiddlewareEntry
        """
        if not isinstance(prefix, str) or not prefix.startswith('/'):
            raise InvalidPattern(str(prefix), "middleware prefix must start with '/'")
        if '{' in prefix or '}' in prefix:
            raise InvalidPattern(prefix, 'middleware prefix must be a literal path')
        if not handlers:
            raise InvalidArgument(f"No middleware given for prefix {prefix!r}")

        entry = MiddlewareEntry(prefix=prefix, handlers=tuple(adapt_handler(h) for h in handlers))

        with self._lock:
            middleware, routes = self._table
            self._table = (middleware + (entry,), routes)

        return entry

    def match(self, method: str, path: str) -> RouteMatch:
        """
        Resolve a request to its effective handler chain.

        Args:
            method: Request method
            path: Request path

        Returns:
            RouteMatch with middleware handlers followed by route handlers

        Raises:
            RouteNotFound: If neither a route nor any middleware applies
        """
        method = method.upper()
        # later registrations do not affect this request
        middleware, routes = self._table

        chain: List[HandlerFunc] = []
        for entry in middleware:
            if entry.applies_to(path):
                chain.extend(entry.handlers)

        for route in routes:
            params = route.match(method, path)
            if params is not None:
                chain.extend(route.handlers)
                return RouteMatch(chain=tuple(chain), params=params, route=route)

        if not chain:
            raise RouteNotFound(method, path)

        return RouteMatch(chain=tuple(chain), params={})

    @property
    def routes(self) -> Tuple[Route, ...]:
        return self._table[1]

    @property
    def middleware(self) -> Tuple[MiddlewareEntry, ...]:
        return self._table[0]

    def __len__(self) -> int:
        middleware, routes = self._table
        return len(middleware) + len(routes)
