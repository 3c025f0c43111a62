"""
LoadMock Errors

Exception hierarchy shared by the routing engine, mock servers, URL registry
and dispatch bridge.

Registration and lifecycle errors are raised to the caller that caused them.
Per-request errors never escape a mock server: they are turned into HTTP
responses (404, 400 or 500) and logged.
"""


class MockError(Exception):
    """Base class for all LoadMock errors."""


class InvalidArgument(MockError, ValueError):
    """A registration call was made with missing or malformed arguments."""


class InvalidPattern(MockError, ValueError):
    """A route template could not be compiled."""

    def __init__(self, template: str, reason: str):
        self.template = template
        self.reason = reason
        super().__init__(f"Invalid route pattern {template!r}: {reason}")


class RouteNotFound(MockError, LookupError):
    """No route or middleware applies to a request. Served as a 404."""

    def __init__(self, method: str, path: str):
        self.method = method
        self.path = path
        super().__init__(f"No route matches {method} {path}")


class HandlerFailure(MockError):
    """A route handler raised while serving a request. Served as a 500."""

    def __init__(self, method: str, path: str, cause: BaseException):
        self.method = method
        self.path = path
        self.cause = cause
        super().__init__(f"Handler failed for {method} {path}: {cause!r}")


class BindError(MockError, OSError):
    """A mock server could not bind or start listening."""


class ServerNotRunning(MockError, RuntimeError):
    """Stop was requested on a server that is not listening."""


class DuplicateTarget(MockError):
    """A target was registered while an earlier registration was still active.

    The registry replaces the earlier server; this exception is only used to
    describe the condition in logs.
    """

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"Target already mocked: {target}")


class ResolveMismatch(MockError, ValueError):
    """A mock target is not an absolute http(s) URL."""

    def __init__(self, target: str, reason: str):
        self.target = target
        self.reason = reason
        super().__init__(f"Invalid mock target {target!r}: {reason}")


class ResponseAlreadySent(MockError, RuntimeError):
    """A response was modified after it had been committed."""


class MalformedBody(MockError, ValueError):
    """A request declared a JSON body that could not be parsed. Served as a 400."""
