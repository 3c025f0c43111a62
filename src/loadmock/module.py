"""
LoadMock Module Facade

Script-facing entry points binding one URL registry, one dispatch client and
the mock server factory together.

Example:
    from loadmock import mock, unmock, http

    def configure(app):
        app.get('/users/{id}', lambda req, res: res.json({'id': req.params['id']}))

    mock('https://api.example.com', configure)
    http.get('https://api.example.com/users/7').json()   # {'id': '7'}
    unmock('https://api.example.com')
"""

from typing import Any, Callable, Mapping, Optional, Tuple, Union

from .common import URLMatcher
from .config import MockConfig, MockOptions
from .dispatch import MockHTTP
from .errors import InvalidArgument
from .app.server import MockServer
from .registry import URLRegistry


ConfigureFunc = Callable[[MockServer], Any]


def parse_mock_args(args: Tuple[Any, ...]) -> Tuple[str, ConfigureFunc, MockOptions]:
    """
    Sort mock() arguments by type; they may be given in any order.

    Returns:
        Tuple of (target, configure callback, options)

    Raises:
        InvalidArgument: If the target or callback is missing, repeated,
            or an argument has an unsupported type
    """
    target: Optional[str] = None
    configure: Optional[ConfigureFunc] = None
    options = MockOptions()

    for arg in args:
        if arg is None:
            continue
        if isinstance(arg, str):
            if target is not None:
                raise InvalidArgument(f"Target given twice: {target!r} and {arg!r}")
            target = arg
        elif isinstance(arg, (Mapping, MockOptions)):
            options = MockOptions.from_value(arg)
        elif callable(arg):
            if configure is not None:
                raise InvalidArgument('Configure callback given twice')
            configure = arg
        else:
            raise InvalidArgument(f"Unsupported mock() argument: {arg!r}")

    if not target or not target.strip():
        raise InvalidArgument('Missing mock target URL')
    if configure is None:
        raise InvalidArgument(f"Missing configure callback for {target}")

    return target, configure, options


class MockModule:
    """
    Mock registrations for one test run.

    Usage:
        module = MockModule()
        module.mock('https://example.com', lambda app: app.get('/', hello))
        module.http.get('https://example.com/')
        module.unmock('https://example.com')
    """

    def __init__(self, registry: Optional[URLRegistry] = None, config: Optional[MockConfig] = None):
        self.config = config or MockConfig()
        self.registry = registry if registry is not None else URLRegistry()
        self.http = MockHTTP(self.registry, self.config)

    def mock(self, *args: Any, sync: Optional[bool] = None, skip: Optional[bool] = None) -> MockServer:
        """
        Create, configure and start a mock server for a target URL.

        Args:
            *args: Target URL, configure callback and optional options dict,
                in any order
            sync: Run handlers one at a time on the server event loop
            skip: Register without intercepting calls

        Returns:
            The running MockServer

        Raises:
            InvalidArgument: If the target or callback is missing
            ResolveMismatch: If the target is not an absolute http(s) URL
            BindError: If the server cannot start
        """
        target, configure, options = parse_mock_args(args)
        if sync is None:
            sync = options.sync
        if skip is None:
            skip = options.skip

        URLMatcher.split_target(target)

        server = MockServer(config=self.config, sync=sync)
        configure(server)
        server.start()

        try:
            self.registry.register(target, server, skip=skip)
        except Exception:
            server.stop()
            raise

        return server

    def skip(self, *args: Any, sync: Optional[bool] = None) -> MockServer:
        """Like mock(), but calls to the target are not intercepted."""
        return self.mock(*args, sync=sync, skip=True)

    def unmock(self, target: str) -> bool:
        """
        Stop intercepting a target and stop its server.

        Returns:
            True if the target was mocked
        """
        return self.registry.unregister(target)

    def resolve(self, url: str) -> str:
        """URL an outbound call to `url` would actually reach."""
        return self.registry.resolve(url)

    def Application(self, options: Union[MockOptions, Mapping[str, Any], None] = None) -> MockServer:
        """Standalone mock server, started and stopped by the caller."""
        return MockServer(options, config=self.config)

    def reset(self) -> None:
        """Unmock every target."""
        self.registry.clear()

    def close(self) -> None:
        self.reset()
        self.http.close()
