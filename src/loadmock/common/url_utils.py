"""
LoadMock URL Utilities

Shared URL parsing, normalization, and origin rewriting used by the URL
registry and the dispatch bridge.
"""

from urllib.parse import urlsplit, urlunsplit
from typing import Optional, Tuple

from ..errors import ResolveMismatch


DEFAULT_PORTS = {'http': 80, 'https': 443}


class URLMatcher:
    """Handles origin comparison and rewriting for mock targets."""

    @staticmethod
    def split_target(target: str) -> Tuple[str, str, int, str]:
        """
        Parse a mock target into its comparable parts.

        Args:
            target: Absolute http(s) URL, optionally with a path prefix

        Returns:
            Tuple of (scheme, hostname, effective port, path prefix)

        Raises:
            ResolveMismatch: If the target is not an absolute http(s) URL,
                or carries a query string, fragment or credentials
        """
        if not isinstance(target, str) or not target.strip():
            raise ResolveMismatch(str(target), 'target must be a non-empty string')

        try:
            parsed = urlsplit(target.strip())
            port = parsed.port
        except ValueError as e:
            raise ResolveMismatch(target, str(e)) from e

        scheme = parsed.scheme.lower()
        if scheme not in DEFAULT_PORTS:
            raise ResolveMismatch(target, 'scheme must be http or https')
        if not parsed.hostname:
            raise ResolveMismatch(target, 'missing host')
        if parsed.query or parsed.fragment:
            raise ResolveMismatch(target, 'query and fragment are not allowed')
        if parsed.username or parsed.password:
            raise ResolveMismatch(target, 'credentials are not allowed')

        return (
            scheme,
            parsed.hostname.lower(),
            port or DEFAULT_PORTS[scheme],
            parsed.path.rstrip('/'),
        )

    @staticmethod
    def split_url(url: str) -> Optional[Tuple[str, str, int, str]]:
        """
        Parse an outbound URL into the same shape as split_target.

        Returns:
            Tuple of (scheme, hostname, effective port, path), or None when
            the URL cannot take part in interception
        """
        try:
            parsed = urlsplit(url)
            port = parsed.port
        except ValueError:
            return None

        scheme = parsed.scheme.lower()
        if scheme not in DEFAULT_PORTS or not parsed.hostname:
            return None

        return scheme, parsed.hostname.lower(), port or DEFAULT_PORTS[scheme], parsed.path

    @staticmethod
    def path_has_prefix(path: str, prefix: str) -> bool:
        """
        Segment-aligned prefix test.

        '/api' is a prefix of '/api' and '/api/users' but not of '/apiv2'.
        An empty prefix matches every path.
        """
        prefix = prefix.rstrip('/')
        if not prefix:
            return True
        if not path.startswith(prefix):
            return False
        return len(path) == len(prefix) or path[len(prefix)] == '/'

    @staticmethod
    def replace_origin(url: str, netloc: str, scheme: str = 'http') -> str:
        """
        Replace scheme, credentials, host and port of a URL.

        Path, query and fragment are kept byte for byte.

        Args:
            url: Original URL
            netloc: New 'host:port'
            scheme: New scheme

        Returns:
            Rewritten URL string
        """
        parsed = urlsplit(url)
        return urlunsplit((scheme, netloc, parsed.path, parsed.query, parsed.fragment))

