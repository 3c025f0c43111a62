"""
LoadMock URL Registry

Process-wide map from mocked target URLs to running mock servers.

Features:
- Target validation (absolute http/https URL, optional path prefix)
- Longest-prefix resolution on scheme, host, effective port and path segments
- Origin-only rewriting: path, query and fragment are never touched
- Skip flag to keep a registration without intercepting
- Replace-and-restart on duplicate targets
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from .common import URLMatcher
from .errors import DuplicateTarget, ServerNotRunning
from .app.server import MockServer


logger = logging.getLogger("loadmock.registry")


@dataclass
class RegistryEntry:
    """A mocked target and the server answering for it."""

    target: str
    server: MockServer
    scheme: str
    hostname: str
    port: int
    path: str
    skipped: bool = False

    @property
    def host(self) -> str:
        """Address of the mock server as 'host:port'."""
        return self.server.host

    @property
    def running(self) -> bool:
        return self.server.running

    def matches(self, scheme: str, hostname: str, port: int, path: str) -> bool:
        return (
            self.scheme == scheme
            and self.hostname == hostname
            and self.port == port
            and URLMatcher.path_has_prefix(path, self.path)
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            'target': self.target,
            'host': self.host,
            'running': self.running,
            'skipped': self.skipped
        }


class URLRegistry:
    """
    Registry of intercepted targets.

    Example:
        registry = URLRegistry()
        registry.register('https://api.example.com', server)

        registry.resolve('https://api.example.com/users?page=2')
        # => 'http://127.0.0.1:54321/users?page=2'
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._entries: Dict[str, RegistryEntry] = {}

    @staticmethod
    def normalize(target: str) -> str:
        """
        Canonical registry key for a target.

        Raises:
            ResolveMismatch: If the target is not an absolute http(s) URL
        """
        scheme, hostname, port, path = URLMatcher.split_target(target)
        if ':' in hostname:
            hostname = f"[{hostname}]"
        return f"{scheme}://{hostname}:{port}{path}"

    def register(self, target: str, server: MockServer, skip: bool = False) -> RegistryEntry:
        """
        Register a running server for a target.

        A target that is already registered is replaced and its previous
        server stopped.

        Raises:
            ResolveMismatch: If the target is not an absolute http(s) URL
        """
        scheme, hostname, port, path = URLMatcher.split_target(target)
        key = self.normalize(target)
        entry = RegistryEntry(target, server, scheme, hostname, port, path, skip)

        with self._lock:
            previous = self._entries.get(key)
            self._entries[key] = entry

        if previous is not None and previous.server is not server:
            logger.warning(f"{DuplicateTarget(target)}; replacing previous mock server {previous.host}")
            self._stop(previous)

        logger.info(f"Mocking {target} -> {server.host}{' (skipped)' if skip else ''}")
        return entry

    def unregister(self, target: str) -> bool:
        """
        Remove a target and stop its server.

        Returns:
            True if the target was registered
        """
        key = self.normalize(target)
        with self._lock:
            entry = self._entries.pop(key, None)

        if entry is None:
            return False

        self._stop(entry)
        logger.info(f"Unmocked {target}")
        return True

    def set_skip(self, target: str, skipped: bool = True) -> bool:
        """Toggle interception for a target without stopping its server."""
        key = self.normalize(target)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            entry.skipped = skipped
            return True

    def get(self, target: str) -> Optional[RegistryEntry]:
        key = self.normalize(target)
        with self._lock:
            return self._entries.get(key)

    def targets(self) -> List[str]:
        with self._lock:
            return [entry.target for entry in self._entries.values()]

    def entries(self) -> List[RegistryEntry]:
        with self._lock:
            return list(self._entries.values())

    def lookup(self, url: str) -> Optional[RegistryEntry]:
        """
        Find the entry intercepting a URL.

        The longest matching target path wins; skipped and stopped entries
        are ignored.
        """
        parts = URLMatcher.split_url(url)
        if parts is None:
            return None

        best: Optional[RegistryEntry] = None
        with self._lock:
            for entry in self._entries.values():
                if entry.skipped or not entry.running:
                    continue
                if not entry.matches(*parts):
                    continue
                if best is None or len(entry.path) > len(best.path):
                    best = entry

        return best

    def resolve(self, url: str) -> str:
        """
        Rewrite a URL to its mock server, or return it unchanged.

        Only scheme, host and port are replaced.
        """
        entry = self.lookup(url)
        if entry is None:
            return url

        resolved = URLMatcher.replace_origin(url, entry.host)
        logger.debug(f"Resolved {url} -> {resolved}")
        return resolved

    def clear(self) -> None:
        """Stop every registered server and empty the registry."""
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()

        for entry in entries:
            self._stop(entry)

    @staticmethod
    def _stop(entry: RegistryEntry) -> None:
        try:
            entry.server.stop()
        except ServerNotRunning:
            logger.debug(f"Mock server for {entry.target} was already stopped")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, target: str) -> bool:
        return self.get(target) is not None
