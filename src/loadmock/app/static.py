"""
LoadMock Static Files

Read-only file serving mounted on a mock server path.

Security: the requested path is resolved (symlinks included) and must stay
inside the configured directory, otherwise the request is answered with 403.
Missing files fall through to the next handler.
"""

import mimetypes
from pathlib import Path
from typing import Callable, Union

from .request import MockRequest
from .response import MockResponse


STATIC_PARAM = 'static_path'


def mount_template(mount_path: str) -> str:
    """Route template that captures everything under a mount path."""
    stripped = mount_path.strip('/')
    if not stripped:
        return '/{%s:path}' % STATIC_PARAM
    return '/%s/{%s:path}' % (stripped, STATIC_PARAM)


class StaticFiles:
    """
    Handler serving files from a directory.

    Usage:
        app.static('/assets', './public')
        # GET /assets/css/site.css -> ./public/css/site.css
    """

    def __init__(self, directory: Union[str, Path], index: str = 'index.html'):
        self.directory = Path(directory).resolve()
        self.index = index

        if not self.directory.is_dir():
            raise NotADirectoryError(f"Static directory not found: {self.directory}")

    def handle(self, req: MockRequest, res: MockResponse, next: Callable[[], None]) -> None:
        relative = req.params.get(STATIC_PARAM, '').lstrip('/')

        try:
            file_path = (self.directory / relative).resolve() if relative else self.directory
        except (OSError, ValueError):
            res.status(403).text('Forbidden')
            return

        if not file_path.is_relative_to(self.directory):
            res.status(403).text('Forbidden')
            return

        if file_path.is_dir():
            file_path = file_path / self.index

        if not file_path.is_file():
            next()
            return

        content_type, _ = mimetypes.guess_type(str(file_path))
        res.type(content_type or 'application/octet-stream').write(file_path.read_bytes())
