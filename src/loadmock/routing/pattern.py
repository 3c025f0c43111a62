"""
LoadMock Path Patterns

Compiles route templates such as '/users/{id}/posts/{post}' into matchers
that extract named parameters.

Syntax:
- Literal segments match exactly (case-sensitive)
- '{name}' captures exactly one non-empty segment
- '{name:path}' captures the rest of the path, '/' included; last segment only

Paths are matched after percent-decoding: '/user/a%2Fb' arrives as '/user/a/b'
and does not match '/user/{id}'.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional, Tuple

from ..errors import InvalidPattern


_NAME_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
_CONVERTERS = {
    'str': '[^/]+',
    'path': '.*',
}


@dataclass(frozen=True)
class Pattern:
    """A compiled route template."""

    template: str
    regex: 're.Pattern[str]'
    param_names: Tuple[str, ...]

    def match(self, path: str) -> Optional[Dict[str, str]]:
        """
        Match a request path against this pattern.

        Args:
            path: Request path, e.g. '/user/42'

        Returns:
            Dict of captured parameters (empty for literal templates), or None
        """
        m = self.regex.fullmatch(path)
        if m is None:
            return None
        # an omitted trailing catch-all reports as empty
        return {name: value or '' for name, value in m.groupdict().items()}


def _compile_segment(template: str, segment: str, is_last: bool, seen: set) -> str:
    """Translate one template segment into a regex fragment."""
    opens = segment.count('{')
    closes = segment.count('}')

    if opens == 0 and closes == 0:
        return re.escape(segment)

    if opens != 1 or closes != 1 or not (segment.startswith('{') and segment.endswith('}')):
        raise InvalidPattern(template, f"malformed parameter segment {segment!r}")

    name, _, converter = segment[1:-1].partition(':')
    name = name.strip()
    converter = converter.strip() or 'str'

    if not name:
        raise InvalidPattern(template, 'empty parameter name')
    if not _NAME_RE.match(name):
        raise InvalidPattern(template, f"invalid parameter name {name!r}")
    if name in seen:
        raise InvalidPattern(template, f"duplicate parameter name {name!r}")
    if converter not in _CONVERTERS:
        raise InvalidPattern(template, f"unknown converter {converter!r}")
    if converter == 'path' and not is_last:
        raise InvalidPattern(template, 'catch-all parameter must be the last segment')

    seen.add(name)
    return f"(?P<{name}>{_CONVERTERS[converter]})"


@lru_cache(maxsize=512)
def compile_pattern(template: str) -> Pattern:
    """
    Compile a route template.

    Args:
        template: Path template starting with '/'

    Returns:
        Compiled Pattern

    Raises:
        InvalidPattern: On unbalanced braces, empty or duplicate names,
            unknown converters or a misplaced catch-all

    Example:
        pattern = compile_pattern('/user/{id}')
        pattern.match('/user/42')   # => {'id': '42'}
        pattern.match('/user')      # => None
    """
    if not isinstance(template, str) or not template.startswith('/'):
        raise InvalidPattern(str(template), "template must start with '/'")

    segments = template[1:].split('/')
    seen: set = set()
    parts = [
        _compile_segment(template, segment, index == len(segments) - 1, seen)
        for index, segment in enumerate(segments)
    ]

    # A trailing catch-all also matches its bare parent: '/files' for '/files/{rest:path}'
    if len(parts) > 1 and parts[-1].endswith('>.*)'):
        body = '/' + '/'.join(parts[:-1]) + '(?:/' + parts[-1] + ')?'
    else:
        body = '/' + '/'.join(parts)

    regex = re.compile(body)
    return Pattern(template=template, regex=regex, param_names=tuple(regex.groupindex))
