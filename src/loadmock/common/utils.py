"""
LoadMock Common Utilities

Small helpers shared by the request model, configuration and server.
"""

from typing import List, Dict, Optional, Tuple, Union


def flatten_multi_values(pairs: List[Tuple[str, str]]) -> Dict[str, Union[str, List[str]]]:
    """
    Collapse repeated keys into lists, keeping single values as strings.

    Example:
        flatten_multi_values([('color', 'blue'), ('color', 'red'), ('q', 'x')])
        # => {'color': ['blue', 'red'], 'q': 'x'}
    """
    grouped: Dict[str, List[str]] = {}
    for key, value in pairs:
        grouped.setdefault(key, []).append(value)

    return {key: values[0] if len(values) == 1 else values for key, values in grouped.items()}


def parse_listen_address(addr: Optional[Union[str, int]], default_host: str) -> Tuple[str, int]:
    """
    Parse a listen address in one of the accepted forms.

    Accepted: None, 3000, '3000', ':3000', 'localhost:3000', '[::1]:3000'.

    Returns:
        Tuple of (host, port); port 0 asks the platform for a free port

    Raises:
        ValueError: If the port part is not a number
    """
    if addr is None or addr == '':
        return default_host, 0

    if isinstance(addr, int):
        return default_host, addr

    text = addr.strip()
    if text.isdigit():
        return default_host, int(text)

    host, sep, port = text.rpartition(':')
    if not sep:
        return text, 0

    host = host.strip('[]') or default_host
    if not port:
        return host, 0
    if not port.isdigit():
        raise ValueError(f"Invalid port in listen address: {addr!r}")

    return host, int(port)
