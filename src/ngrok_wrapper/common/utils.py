"""Utility functions for ngrok wrapper."""

from urllib.parse import urlsplit

MIN_PORT = 1
MAX_PORT = 65535

DEFAULT_PORTS = {"http": 80, "https": 443}


def validate_port(port: int, port_name: str = "Port") -> int:
    """Validate port number range.

    Args:
        port: Port number to validate
        port_name: Name of the port for error messages

    Returns:
        The validated port

    Raises:
        ValueError: If port is not in valid range (1-65535)
    """
    if isinstance(port, bool) or not isinstance(port, int):
        raise ValueError(f"{port_name} must be an integer")
    if not (MIN_PORT <= port <= MAX_PORT):
        raise ValueError(f"{port_name} must be between {MIN_PORT} and {MAX_PORT}")
    return port


def validate_non_empty_string(value: str, field_name: str) -> str:
    """Validate that a string is not empty or only whitespace.

    Returns:
        Stripped string value

    Raises:
        ValueError: If string is empty or only whitespace
    """
    if not value or not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value.strip()


def parse_addr_port(addr: str) -> int | None:
    """Extract the port a tunnel forwards to from its configured address.

    Accepts the forms the status API uses: ``http://localhost:3030``,
    ``localhost:3030`` and a bare ``3030``. An explicit URL without a port
    falls back to its scheme's default port.

    Returns:
        The port, or None when the address cannot be parsed
    """
    addr = addr.strip()
    if addr.isdecimal():
        try:
            port = int(addr)
        except ValueError:
            return None
        return port if MIN_PORT <= port <= MAX_PORT else None

    has_scheme = "://" in addr
    try:
        parts = urlsplit(addr if has_scheme else f"//{addr}")
        port = parts.port
    except ValueError:
        return None

    if port is None and has_scheme:
        return DEFAULT_PORTS.get(parts.scheme.lower())
    return port


def url_scheme(url: str) -> str | None:
    """Return the lowercase scheme of ``url``, or None if it has none.

    Unparseable URLs such as ``http://[::1`` have no scheme either.
    """
    try:
        scheme = urlsplit(url.strip()).scheme
    except ValueError:
        return None
    return scheme.lower() or None
