"""High-level API for ngrok wrapper.

This module provides simple functions for the common "expose this port" case.
"""

from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from .common.logging import get_logger
from .models import Protocol, Scheme
from .tunnel import TunnelHandle
from .tunnel_builder import TunnelBuilder

logger = get_logger(__name__)


def open_tunnel(
    local_port: int,
    protocol: Protocol | str = Protocol.HTTP,
    *,
    executable: str | None = None,
    schemes: Iterable[Scheme | str] | None = None,
    timeout: float | None = None,
) -> TunnelHandle:
    """Start ngrok for ``local_port`` and return the running tunnel.

    The caller owns the handle and should ``close()`` it, or use
    ``managed_tunnel`` instead.

    Args:
        local_port: Local port to expose
        protocol: "http" or "https"
        executable: ngrok executable (defaults to ``ngrok`` on PATH)
        schemes: Public URL schemes to wait for (defaults to the protocol's)
        timeout: Discovery deadline in seconds

    Returns:
        TunnelHandle: The running tunnel

    Example:
        >>> tunnel = open_tunnel(3000)
        >>> print(tunnel.public_url)
        http://d3adb33f.ngrok.io
        >>> tunnel.close()
    """
    tunnel_builder = TunnelBuilder().protocol(protocol).port(local_port)
    if executable is not None:
        tunnel_builder.executable(executable)
    if schemes is not None:
        tunnel_builder.schemes(*schemes)
    if timeout is not None:
        tunnel_builder.discovery_timeout(timeout)
    return tunnel_builder.run()


@contextmanager
def managed_tunnel(
    local_port: int,
    protocol: Protocol | str = Protocol.HTTP,
    *,
    executable: str | None = None,
    schemes: Iterable[Scheme | str] | None = None,
    timeout: float | None = None,
) -> Iterator[TunnelHandle]:
    """Run a tunnel for the duration of a ``with`` block.

    The ngrok process is stopped when the block exits, even if an exception
    occurs.

    Example:
        >>> with managed_tunnel(3000) as tunnel:
        ...     print(f"Your app is live at: {tunnel.public_url}")
        http://d3adb33f.ngrok.io
        # ngrok is stopped here
    """
    tunnel = open_tunnel(
        local_port,
        protocol,
        executable=executable,
        schemes=schemes,
        timeout=timeout,
    )
    logger.info("Managed tunnel created", url=tunnel.public_url, local_port=local_port)

    try:
        yield tunnel
    finally:
        outcome = tunnel.close()
        logger.info(
            "Managed tunnel cleaned up",
            local_port=local_port,
            state=outcome.state.value,
        )
