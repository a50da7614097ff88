"""Channels between a tunnel handle and its supervisor thread.

Two one-directional primitives connect the caller side to the supervisor:
``StopSignal`` carries the stop request inward and ``OneShot`` carries the
single exit outcome outward. Neither side ever holds the process itself.
"""

import threading
from typing import Generic, NamedTuple, TypeVar

from ..common.exceptions import ChannelClosedError
from ..models import ExitOutcome

T = TypeVar("T")


class OneShot(Generic[T]):
    """Single-value channel: one send, any number of receives."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._value: T | None = None

    def send(self, value: T) -> None:
        """Deliver the value.

        Raises:
            ChannelClosedError: If a value was already delivered
        """
        with self._lock:
            if self._ready.is_set():
                raise ChannelClosedError("One-shot channel already delivered a value")
            self._value = value
            self._ready.set()

    def try_recv(self) -> T | None:
        """Return the value if delivered, None otherwise. Never blocks."""
        if self._ready.is_set():
            return self._value
        return None

    def recv(self, timeout: float | None = None) -> T | None:
        """Block until the value is delivered or ``timeout`` elapses."""
        if self._ready.wait(timeout):
            return self._value
        return None

    @property
    def delivered(self) -> bool:
        return self._ready.is_set()


class StopSignal:
    """Latching stop request. Only the first request counts."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()

    def request(self) -> bool:
        """Request a stop.

        Returns:
            True for the request that set the signal, False for repeats
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            return True

    def wait(self, timeout: float | None = None) -> bool:
        """Wait up to ``timeout`` for a stop request."""
        return self._event.wait(timeout)

    @property
    def requested(self) -> bool:
        return self._event.is_set()


class SupervisorChannels(NamedTuple):
    """Caller-side ends of a running supervisor."""

    stop: StopSignal
    exited: OneShot[ExitOutcome]
