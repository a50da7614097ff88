"""Caller-facing handle of a running ngrok tunnel."""

from __future__ import annotations

import threading
import weakref
from types import TracebackType
from typing import Literal, cast

from .common.exceptions import ProcessExitedError
from .common.logging import get_logger
from .models import (
    ExitOutcome,
    Protocol,
    Scheme,
    SupervisorState,
    TunnelRecord,
    TunnelResult,
)
from .supervisor.channels import OneShot, StopSignal, SupervisorChannels

logger = get_logger(__name__)


class _Teardown:
    """Stops the supervised process and waits for its outcome.

    Shared by ``TunnelHandle.close`` and the handle's finalizer, so it must
    not reference the handle.
    """

    def __init__(self, stop: StopSignal, exited: OneShot[ExitOutcome], pid: int):
        self._stop = stop
        self._exited = exited
        self._pid = pid

    def __call__(self) -> ExitOutcome:
        outcome = self._exited.try_recv()
        if outcome is not None:
            return outcome

        if self._stop.request():
            logger.info("Stopping tunnel", pid=self._pid)
        outcome = self._exited.recv()
        return cast(ExitOutcome, outcome)


class TunnelHandle:
    """A live tunnel whose lifetime is bound to the ngrok process.

    Accessors never raise when the process has died; they return a
    ``TunnelResult`` carrying a ``ProcessExitedError`` instead. Releasing the
    handle (``close()``, leaving a ``with`` block, garbage collection or
    interpreter exit) stops the process and waits until it is gone.

    The handle is safe to share between threads.
    """

    def __init__(
        self,
        record: TunnelRecord,
        protocol: Protocol,
        channels: SupervisorChannels,
        pid: int,
    ):
        self._record = record
        self._protocol = protocol
        self._exited = channels.exited
        self._pid = pid
        self._error_lock = threading.Lock()
        self._error: ProcessExitedError | None = None
        self._teardown = _Teardown(channels.stop, channels.exited, pid)
        self._finalizer = weakref.finalize(self, self._teardown)

    @property
    def local_port(self) -> int:
        return self._record.local_port

    @property
    def protocol(self) -> Protocol:
        return self._protocol

    @property
    def pid(self) -> int:
        """PID of the ngrok process, for diagnostics only."""
        return self._pid

    @property
    def public_url(self) -> str:
        """URL for the tunnel's own protocol, without a liveness check."""
        return self._record.url(Scheme(self._protocol.value))

    @property
    def state(self) -> SupervisorState:
        outcome = self._exited.try_recv()
        if outcome is None:
            return SupervisorState.RUNNING
        return outcome.state

    def is_alive(self) -> bool:
        return self._exited.try_recv() is None

    def status(self) -> TunnelResult[None]:
        """Report whether the process has failed. Never blocks.

        Returns:
            An ok result while running or after a clean stop, otherwise a
            result holding the same ``ProcessExitedError`` on every call
        """
        outcome = self._exited.try_recv()
        if outcome is None or outcome.ok:
            return TunnelResult()
        return TunnelResult(error=self._cached_error(outcome))

    def url(self, scheme: Scheme | str) -> TunnelResult[str]:
        """Get the public URL for ``scheme`` if the tunnel is still up.

        Raises:
            SchemeNotRequestedError: If the scheme was not discovered
        """
        url = self._record.url(scheme)
        error = self._liveness_error()
        if error is not None:
            return TunnelResult(error=error)
        return TunnelResult(value=url)

    def http_url(self) -> TunnelResult[str]:
        return self.url(Scheme.HTTP)

    def https_url(self) -> TunnelResult[str]:
        return self.url(Scheme.HTTPS)

    def tunnel(self) -> TunnelResult[TunnelRecord]:
        """Get the tunnel record if the tunnel is still up."""
        error = self._liveness_error()
        if error is not None:
            return TunnelResult(error=error)
        return TunnelResult(value=self._record)

    def tunnel_unchecked(self) -> TunnelRecord:
        """Get the tunnel record without checking the process."""
        return self._record

    def close(self) -> ExitOutcome:
        """Stop the process and wait until it has exited.

        Safe to call repeatedly and from several threads; every caller gets
        the same outcome and the stop is requested only once.
        """
        return self._teardown()

    def _liveness_error(self) -> ProcessExitedError | None:
        status = self.status()
        if status.error is not None:
            return status.error

        outcome = self._exited.try_recv()
        if outcome is not None:
            # Clean stop by the caller: status is fine but the URL is dead.
            return self._cached_error(outcome)
        return None

    def _cached_error(self, outcome: ExitOutcome) -> ProcessExitedError:
        with self._error_lock:
            if self._error is None:
                error = outcome.to_error()
                if error is None:
                    error = ProcessExitedError(
                        "Tunnel was closed", returncode=outcome.returncode
                    )
                self._error = error
                logger.info(
                    "Tunnel no longer available",
                    pid=self._pid,
                    state=outcome.state.value,
                    detail=error.detail,
                )
            return self._error

    def __enter__(self) -> "TunnelHandle":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        self.close()
        return False

    def __repr__(self) -> str:
        return (
            f"TunnelHandle(local_port={self.local_port}, "
            f"protocol={self._protocol.value}, state={self.state.value})"
        )
