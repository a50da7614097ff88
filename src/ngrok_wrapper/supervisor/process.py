"""Supervision of the ngrok child process.

``ProcessSupervisor`` is the only owner of the ``Popen`` object. Once started
it runs a loop on a dedicated thread that waits for either of two things:
the child exiting on its own, or a stop request arriving on its
``StopSignal``. Whichever happens first produces exactly one ``ExitOutcome``
on the outcome channel and ends the loop.
"""

import os
import shutil
import subprocess
import threading
from pathlib import Path

from ..common.exceptions import BinaryNotFoundError, SpawnError, StateTransitionError
from ..common.logging import get_logger
from ..config import SupervisorConfig
from ..models import ExitOutcome, SupervisorState
from .channels import OneShot, StopSignal, SupervisorChannels

logger = get_logger(__name__)

_TRANSITIONS: dict[SupervisorState, frozenset[SupervisorState]] = {
    SupervisorState.STARTING: frozenset(
        {SupervisorState.RUNNING, SupervisorState.STOPPED_BY_CALLER}
    ),
    SupervisorState.RUNNING: frozenset(
        {SupervisorState.STOPPED_BY_CALLER, SupervisorState.EXITED_UNEXPECTEDLY}
    ),
}


def resolve_executable(executable: str) -> str:
    """Resolve the ngrok binary to an executable path.

    Names without a path separator are looked up on PATH.

    Raises:
        BinaryNotFoundError: If the binary doesn't exist or isn't executable
    """
    if os.sep not in executable and (os.altsep is None or os.altsep not in executable):
        found = shutil.which(executable)
        if found is None:
            raise BinaryNotFoundError(f"Binary not found on PATH: {executable}")
        return found

    binary_path = Path(executable)
    if not binary_path.exists():
        raise BinaryNotFoundError(f"Binary not found: {executable}")
    if not binary_path.is_file():
        raise BinaryNotFoundError(f"Binary path is not a file: {executable}")
    if not os.access(executable, os.X_OK):
        raise BinaryNotFoundError(f"Binary is not executable: {executable}")
    return str(binary_path)


class ProcessSupervisor:
    """Exclusive owner of a spawned tunnel process."""

    def __init__(
        self,
        process: subprocess.Popen[bytes],
        config: SupervisorConfig | None = None,
    ):
        """Take ownership of an already spawned process.

        Args:
            process: The child process. Nothing else may use it afterwards.
            config: Polling and shutdown settings
        """
        self._process = process
        self._config = config or SupervisorConfig()
        self._pid = process.pid
        self._state = SupervisorState.STARTING
        self._state_lock = threading.Lock()
        self._stop = StopSignal()
        self._exited: OneShot[ExitOutcome] = OneShot()
        self._thread: threading.Thread | None = None

    @classmethod
    def spawn(
        cls,
        executable: str,
        args: list[str],
        config: SupervisorConfig | None = None,
    ) -> "ProcessSupervisor":
        """Start the tunnel process and return its supervisor in STARTING.

        Output is discarded.

        Raises:
            BinaryNotFoundError: If the executable cannot be found
            SpawnError: If the OS refuses to start the process
        """
        binary_path = resolve_executable(executable)

        logger.info("Starting tunnel process", binary_path=binary_path, args=args)
        try:
            process = subprocess.Popen(
                [binary_path, *args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error("Failed to start tunnel process", error=str(e))
            raise SpawnError(f"Failed to start tunnel process: {e}") from e

        logger.info("Tunnel process started", pid=process.pid)
        return cls(process, config)

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def state(self) -> SupervisorState:
        with self._state_lock:
            return self._state

    def start(self) -> SupervisorChannels:
        """Begin supervising on a background thread.

        Returns:
            The caller-side stop signal and outcome receiver

        Raises:
            StateTransitionError: If the supervisor was already started or aborted
        """
        self._transition(SupervisorState.RUNNING)
        # Must be a daemon: the atexit finalizers that stop the process only
        # run after non-daemon threads have finished.
        self._thread = threading.Thread(
            target=self._run, name=f"ngrok-supervisor-{self._pid}", daemon=True
        )
        self._thread.start()
        return SupervisorChannels(stop=self._stop, exited=self._exited)

    def abort(self) -> ExitOutcome:
        """Stop a process that never made it to RUNNING.

        Raises:
            StateTransitionError: If the supervisor is not in STARTING
        """
        if self.state is not SupervisorState.STARTING:
            raise StateTransitionError(
                f"Only a starting supervisor can be aborted, state is {self.state.value}"
            )
        logger.info("Aborting tunnel process", pid=self._pid)
        outcome = self._terminate(SupervisorState.STOPPED_BY_CALLER)
        self._finish(outcome)
        return outcome

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the supervisor loop to end.

        Returns:
            True if the loop has ended
        """
        if self._thread is None:
            return self._exited.delivered
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _transition(self, new_state: SupervisorState) -> None:
        with self._state_lock:
            old_state = self._state
            if new_state not in _TRANSITIONS.get(old_state, frozenset()):
                raise StateTransitionError(
                    f"Illegal supervisor transition {old_state.value} -> {new_state.value}"
                )
            self._state = new_state

        logger.info(
            "Supervisor state changed",
            pid=self._pid,
            old_state=old_state.value,
            new_state=new_state.value,
        )

    def _run(self) -> None:
        try:
            outcome = self._watch()
        except Exception as e:
            logger.exception("Supervisor loop failed", pid=self._pid)
            outcome = self._terminate(
                SupervisorState.EXITED_UNEXPECTEDLY, cause=f"Supervisor failed: {e}"
            )
        self._finish(outcome)

    def _watch(self) -> ExitOutcome:
        interval = self._config.poll_interval
        while True:
            try:
                returncode = self._process.poll()
            except OSError as e:
                return self._terminate(
                    SupervisorState.EXITED_UNEXPECTEDLY,
                    cause=f"Failed to query tunnel process: {e}",
                )

            if returncode is not None:
                logger.warning(
                    "Tunnel process exited unexpectedly",
                    pid=self._pid,
                    returncode=returncode,
                )
                return ExitOutcome(
                    state=SupervisorState.EXITED_UNEXPECTEDLY,
                    returncode=returncode,
                    error=f"Tunnel process exited with code {returncode}",
                )

            if self._stop.wait(interval):
                logger.info("Stop requested", pid=self._pid)
                return self._terminate(SupervisorState.STOPPED_BY_CALLER)

    def _terminate(
        self, state: SupervisorState, cause: str | None = None
    ) -> ExitOutcome:
        """Kill and reap the process. OS errors end up in the outcome."""
        graceful_timeout = self._config.graceful_timeout
        try:
            if graceful_timeout is not None:
                self._process.terminate()
                try:
                    returncode = self._process.wait(timeout=graceful_timeout)
                except subprocess.TimeoutExpired:
                    logger.warning(
                        "Process did not terminate gracefully, force killing",
                        pid=self._pid,
                    )
                    self._process.kill()
                    returncode = self._process.wait()
            else:
                self._process.kill()
                returncode = self._process.wait()
        except OSError as e:
            logger.error("Error stopping tunnel process", pid=self._pid, error=str(e))
            detail = f"Failed to stop tunnel process: {e}"
            return ExitOutcome(
                state=state, error=f"{cause}; {detail}" if cause else detail
            )

        logger.info("Tunnel process stopped", pid=self._pid, returncode=returncode)
        return ExitOutcome(state=state, returncode=returncode, error=cause)

    def _finish(self, outcome: ExitOutcome) -> None:
        try:
            self._transition(outcome.state)
        finally:
            self._exited.send(outcome)
