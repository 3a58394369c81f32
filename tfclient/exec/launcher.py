"""
Process launcher for running one external command asynchronously.

A launcher owns exactly one invocation. launch() starts the child and returns
a Future resolving to its exit code. Each captured stream is drained on its
own thread, started together with the process, so both pipes are always read
no matter how busy the shared worker pool is. Inherit-mode process waits run
on the pool. The Future resolves only after both captured streams have been
drained to end-of-stream and the process has been reaped, so every line
reaches its observer before the invocation counts as finished.
"""

import logging
import os
import signal
import subprocess
import threading
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import List, Mapping, Optional, Union

from .environment import EnvironmentOverlay
from .invocation import InvocationSpec, IOMode, RunHandle, RunStatus
from .line_reader import LineObserver, drain_lines
from ..exceptions import ConfigurationError, IOCaptureError, LaunchError


logger = logging.getLogger(__name__)

# Exit code reported for invocations stopped through cancel()
CANCELLED_EXIT_CODE = -1

_UNSET = object()


class ProcessLauncher:
    """
    Starts one external process and makes its completion observable.

    Configuration is frozen once launch() is called; later calls to
    configure() or append_args() raise ConfigurationError.
    """

    def __init__(self, executor: Executor, executable: str, *args: Optional[str]):
        """
        Initialize launcher.

        Args:
            executor: Worker pool running inherit-mode process waits
            executable: Program to run
            *args: Initial arguments (None entries are skipped)
        """
        self._executor = executor
        self._executable = executable
        self._args: List[str] = [arg for arg in args if arg is not None]
        self._directory: Optional[Path] = None
        self._environment = EnvironmentOverlay()
        self._inherited: Optional[Mapping[str, str]] = None
        self._io_mode = IOMode.CAPTURE
        self._output_observer: Optional[LineObserver] = None
        self._error_observer: Optional[LineObserver] = None

        self._lock = threading.Lock()
        self._handle: Optional[RunHandle] = None
        self._future: Optional["Future[int]"] = None
        self._process: Optional[subprocess.Popen] = None
        self._cancelled = False
        self._new_session = False
        self._pending_drains = 0
        self._drain_errors: List[BaseException] = []

    @classmethod
    def from_spec(
        cls,
        executor: Executor,
        spec: InvocationSpec,
        output_observer: Optional[LineObserver] = None,
        error_observer: Optional[LineObserver] = None,
    ) -> "ProcessLauncher":
        launcher = cls(executor, spec.executable, *spec.args)
        launcher.configure(
            directory=spec.directory,
            environment=spec.env,
            io_mode=spec.io_mode,
            inherited=spec.inherited,
            output_observer=output_observer,
            error_observer=error_observer,
        )
        return launcher

    @property
    def launched(self) -> bool:
        return self._future is not None

    @property
    def handle(self) -> Optional[RunHandle]:
        return self._handle

    @property
    def spec(self) -> InvocationSpec:
        return InvocationSpec(
            executable=self._executable,
            args=tuple(self._args),
            directory=self._directory,
            env=self._environment.to_dict(),
            io_mode=self._io_mode,
            inherited=self._inherited,
        )

    def _ensure_not_launched(self, action: str) -> None:
        if self._future is not None:
            raise ConfigurationError(f"Cannot {action} after launch has started")

    def append_args(self, *args: Optional[str]) -> None:
        """Append arguments, skipping None entries."""
        with self._lock:
            self._ensure_not_launched("append arguments")
            self._args.extend(arg for arg in args if arg is not None)

    def configure(
        self,
        directory=_UNSET,
        environment: Union[Mapping[str, str], EnvironmentOverlay, object] = _UNSET,
        io_mode=_UNSET,
        inherited=_UNSET,
        output_observer=_UNSET,
        error_observer=_UNSET,
    ) -> None:
        """
        Set launch parameters. Omitted parameters are left unchanged.

        Args:
            directory: Working directory (None inherits the caller's)
            environment: Overlay, or a mapping copied into a fresh overlay
            io_mode: IOMode.CAPTURE or IOMode.INHERIT
            inherited: Environment snapshot the child starts from (None uses
                the caller's environment at launch)
            output_observer: Receives each stdout line (capture mode only)
            error_observer: Receives each stderr line (capture mode only)

        Raises:
            ConfigurationError: If launch has already started
        """
        with self._lock:
            self._ensure_not_launched("configure launcher")
            if directory is not _UNSET:
                self._directory = Path(directory) if directory is not None else None
            if environment is not _UNSET:
                if isinstance(environment, EnvironmentOverlay):
                    self._environment = environment
                else:
                    self._environment = EnvironmentOverlay(environment)
            if io_mode is not _UNSET:
                self._io_mode = IOMode(io_mode)
            if inherited is not _UNSET:
                self._inherited = dict(inherited) if inherited is not None else None
            if output_observer is not _UNSET:
                self._output_observer = output_observer
            if error_observer is not _UNSET:
                self._error_observer = error_observer

    def launch(self) -> "Future[int]":
        """
        Start the process without blocking on its completion.

        Returns:
            Future resolving to the exit code. It fails with LaunchError when
            the executable cannot be started and with IOCaptureError when
            output capture fails.

        Raises:
            ConfigurationError: If called more than once
        """
        with self._lock:
            self._ensure_not_launched("launch")
            spec = self.spec
            handle = RunHandle(spec)
            future: "Future[int]" = Future()
            future.set_running_or_notify_cancel()
            self._handle = handle
            self._future = future

            if self._cancelled:
                logger.debug(f"Launch skipped, already cancelled: {spec.describe()}")
                handle.cancelled = True
                handle.mark_exited(CANCELLED_EXIT_CODE)
                future.set_result(CANCELLED_EXIT_CODE)
                return future

            try:
                process = self._spawn(spec)
            except LaunchError as e:
                logger.debug(f"Failed to start {spec.describe()}: {e}")
                handle.mark_failed_to_start()
                future.set_exception(e)
                return future

            self._process = process
            handle.mark_running(process.pid)
            logger.debug(f"Started pid {process.pid}: {spec.describe()}")

        if spec.io_mode == IOMode.INHERIT:
            self._schedule_wait()
        else:
            self._schedule_drains(process)
        return future

    def cancel(self) -> None:
        """
        Forcefully terminate the process. Idempotent.

        Cancelling before launch makes launch() resolve immediately with
        CANCELLED_EXIT_CODE; cancelling after the process exited is a no-op.
        """
        with self._lock:
            if self._cancelled:
                return
            if self._handle is None:
                self._cancelled = True
                return
            process = self._process
            if (
                process is None
                or self._handle.status != RunStatus.RUNNING
                or process.poll() is not None
            ):
                return
            self._cancelled = True
            self._handle.cancelled = True

        logger.warning(f"Cancelling pid {process.pid}: {self._handle.spec.describe()}")
        _kill_process(process, self._new_session)

    def _spawn(self, spec: InvocationSpec) -> subprocess.Popen:
        env = EnvironmentOverlay(spec.env, inherited=spec.inherited).child_env()
        capture = spec.io_mode == IOMode.CAPTURE
        self._new_session = capture and os.name == "posix"
        pipe = subprocess.PIPE if capture else None

        try:
            return subprocess.Popen(
                spec.argv,
                cwd=str(spec.directory) if spec.directory is not None else None,
                env=env,
                stdin=subprocess.DEVNULL if capture else None,
                stdout=pipe,
                stderr=pipe,
                text=True,
                encoding="utf-8",
                errors="replace",
                # Own process group so cancel() also reaches grandchildren holding the pipes
                start_new_session=self._new_session,
            )
        except FileNotFoundError as e:
            raise LaunchError(f"Executable or directory not found for '{spec.describe()}': {e}") from e
        except PermissionError as e:
            raise LaunchError(f"Permission denied starting '{spec.describe()}': {e}") from e
        except OSError as e:
            raise LaunchError(f"Failed to start '{spec.describe()}': {e}") from e

    def _schedule_drains(self, process: subprocess.Popen) -> None:
        if process.stdout is None or process.stderr is None:
            _kill_process(process, self._new_session)
            self._finish(process, IOCaptureError("Child process pipes were not created"))
            return

        streams = [
            (process.stdout, self._output_observer, "stdout"),
            (process.stderr, self._error_observer, "stderr"),
        ]
        threads = [
            threading.Thread(
                target=self._drain,
                args=(process, stream, observer, name),
                name=f"tfclient-{name}-{process.pid}",
                daemon=True,
            )
            for stream, observer, name in streams
        ]
        self._pending_drains = len(threads)

        started = 0
        try:
            for thread in threads:
                thread.start()
                started += 1
        except RuntimeError as e:
            _kill_process(process, self._new_session)
            for stream, _, _ in streams[started:]:
                stream.close()
            with self._lock:
                self._drain_errors.append(IOCaptureError(f"Cannot start output capture: {e}"))
                self._pending_drains -= len(threads) - started
                remaining = self._pending_drains
            if not remaining:
                self._finish(process)

    def _drain(self, process: subprocess.Popen, stream, observer: Optional[LineObserver], name: str) -> None:
        error: Optional[BaseException] = None
        try:
            drain_lines(stream, observer, name)
        except Exception as e:
            error = e
            # The child would block on a pipe nobody reads
            _kill_process(process, self._new_session)
        with self._lock:
            if error is not None:
                self._drain_errors.append(error)
            self._pending_drains -= 1
            if self._pending_drains:
                return
        self._finish(process)

    def _schedule_wait(self) -> None:
        process = self._process
        try:
            task = self._executor.submit(self._finish, process)
        except RuntimeError:
            # Pool is shutting down; reap on the current thread instead
            self._finish(process)
            return
        task.add_done_callback(lambda done: self._finish(process) if done.cancelled() else None)

    def _finish(self, process: subprocess.Popen, error: Optional[BaseException] = None) -> None:
        handle = self._handle
        future = self._future
        try:
            exit_code = process.wait()
            with self._lock:
                cancelled = self._cancelled
                if error is None and self._drain_errors:
                    error = self._drain_errors[0]
            if cancelled:
                exit_code = CANCELLED_EXIT_CODE
            handle.mark_exited(exit_code)
            logger.debug(f"pid {process.pid} exited with {exit_code}: {handle.spec.describe()}")
            if error is not None and not cancelled:
                future.set_exception(error)
            else:
                future.set_result(exit_code)
        except BaseException as e:
            if not future.done():
                future.set_exception(e)
            raise


def _kill_process(process: subprocess.Popen, group: bool = False) -> None:
    if process.poll() is not None:
        return
    if group:
        try:
            os.killpg(process.pid, signal.SIGKILL)
            return
        except (ProcessLookupError, PermissionError):
            pass
        except OSError:
            logger.debug(f"killpg failed for pid {process.pid}", exc_info=True)
    try:
        process.kill()
    except ProcessLookupError:
        pass
