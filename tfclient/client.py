"""
Terraform client.

Runs Terraform commands as cancellable background pipelines. Every public
operation returns a PipelineRun immediately; plan/apply/destroy run `init`
first and stop at the first failing step.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import List, Optional, Sequence, Set, Union

from .commands import TerraformCommand, non_interactive_flag
from .config import DEFAULT_EXECUTABLE, DEFAULT_SHUTDOWN_TIMEOUT, MIN_WORKERS, ClientConfig
from .exceptions import ConfigurationError, ShutdownError
from .exec.environment import EnvironmentOverlay
from .exec.invocation import InvocationSpec, IOMode
from .exec.line_reader import LineObserver
from .options import TerraformOptions
from .pipeline.composer import PipelineComposer, PipelineRun
from .pipeline.results import SingleRunResult


logger = logging.getLogger(__name__)

USER_AGENT_ENV_NAME = "AZURE_HTTP_USER_AGENT"
USER_AGENT_ENV_VALUE = "Python-TerraformClient"
USER_AGENT_DELIMITER = ";"


class TerraformClient:
    """
    Runs Terraform commands against one working directory.

    The client owns a worker pool for its whole lifetime. Use it as a context
    manager or call shutdown() to release the pool.
    """

    def __init__(
        self,
        options: Optional[TerraformOptions] = None,
        working_directory: Optional[Union[str, Path]] = None,
        inherit_io: bool = False,
        executable: Union[str, Sequence[str]] = DEFAULT_EXECUTABLE,
        max_workers: Optional[int] = None,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
        output_observer: Optional[LineObserver] = None,
        error_observer: Optional[LineObserver] = None,
    ):
        """
        Initialize client.

        Args:
            options: Credential-style environment variables for every invocation
            working_directory: Terraform configuration directory
            inherit_io: Share the caller's terminal instead of capturing lines
            executable: Terraform binary, or a command prefix list
            max_workers: Worker pool size for inherit-mode process waits
            shutdown_timeout: Seconds shutdown() waits for in-flight operations
            output_observer: Default stdout line observer for operations
            error_observer: Default stderr line observer for operations
        """
        if isinstance(executable, str):
            executable = [executable]
        if not executable or not all(executable):
            raise ConfigurationError("executable must not be empty")
        if max_workers is not None and max_workers < MIN_WORKERS:
            raise ConfigurationError(f"max_workers must be at least {MIN_WORKERS}")

        self.options = options or TerraformOptions()
        self.working_directory = Path(working_directory) if working_directory is not None else None
        self.inherit_io = inherit_io
        self.executable: List[str] = list(executable)
        self.shutdown_timeout = shutdown_timeout
        self.output_observer = output_observer
        self.error_observer = error_observer

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="tfclient")
        self._composer = PipelineComposer(self._executor)
        self._lock = threading.RLock()
        self._runs: Set[PipelineRun] = set()
        self._closed = False

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs) -> "TerraformClient":
        """Build a client from a validated ClientConfig; kwargs override it."""
        settings = dict(
            options=TerraformOptions(config.env),
            working_directory=config.working_directory,
            inherit_io=config.inherit_io,
            executable=config.executable,
            max_workers=config.max_workers,
            shutdown_timeout=config.shutdown_timeout,
        )
        settings.update(kwargs)
        return cls(**settings)

    @property
    def closed(self) -> bool:
        return self._closed

    def version(
        self,
        output_observer: Optional[LineObserver] = None,
        error_observer: Optional[LineObserver] = None,
    ) -> PipelineRun:
        """
        Resolves to the first line of `terraform version`, or None on failure.

        With inherit_io nothing is captured, so success resolves to "".
        """
        out, err = self._observers(output_observer, error_observer)
        spec = self._build_spec(TerraformCommand.VERSION)
        return self._start(lambda: self._composer.run_single(spec, out, err).map(_version_value))

    def init(
        self,
        output_observer: Optional[LineObserver] = None,
        error_observer: Optional[LineObserver] = None,
    ) -> PipelineRun:
        """Resolves to True when `terraform init` succeeds."""
        return self._run_commands([TerraformCommand.INIT], output_observer, error_observer)

    def plan(
        self,
        output_observer: Optional[LineObserver] = None,
        error_observer: Optional[LineObserver] = None,
    ) -> PipelineRun:
        """Runs init then plan; resolves to True when both succeed."""
        return self._run_commands(
            [TerraformCommand.INIT, TerraformCommand.PLAN], output_observer, error_observer
        )

    def apply(
        self,
        output_observer: Optional[LineObserver] = None,
        error_observer: Optional[LineObserver] = None,
    ) -> PipelineRun:
        """Runs init then apply -auto-approve; resolves to True when both succeed."""
        return self._run_commands(
            [TerraformCommand.INIT, TerraformCommand.APPLY], output_observer, error_observer
        )

    def destroy(
        self,
        output_observer: Optional[LineObserver] = None,
        error_observer: Optional[LineObserver] = None,
    ) -> PipelineRun:
        """Runs init then destroy -auto-approve; resolves to True when both succeed."""
        return self._run_commands(
            [TerraformCommand.INIT, TerraformCommand.DESTROY], output_observer, error_observer
        )

    def output(
        self,
        output_observer: Optional[LineObserver] = None,
        error_observer: Optional[LineObserver] = None,
    ) -> PipelineRun:
        """Resolves to {name: value} from `terraform output -json` ({} on failure)."""
        out, err = self._observers(output_observer, error_observer)
        spec = self._build_spec(TerraformCommand.OUTPUT)
        return self._start(lambda: self._composer.run_output(spec, out, err))

    def shutdown(self, timeout: Optional[float] = None, cancel_running: bool = True) -> None:
        """
        Stop accepting work and wait for in-flight operations.

        Args:
            timeout: Seconds to wait (default: shutdown_timeout)
            cancel_running: Kill running processes before waiting

        Raises:
            ShutdownError: If operations are still running after timeout.
                Only the first call can raise; later calls are no-ops.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            runs = list(self._runs)

        timeout = self.shutdown_timeout if timeout is None else timeout
        logger.debug(f"Shutting down client with {len(runs)} operation(s) in flight")

        if cancel_running:
            for run in runs:
                run.cancel()
        self._executor.shutdown(wait=False, cancel_futures=cancel_running)

        _, not_done = wait([run.future for run in runs], timeout=timeout)
        if not_done:
            raise ShutdownError(
                f"{len(not_done)} operation(s) did not finish within {timeout} seconds"
            )
        logger.debug("Client shut down")

    def close(self) -> None:
        self.shutdown()

    def __enter__(self) -> "TerraformClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def _run_commands(
        self,
        commands: Sequence[TerraformCommand],
        output_observer: Optional[LineObserver],
        error_observer: Optional[LineObserver],
    ) -> PipelineRun:
        out, err = self._observers(output_observer, error_observer)
        specs = [self._build_spec(command) for command in commands]
        return self._start(
            lambda: self._composer.run_sequence(specs, out, err, require_directory=True)
        )

    def _start(self, starter) -> PipelineRun:
        with self._lock:
            if self._closed:
                raise ConfigurationError("Client has been shut down")
            run = starter()
            self._runs.add(run)
        run.add_done_callback(self._forget)
        return run

    def _forget(self, run: PipelineRun) -> None:
        with self._lock:
            self._runs.discard(run)

    def _observers(self, output_observer, error_observer):
        return (
            output_observer if output_observer is not None else self.output_observer,
            error_observer if error_observer is not None else self.error_observer,
        )

    def _build_spec(self, command: TerraformCommand) -> InvocationSpec:
        environment = EnvironmentOverlay(
            base=self.options.env_vars,
            append_delimiters={USER_AGENT_ENV_NAME: USER_AGENT_DELIMITER},
        )
        environment.set(USER_AGENT_ENV_NAME, USER_AGENT_ENV_VALUE)

        args = [*self.executable[1:], command.value]
        flag = non_interactive_flag(command.value)
        if flag:
            args.append(flag)

        return InvocationSpec(
            executable=self.executable[0],
            args=tuple(args),
            directory=self.working_directory,
            env=environment.to_dict(),
            io_mode=IOMode.INHERIT if self.inherit_io else IOMode.CAPTURE,
            inherited=environment.inherited,
        )


def _version_value(result: SingleRunResult) -> Optional[str]:
    if not result.success:
        return None
    return result.primary_value if result.primary_value is not None else ""
