"""
Pipeline composer for fail-fast sequences of invocations.

Runs an ordered list of invocation specs as one logical operation. Step N+1
is launched from the completion callback of step N, after its output has
been fully drained, so no worker thread blocks waiting on a previous step.
The first nonzero exit, launch failure, or cancellation resolves the whole
pipeline to False and no later step is started.
"""

import logging
import threading
from concurrent.futures import Executor, Future
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..exec.invocation import InvocationSpec
from ..exec.launcher import CANCELLED_EXIT_CODE, ProcessLauncher
from ..exec.line_reader import LineObserver
from ..exceptions import InvalidConfigurationError, IOCaptureError, LaunchError, ParseError
from ..outputs import flatten_outputs, parse_outputs
from .results import SingleRunResult, StepFailure, StepResult, StepSuccess


logger = logging.getLogger(__name__)


class PipelineRun:
    """
    Handle for one in-flight pipeline.

    Exposes the aggregate Future, the step results recorded so far, and
    cancel(), which kills the running step and prevents later steps.
    """

    def __init__(self, parent: Optional["PipelineRun"] = None):
        self.future: Future = Future()
        self.future.set_running_or_notify_cancel()
        self._parent = parent
        self._lock = threading.Lock()
        self._current: Optional[ProcessLauncher] = None
        self._cancelled = False
        self._steps: List[StepResult] = [] if parent is None else parent._steps

    @property
    def steps(self) -> List[StepResult]:
        """Results of the steps that ran, in order."""
        return list(self._steps)

    @property
    def cancelled(self) -> bool:
        if self._parent is not None:
            return self._parent.cancelled
        return self._cancelled

    def cancel(self) -> None:
        """Kill the running step and stop the pipeline. Idempotent."""
        if self._parent is not None:
            self._parent.cancel()
            return
        with self._lock:
            if self._cancelled or self.future.done():
                return
            self._cancelled = True
            launcher = self._current
        logger.warning("Pipeline cancellation requested")
        if launcher is not None:
            launcher.cancel()

    def result(self, timeout: Optional[float] = None) -> Any:
        return self.future.result(timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self.future.exception(timeout)

    def done(self) -> bool:
        return self.future.done()

    def add_done_callback(self, fn: Callable[["PipelineRun"], None]) -> None:
        self.future.add_done_callback(lambda _: fn(self))

    def map(self, fn: Callable[[Any], Any]) -> "PipelineRun":
        """Derive a run whose result is fn(this run's result); cancel is shared."""
        derived = PipelineRun(parent=self)

        def _transfer(done: Future) -> None:
            error = done.exception()
            if error is not None:
                derived.future.set_exception(error)
                return
            try:
                derived.future.set_result(fn(done.result()))
            except Exception as e:
                derived.future.set_exception(e)

        self.future.add_done_callback(_transfer)
        return derived

    def _begin_step(self, launcher: ProcessLauncher) -> bool:
        with self._lock:
            if self._cancelled:
                return False
            self._current = launcher
            return True

    def _record(self, result: StepResult) -> None:
        with self._lock:
            self._steps.append(result)
            self._current = None


class PipelineComposer:
    """
    Runs invocation specs strictly in order with fail-fast short-circuiting.
    """

    def __init__(self, executor: Executor):
        """
        Initialize composer.

        Args:
            executor: Worker pool shared by every launcher this composer creates
        """
        self.executor = executor

    def run_sequence(
        self,
        specs: Sequence[InvocationSpec],
        output_observer: Optional[LineObserver] = None,
        error_observer: Optional[LineObserver] = None,
        require_directory: bool = False,
    ) -> PipelineRun:
        """
        Run specs in order; the run resolves to True iff every step exits 0.

        Args:
            specs: Ordered invocation specs
            output_observer: Receives stdout lines of every step
            error_observer: Receives stderr lines of every step
            require_directory: Reject specs without a working directory

        Returns:
            PipelineRun whose future resolves to a bool

        Raises:
            InvalidConfigurationError: If require_directory is set and a spec
                has no working directory (nothing is launched)
        """
        specs = list(specs)
        if not specs:
            raise ValueError("Pipeline requires at least one invocation spec")
        if require_directory:
            for spec in specs:
                if spec.directory is None:
                    raise InvalidConfigurationError("working directory should not be None")

        run = PipelineRun()
        logger.debug(f"Starting pipeline of {len(specs)} step(s)")
        self._advance(run, specs, 0, output_observer, error_observer)
        return run

    def run_single(
        self,
        spec: InvocationSpec,
        output_observer: Optional[LineObserver] = None,
        error_observer: Optional[LineObserver] = None,
        require_directory: bool = False,
    ) -> PipelineRun:
        """
        Run one spec, keeping its first stdout line as the primary value.

        Returns:
            PipelineRun whose future resolves to a SingleRunResult
        """
        first_line: List[str] = []

        def _capture_first(line: str) -> None:
            if not first_line:
                first_line.append(line)
            if output_observer is not None:
                output_observer(line)

        run = self.run_sequence([spec], _capture_first, error_observer, require_directory)

        def _to_single(success: bool) -> SingleRunResult:
            step = run.steps[-1]
            return SingleRunResult(
                success=success,
                exit_code=step.exit_code,
                primary_value=first_line[0] if first_line else None,
            )

        return run.map(_to_single)

    def run_output(
        self,
        spec: InvocationSpec,
        output_observer: Optional[LineObserver] = None,
        error_observer: Optional[LineObserver] = None,
    ) -> PipelineRun:
        """
        Run one spec whose stdout is a JSON document of declared output values.

        Returns:
            PipelineRun whose future resolves to {name: value}. A nonzero exit
            gives an empty mapping; malformed output gives an empty mapping and
            one error observer notification.
        """
        captured: List[str] = []

        def _collect(line: str) -> None:
            captured.append(line)
            if output_observer is not None:
                output_observer(line)

        run = self.run_sequence([spec], _collect, error_observer)

        def _extract(success: bool) -> Dict[str, Any]:
            if not success:
                return {}
            try:
                outputs = parse_outputs("\n".join(captured))
            except ParseError as e:
                logger.error(f"Output extraction failed: {e}")
                if error_observer is not None:
                    error_observer(f"JSON parse error: {e}")
                return {}
            return flatten_outputs(outputs)

        return run.map(_extract)

    def _advance(
        self,
        run: PipelineRun,
        specs: List[InvocationSpec],
        index: int,
        output_observer: Optional[LineObserver],
        error_observer: Optional[LineObserver],
    ) -> None:
        if index == len(specs):
            logger.debug("Pipeline completed successfully")
            run.future.set_result(True)
            return

        spec = specs[index]
        launcher = ProcessLauncher.from_spec(self.executor, spec, output_observer, error_observer)
        if not run._begin_step(launcher):
            run._record(StepFailure(spec, CANCELLED_EXIT_CODE, cancelled=True))
            logger.warning(f"Pipeline cancelled before step {index + 1}/{len(specs)}")
            run.future.set_result(False)
            return

        logger.debug(f"Launching step {index + 1}/{len(specs)}: {spec.describe()}")
        step_future = launcher.launch()
        step_future.add_done_callback(
            lambda done: self._on_step_done(run, specs, index, launcher, done, output_observer, error_observer)
        )

    def _on_step_done(
        self,
        run: PipelineRun,
        specs: List[InvocationSpec],
        index: int,
        launcher: ProcessLauncher,
        done: Future,
        output_observer: Optional[LineObserver],
        error_observer: Optional[LineObserver],
    ) -> None:
        spec = specs[index]
        try:
            exit_code = done.result()
        except (LaunchError, IOCaptureError) as e:
            result: StepResult = StepFailure(spec, error=e)
        except Exception as e:
            logger.error(f"Unexpected failure in step {spec.describe()}: {e}")
            run._record(StepFailure(spec, error=e))
            run.future.set_exception(e)
            return
        else:
            handle = launcher.handle
            if handle is not None and handle.cancelled:
                result = StepFailure(spec, exit_code, cancelled=True)
            elif exit_code == 0:
                result = StepSuccess(spec, exit_code)
            else:
                result = StepFailure(spec, exit_code)

        run._record(result)
        if isinstance(result, StepFailure):
            logger.warning(f"Pipeline stopped at step {index + 1}/{len(specs)}: {result.describe()}")
            run.future.set_result(False)
            return

        self._advance(run, specs, index + 1, output_observer, error_observer)
