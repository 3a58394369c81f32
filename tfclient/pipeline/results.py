"""Step result types threaded through pipeline sequencing."""

from dataclasses import dataclass
from typing import Optional, Union

from ..exec.invocation import InvocationSpec


@dataclass(frozen=True)
class StepSuccess:
    """Step exited with code 0."""
    spec: InvocationSpec
    exit_code: int = 0

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class StepFailure:
    """
    Step exited nonzero, was cancelled, or never started.

    exit_code is None when the process failed to start or capture failed;
    error then holds the LaunchError/IOCaptureError.
    """
    spec: InvocationSpec
    exit_code: Optional[int] = None
    error: Optional[BaseException] = None
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return False

    def describe(self) -> str:
        if self.cancelled:
            return f"'{self.spec.describe()}' was cancelled"
        if self.error is not None:
            return f"'{self.spec.describe()}' failed: {self.error}"
        return f"'{self.spec.describe()}' exited with code {self.exit_code}"


StepResult = Union[StepSuccess, StepFailure]


@dataclass(frozen=True)
class SingleRunResult:
    """Outcome of a single-invocation run with its first stdout line."""
    success: bool
    exit_code: Optional[int]
    primary_value: Optional[str] = None
