"""
Invocation type definitions.

Defines the immutable description of one process to run and the handle that
tracks it once it has been submitted to a launcher.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple


class IOMode(str, Enum):
    """How the child's standard streams are connected."""
    CAPTURE = "capture"
    INHERIT = "inherit"


class RunStatus(str, Enum):
    """Lifecycle states of a run handle."""
    PENDING = "pending"
    RUNNING = "running"
    EXITED = "exited"
    FAILED_TO_START = "failed_to_start"


@dataclass(frozen=True)
class InvocationSpec:
    """
    Immutable description of one process invocation.

    Attributes:
        executable: Program name or path
        args: Ordered argument list
        directory: Working directory (None inherits the caller's)
        env: Environment overlay merged over the inherited environment
        io_mode: Capture output line by line or inherit the caller's streams
        inherited: Environment snapshot the child inherits (None: the
            caller's environment at launch)
    """
    executable: str
    args: Tuple[str, ...] = ()
    directory: Optional[Path] = None
    env: Mapping[str, str] = field(default_factory=dict)
    io_mode: IOMode = IOMode.CAPTURE
    inherited: Optional[Mapping[str, str]] = field(default=None, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))
        if self.directory is not None:
            object.__setattr__(self, "directory", Path(self.directory))
        object.__setattr__(self, "io_mode", IOMode(self.io_mode))
        if self.inherited is not None:
            object.__setattr__(self, "inherited", MappingProxyType(dict(self.inherited)))

    @property
    def argv(self) -> list:
        return [self.executable, *self.args]

    def describe(self) -> str:
        return " ".join(self.argv)


def build_spec(
    command: Sequence[str],
    directory: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    io_mode: IOMode = IOMode.CAPTURE,
    inherited: Optional[Mapping[str, str]] = None,
) -> InvocationSpec:
    """Build an invocation spec from an argv-style command."""
    if not command:
        raise ValueError("command must not be empty")
    return InvocationSpec(
        executable=command[0],
        args=tuple(command[1:]),
        directory=directory,
        env=env or {},
        io_mode=io_mode,
        inherited=inherited,
    )


class RunHandle:
    """
    Tracks one in-flight or completed invocation.

    The status moves PENDING -> RUNNING -> EXITED, or PENDING ->
    FAILED_TO_START when the process could not be created.
    """

    def __init__(self, spec: InvocationSpec):
        self.spec = spec
        self.pid: Optional[int] = None
        self.exit_code: Optional[int] = None
        self.cancelled = False
        self._status = RunStatus.PENDING
        self._lock = threading.Lock()

    @property
    def status(self) -> RunStatus:
        with self._lock:
            return self._status

    def mark_running(self, pid: int) -> None:
        with self._lock:
            self.pid = pid
            self._status = RunStatus.RUNNING

    def mark_exited(self, exit_code: int) -> None:
        with self._lock:
            self.exit_code = exit_code
            self._status = RunStatus.EXITED

    def mark_failed_to_start(self) -> None:
        with self._lock:
            self._status = RunStatus.FAILED_TO_START

    @property
    def streams_valid(self) -> bool:
        """Output channels are only meaningful while the process runs."""
        return self.status == RunStatus.RUNNING and self.spec.io_mode == IOMode.CAPTURE

    def __repr__(self) -> str:
        return f"RunHandle({self.spec.describe()!r}, status={self.status.value}, exit_code={self.exit_code})"
