"""
Execution module for the Terraform client.
Handles process launching, environment overlays, and line capture.
"""

from .invocation import InvocationSpec, IOMode, RunHandle, RunStatus, build_spec
from .environment import EnvironmentOverlay
from .line_reader import drain_lines, LineObserver
from .launcher import ProcessLauncher, CANCELLED_EXIT_CODE

__all__ = [
    "InvocationSpec",
    "IOMode",
    "RunHandle",
    "RunStatus",
    "build_spec",
    "EnvironmentOverlay",
    "drain_lines",
    "LineObserver",
    "ProcessLauncher",
    "CANCELLED_EXIT_CODE",
]
