"""
Pipeline module for the Terraform client.

Composes process launchers into fail-fast sequences.
"""

from .results import StepSuccess, StepFailure, StepResult, SingleRunResult
from .composer import PipelineComposer, PipelineRun

__all__ = [
    "StepSuccess",
    "StepFailure",
    "StepResult",
    "SingleRunResult",
    "PipelineComposer",
    "PipelineRun",
]
