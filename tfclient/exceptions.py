"""Terraform client exceptions."""

from typing import List
from dataclasses import dataclass


@dataclass
class ValidationError:
    """Single configuration validation error."""
    message: str
    path: str = ""
    exit_code: int = 2


class TerraformClientError(Exception):
    """Base class for all client errors."""


class ConfigurationError(TerraformClientError):
    """Raised when a launcher or client is set up incorrectly."""


class InvalidConfigurationError(ConfigurationError):
    """Raised when an operation is missing required setup (e.g. working directory)."""


class ConfigValidationError(ConfigurationError):
    """Raised when a client configuration file fails validation.

    Collects every error found so the CLI can report them together and
    map them to an exit code.
    """

    def __init__(self, errors: List[ValidationError]):
        self.errors = errors
        self.exit_code = 2

        messages = []
        for error in errors:
            if error.path:
                messages.append(f"Validation error at '{error.path}': {error.message}")
            else:
                messages.append(f"Validation error: {error.message}")

        super().__init__("\n".join(messages))


class LaunchError(TerraformClientError):
    """Raised when the executable cannot be started."""


class IOCaptureError(TerraformClientError):
    """Raised when output capture for a child process fails."""


class ParseError(TerraformClientError):
    """Raised when structured tool output does not have the expected shape."""


class ShutdownError(TerraformClientError):
    """Raised when the worker pool does not terminate within its bound."""
