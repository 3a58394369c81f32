"""Asynchronous Terraform command-line client."""

from .client import TerraformClient
from .options import TerraformOptions
from .config import ClientConfig, ConfigLoader, load_config
from .exceptions import (
    TerraformClientError,
    ConfigurationError,
    InvalidConfigurationError,
    ConfigValidationError,
    LaunchError,
    IOCaptureError,
    ParseError,
    ShutdownError,
)
from .pipeline import PipelineComposer, PipelineRun

__version__ = "0.1.0"

__all__ = [
    "TerraformClient",
    "TerraformOptions",
    "ClientConfig",
    "ConfigLoader",
    "load_config",
    "TerraformClientError",
    "ConfigurationError",
    "InvalidConfigurationError",
    "ConfigValidationError",
    "LaunchError",
    "IOCaptureError",
    "ParseError",
    "ShutdownError",
    "PipelineComposer",
    "PipelineRun",
]
