"""Client configuration loader with strict YAML validation."""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from tfclient.exceptions import ConfigValidationError, ValidationError


DEFAULT_EXECUTABLE = "terraform"
DEFAULT_SHUTDOWN_TIMEOUT = 5.0
MIN_WORKERS = 1


@dataclass
class ClientConfig:
    """Validated client settings."""
    executable: List[str] = field(default_factory=lambda: [DEFAULT_EXECUTABLE])
    working_directory: Optional[Path] = None
    inherit_io: bool = False
    max_workers: Optional[int] = None
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT
    env: Dict[str, str] = field(default_factory=dict)


class ConfigLoader:
    """Loads and validates a client configuration file."""

    SUPPORTED_VERSIONS = {"1"}
    KNOWN_FIELDS = {
        'version', 'executable', 'working_directory', 'inherit_io',
        'max_workers', 'shutdown_timeout', 'env',
    }
    ENV_REF_PATTERN = re.compile(r'\$\{env\.([^}]+)\}')

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """
        Initialize loader.

        Args:
            environ: Environment used to resolve ${env.NAME} references
                (default: os.environ)
        """
        self.environ = dict(os.environ if environ is None else environ)
        self.errors: List[ValidationError] = []

    def load(self, config_path: Path) -> ClientConfig:
        """Load, validate, and convert a YAML config file."""
        config_path = Path(config_path)
        self.errors = []
        try:
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            self._add_error(f"Failed to load config: {e}")
            self._raise_validation_errors()

        if data is None or not isinstance(data, dict):
            self._add_error("Config must be a YAML object/dictionary")
            self._raise_validation_errors()

        config = self.parse(data, base_dir=config_path.parent)
        return config

    def parse(self, data: Dict[str, Any], base_dir: Optional[Path] = None) -> ClientConfig:
        """Validate an already-decoded config mapping."""
        self.errors = []
        config = ClientConfig()

        version = data.get('version')
        if version is None:
            self._add_error("'version' field is required", 'version')
        elif not isinstance(version, str):
            self._add_error(f"'version' field must be a string, got {type(version).__name__}", 'version')
        elif version not in self.SUPPORTED_VERSIONS:
            self._add_error(f"Unsupported version '{version}'. Supported: {sorted(self.SUPPORTED_VERSIONS)}", 'version')

        for key in data.keys():
            if key not in self.KNOWN_FIELDS:
                self._add_error(f"Unknown field '{key}'", str(key))

        if 'executable' in data:
            executable = data['executable']
            if isinstance(executable, str) and executable:
                config.executable = [executable]
            elif (
                isinstance(executable, list)
                and executable
                and all(isinstance(part, str) and part for part in executable)
            ):
                config.executable = list(executable)
            else:
                self._add_error("'executable' must be a non-empty string or list of strings", 'executable')

        if 'working_directory' in data:
            working_directory = data['working_directory']
            if isinstance(working_directory, str) and working_directory:
                path = Path(working_directory).expanduser()
                if not path.is_absolute() and base_dir is not None:
                    path = base_dir / path
                config.working_directory = path
            elif working_directory is not None:
                self._add_error("'working_directory' must be a string", 'working_directory')

        if 'inherit_io' in data:
            if isinstance(data['inherit_io'], bool):
                config.inherit_io = data['inherit_io']
            else:
                self._add_error("'inherit_io' must be a boolean", 'inherit_io')

        if 'max_workers' in data:
            max_workers = data['max_workers']
            if isinstance(max_workers, bool) or not isinstance(max_workers, int):
                self._add_error("'max_workers' must be an integer", 'max_workers')
            elif max_workers < MIN_WORKERS:
                self._add_error(f"'max_workers' must be at least {MIN_WORKERS}", 'max_workers')
            else:
                config.max_workers = max_workers

        if 'shutdown_timeout' in data:
            timeout = data['shutdown_timeout']
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
                self._add_error("'shutdown_timeout' must be a positive number", 'shutdown_timeout')
            else:
                config.shutdown_timeout = float(timeout)

        if 'env' in data:
            config.env = self._parse_env(data['env'])

        if self.errors:
            self._raise_validation_errors()

        return config

    def _parse_env(self, env: Any) -> Dict[str, str]:
        if not isinstance(env, dict):
            self._add_error("'env' must be a dictionary", 'env')
            return {}

        resolved: Dict[str, str] = {}
        for name, value in env.items():
            path = f"env.{name}"
            if not isinstance(name, str) or not name:
                self._add_error("Environment variable names must be non-empty strings", path)
                continue
            if isinstance(value, bool):
                # YAML true/false would otherwise become 'True'/'False'
                value = "true" if value else "false"
            elif isinstance(value, (int, float)):
                value = str(value)
            elif not isinstance(value, str):
                self._add_error("Environment values must be scalars", path)
                continue
            resolved[name] = self._resolve_env_refs(value, path)
        return resolved

    def _resolve_env_refs(self, value: str, path: str) -> str:
        def _replace(match: re.Match) -> str:
            name = match.group(1)
            if name not in self.environ:
                self._add_error(f"Undefined environment reference ${{env.{name}}}", path)
                return match.group(0)
            return self.environ[name]

        return self.ENV_REF_PATTERN.sub(_replace, value)

    def _add_error(self, message: str, path: str = "", exit_code: int = 2):
        """Add validation error."""
        self.errors.append(ValidationError(message, path, exit_code))

    def _raise_validation_errors(self):
        """Raise ConfigValidationError with accumulated errors."""
        raise ConfigValidationError(self.errors)


def load_config(config_path: Path, environ: Optional[Mapping[str, str]] = None) -> ClientConfig:
    """Convenience wrapper around ConfigLoader.load."""
    return ConfigLoader(environ).load(config_path)
