"""
Tests for client configuration loading.
Covers field validation, env reference resolution, and path handling.
"""

from pathlib import Path

import pytest
import yaml

from tfclient.config import DEFAULT_SHUTDOWN_TIMEOUT, ClientConfig, ConfigLoader, load_config
from tfclient.exceptions import ConfigValidationError


def write_config(tmp_path, data, name="tfclient.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


class TestConfigLoader:
    """Test ConfigLoader validation."""

    def test_minimal_config_uses_defaults(self, tmp_path):
        config = load_config(write_config(tmp_path, {"version": "1"}))

        assert config == ClientConfig()
        assert config.executable == ["terraform"]
        assert config.shutdown_timeout == DEFAULT_SHUTDOWN_TIMEOUT

    def test_full_config(self, tmp_path):
        data = {
            "version": "1",
            "executable": ["docker", "run", "hashicorp/terraform"],
            "working_directory": "/srv/infra",
            "inherit_io": True,
            "max_workers": 4,
            "shutdown_timeout": 2,
            "env": {"ARM_CLIENT_ID": "client", "TF_IN_AUTOMATION": True, "TF_PARALLELISM": 5},
        }

        config = load_config(write_config(tmp_path, data))

        assert config.executable == ["docker", "run", "hashicorp/terraform"]
        assert config.working_directory == Path("/srv/infra")
        assert config.inherit_io is True
        assert config.max_workers == 4
        assert config.shutdown_timeout == 2.0
        assert config.env == {"ARM_CLIENT_ID": "client", "TF_IN_AUTOMATION": "true", "TF_PARALLELISM": "5"}

    def test_string_executable_becomes_list(self, tmp_path):
        config = load_config(write_config(tmp_path, {"version": "1", "executable": "/opt/tf/terraform"}))
        assert config.executable == ["/opt/tf/terraform"]

    def test_relative_working_directory_resolved_against_config_file(self, tmp_path):
        config = load_config(write_config(tmp_path, {"version": "1", "working_directory": "infra"}))
        assert config.working_directory == tmp_path / "infra"

    def test_env_references_resolved(self, tmp_path):
        path = write_config(tmp_path, {"version": "1", "env": {"ARM_CLIENT_SECRET": "${env.SP_SECRET}"}})

        config = load_config(path, environ={"SP_SECRET": "s3cret"})

        assert config.env == {"ARM_CLIENT_SECRET": "s3cret"}

    def test_undefined_env_reference_is_error(self, tmp_path):
        path = write_config(tmp_path, {"version": "1", "env": {"ARM_CLIENT_SECRET": "${env.MISSING}"}})

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(path, environ={})

        assert exc_info.value.errors[0].path == "env.ARM_CLIENT_SECRET"
        assert "MISSING" in exc_info.value.errors[0].message

    def test_errors_are_collected(self):
        data = {
            "version": "2",
            "executable": "",
            "inherit_io": "yes",
            "max_workers": 0,
            "shutdown_timeout": -1,
            "surprise": 1,
        }

        with pytest.raises(ConfigValidationError) as exc_info:
            ConfigLoader(environ={}).parse(data)

        paths = {error.path for error in exc_info.value.errors}
        assert paths == {"version", "executable", "inherit_io", "max_workers", "shutdown_timeout", "surprise"}
        assert exc_info.value.exit_code == 2

    def test_missing_version(self):
        with pytest.raises(ConfigValidationError, match="'version' field is required"):
            ConfigLoader(environ={}).parse({})

    @pytest.mark.parametrize("content", ["", "- just\n- a list\n", "key: [unclosed\n"])
    def test_non_mapping_or_invalid_yaml(self, tmp_path, content):
        path = tmp_path / "bad.yaml"
        path.write_text(content)

        with pytest.raises(ConfigValidationError):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigValidationError, match="Failed to load config"):
            load_config(tmp_path / "absent.yaml")

    def test_env_must_be_mapping(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            ConfigLoader(environ={}).parse({"version": "1", "env": ["A=1"]})
        assert exc_info.value.errors[0].path == "env"
