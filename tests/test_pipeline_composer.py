"""
Tests for PipelineComposer.
Covers ordering, fail-fast short-circuiting, launch failures, cancellation,
single-run primary values, and structured output extraction.
"""

import json
import threading

import pytest

from tfclient.exceptions import InvalidConfigurationError, LaunchError
from tfclient.exec import build_spec
from tfclient.pipeline import PipelineComposer, SingleRunResult, StepFailure, StepSuccess


def marker_code(path, lines, exit_code=0):
    """Python snippet that touches a marker file, prints lines, and exits."""
    return (
        "import pathlib, sys\n"
        f"pathlib.Path({str(path)!r}).touch()\n"
        f"for line in {lines!r}: print(line)\n"
        f"sys.exit({exit_code})\n"
    )


class TestRunSequence:
    """Test strict ordering and fail-fast behaviour."""

    def test_all_steps_succeed(self, executor, python_spec, tmp_path):
        lines = []
        specs = [
            python_spec(marker_code(tmp_path / f"step{i}", [f"step{i}-a", f"step{i}-b"]))
            for i in range(3)
        ]

        run = PipelineComposer(executor).run_sequence(specs, output_observer=lines.append)

        assert run.result(timeout=30) is True
        assert lines == [
            "step0-a", "step0-b",
            "step1-a", "step1-b",
            "step2-a", "step2-b",
        ]
        assert [type(step) for step in run.steps] == [StepSuccess] * 3

    @pytest.mark.parametrize("failing_index", [0, 1, 2])
    def test_first_failure_stops_later_steps(self, executor, python_spec, tmp_path, failing_index):
        specs = [
            python_spec(marker_code(tmp_path / f"step{i}", [], exit_code=4 if i == failing_index else 0))
            for i in range(4)
        ]

        run = PipelineComposer(executor).run_sequence(specs)

        assert run.result(timeout=30) is False
        for i in range(4):
            assert (tmp_path / f"step{i}").exists() == (i <= failing_index)
        assert len(run.steps) == failing_index + 1
        assert isinstance(run.steps[-1], StepFailure)
        assert run.steps[-1].exit_code == 4

    def test_output_observed_even_when_failing(self, executor, python_spec):
        out, err = [], []
        spec = python_spec("import sys; print('diagnostic'); print('Error: bad', file=sys.stderr); sys.exit(1)")

        run = PipelineComposer(executor).run_sequence([spec], out.append, err.append)

        assert run.result(timeout=30) is False
        assert out == ["diagnostic"]
        assert err == ["Error: bad"]

    def test_launch_failure_is_step_failure(self, executor, python_spec, tmp_path):
        specs = [
            build_spec(["tfclient-definitely-not-installed", "init"]),
            python_spec(marker_code(tmp_path / "second", [])),
        ]

        run = PipelineComposer(executor).run_sequence(specs)

        assert run.result(timeout=30) is False
        assert not (tmp_path / "second").exists()
        failure = run.steps[0]
        assert isinstance(failure, StepFailure)
        assert failure.exit_code is None
        assert isinstance(failure.error, LaunchError)

    def test_missing_directory_rejected_before_launch(self, executor, python_spec, tmp_path):
        specs = [
            python_spec(marker_code(tmp_path / "first", []), directory=tmp_path),
            python_spec(marker_code(tmp_path / "second", [])),
        ]

        with pytest.raises(InvalidConfigurationError):
            PipelineComposer(executor).run_sequence(specs, require_directory=True)

        assert not (tmp_path / "first").exists()

    def test_empty_pipeline_rejected(self, executor):
        with pytest.raises(ValueError):
            PipelineComposer(executor).run_sequence([])


class TestPipelineCancellation:
    """Test cancelling an in-flight pipeline."""

    def test_cancel_kills_current_step_and_skips_rest(self, executor, python_spec, tmp_path):
        started = threading.Event()
        specs = [
            python_spec("import time; print('running', flush=True); time.sleep(60)"),
            python_spec(marker_code(tmp_path / "after", [])),
        ]

        run = PipelineComposer(executor).run_sequence(specs, output_observer=lambda line: started.set())
        assert started.wait(timeout=10)
        run.cancel()

        assert run.result(timeout=10) is False
        assert run.cancelled is True
        assert not (tmp_path / "after").exists()
        assert len(run.steps) == 1
        assert run.steps[0].cancelled is True

    def test_cancel_after_completion_is_noop(self, executor, python_spec):
        run = PipelineComposer(executor).run_sequence([python_spec("pass")])
        assert run.result(timeout=30) is True

        run.cancel()
        assert run.result() is True
        assert run.cancelled is False


class TestRunSingle:
    """Test the single-invocation path with a primary value."""

    def test_primary_value_is_first_line(self, executor, python_spec):
        seen = []
        spec = python_spec("print('1.2.3'); print('second line')")

        run = PipelineComposer(executor).run_single(spec, output_observer=seen.append)
        result = run.result(timeout=30)

        assert result == SingleRunResult(success=True, exit_code=0, primary_value="1.2.3")
        assert seen == ["1.2.3", "second line"]

    def test_failure_reports_exit_code(self, executor, python_spec):
        spec = python_spec("import sys; print('1.2.3'); sys.exit(2)")

        result = PipelineComposer(executor).run_single(spec).result(timeout=30)

        assert result.success is False
        assert result.exit_code == 2

    def test_derived_run_shares_cancel(self, executor, python_spec):
        started = threading.Event()
        spec = python_spec("import time; print('x', flush=True); time.sleep(60)")

        run = PipelineComposer(executor).run_single(spec, output_observer=lambda line: started.set())
        assert started.wait(timeout=10)
        run.cancel()

        assert run.result(timeout=10).success is False
        assert run.cancelled is True


class TestRunOutput:
    """Test structured output extraction."""

    def test_outputs_flattened_to_values(self, executor, python_spec):
        document = {
            "x": {"type": "string", "value": "a", "sensitive": False},
            "ids": {"type": ["list", "string"], "value": ["1", "2"], "sensitive": False},
        }
        spec = python_spec(f"import json; print(json.dumps({document!r}, indent=2))")

        result = PipelineComposer(executor).run_output(spec).result(timeout=30)

        assert result == {"x": "a", "ids": ["1", "2"]}

    def test_malformed_json_yields_empty_mapping_and_one_error(self, executor, python_spec):
        errors = []
        spec = python_spec("print('{not json')")

        run = PipelineComposer(executor).run_output(spec, error_observer=errors.append)

        assert run.result(timeout=30) == {}
        assert len(errors) == 1
        assert errors[0].startswith("JSON parse error: ")

    def test_nonzero_exit_yields_empty_mapping(self, executor, python_spec):
        document = json.dumps({"x": {"type": "string", "value": "a", "sensitive": False}})
        spec = python_spec(f"import sys; print({document!r}); sys.exit(1)")

        assert PipelineComposer(executor).run_output(spec).result(timeout=30) == {}
