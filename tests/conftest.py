"""Shared fixtures: a fake terraform executable and invocation helpers."""

import json
import stat
import sys
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from tfclient.exec import build_spec


FAKE_TERRAFORM = '''
import json
import os
import sys
import time

args = sys.argv[1:]
command = args[0] if args else ""

log_path = os.environ.get("FAKE_TF_LOG")
if log_path:
    record = {
        "argv": args,
        "cwd": os.getcwd(),
        "user_agent": os.environ.get("AZURE_HTTP_USER_AGENT"),
        "client_id": os.environ.get("ARM_CLIENT_ID"),
    }
    with open(log_path, "a") as f:
        f.write(json.dumps(record) + "\\n")

if command in os.environ.get("FAKE_TF_SLEEP", "").split(","):
    print(command + " started", flush=True)
    time.sleep(float(os.environ.get("FAKE_TF_SLEEP_SECONDS", "30")))

if command == "version":
    print(os.environ.get("FAKE_TF_VERSION", "Terraform v1.2.3"))
    print("on linux_amd64")
elif command == "output":
    sys.stdout.write(os.environ.get("FAKE_TF_OUTPUT", "{}") + "\\n")
else:
    print(command + " line 1")
    print(command + " line 2")
    print(command + " warning", file=sys.stderr)

sys.stdout.flush()
if command in os.environ.get("FAKE_TF_FAIL", "").split(","):
    sys.exit(int(os.environ.get("FAKE_TF_EXIT_CODE", "1")))
sys.exit(0)
'''


@pytest.fixture
def fake_terraform(tmp_path):
    """Path to an executable fake terraform script."""
    script = tmp_path / "fake_terraform"
    script.write_text(f"#!{sys.executable}\n{FAKE_TERRAFORM}")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def fake_terraform_cmd(fake_terraform):
    """Command prefix running the fake terraform through the current interpreter."""
    return [sys.executable, str(fake_terraform)]


@pytest.fixture
def invocation_log(tmp_path):
    return tmp_path / "invocations.jsonl"


@pytest.fixture
def read_invocations(invocation_log):
    """Return a callable listing the recorded fake terraform invocations."""
    def _read():
        if not invocation_log.exists():
            return []
        return [json.loads(line) for line in invocation_log.read_text().splitlines() if line]
    return _read


@pytest.fixture
def tf_workdir(tmp_path):
    workdir = tmp_path / "infra"
    workdir.mkdir()
    return workdir


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=8, thread_name_prefix="test-tfclient")
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def python_spec():
    """Factory building an InvocationSpec that runs a Python snippet."""
    def _make(code, **kwargs):
        return build_spec([sys.executable, "-c", code], **kwargs)
    return _make


@pytest.fixture
def wait_for():
    """Poll a condition until it holds or the timeout expires."""
    def _wait(condition, timeout=10.0, interval=0.02):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if condition():
                return True
            time.sleep(interval)
        return condition()
    return _wait
