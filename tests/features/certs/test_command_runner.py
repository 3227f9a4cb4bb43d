import sys
import time
from unittest.mock import MagicMock

import pytest

from core.context import OperationContext
from features.certs.domain.exceptions import (
    CommandExecutionError,
    CommandTimeoutError,
    OperationCancelledError,
)
from features.certs.infrastructure import command_runner as command_runner_module
from features.certs.infrastructure.command_runner import ExecutableRunner


def test_successful_command(tmp_path):
    marker = tmp_path / "ran"

    ExecutableRunner().run(None, sys.executable, ["-c", f"open({str(marker)!r}, 'w').close()"])

    assert marker.exists()


def test_failure_carries_stderr_and_exit_status():
    with pytest.raises(CommandExecutionError) as excinfo:
        ExecutableRunner().run(
            None,
            sys.executable,
            ["-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"],
        )

    error = excinfo.value
    assert error.returncode == 3
    assert error.stderr == "boom"
    assert "exit status 3" in str(error)
    assert str(error).endswith(": boom")


def test_undecodable_stderr_is_replaced():
    with pytest.raises(CommandExecutionError) as excinfo:
        ExecutableRunner().run(
            None,
            sys.executable,
            ["-c", "import sys; sys.stderr.buffer.write(b'\\xff\\xfe bad'); sys.exit(1)"],
        )

    assert excinfo.value.returncode == 1
    assert excinfo.value.stderr.endswith(" bad")
    assert "\ufffd" in excinfo.value.stderr


def test_missing_executable():
    with pytest.raises(CommandExecutionError) as excinfo:
        ExecutableRunner().run(None, "ghttp-definitely-missing-binary", [])

    assert str(excinfo.value).startswith("execute ghttp-definitely-missing-binary: ")


def test_cancelled_context_never_starts_process(monkeypatch):
    popen = MagicMock()
    monkeypatch.setattr(command_runner_module.subprocess, "Popen", popen)
    context = OperationContext.background()
    context.cancel()

    with pytest.raises(OperationCancelledError):
        ExecutableRunner().run(context, "true", [])

    popen.assert_not_called()


def test_deadline_kills_running_process():
    context = OperationContext.background().with_timeout(0.3)
    started = time.monotonic()

    with pytest.raises(CommandTimeoutError):
        ExecutableRunner().run(context, sys.executable, ["-c", "import time; time.sleep(30)"])

    assert time.monotonic() - started < 10


def test_privileged_run_prefixes_sudo(monkeypatch):
    runner = ExecutableRunner(platform="darwin")
    run = MagicMock()
    monkeypatch.setattr(runner, "run", run)
    monkeypatch.setattr(command_runner_module, "_is_superuser", lambda: False)

    runner.run_with_privileges(None, "security", ["add-trusted-cert"])

    run.assert_called_once_with(None, "sudo", ["security", "add-trusted-cert"])


def test_privileged_run_as_root_skips_sudo(monkeypatch):
    runner = ExecutableRunner(platform="linux")
    run = MagicMock()
    monkeypatch.setattr(runner, "run", run)
    monkeypatch.setattr(command_runner_module, "_is_superuser", lambda: True)

    runner.run_with_privileges(None, "update-ca-certificates", [])

    run.assert_called_once_with(None, "update-ca-certificates", [])


def test_privileged_run_unsupported_on_windows():
    with pytest.raises(CommandExecutionError) as excinfo:
        ExecutableRunner(platform="win32").run_with_privileges(None, "certutil", [])

    assert "privileged execution not supported on win32" in str(excinfo.value)
