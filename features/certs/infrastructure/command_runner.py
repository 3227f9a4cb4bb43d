"""外部コマンドの実行"""
from __future__ import annotations

import logging
import os
import subprocess
import sys
from typing import Optional, Protocol, Sequence

from core.context import OperationContext
from features.certs.domain.exceptions import (
    CommandExecutionError,
    CommandTimeoutError,
    OperationCancelledError,
)

logger = logging.getLogger("ghttp.certs.commands")

_POLL_INTERVAL_SECONDS = 0.1
_PRIVILEGE_ESCALATION_PLATFORMS = ("darwin", "linux")


class CommandRunner(Protocol):
    """OSコマンドを実行するインターフェース"""

    def run(
        self,
        context: Optional[OperationContext],
        executable: str,
        arguments: Sequence[str],
    ) -> None:
        ...

    def run_with_privileges(
        self,
        context: Optional[OperationContext],
        executable: str,
        arguments: Sequence[str],
    ) -> None:
        ...


class ExecutableRunner:
    """``subprocess`` を使ってローカルOS上でコマンドを実行する"""

    def __init__(
        self,
        *,
        platform: Optional[str] = None,
        default_timeout: Optional[float] = 120.0,
    ) -> None:
        self._platform = platform or sys.platform
        self._default_timeout = default_timeout

    def run(
        self,
        context: Optional[OperationContext],
        executable: str,
        arguments: Sequence[str],
    ) -> None:
        context = context or OperationContext.background()
        if context.cancelled:
            raise OperationCancelledError(f"execute {executable}: context cancelled")
        if context.expired:
            raise CommandTimeoutError(executable, "deadline exceeded before start")

        if context.deadline is None and self._default_timeout is not None:
            context = context.with_timeout(self._default_timeout)

        command = [executable, *arguments]
        logger.debug(
            "Executing command",
            extra={"event": "certs.command.start", "command": command},
        )
        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            raise CommandExecutionError(executable, str(exc)) from exc

        stdout, stderr = self._wait(context, executable, process)
        if process.returncode != 0:
            logger.debug(
                "Command failed",
                extra={
                    "event": "certs.command.failed",
                    "command": command,
                    "returncode": process.returncode,
                    "stdout": stdout,
                },
            )
            raise CommandExecutionError(
                executable,
                f"exit status {process.returncode}",
                returncode=process.returncode,
                stderr=stderr or "",
            )

    def run_with_privileges(
        self,
        context: Optional[OperationContext],
        executable: str,
        arguments: Sequence[str],
    ) -> None:
        if self._platform not in _PRIVILEGE_ESCALATION_PLATFORMS:
            raise CommandExecutionError(
                executable, f"privileged execution not supported on {self._platform}"
            )
        if _is_superuser():
            self.run(context, executable, arguments)
            return
        self.run(context, "sudo", [executable, *arguments])

    # ------------------------------------------------------------------
    def _wait(
        self,
        context: OperationContext,
        executable: str,
        process: subprocess.Popen,
    ) -> tuple[str, str]:
        while True:
            timeout = _POLL_INTERVAL_SECONDS
            remaining = context.remaining()
            if remaining is not None:
                timeout = min(timeout, remaining)
            try:
                return process.communicate(timeout=timeout)
            except subprocess.TimeoutExpired:
                pass
            if context.cancelled:
                _terminate(process)
                raise OperationCancelledError(f"execute {executable}: context cancelled")
            if context.expired:
                _, stderr = _terminate(process)
                raise CommandTimeoutError(
                    executable, "deadline exceeded", stderr=stderr or ""
                )


def _terminate(process: subprocess.Popen) -> tuple[str, str]:
    process.kill()
    stdout, stderr = process.communicate()
    return stdout or "", stderr or ""


def _is_superuser() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


__all__ = ["CommandRunner", "ExecutableRunner"]
