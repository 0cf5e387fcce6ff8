"""Script executor: runs one resolved script with the message headers in its environment."""
from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from hare.app.constants import ENV_VAR_PREFIX
from hare.app.core import SERVICE_NAME
from hare.app.domain.models import ScriptInvocation, ScriptResult

_ASCII_UPPER = str.maketrans("abcdefghijklmnopqrstuvwxyz", "ABCDEFGHIJKLMNOPQRSTUVWXYZ")
TERMINATE_GRACE_SECONDS = 5.0


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class ScriptSpawnError(Exception):
    """Raised when a resolved script cannot be started."""

    def __init__(self, script_path: Path, reason: str) -> None:
        super().__init__(f"failed to start {script_path}: {reason}")
        self.script_path = script_path
        self.reason = reason


def environment_variable_name(header_key: str) -> str:
    return ENV_VAR_PREFIX + header_key.translate(_ASCII_UPPER)


def build_script_environment(headers: Mapping[str, str]) -> dict[str, str]:
    """Map each header to HARE_VAR_<KEY> (key ASCII-uppercased)."""
    return {environment_variable_name(key): value for key, value in headers.items()}


def build_invocation(script_path: Path, headers: Mapping[str, str]) -> ScriptInvocation:
    return ScriptInvocation(
        script_path=script_path,
        headers=dict(headers),
        environment=build_script_environment(headers),
    )


class ScriptExecutor:
    """Spawns scripts as child processes and waits for them.

    The child inherits the dispatcher's environment plus the invocation's
    HARE_VAR_* variables. Stdout is captured and logged; stderr goes wherever
    the dispatcher's stderr goes. There is no timeout; a run is only
    cut short when the calling task is cancelled, in which case the child gets
    SIGTERM, then SIGKILL after the grace period, and is always reaped.
    """

    def __init__(
        self,
        base_environment: Mapping[str, str] | None = None,
        *,
        terminate_grace_seconds: float = TERMINATE_GRACE_SECONDS,
    ) -> None:
        self._base_environment = dict(os.environ if base_environment is None else base_environment)
        self._terminate_grace_seconds = terminate_grace_seconds

    def _child_environment(self, invocation: ScriptInvocation) -> dict[str, str]:
        env = dict(self._base_environment)
        env.update(invocation.environment)
        return env

    async def execute(self, invocation: ScriptInvocation) -> ScriptResult:
        script_path = invocation.script_path
        _log("script_starting", script_path=str(script_path), variables=sorted(invocation.environment))
        try:
            process = await asyncio.create_subprocess_exec(
                str(script_path),
                stdout=asyncio.subprocess.PIPE,
                env=self._child_environment(invocation),
            )
        except (OSError, ValueError) as exc:
            # ValueError: the OS refused an environment variable name (e.g. one containing "=")
            raise ScriptSpawnError(script_path, str(exc)) from exc

        try:
            stdout, _ = await process.communicate()
        except asyncio.CancelledError:
            await self._stop(process, script_path)
            raise
        result = ScriptResult(
            script_path=script_path,
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout or b"",
        )
        _log("script_output", script_path=str(script_path), output=result.output_text)
        _log("script_finished", script_path=str(script_path), returncode=result.returncode)
        return result

    async def _stop(self, process: asyncio.subprocess.Process, script_path: Path) -> None:
        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), self._terminate_grace_seconds)
            except asyncio.TimeoutError:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
        _log("script_terminated", script_path=str(script_path), returncode=process.returncode)
