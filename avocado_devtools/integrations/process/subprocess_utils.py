"""Utilities for running subprocesses without a shell.

Commands are always given as argument vectors so that paths and names are
never re-parsed by a host shell.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CommandResult:
    """Result of running a command.

    ``stdout`` and ``stderr`` are decoded as UTF-8 with replacement characters.
    ``stdout_bytes`` keeps the undecoded output for binary reads.
    """

    exit_code: int
    stdout: str
    stderr: str
    stdout_bytes: bytes = b""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandRunner:
    """Runs OS commands asynchronously with output capturing."""

    async def run(
        self,
        *,
        args: list[str],
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
        timeout_seconds: float | None = None,
    ) -> CommandResult:
        """Runs a command and captures stdout/stderr.

        Args:
            args: Command arguments (no shell).
            cwd: Working directory.
            env: Environment variables to merge with current environment.
            timeout_seconds: Optional timeout. The process is killed when exceeded.

        Returns:
            Captured result.

        Raises:
            TimeoutError: If timeout is exceeded.
            asyncio.CancelledError: Re-raised after the process is killed.
            OSError: If process cannot be started (FileNotFoundError when the
                executable is missing).
        """

        merged_env = os.environ.copy()
        if env is not None:
            merged_env.update(env)

        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd) if cwd is not None else None,
            env=merged_env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout_seconds)
        except asyncio.TimeoutError as exc:
            await _kill(process)
            raise TimeoutError(f"command timed out after {timeout_seconds}s: {args[0]}") from exc
        except asyncio.CancelledError:
            await _kill(process)
            raise

        return CommandResult(
            exit_code=int(process.returncode if process.returncode is not None else -1),
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            stdout_bytes=stdout,
        )


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()
