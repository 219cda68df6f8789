"""Helpers for the ``avocado`` command line tool."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from avocado_devtools.integrations.process.subprocess_utils import CommandRunner
from avocado_devtools.ui.base import UserInterface

INSTALL_ACTION = "View Installation Instructions"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CliResult:
    """Result of an ``avocado`` invocation."""

    success: bool
    stdout: str
    stderr: str
    code: int | None


def build_config_args(config_path: str | None = None, target: str | None = None) -> list[str]:
    """Builds the common ``-C <config> --target <target>`` arguments."""

    args: list[str] = []
    if config_path:
        args.extend(["-C", config_path])
    if target:
        args.extend(["--target", target])
    return args


def sdk_shell_args(config_path: str | None = None, target: str | None = None) -> list[str]:
    """Arguments for an interactive SDK shell with the project's environment."""

    return ["sdk", "run", "-i", "-E", *build_config_args(config_path, target)]


class AvocadoCli:
    """Runs the avocado CLI as a subprocess."""

    def __init__(self, *, runner: CommandRunner | None = None, executable: str = "avocado") -> None:
        self._runner = runner or CommandRunner()
        self._executable = executable

    @property
    def executable(self) -> str:
        return self._executable

    async def run(
        self,
        args: list[str],
        *,
        cwd: str | Path | None = None,
        timeout_seconds: float | None = 60,
    ) -> CliResult:
        """Runs ``avocado <args>`` and captures its output. Never raises."""

        try:
            result = await self._runner.run(
                args=[self._executable, *args], cwd=cwd, timeout_seconds=timeout_seconds
            )
        except (OSError, TimeoutError) as exc:
            return CliResult(success=False, stdout="", stderr=str(exc), code=None)
        return CliResult(
            success=result.exit_code == 0,
            stdout=result.stdout,
            stderr=result.stderr,
            code=result.exit_code,
        )

    async def get_version(self) -> str | None:
        result = await self.run(["--version"])
        if not result.success:
            return None
        return result.stdout.strip()

    async def is_installed(self) -> bool:
        return (await self.get_version()) is not None


async def report_cli_not_found(ui: UserInterface, install_url: str) -> None:
    """Shows the "CLI not found" error with a link to installation instructions."""

    logger.warning("avocado cli not found")
    action = await ui.show_error(
        "Avocado CLI not found. Please install it to use Avocado DevTools.",
        INSTALL_ACTION,
    )
    if action == INSTALL_ACTION:
        ui.open_external(install_url)
