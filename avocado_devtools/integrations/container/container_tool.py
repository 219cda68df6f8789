"""Thin wrapper around the docker/podman command line.

Every call is an argument vector passed to ``CommandRunner``; no host shell
is involved, so container and volume names are never re-parsed.
"""

from __future__ import annotations

from dataclasses import dataclass

from avocado_devtools.integrations.process.subprocess_utils import CommandResult, CommandRunner

SUPPORTED_TOOLS = ("docker", "podman")

INSTALL_URLS = {
    "docker": "https://docs.docker.com/get-docker/",
    "podman": "https://podman.io/docs/installation",
}


class ContainerToolError(RuntimeError):
    """Raised when a container tool invocation exits non-zero."""

    def __init__(
        self,
        *,
        message: str,
        command_display: str | None = None,
        exit_code: int | None = None,
        stderr: str | None = None,
    ) -> None:
        parts: list[str] = [message]
        if command_display:
            parts.append(f"command={command_display}")
        if exit_code is not None:
            parts.append(f"exit_code={exit_code}")
        if stderr:
            stderr_text = stderr.strip()
            if len(stderr_text) > 2000:
                stderr_text = stderr_text[-2000:]
            parts.append(f"stderr={stderr_text}")
        super().__init__(" | ".join(parts))
        self.exit_code = exit_code
        self.stderr = stderr


@dataclass(frozen=True)
class ContainerToolConfig:
    """Settings shared by every tool invocation."""

    image: str
    mount_point: str
    stop_grace_seconds: int = 1
    timeout_seconds: float | None = None


class ContainerTool:
    """Issues inspect/run/exec/stop/rm commands for one tool binary."""

    def __init__(
        self,
        *,
        config: ContainerToolConfig,
        runner: CommandRunner | None = None,
    ) -> None:
        self._config = config
        self._runner = runner or CommandRunner()

    @property
    def config(self) -> ContainerToolConfig:
        return self._config

    async def inspect_running(self, *, tool: str, container_name: str) -> bool:
        """Returns True if the container reports ``State.Running == true``.

        Raises:
            ContainerToolError: If inspect exits non-zero (e.g. no such container).
        """

        result = await self._run_checked(
            tool,
            ["inspect", "-f", "{{.State.Running}}", container_name],
            message="inspect failed",
        )
        return result.stdout.strip() == "true"

    async def run_detached(self, *, tool: str, container_name: str, volume_name: str) -> None:
        """Starts an idle container with the volume mounted read-only."""

        await self._run_checked(
            tool,
            [
                "run",
                "-d",
                "--name",
                container_name,
                "-v",
                f"{volume_name}:{self._config.mount_point}:ro",
                self._config.image,
                "sleep",
                "infinity",
            ],
            message="container start failed",
        )

    async def exec(self, *, tool: str, container_name: str, argv: list[str]) -> CommandResult:
        """Runs ``argv`` inside the container and returns the raw result."""

        return await self._runner.run(
            args=[tool, "exec", container_name, *argv],
            timeout_seconds=self._config.timeout_seconds,
        )

    async def stop(self, *, tool: str, container_name: str) -> None:
        await self._run_checked(
            tool,
            ["stop", "-t", str(self._config.stop_grace_seconds), container_name],
            message="container stop failed",
        )

    async def remove(self, *, tool: str, container_name: str) -> None:
        await self._run_checked(tool, ["rm", "-f", container_name], message="container rm failed")

    async def _run_checked(self, tool: str, args: list[str], *, message: str) -> CommandResult:
        if tool not in SUPPORTED_TOOLS:
            raise ValueError(f"unsupported container tool: {tool}")
        command = [tool, *args]
        result = await self._runner.run(args=command, timeout_seconds=self._config.timeout_seconds)
        if result.exit_code != 0:
            raise ContainerToolError(
                message=message,
                command_display=" ".join(command),
                exit_code=result.exit_code,
                stderr=result.stderr,
            )
        return result
