"""Lifecycle of the per-folder explorer container.

Each project folder gets at most one lightweight container that mounts the
folder's build volume read-only. Containers are started lazily on first use,
reused while alive, restarted after they die and removed on cleanup.

Concurrency model: everything runs on one event loop. A start in flight for a
folder is represented by an ``asyncio.Event``; later callers for the same
folder wait on it (bounded by ``start_wait_timeout_seconds``) instead of
issuing a second ``run``. Folders never wait on each other.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path

from avocado_devtools.core.config import AppSettings
from avocado_devtools.integrations.container.container_tool import (
    INSTALL_URLS,
    ContainerTool,
    ContainerToolConfig,
    ContainerToolError,
)
from avocado_devtools.integrations.process.subprocess_utils import CommandResult, CommandRunner
from avocado_devtools.runtime.volume_state import VolumeStateReader
from avocado_devtools.ui.base import UserInterface

_NAME_UNSAFE = re.compile(r"[^a-zA-Z0-9]")

INSTALL_ACTION = "View Installation Instructions"


class ContainerUnavailableError(RuntimeError):
    """Raised when no explorer container could be provided for a folder."""

    def __init__(self, folder_path: str) -> None:
        super().__init__(f"no container available | folder={folder_path}")
        self.folder_path = folder_path


@dataclass(frozen=True)
class ManagedContainer:
    """Bookkeeping record for a started explorer container."""

    container_name: str
    volume_name: str
    folder_path: str
    container_tool: str


def build_container_name(prefix: str, folder_path: str, *, now_ms: int | None = None) -> str:
    """Returns ``<prefix>-<epoch ms>-<folder basename without non-alphanumerics>``."""

    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{prefix}-{stamp}-{_NAME_UNSAFE.sub('', Path(folder_path).name)}"


class ContainerManager:
    """Ensures exactly one running explorer container per project folder."""

    _logger = logging.getLogger(__name__)

    def __init__(
        self,
        *,
        settings: AppSettings,
        reader: VolumeStateReader | None = None,
        tool: ContainerTool | None = None,
        runner: CommandRunner | None = None,
        ui: UserInterface | None = None,
    ) -> None:
        self._settings = settings
        self._reader = reader or VolumeStateReader(state_file_name=settings.state_file_name)
        self._tool = tool or ContainerTool(
            config=ContainerToolConfig(
                image=settings.explorer_image,
                mount_point=settings.mount_point,
                stop_grace_seconds=settings.stop_grace_seconds,
                timeout_seconds=settings.command_timeout_seconds,
            ),
            runner=runner,
        )
        self._ui = ui
        self._containers: dict[str, ManagedContainer] = {}
        self._starting: dict[str, asyncio.Event] = {}
        self._tool_missing_reported = False

    def get_container(self, folder_path: str) -> ManagedContainer | None:
        return self._containers.get(folder_path)

    def is_starting(self, folder_path: str) -> bool:
        return folder_path in self._starting

    def managed_folders(self) -> list[str]:
        return list(self._containers)

    def container_tools_in_use(self) -> set[str]:
        return {record.container_tool for record in self._containers.values()}

    def has_volume_state(self, folder_path: str) -> bool:
        return self._reader.load(folder_path) is not None

    async def ensure_container(self, folder_path: str) -> str | None:
        """Returns the name of a live container for ``folder_path``, or None.

        None means unavailable: no state file, the start failed, or a
        concurrent start did not finish within the wait timeout.
        """

        in_flight = self._starting.get(folder_path)
        if in_flight is not None:
            return await self._wait_for_start(folder_path, in_flight)

        existing = self._containers.get(folder_path)
        if existing is not None:
            if await self.is_running(existing.container_name, container_tool=existing.container_tool):
                return existing.container_name
            if self._containers.get(folder_path) is existing:
                self._logger.info(
                    "explorer container not running, evicting: folder=%s container=%s",
                    folder_path,
                    existing.container_name,
                )
                del self._containers[folder_path]

            # Another caller may have started a replacement while we probed.
            in_flight = self._starting.get(folder_path)
            if in_flight is not None:
                return await self._wait_for_start(folder_path, in_flight)
            replacement = self._containers.get(folder_path)
            if replacement is not None:
                return replacement.container_name

        event = asyncio.Event()
        self._starting[folder_path] = event
        try:
            return await self._start_container(folder_path)
        finally:
            self._starting.pop(folder_path, None)
            event.set()

    async def is_running(self, container_name: str, *, container_tool: str | None = None) -> bool:
        """Liveness probe. Any failure counts as not running."""

        tool = container_tool or self._tool_for_container(container_name)
        try:
            return await self._tool.inspect_running(tool=tool, container_name=container_name)
        except (ContainerToolError, OSError, TimeoutError, ValueError) as exc:
            self._logger.debug("liveness probe failed: container=%s error=%s", container_name, exc)
            return False

    async def exec_in_container(self, folder_path: str, argv: list[str]) -> CommandResult:
        """Runs ``argv`` inside the folder's container.

        Raises:
            ContainerUnavailableError: If no container could be ensured.
            OSError: If the container tool cannot be executed.
            TimeoutError: If ``command_timeout_seconds`` is exceeded.
        """

        container_name = await self.ensure_container(folder_path)
        if container_name is None:
            raise ContainerUnavailableError(folder_path)
        record = self._containers.get(folder_path)
        tool = record.container_tool if record is not None else self._tool_for_container(container_name)
        return await self._tool.exec(tool=tool, container_name=container_name, argv=argv)

    async def cleanup(self, folder_path: str | None = None) -> None:
        """Stops and removes managed containers. Never raises.

        With ``folder_path`` only that folder's container is removed; without
        it every managed container is.
        """

        folders = list(self._containers) if folder_path is None else [folder_path]
        for folder in folders:
            record = self._containers.pop(folder, None)
            if record is None:
                continue
            await self._teardown(record)

    async def _wait_for_start(self, folder_path: str, event: asyncio.Event) -> str | None:
        timeout = self._settings.start_wait_timeout_seconds
        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            self._logger.warning(
                "timed out waiting for explorer container start: folder=%s timeout_seconds=%s",
                folder_path,
                timeout,
            )
        record = self._containers.get(folder_path)
        return record.container_name if record is not None else None

    async def _start_container(self, folder_path: str) -> str | None:
        volume_state = self._reader.load(folder_path)
        if volume_state is None:
            self._logger.warning(
                "no volume state found: path=%s", self._reader.state_path(folder_path)
            )
            return None

        tool = volume_state.container_tool
        container_name = build_container_name(self._settings.container_name_prefix, folder_path)
        try:
            await self._tool.run_detached(
                tool=tool,
                container_name=container_name,
                volume_name=volume_state.volume_name,
            )
        except FileNotFoundError:
            self._logger.error("container tool not found: tool=%s folder=%s", tool, folder_path)
            await self._report_tool_missing(tool)
            return None
        except Exception as exc:  # noqa: BLE001
            self._logger.error("failed to start explorer container: folder=%s error=%s", folder_path, exc)
            return None

        others = self.container_tools_in_use() - {tool}
        if others:
            self._logger.warning(
                "folders use different container tools: folder=%s tool=%s others=%s",
                folder_path,
                tool,
                ",".join(sorted(others)),
            )
        self._containers[folder_path] = ManagedContainer(
            container_name=container_name,
            volume_name=volume_state.volume_name,
            folder_path=folder_path,
            container_tool=tool,
        )
        self._logger.info(
            "explorer container started: folder=%s container=%s tool=%s",
            folder_path,
            container_name,
            tool,
        )
        return container_name

    async def _teardown(self, record: ManagedContainer) -> None:
        for step in (self._tool.stop, self._tool.remove):
            try:
                await step(tool=record.container_tool, container_name=record.container_name)
            except Exception as exc:  # noqa: BLE001
                self._logger.debug(
                    "cleanup step failed: container=%s step=%s error=%s",
                    record.container_name,
                    step.__name__,
                    exc,
                )
        self._logger.info(
            "cleaned up explorer container: folder=%s container=%s",
            record.folder_path,
            record.container_name,
        )

    def _tool_for_container(self, container_name: str) -> str:
        for record in self._containers.values():
            if record.container_name == container_name:
                return record.container_tool
        return self._settings.default_container_tool

    async def _report_tool_missing(self, tool: str) -> None:
        if self._tool_missing_reported or self._ui is None:
            return
        self._tool_missing_reported = True
        action = await self._ui.show_error(
            f"{tool} was not found. Install it to browse the Avocado volume.",
            INSTALL_ACTION,
        )
        if action == INSTALL_ACTION:
            self._ui.open_external(INSTALL_URLS.get(tool, INSTALL_URLS["docker"]))
