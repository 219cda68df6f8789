"""Read-only access to a project's volume through its explorer container.

Every operation goes through ``ContainerManager`` and never assumes a
container already exists. Values such as paths are handed to the in-container
shell as positional parameters (``"$1"``), so they are not re-parsed.

Listing and reading come in two flavours: ``*_result`` methods return an
explicit status, while the plain methods collapse every failure to an empty
or absent value for callers that only render what they get.
"""

from __future__ import annotations

import enum
import logging
import posixpath
from dataclasses import dataclass, field

from avocado_devtools.core.config import AppSettings
from avocado_devtools.domain.container_manager import ContainerManager, ContainerUnavailableError
from avocado_devtools.integrations.process.subprocess_utils import CommandResult

STAT_FORMAT = "%F|%s|%a|%Y|%n"

# Exit code used by the listing/read scripts when the target path is missing.
_MISSING_EXIT_CODE = 3

_LIST_SCRIPT = (
    '[ -e "$1" ] || exit 3; '
    f"find \"$1\" -maxdepth 1 -mindepth 1 -exec stat -c '{STAT_FORMAT}' {{}} \\; 2>/dev/null "
    '| head -n "$2"'
)
_READ_SCRIPT = '[ -e "$1" ] || exit 3; cat "$1"'
_TARGETS_SCRIPT = 'ls -1 "$1" 2>/dev/null | head -n "$2"'


class RemoteCommandError(RuntimeError):
    """Raised when a command inside the container exits non-zero."""

    def __init__(self, *, exit_code: int, stderr: str) -> None:
        message = f"remote command failed | exit_code={exit_code}"
        if stderr.strip():
            message += f" | stderr={stderr.strip()[-2000:]}"
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class ListingStatus(enum.Enum):
    OK = "ok"
    EMPTY = "empty"
    NOT_FOUND = "not_found"
    EXECUTION_FAILED = "execution_failed"


class ReadStatus(enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    EXECUTION_FAILED = "execution_failed"


@dataclass(frozen=True)
class FileInfo:
    """One directory entry as reported by ``stat`` inside the container."""

    name: str
    path: str
    is_directory: bool
    size_bytes: int
    permissions: str
    modified_epoch: str
    file_type: str = "regular file"

    @property
    def is_symlink(self) -> bool:
        return self.file_type == "symbolic link"


@dataclass(frozen=True)
class DirectoryListing:
    status: ListingStatus
    entries: tuple[FileInfo, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class FileRead:
    """Outcome of a read. ``data`` holds the file's bytes exactly as stored."""

    status: ReadStatus
    data: bytes | None = None

    @property
    def content(self) -> str | None:
        """The data decoded as UTF-8, with undecodable bytes replaced."""

        if self.data is None:
            return None
        return self.data.decode("utf-8", errors="replace")


def parse_stat_line(line: str) -> FileInfo | None:
    """Parses one ``%F|%s|%a|%Y|%n`` line.

    The path is everything after the fourth delimiter, so names containing
    ``|`` survive. Lines with fewer than five fields yield None.
    """

    parts = line.split("|", 4)
    if len(parts) < 5:
        return None
    file_type, size, permissions, modified, full_path = parts
    try:
        size_bytes = int(size)
    except ValueError:
        size_bytes = 0
    return FileInfo(
        name=posixpath.basename(full_path),
        path=full_path,
        is_directory=file_type == "directory",
        size_bytes=size_bytes,
        permissions=permissions,
        modified_epoch=modified,
        file_type=file_type,
    )


def _sort_key(entry: FileInfo) -> tuple[bool, str, str]:
    return (not entry.is_directory, entry.name.casefold(), entry.name)


def parse_listing(output: str, *, max_entries: int) -> list[FileInfo]:
    """Parses listing output: directories first, then by name, capped."""

    entries = [
        info
        for info in (parse_stat_line(line) for line in output.splitlines() if line)
        if info is not None
    ]
    entries.sort(key=_sort_key)
    return entries[:max_entries]


class RemoteFileAccess:
    """Lists and reads files inside a project's explorer container."""

    _logger = logging.getLogger(__name__)

    def __init__(self, *, container_manager: ContainerManager, settings: AppSettings) -> None:
        self._containers = container_manager
        self._settings = settings

    @property
    def mount_point(self) -> str:
        return self._settings.mount_point

    def has_volume_state(self, folder_path: str) -> bool:
        return self._containers.has_volume_state(folder_path)

    async def execute(self, folder_path: str, shell_command: str, *args: str) -> str:
        """Runs ``shell_command`` with ``/bin/sh -c`` inside the container.

        ``args`` become ``$1``, ``$2``, ... of the script.

        Raises:
            ContainerUnavailableError: If no container is available.
            RemoteCommandError: If the command exits non-zero.
        """

        return (await self._run(folder_path, shell_command, *args)).stdout

    async def _run(self, folder_path: str, shell_command: str, *args: str) -> CommandResult:
        result = await self._containers.exec_in_container(
            folder_path, ["/bin/sh", "-c", shell_command, "sh", *args]
        )
        if result.exit_code != 0:
            raise RemoteCommandError(exit_code=result.exit_code, stderr=result.stderr)
        return result

    async def list_directory_result(self, folder_path: str, dir_path: str) -> DirectoryListing:
        """Lists immediate children of ``dir_path`` with an explicit status."""

        max_entries = self._settings.list_max_entries
        try:
            output = await self.execute(folder_path, _LIST_SCRIPT, dir_path, str(max_entries))
        except RemoteCommandError as exc:
            if exc.exit_code == _MISSING_EXIT_CODE:
                return DirectoryListing(status=ListingStatus.NOT_FOUND)
            self._logger.error("failed to list directory: dir=%s error=%s", dir_path, exc)
            return DirectoryListing(status=ListingStatus.EXECUTION_FAILED)
        except (ContainerUnavailableError, OSError, TimeoutError) as exc:
            self._logger.error("failed to list directory: dir=%s error=%s", dir_path, exc)
            return DirectoryListing(status=ListingStatus.EXECUTION_FAILED)

        entries = parse_listing(output, max_entries=max_entries)
        if not entries:
            return DirectoryListing(status=ListingStatus.EMPTY)
        return DirectoryListing(status=ListingStatus.OK, entries=tuple(entries))

    async def list_directory(self, folder_path: str, dir_path: str) -> list[FileInfo]:
        """Lists immediate children of ``dir_path``; empty on any failure."""

        return list((await self.list_directory_result(folder_path, dir_path)).entries)

    async def read_file_result(self, folder_path: str, file_path: str) -> FileRead:
        try:
            result = await self._run(folder_path, _READ_SCRIPT, file_path)
        except RemoteCommandError as exc:
            if exc.exit_code == _MISSING_EXIT_CODE:
                return FileRead(status=ReadStatus.NOT_FOUND)
            self._logger.error("failed to read file: file=%s error=%s", file_path, exc)
            return FileRead(status=ReadStatus.EXECUTION_FAILED)
        except (ContainerUnavailableError, OSError, TimeoutError) as exc:
            self._logger.error("failed to read file: file=%s error=%s", file_path, exc)
            return FileRead(status=ReadStatus.EXECUTION_FAILED)
        return FileRead(status=ReadStatus.OK, data=result.stdout_bytes)

    async def read_file(self, folder_path: str, file_path: str) -> str | None:
        """Returns file contents as text, or None on any failure."""

        return (await self.read_file_result(folder_path, file_path)).content

    async def read_file_bytes(self, folder_path: str, file_path: str) -> bytes | None:
        """Returns the raw file contents, or None on any failure."""

        return (await self.read_file_result(folder_path, file_path)).data

    async def path_exists(self, folder_path: str, path: str) -> bool:
        try:
            await self.execute(folder_path, 'test -e "$1"', path)
        except (RemoteCommandError, ContainerUnavailableError, OSError, TimeoutError):
            return False
        return True

    async def list_targets(self, folder_path: str) -> list[str]:
        """Returns the non-hidden top-level entries of the volume root."""

        try:
            output = await self.execute(
                folder_path,
                _TARGETS_SCRIPT,
                self.mount_point,
                str(self._settings.target_max_entries),
            )
        except (RemoteCommandError, ContainerUnavailableError, OSError, TimeoutError) as exc:
            self._logger.warning("failed to list targets: folder=%s error=%s", folder_path, exc)
            return []
        names = [line.strip() for line in output.splitlines()]
        return [name for name in names if name and not name.startswith(".")]
