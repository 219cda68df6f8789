from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from pathlib import Path

import pytest

from avocado_devtools.core.config import AppSettings
from avocado_devtools.domain.container_manager import ContainerManager, ContainerUnavailableError
from avocado_devtools.domain.remote_files import (
    FileInfo,
    ListingStatus,
    ReadStatus,
    RemoteFileAccess,
    parse_listing,
    parse_stat_line,
)
from avocado_devtools.integrations.process.subprocess_utils import CommandResult

ExecHandler = Callable[[list[str]], CommandResult]


class _FakeContainerRunner:
    """Starts containers successfully and answers ``exec`` through a handler."""

    def __init__(self, handler: ExecHandler | None = None) -> None:
        self.handler = handler or (lambda argv: CommandResult(exit_code=0, stdout="", stderr=""))
        self.exec_argvs: list[list[str]] = []

    async def run(self, *, args: list[str], cwd=None, env=None, timeout_seconds=None):
        if args[1] == "exec":
            argv = list(args[3:])
            self.exec_argvs.append(argv)
            return self.handler(argv)
        if args[1] == "inspect":
            return CommandResult(exit_code=0, stdout="true\n", stderr="")
        return CommandResult(exit_code=0, stdout="", stderr="")


def _ok(stdout: str) -> ExecHandler:
    return lambda argv: CommandResult(
        exit_code=0, stdout=stdout, stderr="", stdout_bytes=stdout.encode("utf-8")
    )


def _fail(exit_code: int) -> ExecHandler:
    return lambda argv: CommandResult(exit_code=exit_code, stdout="", stderr="sh: error")


def _access(tmp_path: Path, handler: ExecHandler | None = None, *, with_state: bool = True, **overrides):
    folder = tmp_path / "proj"
    folder.mkdir()
    if with_state:
        (folder / ".avocado-state").write_text(
            json.dumps({"volume_name": "vol", "source_path": str(folder), "container_tool": "docker"}),
            encoding="utf-8",
        )
    settings = AppSettings(_env_file=None, **overrides)
    runner = _FakeContainerRunner(handler)
    manager = ContainerManager(settings=settings, runner=runner)
    return RemoteFileAccess(container_manager=manager, settings=settings), runner, str(folder)


def test_parse_stat_line_for_directory() -> None:
    info = parse_stat_line("directory|4096|755|1700000000|/opt/_avocado/target/sdk")
    assert info == FileInfo(
        name="sdk",
        path="/opt/_avocado/target/sdk",
        is_directory=True,
        size_bytes=4096,
        permissions="755",
        modified_epoch="1700000000",
        file_type="directory",
    )


def test_parse_stat_line_keeps_delimiters_in_path() -> None:
    info = parse_stat_line("regular file|12|644|1|/opt/_avocado/a|b.txt")
    assert info is not None
    assert info.path == "/opt/_avocado/a|b.txt"
    assert info.name == "a|b.txt"
    assert info.is_directory is False


def test_parse_stat_line_rejects_short_lines_and_bad_sizes() -> None:
    assert parse_stat_line("directory|4096|755") is None
    info = parse_stat_line("symbolic link|?|777|1|/opt/_avocado/link")
    assert info is not None
    assert info.size_bytes == 0
    assert info.is_symlink
    assert not info.is_directory


def test_parse_listing_sorts_directories_first_and_caps() -> None:
    output = "\n".join(
        [
            "regular file|1|644|1|/v/b.txt",
            "directory|4096|755|1|/v/Zeta",
            "garbage",
            "directory|4096|755|1|/v/alpha",
            "regular file|1|644|1|/v/A.txt",
        ]
    )
    names = [entry.name for entry in parse_listing(output, max_entries=10)]
    assert names == ["alpha", "Zeta", "A.txt", "b.txt"]

    capped = parse_listing(output, max_entries=2)
    assert [entry.name for entry in capped] == ["alpha", "Zeta"]


def test_list_directory_passes_path_as_argument(tmp_path: Path) -> None:
    files, runner, folder = _access(
        tmp_path, _ok("directory|4096|755|1700000000|/opt/_avocado/my dir/sdk\n")
    )

    listing = asyncio.run(files.list_directory_result(folder, "/opt/_avocado/my dir"))

    assert listing.status is ListingStatus.OK
    assert [entry.name for entry in listing.entries] == ["sdk"]
    argv = runner.exec_argvs[0]
    assert argv[:2] == ["/bin/sh", "-c"]
    assert "stat -c '%F|%s|%a|%Y|%n'" in argv[2]
    assert argv[3:] == ["sh", "/opt/_avocado/my dir", "500"]


def test_list_directory_distinguishes_outcomes(tmp_path: Path) -> None:
    files, runner, folder = _access(tmp_path, _ok(""))

    assert asyncio.run(files.list_directory_result(folder, "/x")).status is ListingStatus.EMPTY

    runner.handler = _fail(3)
    assert asyncio.run(files.list_directory_result(folder, "/x")).status is ListingStatus.NOT_FOUND
    assert asyncio.run(files.list_directory(folder, "/x")) == []

    runner.handler = _fail(1)
    assert (
        asyncio.run(files.list_directory_result(folder, "/x")).status
        is ListingStatus.EXECUTION_FAILED
    )
    assert asyncio.run(files.list_directory(folder, "/x")) == []


def test_list_directory_is_empty_without_container(tmp_path: Path) -> None:
    files, runner, folder = _access(tmp_path, with_state=False)

    listing = asyncio.run(files.list_directory_result(folder, "/opt/_avocado"))

    assert listing.status is ListingStatus.EXECUTION_FAILED
    assert listing.entries == ()
    assert runner.exec_argvs == []


def test_list_directory_respects_configured_cap(tmp_path: Path) -> None:
    lines = "".join(f"regular file|1|644|1|/v/f{i:02d}\n" for i in range(10))
    files, runner, folder = _access(tmp_path, _ok(lines), list_max_entries=3)

    entries = asyncio.run(files.list_directory(folder, "/v"))

    assert [entry.name for entry in entries] == ["f00", "f01", "f02"]
    assert runner.exec_argvs[0][-1] == "3"


def test_read_file_returns_content_or_none(tmp_path: Path) -> None:
    files, runner, folder = _access(tmp_path, _ok("hello\n"))

    assert asyncio.run(files.read_file(folder, "/opt/_avocado/a.txt")) == "hello\n"
    assert runner.exec_argvs[0][-1] == "/opt/_avocado/a.txt"

    runner.handler = _fail(3)
    result = asyncio.run(files.read_file_result(folder, "/nope"))
    assert result.status is ReadStatus.NOT_FOUND
    assert result.content is None

    runner.handler = _fail(1)
    assert asyncio.run(files.read_file_result(folder, "/x")).status is ReadStatus.EXECUTION_FAILED
    assert asyncio.run(files.read_file(folder, "/x")) is None


def test_read_file_bytes_keeps_binary_content(tmp_path: Path) -> None:
    payload = b"\x7fELF\x02\x01\xff\xfe\x00binary"
    files, _runner, folder = _access(
        tmp_path,
        lambda argv: CommandResult(
            exit_code=0,
            stdout=payload.decode("utf-8", errors="replace"),
            stderr="",
            stdout_bytes=payload,
        ),
    )

    assert asyncio.run(files.read_file_bytes(folder, "/opt/_avocado/sdk/bin/tool")) == payload
    result = asyncio.run(files.read_file_result(folder, "/opt/_avocado/sdk/bin/tool"))
    assert result.data == payload
    assert result.content is not None and "�" in result.content


def test_has_volume_state(tmp_path: Path) -> None:
    files, _runner, folder = _access(tmp_path)
    assert files.has_volume_state(folder) is True

    bare = tmp_path / "bare"
    bare.mkdir()
    assert files.has_volume_state(str(bare)) is False


def test_path_exists(tmp_path: Path) -> None:
    files, runner, folder = _access(tmp_path, _ok(""))
    assert asyncio.run(files.path_exists(folder, "/opt/_avocado")) is True
    assert runner.exec_argvs[0][2] == 'test -e "$1"'

    runner.handler = _fail(1)
    assert asyncio.run(files.path_exists(folder, "/missing")) is False


def test_list_targets_filters_hidden_entries(tmp_path: Path) -> None:
    files, runner, folder = _access(tmp_path, _ok(".cache\nqemux86-64\n\nraspberrypi4\n"))

    targets = asyncio.run(files.list_targets(folder))

    assert targets == ["qemux86-64", "raspberrypi4"]
    assert runner.exec_argvs[0][-2:] == ["/opt/_avocado", "50"]


def test_list_targets_empty_on_failure(tmp_path: Path) -> None:
    files, _runner, folder = _access(tmp_path, _fail(2))
    assert asyncio.run(files.list_targets(folder)) == []


def test_execute_raises_when_no_container(tmp_path: Path) -> None:
    files, _runner, folder = _access(tmp_path, with_state=False)

    with pytest.raises(ContainerUnavailableError):
        asyncio.run(files.execute(folder, "true"))
