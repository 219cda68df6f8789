"""HTTP server exposing the volume explorer to editor front-ends.

Endpoints:
  - GET /health
  - GET /status
  - GET /projects
  - POST|DELETE /projects/{name}/container
  - GET /projects/{name}/contents
  - GET /projects/{name}/files?path=...
  - GET /projects/{name}/file?path=...
  - GET /projects/{name}/exists?path=...
  - GET /projects/{name}/targets
  - GET|PUT /projects/{name}/target
  - GET /projects/{name}/env
  - POST /projects/{name}/select-target
"""

from __future__ import annotations

import asyncio
import base64
import dataclasses
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from avocado_devtools.core.config import AppSettings
from avocado_devtools.domain.container_manager import ContainerManager
from avocado_devtools.domain.projects import AvocadoProject, ProjectRegistry
from avocado_devtools.domain.remote_files import ReadStatus, RemoteFileAccess
from avocado_devtools.domain.target_manager import TargetManager
from avocado_devtools.integrations.avocado_cli import (
    AvocadoCli,
    report_cli_not_found,
    sdk_shell_args,
)
from avocado_devtools.integrations.process.subprocess_utils import CommandRunner
from avocado_devtools.ui.headless import HeadlessUserInterface


class ProjectView(BaseModel):
    name: str
    folder_path: str
    config_path: str
    target: str | None = None
    container: str | None = None
    extensions: list[str] = Field(default_factory=list)
    runtimes: list[str] = Field(default_factory=list)


class FileInfoView(BaseModel):
    name: str
    path: str
    is_directory: bool
    size_bytes: int = Field(..., ge=0)
    permissions: str
    modified_epoch: str
    file_type: str


class ListingView(BaseModel):
    status: str
    entries: list[FileInfoView]


class VolumeEntryView(BaseModel):
    label: str
    path: str


class ContentsView(BaseModel):
    kind: str
    message: str | None = None
    hint: str | None = None
    target: str | None = None
    base_path: str | None = None
    entries: list[VolumeEntryView]


class FileView(BaseModel):
    """File content; ``encoding`` is ``utf-8`` or ``base64`` for binary data."""

    path: str
    content: str
    encoding: str


class EnvView(BaseModel):
    env: dict[str, str]
    sdk_shell: list[str]


class TargetRequest(BaseModel):
    target: str = Field(..., min_length=1)


class SelectTargetRequest(BaseModel):
    """Label to answer the target pick with; null cancels."""

    choice: str | None = None


class ExplorerRuntime:
    """Wires registry, container manager, file access and target state."""

    def __init__(
        self,
        *,
        settings: AppSettings,
        runner: CommandRunner | None = None,
        ui: HeadlessUserInterface | None = None,
    ) -> None:
        self.settings = settings
        self.ui = ui or HeadlessUserInterface()
        self.registry = ProjectRegistry(folders=settings.workspace_folder_list())
        self.containers = ContainerManager(settings=settings, runner=runner, ui=self.ui)
        self.files = RemoteFileAccess(container_manager=self.containers, settings=settings)
        self.targets = TargetManager(registry=self.registry, files=self.files, ui=self.ui)
        self.cli = AvocadoCli(runner=runner)
        self._select_lock = asyncio.Lock()

    async def start(self) -> None:
        projects = self.registry.refresh()
        logging.info("avocado explorer started: projects=%s", len(projects))
        if not await self.cli.is_installed():
            await report_cli_not_found(self.ui, self.settings.cli_install_url)

    async def stop(self) -> None:
        await self.containers.cleanup()
        self.targets.dispose()
        self.registry.dispose()

    def project_or_404(self, name: str) -> AvocadoProject:
        project = self.registry.find_by_name(name)
        if project is None:
            raise HTTPException(status_code=404, detail=f"unknown project: {name}")
        return project

    def describe(self, project: AvocadoProject) -> ProjectView:
        record = self.containers.get_container(project.folder_path)
        return ProjectView(
            name=project.name,
            folder_path=project.folder_path,
            config_path=project.config_path,
            target=self.targets.get_target(project),
            container=record.container_name if record is not None else None,
            extensions=project.section_names("extensions"),
            runtimes=project.section_names("runtimes"),
        )

    async def select_target(self, project: AvocadoProject, choice: str | None) -> str | None:
        # The headless UI answers picks from a shared queue.
        async with self._select_lock:
            self.ui.queue_choice(choice)
            try:
                return await self.targets.select_target(project)
            finally:
                self.ui.clear_choices()


def create_app(
    *,
    settings: AppSettings | None = None,
    runner: CommandRunner | None = None,
    ui: HeadlessUserInterface | None = None,
) -> FastAPI:
    """Creates FastAPI app."""

    logging.basicConfig(level=logging.INFO)
    runtime = ExplorerRuntime(settings=settings or AppSettings(), runner=runner, ui=ui)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        await runtime.start()
        try:
            yield
        finally:
            await runtime.stop()

    app = FastAPI(lifespan=lifespan)
    app.state.runtime = runtime

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/status")
    async def status() -> dict[str, str | None]:
        return {"text": runtime.targets.status_text()}

    @app.get("/projects")
    async def projects() -> list[ProjectView]:
        return [runtime.describe(p) for p in runtime.registry.get_projects()]

    @app.post("/projects/{name}/container")
    async def ensure_container(name: str) -> ProjectView:
        project = runtime.project_or_404(name)
        container_name = await runtime.containers.ensure_container(project.folder_path)
        if container_name is None:
            raise HTTPException(status_code=503, detail="explorer container unavailable")
        return runtime.describe(project)

    @app.delete("/projects/{name}/container")
    async def remove_container(name: str) -> ProjectView:
        project = runtime.project_or_404(name)
        await runtime.containers.cleanup(project.folder_path)
        return runtime.describe(project)

    @app.get("/projects/{name}/contents")
    async def contents(name: str) -> ContentsView:
        project = runtime.project_or_404(name)
        resolved = await runtime.targets.project_contents(project)
        return ContentsView(
            kind=resolved.kind.value,
            message=resolved.message,
            hint=resolved.hint,
            target=resolved.target,
            base_path=resolved.base_path,
            entries=[VolumeEntryView(label=e.label, path=e.path) for e in resolved.entries],
        )

    @app.get("/projects/{name}/files")
    async def list_files(name: str, path: str | None = None) -> ListingView:
        project = runtime.project_or_404(name)
        if path is None:
            # Without a path, list the resolved target's root.
            resolved = await runtime.targets.project_contents(project)
            path = resolved.base_path or runtime.files.mount_point
        listing = await runtime.files.list_directory_result(project.folder_path, path)
        return ListingView(
            status=listing.status.value,
            entries=[FileInfoView(**dataclasses.asdict(e)) for e in listing.entries],
        )

    @app.get("/projects/{name}/file")
    async def read_file(name: str, path: str) -> FileView:
        project = runtime.project_or_404(name)
        result = await runtime.files.read_file_result(project.folder_path, path)
        if result.status is ReadStatus.NOT_FOUND:
            raise HTTPException(status_code=404, detail=f"not found: {path}")
        if result.status is ReadStatus.EXECUTION_FAILED or result.data is None:
            raise HTTPException(status_code=503, detail=f"could not read: {path}")
        try:
            return FileView(path=path, content=result.data.decode("utf-8"), encoding="utf-8")
        except UnicodeDecodeError:
            encoded = base64.b64encode(result.data).decode("ascii")
            return FileView(path=path, content=encoded, encoding="base64")

    @app.get("/projects/{name}/exists")
    async def exists(name: str, path: str) -> dict[str, str | bool]:
        project = runtime.project_or_404(name)
        return {"path": path, "exists": await runtime.files.path_exists(project.folder_path, path)}

    @app.get("/projects/{name}/targets")
    async def targets(name: str) -> dict[str, list[str]]:
        project = runtime.project_or_404(name)
        return {"targets": await runtime.files.list_targets(project.folder_path)}

    @app.get("/projects/{name}/target")
    async def get_target(name: str) -> dict[str, str | None]:
        project = runtime.project_or_404(name)
        return {"target": runtime.targets.get_target(project)}

    @app.put("/projects/{name}/target")
    async def put_target(name: str, req: TargetRequest) -> dict[str, str | None]:
        project = runtime.project_or_404(name)
        runtime.targets.set_target(project, req.target)
        return {"target": runtime.targets.get_target(project)}

    @app.get("/projects/{name}/env")
    async def env(name: str) -> EnvView:
        project = runtime.project_or_404(name)
        target = runtime.targets.get_target(project)
        return EnvView(
            env=runtime.targets.get_terminal_env(project),
            sdk_shell=[runtime.cli.executable, *sdk_shell_args(project.config_path, target)],
        )

    @app.post("/projects/{name}/select-target")
    async def select_target(name: str, req: SelectTargetRequest) -> dict[str, str | None]:
        project = runtime.project_or_404(name)
        seen = len(runtime.ui.notifications)
        selected = await runtime.select_target(project, req.choice)
        if selected is None:
            warnings = [n.message for n in runtime.ui.notifications[seen:] if n.level == "warning"]
            detail = warnings[-1] if warnings else "target selection aborted"
            raise HTTPException(status_code=409, detail=detail)
        return {"target": selected}

    return app


async def _serve() -> None:
    settings = AppSettings()
    app = create_app(settings=settings)
    config = uvicorn.Config(
        app, host=settings.listen_host, port=settings.listen_port, log_level="info"
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Console entry point."""

    asyncio.run(_serve())


if __name__ == "__main__":
    main()
