"""Per-project target selection.

A project is either unselected or has a selected target. Selecting again
overwrites the previous target; nothing clears a selection. Selections live
in memory for the lifetime of the process.
"""

from __future__ import annotations

import enum
import logging
import posixpath
from dataclasses import dataclass, field

from avocado_devtools.domain.events import EventEmitter
from avocado_devtools.domain.projects import AvocadoProject, ProjectRegistry
from avocado_devtools.domain.remote_files import RemoteFileAccess
from avocado_devtools.ui.base import QuickPickItem, UserInterface

# Top-level directories of a target, shown only when present in the volume.
STANDARD_SECTIONS: tuple[tuple[str, str], ...] = (
    ("SDK", "sdk"),
    ("Extensions", "extensions"),
    ("Remote Extensions", "includes"),
    ("Runtimes", "runtimes"),
    ("Output", "output"),
)


class ContentsKind(enum.Enum):
    NO_VOLUME = "no_volume"
    EMPTY = "empty"
    TARGET = "target"
    SELECT_TARGET = "select_target"


@dataclass(frozen=True)
class VolumeEntry:
    label: str
    path: str


@dataclass(frozen=True)
class ProjectContents:
    """What the explorer shows under a project.

    ``TARGET`` carries the resolved target, its root in ``base_path`` and its
    standard directories. ``SELECT_TARGET`` lists the available targets and
    asks the user to pick one.
    """

    kind: ContentsKind
    message: str | None = None
    hint: str | None = None
    target: str | None = None
    base_path: str | None = None
    entries: tuple[VolumeEntry, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class TargetChanged:
    """Emitted after a project's target is set."""

    project: AvocadoProject
    target: str


class TargetManager:
    """Tracks the selected target of each project and drives target selection."""

    _logger = logging.getLogger(__name__)

    def __init__(
        self,
        *,
        registry: ProjectRegistry,
        files: RemoteFileAccess,
        ui: UserInterface,
    ) -> None:
        self._registry = registry
        self._files = files
        self._ui = ui
        self._selected: dict[str, str] = {}
        self.on_target_changed: EventEmitter[TargetChanged] = EventEmitter()
        self._projects_subscription = registry.on_projects_changed.subscribe(
            lambda _projects: self.refresh_status()
        )
        self.refresh_status()

    def get_target(self, project: AvocadoProject) -> str | None:
        return self._selected.get(project.folder_path)

    def set_target(self, project: AvocadoProject, target: str) -> None:
        self._selected[project.folder_path] = target
        self._logger.info("target selected: project=%s target=%s", project.name, target)
        self.on_target_changed.fire(TargetChanged(project=project, target=target))
        self.refresh_status()
        self._ui.show_information(f"Avocado target set to: {target}")

    async def select_target(self, project: AvocadoProject | None = None) -> str | None:
        """Resolves a project (if needed), then lets the user choose a target.

        Returns the chosen target, or None when the selection was aborted.
        """

        if project is None:
            project = await self._pick_project()
            if project is None:
                return None

        targets = await self._files.list_targets(project.folder_path)
        if not targets:
            self._ui.show_warning('No targets found in volume. Run "avocado install" first.')
            return None

        current = self.get_target(project)
        items = [
            QuickPickItem(
                label=target,
                description="(current)" if target == current else "",
                picked=target == current,
            )
            for target in targets
        ]
        selection = await self._ui.pick(items, placeholder=f"Select target for {project.name}")
        if selection is None:
            self._ui.show_warning("Target selection cancelled")
            return None

        self.set_target(project, selection.label)
        return selection.label

    def target_path(self, target: str) -> str:
        return posixpath.join(self._files.mount_point, target)

    async def project_contents(self, project: AvocadoProject) -> ProjectContents:
        """Resolves what to show for ``project``.

        The selected target wins when the volume still has it; a volume with a
        single target is shown without asking. Otherwise the targets are listed
        with a prompt to select one.
        """

        if not self._files.has_volume_state(project.folder_path):
            return ProjectContents(
                kind=ContentsKind.NO_VOLUME,
                message="No state volume found",
                hint='Run "avocado install" to initialize',
            )

        targets = await self._files.list_targets(project.folder_path)
        if not targets:
            return ProjectContents(
                kind=ContentsKind.EMPTY,
                message="Volume is empty",
                hint='Run "avocado install" to set up the SDK',
            )

        selected = self.get_target(project)
        if selected in targets:
            return await self._target_contents(project, selected)
        if len(targets) == 1:
            return await self._target_contents(project, targets[0])

        return ProjectContents(
            kind=ContentsKind.SELECT_TARGET,
            message="Select a target",
            hint='Use "Avocado: Select Target" command',
            entries=tuple(
                VolumeEntry(label=target, path=self.target_path(target)) for target in targets
            ),
        )

    async def _target_contents(self, project: AvocadoProject, target: str) -> ProjectContents:
        base_path = self.target_path(target)
        entries = []
        for label, name in STANDARD_SECTIONS:
            path = posixpath.join(base_path, name)
            if await self._files.path_exists(project.folder_path, path):
                entries.append(VolumeEntry(label=label, path=path))
        return ProjectContents(
            kind=ContentsKind.TARGET,
            target=target,
            base_path=base_path,
            entries=tuple(entries),
        )

    def status_text(self) -> str | None:
        """Text for the status indicator, or None when there are no projects."""

        projects = self._registry.get_projects()
        if not projects:
            return None
        if len(projects) == 1:
            return f"Avocado: {self.get_target(projects[0]) or 'no target'}"
        configured = sum(1 for project in projects if self.get_target(project))
        return f"Avocado: {configured}/{len(projects)} targets"

    def refresh_status(self) -> None:
        self._ui.set_status(self.status_text())

    def get_terminal_env(self, project: AvocadoProject) -> dict[str, str]:
        """Environment for SDK shells of ``project``."""

        env: dict[str, str] = {}
        target = self.get_target(project)
        if target:
            env["AVOCADO_TARGET"] = target
        return env

    def dispose(self) -> None:
        self._projects_subscription.dispose()
        self.on_target_changed.dispose()

    async def _pick_project(self) -> AvocadoProject | None:
        projects = self._registry.get_projects()
        if not projects:
            self._ui.show_warning("No Avocado projects found in workspace")
            return None
        if len(projects) == 1:
            return projects[0]

        items = [
            QuickPickItem(
                label=project.name,
                description=self.get_target(project) or "no target selected",
                detail=project.config_path,
                value=project,
            )
            for project in projects
        ]
        selection = await self._ui.pick(items, placeholder="Select project to configure target")
        if selection is None:
            self._ui.show_warning("Project selection cancelled")
            return None
        return selection.value
