"""Discovery of Avocado projects in workspace folders.

A folder is a project when it holds ``avocado.yaml`` (or ``avocado.yml``).
The parsed YAML mapping is kept as-is; its schema is not validated here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from avocado_devtools.domain.events import EventEmitter

CONFIG_FILE_NAMES = ("avocado.yaml", "avocado.yml")


@dataclass(frozen=True)
class AvocadoProject:
    """A workspace folder that contains an avocado config file."""

    name: str
    folder_path: str
    config_path: str
    config: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def section_names(self, section: str) -> list[str]:
        """Returns the keys of a mapping section such as ``extensions``."""

        value = self.config.get(section)
        if not isinstance(value, dict):
            return []
        return list(value)


class ProjectRegistry:
    """Keeps the set of active projects, keyed by folder path."""

    _logger = logging.getLogger(__name__)

    def __init__(self, *, folders: list[str] | None = None) -> None:
        self._folders: list[str] = list(folders or [])
        self._projects: dict[str, AvocadoProject] = {}
        self.on_projects_changed: EventEmitter[list[AvocadoProject]] = EventEmitter()

    def refresh(self) -> list[AvocadoProject]:
        """Rescans every folder and notifies subscribers."""

        self._projects.clear()
        for folder in self._folders:
            self._load_folder(folder)
        self._notify()
        return self.get_projects()

    def add_folder(self, folder_path: str) -> AvocadoProject | None:
        if folder_path not in self._folders:
            self._folders.append(folder_path)
        project = self._load_folder(folder_path)
        self._notify()
        return project

    def remove_folder(self, folder_path: str) -> None:
        if folder_path in self._folders:
            self._folders.remove(folder_path)
        self._projects.pop(folder_path, None)
        self._notify()

    def get_projects(self) -> list[AvocadoProject]:
        return list(self._projects.values())

    def get_project(self, folder_path: str) -> AvocadoProject | None:
        return self._projects.get(folder_path)

    def find_by_name(self, name: str) -> AvocadoProject | None:
        for project in self._projects.values():
            if project.name == name:
                return project
        return None

    def project_count(self) -> int:
        return len(self._projects)

    def has_projects(self) -> bool:
        return bool(self._projects)

    def dispose(self) -> None:
        self.on_projects_changed.dispose()

    def _load_folder(self, folder_path: str) -> AvocadoProject | None:
        self._projects.pop(folder_path, None)
        for file_name in CONFIG_FILE_NAMES:
            config_path = Path(folder_path) / file_name
            if config_path.is_file():
                return self._load_project(folder_path, config_path)
        return None

    def _load_project(self, folder_path: str, config_path: Path) -> AvocadoProject | None:
        try:
            with config_path.open("r", encoding="utf-8") as handle:
                config = yaml.safe_load(handle)
        except (OSError, yaml.YAMLError) as exc:
            self._logger.error("failed to parse project config: path=%s error=%s", config_path, exc)
            return None

        project = AvocadoProject(
            name=Path(folder_path).name,
            folder_path=folder_path,
            config_path=str(config_path),
            config=config if isinstance(config, dict) else {},
        )
        self._projects[folder_path] = project
        self._logger.info("loaded avocado project: name=%s config=%s", project.name, config_path)
        return project

    def _notify(self) -> None:
        self.on_projects_changed.fire(self.get_projects())
