"""Read access to the per-folder volume state descriptor.

The ``.avocado-state`` file is written by the avocado CLI when it creates the
build volume. This module only reads it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class VolumeState(BaseModel):
    """Volume descriptor for a single project folder."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    volume_name: str = Field(..., min_length=1)
    source_path: str = Field(default="")
    container_tool: Literal["docker", "podman"] = Field(default="docker")

    @field_validator("container_tool", mode="before")
    @classmethod
    def _normalize_tool(cls, value: object) -> object:
        if value is None or value == "":
            return "docker"
        if isinstance(value, str):
            return value.strip().lower()
        return value


class VolumeStateReader:
    """Loads ``VolumeState`` from a project folder."""

    _logger = logging.getLogger(__name__)

    def __init__(self, *, state_file_name: str = ".avocado-state") -> None:
        self._state_file_name = state_file_name

    def state_path(self, folder_path: str | Path) -> Path:
        return Path(folder_path) / self._state_file_name

    def load(self, folder_path: str | Path) -> VolumeState | None:
        """Returns the folder's volume state, or None if missing or unreadable."""

        path = self.state_path(folder_path)
        if not path.is_file():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return VolumeState.model_validate(payload)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            self._logger.error("failed to load volume state: path=%s error=%s", path, exc)
            return None
