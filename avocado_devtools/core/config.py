"""Application configuration.

Values are read from ``AVOCADO_``-prefixed environment variables and an
optional ``.env`` file.
"""

from __future__ import annotations

import os
from typing import Any

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Settings for the explorer backend."""

    model_config = SettingsConfigDict(
        env_prefix="AVOCADO_",
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Explorer container
    explorer_image: str = "alpine:latest"
    mount_point: str = "/opt/_avocado"
    container_name_prefix: str = "avocado-explorer"
    default_container_tool: str = "docker"
    state_file_name: str = ".avocado-state"

    # Lifecycle timing
    start_wait_timeout_seconds: float = 30.0
    stop_grace_seconds: int = 1
    command_timeout_seconds: float | None = None

    # Output caps
    list_max_entries: int = 500
    target_max_entries: int = 50

    # Project discovery (newline or os.pathsep separated)
    workspace_folders: str | None = None

    # Server
    listen_host: str = "127.0.0.1"
    listen_port: int = 8765

    cli_install_url: str = "https://github.com/avocado-linux/avocado-cli#installation"

    @field_validator(
        "explorer_image",
        "mount_point",
        "container_name_prefix",
        "default_container_tool",
        "workspace_folders",
        mode="before",
    )
    @classmethod
    def _normalize_env_string(cls, value: Any, info: ValidationInfo) -> Any:
        """Normalizes env var strings.

        Docker's `--env-file` does not strip quotes, so whitespace is trimmed
        and a single pair of surrounding quotes is removed. A blank value unsets
        an optional field and falls back to the default for the others.
        """

        if value is None or not isinstance(value, str):
            return value
        text = value.strip()
        if len(text) >= 2 and ((text[0] == text[-1] == '"') or (text[0] == text[-1] == "'")):
            text = text[1:-1].strip()
        if text:
            return text
        return cls.model_fields[info.field_name].default

    @field_validator("default_container_tool")
    @classmethod
    def _validate_container_tool(cls, value: str | None) -> str:
        tool = (value or "docker").lower()
        if tool not in {"docker", "podman"}:
            raise ValueError(f"unsupported container tool: {value}")
        return tool

    def workspace_folder_list(self) -> list[str]:
        """Returns configured workspace folders, skipping blanks."""

        if self.workspace_folders is None:
            return []
        raw = self.workspace_folders.replace(os.pathsep, "\n")
        return [line.strip() for line in raw.splitlines() if line.strip()]
