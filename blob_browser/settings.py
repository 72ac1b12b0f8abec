from __future__ import annotations
"""Application settings persistence helpers."""

from dataclasses import dataclass
import json
from pathlib import Path

from .services import API_VERSION, DEFAULT_TIMEOUT

PUBLIC_ACCESS_LEVELS = ("", "blob", "container")


@dataclass
class AppSettings:
    """Simple container for persistent app settings."""

    request_timeout: int = DEFAULT_TIMEOUT
    api_version: str = API_VERSION
    container_public_access: str = "blob"
    last_connection: str = ""


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".pyblob_settings.json"
        self._path = Path(storage_path)

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()

        timeout = data.get("request_timeout", AppSettings.request_timeout)
        try:
            timeout_value = int(timeout)
        except (TypeError, ValueError):
            timeout_value = AppSettings.request_timeout
        if timeout_value <= 0:
            timeout_value = AppSettings.request_timeout

        api_version = data.get("api_version")
        if not isinstance(api_version, str) or not api_version.strip():
            api_version = AppSettings.api_version

        public_access = data.get("container_public_access", AppSettings.container_public_access)
        if public_access not in PUBLIC_ACCESS_LEVELS:
            public_access = AppSettings.container_public_access

        last_connection = data.get("last_connection")
        if not isinstance(last_connection, str):
            last_connection = ""

        return AppSettings(
            request_timeout=timeout_value,
            api_version=api_version.strip(),
            container_public_access=public_access,
            last_connection=last_connection,
        )

    def save(self, settings: AppSettings) -> None:
        public_access = settings.container_public_access
        if public_access not in PUBLIC_ACCESS_LEVELS:
            public_access = AppSettings.container_public_access
        payload = {
            "request_timeout": max(int(settings.request_timeout), 1),
            "api_version": settings.api_version or API_VERSION,
            "container_public_access": public_access,
            "last_connection": settings.last_connection or "",
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
