from __future__ import annotations
"""Connection profile models and persistence."""
from dataclasses import dataclass, field
import json
from pathlib import Path

import keyring
from keyring.errors import KeyringError

from .credentials import (
    DEFAULT_CONTAINER,
    DEFAULT_ENDPOINT_SUFFIX,
    DEFAULT_PROTOCOL,
    build_connection_string,
)


@dataclass
class ConnectionProfile:
    """Represents a saved storage account connection."""

    name: str
    account_name: str
    account_key: str = field(repr=False)
    container: str = DEFAULT_CONTAINER
    endpoint_suffix: str = DEFAULT_ENDPOINT_SUFFIX
    protocol: str = DEFAULT_PROTOCOL
    blob_endpoint: str = ""

    def connection_string(self) -> str:
        return build_connection_string(
            account_name=self.account_name,
            account_key=self.account_key,
            endpoint_suffix=self.endpoint_suffix,
            protocol=self.protocol,
            blob_endpoint=self.blob_endpoint or None,
        )

    @property
    def endpoint(self) -> str:
        return self.blob_endpoint or f"{self.protocol}://{self.account_name}.blob.{self.endpoint_suffix}"


class KeychainStore:
    """Encapsulates OS keychain access for account keys."""

    def __init__(self, service_name: str = "pyblob"):
        self._service_name = service_name

    def get_secret(self, profile_name: str) -> str:
        if not profile_name:
            return ""
        try:
            return keyring.get_password(self._service_name, profile_name) or ""
        except KeyringError:
            return ""

    def set_secret(self, profile_name: str, secret_key: str) -> None:
        if not profile_name:
            return
        if not secret_key:
            self.delete_secret(profile_name)
            return
        try:
            keyring.set_password(self._service_name, profile_name, secret_key)
        except KeyringError:
            return

    def delete_secret(self, profile_name: str) -> None:
        if not profile_name:
            return
        try:
            keyring.delete_password(self._service_name, profile_name)
        except KeyringError:
            return


class ProfileStorage:
    """JSON-backed store for connection profiles; keys live in the keychain."""

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".pyblob_connections.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    def load(self) -> list[ConnectionProfile]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []

        profiles: list[ConnectionProfile] = []
        sanitized: list[dict[str, str]] = []
        saw_plaintext = False
        for entry in data:
            try:
                name = entry["name"]
                account_name = entry["account_name"]
                account_key = entry.get("account_key", "")
                if account_key:
                    saw_plaintext = True
                    self._keychain.set_secret(name, account_key)
                else:
                    account_key = self._keychain.get_secret(name)
                profile = ConnectionProfile(
                    name=name,
                    account_name=account_name,
                    account_key=account_key,
                    container=entry.get("container") or DEFAULT_CONTAINER,
                    endpoint_suffix=entry.get("endpoint_suffix") or DEFAULT_ENDPOINT_SUFFIX,
                    protocol=entry.get("protocol") or DEFAULT_PROTOCOL,
                    blob_endpoint=entry.get("blob_endpoint") or "",
                )
            except (KeyError, TypeError, AttributeError):
                continue
            profiles.append(profile)
            sanitized.append(self._serialize(profile))
        if saw_plaintext:
            self._write_data(sanitized)
        return profiles

    def save(self, profiles: list[ConnectionProfile]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = []
        for profile in profiles:
            self._keychain.set_secret(profile.name, profile.account_key)
            data.append(self._serialize(profile))
        existing_names = self._load_profile_names()
        current_names = {profile.name for profile in profiles}
        for name in existing_names - current_names:
            self._keychain.delete_secret(name)
        self._write_data(data)

    @staticmethod
    def _serialize(profile: ConnectionProfile) -> dict[str, str]:
        return {
            "name": profile.name,
            "account_name": profile.account_name,
            "container": profile.container,
            "endpoint_suffix": profile.endpoint_suffix,
            "protocol": profile.protocol,
            "blob_endpoint": profile.blob_endpoint,
        }

    def _load_profile_names(self) -> set[str]:
        if not self._path.exists():
            return set()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return set()
        names = set()
        for entry in data:
            name = entry.get("name") if isinstance(entry, dict) else None
            if isinstance(name, str) and name:
                names.add(name)
        return names

    def _write_data(self, data: list[dict[str, str]]) -> None:
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
