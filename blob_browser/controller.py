from __future__ import annotations
"""Controller layer coordinating user actions with the blob service."""

import mimetypes
from pathlib import Path
from typing import Callable

from .credentials import CredentialStore, DEFAULT_CONTAINER
from .errors import ConfigurationError
from .models import ContainerState, DeleteAck, ObjectContent, ObjectRecord
from .profiles import ConnectionProfile, ProfileStorage
from .services import DEFAULT_CONTENT_TYPE, StorageGateway
from .settings import AppSettings
from .tree import LazyTreeController, folder_prefix
from .ui_utils import compose_object_name

GatewayFactory = Callable[..., StorageGateway]


class NotConnectedError(RuntimeError):
    """Raised when a storage operation is attempted before connecting."""


class BlobBrowserController:
    """Coordinates user actions with the :class:`StorageGateway`."""

    def __init__(
        self,
        gateway_factory: GatewayFactory | None = None,
        storage: ProfileStorage | None = None,
        settings: AppSettings | None = None,
    ):
        self._gateway_factory = gateway_factory or StorageGateway
        self._storage = storage or ProfileStorage()
        self._settings = settings or AppSettings()
        self._gateway: StorageGateway | None = None
        self._tree: LazyTreeController | None = None
        self._profiles: list[ConnectionProfile] = self._storage.load()
        self._selected_profile: str | None = None

    @property
    def is_connected(self) -> bool:
        return self._gateway is not None

    @property
    def selected_profile(self) -> str | None:
        return self._selected_profile

    @property
    def container(self) -> str:
        return self._require_connection().container

    @property
    def tree(self) -> LazyTreeController:
        self._require_connection()
        return self._tree

    def list_profiles(self) -> list[ConnectionProfile]:
        return list(self._profiles)

    def save_profile(self, profile: ConnectionProfile, *, original_name: str | None = None) -> None:
        if original_name and original_name != profile.name:
            self._profiles = [p for p in self._profiles if p.name != original_name]
        self._upsert_profile(profile)
        self._persist_profiles()

    def delete_profile(self, name: str) -> None:
        before = len(self._profiles)
        self._profiles = [p for p in self._profiles if p.name != name]
        if len(self._profiles) == before:
            raise ValueError(f"Profile '{name}' does not exist")
        if self._selected_profile == name:
            self._selected_profile = None
        self._persist_profiles()

    def get_profile(self, name: str) -> ConnectionProfile:
        for profile in self._profiles:
            if profile.name == name:
                return profile
        raise ConfigurationError(f"Profile '{name}' does not exist")

    def connect_with_profile(self, name: str, *, container: str | None = None) -> ContainerState:
        profile = self.get_profile(name)
        state = self.connect(
            connection_string=profile.connection_string(),
            container=container or profile.container,
        )
        self._selected_profile = name
        return state

    def connect(self, *, connection_string: str, container: str = DEFAULT_CONTAINER) -> ContainerState:
        """Build a gateway for the account and make sure the container exists."""

        store = CredentialStore.from_connection_string(connection_string)
        gateway = self._gateway_factory(
            store,
            container,
            api_version=self._settings.api_version,
            timeout=self._settings.request_timeout,
            public_access=self._settings.container_public_access or None,
        )
        state = gateway.initialize()
        self._gateway = gateway
        self._tree = LazyTreeController(self._fetch_folder)
        return state

    def list_objects(self, *, prefix: str = "") -> list[ObjectRecord]:
        gateway = self._require_connection()
        return gateway.list(prefix or None)

    def retrieve_object(self, *, name: str) -> ObjectContent:
        gateway = self._require_connection()
        return gateway.get(name)

    def download_object(self, *, name: str, destination: str | Path) -> ObjectRecord:
        gateway = self._require_connection()
        result = gateway.get(name)
        Path(destination).write_bytes(result.content)
        return result.record

    def upload_object(
        self,
        *,
        name: str,
        content: bytes,
        content_type: str | None = None,
    ) -> ObjectRecord:
        gateway = self._require_connection()
        record = gateway.put(name, content, content_type or guess_content_type(name))
        self._tree.invalidate_ancestors(name)
        return record

    def upload_file(
        self,
        *,
        source_path: str | Path,
        prefix: str = "",
        name: str | None = None,
        content_type: str | None = None,
    ) -> ObjectRecord:
        source = Path(source_path)
        object_name = compose_object_name(prefix, name or source.name)
        return self.upload_object(
            name=object_name,
            content=source.read_bytes(),
            content_type=content_type or guess_content_type(source.name),
        )

    def delete_object(self, *, name: str) -> DeleteAck:
        gateway = self._require_connection()
        ack = gateway.delete(name)
        self._tree.invalidate_ancestors(name)
        return ack

    def _fetch_folder(self, path: str) -> list[ObjectRecord]:
        return self.list_objects(prefix=folder_prefix(path))

    def _require_connection(self) -> StorageGateway:
        if self._gateway is None:
            raise NotConnectedError("Not connected to blob storage")
        return self._gateway

    def _upsert_profile(self, profile: ConnectionProfile) -> None:
        for idx, existing in enumerate(self._profiles):
            if existing.name == profile.name:
                self._profiles[idx] = profile
                break
        else:
            self._profiles.append(profile)

    def _persist_profiles(self) -> None:
        self._storage.save(self._profiles)


def guess_content_type(name: str) -> str:
    content_type, _ = mimetypes.guess_type(name)
    return content_type or DEFAULT_CONTENT_TYPE
