from __future__ import annotations
"""View-agnostic presenter that wraps controller operations."""
from dataclasses import replace
import logging
import threading
from typing import Callable

from .controller import BlobBrowserController
from .errors import (
    AuthenticationError,
    BlobBrowserError,
    NotFoundError,
    StorageError,
    TransientNetworkError,
)
from .models import ContainerState, DeleteAck, ObjectContent, ObjectRecord
from .profiles import ConnectionProfile
from .settings import AppSettings, SettingsStorage
from .tree import FolderContents, normalize_folder


DispatchFn = Callable[[Callable[[], None]], None]
SuccessFn = Callable[[object], None]
ErrorFn = Callable[[str], None]
DoneFn = Callable[[], None]

LOGGER = logging.getLogger(__name__)


def format_error(exc: Exception) -> str:
    if isinstance(exc, NotFoundError):
        return f"Not found: {exc}"
    if isinstance(exc, AuthenticationError):
        return f"Authentication failed: {exc}. Check the account key."
    if isinstance(exc, TransientNetworkError):
        return f"Network error: {exc}. Try again later."
    if isinstance(exc, StorageError):
        if exc.is_transient:
            return f"Storage service unavailable: {exc}. Try again later."
        return f"Storage error: {exc}"
    return str(exc)


class BlobBrowserPresenter:
    """Runs background operations and returns results via callbacks.

    ``on_not_found`` is optional everywhere; when omitted a missing blob is
    reported through ``on_error``.
    """

    def __init__(
        self,
        *,
        controller: BlobBrowserController | None = None,
        settings_storage: SettingsStorage | None = None,
        dispatch: DispatchFn | None = None,
        run_in_background: bool = True,
    ) -> None:
        self._settings_storage = settings_storage or SettingsStorage()
        self._settings = self._settings_storage.load()
        self._controller = controller or BlobBrowserController(settings=self._settings)
        self._dispatch = dispatch or (lambda func: func())
        self._run_in_background = run_in_background
        self._pending_expands: dict[str, list[tuple[Callable, ErrorFn, DoneFn | None]]] = {}

    @property
    def settings(self) -> AppSettings:
        return replace(self._settings)

    @property
    def is_connected(self) -> bool:
        return self._controller.is_connected

    @property
    def selected_profile(self) -> str | None:
        return self._controller.selected_profile

    def save_settings(self, settings: AppSettings) -> None:
        self._settings = settings
        self._settings_storage.save(settings)

    def update_last_connection(self, connection: str) -> None:
        self._settings = replace(self._settings, last_connection=connection or "")
        self._settings_storage.save(self._settings)

    def list_profiles(self) -> list[ConnectionProfile]:
        return self._controller.list_profiles()

    def save_profile(self, profile: ConnectionProfile, *, original_name: str | None = None) -> None:
        self._controller.save_profile(profile, original_name=original_name)

    def delete_profile(self, name: str) -> None:
        self._controller.delete_profile(name)

    def connect(
        self,
        *,
        profile_name: str,
        on_success: Callable[[ContainerState], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        LOGGER.debug("Connecting using profile '%s'", profile_name)

        def succeeded(state: ContainerState) -> None:
            self.update_last_connection(profile_name)
            on_success(state)

        self._submit(
            lambda: self._controller.connect_with_profile(profile_name),
            description=f"connect using profile '{profile_name}'",
            on_success=succeeded,
            on_error=on_error,
            on_done=on_done,
        )

    def list_objects(
        self,
        *,
        prefix: str = "",
        on_success: Callable[[list[ObjectRecord]], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        self._submit(
            lambda: self._controller.list_objects(prefix=prefix),
            description=f"list objects under '{prefix or '/'}'",
            on_success=on_success,
            on_error=on_error,
            on_done=on_done,
        )

    def expand_folder(
        self,
        *,
        path: str,
        on_success: Callable[[FolderContents], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        """Expand ``path``, fetching it in the background the first time.

        Only the fetch runs off the calling thread; the tree is updated inside
        ``dispatch``. Requests for a folder whose fetch is still running wait
        for that fetch instead of starting another one.
        """

        tree = self._controller.tree
        path = normalize_folder(path)
        if tree.state(path).loaded:
            self._dispatch(lambda: on_success(tree.expand(path)))
            if on_done:
                self._dispatch(on_done)
            return
        waiting = self._pending_expands.get(path)
        if waiting is not None:
            waiting.append((on_success, on_error, on_done))
            return
        waiting = [(on_success, on_error, on_done)]
        self._pending_expands[path] = waiting

        def loaded(contents: FolderContents) -> None:
            self._pending_expands.pop(path, None)
            tree.store(path, contents)
            expanded = tree.expand(path)
            for success, _, _ in waiting:
                success(expanded)

        def failed(message: str) -> None:
            self._pending_expands.pop(path, None)
            for _, error, _ in waiting:
                error(message)

        def finished() -> None:
            for _, _, done in waiting:
                if done:
                    done()

        self._submit(
            lambda: tree.load(path),
            description=f"expand folder '{path or '/'}'",
            on_success=loaded,
            on_error=failed,
            on_done=finished,
        )

    def collapse_folder(self, path: str) -> None:
        self._controller.tree.collapse(path)

    def retrieve_object(
        self,
        *,
        name: str,
        on_success: Callable[[ObjectContent], None],
        on_error: ErrorFn,
        on_not_found: ErrorFn | None = None,
    ) -> None:
        self._submit(
            lambda: self._controller.retrieve_object(name=name),
            description=f"retrieve '{name}'",
            on_success=on_success,
            on_error=on_error,
            on_not_found=on_not_found,
        )

    def download_object(
        self,
        *,
        name: str,
        destination: str,
        on_success: Callable[[ObjectRecord], None] | None = None,
        on_error: ErrorFn | None = None,
        on_not_found: ErrorFn | None = None,
        on_done: DoneFn | None = None,
    ) -> None:
        self._submit(
            lambda: self._controller.download_object(name=name, destination=destination),
            description=f"download '{name}'",
            on_success=on_success,
            on_error=on_error,
            on_not_found=on_not_found,
            on_done=on_done,
        )

    def upload_file(
        self,
        *,
        source_path: str,
        prefix: str = "",
        name: str | None = None,
        content_type: str | None = None,
        on_success: Callable[[ObjectRecord], None] | None = None,
        on_error: ErrorFn | None = None,
        on_done: DoneFn | None = None,
    ) -> None:
        self._submit(
            lambda: self._controller.upload_file(
                source_path=source_path,
                prefix=prefix,
                name=name,
                content_type=content_type,
            ),
            description=f"upload '{source_path}'",
            on_success=on_success,
            on_error=on_error,
            on_done=on_done,
        )

    def delete_object(
        self,
        *,
        name: str,
        on_success: Callable[[DeleteAck], None],
        on_error: ErrorFn,
        on_not_found: ErrorFn | None = None,
    ) -> None:
        self._submit(
            lambda: self._controller.delete_object(name=name),
            description=f"delete '{name}'",
            on_success=on_success,
            on_error=on_error,
            on_not_found=on_not_found,
        )

    def _submit(
        self,
        operation: Callable[[], object],
        *,
        description: str,
        on_success: SuccessFn | None = None,
        on_error: ErrorFn | None = None,
        on_not_found: ErrorFn | None = None,
        on_done: DoneFn | None = None,
    ) -> None:
        def task() -> None:
            try:
                result = operation()
            except NotFoundError as exc:
                LOGGER.debug("Not found during %s: %s", description, exc)
                handler = on_not_found or on_error
                if handler:
                    message = format_error(exc)
                    self._dispatch(lambda: handler(message))
            except BlobBrowserError as exc:
                LOGGER.exception("Failed to %s", description)
                if on_error:
                    message = format_error(exc)
                    self._dispatch(lambda: on_error(message))
            except Exception as exc:
                LOGGER.exception("Unexpected error during %s", description)
                if on_error:
                    message = f"Unexpected error: {exc}"
                    self._dispatch(lambda: on_error(message))
            else:
                if on_success:
                    self._dispatch(lambda: on_success(result))
            finally:
                if on_done:
                    self._dispatch(on_done)

        if self._run_in_background:
            threading.Thread(target=task, daemon=True).start()
        else:
            task()
