from __future__ import annotations
"""Folder view over the flat blob namespace."""
from dataclasses import dataclass, field
import logging
from typing import Callable, Iterable, Iterator, Optional, Sequence
import weakref

from .models import ObjectRecord

LOGGER = logging.getLogger(__name__)

DELIMITER = "/"
ROOT = ""

FetchFn = Callable[[str], Sequence[ObjectRecord]]


def normalize_folder(path: str) -> str:
    """Folder key for ``path``: no leading, trailing or repeated delimiters."""

    return DELIMITER.join(part for part in path.split(DELIMITER) if part)


def parent_folder(path: str) -> str:
    return path.rpartition(DELIMITER)[0]


def folder_prefix(path: str) -> str:
    """Listing prefix that selects everything below ``path``."""

    return f"{path}{DELIMITER}" if path else ""


class FolderNode:
    """A virtual folder built from blob names."""

    def __init__(self, path: str, parent: Optional["FolderNode"] = None):
        self.path = path
        self.name = path.rpartition(DELIMITER)[2]
        self.records: list[ObjectRecord] = []
        self.folders: dict[str, FolderNode] = {}
        self._parent = weakref.ref(parent) if parent is not None else None

    @property
    def parent(self) -> Optional["FolderNode"]:
        return self._parent() if self._parent is not None else None

    @property
    def is_root(self) -> bool:
        return self._parent is None

    def child_folders(self) -> list["FolderNode"]:
        return [self.folders[name] for name in sorted(self.folders)]

    def walk(self) -> Iterator["FolderNode"]:
        """Yield this node and every descendant, depth first."""

        yield self
        for child in self.child_folders():
            yield from child.walk()

    def __repr__(self) -> str:
        return f"FolderNode(path={self.path!r}, records={len(self.records)}, folders={len(self.folders)})"


class NamespaceProjector:
    """Groups blob records into folders by their ``/`` separated names."""

    def __init__(self, records: Iterable[ObjectRecord] = ()):
        self._index: dict[str, FolderNode] = {}
        self.root = self.project(records)

    def project(self, records: Iterable[ObjectRecord]) -> FolderNode:
        """Rebuild the tree from scratch and return its root."""

        root = FolderNode(ROOT)
        self._index = {ROOT: root}
        for record in records:
            self._ensure_folder(record.folder).records.append(record)
        for node in self._index.values():
            node.records.sort(key=lambda record: record.name)
        self.root = root
        return root

    def _ensure_folder(self, path: str) -> FolderNode:
        node = self._index.get(path)
        if node is not None:
            return node
        parent = self._ensure_folder(parent_folder(path))
        node = FolderNode(path, parent)
        parent.folders[node.name] = node
        self._index[path] = node
        return node

    def folder(self, path: str) -> Optional[FolderNode]:
        return self._index.get(normalize_folder(path))

    def folders(self) -> list[FolderNode]:
        return list(self.root.walk())

    def direct_children_of(self, path: str) -> list[ObjectRecord]:
        """Records exactly one level below ``path``; grandchildren are excluded."""

        node = self.folder(path)
        return list(node.records) if node is not None else []

    def child_folders_of(self, path: str) -> list[str]:
        node = self.folder(path)
        if node is None:
            return []
        return [child.path for child in node.child_folders()]


@dataclass
class FolderViewState:
    expanded: bool = False
    loaded: bool = False
    visible: bool = False

    @property
    def pending(self) -> bool:
        """Expanded by :meth:`LazyTreeController.expand_all` but not fetched yet."""
        return self.expanded and not self.loaded


@dataclass
class FolderContents:
    records: list[ObjectRecord] = field(default_factory=list)
    folders: list[str] = field(default_factory=list)


class LazyTreeController:
    """Tracks expand/collapse state and loads folder contents on demand.

    ``fetch`` receives a folder path (``""`` for the root) and returns the
    records stored below it. Each folder is fetched at most once until it is
    invalidated.

    :meth:`load` only fetches and never touches view state, so it may run on a
    worker thread. Every other method belongs to the interaction thread.
    """

    def __init__(self, fetch: FetchFn):
        self._fetch = fetch
        self._states: dict[str, FolderViewState] = {}
        self._contents: dict[str, FolderContents] = {}
        self.fetch_count = 0
        self.state(ROOT).visible = True

    def state(self, path: str) -> FolderViewState:
        path = normalize_folder(path)
        state = self._states.get(path)
        if state is None:
            state = FolderViewState(visible=path == ROOT)
            self._states[path] = state
        return state

    def known_folders(self) -> list[str]:
        return sorted(self._states)

    def contents(self, path: str) -> FolderContents:
        return self._contents.get(normalize_folder(path), FolderContents())

    def expand(self, path: str) -> FolderContents:
        path = normalize_folder(path)
        state = self.state(path)
        if not state.loaded:
            self.store(path, self.load(path))
        state.expanded = True
        state.visible = True
        for child in self.child_folders(path):
            self.state(child).visible = True
        return self.contents(path)

    def load(self, path: str) -> FolderContents:
        """Fetch ``path`` and split the result into direct records and folders."""

        path = normalize_folder(path)
        LOGGER.debug("Loading folder '%s'", path or DELIMITER)
        records = self._fetch(path)
        projector = NamespaceProjector(
            record for record in records if record.name.startswith(folder_prefix(path))
        )
        return FolderContents(
            records=projector.direct_children_of(path),
            folders=projector.child_folders_of(path),
        )

    def store(self, path: str, contents: FolderContents) -> None:
        """Record fetched ``contents`` for ``path`` and mark it loaded.

        Child folders missing from a fresh listing are forgotten together
        with everything below them.
        """

        path = normalize_folder(path)
        previous = self._contents.get(path)
        if previous is not None:
            for gone in set(previous.folders) - set(contents.folders):
                self._forget(gone)
        self._contents[path] = contents
        self.fetch_count += 1
        self.state(path).loaded = True
        for child in contents.folders:
            self.state(child)

    def collapse(self, path: str) -> None:
        path = normalize_folder(path)
        self.state(path).expanded = False
        for descendant in self._descendants(path):
            state = self.state(descendant)
            state.expanded = False
            state.visible = False

    def expand_all(self) -> None:
        """Expand every known folder without fetching unloaded ones.

        Folders that were never loaded end up ``pending`` (expanded but not
        loaded); the next :meth:`expand` on them performs the fetch.
        """

        for path in list(self._states):
            state = self._states[path]
            state.expanded = True
            state.visible = True

    def collapse_all(self) -> None:
        for child in self.child_folders(ROOT):
            self.collapse(child)

    def invalidate(self, path: str) -> None:
        """Forget the loaded contents so the next :meth:`expand` refetches."""

        path = normalize_folder(path)
        state = self._states.get(path)
        if state is not None:
            state.loaded = False

    def invalidate_ancestors(self, name: str) -> None:
        """Invalidate the folder holding blob ``name`` and every folder above it."""

        path = ObjectRecord(name=name).folder
        while True:
            self.invalidate(path)
            if path == ROOT:
                return
            path = parent_folder(path)

    def is_visible(self, path: str) -> bool:
        return self.state(path).visible

    def visible_folders(self) -> list[str]:
        return [path for path in self.known_folders() if self._states[path].visible]

    def child_folders(self, path: str) -> list[str]:
        return list(self.contents(path).folders)

    def _descendants(self, path: str) -> Iterator[str]:
        for child in self.child_folders(path):
            yield child
            yield from self._descendants(child)

    def _forget(self, path: str) -> None:
        prefix = folder_prefix(path)
        for known in [key for key in self._states if key == path or key.startswith(prefix)]:
            self._states.pop(known, None)
            self._contents.pop(known, None)
