"""
Hierarchical container store used to persist forests.

The forest codec only talks to the ``ContainerStore`` protocol: a tree of
named groups, each holding arrays and scalar attributes, navigated through a
"current group" cursor. ``MemoryStore`` implements it in memory and can be
persisted to a single ``.npz`` file.
"""
from __future__ import annotations

import logging
import posixpath
from contextlib import contextmanager
from typing import Any, Iterator, Protocol

import numpy as np

logger = logging.getLogger(__name__)

_ATTRIBUTE_MARKER = "@"


class ContainerStore(Protocol):
    def pwd(self) -> str: ...

    def cd(self, path: str) -> None: ...

    def cd_up(self) -> None: ...

    def cd_mk(self, path: str) -> None: ...

    def ls(self) -> list[str]: ...

    def exists_attribute(self, obj: str, name: str) -> bool: ...

    def read_attribute(self, obj: str, name: str) -> Any: ...

    def write_attribute(self, obj: str, name: str, value: Any) -> None: ...

    def read(self, name: str) -> np.ndarray: ...

    def write(self, name: str, value: Any) -> None: ...


class _Group:
    def __init__(self) -> None:
        self.groups: dict[str, _Group] = {}
        self.datasets: dict[str, np.ndarray] = {}
        self.attributes: dict[str, np.ndarray] = {}


class MemoryStore:
    """In-memory ``ContainerStore``.

    Datasets and attributes are kept as numpy arrays (scalars as 0-d arrays)
    and copied on read and write, so callers never alias stored data.
    """

    def __init__(self) -> None:
        self._root = _Group()
        self._cwd = "/"

    def _absolute(self, path: str) -> str:
        path = posixpath.normpath(posixpath.join(self._cwd, path))
        # normpath keeps a leading "//"
        return "/" + path.lstrip("/")

    def _parts(self, path: str) -> list[str]:
        return [part for part in self._absolute(path).split("/") if part]

    def _group(self, path: str, create: bool = False) -> _Group:
        group = self._root
        for part in self._parts(path):
            if part in group.datasets:
                raise KeyError(f"'{part}' is a dataset, not a group")
            if part not in group.groups:
                if not create:
                    raise KeyError(f"group '{self._absolute(path)}' does not exist")
                group.groups[part] = _Group()
            group = group.groups[part]
        return group

    def _split(self, name: str) -> tuple[_Group, str, str]:
        parent, leaf = posixpath.split(name)
        if not leaf:
            raise KeyError(f"invalid dataset name '{name}'")
        return self._group(parent or "."), leaf, self._absolute(name)

    def pwd(self) -> str:
        return self._cwd

    def cd(self, path: str) -> None:
        self._group(path)
        self._cwd = self._absolute(path)

    def cd_up(self) -> None:
        self._cwd = self._absolute("..")

    def cd_mk(self, path: str) -> None:
        self._group(path, create=True)
        self._cwd = self._absolute(path)

    def ls(self) -> list[str]:
        group = self._group(".")
        return sorted([*group.groups, *group.datasets])

    def exists_attribute(self, obj: str, name: str) -> bool:
        try:
            return name in self._group(obj).attributes
        except KeyError:
            return False

    def read_attribute(self, obj: str, name: str) -> Any:
        attributes = self._group(obj).attributes
        if name not in attributes:
            raise KeyError(f"attribute '{name}' does not exist on '{self._absolute(obj)}'")
        value = attributes[name]
        return value.item() if value.ndim == 0 else value.copy()

    def write_attribute(self, obj: str, name: str, value: Any) -> None:
        self._group(obj).attributes[name] = np.array(value)

    def read(self, name: str) -> np.ndarray:
        group, leaf, path = self._split(name)
        if leaf not in group.datasets:
            raise KeyError(f"dataset '{path}' does not exist")
        return group.datasets[leaf].copy()

    def write(self, name: str, value: Any) -> None:
        group, leaf, path = self._split(name)
        if leaf in group.groups:
            raise KeyError(f"'{path}' is a group, not a dataset")
        group.datasets[leaf] = np.array(value)

    def _walk(self) -> Iterator[tuple[str, _Group]]:
        stack = [("", self._root)]
        while stack:
            prefix, group = stack.pop()
            yield prefix, group
            for name, child in group.groups.items():
                stack.append((f"{prefix}{name}/", child))

    def save_npz(self, filename: str) -> None:
        """Write every dataset and attribute into one compressed ``.npz`` file.

        Keys are group paths relative to the root; attribute names carry an
        ``@`` prefix. Groups without any content are not persisted.
        """
        arrays: dict[str, np.ndarray] = {}
        for prefix, group in self._walk():
            for name, value in group.datasets.items():
                arrays[f"{prefix}{name}"] = value
            for name, value in group.attributes.items():
                arrays[f"{prefix}{_ATTRIBUTE_MARKER}{name}"] = value
        np.savez_compressed(filename, **arrays)
        logger.debug("saved %d arrays to %s", len(arrays), filename)

    @classmethod
    def load_npz(cls, filename: str) -> MemoryStore:
        store = cls()
        with np.load(filename, allow_pickle=False) as data:
            keys = list(data.files)
            for key in keys:
                parent, leaf = posixpath.split(key)
                group = store._group("/" + parent, create=True)
                if leaf.startswith(_ATTRIBUTE_MARKER):
                    group.attributes[leaf[len(_ATTRIBUTE_MARKER):]] = data[key]
                else:
                    group.datasets[leaf] = data[key]
        logger.debug("loaded %d arrays from %s", len(keys), filename)
        return store


@contextmanager
def working_group(store: ContainerStore, path: str = "", create: bool = False) -> Iterator[ContainerStore]:
    """Enter ``path`` for the duration of the block.

    The group that was current on entry is restored on every exit path. An
    empty ``path`` leaves the cursor where it is.
    """
    if not path:
        yield store
        return

    cwd = store.pwd()
    if create:
        store.cd_mk(path)
    else:
        store.cd(path)
    try:
        yield store
    finally:
        store.cd(cwd)
