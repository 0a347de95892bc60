"""Filesystem handles the scanner reads manifests from.

Paths handed to and returned by a filesystem are slash separated and relative
to the filesystem root, mirroring how results report ``file_path``.
"""

from __future__ import annotations

import posixpath
import threading
from pathlib import Path
from typing import Dict, Iterator, Protocol, Set, Union

from .exceptions import FileSystemError


class FileSystem(Protocol):
    """Read-only view of a tree of files."""

    def walk(self, root: str) -> Iterator[str]:
        """Yield every file below ``root`` in sorted order."""

    def read_bytes(self, path: str) -> bytes:
        """Return the contents of the file at ``path``."""


def clean_path(path: str) -> str:
    """Normalise ``path`` to a relative slash separated form.

    Raises :class:`FileSystemError` for absolute paths and paths escaping
    the root.
    """

    if not isinstance(path, str) or path == "":
        raise FileSystemError(f"invalid path {path!r}")
    normalised = posixpath.normpath(path.replace("\\", "/"))
    if posixpath.isabs(normalised) or normalised == ".." or normalised.startswith("../"):
        raise FileSystemError(f"invalid path {path!r}: must be relative to the filesystem root")
    return normalised


class LocalFileSystem:
    """Files on the local disk below ``root``."""

    def __init__(self, root: Union[str, Path] = ".") -> None:
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"LocalFileSystem({str(self.root)!r})"

    def walk(self, root: str) -> Iterator[str]:
        base = self.root / clean_path(root)
        if base.is_file():
            yield base.relative_to(self.root).as_posix()
            return
        if not base.is_dir():
            raise FileNotFoundError(f"no such directory: {base}")
        for path in sorted(base.rglob("*")):
            if path.is_file():
                yield path.relative_to(self.root).as_posix()

    def read_bytes(self, path: str) -> bytes:
        return (self.root / clean_path(path)).read_bytes()


class MemoryFileSystem:
    """A tree of files held in memory.

    Used to scan a single byte stream through the same path as a directory.
    Writes require the parent directory to exist, see :meth:`mkdir_all`.
    """

    def __init__(self) -> None:
        self._files: Dict[str, bytes] = {}
        self._dirs: Set[str] = {"."}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"MemoryFileSystem(files={len(self._files)})"

    def mkdir_all(self, path: str) -> None:
        cleaned = clean_path(path)
        with self._lock:
            if cleaned in self._files:
                raise FileSystemError(f"{path!r} exists and is a file")
            while cleaned not in self._dirs:
                self._dirs.add(cleaned)
                cleaned = posixpath.dirname(cleaned) or "."

    def write_file(self, path: str, data: bytes) -> None:
        cleaned = clean_path(path)
        if cleaned == ".":
            raise FileSystemError(f"invalid file path {path!r}")
        parent = posixpath.dirname(cleaned) or "."
        with self._lock:
            if cleaned in self._dirs:
                raise FileSystemError(f"{path!r} exists and is a directory")
            if parent not in self._dirs:
                raise FileSystemError(f"parent directory of {path!r} does not exist")
            self._files[cleaned] = bytes(data)

    def walk(self, root: str) -> Iterator[str]:
        cleaned = clean_path(root)
        with self._lock:
            if cleaned in self._files:
                files = [cleaned]
            elif cleaned in self._dirs:
                prefix = "" if cleaned == "." else cleaned + "/"
                files = sorted(name for name in self._files if name.startswith(prefix))
            else:
                raise FileNotFoundError(f"no such directory: {root}")
        yield from files

    def read_bytes(self, path: str) -> bytes:
        cleaned = clean_path(path)
        with self._lock:
            try:
                return self._files[cleaned]
            except KeyError:
                raise FileNotFoundError(f"no such file: {path}") from None
