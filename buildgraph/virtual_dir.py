"""Virtual directory: the set of file paths a build is allowed to produce."""

from __future__ import annotations

import json
import logging
import posixpath
from typing import Any, Iterable, Mapping

from buildgraph.errors import ConfigurationError

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """Canonical form used for every lookup: forward slashes, no leading './' or '/'."""
    path = path.strip().replace("\\", "/")
    if not path:
        return ""
    return posixpath.normpath(path).lstrip("/")


class VirtualDirectory:
    """Lookup structure over the planned project files. Never touches the filesystem."""

    def __init__(self, paths: Iterable[str] = ()):
        self._files: set[str] = set()
        for path in paths:
            self.add_file(path)

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> "VirtualDirectory":
        return cls(paths)

    @classmethod
    def from_tree(cls, tree: Mapping[str, Any], root: str = "") -> "VirtualDirectory":
        """Build from a nested mapping: directories map to dicts, files to None."""
        vdir = cls()
        vdir._walk(tree, root)
        return vdir

    @classmethod
    def from_json(cls, document: str) -> "VirtualDirectory":
        """Accepts a JSON list of paths, {"files": [...]}, or a nested tree."""
        try:
            data = json.loads(document)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid virtual directory JSON: {e}") from e

        if isinstance(data, list):
            return cls.from_paths(data)
        if isinstance(data, dict) and isinstance(data.get("files"), list):
            return cls.from_paths(data["files"])
        if isinstance(data, dict):
            return cls.from_tree(data)
        raise ConfigurationError("Virtual directory JSON must be a list or an object")

    def _walk(self, tree: Mapping[str, Any], prefix: str):
        for name, child in tree.items():
            path = posixpath.join(prefix, name) if prefix else name
            if isinstance(child, Mapping):
                self._walk(child, path)
            elif child is None:
                self.add_file(path)
            else:
                raise ConfigurationError(f"Invalid virtual directory entry at '{path}'")

    def add_file(self, path: str):
        normalized = normalize_path(path)
        if not normalized or normalized == ".":
            raise ConfigurationError(f"Invalid virtual directory path: {path!r}")
        self._files.add(normalized)

    def is_valid_file(self, path: str) -> bool:
        return normalize_path(path) in self._files

    def all_files(self) -> set[str]:
        return set(self._files)

    def __contains__(self, path: str) -> bool:
        return self.is_valid_file(path)

    def __len__(self) -> int:
        return len(self._files)
