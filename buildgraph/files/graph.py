"""File dependency graph: resolve manifest references into canonical paths and edges."""

from __future__ import annotations

import logging
import posixpath
from typing import AbstractSet, Iterable

from buildgraph.config import DEFAULT_ENTRY_FILE
from buildgraph.errors import CycleError
from buildgraph.files.manifest import FileManifest
from buildgraph.models import FileInfo, ResolvedFileGraph
from buildgraph.virtual_dir import VirtualDirectory, normalize_path

logger = logging.getLogger(__name__)

# Tried, after the dependent file's own extension, for extension-less references
SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")


def resolve_dependency(
    current_file: str,
    dependency: str,
    candidates: AbstractSet[str] | None = None,
    entry_file: str = DEFAULT_ENTRY_FILE,
) -> str:
    """Resolve a raw dependency reference relative to the directory of `current_file`.

    An extension-less reference is matched against `candidates` as `<ref><ext>`
    when candidates are given; otherwise (or when nothing matches) it points at
    the directory's entry file. Pure: no filesystem access.
    """
    current_dir = posixpath.dirname(current_file.replace("\\", "/"))
    dependency = dependency.strip().replace("\\", "/")
    base = normalize_path(posixpath.join(current_dir, dependency))

    if posixpath.splitext(posixpath.basename(dependency))[1]:
        return base

    if candidates:
        own_ext = posixpath.splitext(current_file)[1]
        extensions = ((own_ext,) if own_ext else ()) + SOURCE_EXTENSIONS
        for ext in extensions:
            if base + ext in candidates:
                return base + ext

    return normalize_path(posixpath.join(base, entry_file))


def build_dependency_graph(
    manifest: FileManifest,
    known_files: Iterable[str] = (),
    entry_file: str = DEFAULT_ENTRY_FILE,
) -> ResolvedFileGraph:
    """Turn a manifest into nodes, (dependency, dependent) edges and per-file dependency lists."""
    graph = ResolvedFileGraph()
    candidates = set(manifest.files) | {normalize_path(f) for f in known_files}

    logger.info(f"Building dependency graph for {len(manifest.files)} files")

    for file_name, entry in manifest.files.items():
        graph.nodes.add(file_name)
        info = FileInfo(file_path=file_name)
        graph.file_infos[file_name] = info

        for dep in entry.depends_on:
            resolved = resolve_dependency(file_name, dep, candidates, entry_file)
            if resolved == file_name:
                raise CycleError(
                    f"Circular dependency detected in the file structure: {file_name} -> {file_name}",
                    nodes=[file_name],
                    cycle=[file_name, file_name],
                )
            if resolved in info.depends_on:
                continue
            logger.debug(f"Resolved dependency: {file_name} -> {resolved}")
            graph.nodes.add(resolved)
            graph.edges.append((resolved, file_name))
            info.depends_on.append(resolved)

    return graph


def validate_against_virtual_directory(nodes: Iterable[str], virtual_dir: VirtualDirectory) -> list[str]:
    """Return the nodes the virtual directory does not know. Nothing is removed from the graph."""
    invalid = sorted(node for node in nodes if not virtual_dir.is_valid_file(node))
    if invalid:
        logger.debug(f"Known files: {sorted(virtual_dir.all_files())}")
        logger.error(
            "The following files do not exist in the project structure:\n" + "\n".join(invalid)
        )
    return invalid
