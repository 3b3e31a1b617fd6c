"""Manifest -> validated, cycle-free generation plan."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from buildgraph.config import DEFAULT_ENTRY_FILE
from buildgraph.errors import InvalidFilesError
from buildgraph.files.graph import build_dependency_graph, validate_against_virtual_directory
from buildgraph.files.layers import build_concurrency_layers, topological_sort
from buildgraph.files.manifest import FileManifest, parse_manifest
from buildgraph.models import FilePlan
from buildgraph.virtual_dir import VirtualDirectory

logger = logging.getLogger(__name__)


def plan_file_generation(
    manifest: str | Mapping[str, Any] | FileManifest,
    virtual_dir: VirtualDirectory | None = None,
    strict: bool = False,
    entry_file: str = DEFAULT_ENTRY_FILE,
) -> FilePlan:
    """Parse, resolve, validate and layer a file manifest.

    Invalid files (unknown to the virtual directory) are reported on the plan
    and kept in the graph, unless `strict` is set, in which case
    InvalidFilesError is raised. Cycles always raise CycleError.
    """
    parsed = parse_manifest(manifest)
    known = virtual_dir.all_files() if virtual_dir is not None else ()
    graph = build_dependency_graph(parsed, known_files=known, entry_file=entry_file)

    invalid_files: list[str] = []
    if virtual_dir is not None:
        invalid_files = validate_against_virtual_directory(graph.nodes, virtual_dir)
        if invalid_files and strict:
            raise InvalidFilesError(invalid_files)

    sorted_files = topological_sort(graph.edges, graph.nodes)
    layers = build_concurrency_layers(graph.nodes, graph.file_infos)

    logger.info(
        f"All files dependency layers generated successfully: "
        f"{len(graph.nodes)} files in {len(layers)} layers"
    )
    return FilePlan(graph=graph, layers=layers, invalid_files=invalid_files, sorted_files=sorted_files)
