"""File-level pipeline: manifest, dependency graph, layers, concurrent generation."""

from buildgraph.files.generator import LayeredFileGenerator, TextGenerator
from buildgraph.files.graph import build_dependency_graph, resolve_dependency, validate_against_virtual_directory
from buildgraph.files.layers import (
    build_concurrency_layers,
    build_layers,
    detect_cycles,
    find_cycle,
    topological_sort,
)
from buildgraph.files.manifest import FileManifest, parse_manifest
from buildgraph.files.planner import plan_file_generation
from buildgraph.files.storage import FileStore

__all__ = [
    "FileManifest",
    "FileStore",
    "LayeredFileGenerator",
    "TextGenerator",
    "build_concurrency_layers",
    "build_dependency_graph",
    "build_layers",
    "detect_cycles",
    "find_cycle",
    "parse_manifest",
    "plan_file_generation",
    "resolve_dependency",
    "topological_sort",
    "validate_against_virtual_directory",
]
