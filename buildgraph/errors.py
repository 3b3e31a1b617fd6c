"""Exception hierarchy for the build pipeline."""

from __future__ import annotations


class BuildError(Exception):
    """Base class for every error raised by the build pipeline."""


# ---------------------------------------------------------------------------
# Configuration: fatal, raised before any work starts
# ---------------------------------------------------------------------------


class ConfigurationError(BuildError, ValueError):
    """Invalid node registration, manifest, or run setup."""


class DuplicateNodeError(ConfigurationError):
    def __init__(self, node_id: str):
        super().__init__(f"Build node '{node_id}' is already registered")
        self.node_id = node_id


class ManifestError(ConfigurationError):
    """The file manifest could not be parsed or is structurally invalid."""


class MissingConfigurationError(ConfigurationError):
    """A handler is missing a global context value or a required input."""


# ---------------------------------------------------------------------------
# Graph structure: fatal to the file generation phase
# ---------------------------------------------------------------------------


class GraphError(BuildError):
    pass


class CycleError(GraphError):
    """The dependency graph cannot be linearized."""

    def __init__(self, message: str, nodes: list[str] | None = None, cycle: list[str] | None = None):
        super().__init__(message)
        self.nodes = nodes or []
        self.cycle = cycle or []


class GraphInvariantError(GraphError):
    """A layer contains a file that depends on another file of the same layer."""


class InvalidFilesError(GraphError):
    def __init__(self, invalid_files: list[str]):
        super().__init__(
            "The following files do not exist in the project structure:\n" + "\n".join(invalid_files)
        )
        self.invalid_files = invalid_files


# ---------------------------------------------------------------------------
# Generation: per file, recovered by retry
# ---------------------------------------------------------------------------


class GenerationError(BuildError):
    pass


class EmptyGenerationError(GenerationError):
    def __init__(self, file_path: str):
        super().__init__(f"Model returned empty content for {file_path}")
        self.file_path = file_path


class ResponseParsingError(GenerationError):
    """A model response did not contain the expected payload."""


# ---------------------------------------------------------------------------
# Node execution
# ---------------------------------------------------------------------------


class NodeExecutionError(BuildError):
    pass


class MissingNodeResultError(NodeExecutionError, KeyError):
    def __init__(self, node_id: str):
        super().__init__(f"No completed result for node '{node_id}'")
        self.node_id = node_id

    def __str__(self) -> str:
        return self.args[0]


class NodeOutputTypeError(NodeExecutionError, TypeError):
    pass


class DependencyFailedError(NodeExecutionError):
    def __init__(self, node_id: str, failed: list[str]):
        super().__init__(f"Node '{node_id}' skipped: required node(s) failed: {', '.join(failed)}")
        self.node_id = node_id
        self.failed = failed


class BuildAbortedError(NodeExecutionError):
    """Set on nodes that never ran because a structural or configuration error stopped the build."""

    def __init__(self, node_id: str, cause_node: str):
        super().__init__(f"Node '{node_id}' not run: build aborted by a fatal error in '{cause_node}'")
        self.node_id = node_id
        self.cause_node = cause_node


# Raised inside a handler, these stop the whole build instead of failing one node
FATAL_ERRORS = (ConfigurationError, GraphError)
