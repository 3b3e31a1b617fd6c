"""Core data structures for the build pipeline."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Build nodes
# ---------------------------------------------------------------------------


@dataclass
class BuildNode:
    """A named step of the build sequence."""

    id: str
    name: str = ""
    requires: list[str] = field(default_factory=list)
    config: dict[str, Any] = field(default_factory=dict)
    description: str = ""
    output_type: type | tuple[type, ...] | None = None  # enforced when the result is stored

    def __post_init__(self):
        if not self.name:
            self.name = self.id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "requires": self.requires,
            "config": self.config,
            "description": self.description,
        }


@dataclass(frozen=True)
class NodeResult:
    success: bool
    data: Any = None
    error: Exception | None = None
    skipped: bool = False
    duration: float = 0.0

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "skipped": self.skipped,
            "error": str(self.error) if self.error else None,
            "duration": round(self.duration, 3),
        }


@dataclass
class ExecutionState:
    """Disjoint node-id sets tracking a single run."""

    waiting: set[str] = field(default_factory=set)
    pending: set[str] = field(default_factory=set)
    completed: set[str] = field(default_factory=set)
    failed: set[str] = field(default_factory=set)
    skipped: set[str] = field(default_factory=set)

    def _sets(self) -> dict[str, set[str]]:
        return {
            "waiting": self.waiting,
            "pending": self.pending,
            "completed": self.completed,
            "failed": self.failed,
            "skipped": self.skipped,
        }

    def status_of(self, node_id: str) -> str | None:
        for name, members in self._sets().items():
            if node_id in members:
                return name
        return None

    def move(self, node_id: str, to: str):
        """Move a node into the named set, removing it from whichever set holds it."""
        sets = self._sets()
        if to not in sets:
            raise ValueError(f"Unknown execution state: {to}")
        for members in sets.values():
            members.discard(node_id)
        sets[to].add(node_id)

    @property
    def finished(self) -> bool:
        return not self.waiting and not self.pending

    def to_dict(self) -> dict:
        return {name: sorted(members) for name, members in self._sets().items()}


# ---------------------------------------------------------------------------
# File graph
# ---------------------------------------------------------------------------


@dataclass
class FileInfo:
    file_path: str
    depends_on: list[str] = field(default_factory=list)


@dataclass
class ResolvedFileGraph:
    nodes: set[str] = field(default_factory=set)
    edges: list[tuple[str, str]] = field(default_factory=list)  # (dependency, dependent)
    file_infos: dict[str, FileInfo] = field(default_factory=dict)

    def depends_on(self, file_path: str) -> list[str]:
        info = self.file_infos.get(file_path)
        return info.depends_on if info else []


@dataclass
class FilePlan:
    """Everything the layered generator needs, computed before any generation starts."""

    graph: ResolvedFileGraph
    layers: list[list[str]]
    invalid_files: list[str] = field(default_factory=list)
    sorted_files: list[str] = field(default_factory=list)

    def layer_of(self, file_path: str) -> int | None:
        for index, layer in enumerate(self.layers):
            if file_path in layer:
                return index
        return None


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


@dataclass
class GenerationRequest:
    """Structured request for the content generation capability."""

    model: str
    messages: list[dict] = field(default_factory=list)
    prompt: str | None = None

    def to_messages(self) -> list[dict]:
        if self.messages:
            return list(self.messages)
        return [{"role": "user", "content": self.prompt or ""}]

    def to_dict(self) -> dict:
        return {"model": self.model, "messages": self.messages, "prompt": self.prompt}


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class ModelResponse:
    text: str | None = None
    usage: TokenUsage = field(default_factory=TokenUsage)
    raw: Any = None


@dataclass
class GenerationOutcome:
    """Result of one generation attempt for one file."""

    file_path: str
    attempt: int
    success: bool
    error: Exception | None = None
    request: GenerationRequest | None = None
    raw: str | None = None
    content: str | None = None


@dataclass
class FailureEntry:
    file_path: str
    layer: int
    attempt: int
    error: str
    error_type: str
    request: dict | None = None
    raw: str | None = None
    ts: float = field(default_factory=time.time)

    @classmethod
    def from_outcome(cls, outcome: GenerationOutcome, layer: int) -> "FailureEntry":
        error = outcome.error
        return cls(
            file_path=outcome.file_path,
            layer=layer,
            attempt=outcome.attempt,
            error=str(error) if error else "unknown error",
            error_type=type(error).__name__ if error else "",
            request=outcome.request.to_dict() if outcome.request else None,
            raw=outcome.raw,
        )

    def to_dict(self) -> dict:
        return {
            "file": self.file_path,
            "layer": self.layer,
            "attempt": self.attempt,
            "error": self.error,
            "error_type": self.error_type,
            "request": self.request,
            "raw": self.raw,
            "ts": self.ts,
        }


@dataclass
class FailureReport:
    """Files that could not be generated, plus every failed attempt for diagnostics."""

    entries: dict[str, FailureEntry] = field(default_factory=dict)  # unresolved file -> last failure
    history: list[FailureEntry] = field(default_factory=list)

    def record(self, entry: FailureEntry):
        self.history.append(entry)

    def give_up(self, entry: FailureEntry):
        self.entries[entry.file_path] = entry

    def attempts(self) -> dict[int, list[FailureEntry]]:
        grouped: dict[int, list[FailureEntry]] = {}
        for entry in self.history:
            grouped.setdefault(entry.attempt, []).append(entry)
        return grouped

    def is_empty(self) -> bool:
        return not self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> dict:
        return {
            "unresolved": [e.to_dict() for e in self.entries.values()],
            "history": [e.to_dict() for e in self.history],
        }

    def write(self, directory: Path) -> list[Path]:
        """Write one file per failed attempt number plus an unresolved summary. Returns the paths written."""
        directory.mkdir(parents=True, exist_ok=True)
        written = []
        for attempt, entries in sorted(self.attempts().items()):
            path = directory / f"failed-files-attempt-{attempt}.json"
            path.write_text(json.dumps([e.to_dict() for e in entries], indent=2, default=str), encoding="utf-8")
            written.append(path)
        summary = directory / "failed-files.json"
        summary.write_text(
            json.dumps([e.to_dict() for e in self.entries.values()], indent=2, default=str),
            encoding="utf-8",
        )
        written.append(summary)
        logger.info(f"Failure report written to {directory} ({len(self.entries)} unresolved)")
        return written


@dataclass
class FileGenerationResult:
    layers: list[list[str]] = field(default_factory=list)
    generated: list[str] = field(default_factory=list)
    invalid_files: list[str] = field(default_factory=list)
    report: FailureReport = field(default_factory=FailureReport)

    @property
    def failed_files(self) -> list[str]:
        return sorted(self.report.entries)

    @property
    def success(self) -> bool:
        return self.report.is_empty()

    def to_dict(self) -> dict:
        return {
            "layers": self.layers,
            "generated": self.generated,
            "invalid_files": self.invalid_files,
            "failed_files": self.failed_files,
        }


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass
class Event:
    type: str  # node.started | node.completed | node.failed | node.skipped | layer.* | file.*
    source: str
    ts: float = field(default_factory=time.time)
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type, "source": self.source, "ts": self.ts, "data": self.data}


# ---------------------------------------------------------------------------
# Build report
# ---------------------------------------------------------------------------


@dataclass
class BuildReport:
    results: dict[str, NodeResult] = field(default_factory=dict)
    state: ExecutionState = field(default_factory=ExecutionState)

    @property
    def success(self) -> bool:
        return not self.state.failed and not self.state.skipped and not self.state.waiting

    @property
    def failed_nodes(self) -> list[str]:
        return sorted(self.state.failed)

    @property
    def skipped_nodes(self) -> list[str]:
        return sorted(self.state.skipped)

    @property
    def failed_files(self) -> list[str]:
        failed: set[str] = set()
        for node_id in self.state.completed:
            data = self.results[node_id].data
            if isinstance(data, FileGenerationResult):
                failed.update(data.failed_files)
        return sorted(failed)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "state": self.state.to_dict(),
            "results": {k: v.to_dict() for k, v in self.results.items()},
            "failed_files": self.failed_files,
        }
