"""BuilderContext: runs registered build nodes in dependency order and stores their results."""

from __future__ import annotations

import dataclasses
import logging
import time
from types import MappingProxyType
from typing import Any, Mapping

from buildgraph.config import DEFAULT_MODEL
from buildgraph.errors import (
    FATAL_ERRORS,
    BuildAbortedError,
    ConfigurationError,
    DependencyFailedError,
    MissingNodeResultError,
    NodeOutputTypeError,
)
from buildgraph.events import EventBus
from buildgraph.files.generator import TextGenerator
from buildgraph.models import BuildNode, BuildReport, ExecutionState, GenerationRequest, NodeResult
from buildgraph.registry import NodeRegistry
from buildgraph.utils import generate_id
from buildgraph.virtual_dir import VirtualDirectory

logger = logging.getLogger(__name__)


def _node_id(node: str | BuildNode) -> str:
    return node.id if isinstance(node, BuildNode) else node


class BuilderContext:
    """One pipeline run over a NodeRegistry.

    Nodes start waiting, become pending once every required node completed,
    and run exactly once. When a node fails, every node that requires it,
    directly or transitively, is marked skipped. Configuration and graph
    errors raised by a handler stop the build: the remaining nodes are
    skipped and execute() re-raises the error.
    """

    def __init__(
        self,
        registry: NodeRegistry,
        global_context: Mapping[str, Any] | None = None,
        model: TextGenerator | None = None,
        virtual_directory: VirtualDirectory | None = None,
        event_bus: EventBus | None = None,
        run_id: str | None = None,
    ):
        if model is None:
            from buildgraph.providers import chat as model

        self.registry = registry
        self.run_id = run_id or generate_id()
        self.model = model
        self.virtual_directory = virtual_directory
        self.event_bus = event_bus or EventBus()
        self.state = ExecutionState()
        self.current_node: BuildNode | None = None
        self._global_context = MappingProxyType(dict(global_context or {}))
        self._results: dict[str, NodeResult] = {}
        self._started = False

    # ------------------------------------------------------------------
    # Accessors for handlers
    # ------------------------------------------------------------------

    @property
    def global_context(self) -> Mapping[str, Any]:
        return self._global_context

    def get_global_context(self, key: str, default: Any = None) -> Any:
        return self._global_context.get(key, default)

    def get_node_result(self, node: str | BuildNode) -> NodeResult:
        node_id = _node_id(node)
        if node_id not in self.state.completed:
            raise MissingNodeResultError(node_id)
        return self._results[node_id]

    def get_node_data(self, node: str | BuildNode) -> Any:
        return self.get_node_result(node).data

    def node_config(self, key: str, default: Any = None) -> Any:
        """Config value of the node currently running."""
        if self.current_node is None:
            return default
        return self.current_node.config.get(key, default)

    @property
    def results(self) -> Mapping[str, NodeResult]:
        return MappingProxyType(self._results)

    async def chat(self, prompt: str | list[dict], model: str | None = None, purpose: str = "") -> str:
        """Send a prompt (or role-tagged messages) to the run's generation capability."""
        model = model or self.node_config("model") or self.get_global_context("model", DEFAULT_MODEL)
        if isinstance(prompt, str):
            request = GenerationRequest(model=model, prompt=prompt)
        else:
            request = GenerationRequest(model=model, messages=list(prompt))

        start = time.monotonic()
        text = await self.model(request)
        source = self.current_node.id if self.current_node else "context"
        logger.info(f"[{source}] {purpose or 'chat'} took {time.monotonic() - start:.2f}s")
        return text

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self) -> BuildReport:
        if self._started:
            raise ConfigurationError(f"Build {self.run_id} has already been executed")
        self._started = True
        self.registry.validate()

        for node_id in self.registry.ids():
            self.state.move(node_id, "waiting")

        logger.info(f"Build {self.run_id}: executing {len(self.registry)} node(s)")
        self.event_bus.emit("build.started", self.run_id, nodes=self.registry.ids())

        while True:
            self._promote_ready()
            node_id = next((n for n in self.registry.ids() if n in self.state.pending), None)
            if node_id is None:
                break
            result = await self._run_node(node_id)
            if not result.success and isinstance(result.error, FATAL_ERRORS):
                self._abort(node_id, result.error)
                raise result.error

        if self.state.waiting:
            logger.error(f"Build {self.run_id}: nodes never became ready: {sorted(self.state.waiting)}")

        report = BuildReport(results=dict(self._results), state=self.state)
        self.event_bus.emit("build.finished", self.run_id, success=report.success)
        logger.info(
            f"Build {self.run_id} finished: {len(self.state.completed)} completed, "
            f"{len(self.state.failed)} failed, {len(self.state.skipped)} skipped"
        )
        return report

    def _promote_ready(self):
        for node in self.registry.nodes():
            if node.id in self.state.waiting and all(r in self.state.completed for r in node.requires):
                self.state.move(node.id, "pending")

    async def _run_node(self, node_id: str) -> NodeResult:
        node = self.registry.get(node_id)
        handler = self.registry.handler(node_id)

        logger.info(f"Executing node {node.id}: {node.name}")
        self.event_bus.emit("node.started", node.id, name=node.name)

        self.current_node = node
        start = time.monotonic()
        try:
            value = handler(self)
            # Handle both sync and async handlers
            if hasattr(value, "__await__"):
                value = await value
            result = self._to_result(node, value, time.monotonic() - start)
        except Exception as e:
            logger.error(f"Node {node.id} failed: {e}", exc_info=True)
            result = NodeResult(success=False, error=e, duration=time.monotonic() - start)
        finally:
            self.current_node = None

        self._results[node.id] = result
        if result.success:
            self.state.move(node.id, "completed")
            self.event_bus.emit("node.completed", node.id, duration=result.duration)
            logger.info(f"Node {node.id} completed in {result.duration:.2f}s")
        else:
            self.state.move(node.id, "failed")
            self.event_bus.emit("node.failed", node.id, error=str(result.error))
            logger.error(f"Node {node.id} failed: {result.error}")
            self._skip_dependents(node.id)
        return result

    def _to_result(self, node: BuildNode, value: Any, duration: float) -> NodeResult:
        if isinstance(value, NodeResult):
            result = dataclasses.replace(value, duration=duration)
        else:
            result = NodeResult(success=True, data=value, duration=duration)

        if result.success and node.output_type is not None and not isinstance(result.data, node.output_type):
            expected = getattr(node.output_type, "__name__", str(node.output_type))
            error = NodeOutputTypeError(
                f"Node '{node.id}' produced {type(result.data).__name__}, expected {expected}"
            )
            return NodeResult(success=False, error=error, duration=duration)
        return result

    def _skip_dependents(self, failed_id: str):
        for dependent in self.registry.dependents(failed_id):
            if self.state.status_of(dependent) not in ("waiting", "pending"):
                continue
            error = DependencyFailedError(dependent, [failed_id])
            self._results[dependent] = NodeResult(success=False, error=error, skipped=True)
            self.state.move(dependent, "skipped")
            self.event_bus.emit("node.skipped", dependent, failed=failed_id)
            logger.warning(str(error))

    def _abort(self, failed_id: str, error: Exception):
        """Skip every node that has not run yet after a fatal error in `failed_id`."""
        for node_id in self.registry.ids():
            if self.state.status_of(node_id) not in ("waiting", "pending"):
                continue
            self._results[node_id] = NodeResult(
                success=False, error=BuildAbortedError(node_id, failed_id), skipped=True
            )
            self.state.move(node_id, "skipped")
            self.event_bus.emit("node.skipped", node_id, failed=failed_id)

        self.event_bus.emit("build.aborted", self.run_id, node=failed_id, error=str(error))
        logger.error(f"Build {self.run_id} aborted by {type(error).__name__} in node {failed_id}: {error}")
