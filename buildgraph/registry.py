"""Node registry: the static table of build nodes and their handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable

from buildgraph.errors import ConfigurationError, CycleError, DuplicateNodeError
from buildgraph.files.layers import build_layers
from buildgraph.models import BuildNode

if TYPE_CHECKING:
    from buildgraph.context import BuilderContext

logger = logging.getLogger(__name__)

# Handlers may be sync or async; they receive the run's BuilderContext
NodeHandler = Callable[["BuilderContext"], Awaitable[Any] | Any]


class NodeRegistry:
    """Registry of build nodes and their implementations, in registration order."""

    def __init__(self):
        self._nodes: dict[str, BuildNode] = {}
        self._handlers: dict[str, NodeHandler] = {}

    def register(self, node: BuildNode, handler: NodeHandler) -> BuildNode:
        """Register a node with its handler. Redeclaring an id is a configuration error."""
        if not node.id:
            raise ConfigurationError("Build node id must be a non-empty string")
        if node.id in self._nodes:
            raise DuplicateNodeError(node.id)
        if node.id in node.requires:
            raise ConfigurationError(f"Build node '{node.id}' requires itself")
        if len(set(node.requires)) != len(node.requires):
            raise ConfigurationError(f"Build node '{node.id}' lists a requirement twice")
        if not callable(handler):
            raise ConfigurationError(f"Handler for build node '{node.id}' is not callable")

        self._nodes[node.id] = node
        self._handlers[node.id] = handler
        logger.debug(f"Registered build node {node.id} (requires {node.requires})")
        return node

    def node(
        self,
        id: str,
        name: str = "",
        requires: Iterable[str] = (),
        output_type: type | tuple[type, ...] | None = None,
        **config: Any,
    ) -> Callable[[NodeHandler], NodeHandler]:
        """Decorator form of register()."""

        def decorator(handler: NodeHandler) -> NodeHandler:
            self.register(
                BuildNode(
                    id=id,
                    name=name or getattr(handler, "__name__", id),
                    requires=list(requires),
                    config=dict(config),
                    description=(handler.__doc__ or "").strip(),
                    output_type=output_type,
                ),
                handler,
            )
            return handler

        return decorator

    def get(self, node_id: str) -> BuildNode | None:
        return self._nodes.get(node_id)

    def handler(self, node_id: str) -> NodeHandler:
        return self._handlers[node_id]

    def ids(self) -> list[str]:
        return list(self._nodes.keys())

    def nodes(self) -> list[BuildNode]:
        return list(self._nodes.values())

    def validate(self):
        """Check every requirement exists and the requirement graph is acyclic."""
        for node in self._nodes.values():
            unknown = [r for r in node.requires if r not in self._nodes]
            if unknown:
                raise ConfigurationError(f"Build node '{node.id}' requires unknown node(s): {', '.join(unknown)}")
        try:
            build_layers({node.id: node.requires for node in self._nodes.values()})
        except CycleError as e:
            raise ConfigurationError(f"Build nodes form a dependency cycle: {', '.join(e.nodes)}") from e

    def dependents(self, node_id: str) -> list[str]:
        """Every node that requires `node_id`, directly or transitively, in registration order."""
        found: set[str] = set()
        frontier = {node_id}
        while frontier:
            frontier = {
                n.id for n in self._nodes.values()
                if n.id not in found and frontier.intersection(n.requires)
            }
            found |= frontier
        return [nid for nid in self._nodes if nid in found]

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)
