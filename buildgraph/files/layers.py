"""Cycle detection, topological sort and concurrency layers (Kahn's algorithm)."""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Iterable, Mapping

from buildgraph.errors import CycleError, GraphError
from buildgraph.models import FileInfo

logger = logging.getLogger(__name__)


def _adjacency(edges: Iterable[tuple[str, str]]) -> tuple[list[str], dict[str, list[str]]]:
    """Nodes in first-appearance order, and dependency -> dependents."""
    order: dict[str, None] = {}
    children: dict[str, list[str]] = defaultdict(list)
    for dep, dependent in edges:
        order.setdefault(dep, None)
        order.setdefault(dependent, None)
        if dependent not in children[dep]:
            children[dep].append(dependent)
    return list(order), children


def find_cycle(edges: Iterable[tuple[str, str]]) -> list[str]:
    """Return one cycle as a closed path [a, b, ..., a], or [] when the graph is acyclic."""
    nodes, children = _adjacency(edges)
    state: dict[str, int] = {}  # 1 = on the current path, 2 = done

    for root in nodes:
        if root in state:
            continue
        path = [root]
        stack = [iter(children[root])]
        state[root] = 1
        while stack:
            child = next(stack[-1], None)
            if child is None:
                state[path.pop()] = 2
                stack.pop()
                continue
            if state.get(child) == 1:
                return path[path.index(child):] + [child]
            if child not in state:
                state[child] = 1
                path.append(child)
                stack.append(iter(children[child]))
    return []


def detect_cycles(edges: Iterable[tuple[str, str]]) -> None:
    cycle = find_cycle(list(edges))
    if cycle:
        raise CycleError(
            f"Circular dependency detected in the file structure: {' -> '.join(cycle)}",
            nodes=sorted(set(cycle)),
            cycle=cycle,
        )


def topological_sort(edges: Iterable[tuple[str, str]], nodes: Iterable[str] = ()) -> list[str]:
    """Linearize the graph, dependencies first.

    Nodes that appear in `nodes` but in no edge are prepended, since they have
    no ordering constraints.
    """
    edges = list(edges)
    ordered, children = _adjacency(edges)
    in_degree = {n: 0 for n in ordered}
    for dep in ordered:
        for child in children[dep]:
            in_degree[child] += 1

    queue = deque(n for n in ordered if in_degree[n] == 0)
    result: list[str] = []
    while queue:
        node = queue.popleft()
        result.append(node)
        for child in children[node]:
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)

    if len(result) != len(ordered):
        detect_cycles(edges)
        # find_cycle always locates a cycle when Kahn stalls
        raise CycleError("Circular dependency detected in the file structure")

    sorted_set = set(result)
    isolated = sorted(n for n in set(nodes) if n not in sorted_set)
    return isolated + result


def build_layers(dependency_map: Mapping[str, Iterable[str]]) -> list[list[str]]:
    """Group nodes into layers whose dependencies all live in earlier layers.

    Args:
        dependency_map: node -> the nodes it depends on. Every dependency must be a key.

    Raises:
        CycleError: some nodes can never reach in-degree 0.
    """
    in_degree: dict[str, int] = {node: 0 for node in dependency_map}
    dependents: dict[str, list[str]] = defaultdict(list)

    for node, deps in dependency_map.items():
        for dep in set(deps):
            if dep not in in_degree:
                raise GraphError(f"'{node}' depends on unknown node '{dep}'")
            in_degree[node] += 1
            dependents[dep].append(node)

    layers: list[list[str]] = []
    layer = sorted(n for n, degree in in_degree.items() if degree == 0)
    while layer:
        layers.append(layer)
        next_layer: list[str] = []
        for node in layer:
            for child in dependents[node]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    next_layer.append(child)
        layer = sorted(next_layer)

    leftover = sorted(n for n, degree in in_degree.items() if degree > 0)
    if leftover:
        raise CycleError(
            f"Cycle or leftover dependencies detected for: {', '.join(leftover)}",
            nodes=leftover,
        )
    return layers


def build_concurrency_layers(nodes: Iterable[str], file_infos: Mapping[str, FileInfo]) -> list[list[str]]:
    """Concurrency layers for a resolved file graph."""
    dependency_map = {
        node: (file_infos[node].depends_on if node in file_infos else []) for node in nodes
    }
    layers = build_layers(dependency_map)
    logger.debug(f"Built {len(layers)} concurrency layers for {len(dependency_map)} files")
    return layers
