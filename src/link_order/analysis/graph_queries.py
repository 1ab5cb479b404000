"""Helpers for explaining why libraries depend on each other."""

from __future__ import annotations

from typing import List, Optional

import networkx as nx

NodeId = str


def _require_node(graph: nx.DiGraph, node: NodeId) -> None:
    if node not in graph:
        raise KeyError(f"Unknown library: {node}")


def edge_symbols(graph: nx.DiGraph, dependent: NodeId, dependency: NodeId) -> List[str]:
    """Names of the symbols ``dependent`` takes from ``dependency`` directly (sorted)."""

    if not graph.has_edge(dependent, dependency):
        return []
    return sorted(str(symbol) for symbol in graph.edges[dependent, dependency].get("symbols", ()))


def dependency_path(graph: nx.DiGraph, dependent: NodeId, dependency: NodeId) -> Optional[List[NodeId]]:
    """Shortest chain of libraries leading from ``dependent`` to ``dependency``, if any."""

    _require_node(graph, dependent)
    _require_node(graph, dependency)
    try:
        return nx.shortest_path(graph, source=dependent, target=dependency)
    except nx.NetworkXNoPath:
        return None


def transitive_dependencies(graph: nx.DiGraph, library: NodeId) -> set[NodeId]:
    """Every library ``library`` needs, directly or through other libraries."""

    _require_node(graph, library)
    return set(nx.descendants(graph, library))


__all__ = ["dependency_path", "edge_symbols", "transitive_dependencies"]
