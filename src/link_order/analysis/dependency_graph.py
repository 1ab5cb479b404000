"""Build the inter-library dependency graph and derive a single-pass link order."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List

import networkx as nx

from link_order.analysis.catalog import LibraryDescriptor
from link_order.analysis.resolution import SymbolTable
from link_order.errors import CyclicDependency

LOGGER = logging.getLogger(__name__)


def _add_library(graph: nx.DiGraph, library: LibraryDescriptor) -> None:
    graph.add_node(
        library.name,
        library=library,
        path=str(library.path),
        defined_count=len(library.defined),
        undefined_count=len(library.undefined),
    )


def build_dependency_graph(libraries: Iterable[LibraryDescriptor], table: SymbolTable) -> nx.DiGraph:
    """
    Turn resolved symbol references into ``dependent -> dependency`` edges.

    Each pair of libraries gets at most one edge; the symbols that produced it are collected in
    the edge's ``symbols`` attribute. References satisfied by the requesting library itself add
    no edge. References nothing in the scanned set defines are listed in
    ``graph.graph["unresolved"]`` and are otherwise ignored.
    """

    graph = nx.DiGraph(name="static_library_dependencies")
    for library in sorted(libraries, key=lambda lib: lib.name):
        _add_library(graph, library)

    unresolved: list[tuple[str, str]] = []
    seen_unresolved: set[tuple[bytes, str]] = set()

    for symbol, dependent in table.undefined:
        dependency = table.definer_of(symbol)
        if dependency is None:
            key = (symbol.raw, dependent.name)
            if key not in seen_unresolved:
                seen_unresolved.add(key)
                unresolved.append((str(symbol), dependent.name))
            continue
        if dependency == dependent:
            continue
        for library in (dependent, dependency):
            if library.name not in graph:
                _add_library(graph, library)
        if graph.has_edge(dependent.name, dependency.name):
            graph.edges[dependent.name, dependency.name]["symbols"].add(symbol.as_defined())
        else:
            graph.add_edge(dependent.name, dependency.name, symbols={symbol.as_defined()})

    if unresolved:
        LOGGER.info("%d symbol references are not defined by any scanned library", len(unresolved))
    graph.graph["unresolved"] = unresolved
    graph.graph["node_count"] = graph.number_of_nodes()
    graph.graph["edge_count"] = graph.number_of_edges()
    return graph


def _find_cycle(graph: nx.DiGraph) -> List[str]:
    try:
        edges = nx.find_cycle(graph)
    except nx.NetworkXNoCycle:  # pragma: no cover - only called once sorting failed
        return []
    return [source for source, _ in edges]


def order_libraries(graph: nx.DiGraph) -> List[LibraryDescriptor]:
    """
    Topologically sort ``graph`` so every library precedes the libraries it depends on.

    Ties are broken by library name, so the same input always yields the same order.
    """

    try:
        order = list(nx.lexicographical_topological_sort(graph))
    except nx.NetworkXUnfeasible as exc:
        raise CyclicDependency(_find_cycle(graph)) from exc
    return [graph.nodes[name]["library"] for name in order]


def export_dependency_graph(graph: nx.DiGraph, destination: Path) -> None:
    """Persist the dependency graph to JSON."""

    destination = Path(destination)
    payload = {
        "graph": graph.graph.get("name", destination.stem),
        "node_count": graph.number_of_nodes(),
        "edge_count": graph.number_of_edges(),
        "nodes": [],
        "edges": [],
        "unresolved": [
            {"symbol": symbol, "library": library} for symbol, library in graph.graph.get("unresolved", [])
        ],
    }

    for node, data in sorted(graph.nodes(data=True)):
        payload["nodes"].append(
            {
                "id": node,
                "path": data.get("path"),
                "defined_count": data.get("defined_count"),
                "undefined_count": data.get("undefined_count"),
            }
        )

    for source, target, data in sorted(graph.edges(data=True), key=lambda edge: (edge[0], edge[1])):
        symbols = sorted(str(symbol) for symbol in data.get("symbols", ()))
        payload["edges"].append({"source": source, "target": target, "symbols": symbols})

    destination.parent.mkdir(parents=True, exist_ok=True)
    with destination.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)


__all__ = ["build_dependency_graph", "export_dependency_graph", "order_libraries"]
