"""High-level orchestration for resolving a static library link order."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

import networkx as nx

from link_order.analysis.catalog import LibraryCatalog, LibraryDescriptor, build_catalog
from link_order.analysis.dependency_graph import build_dependency_graph, order_libraries
from link_order.analysis.resolution import SymbolTable, build_symbol_table
from link_order.config import ResolverConfig
from link_order.io.link_directives import LinkDirective, link_directives

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class LinkOrderResult:
    catalog: LibraryCatalog
    table: SymbolTable
    graph: nx.DiGraph
    ordered: List[LibraryDescriptor]

    def directives(self) -> List[LinkDirective]:
        return link_directives(self.ordered)


def analyse_libraries(config: ResolverConfig) -> tuple[LibraryCatalog, SymbolTable, nx.DiGraph]:
    """Scan the configured root and build the symbol table and dependency graph."""

    catalog = build_catalog(config.root, jobs=config.jobs, follow_symlinks=config.follow_symlinks)
    libraries = catalog.descriptors()
    table = build_symbol_table(libraries)
    graph = build_dependency_graph(libraries, table)
    return catalog, table, graph


def resolve_link_order(config: ResolverConfig) -> LinkOrderResult:
    """
    Entry point for the whole resolution: catalog, symbol table, graph, order.

    Raises :class:`~link_order.errors.MultipleDefinitions` or
    :class:`~link_order.errors.CyclicDependency`; nothing is returned in those cases.
    """

    catalog, table, graph = analyse_libraries(config)
    ordered = order_libraries(graph)
    LOGGER.info("Resolved link order for %d libraries (%d edges)", len(ordered), graph.number_of_edges())
    return LinkOrderResult(catalog=catalog, table=table, graph=graph, ordered=ordered)


__all__ = ["LinkOrderResult", "analyse_libraries", "resolve_link_order"]
