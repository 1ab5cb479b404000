"""Visualization helpers for library dependency graphs."""

from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import networkx as nx


def _directory_colors(graph: nx.DiGraph) -> dict[str, str]:
    directories = sorted({str(Path(data.get("path", "")).parent) for _, data in graph.nodes(data=True)})
    palette = plt.get_cmap("tab20")
    colors = {}
    for idx, directory in enumerate(directories):
        colors[directory] = palette(idx % palette.N)
    return colors


def _layered_positions(graph: nx.DiGraph) -> dict:
    layered = graph.copy()
    for layer, names in enumerate(nx.topological_generations(layered)):
        for name in names:
            layered.nodes[name]["layer"] = layer
    return nx.multipartite_layout(layered, subset_key="layer", align="horizontal")


def plot_dependency_graph(
    graph: nx.DiGraph,
    output_path: Path,
    *,
    layout: str = "layered",
    title: str | None = None,
) -> Path:
    """
    Render a dependency graph to ``output_path`` using matplotlib.

    The ``layered`` layout stacks libraries by topological generation so link order reads top to
    bottom; cyclic graphs fall back to a spring layout. Nodes are coloured by directory.
    """

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if graph.number_of_nodes() == 0:
        raise ValueError("Graph contains no libraries to visualize.")

    if layout == "layered" and nx.is_directed_acyclic_graph(graph):
        positions = _layered_positions(graph)
    else:
        positions = nx.spring_layout(graph, seed=42, iterations=100)

    colors = _directory_colors(graph)
    node_colours = [colors.get(str(Path(data.get("path", "")).parent)) for _, data in graph.nodes(data=True)]

    plt.figure(figsize=(12, 12))
    nx.draw_networkx_edges(graph, positions, alpha=0.4, width=0.8, arrows=True, arrowsize=8)
    nx.draw_networkx_nodes(graph, positions, node_color=node_colours, node_size=300, alpha=0.9)
    if graph.number_of_nodes() <= 150:
        nx.draw_networkx_labels(graph, positions, font_size=7)

    plt.title(title or f"{graph.number_of_nodes()} libraries, {graph.number_of_edges()} dependencies")
    plt.axis("off")
    plt.tight_layout()
    plt.savefig(output_path, dpi=200)
    plt.close()
    return output_path


__all__ = ["plot_dependency_graph"]
