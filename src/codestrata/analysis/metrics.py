"""Aggregate metrics over the components and relations of one layer."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from statistics import fmean

from loguru import logger

from ..config.settings import CohesionWeights
from ..core.models import Component, Metrics, Relation
from .cohesion import component_cohesion
from .coupling import count_coupling


def build_dependency_graph(relations: Iterable[Relation]) -> dict[str, set[str]]:
    """Adjacency sets keyed by source path."""
    graph: dict[str, set[str]] = {}
    for relation in relations:
        graph.setdefault(relation.source, set()).add(relation.target)
    return graph


def longest_path(graph: dict[str, set[str]], max_depth: int | None = None) -> int:
    """Length in edges of the longest simple path.

    DFS from every node in sorted order. The visited set only holds the
    current path, so nodes are released on backtrack and cycles end a path
    without ending the search. The search stops early once ``max_depth`` is
    reached.
    """
    best = 0
    on_path: set[str] = set()

    def dfs(node: str, depth: int) -> None:
        nonlocal best
        if node in on_path:
            return
        best = max(best, depth)
        if max_depth is not None and best >= max_depth:
            return

        on_path.add(node)
        for neighbor in sorted(graph.get(node, ())):
            dfs(neighbor, depth + 1)
        on_path.discard(node)

    for node in sorted(graph):
        dfs(node, 0)
        if max_depth is not None and best >= max_depth:
            return max_depth
    return best


class MetricsEngine:
    """Computes the Metrics of one analysis result."""

    def __init__(self, cohesion_weights: CohesionWeights | None = None) -> None:
        self.cohesion_weights = cohesion_weights or CohesionWeights()

    def compute(
        self,
        components: Sequence[Component],
        relations: Sequence[Relation],
        max_depth: int | None = None,
    ) -> Metrics:
        """Compute aggregate metrics.

        Args:
            components: Components of the layer
            relations: Relations between them
            max_depth: Optional cap on the reported dependency depth

        Returns:
            Metrics; all zeros for an empty component set
        """
        if not components:
            return Metrics()

        ordered = sorted(components, key=lambda component: component.path)
        coupling = count_coupling((c.path for c in ordered), relations)

        metrics = Metrics(
            total_components=len(ordered),
            average_complexity=fmean(c.complexity for c in ordered),
            dependency_depth=longest_path(build_dependency_graph(relations), max_depth),
            cohesion=fmean(component_cohesion(c, self.cohesion_weights) for c in ordered),
            coupling=fmean(counts.instability for counts in coupling.values()),
        )
        logger.debug(
            f"Metrics: {metrics.total_components} components, "
            f"depth {metrics.dependency_depth}, cohesion {metrics.cohesion:.2f}, "
            f"coupling {metrics.coupling:.2f}"
        )
        return metrics
