"""Component, relation and metric analysis."""

from .components import ComponentBuilder
from .metrics import MetricsEngine
from .relations import RelationGraphBuilder

__all__ = ["ComponentBuilder", "MetricsEngine", "RelationGraphBuilder"]
