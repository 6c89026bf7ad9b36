"""Weighted relations between components."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Sequence

from loguru import logger

from ..config.settings import RelationWeights
from ..core.models import (
    APIDefinition,
    APIEndpoint,
    Component,
    Layer,
    Relation,
    RelationKind,
)

_TOKEN_SPLIT = re.compile(r"\W+")

# Parameter and return types carrying no information for endpoint matching
_OPAQUE_TYPES = frozenset({"any", ""})


def description_tokens(text: str) -> set[str]:
    return {token for token in _TOKEN_SPLIT.split(text.lower()) if token}


def responsibility_weight(source: Component, target: Component) -> float:
    """Shared description tokens over the larger token set."""
    source_tokens = description_tokens(source.description)
    target_tokens = description_tokens(target.description)
    larger = max(len(source_tokens), len(target_tokens))
    if larger == 0:
        return 0.0
    return len(source_tokens & target_tokens) / larger


def change_weight(source: Component, target: Component) -> float:
    """min/max ratio of change estimates, 0 when either is missing."""
    a, b = source.change_frequency, target.change_frequency
    if a is None or b is None:
        return 0.0
    if a == b:
        return 1.0 if a > 0 else 0.0
    return min(a, b) / max(a, b)


def endpoints_depend_on(source: APIEndpoint, target: APIEndpoint) -> bool:
    """Check if one endpoint depends on another.

    Signals: a shared parameter type, the target's return type contained in
    the source's, or one path contained in the other.
    """
    source_types = {p.type for p in source.parameters} - _OPAQUE_TYPES
    target_types = {p.type for p in target.parameters} - _OPAQUE_TYPES
    if source_types & target_types:
        return True

    if target.return_type not in _OPAQUE_TYPES and target.return_type in source.return_type:
        return True

    return target.path in source.path or source.path in target.path


def api_dependencies(source: APIDefinition, target: APIDefinition) -> list[str]:
    """Endpoint pairs ``a → b`` where ``a`` depends on ``b``."""
    return [
        f"{source_endpoint.name} → {target_endpoint.name}"
        for source_endpoint in source.endpoints
        for target_endpoint in target.endpoints
        if endpoints_depend_on(source_endpoint, target_endpoint)
    ]


def analyze_api_usage(
    source_apis: Sequence[APIDefinition], target_apis: Sequence[APIDefinition]
) -> str | None:
    """Describe how one component's APIs use another's."""
    usages = []
    for source_api in source_apis:
        for target_api in target_apis:
            dependencies = api_dependencies(source_api, target_api)
            if dependencies:
                usages.append(
                    f"{source_api.name} uses {target_api.name} for: {', '.join(dependencies)}"
                )
    return ". ".join(usages) or None


class RelationGraphBuilder:
    """Builds weighted, directed relations between components."""

    def __init__(self, weights: RelationWeights | None = None) -> None:
        self.weights = weights or RelationWeights()

    def weight(self, source: Component, target: Component, references: int) -> float:
        """Convex combination of import, responsibility and change weights."""
        import_weight = min(references / self.weights.import_saturation, 1.0)
        return (
            self.weights.imports * import_weight
            + self.weights.responsibility * responsibility_weight(source, target)
            + self.weights.change * change_weight(source, target)
        )

    def build(
        self, components: Sequence[Component], granularity: Layer | str
    ) -> list[Relation]:
        """Build relations for one layer.

        Returns:
            Relations ordered by (source, target, kind), never a self-relation
            and never two with the same (source, target, kind)
        """
        layer = Layer(granularity)
        ordered = sorted(components, key=lambda component: component.path)
        relations: dict[tuple[str, str, RelationKind], Relation] = {}

        for source in ordered:
            references = Counter(source.dependencies)
            for target in ordered:
                if target.path == source.path:
                    continue
                for relation in self._relate(source, target, references[target.path], layer):
                    relations.setdefault(
                        (relation.source, relation.target, relation.kind), relation
                    )

        result = [relations[key] for key in sorted(relations)]
        logger.debug(f"Built {len(result)} {layer} relations between {len(ordered)} components")
        return result

    def _relate(
        self, source: Component, target: Component, references: int, layer: Layer
    ) -> list[Relation]:
        usage = None
        if layer is not Layer.TOP and source.apis and target.apis:
            usage = analyze_api_usage(source.apis, target.apis)

        endpoint_signal = layer is Layer.DETAIL and usage is not None
        if references == 0 and not endpoint_signal:
            return []

        weight = self.weight(source, target, references)
        if weight <= 0:
            return []

        if layer is Layer.DETAIL:
            description = f"Relationship strength: {weight * 100:.1f}%"
            if usage:
                description = f"{description}. {usage}"
        else:
            description = usage

        kind = RelationKind.IMPORTS if references else RelationKind.USES
        relations = [
            Relation(
                source=source.path,
                target=target.path,
                kind=kind,
                weight=weight,
                description=description,
            )
        ]

        if layer is not Layer.TOP and references:
            declared = set(target.declared_types)
            for names, heritage_kind in (
                (source.extends, RelationKind.EXTENDS),
                (source.implements, RelationKind.IMPLEMENTS),
            ):
                inherited = [name for name in names if name in declared]
                if inherited:
                    relations.append(
                        Relation(
                            source=source.path,
                            target=target.path,
                            kind=heritage_kind,
                            weight=weight,
                            description=f"{heritage_kind} {', '.join(inherited)}",
                        )
                    )

        return relations
