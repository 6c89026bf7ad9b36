"""Cohesion scores for a single component.

The component score combines three views of how well its parts belong
together:

- method cohesion: how many parameter types endpoints of the same API share
- property cohesion: how many type properties are used by several endpoints
- semantic cohesion: how similar the words naming and describing it are
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from ..config.settings import CohesionWeights
from ..core.models import APIEndpoint, APIParameter, Component, clamp_unit

_TERM_SPLIT = re.compile(r"[^a-zA-Z0-9]+")


def count_shared_parameters(
    params1: Sequence[APIParameter], params2: Sequence[APIParameter]
) -> int:
    """Parameter pairs of equal type."""
    return sum(1 for p1 in params1 for p2 in params2 if p1.type == p2.type)


def method_cohesion(component: Component) -> float:
    """Shared parameter types over ordered endpoint pairs, normalized to [0, 1].

    Returns:
        0 without APIs or without at least two endpoints in one API
    """
    if not component.apis:
        return 0.0

    shared = 0
    comparisons = 0
    for api in component.apis:
        for i, first in enumerate(api.endpoints):
            for j, second in enumerate(api.endpoints):
                if i == j:
                    continue
                shared += count_shared_parameters(first.parameters, second.parameters)
                comparisons += 1

    if comparisons == 0:
        return 0.0
    return clamp_unit(shared / (comparisons * 2))


def _property_used_by(type_name: str, endpoint: APIEndpoint) -> bool:
    return any(p.type == type_name for p in endpoint.parameters) or (
        type_name in endpoint.return_type
    )


def property_cohesion(component: Component) -> float:
    """Fraction of type properties whose type several endpoints use."""
    if not component.apis:
        return 0.0

    shared = 0
    total = 0
    for api in component.apis:
        for type_definition in api.types:
            for type_name in type_definition.properties.values():
                total += 1
                users = sum(
                    1 for endpoint in api.endpoints if _property_used_by(type_name, endpoint)
                )
                if users > 1:
                    shared += 1

    return shared / total if total else 0.0


def semantic_terms(component: Component) -> list[str]:
    """Distinct lower-cased terms longer than two characters, in first-seen order."""
    texts = [component.name, component.description]
    for api in component.apis or ():
        texts.append(api.name)
        for endpoint in api.endpoints:
            texts.append(endpoint.name)
            texts.append(endpoint.description)

    terms: list[str] = []
    for text in texts:
        for term in _TERM_SPLIT.split(text):
            term = term.lower()
            if len(term) > 2 and term not in terms:
                terms.append(term)
    return terms


def levenshtein_distance(s1: str, s2: str) -> int:
    """Edit distance with unit insert, delete and substitute costs."""
    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i]
        for j, c2 in enumerate(s2, start=1):
            if c1 == c2:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j - 1], previous[j], current[j - 1]) + 1)
        previous = current
    return previous[-1]


def term_similarity(term1: str, term2: str) -> float:
    longest = max(len(term1), len(term2))
    if longest == 0:
        return 1.0
    return 1 - levenshtein_distance(term1, term2) / longest


def semantic_cohesion(component: Component) -> float:
    """Mean pairwise similarity of the component's terms, 1 for fewer than two."""
    terms = semantic_terms(component)
    if len(terms) < 2:
        return 1.0

    total = 0.0
    comparisons = 0
    for i in range(len(terms)):
        for j in range(i + 1, len(terms)):
            total += term_similarity(terms[i], terms[j])
            comparisons += 1
    return total / comparisons


def component_cohesion(
    component: Component, weights: CohesionWeights | None = None
) -> float:
    weights = weights or CohesionWeights()
    return clamp_unit(
        weights.method * method_cohesion(component)
        + weights.property * property_cohesion(component)
        + weights.semantic * semantic_cohesion(component)
    )
