"""Import resolution and afferent/efferent coupling.

Efferent coupling (Ce) counts a component's outgoing relations, afferent
coupling (Ca) its incoming ones. Instability Ce / (Ca + Ce) is 0 for a
component nobody depends on and that depends on nothing.
"""

from __future__ import annotations

import posixpath
from collections.abc import Collection, Iterable
from dataclasses import dataclass

from ..config.defaults import RESOLVABLE_EXTENSIONS
from ..core.models import Relation

# Emitted-JS specifiers that commonly point at a TypeScript source
_EMITTED_EXTENSIONS = (".js", ".jsx", ".mjs", ".cjs")


def is_relative_import(module_name: str) -> bool:
    """Check if an import specifier is relative to the importing file.

    Examples:
        >>> is_relative_import("./utils")
        True

        >>> is_relative_import("lodash")
        False
    """
    return (
        module_name in (".", "..")
        or module_name.startswith("./")
        or module_name.startswith("../")
    )


def module_path(file_path: str) -> str:
    """Directory-level component path of a file ("." for root files)."""
    return posixpath.dirname(file_path) or "."


def resolve_import(
    specifier: str, importer: str, known_paths: Collection[str]
) -> str | None:
    """Resolve a relative specifier to a file of the analysis set.

    Tries the literal path, then each known extension, then ``index.*`` inside
    a directory of that name. ``./b.js`` also finds ``b.ts``.

    Args:
        specifier: Import specifier as written
        importer: Root-relative path of the importing file
        known_paths: Root-relative paths of the analysis set

    Returns:
        The resolved file path, or None for package and unresolvable imports
    """
    if not is_relative_import(specifier):
        return None

    target = posixpath.normpath(posixpath.join(posixpath.dirname(importer), specifier))
    if target == ".." or target.startswith("../"):
        return None

    stems = [target]
    stem, extension = posixpath.splitext(target)
    if extension in _EMITTED_EXTENSIONS:
        stems.append(stem)

    candidates: list[str] = []
    for base in stems:
        candidates.append(base)
        candidates.extend(base + ext for ext in RESOLVABLE_EXTENSIONS)
        index_base = "index" if base == "." else f"{base}/index"
        candidates.extend(index_base + ext for ext in RESOLVABLE_EXTENSIONS)

    for candidate in candidates:
        if candidate in known_paths:
            return candidate
    return None


@dataclass
class CouplingCounts:
    """Afferent/efferent counts for one component."""

    afferent: int = 0
    efferent: int = 0

    @property
    def instability(self) -> float:
        """Ce / (Ca + Ce), 0 when the component has no relations."""
        total = self.afferent + self.efferent
        if total == 0:
            return 0.0
        return self.efferent / total


def count_coupling(
    component_paths: Iterable[str], relations: Iterable[Relation]
) -> dict[str, CouplingCounts]:
    """Count incoming and outgoing relations per component."""
    counts = {path: CouplingCounts() for path in component_paths}
    for relation in relations:
        if relation.source in counts:
            counts[relation.source].efferent += 1
        if relation.target in counts:
            counts[relation.target].afferent += 1
    return counts
