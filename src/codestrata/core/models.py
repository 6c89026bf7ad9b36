"""Data models for layered structural analysis.

AnalysisResult is the single artifact handed to external renderers. Every
model here is frozen and keeps its sequences as tuples, so a result served
from the cache is exactly the value that was stored.

Field names are snake_case in Python. ``model_dump(by_alias=True)`` produces
the camelCase names renderers depend on (``averageComplexity``,
``dependencyDepth``, ``changeFrequency`` ...).
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..config.defaults import DEFAULT_HTTP_METHOD, SCHEMA_VERSION


def clamp_unit(value: float) -> float:
    """Clamp a score into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


def normalize_relative_path(path: str) -> str:
    """Normalize a root-relative path to forward slashes without ./ or /."""
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.strip("/")


class Layer(StrEnum):
    TOP = "top"
    MIDDLE = "middle"
    DETAIL = "detail"


class ComponentKind(StrEnum):
    FILE = "file"
    MODULE = "module"


class DeclarationKind(StrEnum):
    CLASS = "class"
    FUNCTION = "function"
    INTERFACE = "interface"
    CONSTANT = "constant"


class RelationKind(StrEnum):
    IMPORTS = "imports"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    USES = "uses"


class HttpMethod(StrEnum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class Visibility(StrEnum):
    PUBLIC = "public"
    PRIVATE = "private"
    PROTECTED = "protected"


class FrozenModel(BaseModel):
    """Base for all immutable, alias-serializable models."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )


# --- Ignore rules ---


class IgnoreRule(FrozenModel):
    """A single ignore pattern with its scope and polarity."""

    pattern: str = Field(..., description="Root-relative normalized pattern")
    scope: str = Field(default="", description="Directory the rule applies below")
    negated: bool = Field(default=False, description="Include polarity (!pattern)")
    directory_only: bool = False
    anchored: bool = False
    source: str = Field(default="<default>", description="Rule file or origin")
    line: int = 0

    @property
    def body(self) -> str:
        """Pattern without its scope prefix."""
        if self.scope and self.pattern.startswith(self.scope + "/"):
            return self.pattern[len(self.scope) + 1 :]
        return self.pattern


# --- File provider boundary ---


class FileRecord(FrozenModel):
    """One file handed over by the file provider."""

    path: str
    content: str | None = None
    size: int = Field(default=0, ge=0)
    change_frequency: float | None = Field(default=None, ge=0.0)

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        return normalize_relative_path(value)


# --- Structural facts ---


class Parameter(FrozenModel):
    """A function or method parameter."""

    name: str
    type: str = "any"
    default: str | None = None
    optional: bool = False
    rest: bool = False


class Property(FrozenModel):
    """A class field or interface member."""

    name: str
    type: str = "any"
    visibility: Visibility | None = None
    optional: bool = False
    readonly: bool = False
    default: str | None = None


class Declaration(FrozenModel):
    """A top-level declaration, or a method nested in a class."""

    kind: DeclarationKind
    name: str
    parameters: tuple[Parameter, ...] = ()
    return_type: str = "any"
    members: tuple[Declaration, ...] = ()
    properties: tuple[Property, ...] = ()
    superclass: str | None = None
    implements: tuple[str, ...] = ()
    extends: str | None = None
    is_async: bool = False
    is_static: bool = False
    visibility: Visibility | None = None
    value: str | None = None
    decorators: tuple[str, ...] = ()
    description: str | None = None


class SourceFact(FrozenModel):
    """Structure extracted from one file."""

    path: str
    language: str
    declarations: tuple[Declaration, ...] = ()
    imports: tuple[str, ...] = ()
    branch_points: int = Field(default=0, ge=0)
    description: str | None = None
    line_count: int = Field(default=0, ge=0)
    halstead_volume: float = Field(default=0.0, ge=0.0)
    maintainability: float = Field(default=0.0, ge=0.0, le=100.0)
    change_frequency: float | None = None

    @property
    def cyclomatic_complexity(self) -> int:
        return 1 + self.branch_points

    def documentation(self) -> list[str]:
        """File, declaration and method descriptions in source order."""
        fragments: list[str] = []
        if self.description:
            fragments.append(self.description)
        for declaration in self.declarations:
            if declaration.description:
                fragments.append(declaration.description)
            for member in declaration.members:
                if member.description:
                    fragments.append(member.description)
        return fragments


# --- API surface ---


class APIParameter(FrozenModel):
    name: str
    type: str = "any"
    description: str = ""
    required: bool = True


class APIEndpoint(FrozenModel):
    """A named operation exposed by a class.

    Without a route annotation in source the verb defaults to GET and the
    path to ``/<name>``; treat those as placeholders, not discovered routes.
    """

    name: str
    path: str
    method: HttpMethod = HttpMethod(DEFAULT_HTTP_METHOD)
    parameters: tuple[APIParameter, ...] = ()
    return_type: str = "any"
    description: str = ""


class APITypeDefinition(FrozenModel):
    name: str
    kind: DeclarationKind
    properties: dict[str, str] = Field(default_factory=dict)
    description: str = ""


class APIDefinition(FrozenModel):
    name: str
    version: str = SCHEMA_VERSION
    endpoints: tuple[APIEndpoint, ...] = ()
    types: tuple[APITypeDefinition, ...] = ()


# --- Components, relations, metrics ---


class Component(FrozenModel):
    """A logical analysis unit: one file or one directory-level module."""

    path: str
    kind: ComponentKind
    name: str
    description: str = ""
    complexity: float = 0.0
    imports: tuple[str, ...] = Field(
        default=(), description="Raw import specifiers of the member files"
    )
    dependencies: tuple[str, ...] = Field(
        default=(),
        description="Component paths the member files import, one per importing file",
    )
    files: tuple[str, ...] = ()
    loc: int = 0
    declared_types: tuple[str, ...] = Field(
        default=(), description="Classes and interfaces declared by the member files"
    )
    extends: tuple[str, ...] = Field(
        default=(), description="Base classes and extended interfaces named by them"
    )
    implements: tuple[str, ...] = ()
    apis: tuple[APIDefinition, ...] | None = None
    maintainability: float | None = None
    change_frequency: float | None = None


class Relation(FrozenModel):
    """A directed, weighted dependency between two components."""

    source: str
    target: str
    kind: RelationKind = RelationKind.IMPORTS
    weight: float = 0.0
    description: str | None = None

    @field_validator("weight")
    @classmethod
    def _clamp_weight(cls, value: float) -> float:
        return clamp_unit(value)


class Metrics(FrozenModel):
    """Aggregate quality figures for one analysis result."""

    total_components: int = 0
    average_complexity: float = 0.0
    dependency_depth: int = 0
    cohesion: float = 0.0
    coupling: float = 0.0
    test_coverage: float | None = None
    duplicate_code: float | None = None

    @field_validator("cohesion", "coupling")
    @classmethod
    def _clamp_scores(cls, value: float) -> float:
        return clamp_unit(value)


class AnalysisRequest(FrozenModel):
    """Parameters of one orchestrator call."""

    layer: Layer = Layer.TOP
    focus_path: str | None = None
    max_depth: int | None = Field(default=None, ge=0)
    include_tests: bool = False

    @field_validator("focus_path")
    @classmethod
    def _normalize_focus(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_relative_path(value) or None


class AnalysisResult(FrozenModel):
    """Components, relations and metrics for one layer."""

    layer: Layer
    components: tuple[Component, ...] = ()
    relations: tuple[Relation, ...] = ()
    metrics: Metrics = Field(default_factory=Metrics)
    timestamp: float = 0.0
    version: str = SCHEMA_VERSION
    warnings: tuple[str, ...] = ()

    def component(self, path: str) -> Component | None:
        """Look up a component by path."""
        for component in self.components:
            if component.path == path:
                return component
        return None

    def component_paths(self) -> set[str]:
        return {component.path for component in self.components}


class CacheEntry(FrozenModel):
    """A cached result with its creation time and content hash."""

    data: AnalysisResult
    timestamp: float
    hash: str
