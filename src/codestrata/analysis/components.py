"""Group source facts into components."""

from __future__ import annotations

import posixpath
import re
from collections.abc import Sequence
from statistics import fmean

from loguru import logger

from ..core.models import (
    APIDefinition,
    APIEndpoint,
    APIParameter,
    APITypeDefinition,
    Component,
    ComponentKind,
    Declaration,
    DeclarationKind,
    HttpMethod,
    Layer,
    SourceFact,
    Visibility,
)
from .coupling import module_path, resolve_import

ROUTE_DECORATOR_PATTERN = re.compile(
    r"^@(Get|Post|Put|Delete|Patch)\s*\(\s*(?:(['\"`])(.*?)\2)?"
)


def component_path(file_path: str, layer: Layer) -> str:
    """Path of the component that owns a file at the given layer."""
    return file_path if layer is Layer.DETAIL else module_path(file_path)


def is_public_endpoint(method: Declaration) -> bool:
    """Public, non-underscore, non-constructor methods become endpoints."""
    return (
        method.kind is DeclarationKind.FUNCTION
        and method.name != "constructor"
        and not method.name.startswith("_")
        and method.visibility in (None, Visibility.PUBLIC)
    )


def route_from_decorators(method: Declaration) -> tuple[HttpMethod, str]:
    """HTTP verb and path of an endpoint.

    A route decorator (``@Get('/users')``, ``@Post()``) wins; otherwise the
    endpoint is ``GET /<method name>``.
    """
    for decorator in method.decorators:
        match = ROUTE_DECORATOR_PATTERN.match(decorator.strip())
        if match is None:
            continue
        path = match.group(3) or method.name
        return HttpMethod(match.group(1).upper()), "/" + path.lstrip("/")
    return HttpMethod.GET, f"/{method.name}"


def build_endpoint(method: Declaration) -> APIEndpoint:
    verb, path = route_from_decorators(method)
    return APIEndpoint(
        name=method.name,
        path=path,
        method=verb,
        parameters=tuple(
            APIParameter(name=param.name, type=param.type, required=not param.optional)
            for param in method.parameters
        ),
        return_type=method.return_type,
        description=method.description or "",
    )


def type_definition(declaration: Declaration) -> APITypeDefinition:
    return APITypeDefinition(
        name=declaration.name,
        kind=declaration.kind,
        properties={prop.name: prop.type for prop in declaration.properties},
        description=declaration.description or "",
    )


def extract_apis(facts: Sequence[SourceFact]) -> list[APIDefinition]:
    """One API definition per class in the given files.

    Each lists the class's public methods as endpoints, and the class itself
    plus the interfaces of its file as types.
    """
    apis: list[APIDefinition] = []
    for fact in facts:
        interfaces = [
            type_definition(declaration)
            for declaration in fact.declarations
            if declaration.kind is DeclarationKind.INTERFACE
        ]
        for declaration in fact.declarations:
            if declaration.kind is not DeclarationKind.CLASS:
                continue
            apis.append(
                APIDefinition(
                    name=declaration.name,
                    endpoints=tuple(
                        build_endpoint(member)
                        for member in declaration.members
                        if is_public_endpoint(member)
                    ),
                    types=(type_definition(declaration), *interfaces),
                )
            )
    return apis


def describe(facts: Sequence[SourceFact]) -> str:
    """Distinct documentation fragments of the files, joined by ". "."""
    fragments: list[str] = []
    for fact in facts:
        for fragment in fact.documentation():
            if fragment not in fragments:
                fragments.append(fragment)
    return ". ".join(fragments)


class ComponentBuilder:
    """Builds the components of one layer from source facts."""

    def build(self, facts: Sequence[SourceFact], granularity: Layer | str) -> list[Component]:
        """Group facts into components.

        Args:
            facts: Facts of the analysis set
            granularity: ``top``/``middle`` group by directory, ``detail``
                makes one component per file

        Returns:
            Components sorted by path
        """
        layer = Layer(granularity)
        known_paths = {fact.path for fact in facts}

        groups: dict[str, list[SourceFact]] = {}
        for fact in sorted(facts, key=lambda fact: fact.path):
            groups.setdefault(component_path(fact.path, layer), []).append(fact)

        components = [
            self._build_component(path, members, layer, known_paths)
            for path, members in sorted(groups.items())
        ]
        logger.debug(
            f"Built {len(components)} {layer} components from {len(facts)} files"
        )
        return components

    def _build_component(
        self,
        path: str,
        members: list[SourceFact],
        layer: Layer,
        known_paths: set[str],
    ) -> Component:
        imports: list[str] = []
        dependencies: list[str] = []
        for fact in members:
            targets: list[str] = []
            for specifier in fact.imports:
                if specifier not in imports:
                    imports.append(specifier)
                resolved = resolve_import(specifier, fact.path, known_paths)
                if resolved is None:
                    continue
                target = component_path(resolved, layer)
                if target != path and target not in targets:
                    targets.append(target)
            # one reference per importing file
            dependencies.extend(targets)

        declared_types: list[str] = []
        extends: list[str] = []
        implements: list[str] = []
        for fact in members:
            for declaration in fact.declarations:
                if declaration.kind in (DeclarationKind.CLASS, DeclarationKind.INTERFACE):
                    declared_types.append(declaration.name)
                base = declaration.superclass or declaration.extends
                if base:
                    extends.append(base)
                implements.extend(declaration.implements)

        frequencies = [
            fact.change_frequency for fact in members if fact.change_frequency is not None
        ]
        apis = extract_apis(members) if layer is not Layer.TOP else []

        return Component(
            path=path,
            kind=ComponentKind.FILE if layer is Layer.DETAIL else ComponentKind.MODULE,
            name=posixpath.basename(path) or path,
            description=describe(members),
            complexity=fmean(fact.cyclomatic_complexity for fact in members),
            imports=tuple(imports),
            dependencies=tuple(dependencies),
            files=tuple(fact.path for fact in members),
            loc=sum(fact.line_count for fact in members),
            declared_types=tuple(dict.fromkeys(declared_types)),
            extends=tuple(dict.fromkeys(extends)),
            implements=tuple(dict.fromkeys(implements)),
            apis=tuple(apis) if apis else None,
            maintainability=fmean(fact.maintainability for fact in members),
            change_frequency=fmean(frequencies) if frequencies else None,
        )
