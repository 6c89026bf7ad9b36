"""TypeScript/JavaScript structural extractor."""

import re
import threading

from loguru import logger

from ..analysis.halstead import halstead_volume, maintainability_index
from ..core.exceptions import ParsingError
from ..core.models import (
    Declaration,
    DeclarationKind,
    Parameter,
    Property,
    SourceFact,
    Visibility,
)
from .syntax import (
    BRANCH_POINTS,
    DECLARATION_KINDS,
    Node,
    NodeKind,
    canonical_type,
    classify,
    clean_doc_comment,
    get_node_name,
    has_child_type,
    is_doc_comment,
    node_text,
    preceding_doc_comment,
    string_literal_value,
    walk,
)

CONSTANT_NAME_PATTERN = re.compile(r"^[A-Z][A-Z0-9]*(?:_[A-Z0-9]+)*$")

LITERAL_NODE_TYPES = frozenset(
    {
        "string",
        "template_string",
        "number",
        "true",
        "false",
        "null",
        "undefined",
        "object",
        "array",
        "regex",
    }
)


class TypeScriptExtractor:
    """Extracts declarations, branch points and imports with tree-sitter.

    One instance serves one grammar (``typescript``, ``tsx`` or
    ``javascript``). Parsers are created lazily and kept per thread, so a
    single extractor can be shared by a worker pool.
    """

    def __init__(self, language: str = "typescript") -> None:
        self.language = language
        self._local = threading.local()

    def _get_parser(self):
        """Get this thread's tree-sitter parser (lazy loading)."""
        parser = getattr(self._local, "parser", None)
        if parser is None:
            from tree_sitter_language_pack import get_parser

            parser = get_parser(self.language)
            self._local.parser = parser
            logger.debug(
                f"Initialized {self.language} parser in thread {threading.get_ident()}"
            )
        return parser

    def extract(self, content: str, path: str) -> SourceFact:
        """Extract the structural facts of one file.

        Args:
            content: Source text
            path: Root-relative path, recorded on the fact

        Returns:
            SourceFact for the file

        Raises:
            ParsingError: If the syntax tree contains errors
        """
        tree = self._get_parser().parse(content.encode("utf-8"))
        root = tree.root_node
        if root.has_error:
            line = self._first_error_line(root)
            raise ParsingError(
                f"Syntax error in {path}" + (f" near line {line}" if line else ""),
                {"path": path, "line": line, "language": self.language},
            )

        branch_points = 0
        imports: list[str] = []
        seen_imports: set[str] = set()

        for node, nested in walk(root):
            kind = classify(node)
            branch_points += BRANCH_POINTS[kind](node)

            source = ""
            if kind in (NodeKind.IMPORT, NodeKind.EXPORT):
                source = self._extract_import_source(node)
            elif kind is NodeKind.CALL:
                source = self._extract_call_import(node, nested)

            if source and source not in seen_imports:
                seen_imports.add(source)
                imports.append(source)

        volume = halstead_volume(content)
        line_count = len(content.splitlines())

        return SourceFact(
            path=path,
            language=self.language,
            declarations=tuple(self._extract_declarations(root)),
            imports=tuple(imports),
            branch_points=branch_points,
            description=self._file_description(root),
            line_count=line_count,
            halstead_volume=volume,
            maintainability=maintainability_index(volume, 1 + branch_points, line_count),
        )

    def _file_description(self, root: Node) -> str | None:
        """Description from the file's first block comment, when it is a ``/**`` block.

        A hashbang line and leading ``//`` comments (pragmas, lint directives)
        are skipped.
        """
        for child in root.named_children:
            if child.type == "hash_bang_line":
                continue
            if child.type != "comment":
                return None
            if node_text(child).startswith("//"):
                continue
            return clean_doc_comment(node_text(child)) if is_doc_comment(child) else None
        return None

    def _first_error_line(self, root: Node) -> int | None:
        for node, _nested in walk(root):
            if node.type == "ERROR" or node.is_missing:
                return node.start_point[0] + 1
        return None

    # --- Imports ---

    def _extract_import_source(self, node: Node) -> str:
        """Extract the module specifier of an import/export statement.

        Returns:
            Source module path string, or empty string for exports without one
        """
        source = node.child_by_field_name("source")
        # Only re-exports carry a module specifier
        if source is None and (node.type == "import_statement" or has_child_type(node, "from")):
            for child in node.children:
                if child.type == "string":
                    source = child
                    break
                if child.type == "from_clause":
                    source = child.child_by_field_name("source")
                    break
        return string_literal_value(source)

    def _extract_call_import(self, node: Node, nested: bool) -> str:
        """Extract the specifier of ``import('x')`` anywhere or a top-level ``require('x')``."""
        function = node.child_by_field_name("function")
        if function is None:
            return ""
        is_dynamic_import = function.type == "import"
        is_require = function.type == "identifier" and node_text(function) == "require"
        if not (is_dynamic_import or (is_require and not nested)):
            return ""

        arguments = node.child_by_field_name("arguments")
        if arguments is None:
            return ""
        for arg in arguments.named_children:
            if arg.type in ("string", "template_string"):
                return string_literal_value(arg)
            break
        return ""

    # --- Declarations ---

    def _extract_declarations(self, root: Node) -> list[Declaration]:
        declarations: list[Declaration] = []

        for statement in root.named_children:
            target = statement
            if statement.type == "export_statement":
                target = statement.child_by_field_name("declaration")
                if target is None:
                    continue

            kind = classify(target)
            description = preceding_doc_comment(statement)
            decorators = self._extract_decorators_from_node(statement)
            if target is not statement:
                decorators += self._extract_decorators_from_node(target)

            declaration_kind = DECLARATION_KINDS[kind]
            if declaration_kind is DeclarationKind.CLASS:
                declarations.append(self._extract_class(target, description, decorators))
            elif declaration_kind is DeclarationKind.INTERFACE:
                declarations.append(self._extract_interface(target, description))
            elif declaration_kind is DeclarationKind.FUNCTION:
                declarations.append(
                    self._extract_function(target, get_node_name(target), description)
                )
            elif kind is NodeKind.VARIABLE:
                declarations.extend(self._extract_variables(target, description))

        return declarations

    def _extract_class(
        self, node: Node, description: str | None, decorators: list[str]
    ) -> Declaration:
        superclass, implements = self._extract_class_heritage(node)
        members: list[Declaration] = []
        properties: list[Property] = []

        body = node.child_by_field_name("body")
        for member in body.named_children if body is not None else []:
            member_kind = classify(member)
            if member_kind is NodeKind.METHOD:
                method = self._extract_method(member)
                if method is not None:
                    members.append(method)
            elif member_kind is NodeKind.FIELD:
                prop = self._extract_property(member)
                if prop is not None:
                    properties.append(prop)

        return Declaration(
            kind=DeclarationKind.CLASS,
            name=get_node_name(node) or "default",
            members=tuple(members),
            properties=tuple(properties),
            superclass=superclass,
            implements=tuple(implements),
            decorators=tuple(decorators),
            description=description,
        )

    def _extract_class_heritage(self, node: Node) -> tuple[str | None, list[str]]:
        """Extract the base class and implemented interfaces of a class node.

        Handles grammar differences between JavaScript and TypeScript:
        - JavaScript:   class_heritage -> (extends keyword) + expression
        - TypeScript:   class_heritage -> extends_clause / implements_clause
        """
        superclass: str | None = None
        implements: list[str] = []

        for child in node.children:
            if child.type != "class_heritage":
                continue
            for heritage_child in child.children:
                if heritage_child.type == "extends_clause":
                    value = heritage_child.child_by_field_name("value")
                    if value is None and heritage_child.named_child_count:
                        value = heritage_child.named_children[0]
                    superclass = superclass or self._type_name(value)
                elif heritage_child.type == "implements_clause":
                    implements.extend(
                        name
                        for name in map(self._type_name, heritage_child.named_children)
                        if name
                    )
                elif heritage_child.type in (
                    "identifier",
                    "type_identifier",
                    "member_expression",
                ):
                    superclass = superclass or node_text(heritage_child)

        return superclass, implements

    def _type_name(self, node: Node | None) -> str | None:
        """Outer name of a type reference (``IFoo<Bar>`` -> ``IFoo``)."""
        if node is None:
            return None
        if node.type == "generic_type":
            name = node.child_by_field_name("name")
            if name is None and node.named_child_count:
                name = node.named_children[0]
            return node_text(name) or None
        return node_text(node) or None

    def _extract_method(self, node: Node) -> Declaration | None:
        name_node = node.child_by_field_name("name")
        name = node_text(name_node)
        if not name or name.startswith(("_", "#")):
            return None

        return Declaration(
            kind=DeclarationKind.FUNCTION,
            name=name,
            parameters=self._extract_parameters(node),
            return_type=canonical_type(node_text(node.child_by_field_name("return_type"))),
            is_async=has_child_type(node, "async"),
            is_static=has_child_type(node, "static"),
            visibility=self._extract_visibility(node),
            decorators=tuple(self._extract_preceding_decorators(node)),
            description=preceding_doc_comment(node),
        )

    def _extract_property(self, node: Node) -> Property | None:
        name_node = node.child_by_field_name("name") or node.child_by_field_name(
            "property"
        )
        name = node_text(name_node)
        if not name or name.startswith(("_", "#")):
            return None

        value = node.child_by_field_name("value")
        return Property(
            name=name,
            type=canonical_type(node_text(node.child_by_field_name("type"))),
            visibility=self._extract_visibility(node),
            optional=has_child_type(node, "?"),
            readonly=has_child_type(node, "readonly"),
            default=node_text(value) if value is not None else None,
        )

    def _extract_visibility(self, node: Node) -> Visibility | None:
        for child in node.children:
            if child.type == "accessibility_modifier":
                return Visibility(node_text(child).strip())
        return None

    def _extract_interface(self, node: Node, description: str | None) -> Declaration:
        extends: str | None = None
        for child in node.children:
            if child.type == "extends_type_clause" and child.named_child_count:
                extends = self._type_name(child.named_children[0])
                break

        properties: list[Property] = []
        body = node.child_by_field_name("body")
        for member in body.named_children if body is not None else []:
            if member.type != "property_signature":
                continue
            name = node_text(member.child_by_field_name("name"))
            if not name:
                continue
            properties.append(
                Property(
                    name=name,
                    type=canonical_type(node_text(member.child_by_field_name("type"))),
                    optional=has_child_type(member, "?"),
                    readonly=has_child_type(member, "readonly"),
                )
            )

        return Declaration(
            kind=DeclarationKind.INTERFACE,
            name=get_node_name(node) or "default",
            extends=extends,
            properties=tuple(properties),
            description=description,
        )

    def _extract_function(
        self, node: Node, name: str | None, description: str | None
    ) -> Declaration:
        return Declaration(
            kind=DeclarationKind.FUNCTION,
            name=name or "default",
            parameters=self._extract_parameters(node),
            return_type=canonical_type(node_text(node.child_by_field_name("return_type"))),
            is_async=has_child_type(node, "async"),
            description=description,
        )

    def _extract_variables(
        self, node: Node, description: str | None
    ) -> list[Declaration]:
        """Function-valued declarators and upper-snake literal constants."""
        is_const = bool(node.children) and node.children[0].type == "const"
        declarations: list[Declaration] = []

        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            value = declarator.child_by_field_name("value")
            if name_node is None or name_node.type != "identifier" or value is None:
                continue
            name = node_text(name_node)

            if classify(value) is NodeKind.CALLABLE_EXPRESSION:
                declarations.append(self._extract_function(value, name, description))
            elif (
                is_const
                and CONSTANT_NAME_PATTERN.match(name)
                and value.type in LITERAL_NODE_TYPES
            ):
                declarations.append(
                    Declaration(
                        kind=DeclarationKind.CONSTANT,
                        name=name,
                        value=node_text(value),
                        description=description,
                    )
                )

        return declarations

    # --- Parameters and decorators ---

    def _extract_parameters(self, node: Node) -> tuple[Parameter, ...]:
        """Extract function parameters from a JavaScript/TypeScript node."""
        params_node = node.child_by_field_name("parameters")
        if params_node is None:
            # Single unparenthesized arrow parameter: x => ...
            single = node.child_by_field_name("parameter")
            return (Parameter(name=node_text(single)),) if single is not None else ()

        parameters: list[Parameter] = []
        for param in params_node.named_children:
            if param.type in ("required_parameter", "optional_parameter"):
                pattern = param.child_by_field_name("pattern")
                rest = pattern is not None and pattern.type == "rest_pattern"
                value = param.child_by_field_name("value")
                name = node_text(pattern)
                parameters.append(
                    Parameter(
                        name=name[3:] if rest and name.startswith("...") else name,
                        type=canonical_type(node_text(param.child_by_field_name("type"))),
                        default=node_text(value) if value is not None else None,
                        optional=param.type == "optional_parameter" or value is not None,
                        rest=rest,
                    )
                )
            elif param.type == "identifier":
                parameters.append(Parameter(name=node_text(param)))
            elif param.type == "assignment_pattern":
                right = param.child_by_field_name("right")
                parameters.append(
                    Parameter(
                        name=node_text(param.child_by_field_name("left")),
                        default=node_text(right) if right is not None else None,
                        optional=True,
                    )
                )
            elif param.type == "rest_pattern":
                parameters.append(
                    Parameter(name=node_text(param).lstrip("."), rest=True)
                )

        return tuple(parameters)

    def _extract_decorators_from_node(self, node: Node) -> list[str]:
        """Extract decorators attached as children of a node."""
        return [node_text(child) for child in node.children if child.type == "decorator"]

    def _extract_preceding_decorators(self, node: Node) -> list[str]:
        """Decorators written before a class member (siblings in the class body)."""
        decorators = self._extract_decorators_from_node(node)
        sibling = node.prev_named_sibling
        preceding: list[str] = []
        while sibling is not None and sibling.type == "decorator":
            preceding.append(node_text(sibling))
            sibling = sibling.prev_named_sibling
        return list(reversed(preceding)) + decorators


class TSXExtractor(TypeScriptExtractor):
    """TypeScript extractor using the TSX grammar."""

    def __init__(self) -> None:
        super().__init__("tsx")


class JavaScriptExtractor(TypeScriptExtractor):
    """Extractor for plain JavaScript sources."""

    def __init__(self) -> None:
        super().__init__("javascript")
