"""Tree-sitter node classification and small tree helpers.

Every tree-sitter node type the extractor cares about maps onto a closed
``NodeKind``. The extraction tables below are keyed by ``NodeKind`` and are
checked at import time: adding a kind without extending every table fails
immediately instead of silently falling through.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from enum import StrEnum
from typing import Any

from ..core.models import DeclarationKind

Node = Any  # tree_sitter.Node


class NodeKind(StrEnum):
    IF = "if"
    LOOP = "loop"
    TERNARY = "ternary"
    CASE = "case"
    LOGICAL = "logical"
    CLASS = "class"
    METHOD = "method"
    FIELD = "field"
    INTERFACE = "interface"
    FUNCTION = "function"
    CALLABLE_EXPRESSION = "callable_expression"
    VARIABLE = "variable"
    IMPORT = "import"
    EXPORT = "export"
    CALL = "call"
    COMMENT = "comment"
    DECORATOR = "decorator"
    OTHER = "other"


_NODE_TYPE_KINDS: dict[str, NodeKind] = {
    "if_statement": NodeKind.IF,
    "for_statement": NodeKind.LOOP,
    "for_in_statement": NodeKind.LOOP,  # also for...of
    "while_statement": NodeKind.LOOP,
    "do_statement": NodeKind.LOOP,
    "ternary_expression": NodeKind.TERNARY,
    "switch_case": NodeKind.CASE,
    "binary_expression": NodeKind.LOGICAL,
    "class_declaration": NodeKind.CLASS,
    "abstract_class_declaration": NodeKind.CLASS,
    "class": NodeKind.CLASS,
    "method_definition": NodeKind.METHOD,
    "public_field_definition": NodeKind.FIELD,
    "field_definition": NodeKind.FIELD,
    "interface_declaration": NodeKind.INTERFACE,
    "function_declaration": NodeKind.FUNCTION,
    "generator_function_declaration": NodeKind.FUNCTION,
    "arrow_function": NodeKind.CALLABLE_EXPRESSION,
    "function_expression": NodeKind.CALLABLE_EXPRESSION,
    "function": NodeKind.CALLABLE_EXPRESSION,
    "generator_function": NodeKind.CALLABLE_EXPRESSION,
    "lexical_declaration": NodeKind.VARIABLE,
    "variable_declaration": NodeKind.VARIABLE,
    "import_statement": NodeKind.IMPORT,
    "export_statement": NodeKind.EXPORT,
    "call_expression": NodeKind.CALL,
    "comment": NodeKind.COMMENT,
    "decorator": NodeKind.DECORATOR,
}

LOGICAL_OPERATORS = frozenset({"&&", "||"})


def classify(node: Node) -> NodeKind:
    """Map a tree-sitter node onto its ``NodeKind``."""
    return _NODE_TYPE_KINDS.get(node.type, NodeKind.OTHER)


def _logical_branches(node: Node) -> int:
    operator = node.child_by_field_name("operator")
    return 1 if operator is not None and node_text(operator) in LOGICAL_OPERATORS else 0


def _one(_node: Node) -> int:
    return 1


def _zero(_node: Node) -> int:
    return 0


# Branch points contributed by a node, per kind
BRANCH_POINTS: dict[NodeKind, Callable[[Node], int]] = {
    NodeKind.IF: _one,
    NodeKind.LOOP: _one,
    NodeKind.TERNARY: _one,
    NodeKind.CASE: _one,
    NodeKind.LOGICAL: _logical_branches,
    NodeKind.CLASS: _zero,
    NodeKind.METHOD: _zero,
    NodeKind.FIELD: _zero,
    NodeKind.INTERFACE: _zero,
    NodeKind.FUNCTION: _zero,
    NodeKind.CALLABLE_EXPRESSION: _zero,
    NodeKind.VARIABLE: _zero,
    NodeKind.IMPORT: _zero,
    NodeKind.EXPORT: _zero,
    NodeKind.CALL: _zero,
    NodeKind.COMMENT: _zero,
    NodeKind.DECORATOR: _zero,
    NodeKind.OTHER: _zero,
}

# Declaration produced by a top-level statement. VARIABLE is decided per
# declarator (function-valued or constant), the rest produce nothing.
DECLARATION_KINDS: dict[NodeKind, DeclarationKind | None] = {
    NodeKind.IF: None,
    NodeKind.LOOP: None,
    NodeKind.TERNARY: None,
    NodeKind.CASE: None,
    NodeKind.LOGICAL: None,
    NodeKind.CLASS: DeclarationKind.CLASS,
    NodeKind.METHOD: None,
    NodeKind.FIELD: None,
    NodeKind.INTERFACE: DeclarationKind.INTERFACE,
    NodeKind.FUNCTION: DeclarationKind.FUNCTION,
    NodeKind.CALLABLE_EXPRESSION: None,
    NodeKind.VARIABLE: None,
    NodeKind.IMPORT: None,
    NodeKind.EXPORT: None,
    NodeKind.CALL: None,
    NodeKind.COMMENT: None,
    NodeKind.DECORATOR: None,
    NodeKind.OTHER: None,
}

# Kinds whose bodies open a new (non top-level) scope
SCOPE_KINDS: dict[NodeKind, bool] = {
    NodeKind.IF: False,
    NodeKind.LOOP: False,
    NodeKind.TERNARY: False,
    NodeKind.CASE: False,
    NodeKind.LOGICAL: False,
    NodeKind.CLASS: True,
    NodeKind.METHOD: True,
    NodeKind.FIELD: False,
    NodeKind.INTERFACE: False,
    NodeKind.FUNCTION: True,
    NodeKind.CALLABLE_EXPRESSION: True,
    NodeKind.VARIABLE: False,
    NodeKind.IMPORT: False,
    NodeKind.EXPORT: False,
    NodeKind.CALL: False,
    NodeKind.COMMENT: False,
    NodeKind.DECORATOR: False,
    NodeKind.OTHER: False,
}


def _ensure_exhaustive(table: dict[NodeKind, Any], name: str) -> None:
    missing = [kind.value for kind in NodeKind if kind not in table]
    if missing:
        raise RuntimeError(f"{name} has no entry for node kinds: {', '.join(missing)}")


for _table_name, _table in (
    ("BRANCH_POINTS", BRANCH_POINTS),
    ("DECLARATION_KINDS", DECLARATION_KINDS),
    ("SCOPE_KINDS", SCOPE_KINDS),
):
    _ensure_exhaustive(_table, _table_name)


# --- Tree helpers ---


def node_text(node: Node | None) -> str:
    """Get text content of a node."""
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def get_node_name(node: Node) -> str | None:
    """Extract the declared name of a node."""
    name_node = node.child_by_field_name("name")
    if name_node is not None:
        return node_text(name_node)
    for child in node.children:
        if child.type in ("identifier", "property_identifier", "type_identifier"):
            return node_text(child)
    return None


def has_child_type(node: Node, *types: str) -> bool:
    return any(child.type in types for child in node.children)


def walk(root: Node) -> Iterator[tuple[Node, bool]]:
    """Yield ``(node, nested)`` pairs in source order.

    ``nested`` is True once the node sits inside a function, method or class
    body. Uses an explicit stack so deeply nested sources cannot exhaust the
    interpreter's recursion limit.
    """
    stack: list[tuple[Node, bool]] = [(root, False)]
    while stack:
        node, nested = stack.pop()
        yield node, nested
        child_nested = nested or SCOPE_KINDS[classify(node)]
        for child in reversed(node.children):
            stack.append((child, child_nested))


def string_literal_value(node: Node | None) -> str:
    """Strip the quotes from a string literal node."""
    return node_text(node).strip("\"'`")


# --- Types and documentation ---

CANONICAL_TYPES = frozenset({"string", "number", "boolean", "object"})

_GENERIC_ARRAY_RE = re.compile(r"^(?:Readonly)?Array<\s*(\w+)\s*>$")


def canonical_type(annotation: str | None) -> str:
    """Translate a type annotation to a canonical name.

    ``string``, ``number``, ``boolean``, ``object`` and arrays of those keep
    their name (``string[]``); everything else is ``"any"``.
    """
    if not annotation:
        return "any"
    text = annotation.strip().lstrip(":").strip()
    if text in CANONICAL_TYPES:
        return text
    if text.endswith("[]") and text[:-2].strip() in CANONICAL_TYPES:
        return f"{text[:-2].strip()}[]"
    match = _GENERIC_ARRAY_RE.match(text)
    if match and match.group(1) in CANONICAL_TYPES:
        return f"{match.group(1)}[]"
    return "any"


def is_doc_comment(node: Node | None) -> bool:
    return node is not None and node.type == "comment" and node_text(node).startswith("/**")


def clean_doc_comment(text: str) -> str | None:
    """Clean a ``/** ... */`` block into a single line of prose.

    Leading ``*`` are stripped per line, blank lines dropped, the rest joined
    with spaces.
    """
    body = text.strip()
    if body.startswith("/**"):
        body = body[3:]
    if body.endswith("*/"):
        body = body[:-2]

    cleaned_lines = []
    for line in body.splitlines():
        cleaned = line.strip().lstrip("*").strip()
        if cleaned:
            cleaned_lines.append(cleaned)

    return " ".join(cleaned_lines) if cleaned_lines else None


def preceding_doc_comment(node: Node) -> str | None:
    """Return the cleaned ``/**`` block right before a node, skipping decorators."""
    sibling = node.prev_named_sibling
    while sibling is not None and sibling.type == "decorator":
        sibling = sibling.prev_named_sibling
    if is_doc_comment(sibling):
        return clean_doc_comment(node_text(sibling))
    return None
