"""Typed exception hierarchy for codestrata.

Hierarchy
---------
CodeStrataError (base)
├── IgnoreRuleError            – ignore-rule discovery / parsing failures
│   └── RuleFileUnreadableError
├── ParsingError               – a single file could not be parsed
├── AnalysisError              – request-level analysis failures
│   └── InvalidLayerError
└── ConfigError                – configuration / validation errors

Only ``InvalidLayerError`` and ``ConfigError`` ever reach callers of the
orchestrator. Rule-file and parsing failures are recovered where they happen
and surface as warnings on the resolved rule set or the analysis result.
"""

from typing import Any


class CodeStrataError(Exception):
    """Base exception for codestrata."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = context or {}


# ── Ignore rules ────────────────────────────────────────────────────────


class IgnoreRuleError(CodeStrataError):
    """Ignore-rule related errors."""

    pass


class RuleFileUnreadableError(IgnoreRuleError):
    """An ignore-rule file exists but could not be read or decoded."""

    pass


# ── Parsing ─────────────────────────────────────────────────────────────


class ParsingError(CodeStrataError):
    """Source text could not be turned into a syntax tree without errors."""

    pass


# ── Analysis ────────────────────────────────────────────────────────────


class AnalysisError(CodeStrataError):
    """Analysis request failed as a whole."""

    pass


class InvalidLayerError(AnalysisError):
    """Requested layer is not one of top, middle or detail."""

    pass


# ── Configuration ───────────────────────────────────────────────────────


class ConfigError(CodeStrataError):
    """Configuration / validation errors."""

    pass
