"""Core functionality for codestrata."""

from .exceptions import (
    AnalysisError,
    CodeStrataError,
    ConfigError,
    IgnoreRuleError,
    InvalidLayerError,
    ParsingError,
    RuleFileUnreadableError,
)

__all__ = [
    "AnalysisError",
    "CodeStrataError",
    "ConfigError",
    "IgnoreRuleError",
    "InvalidLayerError",
    "ParsingError",
    "RuleFileUnreadableError",
]
