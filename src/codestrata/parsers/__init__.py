"""Structural extractors for codestrata."""

from .registry import ExtractionBatch, ExtractorRegistry, get_extractor_registry
from .typescript import JavaScriptExtractor, TSXExtractor, TypeScriptExtractor

__all__ = [
    "ExtractionBatch",
    "ExtractorRegistry",
    "JavaScriptExtractor",
    "TSXExtractor",
    "TypeScriptExtractor",
    "get_extractor_registry",
]
