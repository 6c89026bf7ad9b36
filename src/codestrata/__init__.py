"""codestrata - layered structural analysis of TypeScript/JavaScript source trees."""

__version__ = "0.1.0"

from .core.exceptions import CodeStrataError
from .core.models import AnalysisRequest, AnalysisResult, FileRecord, Layer
from .core.orchestrator import AnalysisOrchestrator

__all__ = [
    "AnalysisOrchestrator",
    "AnalysisRequest",
    "AnalysisResult",
    "CodeStrataError",
    "FileRecord",
    "Layer",
    "__version__",
]
