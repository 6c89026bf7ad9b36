"""Default configuration values for codestrata."""

from pathlib import Path

# Schema version stamped on every analysis result
SCHEMA_VERSION = "1.0.0"

# Ignore-rule files picked up while resolving rules
DEFAULT_IGNORE_FILE_NAMES = (".gitignore",)

# Virtual-environment directories. Always excluded, no include rule can
# bring them back.
ALWAYS_EXCLUDED_DIRS = frozenset({".venv", "venv"})

# Pre-seeded exclusions, matched against every path segment
DEFAULT_IGNORE_PATTERNS = [
    # Version control
    ".git",
    ".hg",
    ".svn",
    # JavaScript/Node.js
    "node_modules",
    "bower_components",
    ".npm",
    ".yarn",
    ".nyc_output",
    "coverage",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    # Python caches and environments
    "__pycache__",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    ".tox",
    ".venv",
    "venv",
    "*.pyc",
    "*.pyo",
    "*.pyd",
    "*.egg-info",
    # Build outputs
    "build",
    "dist",
    "out",
    ".next",
    # Generic caches and temp
    ".cache",
    ".tmp",
    "tmp",
    "*.log",
    "*.swp",
    "*.swo",
    # IDEs and editors
    ".idea",
    ".vscode",
    # OS files
    ".DS_Store",
    "Thumbs.db",
    # Common binary files
    "*.jpg",
    "*.jpeg",
    "*.png",
    "*.gif",
    "*.ico",
    "*.pdf",
    "*.exe",
    "*.dll",
    "*.so",
    "*.dylib",
]

# Test files, dropped unless a request asks for them
TEST_FILE_PATTERNS = [
    "*.test.*",
    "*.spec.*",
    "__tests__",
    "__mocks__",
    "test",
    "tests",
]

# Language mappings for structural extraction
LANGUAGE_MAPPINGS: dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}

# Extensions tried, in order, when resolving an extension-less import specifier
RESOLVABLE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts")

# Cache entries older than this are stale (seconds)
DEFAULT_CACHE_MAX_AGE = 3600.0

# Files larger than this are treated as having no content
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024

# Change-frequency estimate used when the file provider supplies none
DEFAULT_CHANGE_FREQUENCY = 0.5

# Placeholder verb for API endpoints without a route annotation
DEFAULT_HTTP_METHOD = "GET"


def get_default_config_path(project_root: Path) -> Path:
    """Get the default settings file path for a project."""
    return project_root / ".codestrata.yaml"


def get_language_from_extension(extension: str) -> str | None:
    """Get the grammar name for a file extension, or None if unsupported."""
    return LANGUAGE_MAPPINGS.get(extension.lower())
