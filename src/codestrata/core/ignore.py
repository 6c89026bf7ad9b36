"""Ignore-rule resolution for the analysis set.

Rules come from three places, applied in this order:

1. pre-seeded defaults (dependency caches, VCS metadata, build output ...)
2. ignore-rule files, from the filesystem root down to the analysis root and
   then down into the analysis tree, each scoped to its own directory
3. extra exclude/include globs supplied by the caller

The last matching rule decides. Negated rules (``!pattern``) re-include a
path an earlier, shallower rule excluded.
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from functools import lru_cache, partial
from pathlib import Path

from loguru import logger

from ..config.defaults import (
    ALWAYS_EXCLUDED_DIRS,
    DEFAULT_IGNORE_FILE_NAMES,
    DEFAULT_IGNORE_PATTERNS,
)
from ..config.settings import AnalysisSettings
from .exceptions import RuleFileUnreadableError
from .models import IgnoreRule

_GLOB_CHARS = frozenset("*?[")

DEFAULT_SOURCE = "<default>"
CONFIG_SOURCE = "<config>"


def _has_glob(pattern: str) -> bool:
    return any(char in _GLOB_CHARS for char in pattern)


@lru_cache(maxsize=4096)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob with ``**`` support into an anchored regex.

    ``*`` and ``?`` never cross a ``/``; ``**/`` matches zero or more
    directories and a trailing ``/**`` everything below. Leading dots are
    matched like any other character.
    """
    out: list[str] = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "*":
            if pattern.startswith("**/", i):
                out.append("(?:.*/)?")
                i += 3
                continue
            if pattern.startswith("**", i):
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(char))
            else:
                members = pattern[i + 1 : end]
                if members.startswith("!"):
                    members = "^" + members[1:]
                out.append("[" + members.replace("\\", "\\\\") + "]")
                i = end + 1
                continue
        else:
            out.append(re.escape(char))
        i += 1
    return re.compile("^" + "".join(out) + "$")


def parse_rule_line(
    line: str,
    scope: str = "",
    source: str = CONFIG_SOURCE,
    line_number: int = 0,
    ancestor_offset: str | None = None,
) -> IgnoreRule | None:
    """Parse one ignore-file line into a rule.

    Args:
        line: Raw line from the rule file
        scope: Directory of the rule file relative to the analysis root
        source: Origin recorded on the rule
        line_number: 1-based line number in the rule file
        ancestor_offset: For rule files above the analysis root, the path from
            the rule file's directory down to the analysis root

    Returns:
        The parsed rule, or None for blank lines, comments and anchored
        patterns that cannot match inside the analysis root
    """
    text = line.strip()
    if not text or text.startswith("#"):
        return None

    negated = text.startswith("!")
    if negated:
        text = text[1:]
    if text.startswith("\\#") or text.startswith("\\!"):
        text = text[1:]

    body = text.replace("\\", "/")
    directory_only = body.endswith("/")
    body = body.rstrip("/")

    leading_separator = body.startswith("/")
    if leading_separator:
        body = body[1:]
    if not body:
        return None

    anchored = leading_separator or "/" in body
    if body.startswith("**/") and "/" not in body[3:]:
        # "**/name" matches at any depth, same as an unanchored "name"
        body = body[3:]
        anchored = False

    if ancestor_offset and anchored:
        if body.startswith(ancestor_offset + "/"):
            body = body[len(ancestor_offset) + 1 :]
        else:
            logger.debug(
                f"Dropping '{line.strip()}' from {source}: cannot match below the analysis root"
            )
            return None

    pattern = f"{scope}/{body}" if scope else body
    return IgnoreRule(
        pattern=pattern,
        scope=scope,
        negated=negated,
        directory_only=directory_only,
        anchored=anchored,
        source=source,
        line=line_number,
    )


def rule_matches(rule: IgnoreRule, relative_path: str, is_directory: bool) -> bool:
    """Check whether one rule matches a root-relative path.

    A rule matching a directory also matches everything below it.
    """
    if rule.scope:
        if not relative_path.startswith(rule.scope + "/"):
            return False
        local = relative_path[len(rule.scope) + 1 :]
    else:
        local = relative_path
    if not local:
        return False

    body = rule.body
    parts = local.split("/")

    if not rule.anchored:
        regex = compile_glob(body)
        last = len(parts) - 1
        for index, part in enumerate(parts):
            if not regex.match(part):
                continue
            if index < last:
                return True
            if rule.directory_only and not is_directory:
                continue
            return True
        return False

    # prefix/** : the directory and everything under it
    if body.endswith("/**") and not _has_glob(body[:-3]):
        prefix = body[:-3]
        return local == prefix or local.startswith(prefix + "/")

    # Literal path
    if not _has_glob(body):
        if local == body:
            return is_directory or not rule.directory_only
        return local.startswith(body + "/")

    # Glob against the relative path, then against each ancestor directory
    regex = compile_glob(body)
    if regex.match(local) and (is_directory or not rule.directory_only):
        return True
    for end in range(1, len(parts)):
        if regex.match("/".join(parts[:end])):
            return True
    return False


def _pattern_could_match_inside_dir(dir_path: str, pattern: str) -> bool:
    """Check if a pattern could match files inside a directory.

    Args:
        dir_path: Directory path relative to the root (e.g. "build")
        pattern: Root-relative pattern (e.g. "build/keep.txt", "**/*.ts")
    """
    if pattern.startswith(dir_path + "/"):
        return True

    pattern_parts = pattern.split("/")
    dir_parts = dir_path.split("/")

    if "**" in pattern_parts:
        prefix_parts = pattern_parts[: pattern_parts.index("**")]
        if dir_parts[: len(prefix_parts)] == prefix_parts:
            return True

    return False


@dataclass(frozen=True)
class RuleSet:
    """Ordered ignore rules resolved for one analysis root.

    Attributes:
        root: Absolute analysis root
        rules: Rules in application order (later rules win)
        warnings: Diagnostics recorded while resolving (unreadable files ...)
        rule_files: Rule files that were read, in application order
    """

    root: Path
    rules: tuple[IgnoreRule, ...]
    warnings: tuple[str, ...] = ()
    rule_files: tuple[Path, ...] = ()
    _cache: dict[tuple[str, bool], bool] = field(
        default_factory=dict, compare=False, repr=False
    )

    def matches(self, relative_path: str, is_directory: bool = False) -> bool:
        """Check a root-relative, forward-slash path against the rules."""
        relative_path = relative_path.strip("/")
        if not relative_path:
            return False

        cache_key = (relative_path, is_directory)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        result = self._evaluate(relative_path, is_directory)
        self._cache[cache_key] = result
        return result

    def _evaluate(self, relative_path: str, is_directory: bool) -> bool:
        parts = relative_path.split("/")
        directories = parts if is_directory else parts[:-1]
        if any(part in ALWAYS_EXCLUDED_DIRS for part in directories):
            return True

        for index in range(len(self.rules) - 1, -1, -1):
            rule = self.rules[index]
            if not rule_matches(rule, relative_path, is_directory):
                continue
            if rule.negated:
                return False
            # Keep a directory reachable when a later rule re-includes
            # something inside it.
            if is_directory and any(
                later.negated
                and _pattern_could_match_inside_dir(relative_path, later.pattern)
                for later in self.rules[index + 1 :]
            ):
                return False
            return True

        return False


def is_ignored(
    rule_set: RuleSet, absolute_path: Path | str, is_directory: bool | None = None
) -> bool:
    """Check if a path is excluded from the analysis set.

    Args:
        rule_set: Resolved rules
        absolute_path: Path to check (relative paths are taken from the root)
        is_directory: Optional hint; the filesystem is consulted when omitted

    Returns:
        True if the path should be ignored. Paths outside the root are ignored.
    """
    path = Path(absolute_path)
    if not path.is_absolute():
        path = rule_set.root / path
    path = Path(os.path.normpath(path))

    try:
        relative = path.relative_to(rule_set.root)
    except ValueError:
        return True

    if is_directory is None:
        is_directory = path.is_dir()
    return rule_set.matches(relative.as_posix(), is_directory)


class IgnoreResolver:
    """Collects ignore rules for an analysis root.

    The resolver only reads rule files. Enumerating the files to analyze is
    the file provider's job; it asks the resolved rule set (or the predicate
    built from it) which paths participate.
    """

    def __init__(
        self,
        ignore_file_names: Sequence[str] = DEFAULT_IGNORE_FILE_NAMES,
        default_patterns: Iterable[str] = DEFAULT_IGNORE_PATTERNS,
        exclude_patterns: Iterable[str] = (),
        include_patterns: Iterable[str] = (),
        respect_ignore_files: bool = True,
        discover_nested: bool = True,
    ) -> None:
        """Initialize the resolver.

        Args:
            ignore_file_names: Rule-file names to look for in each directory
            default_patterns: Pre-seeded exclusions
            exclude_patterns: Extra globs appended after discovered rules
            include_patterns: Extra globs appended as include rules
            respect_ignore_files: Read rule files at all
            discover_nested: Also read rule files below the analysis root
        """
        self.ignore_file_names = tuple(ignore_file_names)
        self.default_patterns = tuple(default_patterns)
        self.exclude_patterns = tuple(exclude_patterns)
        self.include_patterns = tuple(include_patterns)
        self.respect_ignore_files = respect_ignore_files
        self.discover_nested = discover_nested

    @classmethod
    def from_settings(cls, settings: AnalysisSettings) -> IgnoreResolver:
        return cls(
            ignore_file_names=settings.ignore_file_names,
            exclude_patterns=settings.exclude_patterns,
            include_patterns=settings.include_patterns,
            respect_ignore_files=settings.respect_ignore_files,
            discover_nested=settings.discover_nested_rule_files,
        )

    def resolve(self, root_dir: Path | str) -> RuleSet:
        """Resolve every rule that applies below ``root_dir``.

        Rule files that cannot be read are skipped with a warning; they never
        abort resolution.
        """
        root = Path(os.path.abspath(root_dir))
        rules: list[IgnoreRule] = [
            rule
            for rule in (
                parse_rule_line(pattern, source=DEFAULT_SOURCE)
                for pattern in self.default_patterns
            )
            if rule is not None
        ]
        warnings: list[str] = []
        rule_files: list[Path] = []

        if self.respect_ignore_files:
            # Filesystem root first, analysis root last
            for directory in reversed([root, *root.parents]):
                offset = root.relative_to(directory).as_posix()
                self._apply_directory(
                    directory,
                    scope="",
                    ancestor_offset=None if offset == "." else offset,
                    rules=rules,
                    warnings=warnings,
                    rule_files=rule_files,
                )

            if self.discover_nested:
                self._apply_nested(root, rules, warnings, rule_files)

        for pattern in self.exclude_patterns:
            self._add_rule(rules, parse_rule_line(pattern, source=CONFIG_SOURCE))
        for pattern in self.include_patterns:
            pattern = pattern if pattern.startswith("!") else f"!{pattern}"
            self._add_rule(rules, parse_rule_line(pattern, source=CONFIG_SOURCE))

        logger.debug(
            f"Resolved {len(rules)} ignore rules for {root} "
            f"from {len(rule_files)} rule files ({len(warnings)} warnings)"
        )
        return RuleSet(
            root=root,
            rules=tuple(rules),
            warnings=tuple(warnings),
            rule_files=tuple(rule_files),
        )

    def is_ignored(
        self,
        rule_set: RuleSet,
        absolute_path: Path | str,
        is_directory: bool | None = None,
    ) -> bool:
        return is_ignored(rule_set, absolute_path, is_directory)

    def predicate(self, rule_set: RuleSet) -> Callable[..., bool]:
        """Return ``f(path, is_directory=None) -> bool`` bound to ``rule_set``."""
        return partial(is_ignored, rule_set)

    def _apply_nested(
        self,
        root: Path,
        rules: list[IgnoreRule],
        warnings: list[str],
        rule_files: list[Path],
    ) -> None:
        """Walk the tree top-down, reading rule files below the root."""
        for dirpath, dirnames, _filenames in os.walk(root):
            current = Path(dirpath)
            relative = current.relative_to(root).as_posix()

            if relative != ".":
                self._apply_directory(
                    current,
                    scope=relative,
                    ancestor_offset=None,
                    rules=rules,
                    warnings=warnings,
                    rule_files=rule_files,
                )

            # Prune with the rules known so far, deeper files come later
            provisional = RuleSet(root=root, rules=tuple(rules))
            prefix = "" if relative == "." else relative + "/"
            dirnames[:] = sorted(
                name
                for name in dirnames
                if not provisional.matches(prefix + name, is_directory=True)
            )

    def _apply_directory(
        self,
        directory: Path,
        scope: str,
        ancestor_offset: str | None,
        rules: list[IgnoreRule],
        warnings: list[str],
        rule_files: list[Path],
    ) -> None:
        for name in self.ignore_file_names:
            rule_file = directory / name
            if not rule_file.is_file():
                continue
            try:
                lines = self._read_rule_file(rule_file)
            except RuleFileUnreadableError as e:
                logger.warning(str(e))
                warnings.append(str(e))
                continue

            rule_files.append(rule_file)
            for line_number, line in enumerate(lines, start=1):
                rule = parse_rule_line(
                    line,
                    scope=scope,
                    source=str(rule_file),
                    line_number=line_number,
                    ancestor_offset=ancestor_offset,
                )
                self._add_rule(rules, rule)

    @staticmethod
    def _read_rule_file(rule_file: Path) -> list[str]:
        try:
            return rule_file.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise RuleFileUnreadableError(
                f"Skipping unreadable ignore file {rule_file}: {e}",
                {"path": str(rule_file)},
            ) from e

    @staticmethod
    def _add_rule(rules: list[IgnoreRule], rule: IgnoreRule | None) -> None:
        if rule is None:
            return
        if rule.negated:
            # A negation cancels an identical earlier exclude outright
            rules[:] = [
                existing
                for existing in rules
                if existing.negated or existing.pattern != rule.pattern
            ]
        rules.append(rule)
