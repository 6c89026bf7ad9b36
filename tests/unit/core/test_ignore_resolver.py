"""Tests for ignore-rule resolution."""

from pathlib import Path

import pytest

from codestrata.config.settings import AnalysisSettings
from codestrata.core.ignore import (
    IgnoreResolver,
    RuleSet,
    compile_glob,
    is_ignored,
    parse_rule_line,
)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


def write(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestParseRuleLine:
    """Parsing single ignore-file lines."""

    def test_blank_and_comment_lines_are_skipped(self):
        assert parse_rule_line("") is None
        assert parse_rule_line("   ") is None
        assert parse_rule_line("# a comment") is None

    def test_negation_and_directory_only(self):
        rule = parse_rule_line("!build/")
        assert rule.negated
        assert rule.directory_only
        assert rule.pattern == "build"
        assert not rule.anchored

    def test_leading_slash_anchors_and_is_stripped(self):
        rule = parse_rule_line("/dist")
        assert rule.pattern == "dist"
        assert rule.anchored

    def test_scope_prefixes_pattern(self):
        rule = parse_rule_line("generated/*.ts", scope="src")
        assert rule.pattern == "src/generated/*.ts"
        assert rule.body == "generated/*.ts"
        assert rule.scope == "src"

    def test_backslashes_become_forward_slashes(self):
        rule = parse_rule_line("out\\cache")
        assert rule.pattern == "out/cache"

    def test_ancestor_rule_is_rebased_onto_root(self):
        rule = parse_rule_line("project/tmp.ts", ancestor_offset="project")
        assert rule.pattern == "tmp.ts"

    def test_ancestor_rule_outside_root_is_dropped(self):
        assert parse_rule_line("/elsewhere/file.ts", ancestor_offset="project") is None

    def test_double_star_prefix_is_unanchored(self):
        rule = parse_rule_line("**/fixtures")
        assert rule.pattern == "fixtures"
        assert not rule.anchored


class TestCompileGlob:
    def test_star_does_not_cross_directories(self):
        regex = compile_glob("src/*.ts")
        assert regex.match("src/a.ts")
        assert not regex.match("src/nested/a.ts")

    def test_double_star_spans_directories(self):
        regex = compile_glob("src/**/*.ts")
        assert regex.match("src/a.ts")
        assert regex.match("src/deep/er/a.ts")

    def test_character_class(self):
        regex = compile_glob("file[0-9].ts")
        assert regex.match("file3.ts")
        assert not regex.match("fileA.ts")


class TestIgnoreResolver:
    """Resolving and applying rules for a directory tree."""

    def test_default_patterns_apply_without_rule_files(self, project: Path):
        rule_set = IgnoreResolver().resolve(project)

        assert is_ignored(rule_set, project / "node_modules" / "lib" / "x.ts", False)
        assert is_ignored(rule_set, project / "app.log", False)
        assert not is_ignored(rule_set, project / "src" / "app.ts", False)

    def test_deeper_negation_reincludes_file(self, tmp_path: Path, project: Path):
        write(tmp_path / ".gitignore", "build/\n")
        write(project / ".gitignore", "!build/keep.txt\n")

        rule_set = IgnoreResolver().resolve(project)

        assert not is_ignored(rule_set, project / "build" / "keep.txt", False)
        assert is_ignored(rule_set, project / "build" / "other.txt", False)
        # The directory stays reachable so walkers can find keep.txt
        assert not is_ignored(rule_set, project / "build", True)

    def test_negation_three_directories_below_ancestor_rule(self, tmp_path: Path):
        root = tmp_path / "a" / "b" / "c"
        root.mkdir(parents=True)
        write(tmp_path / ".gitignore", "build/\n")
        write(root / ".gitignore", "!build/keep.txt\n")

        rule_set = IgnoreResolver().resolve(root)

        assert not is_ignored(rule_set, root / "build" / "keep.txt", False)
        assert is_ignored(rule_set, root / "build" / "other.txt", False)
        assert not is_ignored(rule_set, root / "build", True)

    def test_negation_in_rule_file_three_directories_down(self, project: Path):
        write(project / ".gitignore", "build/\n")
        write(project / "a" / "b" / "c" / ".gitignore", "!build/keep.txt\n")
        deep = project / "a" / "b" / "c"

        rule_set = IgnoreResolver().resolve(project)

        assert not is_ignored(rule_set, deep / "build" / "keep.txt", False)
        assert is_ignored(rule_set, deep / "build" / "other.txt", False)
        assert not is_ignored(rule_set, deep / "build", True)
        # The rule is scoped: other build directories stay ignored
        assert is_ignored(rule_set, project / "build" / "keep.txt", False)

    def test_last_matching_rule_wins(self, project: Path):
        write(project / ".gitignore", "*.gen.ts\n!keep.gen.ts\n")

        rule_set = IgnoreResolver().resolve(project)

        assert is_ignored(rule_set, project / "src" / "a.gen.ts", False)
        assert not is_ignored(rule_set, project / "src" / "keep.gen.ts", False)

    def test_negation_removes_identical_exclude(self, project: Path):
        write(project / ".gitignore", "secrets.ts\n!secrets.ts\n")

        rule_set = IgnoreResolver().resolve(project)

        patterns = [(r.pattern, r.negated) for r in rule_set.rules if r.source != "<default>"]
        assert patterns == [("secrets.ts", True)]
        assert not is_ignored(rule_set, project / "secrets.ts", False)

    def test_nested_rule_file_is_scoped_to_its_directory(self, project: Path):
        write(project / ".gitignore", "fixtures.ts\n")
        write(project / "src" / ".gitignore", "!fixtures.ts\n")
        write(project / "src" / "fixtures.ts")
        write(project / "lib" / "fixtures.ts")

        rule_set = IgnoreResolver().resolve(project)

        assert not is_ignored(rule_set, project / "src" / "fixtures.ts", False)
        assert is_ignored(rule_set, project / "lib" / "fixtures.ts", False)
        assert project / "src" / ".gitignore" in rule_set.rule_files

    def test_nested_rule_files_can_be_disabled(self, project: Path):
        write(project / "src" / ".gitignore", "local.ts\n")

        rule_set = IgnoreResolver(discover_nested=False).resolve(project)

        assert not is_ignored(rule_set, project / "src" / "local.ts", False)

    def test_rule_files_in_ignored_directories_are_not_read(self, project: Path):
        write(project / "node_modules" / ".gitignore", "!*\n")

        rule_set = IgnoreResolver().resolve(project)

        assert rule_set.rule_files == ()
        assert is_ignored(rule_set, project / "node_modules" / "x.ts", False)

    def test_directory_only_rule_skips_files(self, project: Path):
        write(project / ".gitignore", "logs/\n")

        rule_set = IgnoreResolver().resolve(project)

        assert is_ignored(rule_set, project / "logs", True)
        assert is_ignored(rule_set, project / "logs" / "today.ts", False)
        assert not is_ignored(rule_set, project / "src" / "logs", False)

    def test_anchored_literal_matches_path_and_descendants(self, project: Path):
        write(project / ".gitignore", "/src/vendor\n")

        rule_set = IgnoreResolver().resolve(project)

        assert is_ignored(rule_set, project / "src" / "vendor" / "lib.ts", False)
        assert not is_ignored(rule_set, project / "vendor" / "lib.ts", False)

    def test_prefix_double_star(self, project: Path):
        write(project / ".gitignore", "generated/**\n")

        rule_set = IgnoreResolver().resolve(project)

        assert is_ignored(rule_set, project / "generated" / "deep" / "x.ts", False)
        assert not is_ignored(rule_set, project / "src" / "generated.ts", False)

    def test_safety_directories_cannot_be_reincluded(self, project: Path):
        resolver = IgnoreResolver(include_patterns=["venv/keep.ts", ".venv/**"])
        rule_set = resolver.resolve(project)

        assert is_ignored(rule_set, project / "venv" / "keep.ts", False)
        assert is_ignored(rule_set, project / ".venv" / "lib" / "x.ts", False)

    def test_extra_globs_are_appended_last(self, project: Path):
        write(project / ".gitignore", "repos/\n")
        settings = AnalysisSettings(
            exclude_patterns=("**/*.stories.tsx",),
            include_patterns=("repos/**/*.ts",),
        )

        rule_set = IgnoreResolver.from_settings(settings).resolve(project)

        assert not is_ignored(rule_set, project / "repos" / "a" / "x.ts", False)
        assert is_ignored(rule_set, project / "repos" / "a" / "x.js", False)
        assert is_ignored(rule_set, project / "src" / "Button.stories.tsx", False)
        assert rule_set.rules[-1].source == "<config>"
        assert rule_set.rules[-1].negated

    def test_unreadable_rule_file_is_skipped_with_warning(self, project: Path):
        (project / ".gitignore").write_bytes(b"\xff\xfe\xfa invalid")
        write(project / "src" / ".gitignore", "local.ts\n")

        rule_set = IgnoreResolver().resolve(project)

        assert len(rule_set.warnings) == 1
        assert ".gitignore" in rule_set.warnings[0]
        assert is_ignored(rule_set, project / "src" / "local.ts", False)

    def test_paths_outside_root_are_ignored(self, tmp_path: Path, project: Path):
        rule_set = IgnoreResolver().resolve(project)

        assert is_ignored(rule_set, tmp_path / "elsewhere.ts", False)

    def test_relative_paths_are_taken_from_root(self, project: Path):
        write(project / ".gitignore", "scratch.ts\n")
        rule_set = IgnoreResolver().resolve(project)

        assert is_ignored(rule_set, "scratch.ts", False)
        assert rule_set.matches("src/scratch.ts")

    def test_directory_hint_falls_back_to_filesystem(self, project: Path):
        write(project / ".gitignore", "cache/\n")
        (project / "cache").mkdir()
        rule_set = IgnoreResolver().resolve(project)

        assert is_ignored(rule_set, project / "cache")

    def test_rule_files_can_be_disabled(self, project: Path):
        write(project / ".gitignore", "a.ts\n")

        rule_set = IgnoreResolver(respect_ignore_files=False).resolve(project)

        assert not is_ignored(rule_set, project / "a.ts", False)
        # Defaults still apply
        assert is_ignored(rule_set, project / "dist" / "a.js", False)

    def test_predicate_is_bound_to_rule_set(self, project: Path):
        write(project / ".gitignore", "*.tmp.ts\n")
        resolver = IgnoreResolver()
        ignored = resolver.predicate(resolver.resolve(project))

        assert ignored(project / "x.tmp.ts", False)
        assert not ignored(project / "x.ts", False)

    def test_empty_rule_set_ignores_nothing(self, project: Path):
        rule_set = RuleSet(root=project, rules=())

        assert not rule_set.matches("anything/at/all.ts")
        assert not rule_set.matches("")
