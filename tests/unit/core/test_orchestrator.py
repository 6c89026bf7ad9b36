"""Tests for the analysis orchestrator."""

from pathlib import Path

import pytest

from codestrata.config.settings import AnalysisSettings
from codestrata.core.cache import LayeredCache
from codestrata.core.exceptions import AnalysisError, InvalidLayerError
from codestrata.core.models import AnalysisRequest, FileRecord, Layer
from codestrata.core.orchestrator import AnalysisOrchestrator, is_test_file, is_within


class CountingProvider:
    """File provider that records how often it is called."""

    def __init__(self, records: list[FileRecord]) -> None:
        self.records = records
        self.calls = 0

    def __call__(self) -> list[FileRecord]:
        self.calls += 1
        return list(self.records)


def record(path: str, content: str = "export const X = 1;\n", **kwargs) -> FileRecord:
    return FileRecord(path=path, content=content, size=len(content), **kwargs)


class TestRequests:
    def test_invalid_layer(self, tmp_path: Path):
        orchestrator = AnalysisOrchestrator(tmp_path, [])

        with pytest.raises(InvalidLayerError) as exc_info:
            orchestrator.analyze(layer="bogus")
        assert exc_info.value.context["layer"] == "bogus"

    def test_other_invalid_fields(self, tmp_path: Path):
        orchestrator = AnalysisOrchestrator(tmp_path, [])

        with pytest.raises(AnalysisError) as exc_info:
            orchestrator.analyze(max_depth=-1)
        assert not isinstance(exc_info.value, InvalidLayerError)

    def test_overrides_extend_request(self, tmp_path: Path):
        orchestrator = AnalysisOrchestrator(tmp_path, [record("src/a.ts")])

        result = orchestrator.analyze(AnalysisRequest(layer=Layer.MIDDLE), layer="detail")

        assert result.layer is Layer.DETAIL

    def test_default_layer_is_top(self, tmp_path: Path):
        result = AnalysisOrchestrator(tmp_path, [record("src/a.ts")]).analyze()

        assert result.layer is Layer.TOP
        assert result.version == "1.0.0"


class TestCaching:
    def test_provider_not_called_on_cache_hit(self, tmp_path: Path):
        provider = CountingProvider([record("src/a.ts")])
        orchestrator = AnalysisOrchestrator(tmp_path, provider)

        first = orchestrator.analyze(layer="top")
        second = orchestrator.analyze(layer="top")

        assert provider.calls == 1
        assert first is second

        orchestrator.analyze(layer="detail")
        assert provider.calls == 2

    def test_invalidate_forces_recompute(self, tmp_path: Path):
        provider = CountingProvider([record("src/a.ts")])
        orchestrator = AnalysisOrchestrator(tmp_path, provider)

        orchestrator.analyze()
        assert orchestrator.invalidate()
        orchestrator.analyze()

        assert provider.calls == 2

    def test_expired_result_is_recomputed(self, tmp_path: Path):
        now = [0.0]
        cache = LayeredCache(max_age=10, clock=lambda: now[0])
        provider = CountingProvider([record("src/a.ts")])
        orchestrator = AnalysisOrchestrator(tmp_path, provider, cache=cache)

        orchestrator.analyze()
        now[0] = 11.0
        result = orchestrator.analyze()

        assert provider.calls == 2
        assert result.timestamp == 11.0

    def test_injected_cache_and_clock_are_used(self, tmp_path: Path):
        cache = LayeredCache(max_age=10, clock=lambda: 42.0)
        orchestrator = AnalysisOrchestrator(tmp_path, [record("src/a.ts")], cache=cache)

        assert orchestrator.cache is cache
        assert orchestrator.clock is cache.clock

        result = orchestrator.analyze()

        assert result.timestamp == 42.0
        assert len(cache) == 1

    def test_explicit_clock_wins(self, tmp_path: Path):
        orchestrator = AnalysisOrchestrator(
            tmp_path, [record("src/a.ts")], cache=LayeredCache(), clock=lambda: 7.0
        )

        assert orchestrator.analyze().timestamp == 7.0

    def test_refresh_rules_rereads_rule_files(self, tmp_path: Path):
        provider = CountingProvider([record("src/a.ts"), record("src/b.ts")])
        orchestrator = AnalysisOrchestrator(tmp_path, provider)

        assert len(orchestrator.analyze(layer="detail").components) == 2

        (tmp_path / ".gitignore").write_text("b.ts\n")
        orchestrator.refresh_rules()

        assert [c.path for c in orchestrator.analyze(layer="detail").components] == [
            "src/a.ts"
        ]


class TestFileSelection:
    def test_ignored_files_are_dropped(self, tmp_path: Path):
        (tmp_path / ".gitignore").write_text("generated/\n")
        files = [
            record("src/a.ts"),
            record("generated/api.ts"),
            record("node_modules/lib/index.js"),
        ]
        orchestrator = AnalysisOrchestrator(tmp_path, files)

        result = orchestrator.analyze(layer="detail")

        assert [c.path for c in result.components] == ["src/a.ts"]
        assert orchestrator.is_ignored(tmp_path / "generated", True)

    def test_tests_are_dropped_unless_requested(self, tmp_path: Path):
        files = [
            record("src/a.ts"),
            record("src/a.test.ts"),
            record("src/b.spec.tsx"),
            record("src/__tests__/c.ts"),
            record("tests/d.ts"),
        ]
        orchestrator = AnalysisOrchestrator(tmp_path, files)

        without = orchestrator.analyze(layer="detail")
        with_tests = orchestrator.analyze(layer="detail", include_tests=True)

        assert [c.path for c in without.components] == ["src/a.ts"]
        assert len(with_tests.components) == 5

    def test_focus_path_filters_detail(self, tmp_path: Path):
        files = [record("src/api/a.ts"), record("src/api2/b.ts"), record("lib/c.ts")]
        orchestrator = AnalysisOrchestrator(tmp_path, files)

        detail = orchestrator.analyze(layer="detail", focus_path="src/api")
        top = orchestrator.analyze(layer="top", focus_path="src/api")

        assert [c.path for c in detail.components] == ["src/api/a.ts"]
        assert len(top.components) == 3

    def test_unsupported_extensions_are_skipped(self, tmp_path: Path):
        files = [record("src/a.ts"), record("README.md", "# readme"), record("data.json", "{}")]

        result = AnalysisOrchestrator(tmp_path, files).analyze(layer="detail")

        assert [c.path for c in result.components] == ["src/a.ts"]
        assert result.warnings == ()

    def test_dict_records_are_accepted(self, tmp_path: Path):
        files = [{"path": "./src/a.ts", "content": "export const A = 1;\n"}]

        result = AnalysisOrchestrator(tmp_path, files).analyze(layer="detail")

        assert [c.path for c in result.components] == ["src/a.ts"]


class TestChangeFrequency:
    def test_placeholder_for_files_with_content(self, tmp_path: Path):
        files = [record("a.ts"), record("b.ts", content="")]

        result = AnalysisOrchestrator(tmp_path, files).analyze(layer="detail")

        a, b = result.components
        assert a.change_frequency == 0.5
        assert b.change_frequency is None

    def test_provider_estimates_win(self, tmp_path: Path):
        files = [record("a.ts", change_frequency=0.9)]

        result = AnalysisOrchestrator(tmp_path, files).analyze(layer="detail")

        assert result.components[0].change_frequency == 0.9

    def test_placeholder_can_be_disabled(self, tmp_path: Path):
        settings = AnalysisSettings(default_change_frequency=None)
        orchestrator = AnalysisOrchestrator(tmp_path, [record("a.ts")], settings=settings)

        assert orchestrator.analyze(layer="detail").components[0].change_frequency is None

    def test_oversized_files_are_contentless(self, tmp_path: Path):
        content = "export function big(a: number) { return a ? 1 : 2; }\n"
        settings = AnalysisSettings(max_file_size=10)
        orchestrator = AnalysisOrchestrator(tmp_path, [record("big.ts", content)], settings=settings)

        (component,) = orchestrator.analyze(layer="detail").components

        assert component.complexity == 1.0
        assert component.loc == 0
        assert component.change_frequency is None


class TestSettingsFile:
    def test_from_directory_reads_settings(self, tmp_path: Path):
        AnalysisSettings(exclude_patterns=("legacy/**",), max_workers=2).save(
            tmp_path / ".codestrata.yaml"
        )
        files = [record("legacy/old.ts"), record("src/new.ts")]

        orchestrator = AnalysisOrchestrator.from_directory(tmp_path, files)
        result = orchestrator.analyze(layer="detail")

        assert orchestrator.settings.max_workers == 2
        assert [c.path for c in result.components] == ["src/new.ts"]


class TestHelpers:
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("src/a.ts", False),
            ("src/a.test.ts", True),
            ("src/a.spec.js", True),
            ("src/__tests__/a.ts", True),
            ("test/a.ts", True),
            ("src/testing/a.ts", False),
            ("src/contest.ts", False),
        ],
    )
    def test_is_test_file(self, path, expected):
        assert is_test_file(path) is expected

    def test_is_within(self):
        assert is_within("src/api/a.ts", "src/api")
        assert is_within("src/api", "src/api")
        assert not is_within("src/api2/a.ts", "src/api")
