"""Layered analysis orchestration."""

import fnmatch
import os
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from ..analysis.components import ComponentBuilder
from ..analysis.metrics import MetricsEngine
from ..analysis.relations import RelationGraphBuilder
from ..config.defaults import TEST_FILE_PATTERNS, get_default_config_path
from ..config.settings import AnalysisSettings
from ..parsers.registry import ExtractorRegistry, get_extractor_registry
from .cache import LayeredCache
from .exceptions import AnalysisError, InvalidLayerError
from .ignore import IgnoreResolver, RuleSet
from .models import (
    AnalysisRequest,
    AnalysisResult,
    FileRecord,
    Layer,
    SourceFact,
)

FilesProvider = Callable[[], Iterable[FileRecord]] | Iterable[FileRecord]


def is_test_file(path: str) -> bool:
    """Check if a root-relative path is a test file or lives in a test directory."""
    return any(
        fnmatch.fnmatchcase(part, pattern)
        for part in path.split("/")
        for pattern in TEST_FILE_PATTERNS
    )


def is_within(path: str, focus_path: str) -> bool:
    return path == focus_path or path.startswith(focus_path.rstrip("/") + "/")


class AnalysisOrchestrator:
    """Runs layered analyses over one source tree.

    The orchestrator never reads the filesystem for source files: a file
    provider hands over FileRecords, the ignore rules decide which of them
    participate, and results are cached per request.

    Example:
        >>> orchestrator = AnalysisOrchestrator(root, provider)
        >>> top = orchestrator.analyze()
        >>> detail = orchestrator.analyze(layer="detail", focus_path="src/api")
    """

    def __init__(
        self,
        root_dir: Path | str,
        files_provider: FilesProvider,
        settings: AnalysisSettings | None = None,
        cache: LayeredCache | None = None,
        resolver: IgnoreResolver | None = None,
        registry: ExtractorRegistry | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            root_dir: Analysis root
            files_provider: Callable returning FileRecords, or an iterable of them
            settings: Analysis settings (defaults if omitted)
            cache: Result cache (a fresh LayeredCache if omitted)
            resolver: Ignore resolver (built from settings if omitted)
            registry: Extractor registry (the global one if omitted)
            clock: Time source for result timestamps (the cache's if omitted)
        """
        self.root_dir = Path(os.path.abspath(root_dir))
        self.files_provider = files_provider
        self.settings = settings if settings is not None else AnalysisSettings()
        self.cache = (
            cache if cache is not None else LayeredCache(max_age=self.settings.cache_max_age)
        )
        self.clock = clock if clock is not None else self.cache.clock
        self.resolver = (
            resolver if resolver is not None else IgnoreResolver.from_settings(self.settings)
        )
        self.registry = registry if registry is not None else get_extractor_registry()

        self.component_builder = ComponentBuilder()
        self.relation_builder = RelationGraphBuilder(self.settings.relation_weights)
        self.metrics_engine = MetricsEngine(self.settings.cohesion_weights)

        self._rule_set: RuleSet | None = None

    @classmethod
    def from_directory(
        cls, root_dir: Path | str, files_provider: FilesProvider, **kwargs: Any
    ) -> "AnalysisOrchestrator":
        """Create an orchestrator using the settings file in ``root_dir``, if any."""
        root = Path(root_dir)
        settings = AnalysisSettings.load(get_default_config_path(root))
        return cls(root, files_provider, settings=settings, **kwargs)

    # --- Ignore rules ---

    @property
    def rule_set(self) -> RuleSet:
        """Resolved ignore rules (resolved on first use)."""
        if self._rule_set is None:
            self._rule_set = self.resolver.resolve(self.root_dir)
        return self._rule_set

    def refresh_rules(self) -> RuleSet:
        """Re-read ignore-rule files and drop cached results."""
        self._rule_set = None
        self.cache.clear()
        return self.rule_set

    def is_ignored(self, path: Path | str, is_directory: bool | None = None) -> bool:
        return self.resolver.is_ignored(self.rule_set, path, is_directory)

    # --- Analysis ---

    def analyze(
        self, request: AnalysisRequest | None = None, **overrides: Any
    ) -> AnalysisResult:
        """Analyze the tree at one layer.

        Args:
            request: Analysis request (defaults to the top layer)
            **overrides: Request fields to set or override (layer, focus_path,
                max_depth, include_tests)

        Returns:
            AnalysisResult, from the cache when a fresh entry exists

        Raises:
            InvalidLayerError: If the layer is not top, middle or detail
            AnalysisError: If the request is otherwise invalid
        """
        request = self._build_request(request, overrides)
        key = self.cache.make_key(self.root_dir, request)
        return self.cache.get_or_compute(key, lambda: self._run(request))

    def invalidate(self, request: AnalysisRequest | None = None, **overrides: Any) -> bool:
        """Drop the cached result of one request."""
        request = self._build_request(request, overrides)
        return self.cache.invalidate(self.cache.make_key(self.root_dir, request))

    def _build_request(
        self, request: AnalysisRequest | None, overrides: dict[str, Any]
    ) -> AnalysisRequest:
        data = request.model_dump() if request is not None else {}
        data.update(overrides)
        try:
            return AnalysisRequest.model_validate(data)
        except ValidationError as e:
            if any(error["loc"][:1] == ("layer",) for error in e.errors()):
                raise InvalidLayerError(
                    f"Invalid layer {data.get('layer')!r}: expected one of "
                    f"{', '.join(layer.value for layer in Layer)}",
                    {"layer": data.get("layer")},
                ) from e
            raise AnalysisError(f"Invalid analysis request: {e}") from e

    def _run(self, request: AnalysisRequest) -> AnalysisResult:
        started = time.perf_counter()
        rule_set = self.rule_set
        warnings = list(rule_set.warnings)

        records = self._collect_files(rule_set, request)
        batch = self.registry.extract_many(records, max_workers=self.settings.max_workers)
        warnings.extend(batch.warnings)

        by_path = {record.path: record for record in records}
        facts = [self._with_change_frequency(fact, by_path[fact.path]) for fact in batch.facts]

        components = self.component_builder.build(facts, request.layer)
        relations = self.relation_builder.build(components, request.layer)
        metrics = self.metrics_engine.compute(components, relations, request.max_depth)

        result = AnalysisResult(
            layer=request.layer,
            components=tuple(components),
            relations=tuple(relations),
            metrics=metrics,
            timestamp=self.clock(),
            warnings=tuple(warnings),
        )
        logger.debug(
            f"Analyzed {self.root_dir} at {request.layer}: {len(components)} components, "
            f"{len(relations)} relations in {time.perf_counter() - started:.3f}s"
        )
        return result

    def _collect_files(
        self, rule_set: RuleSet, request: AnalysisRequest
    ) -> list[FileRecord]:
        """Provider files that survive ignore rules, test and focus filters."""
        provided = self.files_provider() if callable(self.files_provider) else self.files_provider

        selected: dict[str, FileRecord] = {}
        for record in provided:
            if not isinstance(record, FileRecord):
                record = FileRecord.model_validate(record)
            if not record.path or rule_set.matches(record.path):
                continue
            if not request.include_tests and is_test_file(record.path):
                continue
            if (
                request.layer is Layer.DETAIL
                and request.focus_path
                and not is_within(record.path, request.focus_path)
            ):
                continue
            if record.content is not None and (
                record.size > self.settings.max_file_size
                or len(record.content) > self.settings.max_file_size
            ):
                logger.debug(f"Treating {record.path} as contentless: over size limit")
                record = record.model_copy(update={"content": None})
            selected[record.path] = record

        logger.debug(f"Selected {len(selected)} files for analysis")
        return [selected[path] for path in sorted(selected)]

    def _with_change_frequency(self, fact: SourceFact, record: FileRecord) -> SourceFact:
        frequency = record.change_frequency
        if frequency is None and record.content:
            frequency = self.settings.default_change_frequency
        return fact.model_copy(update={"change_frequency": frequency})
