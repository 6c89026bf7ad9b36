"""Extractor registry for codestrata."""

from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from loguru import logger

from ..config.defaults import LANGUAGE_MAPPINGS
from ..core.exceptions import ParsingError
from ..core.models import FileRecord, SourceFact
from .typescript import JavaScriptExtractor, TSXExtractor, TypeScriptExtractor


@dataclass
class ExtractionBatch:
    """Facts for the files that parsed, warnings for the ones that did not."""

    facts: list[SourceFact] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class ExtractorRegistry:
    """Registry mapping file extensions to structural extractors."""

    def __init__(self) -> None:
        """Initialize the registry with lazy extractor creation."""
        self._extractors: dict[str, TypeScriptExtractor] = {}
        self._extractor_classes: dict[str, type[TypeScriptExtractor]] = {
            "typescript": TypeScriptExtractor,
            "tsx": TSXExtractor,
            "javascript": JavaScriptExtractor,
        }
        self._extension_map: dict[str, str] = dict(LANGUAGE_MAPPINGS)

    def get_extractor(self, file_extension: str) -> TypeScriptExtractor | None:
        """Get the extractor for a file extension (lazy instantiation).

        Args:
            file_extension: File extension (including dot)

        Returns:
            Extractor instance, or None for unsupported extensions
        """
        language = self._extension_map.get(file_extension.lower())
        if language is None:
            return None

        if language not in self._extractors:
            self._extractors[language] = self._extractor_classes[language]()
            logger.debug(f"Lazily instantiated extractor for {language}")
        return self._extractors[language]

    def get_extractor_for_path(self, path: str) -> TypeScriptExtractor | None:
        return self.get_extractor(PurePosixPath(path).suffix)

    def is_supported(self, path: str) -> bool:
        return PurePosixPath(path).suffix.lower() in self._extension_map

    def get_supported_extensions(self) -> list[str]:
        return list(self._extension_map.keys())

    def extract(self, content: str, path: str) -> SourceFact:
        """Extract one file with the extractor for its extension.

        Files with an unknown extension are read with the TypeScript grammar.

        Raises:
            ParsingError: If the syntax tree contains errors
        """
        extractor = self.get_extractor_for_path(path) or self.get_extractor(".ts")
        return extractor.extract(content, path)

    def extract_many(
        self, files: Iterable[FileRecord], max_workers: int = 1
    ) -> ExtractionBatch:
        """Extract a batch of files, skipping the ones that fail.

        Unsupported extensions are skipped silently. A file that fails to parse
        is omitted from the batch and recorded as a warning.

        Args:
            files: Files to extract
            max_workers: Threads to fan out over (1 extracts inline)

        Returns:
            ExtractionBatch with facts sorted by path
        """
        candidates = [record for record in files if self.is_supported(record.path)]

        if max_workers > 1 and len(candidates) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                outcomes = list(executor.map(self._extract_record, candidates))
        else:
            outcomes = [self._extract_record(record) for record in candidates]

        batch = ExtractionBatch()
        for fact, warning in outcomes:
            if fact is not None:
                batch.facts.append(fact)
            if warning is not None:
                batch.warnings.append(warning)

        batch.facts.sort(key=lambda fact: fact.path)
        logger.debug(
            f"Extracted {len(batch.facts)}/{len(candidates)} files "
            f"({len(batch.warnings)} skipped)"
        )
        return batch

    def _extract_record(self, record: FileRecord) -> tuple[SourceFact | None, str | None]:
        try:
            return self.extract(record.content or "", record.path), None
        except ParsingError as e:
            message = f"Skipping {record.path}: {e}"
        except Exception as e:
            message = f"Extraction failed for {record.path}: {e}"
        logger.warning(message)
        return None, message


# Global extractor registry instance
_registry = ExtractorRegistry()


def get_extractor_registry() -> ExtractorRegistry:
    """Get the global extractor registry instance."""
    return _registry
