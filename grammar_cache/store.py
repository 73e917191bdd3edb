"""
Grammar store

Owns the name -> Grammar mapping. The directory scanner populates it,
the composer and the watch loop mutate it, and the recognition path
reads it. All access goes through one re-entrant lock.
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from grammar_cache.engine import EngineAdapter
from grammar_cache.errors import GrammarParseError, LoadOutcome
from grammar_cache.examples import extract_examples
from grammar_cache.grammar import Grammar, file_modified_time, is_lazy
from grammar_cache.transform import TransformResult, transform_xml

logger = logging.getLogger(__name__)

DEFAULT_DEPTH = 2


@dataclass
class ScanReport:
    """Per-scan outcome counts"""
    loaded: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, outcome: LoadOutcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    def merge(self, other: "ScanReport") -> None:
        self.loaded += other.loaded
        self.unchanged += other.unchanged
        self.skipped += other.skipped
        self.failed += other.failed

    @property
    def total(self) -> int:
        return self.loaded + self.unchanged + self.skipped + self.failed


class GrammarStore:
    """
    Thread-safe cache of transformed grammars

    Features:
    - Depth-bounded directory scan of *.xml grammar files
    - Unchanged-file guard based on modification time
    - Language gate and hotword rewriting on every load
    - Failed loads never replace the last good grammar
    """

    def __init__(self, language: str = "fr-FR", hotword: str = "SARAH"):
        """
        Initialize store

        Args:
            language: Language tag grammars must declare to be cached
            hotword: Wake word substituted into grammar templates
        """
        self.language = language
        self.hotword = hotword
        self.lock = threading.RLock()
        self._grammars: Dict[str, Grammar] = {}

    def __len__(self) -> int:
        with self.lock:
            return len(self._grammars)

    def __contains__(self, name: str) -> bool:
        with self.lock:
            return name in self._grammars

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, path: Union[str, Path], depth: int = DEFAULT_DEPTH) -> ScanReport:
        """
        Scan a directory for grammar files

        Subdirectories are scanned first (depth - 1 each), then the
        directory's own *.xml files. Entries are visited in sorted order,
        so when two files share a name the last one visited wins.

        Args:
            path: Directory to scan
            depth: Levels to descend; 0 or less scans nothing

        Returns:
            ScanReport with outcome counts
        """
        report = ScanReport()
        if depth <= 0:
            return report

        path = Path(path)
        # A file root is not scanned
        if path.is_file():
            return report
        if not path.is_dir():
            logger.warning(f"Grammar directory not found: {path}")
            return report

        logger.debug(f"Searching: {path.resolve()}")
        try:
            entries = sorted(path.iterdir())
        except OSError as e:
            logger.error(f"Cannot list {path}: {e}")
            return report

        for entry in entries:
            if entry.is_dir():
                report.merge(self.load(entry, depth - 1))

        for entry in entries:
            if entry.suffix.lower() == ".xml" and entry.is_file():
                report.record(self.load_file(entry))

        return report

    def load_file(self, path: Union[str, Path]) -> LoadOutcome:
        """
        Load a single grammar file

        Args:
            path: Path to an XML grammar

        Returns:
            LoadOutcome describing what happened
        """
        path = Path(path)
        name = path.stem

        try:
            modified = file_modified_time(path)
            with self.lock:
                existing = self._grammars.get(name)
                if existing is not None and existing.source_mtime == modified:
                    logger.debug(f"Ignoring: {name} (no changes)")
                    return LoadOutcome.UNCHANGED

            raw_xml = path.read_text(encoding="utf-8")
            result = self.transform(name, raw_xml)
            if result is None:
                return LoadOutcome.SKIPPED

            examples = extract_examples(result.xml)
            enabled = not is_lazy(path, result.xml)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Cannot read grammar {path}: {e}")
            return LoadOutcome.FAILED
        except GrammarParseError as e:
            logger.error(f"Malformed grammar {path}: {e}")
            return LoadOutcome.FAILED

        with self.lock:
            grammar = self._grammars.get(name)
            if grammar is None:
                grammar = Grammar(name=name)
                self._grammars[name] = grammar
            grammar.apply(raw_xml, result, examples)
            grammar.path = path
            grammar.source_mtime = modified
            grammar.touch(modified)
            grammar.enabled = enabled

        logger.info(f"Loading: {name} (enabled: {enabled}) ({path})")
        return LoadOutcome.LOADED

    def transform(self, name: str, raw_xml: str) -> Optional[TransformResult]:
        """Run the transform pipeline with this store's language and hotword"""
        result = transform_xml(raw_xml, self.language, self.hotword)
        if result is None:
            logger.debug(f"Ignoring: {name} (not {self.language})")
        return result

    def add(self, grammar: Grammar) -> None:
        """Insert a grammar that has completed the transform pipeline"""
        if grammar.xml is None:
            raise ValueError(f"grammar {grammar.name} has not been transformed")
        with self.lock:
            self._grammars[grammar.name] = grammar

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_name(self, name: str) -> Optional[Grammar]:
        """Grammar with the exact name, or None"""
        with self.lock:
            return self._grammars.get(name)

    def find_example(self, rule_id: str) -> Optional[str]:
        """Example text for a rule id from any grammar, or None"""
        with self.lock:
            for grammar in self._grammars.values():
                if rule_id in grammar.examples:
                    return grammar.examples[rule_id]
        return None

    def grammars(self) -> List[Grammar]:
        """Snapshot of all cached grammars"""
        with self.lock:
            return list(self._grammars.values())

    def names(self) -> List[str]:
        with self.lock:
            return sorted(self._grammars)

    # ------------------------------------------------------------------
    # Enabled state
    # ------------------------------------------------------------------

    def set_enabled(self, name: str, enabled: bool) -> bool:
        """
        Enable or disable a cached grammar

        Returns:
            False if no grammar has that name
        """
        with self.lock:
            grammar = self._grammars.get(name)
            if grammar is None:
                return False
            grammar.enabled = enabled
        logger.info(f"Grammar {name} {'enabled' if enabled else 'disabled'}")
        return True

    def sync_enabled_to_engine(self, engine: EngineAdapter) -> int:
        """
        Push cached enabled flags to grammars loaded in the engine

        Only names known to both sides are touched. Engine state never
        flows back into the store.

        Returns:
            Number of grammars updated
        """
        count = 0
        with self.lock:
            for name in engine.loaded_names():
                grammar = self._grammars.get(name)
                if grammar is None:
                    continue
                engine.set_enabled(name, grammar.enabled)
                count += 1
        return count
