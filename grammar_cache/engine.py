"""
Recognition engine adapter

The grammar cache never talks to a recognizer directly. It compiles
transformed XML through an EngineAdapter and pushes the result, either
for one name or for the whole cache.
"""

import logging
import threading
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from grammar_cache.errors import GrammarCompileError
from grammar_cache.examples import local_name
from grammar_cache.grammar import Grammar

logger = logging.getLogger(__name__)


@dataclass
class CompiledGrammar:
    """Engine-side grammar object built from transformed XML"""
    xml: str
    root_rule: Optional[str] = None
    rule_ids: List[str] = field(default_factory=list)
    name: Optional[str] = None
    enabled: bool = True


class EngineAdapter(ABC):
    """Contract between the grammar cache and a recognition engine"""

    @abstractmethod
    def compile_xml(self, xml: str) -> CompiledGrammar:
        """
        Build an engine grammar from XML text

        Raises:
            GrammarCompileError: If the engine rejects the document
        """

    @abstractmethod
    def load_grammar(self, name: str, compiled: CompiledGrammar) -> None:
        """Install a grammar, replacing any grammar bound to the same name"""

    @abstractmethod
    def unload_grammar(self, name: str) -> bool:
        """Remove a grammar; returns False if nothing was bound"""

    @abstractmethod
    def set_enabled(self, name: str, enabled: bool) -> None:
        """Enable or disable a loaded grammar"""

    @abstractmethod
    def loaded_names(self) -> List[str]:
        """Names of the grammars currently loaded"""

    def build(self, grammar: Grammar) -> Optional[CompiledGrammar]:
        """
        Compile a cached grammar for this engine

        Args:
            grammar: Cached grammar with transformed XML

        Returns:
            CompiledGrammar carrying the grammar's name and enabled flag,
            or None if compilation failed (logged)
        """
        if grammar.xml is None:
            return None
        return self.build_xml(grammar.name, grammar.xml, grammar.enabled)

    def build_xml(self, name: str, xml: str, enabled: bool = True) -> Optional[CompiledGrammar]:
        """Compile XML for a named grammar, logging rejection"""
        try:
            compiled = self.compile_xml(xml)
        except GrammarCompileError as e:
            logger.error(f"Cannot compile grammar {name}: {e}")
            return None
        compiled.name = name
        compiled.enabled = enabled
        return compiled

    def load_all(self, grammars: Iterable[Grammar]) -> int:
        """
        Push every grammar to the engine

        Returns:
            Number of grammars loaded
        """
        logger.info("Loading grammar cache into engine")
        count = 0
        for grammar in grammars:
            compiled = self.build(grammar)
            if compiled is None:
                logger.warning(f"Bypassing {grammar.name}: invalid grammar")
                continue
            self.load_grammar(grammar.name, compiled)
            count += 1
        return count


class MemoryEngine(EngineAdapter):
    """
    Engine adapter that keeps compiled grammars in memory

    Compilation checks that the document is well-formed SRGS: a <grammar>
    root whose root rule, when declared, exists. Used by the daemon when no
    recognizer is attached, and by the tests.
    """

    def __init__(self):
        self._grammars: Dict[str, CompiledGrammar] = {}
        self._lock = threading.Lock()
        self.load_history: List[str] = []
        self.bulk_load_count = 0

    def compile_xml(self, xml: str) -> CompiledGrammar:
        try:
            root = ET.fromstring(xml)
        except ET.ParseError as e:
            raise GrammarCompileError(f"malformed XML: {e}") from e

        if local_name(root.tag) != "grammar":
            raise GrammarCompileError(f"unexpected root element <{local_name(root.tag)}>")

        rule_ids = [
            rule.get("id") for rule in root
            if local_name(rule.tag) == "rule" and rule.get("id")
        ]
        root_rule = root.get("root")
        if root_rule and root_rule not in rule_ids:
            raise GrammarCompileError(f"root rule '{root_rule}' is not defined")

        return CompiledGrammar(xml=xml, root_rule=root_rule, rule_ids=rule_ids)

    def load_grammar(self, name: str, compiled: CompiledGrammar) -> None:
        with self._lock:
            if name in self._grammars:
                logger.debug(f"Unloading grammar from engine: {name}")
                del self._grammars[name]
            compiled.name = name
            self._grammars[name] = compiled
            self.load_history.append(name)
        logger.debug(f"Loaded grammar into engine: {name}")

    def unload_grammar(self, name: str) -> bool:
        with self._lock:
            return self._grammars.pop(name, None) is not None

    def set_enabled(self, name: str, enabled: bool) -> None:
        with self._lock:
            compiled = self._grammars.get(name)
            if compiled is not None:
                compiled.enabled = enabled

    def loaded_names(self) -> List[str]:
        with self._lock:
            return list(self._grammars)

    def load_all(self, grammars: Iterable[Grammar]) -> int:
        self.bulk_load_count += 1
        return super().load_all(grammars)

    def get(self, name: str) -> Optional[CompiledGrammar]:
        """Compiled grammar bound to a name, if any"""
        with self._lock:
            return self._grammars.get(name)
