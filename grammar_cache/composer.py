"""
Runtime grammar composition

Builds a complete grammar document around a rule body supplied by a
control client, caches it and loads just that grammar into the engine.
No files are read or written.
"""

import logging
from enum import Enum
from typing import Optional

from grammar_cache.engine import EngineAdapter
from grammar_cache.errors import GrammarParseError
from grammar_cache.examples import extract_examples
from grammar_cache.grammar import Grammar, now
from grammar_cache.store import GrammarStore

logger = logging.getLogger(__name__)

SRGS_NAMESPACE = "http://www.w3.org/2001/06/grammar"


class Dialect(Enum):
    """Semantic tag formats for the rule initializer"""
    W3C = "w3c"
    MS = "ms"

    @property
    def tag_format(self) -> str:
        return "semantics-ms/1.0" if self is Dialect.MS else "semantics/1.0"

    @property
    def variable(self) -> str:
        return "$" if self is Dialect.MS else "out"


def build_grammar_xml(name: str, body_xml: str, language: str, dialect: Dialect) -> str:
    """
    Wrap a rule body in a full SRGS document

    Args:
        name: Grammar name, used as the root rule id
        body_xml: Inner XML of the rule
        language: xml:lang of the document
        dialect: Tag format of the initializer

    Returns:
        Grammar XML text
    """
    return (
        f'<grammar version="1.0" xml:lang="{language}" mode="voice" root="{name}" '
        f'xmlns="{SRGS_NAMESPACE}" tag-format="{dialect.tag_format}">'
        f'\n<rule id="{name}" scope="public">'
        f"\n<tag>{dialect.variable}.action=new Object(); </tag>"
        f"{body_xml}"
        "\n</rule>"
        "\n</grammar>"
    )


class GrammarComposer:
    """Control-surface entry point for injecting rules at runtime"""

    def __init__(self, store: GrammarStore, engine: EngineAdapter):
        self.store = store
        self.engine = engine

    def compose(self, name: str, body_xml: str, dialect: Dialect = Dialect.W3C) -> Optional[Grammar]:
        """
        Replace a cached grammar's content with a composed rule

        Args:
            name: Name of an existing grammar
            body_xml: Inner XML of the grammar's root rule
            dialect: Tag format of the rule initializer

        Returns:
            The updated Grammar, or None if no grammar has that name or
            the composed document could not be built
        """
        with self.store.lock:
            grammar = self.store.find_by_name(name)
            if grammar is None:
                logger.warning(f"Cannot compose {name}: grammar not found")
                return None
            return self.compose_grammar(grammar, body_xml, dialect)

    def compose_grammar(self, grammar: Grammar, body_xml: str,
                        dialect: Dialect = Dialect.W3C) -> Optional[Grammar]:
        """
        Compose into a given grammar, caching it if it is not cached yet

        The grammar is only modified once the composed document has been
        transformed, indexed and compiled.
        """
        name = grammar.name
        raw_xml = build_grammar_xml(name, body_xml, self.store.language, dialect)

        with self.store.lock:
            result = self.store.transform(name, raw_xml)
            if result is None:
                return None

            try:
                examples = extract_examples(result.xml)
            except GrammarParseError as e:
                logger.error(f"Malformed rule body for {name}: {e}")
                return None

            compiled = self.engine.build_xml(name, result.xml, grammar.enabled)
            if compiled is None:
                return None

            grammar.apply(raw_xml, result, examples)
            grammar.touch(now())
            if self.store.find_by_name(name) is not grammar:
                self.store.add(grammar)

            self.engine.load_grammar(name, compiled)

        logger.info(f"Composed grammar: {name} ({dialect.value})")
        return grammar
