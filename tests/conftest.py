"""Shared fixtures for the grammar_cache test suite.

Grammar trees are built under tmp_path. Test names never contain "lazy":
pytest puts the test name into tmp_path, and a grammar whose path
contains "lazy" loads disabled.
"""

import os
from pathlib import Path
from typing import Optional

import pytest

from grammar_cache.engine import MemoryEngine
from grammar_cache.store import GrammarStore

SRGS_NS = "http://www.w3.org/2001/06/grammar"


def grammar_xml(root_rule: str = "main", language: str = "fr-FR", rules: Optional[str] = None) -> str:
    """Build a small SRGS document."""
    if rules is None:
        rules = (
            f'<rule id="{root_rule}" scope="public">'
            "<example>SARAH allume la lumière</example>"
            "<item>SARAH</item>"
            "<one-of><item>allume la lumière</item><item>éteins la lumière</item></one-of>"
            "</rule>"
        )
    return (
        f'<grammar version="1.0" xml:lang="{language}" mode="voice" root="{root_rule}" '
        f'xmlns="{SRGS_NS}" tag-format="semantics/1.0">{rules}</grammar>'
    )


def write_grammar(path: Path, content: Optional[str] = None, mtime: Optional[float] = None) -> Path:
    """Write a grammar file, optionally forcing its modification time."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content if content is not None else grammar_xml(), encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def grammar_root(tmp_path) -> Path:
    root = tmp_path / "grammars"
    root.mkdir()
    return root


@pytest.fixture
def store() -> GrammarStore:
    return GrammarStore(language="fr-FR", hotword="jarvis")


@pytest.fixture
def engine() -> MemoryEngine:
    return MemoryEngine()
