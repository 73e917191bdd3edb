"""
In-memory model of a named speech grammar
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from grammar_cache.examples import parse_root
from grammar_cache.transform import TransformResult

_LAZY_ROOT_RE = re.compile(r"lazy\w+", re.IGNORECASE)


def now() -> datetime:
    """Current local time, timezone-aware"""
    return datetime.now(timezone.utc).astimezone()


def file_modified_time(path: Path) -> datetime:
    """On-disk modification time of a file, timezone-aware"""
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).astimezone()


def is_lazy(path: Union[str, Path, None], xml: str) -> bool:
    """
    Check whether a grammar should load disabled

    A grammar is lazy when its path mentions "lazy" or its root rule
    is named lazy<Something>.

    Raises:
        GrammarParseError: If the document is malformed
    """
    if path is not None and "lazy" in str(path).lower():
        return True
    root_rule = parse_root(xml).get("root") or ""
    return _LAZY_ROOT_RE.fullmatch(root_rule) is not None


@dataclass
class Grammar:
    """A named grammar and its transformed XML"""
    name: str
    path: Optional[Path] = None
    raw_xml: Optional[str] = None
    xml: Optional[str] = None
    enabled: bool = True
    has_wake_word: bool = False
    last_modified: Optional[datetime] = None
    # mtime of the file last loaded; compositions leave it alone
    source_mtime: Optional[datetime] = None
    examples: Dict[str, str] = field(default_factory=dict)

    def apply(self, raw_xml: str, result: TransformResult, examples: Dict[str, str]) -> None:
        """Replace content with a completed transform"""
        self.raw_xml = raw_xml
        self.xml = result.xml
        self.has_wake_word = result.has_wake_word
        self.examples = examples

    def touch(self, modified: datetime) -> None:
        """Advance last_modified, never moving it backwards"""
        if self.last_modified is None or modified > self.last_modified:
            self.last_modified = modified

    @property
    def is_dynamic(self) -> bool:
        return self.path is None

    def to_dict(self) -> Dict[str, Any]:
        """Summary for control-surface responses"""
        return {
            "name": self.name,
            "path": str(self.path) if self.path else None,
            "enabled": self.enabled,
            "has_wake_word": self.has_wake_word,
            "last_modified": (
                self.last_modified.isoformat(timespec="milliseconds")
                if self.last_modified else None
            ),
            "examples": dict(self.examples),
        }
