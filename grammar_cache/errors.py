"""
Error types and per-operation outcomes
"""

from enum import Enum


class GrammarError(Exception):
    """Base class for grammar cache errors"""


class GrammarParseError(GrammarError):
    """Grammar document is not well-formed XML"""


class GrammarCompileError(GrammarError):
    """Engine rejected a transformed grammar document"""


class ProtocolError(GrammarError):
    """Control socket frame is oversized, truncated or not a JSON object"""


class LoadOutcome(Enum):
    """Result of loading a single grammar file"""
    LOADED = "loaded"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"  # language mismatch
    FAILED = "failed"
