"""
Grammar text transforms

Pure string rewrites applied to raw grammar XML before it is parsed:
- Language gate
- Hotword substitution
- Optional hotword wrapping
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

# Token used by grammar templates in place of the hotword
HOTWORD_PLACEHOLDER = "SARAH"

# Not preceded by '/' so namespace-like strings are left alone
_PLACEHOLDER_RE = re.compile(r"(?<!/)" + HOTWORD_PLACEHOLDER, re.IGNORECASE)


@dataclass
class TransformResult:
    """Transformed grammar text"""
    xml: str
    has_wake_word: bool = False


def matches_language(xml: str, language: str) -> bool:
    """Check whether the document declares xml:lang="<language>" """
    pattern = 'xml:lang="' + re.escape(language) + '"'
    return re.search(pattern, xml, re.IGNORECASE) is not None


def substitute_hotword(xml: str, hotword: str) -> str:
    """Replace the hotword placeholder with the upper-cased hotword"""
    bot = hotword.upper()
    return _PLACEHOLDER_RE.sub(lambda _: bot, xml)


def wrap_optional_hotword(xml: str, hotword: str) -> Tuple[str, bool]:
    """
    Make hotword-only items optional

    Rewrites <item>HOTWORD</item> to <item repeat="0-1">HOTWORD</item>
    so a command can be spoken with or without the wake word.

    Args:
        xml: Grammar text (hotword already substituted)
        hotword: Configured hotword

    Returns:
        Tuple of (rewritten text, whether any item was rewritten)
    """
    bot = hotword.upper()
    item_re = re.compile(r"<item>\s*" + re.escape(bot) + r"\s*</item>", re.IGNORECASE)
    replacement = '<item repeat="0-1">' + bot + "</item>"
    rewritten, count = item_re.subn(lambda _: replacement, xml)
    return rewritten, count > 0


def transform_xml(xml: str, language: str, hotword: str) -> Optional[TransformResult]:
    """
    Run the full transform pipeline on raw grammar text

    Args:
        xml: Raw grammar XML
        language: Target language tag (e.g. "fr-FR")
        hotword: Wake word substituted for the placeholder

    Returns:
        TransformResult, or None if the document is for another language
    """
    if not matches_language(xml, language):
        return None

    xml = substitute_hotword(xml, hotword)
    xml, has_wake_word = wrap_optional_hotword(xml, hotword)
    return TransformResult(xml=xml, has_wake_word=has_wake_word)
