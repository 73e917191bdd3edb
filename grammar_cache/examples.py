"""
Example utterance index

Each top-level rule of a grammar documents itself through its first
non-<example> child element.
"""

import xml.etree.ElementTree as ET
from typing import Dict

from grammar_cache.errors import GrammarParseError


def local_name(tag: str) -> str:
    """Strip the '{namespace}' prefix ElementTree puts on tags"""
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def parse_root(xml: str) -> ET.Element:
    """Parse grammar text and return its root element"""
    try:
        return ET.fromstring(xml)
    except ET.ParseError as e:
        raise GrammarParseError(str(e)) from e


def extract_examples(xml: str) -> Dict[str, str]:
    """
    Map rule ids to example text

    Args:
        xml: Transformed grammar XML

    Returns:
        Dict of rule id -> text of the rule's first non-example child.
        The first rule wins when an id repeats.

    Raises:
        GrammarParseError: If the document is malformed
    """
    root = parse_root(xml)
    examples: Dict[str, str] = {}

    # ElementTree drops comments, so children are elements only
    for rule in root:
        rule_id = rule.get("id")
        if not rule_id or rule_id in examples:
            continue

        for child in rule:
            if local_name(child.tag) == "example":
                continue
            examples[rule_id] = "".join(child.itertext())
            break

    return examples
