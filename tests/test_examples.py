"""Tests for rule example extraction."""

import pytest

from grammar_cache.errors import GrammarParseError
from grammar_cache.examples import extract_examples, local_name

from conftest import grammar_xml


class TestExtractExamples:

    def test_first_child_text_becomes_example(self):
        xml = grammar_xml(rules='<rule id="foo"><other>bar</other></rule>', root_rule="foo")
        assert extract_examples(xml) == {"foo": "bar"}

    def test_example_elements_skipped(self):
        rules = '<rule id="hello"><example>say hi</example><item>bonjour</item></rule>'
        assert extract_examples(grammar_xml(rules=rules)) == {"hello": "bonjour"}

    def test_nested_text_concatenated(self):
        rules = '<rule id="r"><one-of><item>a</item><item>b</item></one-of></rule>'
        assert extract_examples(grammar_xml(rules=rules)) == {"r": "ab"}

    def test_first_rule_wins_for_duplicate_ids(self):
        rules = '<rule id="r"><item>first</item></rule><rule id="r"><item>second</item></rule>'
        assert extract_examples(grammar_xml(rules=rules)) == {"r": "first"}

    def test_comments_and_rules_without_id_skipped(self):
        rules = (
            "<!-- greetings -->"
            "<rule><item>anonymous</item></rule>"
            '<rule id="named"><!-- note --><item>hello</item></rule>'
        )
        assert extract_examples(grammar_xml(rules=rules)) == {"named": "hello"}

    def test_rule_without_children_has_no_example(self):
        rules = '<rule id="empty">just text</rule>'
        assert extract_examples(grammar_xml(rules=rules)) == {}

    def test_malformed_document_raises(self):
        with pytest.raises(GrammarParseError):
            extract_examples('<grammar xml:lang="fr-FR"><rule id="r">')


def test_local_name_strips_namespace():
    assert local_name("{http://www.w3.org/2001/06/grammar}rule") == "rule"
    assert local_name("rule") == "rule"
