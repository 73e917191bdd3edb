"""Tests for the grammar store: directory scan, file loads and queries.

Modification times are forced with os.utime so the unchanged-file guard
is deterministic.
"""

from datetime import datetime, timezone

import pytest

import grammar_cache.store as store_module
from grammar_cache.errors import LoadOutcome
from grammar_cache.grammar import Grammar
from grammar_cache.store import GrammarStore, ScanReport
from grammar_cache.transform import transform_xml

from conftest import grammar_xml, write_grammar

OLD = 1_000_000_000.0
NEW = 1_100_000_000.0


class TestLoadFile:

    def test_loads_new_grammar(self, store, grammar_root):
        path = write_grammar(grammar_root / "weather.xml", mtime=OLD)

        assert store.load_file(path) is LoadOutcome.LOADED
        grammar = store.find_by_name("weather")
        assert grammar.path == path
        assert grammar.enabled
        assert grammar.has_wake_word
        assert grammar.last_modified.timestamp() == OLD
        assert "JARVIS" in grammar.xml
        assert "SARAH" in grammar.raw_xml

    def test_unchanged_file_not_transformed_again(self, store, grammar_root, monkeypatch):
        path = write_grammar(grammar_root / "weather.xml", mtime=OLD)
        store.load_file(path)
        before = store.find_by_name("weather")

        calls = []

        def counting_transform(*args):
            calls.append(args)
            return transform_xml(*args)

        monkeypatch.setattr(store_module, "transform_xml", counting_transform)

        assert store.load_file(path) is LoadOutcome.UNCHANGED
        assert calls == []
        assert store.find_by_name("weather") is before

    def test_changed_file_updates_grammar_in_place(self, store, grammar_root):
        path = write_grammar(grammar_root / "weather.xml", mtime=OLD)
        store.load_file(path)
        grammar = store.find_by_name("weather")

        rules = '<rule id="main"><item>quel temps fait-il</item></rule>'
        write_grammar(path, grammar_xml(rules=rules), mtime=NEW)

        assert store.load_file(path) is LoadOutcome.LOADED
        assert store.find_by_name("weather") is grammar
        assert grammar.last_modified.timestamp() == NEW
        assert grammar.examples == {"main": "quel temps fait-il"}
        assert not grammar.has_wake_word

    def test_other_language_not_cached(self, store, grammar_root):
        path = write_grammar(grammar_root / "english.xml", grammar_xml(language="en-US"))

        assert store.load_file(path) is LoadOutcome.SKIPPED
        assert store.find_by_name("english") is None
        assert len(store) == 0

    def test_language_switch_keeps_last_good_grammar(self, store, grammar_root):
        path = write_grammar(grammar_root / "weather.xml", mtime=OLD)
        store.load_file(path)
        xml = store.find_by_name("weather").xml

        write_grammar(path, grammar_xml(language="en-US"), mtime=NEW)

        assert store.load_file(path) is LoadOutcome.SKIPPED
        grammar = store.find_by_name("weather")
        assert grammar.xml == xml
        assert grammar.last_modified.timestamp() == OLD

    def test_malformed_file_keeps_last_good_grammar(self, store, grammar_root):
        path = write_grammar(grammar_root / "weather.xml", mtime=OLD)
        store.load_file(path)
        xml = store.find_by_name("weather").xml

        write_grammar(path, '<grammar xml:lang="fr-FR"><rule id="main">', mtime=NEW)

        assert store.load_file(path) is LoadOutcome.FAILED
        assert store.find_by_name("weather").xml == xml

    def test_malformed_new_file_not_cached(self, store, grammar_root):
        path = write_grammar(grammar_root / "broken.xml", '<grammar xml:lang="fr-FR">')
        assert store.load_file(path) is LoadOutcome.FAILED
        assert "broken" not in store

    def test_missing_file_fails(self, store, grammar_root):
        assert store.load_file(grammar_root / "missing.xml") is LoadOutcome.FAILED

    def test_undecodable_file_fails(self, store, grammar_root):
        path = grammar_root / "binary.xml"
        path.write_bytes(b"\xff\xfe\xfa")
        assert store.load_file(path) is LoadOutcome.FAILED


class TestDefaultEnabled:

    def test_plain_grammar_enabled(self, store, grammar_root):
        path = write_grammar(grammar_root / "radio.xml", grammar_xml(root_rule="radio"))
        store.load_file(path)
        assert store.find_by_name("radio").enabled

    def test_path_mention_disables(self, store, grammar_root):
        path = write_grammar(grammar_root / "Lazy" / "radio.xml")
        store.load_file(path)
        assert not store.find_by_name("radio").enabled

    def test_root_rule_prefix_disables(self, store, grammar_root):
        path = write_grammar(grammar_root / "radio.xml", grammar_xml(root_rule="LazyRadio"))
        store.load_file(path)
        assert not store.find_by_name("radio").enabled

    def test_reload_reevaluates_flag(self, store, grammar_root):
        path = write_grammar(grammar_root / "radio.xml", grammar_xml(root_rule="lazyRadio"), mtime=OLD)
        store.load_file(path)
        assert not store.find_by_name("radio").enabled

        write_grammar(path, grammar_xml(root_rule="radio"), mtime=NEW)
        store.load_file(path)
        assert store.find_by_name("radio").enabled


class TestScan:

    def test_zero_depth_loads_nothing(self, store, grammar_root):
        write_grammar(grammar_root / "weather.xml")

        report = store.load(grammar_root, 0)

        assert report.total == 0
        assert len(store) == 0

    def test_distinct_names_each_cached(self, store, grammar_root):
        for name in ("weather", "radio", "timer"):
            write_grammar(grammar_root / f"{name}.xml")
        write_grammar(grammar_root / "music" / "player.xml")

        report = store.load(grammar_root)

        assert report.loaded == 4
        assert store.names() == ["player", "radio", "timer", "weather"]

    def test_colliding_names_resolve_to_last_visited(self, store, grammar_root):
        write_grammar(grammar_root / "a" / "greet.xml", mtime=OLD)
        write_grammar(grammar_root / "b" / "greet.xml", mtime=NEW)

        store.load(grammar_root)

        assert len(store) == 1
        assert store.find_by_name("greet").path == grammar_root / "b" / "greet.xml"

    def test_root_files_loaded_after_subdirectories(self, store, grammar_root):
        write_grammar(grammar_root / "greet.xml", mtime=OLD)
        write_grammar(grammar_root / "sub" / "greet.xml", mtime=NEW)

        store.load(grammar_root)

        assert store.find_by_name("greet").path == grammar_root / "greet.xml"

    def test_depth_bounds_recursion(self, store, grammar_root):
        write_grammar(grammar_root / "one" / "shallow.xml")
        write_grammar(grammar_root / "one" / "two" / "deep.xml")

        store.load(grammar_root, 2)

        assert "shallow" in store
        assert "deep" not in store

    def test_only_xml_files_loaded(self, store, grammar_root):
        write_grammar(grammar_root / "weather.xml")
        write_grammar(grammar_root / "RADIO.XML")
        (grammar_root / "notes.txt").write_text(grammar_xml(), encoding="utf-8")

        store.load(grammar_root)

        assert store.names() == ["RADIO", "weather"]

    def test_file_root_skipped(self, store, grammar_root):
        path = write_grammar(grammar_root / "weather.xml")

        report = store.load(path)

        assert report.total == 0
        assert len(store) == 0

    def test_missing_root_skipped(self, store, grammar_root):
        assert store.load(grammar_root / "missing").total == 0

    def test_report_counts_outcomes(self, store, grammar_root):
        write_grammar(grammar_root / "weather.xml", mtime=OLD)
        write_grammar(grammar_root / "english.xml", grammar_xml(language="en-US"))
        write_grammar(grammar_root / "broken.xml", "<grammar")

        first = store.load(grammar_root)
        second = store.load(grammar_root)

        assert (first.loaded, first.skipped, first.failed) == (1, 1, 1)
        assert (second.loaded, second.unchanged) == (0, 1)

    def test_failed_file_does_not_stop_scan(self, store, grammar_root):
        write_grammar(grammar_root / "a_broken.xml", "<grammar")
        write_grammar(grammar_root / "b_weather.xml")

        store.load(grammar_root)

        assert store.names() == ["b_weather"]


class TestQueries:

    def test_find_by_name_miss_returns_none(self, store):
        assert store.find_by_name("nothing") is None

    def test_find_example_across_grammars(self, store, grammar_root):
        write_grammar(
            grammar_root / "weather.xml",
            grammar_xml(rules='<rule id="forecast"><item>demain</item></rule>', root_rule="forecast"),
        )
        write_grammar(grammar_root / "radio.xml", grammar_xml(rules='<rule id="play"><item>joue</item></rule>'))
        store.load(grammar_root)

        assert store.find_example("forecast") == "demain"
        assert store.find_example("play") == "joue"
        assert store.find_example("unknown") is None

    def test_add_rejects_untransformed_grammar(self, store):
        with pytest.raises(ValueError):
            store.add(Grammar(name="raw"))


class TestEnabledSync:

    def test_store_flags_pushed_to_loaded_grammars(self, store, engine, grammar_root):
        write_grammar(grammar_root / "weather.xml")
        write_grammar(grammar_root / "radio.xml")
        store.load(grammar_root)
        engine.load_all(store.grammars())

        store.set_enabled("radio", False)
        updated = store.sync_enabled_to_engine(engine)

        assert updated == 2
        assert engine.get("weather").enabled
        assert not engine.get("radio").enabled

    def test_engine_only_grammars_untouched(self, store, engine):
        compiled = engine.compile_xml(grammar_xml())
        compiled.enabled = False
        engine.load_grammar("external", compiled)

        assert store.sync_enabled_to_engine(engine) == 0
        assert not engine.get("external").enabled

    def test_engine_state_never_flows_back(self, store, engine, grammar_root):
        write_grammar(grammar_root / "weather.xml")
        store.load(grammar_root)
        engine.load_all(store.grammars())

        engine.set_enabled("weather", False)
        store.sync_enabled_to_engine(engine)

        assert store.find_by_name("weather").enabled
        assert engine.get("weather").enabled

    def test_set_enabled_unknown_name(self, store):
        assert store.set_enabled("nothing", True) is False


def test_scan_report_merge():
    report = ScanReport(loaded=1, failed=1)
    report.merge(ScanReport(loaded=2, skipped=3))
    assert (report.loaded, report.skipped, report.failed, report.total) == (3, 3, 1, 7)


def test_store_is_per_instance():
    french = GrammarStore(language="fr-FR", hotword="sarah")
    english = GrammarStore(language="en-US", hotword="jarvis")
    assert french.language != english.language
    assert len(french) == len(english) == 0


def test_touch_never_moves_backwards():
    grammar = Grammar(name="weather")
    later = datetime.fromtimestamp(NEW, tz=timezone.utc)

    grammar.touch(later)
    grammar.touch(datetime.fromtimestamp(OLD, tz=timezone.utc))

    assert grammar.last_modified == later
