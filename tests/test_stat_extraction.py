"""Tests for chat-text stat extraction."""

import pytest
from charstats.extractor import StatExtractor, clean_stat_phrase, extract_stat_changes
from charstats.storage import SQLiteKeyValueStore
from charstats.store import StatStore
from charstats.types import StatRecord


@pytest.fixture
def store():
    return StatStore(SQLiteKeyValueStore(":memory:"))


@pytest.fixture
def extractor(store):
    return StatExtractor(store, lambda: "char_Alex")


def _values(store, scope="char_Alex"):
    return {r.key: r.value for r in store.snapshot(scope)}


def test_gain_creates_stat(extractor, store):
    """Test 'gained X' creates X with value 1."""
    extractor.process_text("Alex gained strength.")
    rec = store.get("char_Alex", "strength")
    assert rec is not None
    assert rec.value == 1
    assert rec.name == "Strength"
    assert rec.unit == ""


def test_growth_creates_stat(extractor, store):
    """Test 'has grown a X' creates X."""
    extractor.process_text("Alex has grown a tail, and it twitches.")
    rec = store.get("char_Alex", "tail")
    assert rec is not None
    assert rec.value == 1
    assert rec.name == "Tail"


def test_growth_with_an(extractor, store):
    """Test the 'an' article is not part of the stat name."""
    extractor.process_text("She has grown an extra arm")
    assert "extra_arm" in _values(store)
    assert store.get("char_Alex", "extra_arm").name == "Extra arm"


def test_creation_rules_never_overwrite(extractor, store):
    """Test growth/gain leave existing records alone."""
    store.set_record("char_Alex", StatRecord("strength", "Strength", 12.0))
    extractor.process_text("Alex gained strength.")
    assert store.get("char_Alex", "strength").value == 12.0


def test_increase_sets_absolute_value(extractor, store):
    """Test 'increased to N' replaces the value."""
    store.set_record("char_Alex", StatRecord("strength", "Strength", 5.0))
    extractor.process_text("strength increased to 20")
    assert store.get("char_Alex", "strength").value == 20


def test_increase_by_is_absolute_too(extractor, store):
    """Test 'increased by N' also sets N (documented quirk)."""
    store.set_record("char_Alex", StatRecord("strength", "Strength", 5.0))
    extractor.process_text("strength increased by 3")
    assert store.get("char_Alex", "strength").value == 3


def test_increase_creates_when_missing(extractor, store):
    """Test the increase rule creates unknown stats."""
    extractor.process_text("Agility increased to 7.5")
    rec = store.get("char_Alex", "agility")
    assert rec.value == 7.5
    assert rec.name == "Agility"


def test_now_rule(extractor, store):
    """Test 'X is now N' and 'X now N'."""
    extractor.process_text("Her height is now 7")
    extractor.process_text("health now 150")
    values = _values(store)
    assert values["height"] == 7
    assert values["health"] == 150


def test_pronoun_placeholder_ignored(extractor, store):
    """Test 'it is now 50' produces no mutation."""
    applied = extractor.process_text("it is now 50")
    assert applied == []
    assert store.snapshot("char_Alex") == []


@pytest.mark.parametrize("text", ["that is now 3", "This now 9", "and then it is now 12"])
def test_other_placeholders_ignored(text):
    """Test that/this and trailing pronouns are excluded."""
    assert extract_stat_changes(text) == []


def test_rules_all_fire_on_same_text():
    """Test the rules are independent, not mutually exclusive."""
    changes = extract_stat_changes("Alex has grown a tail. He gained wings, and his speed is now 40")
    rules = [c.rule for c in changes]
    assert rules == ["growth", "gain", "now"]
    assert [c.key for c in changes] == ["tail", "wings", "speed"]


def test_possessive_is_stripped():
    """Test 'Alex's strength' yields the stat 'strength'."""
    changes = extract_stat_changes("Alex's strength increased to 20")
    assert len(changes) == 1
    assert changes[0].key == "strength"
    assert changes[0].value == 20.0


def test_multi_word_stat_key():
    """Test multi-word phrases become underscore keys."""
    changes = extract_stat_changes("Max health increased to 120")
    assert changes[0].key == "max_health"
    assert changes[0].name == "Max health"


def test_gained_needs_word_boundary():
    """Test 'regained' does not trigger the gain rule."""
    assert extract_stat_changes("She regained composure.") == []


def test_empty_text():
    """Test empty input."""
    assert extract_stat_changes("") == []
    assert extract_stat_changes("   ") == []


def test_no_stats_in_plain_chat():
    """Test ordinary chat extracts nothing."""
    assert extract_stat_changes("Hello there, how was your day?") == []


def test_clean_stat_phrase():
    """Test phrase cleanup."""
    assert clean_stat_phrase("  The   Knight ") == "knight"
    assert clean_stat_phrase("the knight fought and his strength") == "strength"
    assert clean_stat_phrase("s strength") == "strength"
    assert clean_stat_phrase("her") == ""


def test_one_write_and_one_notification_per_fragment(store, extractor):
    """Test a fragment with several mutations commits once."""
    events = []
    store.add_listener(events.append)
    extractor.process_text("Alex has grown a tail. He gained wings, and his speed is now 40")
    assert events == ["char_Alex"]
    assert set(_values(store)) == {"tail", "wings", "speed"}


def test_reprocessing_is_idempotent(store, extractor):
    """Test applying the same text twice changes nothing the second time."""
    text = "Alex gained strength. Her height is now 7"
    first = extractor.process_text(text)
    events = []
    store.add_listener(events.append)
    second = extractor.process_text(text)
    assert len(first) == 2
    assert second == []
    assert events == []


def test_reentrant_calls_are_ignored(store, extractor):
    """Test a listener that re-reads chat cannot recurse into extraction."""
    nested = []
    store.add_listener(lambda scope: nested.append(extractor.process_text("Alex gained speed.")))
    extractor.process_text("Alex gained strength.")
    assert nested == [[]]
    assert "speed" not in _values(store)


def test_process_messages_scans_each_message(store, extractor):
    """Test each message is its own fragment."""
    applied = extractor.process_messages(["Alex gained strength.", "nothing here", "mana is now 30"])
    assert [c.key for c in applied] == ["strength", "mana"]


def test_explicit_scope(store, extractor):
    """Test processing into a given scope."""
    extractor.process_text("Alex gained strength.", scope="global")
    assert store.get("global", "strength") is not None
    assert store.snapshot("char_Alex") == []
