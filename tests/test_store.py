"""Tests for the stat store and its persistence."""

import json

import pytest
from charstats.errors import InvalidGrowth
from charstats.preferences import PreferenceStore
from charstats.storage import PREFS_RECORD, STATS_RECORD, SQLiteKeyValueStore
from charstats.store import StatStore
from charstats.types import Preferences, StatRecord


@pytest.fixture
def backend():
    kv = SQLiteKeyValueStore(":memory:")
    yield kv
    kv.close()


@pytest.fixture
def store(backend):
    return StatStore(backend)


class FailingBackend:
    """Backend whose writes always fail."""

    def __init__(self):
        self.data = {}

    def get(self, name):
        return self.data.get(name)

    def set(self, name, value):
        raise OSError("disk full")


class TestStructuredInput:
    def test_add_stat_derives_key_and_parses_number(self, store):
        rec = store.add_stat("global", "Max Health", "120", "hp")
        assert rec.key == "max_health"
        assert rec.value == 120.0
        assert rec.unit == " hp"
        assert rec.name == "Max Health"

    def test_leading_number_is_numeric(self, store):
        rec = store.add_stat("global", "Height", "6 ft")
        assert rec.value == 6.0

    def test_text_value_stays_string(self, store):
        rec = store.add_stat("global", "Mood", "happy")
        assert rec.value == "happy"
        assert rec.unit == ""

    def test_name_and_value_required(self, store):
        with pytest.raises(ValueError):
            store.add_stat("global", "", "5")
        with pytest.raises(ValueError):
            store.add_stat("global", "Height", "  ")

    def test_edit_keeps_key(self, store):
        store.add_stat("global", "Height", "6", "ft")
        rec = store.edit_stat("global", "height", "Stature", "7", "m")
        assert rec.key == "height"
        assert rec.name == "Stature"
        assert rec.value == 7.0
        assert rec.unit == " m"
        assert [r.key for r in store.snapshot("global")] == ["height"]

    def test_edit_missing_key(self, store):
        with pytest.raises(KeyError):
            store.edit_stat("global", "nope", "Nope", "1")


class TestScopes:
    def test_scopes_are_isolated(self, store):
        store.add_stat("char_Alex", "Height", "6", "ft")
        store.add_stat("char_Bea", "Height", "5", "ft")
        assert store.get("char_Alex", "height").value == 6.0
        assert store.get("char_Bea", "height").value == 5.0

    def test_snapshot_returns_copies(self, store):
        store.add_stat("global", "Height", "6", "ft")
        snap = store.snapshot("global")
        snap[0].value = 99
        assert store.get("global", "height").value == 6.0

    def test_snapshot_keeps_insertion_order(self, store):
        for name in ("Height", "Weight", "Agility"):
            store.add_stat("global", name, "1")
        assert [r.key for r in store.snapshot("global")] == ["height", "weight", "agility"]

    def test_delete_record(self, store):
        store.add_stat("global", "Height", "6")
        assert store.delete_record("global", "height") is True
        assert store.delete_record("global", "height") is False
        assert store.snapshot("global") == []

    def test_reset_scope_keeps_scope(self, store):
        store.add_stat("char_Alex", "Height", "6")
        store.add_stat("char_Alex", "Weight", "150")
        assert store.reset_scope("char_Alex") == 2
        assert store.snapshot("char_Alex") == []
        assert "char_Alex" in store.scopes()


class TestGrowth:
    def test_ten_percent(self, store):
        store.set_record("global", StatRecord("power", "Power", 100.0))
        assert store.grow_stats("global", 10) == 1
        assert store.get("global", "power").value == pytest.approx(110.0)

    def test_negative_growth_shrinks(self, store):
        store.set_record("global", StatRecord("power", "Power", 100.0))
        store.grow_stats("global", -50)
        assert store.get("global", "power").value == pytest.approx(50.0)

    def test_strings_are_skipped(self, store):
        store.add_stat("global", "Mood", "happy")
        store.add_stat("global", "Height", "6", "ft")
        assert store.grow_stats("global", 5) == 1
        assert store.get("global", "mood").value == "happy"

    @pytest.mark.parametrize("percent", [0, 0.0, float("nan"), "abc", None])
    def test_invalid_growth_rejected(self, store, percent):
        store.set_record("global", StatRecord("power", "Power", 100.0))
        with pytest.raises(InvalidGrowth):
            store.grow_stats("global", percent)
        assert store.get("global", "power").value == 100.0

    def test_growth_notifies_once(self, store):
        store.add_stat("global", "Height", "6")
        store.add_stat("global", "Weight", "150")
        events = []
        store.add_listener(events.append)
        store.grow_stats("global", 5)
        assert events == ["global"]


class TestDefaults:
    def test_add_default_stat(self, store):
        assert store.add_default_stat("global", "height") is True
        rec = store.get("global", "height")
        assert rec.name == "Height"
        assert rec.value == 0
        assert rec.unit == " ft"

    def test_default_does_not_overwrite(self, store):
        store.add_stat("global", "Weight", "150", "lbs")
        assert store.add_default_stat("global", "Weight") is False
        assert store.get("global", "weight").value == 150.0

    def test_unknown_default(self, store):
        with pytest.raises(KeyError):
            store.add_default_stat("global", "charisma")


def test_card_text(store):
    """Test the character-card export format."""
    store.add_stat("char_Alex", "Height", "6", "ft")
    store.add_stat("char_Alex", "Mood", "happy")
    assert store.card_text("char_Alex") == "Height: 6.00 ft\nMood: happy\n"
    assert store.card_text("char_Empty") == ""


class TestPersistence:
    def test_every_mutation_is_persisted(self, store, backend):
        store.add_stat("char_Alex", "Height", "6", "ft")
        saved = json.loads(backend.get(STATS_RECORD))
        assert saved == {"char_Alex": {"height": {"value": 6.0, "unit": " ft", "name": "Height"}}}

    def test_load_round_trip(self, store, backend):
        store.add_stat("char_Alex", "Height", "6", "ft")
        store.add_stat("char_Alex", "Mood", "happy")
        reloaded = StatStore(backend)
        reloaded.load()
        assert reloaded.snapshot("char_Alex") == store.snapshot("char_Alex")

    def test_load_legacy_scalar_entries(self, backend):
        backend.set(STATS_RECORD, json.dumps({"global": {"max_hp": 30, "title": "Knight"}}))
        store = StatStore(backend)
        store.load()
        hp = store.get("global", "max_hp")
        assert hp.name == "Max Hp"
        assert hp.value == 30
        assert store.get("global", "title").value == "Knight"

    def test_corrupt_cache_is_ignored(self, backend):
        backend.set(STATS_RECORD, "{not json")
        store = StatStore(backend)
        store.load()
        assert store.scopes() == []

    def test_write_failure_is_swallowed(self, caplog):
        store = StatStore(FailingBackend())
        rec = store.add_stat("global", "Height", "6")
        assert rec.value == 6.0
        assert store.get("global", "height").value == 6.0
        assert store.save() is False
        assert "disk full" in caplog.text

    def test_without_backend(self):
        store = StatStore()
        store.load()
        store.add_stat("global", "Height", "6")
        assert store.save() is False


class TestPreferences:
    def test_defaults(self, backend):
        prefs = PreferenceStore(backend).load()
        assert prefs == Preferences(enabled=True, auto_inject=True, inject_role="system")

    def test_update_persists(self, backend):
        PreferenceStore(backend).update(auto_inject=False, inject_role="user")
        assert json.loads(backend.get(PREFS_RECORD)) == {
            "enabled": True,
            "autoInject": False,
            "injectRole": "user",
        }
        reloaded = PreferenceStore(backend).load()
        assert reloaded.auto_inject is False
        assert reloaded.effective_role == "user"

    def test_invalid_role_rejected(self, backend):
        with pytest.raises(ValueError):
            PreferenceStore(backend).update(inject_role="assistant")

    def test_partial_persisted_object_merges_defaults(self, backend):
        backend.set(PREFS_RECORD, json.dumps({"enabled": False, "injectRole": "bogus"}))
        prefs = PreferenceStore(backend).load()
        assert prefs.enabled is False
        assert prefs.auto_inject is True
        assert prefs.inject_role == "system"


def test_kv_store_overwrites(backend):
    """Test setting a record twice keeps the last value."""
    assert backend.get("char_card_stats_char_Alex") is None
    backend.set("char_card_stats_char_Alex", "x")
    backend.set("char_card_stats_char_Alex", "y")
    assert backend.get("char_card_stats_char_Alex") == "y"


def test_removed_listener_is_not_called(backend):
    store = StatStore(backend)
    seen = []
    store.add_listener(seen.append)
    store.add_stat("global", "Height", "6")
    store.remove_listener(seen.append)
    store.remove_listener(seen.append)
    store.add_stat("global", "Weight", "80")
    assert seen == ["global"]
