"""Tests for the per-player preferences record."""

import pytest

from tcgmath.models import Preferences
from tcgmath.preferences import AVAILABLE_SETS, PreferenceStore
from tcgmath.storage import MemoryStore


@pytest.fixture
def prefs(memory_store: MemoryStore) -> PreferenceStore:
    return PreferenceStore(memory_store, "test:settings")


class TestPreferenceStore:
    def test_defaults(self, prefs: PreferenceStore) -> None:
        assert prefs.load() == Preferences(language="en", selected_set="swsh3")

    def test_update_is_persisted(self, prefs: PreferenceStore) -> None:
        prefs.update(selected_set="sv05")
        prefs.update(language="no")

        assert prefs.load() == Preferences(language="no", selected_set="sv05")

    def test_none_values_are_ignored(self, prefs: PreferenceStore) -> None:
        prefs.update(selected_set="sv05")

        assert prefs.update(selected_set=None, language=None).selected_set == "sv05"

    def test_unknown_set_is_rejected(self, prefs: PreferenceStore) -> None:
        with pytest.raises(ValueError):
            prefs.update(selected_set="base1")
        assert prefs.load().selected_set == "swsh3"

    def test_unknown_language_is_rejected(self, prefs: PreferenceStore) -> None:
        with pytest.raises(ValueError):
            prefs.update(language="xx")

    def test_corrupt_record_falls_back(self, memory_store: MemoryStore, prefs: PreferenceStore) -> None:
        memory_store.set("test:settings", "{broken")

        assert prefs.load() == Preferences()

    def test_missing_fields_are_filled(self, memory_store: MemoryStore, prefs: PreferenceStore) -> None:
        memory_store.set("test:settings", '{"language": "no"}')

        assert prefs.load() == Preferences(language="no", selected_set="swsh3")

    def test_save_failure_is_swallowed(self) -> None:
        prefs = PreferenceStore(MemoryStore(max_value_size=1), "test:settings")

        prefs.save(Preferences(selected_set="sv05"))

        assert prefs.load().selected_set == "swsh3"

    def test_available_sets_are_unique(self) -> None:
        ids = [s["id"] for s in AVAILABLE_SETS]
        assert len(ids) == len(set(ids))

    def test_bad_field_falls_back_alone(self, memory_store: MemoryStore, prefs: PreferenceStore) -> None:
        memory_store.set("test:settings", '{"language": null, "selectedSet": "sv05"}')

        assert prefs.load() == Preferences(language="en", selected_set="sv05")

    def test_wrong_field_type_falls_back_alone(
        self, memory_store: MemoryStore, prefs: PreferenceStore
    ) -> None:
        memory_store.set("test:settings", '{"language": "no", "selectedSet": 7}')

        assert prefs.load() == Preferences(language="no", selected_set="swsh3")

    def test_non_object_record_falls_back(self, memory_store: MemoryStore, prefs: PreferenceStore) -> None:
        memory_store.set("test:settings", '["no"]')

        assert prefs.load() == Preferences()
