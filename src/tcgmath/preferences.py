import json
import logging
from typing import Any, Dict, List

from .config import settings
from .exceptions import StorageError
from .models import Preferences
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

AVAILABLE_SETS: List[Dict[str, str]] = [
    {"id": "swsh3", "name": "Sword & Shield - Darkness Ablaze"},
    {"id": "me01", "name": "McDonald's Collection 2021"},
    {"id": "sv05", "name": "Scarlet & Violet - Temporal Forces"},
    {"id": "sv06.5", "name": "Scarlet & Violet - Shrouded Fable"},
]
LANGUAGES = ("en", "no")


def _text_or(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value else default


class PreferenceStore:
    """Language and card-set choice, kept next to the collection."""

    def __init__(self, storage: KeyValueStore, key: str = settings.SETTINGS_KEY):
        self.storage = storage
        self.key = key

    def load(self) -> Preferences:
        """Stored choices, each unreadable field falling back to its default."""
        defaults = Preferences()
        try:
            stored = self.storage.get(self.key)
            parsed = json.loads(stored) if stored else None
        except (StorageError, ValueError) as e:
            logger.error(f"Error loading preferences: {e}")
            return defaults
        if not isinstance(parsed, dict):
            return defaults
        return Preferences(
            language=_text_or(parsed.get("language"), defaults.language),
            selected_set=_text_or(parsed.get("selectedSet"), defaults.selected_set),
        )

    def save(self, prefs: Preferences) -> None:
        try:
            self.storage.set(self.key, prefs.model_dump_json(by_alias=True))
        except StorageError as e:
            logger.error(f"Error saving preferences: {e}")

    def update(self, **changes: Any) -> Preferences:
        selected_set = changes.get("selected_set")
        if selected_set is not None and selected_set not in {s["id"] for s in AVAILABLE_SETS}:
            raise ValueError(f"Unknown card set: {selected_set}")
        language = changes.get("language")
        if language is not None and language not in LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")

        merged = self.load().model_dump()
        merged.update({k: v for k, v in changes.items() if v is not None})
        prefs = Preferences.model_validate(merged)
        self.save(prefs)
        return prefs
