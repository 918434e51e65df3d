import json
import logging
import threading
import zlib
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .config import settings
from .exceptions import SaveCollectionError, StorageError
from .migrations import migrate
from .models import Card, CollectedCard, Collection, ImportResult, QuizStats
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

_REQUIRED_STAT_FIELDS = ("totalQuestions", "correctAnswers", "incorrectAnswers")

# Keys share a fixed pool of locks, so the pool does not grow with players.
LOCK_BUCKETS = 64
_locks = [threading.RLock() for _ in range(LOCK_BUCKETS)]


def _lock_for(key: str) -> threading.RLock:
    return _locks[zlib.crc32(key.encode("utf-8")) % LOCK_BUCKETS]


def has_collection_shape(data: Any) -> bool:
    """Top-level check shared by load and import."""
    return (
        isinstance(data, dict)
        and bool(data.get("version"))
        and isinstance(data.get("cards"), list)
        and isinstance(data.get("stats"), dict)
    )


def _has_stat_counters(stats: Dict[str, Any]) -> bool:
    return all(
        isinstance(stats.get(name), int) and not isinstance(stats.get(name), bool)
        for name in _REQUIRED_STAT_FIELDS
    )


# --- Service Layer: Collection persistence ---
class CollectionStore:
    """Owns one player's persisted collection record.

    Every mutation reloads the whole record, changes it and writes it back.
    Those load/modify/save sequences hold ``lock``, which is shared by all
    stores that address the same key.
    """

    def __init__(self, storage: KeyValueStore, key: str = settings.COLLECTION_KEY):
        self.storage = storage
        self.key = key
        self.lock = _lock_for(key)

    @staticmethod
    def default_collection() -> Collection:
        return Collection(version=settings.CURRENT_VERSION)

    def load_collection(self) -> Collection:
        try:
            stored = self.storage.get(self.key)
            if not stored:
                return self.default_collection()

            parsed = json.loads(stored)
            if not has_collection_shape(parsed):
                logger.warning(f"Invalid collection format under {self.key}, resetting")
                return self.default_collection()

            return Collection.model_validate(migrate(parsed))
        except (StorageError, TypeError, ValueError) as e:
            # ValueError covers JSONDecodeError and pydantic's ValidationError.
            logger.error(f"Error loading collection from {self.key}: {e}")
            return self.default_collection()

    def save_collection(self, collection: Collection) -> None:
        data = collection.model_dump(mode="json", by_alias=True)
        data["version"] = settings.CURRENT_VERSION
        try:
            self.storage.set(self.key, json.dumps(data))
        except StorageError as e:
            logger.error(f"Error saving collection to {self.key}: {e}")
            raise SaveCollectionError("Failed to save collection") from e

    def add_card(self, card: CollectedCard) -> bool:
        with self.lock:
            try:
                collection = self.load_collection()
                if collection.has_card(card.id):
                    return False
                collection.cards.append(card)
                self.save_collection(collection)
                return True
            except SaveCollectionError as e:
                logger.error(f"Error adding card {card.id} to collection: {e}")
                return False

    def update_stats(self, correct: bool, hp_defeated: Optional[int] = None) -> None:
        with self.lock:
            try:
                collection = self.load_collection()
                stats = collection.stats
                stats.total_questions += 1
                if correct:
                    stats.correct_answers += 1
                    if hp_defeated and hp_defeated > 0:
                        stats.total_hp_defeated += hp_defeated
                else:
                    stats.incorrect_answers += 1
                self.save_collection(collection)
            except SaveCollectionError as e:
                logger.error(f"Error updating stats: {e}")

    def get_stats(self) -> QuizStats:
        return self.load_collection().stats

    def record_streak(self, correct: bool, card: Optional[Card] = None) -> int:
        """Extend the streak on a correct answer, reset it otherwise."""
        with self.lock:
            try:
                collection = self.load_collection()
                if correct:
                    collection.current_streak += 1
                    collection.streak_card = card
                else:
                    collection.current_streak = 0
                    collection.streak_card = None
                self.save_collection(collection)
                return collection.current_streak
            except SaveCollectionError as e:
                logger.error(f"Error recording streak: {e}")
                return 0

    def unlock_rare_set(self, set_id: str) -> bool:
        with self.lock:
            try:
                collection = self.load_collection()
                if collection.unlocked_rare_sets.get(set_id):
                    return False
                collection.unlocked_rare_sets[set_id] = True
                self.save_collection(collection)
                return True
            except SaveCollectionError as e:
                logger.error(f"Error unlocking rare set {set_id}: {e}")
                return False

    def is_rare_set_unlocked(self, set_id: str) -> bool:
        return bool(self.load_collection().unlocked_rare_sets.get(set_id))

    def clear_collection(self) -> None:
        with self.lock:
            try:
                self.storage.delete(self.key)
            except StorageError as e:
                logger.error(f"Error clearing collection: {e}")

    def export_collection(self) -> str:
        collection = self.load_collection()
        return json.dumps(collection.model_dump(mode="json", by_alias=True), indent=2)

    def import_collection(self, text: str) -> ImportResult:
        try:
            parsed = json.loads(text)
        except ValueError as e:
            logger.error(f"Error importing collection: {e}")
            return ImportResult(success=False, error="Failed to parse JSON file")

        if not has_collection_shape(parsed):
            return ImportResult(success=False, error="Invalid collection format")
        if not _has_stat_counters(parsed["stats"]):
            return ImportResult(success=False, error="Invalid stats format")

        try:
            collection = Collection.model_validate(migrate(parsed))
        except (ValidationError, TypeError, ValueError) as e:
            logger.error(f"Rejected imported collection: {e}")
            return ImportResult(success=False, error="Invalid collection format")

        with self.lock:
            try:
                self.save_collection(collection)
            except SaveCollectionError:
                return ImportResult(success=False, error="Failed to save collection")
        logger.info(f"Imported collection with {len(collection.cards)} cards into {self.key}")
        return ImportResult(success=True)
