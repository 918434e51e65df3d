from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .config import settings


class CamelModel(BaseModel):
    """Persisted and exported records use camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Card data ---
class Attack(CamelModel):
    name: str
    cost: Optional[List[str]] = None
    damage: Optional[str] = None
    effect: Optional[str] = None

    @field_validator("damage", mode="before")
    @classmethod
    def _damage_as_text(cls, value: Any) -> Optional[str]:
        # Some sources send a bare integer, others "30+" or "20×".
        if value is None or isinstance(value, str):
            return value
        return str(value)


class CardSet(CamelModel):
    id: str
    name: str
    logo: Optional[str] = None
    card_count: Optional[int] = None
    release_date: Optional[str] = None


class Card(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    hp: Optional[int] = None
    image: str = ""
    attacks: Optional[List[Attack]] = None
    types: Optional[List[str]] = None
    rarity: Optional[str] = None
    card_set: Optional[CardSet] = Field(default=None, alias="set")


# --- Questions ---
class QuizQuestion(CamelModel):
    card: Card
    question_text: str
    correct_answer: int
    is_pokemon: bool
    second_question: Optional[str] = None
    second_answer: Optional[int] = None


class DuelQuestion(CamelModel):
    attacker_card: Card
    defender_card: Card
    selected_attack: Attack
    correct_answer: int
    options: List[int]


# --- Collection ---
class CollectedCard(CamelModel):
    id: str
    name: str
    image: str = ""
    hp: Optional[int] = None
    types: Optional[List[str]] = None
    rarity: Optional[str] = None
    collected_at: str

    @classmethod
    def from_card(cls, card: Card) -> "CollectedCard":
        return cls(
            id=card.id,
            name=card.name,
            image=card.image,
            hp=card.hp,
            types=card.types,
            rarity=card.rarity,
            collected_at=datetime.now(timezone.utc).isoformat(),
        )


class QuizStats(CamelModel):
    total_questions: int = 0
    correct_answers: int = 0
    incorrect_answers: int = 0
    total_hp_defeated: int = 0


class Collection(CamelModel):
    model_config = ConfigDict(extra="allow")

    cards: List[CollectedCard] = Field(default_factory=list)
    stats: QuizStats = Field(default_factory=QuizStats)
    version: str = settings.CURRENT_VERSION
    current_streak: int = 0
    streak_card: Optional[Card] = None
    unlocked_rare_sets: Dict[str, bool] = Field(default_factory=dict)

    def has_card(self, card_id: str) -> bool:
        return any(c.id == card_id for c in self.cards)


class ImportResult(BaseModel):
    success: bool
    error: Optional[str] = None


class Preferences(CamelModel):
    language: str = "en"
    selected_set: str = "swsh3"


class PreferencesUpdate(CamelModel):
    language: Optional[str] = None
    selected_set: Optional[str] = None


# --- Quiz sessions ---
class AnswerRecord(BaseModel):
    question_text: str
    user_answer: int
    correct_answer: int
    user_second_answer: Optional[int] = None
    second_answer: Optional[int] = None
    is_correct: bool
    hp_defeated: int = 0
    card_collected: bool = False
    streak: int = 0


class SessionData(BaseModel):
    mode: str
    player_id: str
    question: Optional[QuizQuestion] = None
    duel: Optional[DuelQuestion] = None
    answers: List[AnswerRecord] = Field(default_factory=list)
    created_at: datetime
    is_rare: bool = False
