import logging
import math
import random
import re
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Union

from .models import Attack, Card, DuelQuestion, QuizQuestion

logger = logging.getLogger(__name__)

# Damage per turn offered in single-card mode. Only the first
# DAMAGE_TIER_DRAW_RANGE entries are ever drawn.
DAMAGE_TIERS = [10, 20, 30, 40, 50, 60, 80, 100, 120, 300]
DAMAGE_TIER_DRAW_RANGE = 5

OPERAND_MIN = 10
OPERAND_MAX = 59
OPTION_OFFSETS = (1, 2, 3)

_DIGITS = re.compile(r"(\d+)")


def parse_damage(damage: Optional[str]) -> int:
    """Leading number of a free-text damage value ("30+" -> 30), else 0."""
    if not damage:
        return 0
    match = _DIGITS.search(damage)
    return int(match.group(1)) if match else 0


def hits_needed(damage: int, hp: int) -> int:
    return math.ceil(hp / damage)


def is_rare_card(card: Card) -> bool:
    return bool(card.rarity and "rare" in card.rarity.lower())


def describe_duel(duel: DuelQuestion) -> str:
    attack = duel.selected_attack
    return (
        f"{duel.attacker_card.name} uses {attack.name} ({attack.damage} damage) on "
        f"{duel.defender_card.name} ({duel.defender_card.hp} HP). "
        f"How many hits does it take to knock it out?"
    )


def generate_answer_options(
    correct_answer: int, rng: Optional[random.Random] = None
) -> List[int]:
    """Four distinct positive options around the correct answer, ascending.

    Each offset is used once with a random sign; a negative step that would
    reach zero or below is reflected upward instead.
    """
    rng = rng or random.Random()
    options = {correct_answer}
    for offset in rng.sample(OPTION_OFFSETS, len(OPTION_OFFSETS)):
        candidate = correct_answer + offset
        if rng.random() < 0.5 and correct_answer - offset > 0:
            candidate = correct_answer - offset
        options.add(candidate)
    return sorted(options)


# --- Strategy Pattern: Quiz Generators ---
class QuizGenerator(ABC):
    """Abstract Base Class for the game modes."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    @abstractmethod
    def generate(
        self, cards: Sequence[Card], is_rare: bool = False
    ) -> Optional[Union[QuizQuestion, DuelQuestion]]:
        pass


class DuelQuizGenerator(QuizGenerator):
    """Attack-duel mode: how many hits does the attacker need?"""

    def pick_attack(self, card: Card) -> Optional[Attack]:
        usable = [a for a in card.attacks or [] if parse_damage(a.damage) > 0]
        if not usable:
            return None
        return self.rng.choice(usable)

    def generate(
        self, cards: Sequence[Card], is_rare: bool = False
    ) -> Optional[DuelQuestion]:
        if len(cards) < 2:
            return None
        attacker, defender = cards[0], cards[1]

        attack = self.pick_attack(attacker)
        if attack is None:
            logger.debug(f"No damaging attack on {attacker.id}")
            return None
        if not defender.hp or defender.hp <= 0:
            logger.debug(f"Defender {defender.id} has no HP")
            return None

        correct_answer = hits_needed(parse_damage(attack.damage), defender.hp)
        return DuelQuestion(
            attacker_card=attacker,
            defender_card=defender,
            selected_attack=attack,
            correct_answer=correct_answer,
            options=generate_answer_options(correct_answer, self.rng),
        )


class SingleCardQuizGenerator(QuizGenerator):
    """One card per round; arithmetic fallback when the card has no HP."""

    def _operands(self):
        return (
            self.rng.randint(OPERAND_MIN, OPERAND_MAX),
            self.rng.randint(OPERAND_MIN, OPERAND_MAX),
        )

    def _arithmetic(self):
        a, b = self._operands()
        if self.rng.random() < 0.5:
            return f"What is {a} + {b}?", a + b
        larger, smaller = max(a, b), min(a, b)
        return f"What is {larger} - {smaller}?", larger - smaller

    def question_for(self, card: Card, is_rare: bool = False) -> QuizQuestion:
        if card.hp and card.hp > 0:
            damage = DAMAGE_TIERS[self.rng.randrange(DAMAGE_TIER_DRAW_RANGE)]
            question_text = (
                f"{card.name} has {card.hp} HP. If you deal {damage} damage "
                f"each turn, how many turns does it take to knock it out?"
            )
            correct_answer = hits_needed(damage, card.hp)
            is_pokemon = True
        else:
            question_text, correct_answer = self._arithmetic()
            is_pokemon = False

        question = QuizQuestion(
            card=card,
            question_text=question_text,
            correct_answer=correct_answer,
            is_pokemon=is_pokemon,
        )
        if is_rare:
            a, b = self._operands()
            question.second_question = f"Bonus round! What is {a} + {b}?"
            question.second_answer = a + b
        return question

    def generate(
        self, cards: Sequence[Card], is_rare: bool = False
    ) -> Optional[QuizQuestion]:
        if not cards:
            return None
        return self.question_for(cards[0], is_rare)


def check_answer(
    question: Union[QuizQuestion, DuelQuestion],
    answer: int,
    second_answer: Optional[int] = None,
) -> bool:
    if answer != question.correct_answer:
        return False
    expected_second = getattr(question, "second_answer", None)
    if expected_second is not None:
        return second_answer == expected_second
    return True


class QuizFactory:
    """Factory to select the generator for a game mode."""

    @staticmethod
    def create(mode: str, rng: Optional[random.Random] = None) -> QuizGenerator:
        if mode == "duel":
            return DuelQuizGenerator(rng)
        elif mode == "single":
            return SingleCardQuizGenerator(rng)
        raise ValueError(f"Unknown quiz mode: {mode}")
