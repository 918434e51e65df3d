import glob
import logging
import os
from typing import Any, Dict, List

import pandas as pd

from .models import Attack, Card, CardSet

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"id", "name", "hp", "attack_name", "attack_damage"}

DUMMY_CARDS = [
    Card(id="dummy-1", name="Pikachu", hp=60,
         attacks=[Attack(name="Thunder Shock", damage="20")], types=["Lightning"]),
    Card(id="dummy-2", name="Charmander", hp=70,
         attacks=[Attack(name="Ember", damage="30")], types=["Fire"]),
    Card(id="dummy-3", name="Squirtle", hp=60,
         attacks=[Attack(name="Water Gun", damage="20+")], types=["Water"]),
    Card(id="dummy-4", name="Bulbasaur", hp=70,
         attacks=[Attack(name="Vine Whip", damage="10")], types=["Grass"]),
    Card(id="dummy-5", name="Snorlax", hp=150,
         attacks=[Attack(name="Body Slam", damage="90")], types=["Colorless"],
         rarity="Rare"),
]


def _split_list(value: str) -> List[str]:
    return [part.strip() for part in value.split("|") if part.strip()]


def _card_from_rows(rows: pd.DataFrame) -> Card:
    first = rows.iloc[0]
    attacks = [
        Attack(name=row["attack_name"], damage=row["attack_damage"] or None)
        for _, row in rows.iterrows()
        if row["attack_name"]
    ]
    card_set = None
    if first.get("set_id"):
        card_set = CardSet(id=first["set_id"], name=first.get("set_name") or first["set_id"])
    return Card(
        id=first["id"],
        name=first["name"],
        hp=int(first["hp"]) if first["hp"].isdigit() else None,
        image=first.get("image", ""),
        attacks=attacks or None,
        types=_split_list(first.get("types", "")) or None,
        rarity=first.get("rarity") or None,
        card_set=card_set,
    )


# --- Service Layer: Offline card lists ---
class CardLibrary:
    """Loads card lists from CSV files, one row per attack."""

    def __init__(self, directory: str):
        self.directory = directory
        self.decks: Dict[str, List[Card]] = {}
        self.load_all()

    def load_all(self):
        self.decks = {}
        if not os.path.exists(self.directory):
            os.makedirs(self.directory)
            logger.warning(f"Created directory {self.directory}. Please add CSV files.")

        csv_files = glob.glob(os.path.join(self.directory, "*.csv"))
        for file_path in csv_files:
            try:
                deck_name = os.path.splitext(os.path.basename(file_path))[0]
                df = pd.read_csv(file_path, encoding="utf-8", dtype=str, keep_default_na=False)
                if not REQUIRED_COLUMNS.issubset(df.columns):
                    logger.error(f"Skipping {deck_name}: Missing columns.")
                    continue
                cards = [_card_from_rows(rows) for _, rows in df.groupby("id", sort=False)]
                self.decks[deck_name] = cards
                logger.info(f"Loaded {len(cards)} cards from {deck_name}")
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load {file_path}: {e}")

        if not self.decks:
            logger.warning("No CSV card lists found. Loading dummy deck.")
            self.decks["default_dummy"] = list(DUMMY_CARDS)

    def get_cards(self, deck: str) -> List[Card]:
        return self.decks.get(deck, [])

    def all_cards(self) -> List[Card]:
        return [card for cards in self.decks.values() for card in cards]

    def get_decks(self) -> List[Dict[str, Any]]:
        decks = []
        for key, cards in self.decks.items():
            display_name = key.replace("_", " ").title()
            decks.append({"id": key, "name": display_name, "count": len(cards)})
        decks.sort(key=lambda x: x["name"])
        return decks
