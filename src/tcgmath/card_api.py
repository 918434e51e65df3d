"""
Clients for the two public card APIs.

Both normalize their payloads into :class:`~tcgmath.models.Card`. Network
errors propagate to the caller; nothing here retries.

Pokémon TCG API: https://docs.pokemontcg.io/
TCGdex: https://tcgdex.dev/
"""

import logging
import random
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx

from .config import settings
from .exceptions import CardSourceError, NotEnoughCardsError
from .models import Attack, Card, CardSet
from .quiz import parse_damage

logger = logging.getLogger(__name__)

QUIZ_CARD_QUERY = "supertype:Pokémon hp:[30 TO *] attacks.damage:[10 TO *]"
QUIZ_PAGE_SIZE = 50
QUIZ_PAGE_COUNT = 10
MIN_SET_SIZE = 20


def _parse_hp(hp: Any) -> Optional[int]:
    if hp is None or hp == "":
        return None
    if isinstance(hp, int):
        return hp
    return parse_damage(str(hp)) or None


def is_playable(card: Card) -> bool:
    """Positive HP and at least one attack that deals damage."""
    if not card.hp or card.hp <= 0 or not card.attacks:
        return False
    return any(parse_damage(a.damage) > 0 for a in card.attacks)


def get_random_cards(
    cards: Sequence[Card], count: int, rng: Optional[random.Random] = None
) -> List[Card]:
    rng = rng or random.Random()
    candidates = [c for c in cards if c.attacks and c.hp and c.hp > 0]
    if len(candidates) < count:
        raise NotEnoughCardsError("Not enough valid cards available")
    return rng.sample(candidates, count)


class _BaseClient:
    base_url: str = ""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.client = client

    def headers(self) -> Dict[str, str]:
        return {"User-Agent": f"{settings.PROJECT_NAME}/1.0"}

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.client is not None:
            yield self.client
        else:
            async with httpx.AsyncClient() as client:
                yield client

    async def _get_json(self, path: str, **params: Any) -> Any:
        async with self._session() as client:
            response = await client.get(
                f"{self.base_url}{path}", params=params or None, headers=self.headers()
            )
        if response.status_code >= 400:
            logger.error(f"{self.base_url}{path} returned {response.status_code}: {response.text}")
            raise CardSourceError(
                f"API request failed: {response.status_code} {response.reason_phrase}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise CardSourceError(f"Unreadable response from {self.base_url}{path}") from e


# --- Pokémon TCG API ---
def transform_pokemon_tcg_card(api_card: Dict[str, Any]) -> Card:
    card_set = api_card.get("set")
    return Card(
        id=api_card["id"],
        name=api_card["name"],
        hp=_parse_hp(api_card.get("hp")),
        image=(api_card.get("images") or {}).get("large", ""),
        attacks=[
            Attack(
                name=a["name"],
                cost=a.get("cost"),
                damage=a.get("damage"),
                effect=a.get("text"),
            )
            for a in api_card.get("attacks") or []
        ]
        or None,
        types=api_card.get("types"),
        rarity=api_card.get("rarity"),
        card_set=CardSet(id=card_set["id"], name=card_set["name"]) if card_set else None,
    )


class PokemonTCGClient(_BaseClient):
    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        api_key: str = settings.POKEMON_TCG_API_KEY,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(client)
        self.base_url = settings.POKEMON_TCG_API_URL
        self.api_key = api_key
        self.rng = rng or random.Random()

    def headers(self) -> Dict[str, str]:
        headers = super().headers()
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        return headers

    async def get_cards_for_quiz(self) -> List[Card]:
        page = self.rng.randint(1, QUIZ_PAGE_COUNT)
        data = await self._get_json(
            "/cards",
            q=QUIZ_CARD_QUERY,
            pageSize=QUIZ_PAGE_SIZE,
            page=page,
            orderBy="-set.releaseDate",
        )
        cards = [transform_pokemon_tcg_card(c) for c in data.get("data", [])]
        valid = [c for c in cards if is_playable(c)]
        logger.info(f"Pokémon TCG page {page}: {len(valid)} of {len(cards)} cards playable")

        if len(valid) < settings.MIN_QUIZ_CARDS:
            raise NotEnoughCardsError("Not enough valid cards found. Please try again.")
        return valid


# --- TCGdex ---
def transform_tcgdex_set(data: Dict[str, Any]) -> CardSet:
    card_count = data.get("cardCount")
    if isinstance(card_count, dict):
        card_count = card_count.get("total")
    return CardSet(
        id=data["id"],
        name=data["name"],
        logo=data.get("logo"),
        card_count=card_count,
        release_date=data.get("releaseDate"),
    )


def transform_tcgdex_card(data: Dict[str, Any]) -> Card:
    image = data.get("image") or ""
    if image:
        image = f"{image}/high.png"
    return Card(
        id=data["id"],
        name=data["name"],
        hp=_parse_hp(data.get("hp")),
        image=image,
        attacks=[Attack.model_validate(a) for a in data.get("attacks") or []] or None,
        types=data.get("types"),
        rarity=data.get("rarity"),
        card_set=transform_tcgdex_set(data["set"]) if data.get("set") else None,
    )


class TCGdexClient(_BaseClient):
    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        super().__init__(client)
        self.base_url = settings.TCGDEX_API_URL

    async def get_latest_set(self) -> CardSet:
        sets = [transform_tcgdex_set(s) for s in await self._get_json("/sets")]
        candidates = [s for s in sets if s.card_count and s.card_count > MIN_SET_SIZE]
        if not candidates:
            raise CardSourceError("No card set large enough for a quiz")
        candidates.sort(key=lambda s: s.release_date or "", reverse=True)
        return candidates[0]

    async def get_card_details(self, card_id: str) -> Card:
        return transform_tcgdex_card(await self._get_json(f"/cards/{card_id}"))

    async def get_cards_from_set(self, set_id: str) -> List[Card]:
        set_data = await self._get_json(f"/sets/{set_id}")
        if not isinstance(set_data, dict):
            raise CardSourceError(f"Unexpected payload for set {set_id}")
        listed = set_data.get("cards") or []

        cards: List[Card] = []
        for brief in listed[: settings.SET_DETAIL_LIMIT]:
            try:
                card = await self.get_card_details(brief["id"])
            except (CardSourceError, httpx.HTTPError, KeyError, TypeError, ValueError) as e:
                # KeyError and ValueError come from incomplete card payloads.
                logger.error(f"Failed to fetch card {brief}: {e}")
                continue
            if card.attacks and card.hp and card.hp > 0:
                cards.append(card)
            if len(cards) >= settings.MIN_QUIZ_CARDS:
                break
        logger.info(f"Loaded {len(cards)} playable cards from set {set_id}")
        return cards
