import pytest

from tcgmath.collection import CollectionStore
from tcgmath.models import Attack, Card, CardSet
from tcgmath.storage import MemoryStore


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def store(memory_store: MemoryStore) -> CollectionStore:
    return CollectionStore(memory_store, "test:collection")


@pytest.fixture
def attacker() -> Card:
    """Charizard with one harmless and one damaging attack."""
    return Card(
        id="swsh3-20",
        name="Charizard V",
        hp=220,
        image="https://images.example/swsh3-20.png",
        attacks=[
            Attack(name="Claw Slash", cost=["Colorless"], damage=""),
            Attack(name="Crimson Storm", cost=["Fire", "Fire"], damage="90"),
        ],
        types=["Fire"],
        rarity="Rare Holo V",
        card_set=CardSet(id="swsh3", name="Darkness Ablaze"),
    )


@pytest.fixture
def defender() -> Card:
    return Card(
        id="swsh3-35",
        name="Blastoise",
        hp=130,
        image="https://images.example/swsh3-35.png",
        attacks=[Attack(name="Hydro Pump", damage="30+")],
        types=["Water"],
        rarity="Rare",
        card_set=CardSet(id="swsh3", name="Darkness Ablaze"),
    )


@pytest.fixture
def trainer() -> Card:
    """A card without HP or attacks."""
    return Card(id="swsh3-178", name="Professor's Research", hp=0, rarity="Common")
