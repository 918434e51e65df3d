"""Tests for loading offline card lists from CSV."""

from pathlib import Path

from tcgmath.card_library import DUMMY_CARDS, CardLibrary

HEADER = "id,name,hp,image,types,rarity,set_id,set_name,attack_name,attack_damage\n"


def write_deck(directory: Path, name: str, body: str, header: str = HEADER) -> None:
    (directory / f"{name}.csv").write_text(header + body, encoding="utf-8")


class TestCardLibrary:
    def test_rows_are_grouped_into_cards(self, tmp_path: Path) -> None:
        write_deck(
            tmp_path,
            "temporal_forces",
            "sv05-1,Pikachu,60,pika.png,Lightning,Common,sv05,Temporal Forces,Gnaw,10\n"
            "sv05-1,Pikachu,60,pika.png,Lightning,Common,sv05,Temporal Forces,Thunder Jolt,30+\n"
            "sv05-2,Professor's Research,,,,,,,,\n"
            "sv05-3,Iron Thorns ex,230,thorns.png,Lightning|Metal,Double Rare,sv05,Temporal Forces,Volt Cyclone,140\n",
        )

        library = CardLibrary(str(tmp_path))
        cards = {c.id: c for c in library.get_cards("temporal_forces")}

        assert list(cards) == ["sv05-1", "sv05-2", "sv05-3"]
        pikachu = cards["sv05-1"]
        assert pikachu.hp == 60
        assert [a.name for a in pikachu.attacks] == ["Gnaw", "Thunder Jolt"]
        assert pikachu.attacks[1].damage == "30+"
        assert pikachu.card_set.id == "sv05"
        assert pikachu.types == ["Lightning"]

        trainer = cards["sv05-2"]
        assert trainer.hp is None
        assert trainer.attacks is None
        assert trainer.types is None
        assert trainer.rarity is None
        assert trainer.card_set is None

        assert cards["sv05-3"].types == ["Lightning", "Metal"]

    def test_decks_are_listed(self, tmp_path: Path) -> None:
        write_deck(tmp_path, "darkness_ablaze", "swsh3-1,Weedle,50,w.png,Grass,Common,,,Bug Bite,20\n")
        write_deck(tmp_path, "base_set", "base1-58,Pikachu,40,p.png,Lightning,Common,,,Gnaw,10\n")

        library = CardLibrary(str(tmp_path))

        assert library.get_decks() == [
            {"id": "base_set", "name": "Base Set", "count": 1},
            {"id": "darkness_ablaze", "name": "Darkness Ablaze", "count": 1},
        ]
        assert len(library.all_cards()) == 2

    def test_missing_columns_fall_back_to_dummy(self, tmp_path: Path) -> None:
        write_deck(tmp_path, "broken", "1,Pikachu\n", header="id,name\n")

        library = CardLibrary(str(tmp_path))

        assert library.get_cards("broken") == []
        assert library.get_cards("default_dummy") == DUMMY_CARDS

    def test_missing_directory_is_created(self, tmp_path: Path) -> None:
        directory = tmp_path / "cards"

        library = CardLibrary(str(directory))

        assert directory.is_dir()
        assert len(library.all_cards()) == len(DUMMY_CARDS)
