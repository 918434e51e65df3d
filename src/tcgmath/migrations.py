"""Upgrades for stored collection records.

Each entry in ``MIGRATIONS`` maps the version a record was saved with to a
function that returns the record in the next layout plus that layout's
version. ``migrate`` applies them in sequence until the current version is
reached.
"""

import logging
from typing import Any, Callable, Dict, Tuple

from .config import settings

logger = logging.getLogger(__name__)

RawCollection = Dict[str, Any]
Migration = Callable[[RawCollection], Tuple[RawCollection, str]]


def _add_hp_defeated(data: RawCollection) -> Tuple[RawCollection, str]:
    stats = dict(data["stats"])
    stats.setdefault("totalHpDefeated", 0)
    return {**data, "stats": stats}, "1.1"


def _add_streak_and_rare_sets(data: RawCollection) -> Tuple[RawCollection, str]:
    upgraded = dict(data)
    upgraded.setdefault("currentStreak", 0)
    legacy = upgraded.pop("unlockedRareCards", None)
    existing = upgraded.get("unlockedRareSets")
    rare_sets = dict(existing) if isinstance(existing, dict) else {}
    if isinstance(legacy, str):
        legacy = [legacy]
    if isinstance(legacy, list):
        for set_id in legacy:
            if isinstance(set_id, (str, int)) and not isinstance(set_id, bool):
                rare_sets[str(set_id)] = True
    elif legacy is not None:
        logger.warning(f"Dropping unreadable unlockedRareCards value: {legacy!r}")
    upgraded["unlockedRareSets"] = rare_sets
    return upgraded, "2.0"


MIGRATIONS: Dict[str, Migration] = {
    "1.0": _add_hp_defeated,
    "1.1": _add_streak_and_rare_sets,
}


def migrate(data: RawCollection) -> RawCollection:
    version = str(data["version"])
    seen = set()
    while version != settings.CURRENT_VERSION:
        step = MIGRATIONS.get(version)
        if step is None:
            logger.warning(f"No migration path from collection version {version}")
            break
        if version in seen:
            raise ValueError(f"Migration cycle at version {version}")
        seen.add(version)
        data, version = step(data)
        logger.info(f"Migrated collection to version {version}")
    return {**data, "version": version}
