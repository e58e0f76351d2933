"""Character class registry — base stats, starting kits, and player creation.

Base stats per class (str / dex / wis, hp, mana, gold):
  warrior    4 / 1 / 0   30   5  10
  mage       0 / 1 / 4   18  20   8
  rogue      1 / 4 / 1   22   8  14
  herbalist  1 / 1 / 3   24  12  12

hp_base and mana_base are ceilings: a fresh player starts at full hp and
mana, and the reducer clamps every later change into [0, base].

Lookups are total over CharacterClass. Anything else is a programming error
and raises KeyError.
"""

import uuid

from forest_oracle.models import CharacterClass, Player, StatName, Stats

CLASS_STATS: dict[CharacterClass, Stats] = {
    CharacterClass.WARRIOR: Stats(strength=4, dexterity=1, wisdom=0, hp_base=30, mana_base=5, gold=10),
    CharacterClass.MAGE: Stats(strength=0, dexterity=1, wisdom=4, hp_base=18, mana_base=20, gold=8),
    CharacterClass.ROGUE: Stats(strength=1, dexterity=4, wisdom=1, hp_base=22, mana_base=8, gold=14),
    CharacterClass.HERBALIST: Stats(strength=1, dexterity=1, wisdom=3, hp_base=24, mana_base=12, gold=12),
}

STARTING_INVENTORY: dict[CharacterClass, list[str]] = {
    CharacterClass.WARRIOR: ["Iron sword", "Wooden shield", "Dried meat ration"],
    CharacterClass.MAGE: ["Runic staff", "Spellbook", "Mana vial"],
    CharacterClass.ROGUE: ["Dagger", "Lockpicks", "Rope with grappling hook"],
    CharacterClass.HERBALIST: ["Herbalist's knife", "Healing herbs", "Wormwood salve"],
}

CLASS_DESCRIPTIONS: dict[CharacterClass, str] = {
    CharacterClass.WARRIOR: "Strong and hardy, a master of the blade.",
    CharacterClass.MAGE: "A learned mage wielding arcane power.",
    CharacterClass.ROGUE: "Nimble and cunning, quiet as a shadow.",
    CharacterClass.HERBALIST: "A connoisseur of herbs and alchemy.",
}

DEFAULT_NAMES = ["Alder", "Mira", "Toran", "Lysa"]

STAT_LABELS: dict[str, str] = {
    "strength": "Strength",
    "dexterity": "Dexterity",
    "wisdom": "Wisdom",
}

MAX_PARTY_SIZE = 4


def stats_for(cls: CharacterClass) -> Stats:
    """Return a fresh copy of the base stats for a class."""
    return CLASS_STATS[cls].model_copy()


def starting_inventory(cls: CharacterClass) -> list[str]:
    return list(STARTING_INVENTORY[cls])


def new_player(name: str, cls: CharacterClass, player_id: str | None = None) -> Player:
    """Create a player at full hp/mana carrying the class starting kit."""
    stats = stats_for(cls)
    return Player(
        id=player_id or uuid.uuid4().hex,
        name=name,
        cls=CharacterClass(cls),
        stats=stats,
        hp=stats.hp_base,
        mana=stats.mana_base,
        inventory=starting_inventory(cls),
    )


def default_player_name(index: int) -> str:
    return DEFAULT_NAMES[index % len(DEFAULT_NAMES)]


def stat_label(stat: StatName) -> str:
    return STAT_LABELS[stat]
