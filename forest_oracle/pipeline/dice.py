"""d20 resolution bound to a character statistic.

The relevant stat is guessed from keyword stems in the action text, checked
in this order:

  combat   (atak, cios, walcz, attack, strike, fight)      → strength
  social   (rozm, persw, ucisz, negoc, talk, persuade ...)  → wisdom
  stealth  (szuk, skr, unik, zwin, search, sneak ...)      → dexterity
  magic    (czar, zakl, mag, spell, cast, ...)              → wisdom

With no match the class default applies: warrior → strength,
rogue → dexterity, mage/herbalist → wisdom, anything else → strength.

total = roll + stats[stat]. Narrative severity is keyed on the total, not
the raw roll. Rolls are not seeded.
"""

import random

from forest_oracle.classes import stat_label
from forest_oracle.models import CharacterClass, DiceResult, Player, StatName

# (stems, stat); first matching group wins
KEYWORD_GROUPS: list[tuple[tuple[str, ...], StatName]] = [
    (("atak", "cios", "walcz", "attack", "strike", "fight"), "strength"),
    (("rozm", "persw", "ucisz", "negoc", "talk", "persua", "convinc", "negotia", "calm"), "wisdom"),
    (("szuk", "skr", "unik", "zwin", "search", "sneak", "hide", "dodge", "steal"), "dexterity"),
    (("czar", "zakl", "mag", "spell", "cast", "enchant"), "wisdom"),
]

CLASS_DEFAULT_STAT: dict[CharacterClass, StatName] = {
    CharacterClass.WARRIOR: "strength",
    CharacterClass.ROGUE: "dexterity",
    CharacterClass.MAGE: "wisdom",
    CharacterClass.HERBALIST: "wisdom",
}


def roll_d20() -> int:
    return random.randint(1, 20)


def guess_relevant_stat(action: str, cls: CharacterClass | None) -> StatName:
    """Pick the stat an action tests, falling back to the class default."""
    text = action.lower()
    for stems, stat in KEYWORD_GROUPS:
        if any(stem in text for stem in stems):
            return stat
    return CLASS_DEFAULT_STAT.get(cls, "strength")


def resolve_roll(player: Player, action: str) -> DiceResult:
    """Roll a d20 and add the player's relevant stat."""
    stat = guess_relevant_stat(action, player.cls)
    roll = roll_d20()
    modifier = getattr(player.stats, stat)
    return DiceResult(roll=roll, stat=stat, modifier=modifier, total=roll + modifier)


def describe_roll(dice: DiceResult) -> str:
    """Human-readable roll annotation for the transcript."""
    return (
        f"rolled d20={dice.roll} + {stat_label(dice.stat)} modifier "
        f"{dice.modifier} => total {dice.total}"
    )
