"""Built-in world settings.

Each world is inspired by a well-known fantasy setting but is described
without trademarked names; content_guidelines tells the narrator to invent
original places and characters in the same spirit.
"""

from forest_oracle.models import World

WORLDS: dict[str, World] = {
    "wiedzmin": World(
        key="wiedzmin",
        name="The Witcher's Path",
        description="Grim Slavic gloom, monsters, alchemy, political intrigue.",
        content_guidelines=(
            "Avoid direct references to licensed characters. Invent original "
            "places and names inspired by the mood."
        ),
        style_hints="Bitter, harsh tone. Forests, marshes, abandoned hamlets.",
    ),
    "forgotten-realms": World(
        key="forgotten-realms",
        name="Forgotten Realms (D&D)",
        description="Classic high fantasy: guilds, dungeons, dragons, gods.",
        content_guidelines=(
            "No trademarked names. Invent original cities and deities in the "
            "classic spirit."
        ),
        style_hints="Heroic quests, a party, dungeons and treasure.",
    ),
    "elder-scrolls": World(
        key="elder-scrolls",
        name="Elder Scrolls",
        description="Open lands, ancient ruins, mysterious magic.",
        content_guidelines=(
            "No proper names from the series. Draw on its motifs: ruins, "
            "ancient artifacts."
        ),
        style_hints="Epic, descriptive narration, ancient prophecies.",
    ),
    "gothic": World(
        key="gothic",
        name="Gothic",
        description="A harsh land, mining colonies, factions and hard choices.",
        content_guidelines="No well-known names. Strong focus on factions and resources.",
        style_hints="Hard, direct language, scarcity and risk.",
    ),
    "dragon-age": World(
        key="dragon-age",
        name="Dragon Age",
        description="Dark fantasy, heresy, encroaching magic.",
        content_guidelines=(
            "No specific names. Motifs of heresy, plague, rogues and "
            "knightly orders."
        ),
        style_hints="Dark, mature tone, politics and consequences.",
    ),
}


def get_world(key: str) -> World:
    """Return the world for a key. Raises KeyError for unknown keys."""
    return WORLDS[key]
