"""Core domain models.

All pipeline stages and storage functions operate on these types.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["system", "user", "assistant"]

StatName = Literal["strength", "dexterity", "wisdom"]


class CharacterClass(str, Enum):
    WARRIOR = "warrior"
    MAGE = "mage"
    ROGUE = "rogue"
    HERBALIST = "herbalist"


class Outcome(str, Enum):
    NONE = "none"
    WIN = "win"
    LOSE = "lose"


class SessionPhase(str, Enum):
    AWAITING_WORLD_SELECTION = "awaiting_world_selection"
    AWAITING_PARTY_SETUP = "awaiting_party_setup"
    AWAITING_STORY_OUTLINE = "awaiting_story_outline"
    ACTIVE = "active"
    TERMINAL = "terminal"


class Stats(BaseModel):
    """Base statistics. hp_base and mana_base are ceilings, not running values."""

    strength: int
    dexterity: int
    wisdom: int
    hp_base: int
    mana_base: int
    gold: int


class Player(BaseModel):
    """One party member."""

    id: str
    name: str
    cls: CharacterClass
    stats: Stats
    hp: int
    mana: int
    inventory: list[str] = Field(default_factory=list)


class World(BaseModel):
    """Static narrative setting, read-only once a session picks it."""

    key: str
    name: str
    description: str
    content_guidelines: str
    style_hints: str


class StoryScene(BaseModel):
    title: str
    goal: str
    hooks: list[str] = Field(default_factory=list)
    dangers: list[str] = Field(default_factory=list)


class StoryAct(BaseModel):
    title: str
    summary: str
    scenes: list[StoryScene] = Field(default_factory=list)


class StoryOutline(BaseModel):
    """Three-act campaign skeleton produced once at session start."""

    world_key: str
    synopsis: str
    acts: list[StoryAct] = Field(default_factory=list)


class Message(BaseModel):
    """A single entry in a session's append-only transcript."""

    role: Role
    content: str


class SessionState(BaseModel):
    """Aggregate root for one play-through."""

    session_id: str
    phase: SessionPhase = SessionPhase.AWAITING_WORLD_SELECTION
    world: World | None = None
    players: list[Player] = Field(default_factory=list)
    active_index: int = 0
    goal: str | None = None
    quest_log: list[str] = Field(default_factory=list)
    is_over: bool = False
    outcome: Outcome = Outcome.NONE
    messages: list[Message] = Field(default_factory=list)
    story: StoryOutline | None = None


class Effect(BaseModel):
    """Validated, partial state change extracted from one narrator response.

    Every field is optional; None means "not present this turn".
    The player fields apply to the acting player only.
    """

    goal: str | None = None
    quest_log: list[str] | None = None
    is_over: bool | None = None
    outcome: Outcome | None = None
    hp: int | None = None
    mana: int | None = None
    inventory: list[str] | None = None
    add_items: list[str] | None = None
    remove_items: list[str] | None = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class DiceResult(BaseModel):
    roll: int = Field(ge=1, le=20)
    stat: StatName
    modifier: int
    total: int


class TurnResult(BaseModel):
    """What submit_turn hands back to the transport layer."""

    narration: str
    effect: Effect | None = None
    dice: DiceResult | None = None
    state: SessionState


class GameSave(BaseModel):
    """A named snapshot of a session state."""

    id: str
    name: str
    created_at: str
    state: SessionState
