"""Story outline collaborators.

The outline is optional decoration: any failure here yields None and the
session still goes active without one.
"""

from __future__ import annotations

import json
import logging
from typing import Protocol

from pydantic import ValidationError

from forest_oracle.llm import LLM
from forest_oracle.models import Player, StoryAct, StoryOutline, StoryScene, World
from forest_oracle.prompts import OUTLINE_PROMPT, OUTLINE_SYSTEM, build_outline_context, render_prompt

from .effects import extract_block

logger = logging.getLogger(__name__)


class OutlineGenerator(Protocol):
    async def generate(
        self, world: World, players: list[Player], seed: str | None = None,
    ) -> StoryOutline | None: ...


def parse_outline(text: str, world_key: str) -> StoryOutline | None:
    """Parse an outline from a fenced block (or the bare text), or None."""
    raw = extract_block(text)
    if raw is None:
        raw = (text or "").strip()
    try:
        data = json.loads(raw)
    except ValueError as e:
        logger.warning("Outline output is not valid JSON: %s", e)
        return None
    if not isinstance(data, dict):
        return None
    data["world_key"] = world_key
    try:
        return StoryOutline.model_validate(data)
    except ValidationError as e:
        logger.warning("Outline has an unexpected shape: %s", e)
        return None


class LLMOutlineGenerator:
    def __init__(self, llm: LLM, *, language: str = "Polish") -> None:
        self._llm = llm
        self._language = language

    async def generate(
        self, world: World, players: list[Player], seed: str | None = None,
    ) -> StoryOutline | None:
        ctx = build_outline_context(world, players, seed, language=self._language)
        text = await self._llm("outline", OUTLINE_SYSTEM, render_prompt(OUTLINE_PROMPT, ctx))
        return parse_outline(text, world.key)


class OfflineOutlineGenerator:
    """Fixed three-act scaffold used when no backend is configured."""

    async def generate(
        self, world: World, players: list[Player], seed: str | None = None,
    ) -> StoryOutline | None:
        party = ", ".join(f"{p.name}-{p.cls.value}" for p in players)
        return StoryOutline(
            world_key=world.key,
            synopsis=(
                f'A short campaign in the world "{world.name}": the party ({party}) '
                "faces the mystery of an ancient forest."
            ),
            acts=[
                StoryAct(
                    title="Act I: Whisper of the Trees",
                    summary="The party uncovers omens of a greater threat.",
                    scenes=[
                        StoryScene(
                            title="Rune Glade", goal="Read the sign",
                            hooks=["Fireflies form a pattern", "Murmured warnings"],
                            dangers=["Wolves", "Traps in the undergrowth"],
                        ),
                        StoryScene(
                            title="The Hermit's Hut", goal="Obtain clues",
                            hooks=["A map drawn on bark", "A riddle"],
                            dangers=["Distrust", "A curse"],
                        ),
                    ],
                ),
                StoryAct(
                    title="Act II: The Dark Road",
                    summary="A journey through perilous wilds.",
                    scenes=[
                        StoryScene(
                            title="Echo Gorge", goal="Survive the ambushes",
                            hooks=["A voice from behind the rocks"],
                            dangers=["Bandits", "Fallen trunks"],
                        ),
                    ],
                ),
                StoryAct(
                    title="Act III: Heart of the Oak",
                    summary="Confrontation and finale.",
                    scenes=[
                        StoryScene(
                            title="The Roots", goal="Fulfil the goal",
                            hooks=["A pulsing light"],
                            dangers=["The Guardian", "Binding roots"],
                        ),
                    ],
                ),
            ],
        )
