"""Narrator collaborators — turn a turn's context into raw narrator output.

Both implementations return free text that may end with one fenced JSON
effects block; parsing and applying it is the orchestrator's job.

    LLMNarrator      — renders the Handlebars prompts and calls an LLM.
    OfflineNarrator  — deterministic scripted narration for running without
                       credentials. Severity is keyed on the roll total:
                         total <= 5   actor loses 3 hp
                         total >= 16  actor regains 1 mana
                         total >= 19  with a goal set → win
                         total >= 12  progress is logged in the quest log
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from pydantic import BaseModel

from forest_oracle.llm import LLM
from forest_oracle.models import DiceResult, SessionState
from forest_oracle.prompts import (
    NARRATOR_PROMPT,
    NARRATOR_SYSTEM,
    build_narrator_context,
    render_prompt,
)

logger = logging.getLogger(__name__)

OFFLINE_INTRO_GOAL = "Uncover the secret at the heart of the ancient oak."


class NarrationRequest(BaseModel):
    """Everything a narrator needs for one turn."""

    state: SessionState
    acting_index: int
    action: str
    dice: DiceResult | None = None
    is_intro: bool = False


class Narrator(Protocol):
    async def narrate(self, request: NarrationRequest) -> str: ...


def format_effects_block(effects: dict[str, Any]) -> str:
    return "```json\n" + json.dumps(effects, ensure_ascii=False) + "\n```"


# ---------------------------------------------------------------------------
# LLMNarrator
# ---------------------------------------------------------------------------

class LLMNarrator:
    def __init__(self, llm: LLM, *, language: str = "Polish", history_window: int = 12) -> None:
        self._llm = llm
        self._language = language
        self._history_window = history_window

    async def narrate(self, request: NarrationRequest) -> str:
        ctx = build_narrator_context(
            request.state,
            request.acting_index,
            request.action,
            request.dice,
            request.is_intro,
            history_window=self._history_window,
            language=self._language,
        )
        system = render_prompt(NARRATOR_SYSTEM, ctx)
        prompt = render_prompt(NARRATOR_PROMPT, ctx)
        return await self._llm("narrator", system, prompt)


# ---------------------------------------------------------------------------
# OfflineNarrator
# ---------------------------------------------------------------------------

class OfflineNarrator:
    async def narrate(self, request: NarrationRequest) -> str:
        state = request.state
        world_name = state.world.name if state.world else "the Forest Land"

        if request.is_intro:
            goal = OFFLINE_INTRO_GOAL
            narration = (
                f'Fireflies dance above the moss. The party takes its first step into "{world_name}". '
                "A dark road awaits, and secrets that shun the light. "
                f"Goal: {goal} What do you do? (1) Scout. (2) Talk to the hermit. (3) Study the runes."
            )
            effects: dict[str, Any] = {
                "goal": goal,
                "questLog": [*state.quest_log, "Main goal set."],
            }
            return f"{narration}\n{format_effects_block(effects)}"

        actor = None
        if 0 <= request.acting_index < len(state.players):
            actor = state.players[request.acting_index]
        name = actor.name if actor else "The hero"
        total = request.dice.total if request.dice else 10
        hp = actor.hp if actor else 10
        mana = actor.mana if actor else 5
        updates: list[str] = []

        if total <= 5:
            hp = max(0, hp - 3)
            updates.append(f"{name} takes a beating (-3 HP).")
        elif total >= 16:
            if actor:
                mana = min(actor.stats.mana_base, mana + 1)
            updates.append(f"{name} resonates with magic (+1 Mana).")
        else:
            updates.append("A partial success - the tension grows.")

        effects = {"actorHp": hp, "actorMana": mana}
        if total >= 12:
            effects["questLog"] = [*state.quest_log, f"Progress: {request.action}"]
        if state.goal and total >= 19:
            effects["isOver"] = True
            effects["outcome"] = "win"
            updates.append("The goal is within reach - victory!")
        others_down = all(
            p.hp <= 0 for i, p in enumerate(state.players) if i != request.acting_index
        )
        if hp <= 0 and others_down:
            updates.append("The party falls, spent...")

        roll_text = f"d20 roll: {total}." if request.dice else ""
        narration = (
            f"Action: {request.action}. {roll_text} {' '.join(updates)} "
            "Next? (1) Attack. (2) Talk. (3) Search."
        )
        logger.debug("offline narration total=%d effects=%s", total, effects)
        return f"{' '.join(narration.split())}\n{format_effects_block(effects)}"
