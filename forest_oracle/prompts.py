"""Handlebars prompt rendering for the narrator and outline collaborators.

Templates use triple-stash ({{{var}}}) for free text so quotes and
apostrophes reach the model unescaped. Context builders pre-format the
party and outline lines; templates only place them.
"""

from collections.abc import Callable
from typing import Any

import pybars

from forest_oracle.classes import stat_label
from forest_oracle.models import DiceResult, Player, SessionState, StoryOutline, World

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_last(this, options, items, count):
    """{{#last array N}}...{{/last}} — iterate over the last N items."""
    count = int(count)
    if count <= 0:
        return []
    result = []
    for item in list(items or [])[-count:]:
        result.extend(options["fn"](item))
    return result


_HELPERS: dict[str, Callable] = {
    "last": _helper_last,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return compiled(context, helpers=_HELPERS)
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Templates ────────────────────────────────────────────

NARRATOR_SYSTEM = (
    "You are a fantasy Game Master running a text role-playing game. "
    "Always answer in {{{language}}}, without markdown. "
    "Take the chosen world, the party and the campaign outline into account. "
    "World: {{{world_name}}}. {{{world_description}}} "
    "Content rules: {{{world_guidelines}}} "
    "Be vivid but concise (120-160 words). Suggest 2-3 possible next steps. "
    "After the narration return an effects block in ```{...}``` (pure JSON, no comments). "
    "effects may contain: goal, questLog, isOver, outcome, "
    "and for the active player: actorHp, actorMana, actorInventory (full list) "
    "or actorAddItems/actorRemoveItems (lists)."
)

NARRATOR_PROMPT = (
    "{{#if is_intro}}Begin the adventure in the world: {{{world_name}}}. "
    "Style: {{{world_style}}}.\n{{/if}}"
    "{{{outline}}}\n"
    "Party: {{{party}}}.\n"
    "{{#if messages}}Recent events:\n"
    "{{#last messages history_window}}{{{role}}}: {{{content}}}\n{{/last}}"
    "{{/if}}"
    "Player action ({{{actor}}}): {{{action}}}.\n"
    "{{#if has_roll}}Check result (d20 + {{{roll_stat}}} modifier): {{roll_total}}. "
    "Take the consequences into account.\n{{/if}}"
    "{{#if goal}}Mission goal: {{{goal}}}.\n{{/if}}"
    "{{#if quest_log}}Quest log: {{{quest_log}}}\n{{/if}}"
    "After the narration return effects in ```{...}``` as described."
)

OUTLINE_SYSTEM = (
    "You are a Game Master generating a concise, playable campaign outline as JSON. "
    "The world must match its description without using trademarked names. "
    'The JSON format is: { "synopsis": string, "acts": [ { "title": string, '
    '"summary": string, "scenes": [ { "title": string, "goal": string, '
    '"hooks": string[], "dangers": string[] } ] } ] }. '
    "Return only pure JSON in ```{...}``` without comments."
)

OUTLINE_PROMPT = (
    "World: {{{world_name}}}. Description: {{{world_description}}} "
    "Hints: {{{world_style}}}\n"
    "Safety rules: {{{world_guidelines}}}\n"
    "Party: {{{party}}}.\n"
    "{{#if seed}}Plot seed: {{{seed}}}.\n{{/if}}"
    "Prepare 3 acts, each with 1-3 scenes. End with a finale. "
    "Write all text in {{{language}}}."
)


# ── Context builders ─────────────────────────────────────


def world_fields(world: World | None) -> dict[str, str]:
    if world is None:
        return {
            "world_name": "the Forest Land", "world_description": "",
            "world_guidelines": "", "world_style": "",
        }
    return {
        "world_name": world.name,
        "world_description": world.description,
        "world_guidelines": world.content_guidelines,
        "world_style": world.style_hints,
    }


def party_summary(players: list[Player], active_index: int | None = None) -> str:
    """One line per party: "[ACTIVE]Alder (warrior) HP:30/30 Mana:5/5 | ..."."""
    parts = []
    for i, p in enumerate(players):
        marker = "[ACTIVE]" if i == active_index else ""
        parts.append(
            f"{marker}{p.name} ({p.cls.value}) HP:{p.hp}/{p.stats.hp_base} "
            f"Mana:{p.mana}/{p.stats.mana_base}"
        )
    return " | ".join(parts)


def outline_summary(story: StoryOutline | None) -> str:
    if story is None:
        return "Outline: the adventure will soon unfold."
    next_scenes = [a.scenes[0].title for a in story.acts if a.scenes][:2]
    text = f"Outline: {story.synopsis}"
    if next_scenes:
        text += f" Upcoming scenes: {', '.join(next_scenes)}."
    return text


def build_narrator_context(
    state: SessionState,
    acting_index: int,
    action: str,
    dice: DiceResult | None,
    is_intro: bool,
    *,
    history_window: int = 12,
    language: str = "Polish",
) -> dict[str, Any]:
    """Assemble template variables for NARRATOR_SYSTEM and NARRATOR_PROMPT."""
    actor = state.players[acting_index].name if 0 <= acting_index < len(state.players) else "Player"
    ctx: dict[str, Any] = {
        "language": language,
        **world_fields(state.world),
        "is_intro": is_intro,
        "outline": outline_summary(state.story),
        "party": party_summary(state.players, acting_index),
        "messages": [m.model_dump() for m in state.messages],
        "history_window": history_window,
        "actor": actor,
        "action": action or "(intro)",
        "has_roll": dice is not None,
        "goal": state.goal or "",
        "quest_log": "; ".join(state.quest_log),
    }
    if dice is not None:
        ctx["roll_total"] = dice.total
        ctx["roll_stat"] = stat_label(dice.stat)
    return ctx


def build_outline_context(
    world: World,
    players: list[Player],
    seed: str | None = None,
    *,
    language: str = "Polish",
) -> dict[str, Any]:
    return {
        **world_fields(world),
        "party": ", ".join(f"{p.name} ({p.cls.value})" for p in players),
        "seed": seed or "",
        "language": language,
    }
