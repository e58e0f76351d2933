"""State reducer — the single authority that merges an Effect into a session.

apply_effects() never mutates its input; it returns a new SessionState.

Order of operations:
  1. Transcript lines are appended, always (even on terminal sessions and
     when no effect was parsed).
  2. Terminal session, or no (or an empty) effect → nothing else changes.
  3. Global fields overwrite: goal, quest_log (wholesale), is_over, outcome.
  4. Acting player only: hp and mana clamped to [0, base]; inventory
     replaced wholesale, otherwise add_items (set semantics, order kept)
     then remove_items.
  5. Whole party at 0 hp → is_over=True, outcome=lose. Not overridable.
  6. A win/lose outcome implies is_over; is_over moves the phase to terminal.

Malformed or out-of-range values never raise, they are clamped or ignored.
"""

import logging
from collections.abc import Iterable

from forest_oracle.models import Effect, Message, Outcome, Player, SessionPhase, SessionState

logger = logging.getLogger(__name__)


def _clamp(value: int, upper: int) -> int:
    return max(0, min(upper, value))


def _dedupe(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def _apply_to_player(player: Player, effect: Effect) -> None:
    if effect.hp is not None:
        player.hp = _clamp(effect.hp, player.stats.hp_base)
    if effect.mana is not None:
        player.mana = _clamp(effect.mana, player.stats.mana_base)

    if effect.inventory is not None:
        player.inventory = _dedupe(effect.inventory)
        return

    if effect.add_items:
        for item in effect.add_items:
            if item not in player.inventory:
                player.inventory.append(item)
    if effect.remove_items:
        removed = set(effect.remove_items)
        player.inventory = [i for i in player.inventory if i not in removed]


def party_defeated(state: SessionState) -> bool:
    """True when the party is non-empty and every player is at 0 hp."""
    return bool(state.players) and all(p.hp <= 0 for p in state.players)


def apply_effects(
    state: SessionState,
    effect: Effect | None,
    acting_index: int,
    transcript: Iterable[Message] = (),
) -> SessionState:
    """Merge an effect into a copy of state for the acting player."""
    next_state = state.model_copy(deep=True)
    next_state.messages.extend(m.model_copy() for m in transcript)

    if state.is_over:
        logger.debug("Session %s is over, effect ignored", state.session_id)
        return next_state
    if effect is None or effect.is_empty():
        return next_state

    # Global
    if effect.goal is not None:
        next_state.goal = effect.goal
    if effect.quest_log is not None:
        next_state.quest_log = list(effect.quest_log)
    if effect.is_over is not None:
        next_state.is_over = effect.is_over
    if effect.outcome is not None:
        next_state.outcome = effect.outcome

    # Acting player
    if 0 <= acting_index < len(next_state.players):
        _apply_to_player(next_state.players[acting_index], effect)
    else:
        logger.debug("No player at index %d, player effects skipped", acting_index)

    if party_defeated(next_state):
        next_state.is_over = True
        next_state.outcome = Outcome.LOSE

    if next_state.outcome != Outcome.NONE:
        next_state.is_over = True
    if next_state.is_over:
        next_state.phase = SessionPhase.TERMINAL
        logger.info(
            "Session %s ended with outcome=%s",
            next_state.session_id, next_state.outcome.value,
        )

    return next_state
