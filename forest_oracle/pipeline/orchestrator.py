"""Turn orchestrator — session phase machine and the public turn entry point.

Phases:
  awaiting_world_selection → select_world()  → awaiting_party_setup
  awaiting_party_setup     → setup_party()   → awaiting_story_outline
  awaiting_story_outline   → setup_party()   (re-initializes the party)
  awaiting_story_outline   → start()         → active (+ intro turn)
  active                   → submit_turn()   → active | terminal

Turn flow (all inside the session lock):
  1. Validate caller input (session exists, not over, active, index valid).
  2. Roll d20 + relevant stat, unless this is the intro turn.
  3. Ask the narrator for raw output, bounded by narrator_timeout.
     On any narrator failure the apology narration is used and no effect.
  4. Split narration from the effects block.
  5. Reduce: append the player line and narration, apply the effect.
  6. Commit and return TurnResult.
"""

from __future__ import annotations

import asyncio
import logging

from forest_oracle.classes import MAX_PARTY_SIZE, default_player_name, new_player
from forest_oracle.config import Settings
from forest_oracle.llm import HttpLLM, LLMError
from forest_oracle.models import (
    CharacterClass,
    GameSave,
    Message,
    SessionPhase,
    SessionState,
    TurnResult,
)
from forest_oracle.prompts import PromptError
from forest_oracle.storage import Storage
from forest_oracle.worlds import get_world

from .dice import describe_roll, resolve_roll
from .effects import parse_narrator_output
from .narrator import LLMNarrator, NarrationRequest, Narrator, OfflineNarrator
from .outline import LLMOutlineGenerator, OfflineOutlineGenerator, OutlineGenerator
from .reducer import apply_effects
from .sessions import SessionStore, TurnRejected

logger = logging.getLogger(__name__)

APOLOGY_NARRATION = "The Oracle's echoes are disturbed. Try again."
GREETING = "Game Master: Welcome to the forest land. Your path is only beginning..."
INTRO_ACTION = "(Begin the adventure following the story outline.)"
INTRO_ACTION_NO_OUTLINE = "(Begin the adventure.)"

SETUP_PHASES = (SessionPhase.AWAITING_PARTY_SETUP, SessionPhase.AWAITING_STORY_OUTLINE)


class InvalidPlayer(TurnRejected):
    """The acting player index does not point at a party member."""


class SessionOver(TurnRejected):
    """The session is terminal and accepts no further turns."""


class PhaseError(TurnRejected):
    """The operation is not allowed in the session's current phase."""


class Orchestrator:
    def __init__(
        self,
        store: SessionStore,
        narrator: Narrator,
        outline_generator: OutlineGenerator,
        *,
        narrator_timeout: float = 90.0,
    ) -> None:
        self.store = store
        self._narrator = narrator
        self._outlines = outline_generator
        self._narrator_timeout = narrator_timeout

    # ------------------------------------------------------------------
    # Setup phases
    # ------------------------------------------------------------------

    def get_state(self, session_id: str) -> SessionState:
        return self.store.require(session_id)

    async def reset(self, session_id: str) -> SessionState:
        """Throw the session away and start over at world selection."""
        async with self.store.lock(session_id):
            logger.info("Resetting session %s", session_id)
            return self.store.reset(session_id)

    async def select_world(
        self, session_id: str, world_key: str, party_size: int = 1,
    ) -> SessionState:
        try:
            world = get_world(world_key)
        except KeyError:
            raise TurnRejected(f"Unknown world {world_key!r}") from None
        if not 1 <= party_size <= MAX_PARTY_SIZE:
            raise TurnRejected(f"Party size must be between 1 and {MAX_PARTY_SIZE}")

        async with self.store.lock(session_id):
            state = self.store.get_or_create(session_id)
            if state.phase != SessionPhase.AWAITING_WORLD_SELECTION:
                raise PhaseError(f"World already chosen for session {session_id!r}")
            state.world = world
            state.players = [
                new_player(default_player_name(i), CharacterClass.WARRIOR)
                for i in range(party_size)
            ]
            state.active_index = 0
            state.phase = SessionPhase.AWAITING_PARTY_SETUP
            self.store.commit(session_id, state)
            return state

    async def setup_party(
        self, session_id: str, members: list[tuple[str, CharacterClass]],
    ) -> SessionState:
        """(Re)initialize every party member from the class registry."""
        if not 1 <= len(members) <= MAX_PARTY_SIZE:
            raise TurnRejected(f"A party needs 1 to {MAX_PARTY_SIZE} players")
        if any(not name.strip() for name, _ in members):
            raise TurnRejected("Player names must not be empty")

        async with self.store.lock(session_id):
            state = self.store.require(session_id)
            if state.phase not in SETUP_PHASES:
                raise PhaseError(f"Party can no longer change in phase {state.phase.value}")

            players = []
            for i, (name, cls) in enumerate(members):
                previous = state.players[i] if i < len(state.players) else None
                keep_id = previous.id if previous and previous.cls == cls else None
                players.append(new_player(name.strip(), cls, player_id=keep_id))
            state.players = players
            state.active_index = 0
            state.phase = SessionPhase.AWAITING_STORY_OUTLINE
            self.store.commit(session_id, state)
            return state

    async def start(self, session_id: str, seed: str | None = None) -> TurnResult:
        """Generate the outline, go active, and run the intro turn."""
        async with self.store.lock(session_id):
            state = self.store.require(session_id)
            if state.phase != SessionPhase.AWAITING_STORY_OUTLINE:
                raise PhaseError(f"Session {session_id!r} is not ready to start")

            try:
                outline = await asyncio.wait_for(
                    self._outlines.generate(state.world, state.players, seed),
                    timeout=self._narrator_timeout,
                )
            except (LLMError, PromptError, asyncio.TimeoutError) as e:
                logger.warning("Outline generation failed for %s: %s", session_id, e)
                outline = None
            except Exception:
                logger.exception("Outline generator crashed for %s", session_id)
                outline = None

            state.story = outline
            state.messages.append(Message(role="system", content=GREETING))
            state.active_index = 0
            state.phase = SessionPhase.ACTIVE
            self.store.commit(session_id, state)

            action = INTRO_ACTION if outline else INTRO_ACTION_NO_OUTLINE
            return await self._run_turn(state, 0, action, is_intro=True)

    async def set_active(self, session_id: str, index: int) -> SessionState:
        async with self.store.lock(session_id):
            state = self.store.require(session_id)
            if not 0 <= index < len(state.players):
                raise InvalidPlayer(f"No player at index {index}")
            state.active_index = index
            self.store.commit(session_id, state)
            return state

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def submit_turn(
        self,
        session_id: str,
        acting_index: int,
        action: str,
        is_intro: bool = False,
    ) -> TurnResult:
        """Resolve one player action and return the narration + new state."""
        async with self.store.lock(session_id):
            state = self.store.require(session_id)
            if state.is_over:
                raise SessionOver(f"Session {session_id!r} is over")
            if state.phase != SessionPhase.ACTIVE:
                raise PhaseError(f"Session {session_id!r} is not active")
            if not 0 <= acting_index < len(state.players):
                raise InvalidPlayer(f"No player at index {acting_index}")
            if not is_intro and not action.strip():
                raise TurnRejected("Action must not be empty")
            return await self._run_turn(state, acting_index, action.strip(), is_intro)

    async def _run_turn(
        self, state: SessionState, acting_index: int, action: str, is_intro: bool,
    ) -> TurnResult:
        player = state.players[acting_index]
        dice = None if is_intro else resolve_roll(player, action)

        transcript: list[Message] = []
        if not is_intro:
            line = f"({player.name}): {action}"
            if dice is not None:
                line += f" ({describe_roll(dice)})"
            transcript.append(Message(role="user", content=line))

        request = NarrationRequest(
            state=state, acting_index=acting_index, action=action,
            dice=dice, is_intro=is_intro,
        )
        try:
            raw = await asyncio.wait_for(
                self._narrator.narrate(request), timeout=self._narrator_timeout,
            )
        except (LLMError, PromptError, asyncio.TimeoutError) as e:
            logger.warning("Narrator unavailable for session %s: %s", state.session_id, e)
            narration, effect = APOLOGY_NARRATION, None
        except Exception:
            logger.exception("Narrator crashed for session %s", state.session_id)
            narration, effect = APOLOGY_NARRATION, None
        else:
            narration, effect = parse_narrator_output(raw)
            if effect is None:
                logger.debug("No effects this turn for session %s", state.session_id)

        transcript.append(Message(role="assistant", content=narration))
        next_state = apply_effects(state, effect, acting_index, transcript)
        self.store.commit(state.session_id, next_state)
        logger.debug(
            "turn committed session=%s actor=%d roll=%s over=%s",
            state.session_id, acting_index,
            dice.total if dice else None, next_state.is_over,
        )
        return TurnResult(narration=narration, effect=effect, dice=dice, state=next_state)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def save_snapshot(self, session_id: str, name: str) -> GameSave:
        async with self.store.lock(session_id):
            return self.store.save_snapshot(session_id, name)

    def list_saves(self, session_id: str) -> list[GameSave]:
        return self.store.list_saves(session_id)

    async def load_snapshot(self, session_id: str, save_id: str) -> SessionState:
        async with self.store.lock(session_id):
            return self.store.load_snapshot(session_id, save_id)

    async def delete_snapshot(self, session_id: str, save_id: str) -> None:
        async with self.store.lock(session_id):
            self.store.delete_snapshot(session_id, save_id)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def build_collaborators(settings: Settings) -> tuple[Narrator, OutlineGenerator]:
    """Pick HTTP-backed collaborators, or offline ones without credentials."""
    if settings.offline:
        logger.info("No LLM credentials configured, using the offline narrator")
        return OfflineNarrator(), OfflineOutlineGenerator()

    def _llm(max_tokens: int) -> HttpLLM:
        return HttpLLM(
            provider_url=settings.provider_url,
            api_key=settings.openai_api_key,
            provider_format=settings.provider_format,
            model=settings.openai_model,
            max_tokens=max_tokens,
            timeout=settings.llm_timeout,
        )

    narrator = LLMNarrator(
        _llm(settings.narrator_max_tokens),
        language=settings.narrator_language,
        history_window=settings.history_window,
    )
    outlines = LLMOutlineGenerator(
        _llm(settings.outline_max_tokens), language=settings.narrator_language,
    )
    return narrator, outlines


def build_orchestrator(settings: Settings, storage: Storage | None = None) -> Orchestrator:
    store = SessionStore(storage or Storage(settings.data_dir), max_saves=settings.max_saves)
    narrator, outlines = build_collaborators(settings)
    return Orchestrator(store, narrator, outlines, narrator_timeout=settings.narrator_timeout)
