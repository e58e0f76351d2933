"""Tests for the session phase machine and turn flow."""

import asyncio
from unittest.mock import patch

import pytest

from conftest import StubNarrator
from forest_oracle.config import Settings
from forest_oracle.llm import HttpLLM, LLMError
from forest_oracle.models import CharacterClass, Outcome, SessionPhase
from forest_oracle.pipeline import (
    APOLOGY_NARRATION,
    InvalidPlayer,
    LLMNarrator,
    LLMOutlineGenerator,
    OfflineNarrator,
    OfflineOutlineGenerator,
    Orchestrator,
    PhaseError,
    SessionNotFound,
    SessionOver,
    TurnRejected,
    build_collaborators,
    build_orchestrator,
)
from forest_oracle.pipeline.orchestrator import GREETING, INTRO_ACTION, INTRO_ACTION_NO_OUTLINE

WARRIOR, MAGE = CharacterClass.WARRIOR, CharacterClass.MAGE


async def _ready(orch: Orchestrator, session_id: str = "s1") -> None:
    """Drive a session through setup to the active phase."""
    await orch.select_world(session_id, "gothic", party_size=2)
    await orch.setup_party(session_id, [("Alder", WARRIOR), ("Mira", MAGE)])
    await orch.start(session_id)


def _roll(value: int):
    return patch("forest_oracle.pipeline.dice.random.randint", return_value=value)


# ── Setup phases ───────────────────────────────────────────


async def test_select_world_seeds_default_party(orchestrator):
    state = await orchestrator.select_world("s1", "gothic", party_size=3)
    assert state.phase == SessionPhase.AWAITING_PARTY_SETUP
    assert state.world.key == "gothic"
    assert len(state.players) == 3
    assert all(p.cls == WARRIOR for p in state.players)


async def test_select_unknown_world_rejected(orchestrator):
    with pytest.raises(TurnRejected):
        await orchestrator.select_world("s1", "narnia")
    assert orchestrator.store.get("s1") is None


async def test_select_world_bad_party_size(orchestrator):
    with pytest.raises(TurnRejected):
        await orchestrator.select_world("s1", "gothic", party_size=5)


async def test_select_world_twice_needs_reset(orchestrator):
    await orchestrator.select_world("s1", "gothic")
    with pytest.raises(PhaseError):
        await orchestrator.select_world("s1", "dragon-age")
    await orchestrator.reset("s1")
    state = await orchestrator.select_world("s1", "dragon-age")
    assert state.world.key == "dragon-age"


async def test_setup_party(orchestrator):
    seeded = await orchestrator.select_world("s1", "gothic", party_size=2)
    state = await orchestrator.setup_party("s1", [(" Alder ", WARRIOR), ("Mira", MAGE)])
    assert state.phase == SessionPhase.AWAITING_STORY_OUTLINE
    assert [p.name for p in state.players] == ["Alder", "Mira"]
    assert state.players[0].id == seeded.players[0].id
    assert state.players[1].id != seeded.players[1].id
    assert state.players[1].hp == 18


async def test_setup_party_can_be_repeated(orchestrator):
    await orchestrator.select_world("s1", "gothic")
    await orchestrator.setup_party("s1", [("Alder", WARRIOR)])
    state = await orchestrator.setup_party("s1", [("Alder", WARRIOR), ("Lysa", CharacterClass.ROGUE)])
    assert len(state.players) == 2


async def test_setup_party_validation(orchestrator):
    await orchestrator.select_world("s1", "gothic")
    with pytest.raises(TurnRejected):
        await orchestrator.setup_party("s1", [])
    with pytest.raises(TurnRejected):
        await orchestrator.setup_party("s1", [("A", WARRIOR)] * 5)
    with pytest.raises(TurnRejected):
        await orchestrator.setup_party("s1", [("  ", WARRIOR)])


async def test_setup_party_unknown_session(orchestrator):
    with pytest.raises(SessionNotFound):
        await orchestrator.setup_party("nope", [("A", WARRIOR)])


async def test_setup_party_after_start_rejected(orchestrator):
    await _ready(orchestrator)
    with pytest.raises(PhaseError):
        await orchestrator.setup_party("s1", [("A", WARRIOR)])


# ── Start / intro turn ─────────────────────────────────────


async def test_start_runs_intro_turn(orchestrator, narrator):
    await orchestrator.select_world("s1", "gothic")
    await orchestrator.setup_party("s1", [("Alder", WARRIOR)])
    result = await orchestrator.start("s1", seed="A stolen relic")

    state = result.state
    assert state.phase == SessionPhase.ACTIVE
    assert state.story is not None
    assert state.story.world_key == "gothic"
    assert state.messages[0].role == "system"
    assert state.messages[0].content == GREETING
    assert [m.role for m in state.messages] == ["system", "assistant"]
    assert result.dice is None

    request = narrator.requests[0]
    assert request.is_intro is True
    assert request.action == INTRO_ACTION
    assert request.dice is None


async def test_start_without_outline(store, narrator):
    class FailingOutlines:
        async def generate(self, world, players, seed=None):
            raise LLMError("down")

    orch = Orchestrator(store, narrator, FailingOutlines())
    await orch.select_world("s1", "gothic")
    await orch.setup_party("s1", [("Alder", WARRIOR)])
    result = await orch.start("s1")
    assert result.state.story is None
    assert result.state.phase == SessionPhase.ACTIVE
    assert narrator.requests[0].action == INTRO_ACTION_NO_OUTLINE


async def test_start_wrong_phase(orchestrator):
    await orchestrator.select_world("s1", "gothic")
    with pytest.raises(PhaseError):
        await orchestrator.start("s1")


# ── Turns ──────────────────────────────────────────────────


async def test_turn_transcript_and_effects(orchestrator, narrator):
    await _ready(orchestrator)
    narrator.responses = ['The wolf bites.\n```json\n{"actorHp": 20, "actorAddItems": ["Fang"]}\n```']

    with _roll(12):
        result = await orchestrator.submit_turn("s1", 0, "Atakuję wilka")

    assert result.narration == "The wolf bites."
    assert result.dice.stat == "strength"
    assert result.dice.total == 16
    assert result.effect.hp == 20

    user, assistant = result.state.messages[-2:]
    assert user.role == "user"
    assert user.content == (
        "(Alder): Atakuję wilka (rolled d20=12 + Strength modifier 4 => total 16)"
    )
    assert assistant.content == "The wolf bites."

    alder = result.state.players[0]
    assert alder.hp == 20
    assert "Fang" in alder.inventory
    assert orchestrator.get_state("s1") == result.state


async def test_turn_without_effects_block(orchestrator, narrator):
    await _ready(orchestrator)
    before = orchestrator.get_state("s1")
    narrator.responses = ["Only mist."]
    result = await orchestrator.submit_turn("s1", 1, "I look around")
    assert result.effect is None
    assert result.state.players == before.players
    assert result.state.messages[-1].content == "Only mist."


async def test_turn_unknown_session(orchestrator):
    with pytest.raises(SessionNotFound):
        await orchestrator.submit_turn("nope", 0, "hello")


async def test_turn_before_start(orchestrator):
    await orchestrator.select_world("s1", "gothic")
    with pytest.raises(PhaseError):
        await orchestrator.submit_turn("s1", 0, "hello")


async def test_turn_invalid_player(orchestrator):
    await _ready(orchestrator)
    with pytest.raises(InvalidPlayer):
        await orchestrator.submit_turn("s1", 2, "hello")


async def test_turn_empty_action(orchestrator):
    await _ready(orchestrator)
    with pytest.raises(TurnRejected):
        await orchestrator.submit_turn("s1", 0, "   ")


async def test_turn_on_terminal_session(orchestrator, narrator):
    await _ready(orchestrator)
    narrator.responses = ['Victory!\n```{"outcome": "win"}```']
    result = await orchestrator.submit_turn("s1", 0, "Strike the guardian")
    assert result.state.is_over
    assert result.state.phase == SessionPhase.TERMINAL

    calls = len(narrator.requests)
    with pytest.raises(SessionOver):
        await orchestrator.submit_turn("s1", 0, "Strike again")
    assert len(narrator.requests) == calls
    assert orchestrator.get_state("s1") == result.state


async def test_party_wipe_ends_session(orchestrator, narrator):
    await _ready(orchestrator)
    narrator.responses = ['Down.\n```{"actorHp": 0}```']
    await orchestrator.submit_turn("s1", 0, "fight")
    result = await orchestrator.submit_turn("s1", 1, "cast a spell")
    assert result.state.is_over
    assert result.state.outcome == Outcome.LOSE


async def test_narrator_failure_apologizes(orchestrator, narrator):
    await _ready(orchestrator)
    before = orchestrator.get_state("s1")
    narrator.error = LLMError("backend down")

    result = await orchestrator.submit_turn("s1", 0, "fight")

    assert result.narration == APOLOGY_NARRATION
    assert result.effect is None
    assert result.state.messages[-1].content == APOLOGY_NARRATION
    assert result.state.players == before.players
    assert len(result.state.messages) == len(before.messages) + 2
    assert not orchestrator.store.is_locked("s1")


async def test_narrator_timeout_apologizes(store):
    class SlowNarrator:
        async def narrate(self, request):
            if request.is_intro:
                return "Welcome."
            await asyncio.sleep(5)
            return "too late"

    orch = Orchestrator(store, SlowNarrator(), OfflineOutlineGenerator(), narrator_timeout=0.05)
    await _ready(orch)
    result = await orch.submit_turn("s1", 0, "fight")
    assert result.narration == APOLOGY_NARRATION
    assert not store.is_locked("s1")


async def test_unexpected_narrator_error_apologizes(orchestrator, narrator):
    await _ready(orchestrator)
    before = orchestrator.get_state("s1")
    narrator.error = RuntimeError("provider sdk blew up")

    result = await orchestrator.submit_turn("s1", 0, "fight")

    assert result.narration == APOLOGY_NARRATION
    assert result.effect is None
    assert result.state.players == before.players
    assert orchestrator.get_state("s1").messages[-1].content == APOLOGY_NARRATION
    assert not orchestrator.store.is_locked("s1")


async def test_outline_crash_starts_without_outline(store, narrator):
    class BrokenOutlines:
        async def generate(self, world, players, seed=None):
            raise RuntimeError("bad generator")

    orch = Orchestrator(store, narrator, BrokenOutlines())
    await orch.select_world("s1", "gothic")
    await orch.setup_party("s1", [("Alder", WARRIOR)])
    result = await orch.start("s1")
    assert result.state.story is None
    assert result.state.phase == SessionPhase.ACTIVE


async def test_concurrent_turns_are_not_lost(store):
    class SlowItemNarrator:
        def __init__(self):
            self.items = iter(["Torch", "Rope"])

        async def narrate(self, request):
            if request.is_intro:
                return "Welcome."
            item = next(self.items)
            await asyncio.sleep(0.02)
            return f'Found something.\n```{{"actorAddItems": ["{item}"]}}```'

    orch = Orchestrator(store, SlowItemNarrator(), OfflineOutlineGenerator())
    await _ready(orch)
    start_len = len(orch.get_state("s1").messages)

    await asyncio.gather(
        orch.submit_turn("s1", 0, "search the hut"),
        orch.submit_turn("s1", 0, "search the cellar"),
    )

    state = orch.get_state("s1")
    assert "Torch" in state.players[0].inventory
    assert "Rope" in state.players[0].inventory
    assert len(state.messages) == start_len + 4


async def test_other_sessions_not_blocked(store):
    gate = asyncio.Event()

    class GatedNarrator:
        async def narrate(self, request):
            if request.state.session_id == "slow" and not request.is_intro:
                await gate.wait()
            return "ok"

    orch = Orchestrator(store, GatedNarrator(), OfflineOutlineGenerator())
    await _ready(orch, "slow")
    await _ready(orch, "fast")

    slow = asyncio.create_task(orch.submit_turn("slow", 0, "wait"))
    await asyncio.sleep(0)
    result = await asyncio.wait_for(orch.submit_turn("fast", 0, "go"), timeout=1)
    assert result.narration == "ok"
    assert not slow.done()
    gate.set()
    await slow


# ── Active player / reset / snapshots ──────────────────────


async def test_set_active(orchestrator):
    await _ready(orchestrator)
    state = await orchestrator.set_active("s1", 1)
    assert state.active_index == 1
    with pytest.raises(InvalidPlayer):
        await orchestrator.set_active("s1", 4)


async def test_reset_returns_to_world_selection(orchestrator):
    await _ready(orchestrator)
    state = await orchestrator.reset("s1")
    assert state.phase == SessionPhase.AWAITING_WORLD_SELECTION
    assert state.messages == []


async def test_snapshot_roundtrip(orchestrator, narrator):
    await _ready(orchestrator)
    save = await orchestrator.save_snapshot("s1", "before the bridge")
    narrator.responses = ['Ouch.\n```{"actorHp": 3}```']
    await orchestrator.submit_turn("s1", 0, "fight")

    assert [s.id for s in orchestrator.list_saves("s1")] == [save.id]
    restored = await orchestrator.load_snapshot("s1", save.id)
    assert restored.players[0].hp == 30
    await orchestrator.delete_snapshot("s1", save.id)
    assert orchestrator.list_saves("s1") == []


async def test_offline_flow_end_to_end(store):
    orch = Orchestrator(store, OfflineNarrator(), OfflineOutlineGenerator())
    await orch.select_world("s1", "wiedzmin")
    await orch.setup_party("s1", [("Alder", WARRIOR)])
    intro = await orch.start("s1")
    assert intro.state.goal
    assert intro.state.quest_log == ["Main goal set."]

    with _roll(20):
        result = await orch.submit_turn("s1", 0, "Atakuję wilka")
    assert result.state.is_over
    assert result.state.outcome == Outcome.WIN


# ── Wiring ─────────────────────────────────────────────────


def test_build_collaborators_offline_without_key():
    narrator, outlines = build_collaborators(Settings(openai_api_key=""))
    assert isinstance(narrator, OfflineNarrator)
    assert isinstance(outlines, OfflineOutlineGenerator)


def test_build_collaborators_forced_offline():
    narrator, _ = build_collaborators(Settings(openai_api_key="k", force_offline=True))
    assert isinstance(narrator, OfflineNarrator)


def test_build_collaborators_with_key():
    narrator, outlines = build_collaborators(Settings(openai_api_key="k"))
    assert isinstance(narrator, LLMNarrator)
    assert isinstance(outlines, LLMOutlineGenerator)
    assert isinstance(narrator._llm, HttpLLM)


def test_build_collaborators_koboldcpp_needs_no_key():
    narrator, _ = build_collaborators(Settings(provider_format="koboldcpp"))
    assert isinstance(narrator, LLMNarrator)


def test_build_orchestrator(tmp_path):
    orch = build_orchestrator(Settings(data_dir=tmp_path))
    assert (tmp_path / "sessions").is_dir()
    assert orch.store.get("s1") is None
