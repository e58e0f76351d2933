from pathlib import Path

import pytest

from forest_oracle.classes import new_player
from forest_oracle.llm import LLMError
from forest_oracle.models import CharacterClass, SessionPhase, SessionState
from forest_oracle.pipeline import (
    NarrationRequest,
    OfflineOutlineGenerator,
    Orchestrator,
    SessionStore,
)
from forest_oracle.storage import Storage
from forest_oracle.worlds import WORLDS


class StubLLM:
    """Records every call and replays canned responses in order.

    The last response repeats once the list runs out. Set `error` to make
    every call raise LLMError.
    """

    def __init__(self, *responses: str, error: str | None = None) -> None:
        self.responses = list(responses) or [""]
        self.error = error
        self.calls: list[tuple[str, str, str]] = []

    async def __call__(self, stage: str, system: str, prompt: str) -> str:
        self.calls.append((stage, system, prompt))
        if self.error:
            raise LLMError(self.error)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class StubNarrator:
    """Narrator returning canned raw output and recording each request."""

    def __init__(self, *responses: str, error: Exception | None = None) -> None:
        self.responses = list(responses) or ["The forest is quiet."]
        self.error = error
        self.requests: list[NarrationRequest] = []

    async def narrate(self, request: NarrationRequest) -> str:
        self.requests.append(request)
        if self.error:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


@pytest.fixture
def storage(tmp_path: Path) -> Storage:
    return Storage(tmp_path / "data")


@pytest.fixture
def store(storage: Storage) -> SessionStore:
    return SessionStore(storage, max_saves=3)


@pytest.fixture
def narrator() -> StubNarrator:
    return StubNarrator()


@pytest.fixture
def orchestrator(store: SessionStore, narrator: StubNarrator) -> Orchestrator:
    return Orchestrator(store, narrator, OfflineOutlineGenerator(), narrator_timeout=2.0)


def make_state(session_id: str = "s1", *classes: CharacterClass, **fields) -> SessionState:
    """An active session in the first world with one player per class."""
    classes = classes or (CharacterClass.WARRIOR,)
    players = [new_player(f"P{i}", cls) for i, cls in enumerate(classes)]
    defaults = {
        "phase": SessionPhase.ACTIVE,
        "world": WORLDS["wiedzmin"],
        "players": players,
    }
    defaults.update(fields)
    return SessionState(session_id=session_id, **defaults)


@pytest.fixture
def active_state(store: SessionStore) -> SessionState:
    """Two-player active session committed as "s1"."""
    state = make_state("s1", CharacterClass.WARRIOR, CharacterClass.MAGE)
    store.commit("s1", state)
    return state
