"""Session store — keyed home for each session's current state.

One SessionStore is constructed at process start and handed to the
orchestrator; there is no module-level registry.

Concurrency: lock(session_id) is an async context manager around a
per-session asyncio.Lock. At most one read → narrate → reduce → commit
section runs per session id; different ids never wait on each other.
A lock entry lives only while some task holds or waits on it.

States are cached in memory and written through to the durable Storage on
every commit. Only ids with durable state are cached; unknown or rejected
ids leave no entry. get() returns a deep copy, so nothing outside the
critical section can alias the stored value.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from forest_oracle.models import GameSave, SessionState
from forest_oracle.storage import Storage

logger = logging.getLogger(__name__)


class TurnRejected(ValueError):
    """Caller input was invalid; the session was left untouched."""


class SessionNotFound(TurnRejected):
    """No state exists for the given session id."""


class SaveNotFound(TurnRejected):
    """No snapshot with the given id exists for the session."""


class SessionStore:
    def __init__(self, storage: Storage, max_saves: int = 50) -> None:
        self._storage = storage
        self._max_saves = max_saves
        self._states: dict[str, SessionState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Mutual exclusion
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        if lock.locked():
            logger.debug("Session %s busy, waiting for in-flight turn", session_id)
        try:
            async with lock:
                yield
        finally:
            # drop the entry once no task holds or waits on it
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]
                del self._locks[session_id]

    def is_locked(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _load(self, session_id: str) -> SessionState | None:
        state = self._states.get(session_id)
        if state is None:
            state = self._storage.get_state(session_id)
            if state is not None:
                self._states[session_id] = state
        return state

    def get(self, session_id: str) -> SessionState | None:
        state = self._load(session_id)
        return state.model_copy(deep=True) if state is not None else None

    def require(self, session_id: str) -> SessionState:
        state = self.get(session_id)
        if state is None:
            raise SessionNotFound(f"Unknown session {session_id!r}")
        return state

    def get_or_create(self, session_id: str) -> SessionState:
        state = self.get(session_id)
        if state is None:
            state = SessionState(session_id=session_id)
            self.commit(session_id, state)
            logger.info("Created session %s", session_id)
        return state

    def commit(self, session_id: str, state: SessionState) -> None:
        if state.session_id != session_id:
            raise ValueError(
                f"State for {state.session_id!r} committed under {session_id!r}"
            )
        stored = state.model_copy(deep=True)
        self._states[session_id] = stored
        self._storage.save_state(stored)

    def reset(self, session_id: str) -> SessionState:
        """Replace the session with a fresh, empty state."""
        state = SessionState(session_id=session_id)
        self.commit(session_id, state)
        return state

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def save_snapshot(self, session_id: str, name: str) -> GameSave:
        state = self.require(session_id)
        save = GameSave(
            id=uuid.uuid4().hex,
            name=name,
            created_at=datetime.now(timezone.utc).isoformat(),
            state=state,
        )
        self._storage.push_save(session_id, save, self._max_saves)
        return save

    def list_saves(self, session_id: str) -> list[GameSave]:
        return self._storage.get_saves(session_id)

    def load_snapshot(self, session_id: str, save_id: str) -> SessionState:
        """Restore a snapshot as the session's current state."""
        for save in self._storage.get_saves(session_id):
            if save.id == save_id:
                self.commit(session_id, save.state)
                return save.state.model_copy(deep=True)
        raise SaveNotFound(f"Unknown save {save_id!r} for session {session_id!r}")

    def delete_snapshot(self, session_id: str, save_id: str) -> None:
        if not self._storage.delete_save(session_id, save_id):
            raise SaveNotFound(f"Unknown save {save_id!r} for session {session_id!r}")
