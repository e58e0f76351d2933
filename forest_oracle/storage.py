"""JSON file storage.

All state is stored in flat JSON files under a configurable base directory.
There is no database or ORM — reads and writes go through plain helper
methods that load and dump JSON.

Directory layout:

    {base}/
      sessions/
        {key}.json            ← current SessionState
        {key}/
          saves.json          ← list of GameSave objects, newest first

{key} is the slugified session id followed by a short hash of the raw id,
so distinct ids never share files even when they slugify the same way.
"""

from __future__ import annotations

import hashlib
import json
import re
import unicodedata
from pathlib import Path
from typing import Any

from forest_oracle.models import GameSave, SessionState


def slugify(title: str) -> str:
    """Convert a title to a filesystem-safe slug.

    "Wolf Hunt #3" → "wolf-hunt-3"
    """
    text = unicodedata.normalize("NFKD", title)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = re.sub(r"['\"]", "", text)  # strip apostrophes/quotes before hyphenation
    text = re.sub(r"[^a-z0-9]+", "-", text)
    text = text.strip("-")
    return text or "untitled"


def session_key(session_id: str) -> str:
    digest = hashlib.sha1(session_id.encode("utf-8")).hexdigest()[:8]
    return f"{slugify(session_id)[:48]}-{digest}"


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._root = base_path / "sessions"
        self._root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _state_file(self, session_id: str) -> Path:
        return self._root / f"{session_key(session_id)}.json"

    def _session_dir(self, session_id: str) -> Path:
        return self._root / session_key(session_id)

    def _saves_file(self, session_id: str) -> Path:
        return self._session_dir(session_id) / "saves.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_text(self, path: Path, text: str) -> None:
        # write a sibling temp file, then rename over the target
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(text)
        tmp.replace(path)

    def _write_json(self, path: Path, data: Any) -> None:
        self._write_text(path, json.dumps(data, indent=2, ensure_ascii=False))

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    def get_state(self, session_id: str) -> SessionState | None:
        path = self._state_file(session_id)
        if not path.exists():
            return None
        return SessionState.model_validate_json(path.read_text())

    def save_state(self, state: SessionState) -> None:
        self._write_text(self._state_file(state.session_id), state.model_dump_json(indent=2))

    # ------------------------------------------------------------------
    # Saves (newest first, bounded)
    # ------------------------------------------------------------------

    def get_saves(self, session_id: str) -> list[GameSave]:
        path = self._saves_file(session_id)
        if not path.exists():
            return []
        return [GameSave.model_validate(s) for s in self._read_json(path)]

    def push_save(self, session_id: str, save: GameSave, limit: int) -> list[GameSave]:
        """Prepend a save and truncate the list to `limit` entries."""
        saves = [save, *self.get_saves(session_id)][:limit]
        self._session_dir(session_id).mkdir(exist_ok=True)
        self._write_json(
            self._saves_file(session_id),
            [s.model_dump(mode="json") for s in saves],
        )
        return saves

    def delete_save(self, session_id: str, save_id: str) -> bool:
        saves = self.get_saves(session_id)
        remaining = [s for s in saves if s.id != save_id]
        if len(remaining) == len(saves):
            return False
        self._write_json(
            self._saves_file(session_id),
            [s.model_dump(mode="json") for s in remaining],
        )
        return True
