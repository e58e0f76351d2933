"""Tests for JSON file storage."""

import json
from unittest.mock import patch

import pytest

from forest_oracle.models import GameSave, SessionState
from forest_oracle.storage import Storage, session_key, slugify


def _save(save_id: str, session_id: str = "s1") -> GameSave:
    return GameSave(id=save_id, name=save_id, created_at="2024-01-01T00:00:00+00:00",
                    state=SessionState(session_id=session_id))


def test_slugify():
    assert slugify("The Cursed Tavern") == "the-cursed-tavern"
    assert slugify("Żółty Smok!") == "zoty-smok"
    assert slugify("???") == "untitled"


def test_session_key_distinguishes_similar_ids():
    assert session_key("Room 1") != session_key("room-1")
    assert session_key("Room 1").startswith("room-1-")


def test_session_key_is_bounded():
    assert len(session_key("x" * 500)) == 48 + 1 + 8


def test_state_roundtrip(storage: Storage):
    state = SessionState(session_id="table/7", goal="Find the oak")
    storage.save_state(state)
    assert storage.get_state("table/7") == state


def test_get_missing_state(storage: Storage):
    assert storage.get_state("nope") is None


def test_state_file_is_json(storage: Storage, tmp_path):
    storage.save_state(SessionState(session_id="s1"))
    path = tmp_path / "data" / "sessions" / f"{session_key('s1')}.json"
    assert json.loads(path.read_text())["session_id"] == "s1"


def test_push_save_newest_first_and_capped(storage: Storage):
    for save_id in ("a", "b", "c"):
        storage.push_save("s1", _save(save_id), limit=2)
    assert [s.id for s in storage.get_saves("s1")] == ["c", "b"]


def test_delete_save(storage: Storage):
    storage.push_save("s1", _save("a"), limit=5)
    storage.push_save("s1", _save("b"), limit=5)
    assert storage.delete_save("s1", "a") is True
    assert [s.id for s in storage.get_saves("s1")] == ["b"]
    assert storage.delete_save("s1", "a") is False


def test_save_state_leaves_no_temp_file(storage: Storage, tmp_path):
    storage.save_state(SessionState(session_id="s1", goal="a"))
    storage.save_state(SessionState(session_id="s1", goal="b"))
    assert storage.get_state("s1").goal == "b"
    assert not list((tmp_path / "data" / "sessions").glob("*.tmp"))


def test_failed_write_keeps_previous_state(storage: Storage):
    storage.save_state(SessionState(session_id="s1", goal="old"))
    with patch("pathlib.Path.replace", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            storage.save_state(SessionState(session_id="s1", goal="new"))
    assert storage.get_state("s1").goal == "old"
