"""Narrator output parsing into narration text + a validated Effect.

The narrator is asked to append one fenced block of JSON after its prose:

    The wolf lunges and rakes your arm.
    ```json
    {"actorHp": 12, "questLog": ["Met the hermit"]}
    ```

Only the first fenced block is read. A missing block, or one that is not a
JSON object, is a valid "no effects this turn" result, not an error.

Fields are validated one at a time; a field with the wrong shape is dropped
and the rest are kept. Accepted keys per field:

  goal          goal
  quest_log     questLog, quest_log
  is_over       isOver, is_over
  outcome       outcome                     ("win" | "lose" | "none")
  hp            actorHp, hp                 (int, or float truncated)
  mana          actorMana, mana
  inventory     actorInventory, inventory   (full replacement)
  add_items     actorAddItems, addItems, add_items
  remove_items  actorRemoveItems, removeItems, remove_items

null values count as absent. Unknown keys are ignored.
"""

import json
import logging
import math
import re
from typing import Any, Literal, Union

from pydantic import StrictBool, StrictFloat, StrictInt, StrictStr, TypeAdapter, ValidationError

from forest_oracle.models import Effect

logger = logging.getLogger(__name__)

_BLOCK_RE = re.compile(r"```([\s\S]*?)```")
_LANG_TAG_RE = re.compile(r"^[A-Za-z]+\s*(?=[{\[])")

_STR = TypeAdapter(StrictStr)
_BOOL = TypeAdapter(StrictBool)
_NUMBER = TypeAdapter(Union[StrictInt, StrictFloat])
_STR_LIST = TypeAdapter(list[StrictStr])
_OUTCOME = TypeAdapter(Literal["win", "lose", "none"])

# Effect field → (accepted keys, validator)
_FIELDS: dict[str, tuple[tuple[str, ...], TypeAdapter]] = {
    "goal": (("goal",), _STR),
    "quest_log": (("questLog", "quest_log"), _STR_LIST),
    "is_over": (("isOver", "is_over"), _BOOL),
    "outcome": (("outcome",), _OUTCOME),
    "hp": (("actorHp", "hp"), _NUMBER),
    "mana": (("actorMana", "mana"), _NUMBER),
    "inventory": (("actorInventory", "inventory"), _STR_LIST),
    "add_items": (("actorAddItems", "addItems", "add_items"), _STR_LIST),
    "remove_items": (("actorRemoveItems", "removeItems", "remove_items"), _STR_LIST),
}


def extract_block(text: str) -> str | None:
    """Return the contents of the first fenced block, without a language tag."""
    match = _BLOCK_RE.search(text or "")
    if not match:
        return None
    body = match.group(1).strip()
    return _LANG_TAG_RE.sub("", body, count=1)


def strip_effects_block(text: str) -> str:
    """Remove every fenced block from narrator output and trim it."""
    return _BLOCK_RE.sub("", text or "").strip()


def _first_present(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _validate_field(name: str, value: Any, adapter: TypeAdapter) -> Any:
    try:
        validated = adapter.validate_python(value, strict=True)
    except ValidationError:
        logger.warning("Dropping effect field %s: unexpected value %r", name, value)
        return None
    if adapter is _NUMBER:
        if not math.isfinite(validated):
            logger.warning("Dropping effect field %s: non-finite number", name)
            return None
        return int(validated)
    return validated


def effect_from_dict(data: dict[str, Any]) -> Effect:
    """Build an Effect from an untrusted dict, dropping malformed fields."""
    fields: dict[str, Any] = {}
    for name, (keys, adapter) in _FIELDS.items():
        raw = _first_present(data, keys)
        if raw is None:
            continue
        value = _validate_field(name, raw, adapter)
        if value is not None:
            fields[name] = value
    return Effect(**fields)


def parse_effects(text: str) -> Effect | None:
    """Parse the effects block out of raw narrator output, or None."""
    block = extract_block(text)
    if block is None:
        return None
    try:
        data = json.loads(block)
    except ValueError as e:
        logger.warning("Effects block is not valid JSON: %s", e)
        return None
    if not isinstance(data, dict):
        logger.warning("Effects block must be a JSON object, got %s", type(data).__name__)
        return None
    return effect_from_dict(data)


def parse_narrator_output(text: str) -> tuple[str, Effect | None]:
    """Split raw narrator output into (narration, effect)."""
    return strip_effects_block(text), parse_effects(text)
