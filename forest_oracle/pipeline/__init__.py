"""Turn pipeline: dice, effects parsing, state reduction, sessions, orchestration.

One player turn:
  1. Dice — d20 + the stat the action tests (skipped on the intro turn).
  2. Narrator — LLM (or offline script) returns prose + a fenced JSON block.
  3. Effects — the block is parsed field by field into an Effect; a missing
     or broken block means "no effects this turn".
  4. Reducer — the Effect is merged into the session for the acting player,
     clamping hp/mana and ending the session when the whole party is down.
  5. Store — the new state is committed under the session's lock.

Narrator output format (parsed by parse_narrator_output):
  Narration text.
  ```json
  {"actorHp": 12, "actorAddItems": ["Torch"]}
  ```
"""

from .dice import describe_roll, guess_relevant_stat, resolve_roll, roll_d20  # noqa: F401
from .effects import (  # noqa: F401
    effect_from_dict,
    parse_effects,
    parse_narrator_output,
    strip_effects_block,
)
from .narrator import LLMNarrator, NarrationRequest, Narrator, OfflineNarrator  # noqa: F401
from .orchestrator import (  # noqa: F401
    APOLOGY_NARRATION,
    InvalidPlayer,
    Orchestrator,
    PhaseError,
    SessionOver,
    build_collaborators,
    build_orchestrator,
)
from .outline import (  # noqa: F401
    LLMOutlineGenerator,
    OfflineOutlineGenerator,
    OutlineGenerator,
    parse_outline,
)
from .reducer import apply_effects, party_defeated  # noqa: F401
from .sessions import SaveNotFound, SessionNotFound, SessionStore, TurnRejected  # noqa: F401
