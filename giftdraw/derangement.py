from __future__ import annotations

import logging
import random
from collections.abc import Mapping, Sequence
from typing import Any, NamedTuple


logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 1000


class Assignment(NamedTuple):
    giver_id: str
    receiver_id: str

    def to_dict(self) -> dict[str, str]:
        return {"giverId": self.giver_id, "receiverId": self.receiver_id}


class DrawError(RuntimeError):
    code = "DRAW_FAILED"


class InsufficientParticipantsError(DrawError):
    code = "INSUFFICIENT_PARTICIPANTS"


class ExhaustedError(DrawError):
    code = "EXHAUSTED"


def _field(obj: Any, attr: str, key: str) -> Any:
    """Read `attr` from a model/tuple or `key` from a wire-shaped mapping."""
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, attr, None)


def _valid_id(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def generate_derangement(
    participants: Sequence[Any],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    rng: random.Random | None = None,
) -> tuple[Assignment, ...]:
    """
    Draw a uniformly random derangement over the participants' ids.

    Shuffles a copy of the ids and keeps the first permutation without a fixed
    point. About 1/e of all permutations qualify, so ~2.7 attempts are expected
    for any group size.

    Raises InsufficientParticipantsError for fewer than 2 participants and
    ExhaustedError when `max_attempts` shuffles all had a fixed point.
    """
    if len(participants) < 2:
        raise InsufficientParticipantsError("Need at least 2 participants to draw.")

    shuffle = rng.shuffle if rng is not None else random.shuffle
    ids = [_field(p, "id", "id") for p in participants]

    for attempt in range(1, max_attempts + 1):
        shuffled = ids[:]
        shuffle(shuffled)
        if all(a != b for a, b in zip(ids, shuffled)):
            logger.debug("Derangement of %d found after %d attempt(s)", len(ids), attempt)
            return tuple(Assignment(g, r) for g, r in zip(ids, shuffled))

    logger.warning("No derangement of %d participants after %d attempts", len(ids), max_attempts)
    raise ExhaustedError(f"Could not find a valid draw after {max_attempts} attempts.")


def validate_assignments(participants: Any, assignments: Any) -> bool:
    """
    True when `assignments` is a complete derangement over `participants`.

    Both arguments may come straight out of a decoded payload, so anything
    malformed is reported as invalid instead of raising.
    """
    if not isinstance(participants, Sequence) or isinstance(participants, (str, bytes)):
        return False
    if not isinstance(assignments, Sequence) or isinstance(assignments, (str, bytes)):
        return False
    if len(assignments) != len(participants):
        return False

    known = {pid for pid in (_field(p, "id", "id") for p in participants) if _valid_id(pid)}
    givers: set[str] = set()
    receivers: set[str] = set()

    for a in assignments:
        giver = _field(a, "giver_id", "giverId")
        receiver = _field(a, "receiver_id", "receiverId")
        if not (_valid_id(giver) and _valid_id(receiver)):
            return False
        if giver not in known or receiver not in known:
            return False
        if giver == receiver:
            return False
        if giver in givers or receiver in receivers:
            return False
        givers.add(giver)
        receivers.add(receiver)

    return len(givers) == len(participants) and len(receivers) == len(participants)
