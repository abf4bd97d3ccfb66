from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any, NamedTuple
from urllib.parse import urlencode

from ..derangement import validate_assignments
from ..models import DrawState
from .draw import DrawLockedError, replace_with_shared


logger = logging.getLogger(__name__)

SHARE_PARAM = "kura"

# Party-sized groups encode to a few KB; anything far larger is not ours.
MAX_TOKEN_LENGTH = 64 * 1024


class SharePayload(NamedTuple):
    participants: list[dict]
    assignments: list[dict]


def encode_share_token(participants, assignments) -> str:
    """Participant models and drawn Assignment tuples -> url-safe token."""
    payload = {
        "participants": [p.to_dict() for p in participants],
        "assignments": [a.to_dict() for a in assignments],
    }
    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def build_share_url(base_url: str, token: str) -> str:
    return f"{base_url}?{urlencode({SHARE_PARAM: token})}"


def _participants_ok(participants: Any) -> bool:
    if not isinstance(participants, list) or len(participants) < 2:
        return False
    seen = set()
    for p in participants:
        if not isinstance(p, dict):
            return False
        pid, name = p.get("id"), p.get("name")
        if not (isinstance(pid, str) and pid and isinstance(name, str) and name.strip()):
            return False
        if pid in seen:
            return False
        seen.add(pid)
    return True


def decode_share_token(token: Any) -> SharePayload | None:
    """
    Token -> validated payload, or None if the token is not a complete, valid
    draw. Never raises: tokens arrive from arbitrary URLs.
    """
    if not isinstance(token, str) or not token or len(token) > MAX_TOKEN_LENGTH:
        return None

    try:
        raw = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4))
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError, RecursionError):
        return None

    if not isinstance(data, dict):
        return None

    participants = data.get("participants")
    assignments = data.get("assignments")
    if not _participants_ok(participants):
        return None
    if not isinstance(assignments, list) or not all(isinstance(a, dict) for a in assignments):
        return None
    if not validate_assignments(participants, assignments):
        return None

    return SharePayload(
        participants=[{"id": p["id"], "name": p["name"].strip()} for p in participants],
        assignments=[{"giverId": a["giverId"], "receiverId": a["receiverId"]} for a in assignments],
    )


def import_shared_draw(token: Any) -> bool:
    """
    Adopt the draw carried by a share link. Only applies while no draw exists
    locally; returns False when nothing was imported.
    """
    if DrawState.get_singleton().is_complete:
        return False

    payload = decode_share_token(token)
    if payload is None:
        logger.warning("Rejected share link: payload is not a valid draw")
        return False

    try:
        replace_with_shared(payload.participants, payload.assignments)
    except DrawLockedError:
        # Another request stored a draw first.
        return False
    return True
