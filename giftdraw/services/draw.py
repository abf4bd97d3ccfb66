from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..derangement import Assignment, generate_derangement, validate_assignments
from ..extensions import db
from ..models import Assignment as AssignmentRow, DrawState, Participant


logger = logging.getLogger(__name__)


class SetupError(ValueError):
    pass


class DrawLockedError(SetupError):
    pass


class ParticipantError(SetupError):
    pass


class AlreadyRevealedError(SetupError):
    pass


def list_participants() -> list[Participant]:
    return Participant.query.order_by(Participant.position.asc()).all()


def _next_position() -> int:
    last = db.session.query(db.func.max(Participant.position)).scalar()
    return 0 if last is None else last + 1


def _require_open() -> DrawState:
    state = DrawState.get_singleton()
    if state.is_complete:
        raise DrawLockedError("The draw has already happened. Reset to start over.")
    return state


def _claim_draw(state: DrawState, shared: bool) -> None:
    # Conditional write: of two concurrent draws only one sees is_complete=False.
    claimed = DrawState.query.filter_by(id=state.id, is_complete=False).update(
        {"is_complete": True, "is_shared": shared, "drawn_at": datetime.utcnow()},
        synchronize_session=False,
    )
    if not claimed:
        db.session.rollback()
        raise DrawLockedError("The draw has already happened. Reset to start over.")


def _commit_draw() -> None:
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise DrawLockedError("The draw has already happened. Reset to start over.") from e


# --------- Setup ----------

def add_participant(name: str) -> Participant:
    _require_open()

    name = (name or "").strip()
    if not name:
        raise ParticipantError("Name is required.")

    lowered = name.lower()
    if any(p.name.lower() == lowered for p in Participant.query.all()):
        raise ParticipantError(f"{name} is already on the list.")

    p = Participant(name=name, position=_next_position())
    db.session.add(p)
    db.session.commit()
    return p


def remove_participant(participant_id: str) -> None:
    _require_open()

    p = db.session.get(Participant, participant_id)
    if not p:
        raise ParticipantError("No such participant.")

    db.session.delete(p)
    db.session.commit()


# --------- Draw ----------

def perform_draw() -> tuple[Assignment, ...]:
    """
    Draws once and locks the group. Raises DrawLockedError on a second call
    and lets DrawError from the generator through for the caller to report.
    """
    state = _require_open()
    people = list_participants()

    max_attempts = current_app.config["DERANGEMENT_MAX_ATTEMPTS"]
    assignments = generate_derangement(people, max_attempts=max_attempts)

    _claim_draw(state, shared=False)
    for position, a in enumerate(assignments):
        db.session.add(AssignmentRow(position=position, giver_id=a.giver_id, receiver_id=a.receiver_id))
    _commit_draw()

    logger.info("Draw completed for %d participants", len(assignments))
    return assignments


def load_assignments() -> tuple[Assignment, ...]:
    """
    Returns the stored draw after re-validating it against the stored
    participants. Anything that no longer forms a valid draw wipes all state.
    """
    state = DrawState.get_singleton()
    if not state.is_complete:
        return ()

    rows = AssignmentRow.query.order_by(AssignmentRow.position.asc()).all()
    assignments = tuple(Assignment(r.giver_id, r.receiver_id) for r in rows)

    # A completed draw with nothing stored is as broken as a tampered one.
    if not assignments or not validate_assignments(list_participants(), assignments):
        logger.warning("Stored draw failed validation, resetting all state")
        reset_all()
        return ()

    return assignments


def replace_with_shared(participants: Sequence[dict], assignments: Sequence[dict]) -> None:
    """
    Stores a draw received from a share link. Callers pass payload data that
    has already passed validation.
    """
    _claim_draw(_require_open(), shared=True)

    AssignmentRow.query.delete()
    Participant.query.delete()

    for position, p in enumerate(participants):
        db.session.add(Participant(id=p["id"], name=p["name"], position=position))
    db.session.flush()

    for position, a in enumerate(assignments):
        db.session.add(AssignmentRow(position=position, giver_id=a["giverId"], receiver_id=a["receiverId"]))
    _commit_draw()

    logger.info("Imported shared draw for %d participants", len(participants))


# --------- Reveal ----------

def _receiver_in(assignments: Sequence[Assignment], giver_id: str) -> Participant | None:
    for a in assignments:
        if a.giver_id == giver_id:
            return db.session.get(Participant, a.receiver_id)
    return None


def receiver_for(giver_id: str) -> Participant | None:
    return _receiver_in(load_assignments(), giver_id)


def reveal(participant_id: str) -> Participant:
    """
    Marks the participant as revealed and returns who they gift.
    Each participant can do this exactly once.
    """
    assignments = load_assignments()
    if not assignments:
        raise ParticipantError("The draw has not happened yet.")

    giver = db.session.get(Participant, participant_id)
    if not giver:
        raise ParticipantError("No such participant.")
    if giver.is_revealed:
        raise AlreadyRevealedError(f"{giver.name} has already seen their match.")

    receiver = _receiver_in(assignments, participant_id)
    if receiver is None:
        raise ParticipantError("No assignment found for this participant.")

    # Only the first of two concurrent reveals finds revealed_at still empty.
    claimed = Participant.query.filter_by(id=participant_id, revealed_at=None).update(
        {"revealed_at": datetime.utcnow()}, synchronize_session=False
    )
    db.session.commit()
    if not claimed:
        raise AlreadyRevealedError(f"{giver.name} has already seen their match.")

    logger.info("Participant %s revealed their match", participant_id)
    return receiver


def revealed_progress() -> tuple[int, int]:
    people = list_participants()
    return sum(1 for p in people if p.is_revealed), len(people)


# --------- Reset ----------

def reset_all() -> None:
    AssignmentRow.query.delete()
    Participant.query.delete()

    state = DrawState.get_singleton()
    state.is_complete = False
    state.is_shared = False
    state.drawn_at = None
    db.session.commit()

    logger.info("All draw state cleared")
