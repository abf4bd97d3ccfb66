import uuid
from datetime import datetime

from .extensions import db


def new_participant_id() -> str:
    return uuid.uuid4().hex


class Participant(db.Model):
    __tablename__ = "participants"

    id = db.Column(db.String(64), primary_key=True, default=new_participant_id)
    name = db.Column(db.String(64), nullable=False)
    # Insertion order; the draw pairs givers in this order.
    position = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # Set once, when this participant opens their reveal. Cleared only by a full reset.
    revealed_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_revealed(self) -> bool:
        return self.revealed_at is not None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class Assignment(db.Model):
    """
    One giver -> receiver pair of the current draw.
    """
    __tablename__ = "assignments"

    id = db.Column(db.Integer, primary_key=True)
    # Position within the draw so the set reloads in participant order.
    position = db.Column(db.Integer, nullable=False)

    giver_id = db.Column(db.String(64), db.ForeignKey("participants.id", ondelete="CASCADE"), nullable=False, unique=True)
    receiver_id = db.Column(db.String(64), db.ForeignKey("participants.id", ondelete="CASCADE"), nullable=False, unique=True)


class DrawState(db.Model):
    __tablename__ = "draw_state"

    id = db.Column(db.Integer, primary_key=True)
    drawn_at = db.Column(db.DateTime, nullable=True)
    is_complete = db.Column(db.Boolean, default=False, nullable=False)
    # True when the draw was imported from a share link rather than drawn here.
    is_shared = db.Column(db.Boolean, default=False, nullable=False)

    @classmethod
    def get_singleton(cls):
        obj = cls.query.first()
        if not obj:
            obj = cls()
            db.session.add(obj)
            db.session.commit()
        return obj
