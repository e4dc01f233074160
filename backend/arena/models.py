from arena import db
from flask_login import UserMixin
from datetime import datetime, timezone
import uuid
from arena.services.matchmaking.location import Coordinates

# Match statuses
PENDING = 'pending'
AWAITING_MOVES = 'awaiting_moves'
RESOLVED = 'resolved'
CANCELLED = 'cancelled'
OPEN_STATUSES = (PENDING, AWAITING_MOVES)
CLOSED_STATUSES = (RESOLVED, CANCELLED)

# Moves
ROCK = 'rock'
PAPER = 'paper'
SCISSORS = 'scissors'
MOVES = (ROCK, PAPER, SCISSORS)

# Results
PLAYER1_WIN = 'player1_win'
PLAYER2_WIN = 'player2_win'
DRAW = 'draw'
UNRESOLVED = 'unresolved'


def utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class AuthenticatedPlayer(UserMixin):
    """Caller identity forwarded by the upstream authenticator."""

    def __init__(self, player_id):
        self.id = player_id

    @property
    def player_id(self):
        return self.id


class PlayerProfile(db.Model):
    __tablename__ = 'profile'
    player_id = db.Column(db.String(64), primary_key=True)
    display_name = db.Column(db.String(64), nullable=True)
    locality_label = db.Column(db.String(128), nullable=True)


class QueueEntry(db.Model):
    __tablename__ = 'queue_entry'
    player_id = db.Column(db.String(64), primary_key=True)
    location_lat = db.Column(db.Float, nullable=True)
    location_lng = db.Column(db.Float, nullable=True)
    wager_amount = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        db.CheckConstraint('wager_amount >= 0', name='ck_queue_entry_wager_non_negative'),
    )

    @property
    def joined_at(self):
        return self.created_at

    @property
    def coordinates(self):
        """The entry's position, or None when either component is missing."""
        if self.location_lat is None or self.location_lng is None:
            return None
        return Coordinates(self.location_lat, self.location_lng)

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'location_lat': self.location_lat,
            'location_lng': self.location_lng,
            'wager_amount': float(self.wager_amount or 0),
            'joined_at': _iso(self.created_at),
        }


class Match(db.Model):
    __tablename__ = 'match'
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    player1_id = db.Column(db.String(64), nullable=False, index=True)
    player2_id = db.Column(db.String(64), nullable=False, index=True)
    wager_amount = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    status = db.Column(db.String(32), nullable=False, default=PENDING)  # pending, awaiting_moves, resolved, cancelled
    player1_move = db.Column(db.String(16), nullable=True)
    player2_move = db.Column(db.String(16), nullable=True)
    result = db.Column(db.String(16), nullable=True)  # player1_win, player2_win, draw
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    # Epoch seconds; lets clients render a countdown for the second move
    move_deadline = db.Column(db.Float, nullable=True)
    close_reason = db.Column(db.String(64), nullable=True)

    __table_args__ = (
        db.CheckConstraint('player1_id <> player2_id', name='ck_match_distinct_players'),
        db.CheckConstraint('wager_amount >= 0', name='ck_match_wager_non_negative'),
    )

    @property
    def is_closed(self):
        return self.status in CLOSED_STATUSES

    def slot_for(self, player_id):
        """Return 'player1' or 'player2' for a participant, else None."""
        if player_id == self.player1_id:
            return 'player1'
        if player_id == self.player2_id:
            return 'player2'
        return None

    def move_for(self, slot):
        return self.player1_move if slot == 'player1' else self.player2_move

    def to_dict(self, viewer_id=None):
        """Serialize the match.

        Moves stay hidden until the match is resolved, except that a
        participant always sees their own move.
        """
        viewer_slot = self.slot_for(viewer_id) if viewer_id else None
        revealed = self.status == RESOLVED

        def visible(slot):
            if revealed or slot == viewer_slot:
                return self.move_for(slot)
            return None

        return {
            'id': self.id,
            'player1_id': self.player1_id,
            'player2_id': self.player2_id,
            'wager_amount': float(self.wager_amount or 0),
            'status': self.status,
            'player1_move': visible('player1'),
            'player2_move': visible('player2'),
            'player1_submitted': self.player1_move is not None,
            'player2_submitted': self.player2_move is not None,
            'result': self.result or UNRESOLVED,
            'created_at': _iso(self.created_at),
            'resolved_at': _iso(self.resolved_at),
            'move_deadline': self.move_deadline,
            'close_reason': self.close_reason,
            'viewer_slot': viewer_slot,
        }
