"""Match state machine: moves, reveal, resolution, cancellation, timeout.

pending -> awaiting_moves -> resolved | cancelled

Every transition is a conditional UPDATE guarded by the state it starts
from, so racing submissions, cancels and timeouts cannot both apply and a
closed match is never mutated again.
"""

import time
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from arena import db, socketio
from arena.models import (
    Match,
    MOVES,
    ROCK,
    PAPER,
    SCISSORS,
    PENDING,
    AWAITING_MOVES,
    RESOLVED,
    CANCELLED,
    OPEN_STATUSES,
    PLAYER1_WIN,
    PLAYER2_WIN,
    DRAW,
    utcnow,
)
from .errors import (
    DuplicateMove,
    InvalidMove,
    MatchClosed,
    MatchNotFound,
    NotAParticipant,
    StorageUnavailable,
)
from .scheduler import schedule_move_timeout


# Each move beats the one it maps to
BEATS = {ROCK: SCISSORS, PAPER: ROCK, SCISSORS: PAPER}

TIMEOUT_CANCEL = 'cancel'
TIMEOUT_FORFEIT = 'forfeit'

REASON_REVEALED = 'moves_revealed'
REASON_TIMEOUT = 'timeout'
REASON_FORFEIT = 'forfeit'


def resolve_moves(player1_move: str, player2_move: str) -> str:
    if player1_move not in BEATS or player2_move not in BEATS:
        raise InvalidMove()
    if player1_move == player2_move:
        return DRAW
    return PLAYER1_WIN if BEATS[player1_move] == player2_move else PLAYER2_WIN


def match_room(match_id: str) -> str:
    return f"match:{match_id}"


def notify_match_changed(match: Match) -> None:
    socketio.emit('match_update', {'match_id': match.id, 'status': match.status}, to=match_room(match.id), namespace='/ws')


def get_match(match_id: str) -> Match:
    match = db.session.get(Match, match_id)
    if match is None:
        raise MatchNotFound()
    return match


def get_match_for(match_id: str, player_id: str) -> Match:
    """Fetch a match on behalf of one of its participants."""
    match = get_match(match_id)
    if match.slot_for(player_id) is None:
        raise NotAParticipant()
    return match


def open_match(match: Match) -> None:
    """Take ownership of a freshly created match."""
    current_app.logger.info(
        f"[match-open] match={match.id} player1={match.player1_id} player2={match.player2_id} wager={match.wager_amount}"
    )
    notify_match_changed(match)


def submit_move(match_id: str, player_id: str, move) -> Match:
    if isinstance(move, str):
        move = move.strip().lower()
    if move not in MOVES:
        raise InvalidMove()

    match = get_match(match_id)
    slot = match.slot_for(player_id)
    if slot is None:
        raise NotAParticipant()
    if match.is_closed:
        raise MatchClosed()
    if match.move_for(slot) is not None:
        raise DuplicateMove()

    move_column = Match.player1_move if slot == 'player1' else Match.player2_move
    try:
        written = Match.query.filter(
            Match.id == match_id,
            move_column.is_(None),
            Match.status.in_(OPEN_STATUSES),
        ).update({f'{slot}_move': move}, synchronize_session=False)
        if not written:
            # Lost a race with a cancel, timeout or duplicate submission
            db.session.rollback()
            if match.is_closed:
                raise MatchClosed()
            raise DuplicateMove()

        timeout_sec = int(current_app.config.get('MOVE_TIMEOUT_SEC', 30))
        first_move = bool(Match.query.filter(
            Match.id == match_id,
            Match.status == PENDING,
        ).update({'status': AWAITING_MOVES, 'move_deadline': time.time() + timeout_sec}, synchronize_session=False))
        db.session.expire(match)

        resolved = False
        if match.player1_move is not None and match.player2_move is not None:
            result = resolve_moves(match.player1_move, match.player2_move)
            resolved = bool(Match.query.filter(
                Match.id == match_id,
                Match.status.in_(OPEN_STATUSES),
                Match.player1_move.isnot(None),
                Match.player2_move.isnot(None),
            ).update({
                'status': RESOLVED,
                'result': result,
                'resolved_at': utcnow(),
                'close_reason': REASON_REVEALED,
                'move_deadline': None,
            }, synchronize_session=False))
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[move-failed] match={match_id} player={player_id} error={exc!r}")
        raise StorageUnavailable() from exc

    current_app.logger.info(f"[move] match={match_id} player={player_id} slot={slot}")
    if resolved:
        current_app.logger.info(f"[match-resolved] match={match_id} result={match.result}")
    notify_match_changed(match)

    if first_move and not resolved:
        schedule_move_timeout(current_app._get_current_object(), match_id)
        # The timer may already have fired inline
        db.session.expire(match)
    return match


def cancel_match(match_id: str, reason: Optional[str] = None, player_id: Optional[str] = None) -> Match:
    """Cancel an open match; any participant may do so before resolution."""
    match = get_match(match_id)
    if player_id is not None and match.slot_for(player_id) is None:
        raise NotAParticipant()
    if match.is_closed:
        raise MatchClosed()

    reason = (reason or 'cancelled')[:64]
    try:
        updated = Match.query.filter(
            Match.id == match_id,
            Match.status.in_(OPEN_STATUSES),
        ).update({'status': CANCELLED, 'close_reason': reason, 'move_deadline': None}, synchronize_session=False)
        if not updated:
            db.session.rollback()
            raise MatchClosed()
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[cancel-failed] match={match_id} error={exc!r}")
        raise StorageUnavailable() from exc

    current_app.logger.info(f"[match-cancelled] match={match_id} by={player_id} reason={reason}")
    notify_match_changed(match)
    return match


def _timeout_policy() -> str:
    policy = current_app.config.get('MOVE_TIMEOUT_POLICY', TIMEOUT_CANCEL)
    if policy not in (TIMEOUT_CANCEL, TIMEOUT_FORFEIT):
        current_app.logger.warning(f"[timeout-policy] unknown policy={policy!r}, falling back to cancel")
        return TIMEOUT_CANCEL
    return policy


def expire_match(match_id: str, now: Optional[float] = None) -> bool:
    """Apply the timeout policy to an overdue match waiting on one player.

    Returns True when this call closed the match. A match still inside its
    deadline, already closed, or holding zero or two moves is left alone.
    Under the cancel policy no result is computed; under the forfeit
    policy the player who did move wins.
    """
    now = time.time() if now is None else now
    match = db.session.get(Match, match_id)
    if match is None or match.status != AWAITING_MOVES:
        return False
    if match.move_deadline is None or match.move_deadline > now:
        return False
    moved = [slot for slot in ('player1', 'player2') if match.move_for(slot) is not None]
    if len(moved) != 1:
        return False

    missing_column = Match.player2_move if moved[0] == 'player1' else Match.player1_move
    if _timeout_policy() == TIMEOUT_FORFEIT:
        values = {
            'status': RESOLVED,
            'result': PLAYER1_WIN if moved[0] == 'player1' else PLAYER2_WIN,
            'resolved_at': utcnow(),
            'close_reason': REASON_FORFEIT,
            'move_deadline': None,
        }
    else:
        values = {'status': CANCELLED, 'close_reason': REASON_TIMEOUT, 'move_deadline': None}

    try:
        updated = Match.query.filter(
            Match.id == match_id,
            Match.status == AWAITING_MOVES,
            missing_column.is_(None),
        ).update(values, synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[expire-failed] match={match_id} error={exc!r}")
        raise StorageUnavailable() from exc
    if not updated:
        return False

    current_app.logger.info(f"[match-expired] match={match_id} status={match.status} reason={match.close_reason}")
    notify_match_changed(match)
    return True


def expire_overdue_matches(now: Optional[float] = None) -> int:
    """Sweep every overdue match; returns how many were closed."""
    now = time.time() if now is None else now
    overdue_ids = [
        m.id for m in Match.query.filter(
            Match.status == AWAITING_MOVES,
            Match.move_deadline.isnot(None),
            Match.move_deadline <= now,
        ).all()
    ]
    return sum(1 for match_id in overdue_ids if expire_match(match_id, now=now))
