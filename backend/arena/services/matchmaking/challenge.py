"""Turn a (requester, candidate) pair into a match.

The opponent's queue entry is claimed with a conditional delete whose
rowcount decides the race: of any number of concurrent challengers, only
one sees a row removed. Everything happens in one transaction, so a failed
challenge leaves both queue entries exactly as they were.
"""

import math
import threading

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from arena import db
from arena.models import Match, QueueEntry, PENDING
from .errors import (
    CannotChallengeSelf,
    InvalidWager,
    MatchmakingError,
    NotInQueue,
    OpponentUnavailable,
    StorageUnavailable,
)
from .queue import notify_queue_changed, parse_wager
from .rounds import open_match


# Serializes claims within one worker process; across processes the
# conditional delete is what guarantees a single winner.
_claim_lock = threading.Lock()


def challenge(requester_id: str, opponent_id: str, wager_amount=0) -> Match:
    if requester_id == opponent_id:
        raise CannotChallengeSelf()
    amount = parse_wager(wager_amount)

    with _claim_lock:
        try:
            match = _claim_and_create(requester_id, opponent_id, amount)
            db.session.commit()
        except MatchmakingError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error(
                f"[challenge-failed] requester={requester_id} opponent={opponent_id} error={exc!r}"
            )
            raise StorageUnavailable() from exc

    current_app.logger.info(
        f"[challenge] match={match.id} requester={requester_id} opponent={opponent_id} wager={amount}"
    )
    notify_queue_changed()
    open_match(match)
    return match


def _check_stake(entry: QueueEntry, amount: float, whose: str) -> None:
    queued = float(entry.wager_amount or 0)
    if not math.isclose(queued, amount, abs_tol=1e-9):
        raise InvalidWager(f"Wager must match {whose} queued wager of {queued:g}")


def _claim_and_create(requester_id: str, opponent_id: str, amount: float) -> Match:
    # Both rows are locked in player_id order, so two players challenging
    # each other from different workers queue up instead of deadlocking.
    locked = (
        QueueEntry.query
        .filter(QueueEntry.player_id.in_([requester_id, opponent_id]))
        .order_by(QueueEntry.player_id.asc())
        .with_for_update()
        .populate_existing()
        .all()
    )
    entries = {entry.player_id: entry for entry in locked}

    requester = entries.get(requester_id)
    if requester is None:
        raise NotInQueue()
    opponent = entries.get(opponent_id)
    if opponent is None:
        current_app.logger.info(f"[challenge-lost] requester={requester_id} opponent={opponent_id} reason=absent")
        raise OpponentUnavailable()
    _check_stake(requester, amount, 'your')
    _check_stake(opponent, amount, "the opponent's")

    # The linearization point: the entry must still exist with the same
    # stake it was read with.
    claimed = QueueEntry.query.filter(
        QueueEntry.player_id == opponent_id,
        QueueEntry.wager_amount == opponent.wager_amount,
    ).delete(synchronize_session=False)
    if not claimed:
        current_app.logger.info(f"[challenge-lost] requester={requester_id} opponent={opponent_id} reason=claimed")
        raise OpponentUnavailable()

    # Someone may have claimed the requester in the meantime.
    if not QueueEntry.query.filter(
        QueueEntry.player_id == requester_id,
        QueueEntry.wager_amount == requester.wager_amount,
    ).delete(synchronize_session=False):
        raise NotInQueue('You were matched by another player')

    match = Match(
        player1_id=requester_id,
        player2_id=opponent_id,
        wager_amount=amount,
        status=PENDING,
    )
    db.session.add(match)
    db.session.flush()
    return match
