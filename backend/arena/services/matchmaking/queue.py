import math
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from arena import db, socketio
from arena.models import QueueEntry, utcnow
from .errors import InvalidWager, QueueUpsertFailed, StorageUnavailable
from .location import Coordinates


QUEUE_ROOM = 'queue'


def parse_wager(value) -> float:
    """Normalize a wager; missing means 0, anything else must be finite and >= 0."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise InvalidWager()
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise InvalidWager()
    if not math.isfinite(amount) or amount < 0:
        raise InvalidWager()
    return amount


def notify_queue_changed() -> None:
    socketio.emit('queue_update', {}, to=QUEUE_ROOM, namespace='/ws')


def get_entry(player_id: str) -> Optional[QueueEntry]:
    return db.session.get(QueueEntry, player_id)


def join_queue(player_id: str, wager_amount=0, coordinates: Optional[Coordinates] = None) -> QueueEntry:
    """Upsert the player's queue entry.

    Re-joining replaces coordinates and wager and resets the join time.
    The wager is validated before any storage access.
    """
    amount = parse_wager(wager_amount)
    lat = coordinates.lat if coordinates else None
    lng = coordinates.lng if coordinates else None

    # A concurrent first join for the same player loses the primary-key
    # race; retry once so it lands as an update.
    for attempt in (1, 2):
        try:
            entry = db.session.get(QueueEntry, player_id)
            if entry is None:
                entry = QueueEntry(player_id=player_id)
                db.session.add(entry)
            entry.location_lat = lat
            entry.location_lng = lng
            entry.wager_amount = amount
            entry.created_at = utcnow()
            db.session.commit()
            break
        except IntegrityError as exc:
            db.session.rollback()
            if attempt == 2:
                current_app.logger.error(f"[queue-join-failed] player={player_id} error={exc!r}")
                raise QueueUpsertFailed() from exc
            current_app.logger.info(f"[queue-join-retry] player={player_id}")
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error(f"[queue-join-failed] player={player_id} error={exc!r}")
            raise QueueUpsertFailed() from exc

    current_app.logger.info(
        f"[queue-join] player={player_id} wager={amount} located={coordinates is not None}"
    )
    notify_queue_changed()
    return entry


def leave_queue(player_id: str) -> bool:
    """Remove the player's entry; returns False when there was none."""
    try:
        removed = QueueEntry.query.filter_by(player_id=player_id).delete()
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[queue-leave-failed] player={player_id} error={exc!r}")
        raise StorageUnavailable() from exc
    if removed:
        current_app.logger.info(f"[queue-leave] player={player_id}")
        notify_queue_changed()
    return bool(removed)


def snapshot(exclude_player_id: Optional[str] = None) -> List[QueueEntry]:
    """All current entries except the caller's, oldest first."""
    query = QueueEntry.query
    if exclude_player_id is not None:
        query = query.filter(QueueEntry.player_id != exclude_player_id)
    return query.order_by(QueueEntry.created_at.asc(), QueueEntry.player_id.asc()).all()
