import time
from typing import Set, Tuple

from arena import db, socketio
from arena.models import Match, AWAITING_MOVES
from .errors import StorageUnavailable


_scheduled_timeout_keys: Set[Tuple[str, float]] = set()


def schedule_move_timeout(app, match_id: str) -> None:
    """Schedule the move timeout for a match waiting on its second move.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single timer per (match_id, deadline)
    - On expiry applies MOVE_TIMEOUT_POLICY through expire_match
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    with app.app_context():
        match = db.session.get(Match, match_id)
        if not match or match.status != AWAITING_MOVES or match.move_deadline is None:
            return

        deadline = float(match.move_deadline)
        key = (match.id, deadline)
        if key in _scheduled_timeout_keys:
            app.logger.info(f"[timer-skip] match={match.id} deadline={deadline} already scheduled")
            return

        _scheduled_timeout_keys.add(key)
        app.logger.info(
            f"[timer-set] match={match.id} deadline={deadline} remaining={max(0.0, deadline - time.time()):.1f}s"
        )

    def _worker(mid: str, expected_deadline: float):
        try:
            hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0))
        except (TypeError, ValueError):
            hb = 0
        remaining = expected_deadline - time.time()
        while remaining > 0:
            time.sleep(min(hb, remaining) if hb > 0 else remaining)
            remaining = expected_deadline - time.time()
            if hb > 0 and remaining > 0:
                app.logger.info(f"[timer-heartbeat] match={mid} remaining={remaining:.1f}s")

        from .rounds import expire_match
        with app.app_context():
            _scheduled_timeout_keys.discard((mid, expected_deadline))
            try:
                expired = expire_match(mid)
            except StorageUnavailable:
                # Left for the expire-matches sweep
                app.logger.error(f"[timer-failed] match={mid}")
                return
            app.logger.info(f"[timer-fire] match={mid} expired={expired}")

    if app.config.get('TESTING'):
        _worker(match_id, deadline)
    else:
        socketio.start_background_task(_worker, match_id, deadline)
