import threading

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from arena import db
from arena.models import Match, PENDING
from arena.services.matchmaking.challenge import challenge
from arena.services.matchmaking.errors import (
    CannotChallengeSelf,
    InvalidWager,
    NotInQueue,
    OpponentUnavailable,
    StorageUnavailable,
)
from arena.services.matchmaking.queue import get_entry, join_queue


def test_challenge_creates_pending_match_and_consumes_both_entries(app_ctx):
    join_queue('alice', 5)
    join_queue('bob', 5)

    match = challenge('alice', 'bob', 5)

    assert match.status == PENDING
    assert match.player1_id == 'alice'
    assert match.player2_id == 'bob'
    assert match.wager_amount == 5.0
    assert match.result is None
    assert get_entry('alice') is None
    assert get_entry('bob') is None
    assert Match.query.count() == 1


def test_cannot_challenge_self(app_ctx):
    join_queue('alice', 0)
    with pytest.raises(CannotChallengeSelf):
        challenge('alice', 'alice', 0)
    assert get_entry('alice') is not None


def test_requester_must_be_queued(app_ctx):
    join_queue('bob', 0)
    with pytest.raises(NotInQueue):
        challenge('alice', 'bob', 0)
    assert get_entry('bob') is not None
    assert Match.query.count() == 0


def test_absent_opponent_leaves_requester_untouched(app_ctx):
    join_queue('alice', 0)
    with pytest.raises(OpponentUnavailable):
        challenge('alice', 'ghost', 0)
    assert get_entry('alice') is not None
    assert Match.query.count() == 0


def test_wager_must_match_opponent_stake(app_ctx):
    join_queue('alice', 0)
    join_queue('bob', 10)
    with pytest.raises(InvalidWager):
        challenge('alice', 'bob', 5)
    assert get_entry('alice') is not None
    assert get_entry('bob') is not None
    assert Match.query.count() == 0


def test_requester_stake_must_match_too(app_ctx):
    join_queue('alice', 100)
    join_queue('bob', 0)
    with pytest.raises(InvalidWager):
        challenge('alice', 'bob', 0)
    assert get_entry('alice').wager_amount == 100.0
    assert get_entry('bob') is not None
    assert Match.query.count() == 0


def test_negative_wager_rejected(app_ctx):
    join_queue('alice', 0)
    join_queue('bob', 0)
    with pytest.raises(InvalidWager):
        challenge('alice', 'bob', -3)
    assert get_entry('bob') is not None


def test_second_challenger_loses_and_keeps_entry(app_ctx):
    for pid in ('alice', 'bob', 'cara'):
        join_queue(pid, 0)

    challenge('alice', 'cara', 0)
    with pytest.raises(OpponentUnavailable):
        challenge('bob', 'cara', 0)
    assert get_entry('bob') is not None
    assert Match.query.count() == 1


def test_requester_claimed_meanwhile_cannot_challenge(app_ctx):
    for pid in ('alice', 'bob', 'cara'):
        join_queue(pid, 0)

    # cara claims alice first; alice's own challenge must not consume bob
    challenge('cara', 'alice', 0)
    with pytest.raises(NotInQueue):
        challenge('alice', 'bob', 0)
    assert get_entry('bob') is not None


def test_concurrent_challenges_claim_opponent_once(file_app):
    challengers = [f'challenger-{i}' for i in range(8)]
    with file_app.app_context():
        join_queue('target', 0)
        for pid in challengers:
            join_queue(pid, 0)

    barrier = threading.Barrier(len(challengers))
    outcomes = []
    outcomes_lock = threading.Lock()

    def attempt(pid):
        with file_app.app_context():
            barrier.wait()
            try:
                match = challenge(pid, 'target', 0)
                outcome = ('match', pid, match.id)
            except OpponentUnavailable:
                outcome = ('unavailable', pid, None)
            finally:
                db.session.remove()
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=attempt, args=(pid,)) for pid in challengers]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len(outcomes) == len(challengers)
    winners = [o for o in outcomes if o[0] == 'match']
    losers = [o for o in outcomes if o[0] == 'unavailable']
    assert len(winners) == 1
    assert len(losers) == len(challengers) - 1

    with file_app.app_context():
        assert Match.query.count() == 1
        assert get_entry('target') is None
        assert get_entry(winners[0][1]) is None
        for _, pid, _ in losers:
            assert get_entry(pid) is not None


def test_claim_locks_entries_in_player_order_before_deleting(app_ctx):
    join_queue('bob', 0)
    join_queue('alice', 0)
    statements = []

    def record(conn, cursor, statement, *args):
        statements.append(statement)

    event.listen(db.engine, 'before_cursor_execute', record)
    try:
        challenge('bob', 'alice', 0)
    finally:
        event.remove(db.engine, 'before_cursor_execute', record)

    lock_at = next(i for i, s in enumerate(statements) if 'ORDER BY queue_entry.player_id' in s)
    delete_at = next(i for i, s in enumerate(statements) if s.startswith('DELETE FROM queue_entry'))
    assert lock_at < delete_at


def test_crossing_challenges_create_one_match(file_app):
    with file_app.app_context():
        join_queue('alice', 0)
        join_queue('bob', 0)

    barrier = threading.Barrier(2)
    outcomes = []
    outcomes_lock = threading.Lock()

    def attempt(requester, opponent):
        with file_app.app_context():
            barrier.wait()
            try:
                challenge(requester, opponent, 0)
                outcome = 'match'
            except (NotInQueue, OpponentUnavailable) as exc:
                outcome = exc.code
            finally:
                db.session.remove()
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [
        threading.Thread(target=attempt, args=('alice', 'bob')),
        threading.Thread(target=attempt, args=('bob', 'alice')),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len(outcomes) == 2
    assert outcomes.count('match') == 1
    with file_app.app_context():
        assert Match.query.count() == 1
        assert get_entry('alice') is None
        assert get_entry('bob') is None


def test_storage_failure_is_typed_and_leaves_queue_intact(app_ctx, monkeypatch):
    join_queue('alice', 0)
    join_queue('bob', 0)

    def boom():
        raise OperationalError('DELETE FROM queue_entry', {}, Exception('deadlock detected'))

    monkeypatch.setattr(db.session, 'commit', boom)
    with pytest.raises(StorageUnavailable) as excinfo:
        challenge('alice', 'bob', 0)
    assert excinfo.value.retryable is True
    monkeypatch.undo()

    assert get_entry('alice') is not None
    assert get_entry('bob') is not None
    assert Match.query.count() == 0
