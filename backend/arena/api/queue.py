from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from arena.services.matchmaking.challenge import challenge as svc_challenge
from arena.services.matchmaking.location import resolve_location
from arena.services.matchmaking.proximity import list_candidates as svc_list_candidates
from arena.services.matchmaking.queue import (
    join_queue as svc_join_queue,
    leave_queue as svc_leave_queue,
    parse_wager,
)


queue = Blueprint('queue', __name__)


@queue.route('/join', methods=['POST'])
@login_required
def join_queue():
    """
    Enters (or refreshes) the caller's standing request for a match.
    Coordinates are optional; a bad or missing position only disables
    distance ranking.
    """
    data = request.get_json(silent=True) or {}
    wager = parse_wager(data.get('wager_amount'))

    fix = None
    if data.get('lat') is not None or data.get('lng') is not None:
        fix = resolve_location(data.get('lat'), data.get('lng'))

    entry = svc_join_queue(current_user.player_id, wager, fix.coordinates if fix else None)
    payload = entry.to_dict()
    payload['in_queue'] = True
    payload['locality'] = fix.locality if fix else None
    return jsonify(payload)


@queue.route('/leave', methods=['POST'])
@login_required
def leave_queue():
    removed = svc_leave_queue(current_user.player_id)
    return jsonify({'in_queue': False, 'removed': removed})


@queue.route('/candidates', methods=['GET'])
@login_required
def list_candidates():
    """
    Returns everyone else in the queue, nearest first.
    """
    return jsonify(svc_list_candidates(current_user.player_id))


@queue.route('/challenge', methods=['POST'])
@login_required
def challenge():
    data = request.get_json(silent=True) or {}
    opponent_id = data.get('opponent_id')
    if not opponent_id:
        return jsonify({'error': 'invalid_request', 'message': 'opponent_id is required', 'retryable': False}), 400

    match = svc_challenge(current_user.player_id, str(opponent_id), data.get('wager_amount'))
    return jsonify(match.to_dict(viewer_id=current_user.player_id)), 201
