from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from arena.services.matchmaking.rounds import (
    cancel_match as svc_cancel_match,
    get_match_for,
    submit_move as svc_submit_move,
)


matches = Blueprint('matches', __name__)


@matches.route('/<string:match_id>', methods=['GET'])
@login_required
def get_match(match_id):
    """
    Returns the current state of a match the caller plays in. The
    opponent's move stays hidden until the match resolves.
    """
    player_id = current_user.player_id
    match = get_match_for(match_id, player_id)
    return jsonify(match.to_dict(viewer_id=player_id))


@matches.route('/<string:match_id>/move', methods=['POST'])
@login_required
def submit_move(match_id):
    data = request.get_json(silent=True) or {}
    player_id = current_user.player_id
    match = svc_submit_move(match_id, player_id, data.get('move'))
    return jsonify(match.to_dict(viewer_id=player_id))


@matches.route('/<string:match_id>/cancel', methods=['POST'])
@login_required
def cancel_match(match_id):
    data = request.get_json(silent=True) or {}
    player_id = current_user.player_id
    match = svc_cancel_match(match_id, data.get('reason'), player_id=player_id)
    return jsonify(match.to_dict(viewer_id=player_id))
