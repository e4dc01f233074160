from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from sqlalchemy import or_
from .models import Match, OPEN_STATUSES
from .services.matchmaking.queue import get_entry

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the RPS Arena server!'})

@main.route('/api/me', methods=['GET'])
@login_required
def player_status():
    """Queue membership flag and open match for the caller, for polling clients."""
    player_id = current_user.player_id
    active = (
        Match.query
        .filter(or_(Match.player1_id == player_id, Match.player2_id == player_id))
        .filter(Match.status.in_(OPEN_STATUSES))
        .order_by(Match.created_at.desc())
        .first()
    )
    return jsonify({
        'player_id': player_id,
        'in_queue': get_entry(player_id) is not None,
        'active_match_id': active.id if active else None,
    })
