from flask_socketio import join_room, leave_room, emit
from arena import socketio
from arena.services.matchmaking.queue import QUEUE_ROOM
from arena.services.matchmaking.rounds import match_room


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_watch_queue(data=None):
    # Lobby clients re-list candidates whenever a queue_update arrives
    join_room(QUEUE_ROOM)
    emit('watching', {'room': QUEUE_ROOM})


def handle_unwatch_queue(data=None):
    leave_room(QUEUE_ROOM)
    emit('left', {'room': QUEUE_ROOM})


def handle_join_match(data):
    match_id = (data or {}).get('match_id')
    if not match_id:
        emit('error', {'message': 'match_id is required'})
        return
    room = match_room(match_id)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_match(data):
    match_id = (data or {}).get('match_id')
    if not match_id:
        emit('error', {'message': 'match_id is required'})
        return
    room = match_room(match_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    Payloads pushed to rooms only say what changed; clients re-fetch state
    over HTTP, where identity is checked.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('watch_queue', handle_watch_queue, namespace=namespace)
        socketio.on_event('unwatch_queue', handle_unwatch_queue, namespace=namespace)
        socketio.on_event('join_match', handle_join_match, namespace=namespace)
        socketio.on_event('leave_match', handle_leave_match, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
