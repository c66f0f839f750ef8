from flask_socketio import join_room, leave_room, emit
from skate import socketio


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect():
    # Rooms are dropped by Socket.IO; nothing else is tracked per socket
    pass


def handle_join_player(data):
    player_id = (data or {}).get('player_id')
    if not player_id:
        emit('error', {'message': 'player_id is required'})
        return
    room = f"player:{player_id}"
    join_room(room)
    emit('joined', {'room': room})


def handle_join_match(data):
    match_id = (data or {}).get('match_id')
    if not match_id:
        emit('error', {'message': 'match_id is required'})
        return
    room = f"match:{match_id}"
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_match(data):
    match_id = (data or {}).get('match_id')
    if not match_id:
        emit('error', {'message': 'match_id is required'})
        return
    room = f"match:{match_id}"
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


_HANDLERS = (
    ('connect', handle_connect),
    ('disconnect', handle_disconnect),
    ('join_player', handle_join_player),
    ('join_match', handle_join_match),
    ('leave_match', handle_leave_match),
    ('ping', handle_ping),
)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in _HANDLERS:
        socketio.on_event(event, handler, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        for event, handler in _HANDLERS:
            socketio.on_event(event, handler, namespace='/')
