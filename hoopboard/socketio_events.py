from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from hoopboard import socketio
from hoopboard.live.channel import feed
from typing import Any, Dict, Optional


_sid_to_rooms: Dict[str, set] = {}


def room_for(scoreboard_id: int) -> str:
    return f"scoreboard:{scoreboard_id}"


def broadcast_change(scoreboard_id: Optional[int], table: str, event: str, row: Dict[str, Any]) -> None:
    """Publish a committed change in-process and to the scoreboard's room."""
    feed.publish(table, event, row)
    if scoreboard_id is None:
        return
    try:
        socketio.emit(f'{table}_update', {'event': event, 'row': row},
                      to=room_for(scoreboard_id), namespace='/ws')
    except Exception as exc:
        # viewers fall back to polling
        current_app.logger.warning(f"[emit-failed] scoreboard={scoreboard_id} table={table}: {exc}")


def _get_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def _resolve_scoreboard_id(data) -> Optional[int]:
    from hoopboard.data import scoreboards as scoreboards_repo
    from hoopboard.errors import NotFoundError

    scoreboard_id = (data or {}).get('scoreboard_id')
    share_code = (data or {}).get('share_code')
    try:
        if scoreboard_id is not None:
            return scoreboards_repo.get_by_id(int(scoreboard_id)).id
        if share_code:
            return scoreboards_repo.get_by_share_code(share_code).id
    except (NotFoundError, TypeError, ValueError):
        return None
    return None


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    _sid_to_rooms.pop(_get_sid(), None)


def handle_join_scoreboard(data):
    if not (data or {}).get('scoreboard_id') and not (data or {}).get('share_code'):
        emit('error', {'message': 'scoreboard_id or share_code is required'})
        return
    scoreboard_id = _resolve_scoreboard_id(data)
    if scoreboard_id is None:
        emit('error', {'message': 'Scoreboard not found'})
        return
    room = room_for(scoreboard_id)
    join_room(room)
    _sid_to_rooms.setdefault(_get_sid(), set()).add(room)
    emit('joined', {'room': room, 'scoreboard_id': scoreboard_id})


def handle_leave_scoreboard(data):
    scoreboard_id = _resolve_scoreboard_id(data)
    if scoreboard_id is None:
        emit('error', {'message': 'scoreboard_id or share_code is required'})
        return
    room = room_for(scoreboard_id)
    leave_room(room)
    _sid_to_rooms.get(_get_sid(), set()).discard(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_scoreboard', handle_join_scoreboard, namespace=namespace)
        socketio.on_event('leave_scoreboard', handle_leave_scoreboard, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
