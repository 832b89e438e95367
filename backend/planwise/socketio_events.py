from typing import Any, Dict

from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from planwise import room_service, socketio
from planwise.services.rooms.broadcast import channel_name

# sid -> {'users': {room_id: user_id}}; a connection may sit in several rooms
_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore


def _payload(data) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _bound_users() -> Dict[str, str]:
    return _sid_to_ctx.setdefault(_get_sid(), {'users': {}})['users']


def _actor(data: Dict[str, Any], room_id: str):
    """The user this connection acts as in ``room_id``."""
    return _bound_users().get(room_id) or data.get('actor_id')


def _missing(field: str):
    return {'success': False, 'message': f"{field} is required"}


def _reply(result, tag: str, room_id: str):
    if not result.ok:
        current_app.logger.info(f"[{tag}] room={room_id} dropped: {result.message}")
    return result.to_dict()


def handle_connect():
    _sid_to_ctx[_get_sid()] = {'users': {}}
    emit('connected', {'message': 'Connected to planwise'})


def handle_disconnect(*args):
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        return
    if not current_app.config.get('LEAVE_ON_DISCONNECT'):
        return
    for room_id, user_id in ctx['users'].items():
        current_app.logger.info(f"[disconnect] room={room_id} user={user_id} leaving")
        room_service().leave(room_id, user_id)


def handle_create_room(data=None):
    result = room_service().create_room()
    return {'success': True, 'room_id': result.payload}


def handle_join_room(data):
    data = _payload(data)
    room_id = data.get('room_id')
    if not room_id:
        return _missing('room_id')
    # Subscribe first so the joiner also receives the broadcast of its own join
    join_room(channel_name(room_id))
    result = room_service().join(room_id, data.get('name'))
    if not result.ok:
        leave_room(channel_name(room_id))
        return _reply(result, 'join', room_id)
    _bound_users()[room_id] = result.payload.id
    reply = result.to_dict()
    reply['user'] = result.payload.to_dict()
    return reply


def handle_leave_room(data):
    data = _payload(data)
    room_id = data.get('room_id')
    user_id = data.get('user_id') or _bound_users().get(room_id)
    if not (room_id and user_id):
        return _missing('room_id and user_id')
    result = room_service().leave(room_id, user_id)
    bound = _bound_users().get(room_id)
    # A connection still bound to another member of the room stays subscribed
    if bound is None or bound == user_id:
        leave_room(channel_name(room_id))
        _bound_users().pop(room_id, None)
    return _reply(result, 'leave', room_id)


def handle_get_room(data):
    data = _payload(data)
    return room_service().get_room(data.get('room_id')).to_dict()


def handle_subscribe(data):
    data = _payload(data)
    room_id = data.get('room_id')
    result = room_service().get_room(room_id)
    if result.ok:
        join_room(channel_name(room_id))
    return result.to_dict()


def handle_unsubscribe(data):
    data = _payload(data)
    room_id = data.get('room_id')
    if not room_id:
        return _missing('room_id')
    leave_room(channel_name(room_id))
    return {'success': True}


def handle_upload_issues(data):
    data = _payload(data)
    room_id = data.get('room_id')
    result = room_service().upload_issues(room_id, _actor(data, room_id), data.get('issues'))
    reply = _reply(result, 'upload_issues', room_id)
    if result.ok:
        reply['issues'] = [i.to_dict() for i in result.payload]
    return reply


def handle_select_issue(data):
    data = _payload(data)
    room_id = data.get('room_id')
    result = room_service().select_issue(room_id, _actor(data, room_id), data.get('issue_id'))
    return _reply(result, 'select_issue', room_id)


def handle_submit_vote(data):
    data = _payload(data)
    room_id = data.get('room_id')
    vote = _payload(data.get('vote'))
    bound = _bound_users().get(room_id)
    user_id = vote.get('user_id') or bound
    if bound and user_id != bound:
        current_app.logger.info(f"[submit_vote] room={room_id} dropped: {bound} tried to vote as {user_id}")
        return {'success': False, 'message': 'You can only vote for yourself'}
    result = room_service().submit_vote(room_id, user_id, vote.get('value'), vote.get('issue_id'))
    return _reply(result, 'submit_vote', room_id)


def handle_reveal_votes(data):
    data = _payload(data)
    room_id = data.get('room_id')
    result = room_service().reveal_votes(room_id, _actor(data, room_id))
    return _reply(result, 'reveal_votes', room_id)


def handle_finalize_estimation(data):
    data = _payload(data)
    room_id = data.get('room_id')
    result = room_service().finalize_estimation(
        room_id, _actor(data, room_id), data.get('issue_id'), data.get('value'))
    return _reply(result, 'finalize', room_id)


def handle_transfer_host(data):
    data = _payload(data)
    room_id = data.get('room_id')
    result = room_service().transfer_host(room_id, _actor(data, room_id), data.get('new_host_id'))
    return _reply(result, 'transfer_host', room_id)


def handle_remove_participant(data):
    data = _payload(data)
    room_id = data.get('room_id')
    user_id = data.get('user_id')
    result = room_service().remove_participant(room_id, _actor(data, room_id), user_id)
    if result.ok:
        _unbind(room_id, user_id)
    return _reply(result, 'remove_participant', room_id)


def _unbind(room_id: str, user_id: str) -> None:
    """Drop a removed user's connections from the room channel.

    They have already received the snapshot showing their removal.
    """
    for sid, ctx in list(_sid_to_ctx.items()):
        if ctx['users'].get(room_id) == user_id:
            ctx['users'].pop(room_id, None)
            leave_room(channel_name(room_id), sid=sid, namespace=request.namespace)


def handle_modify_vote(data):
    data = _payload(data)
    room_id = data.get('room_id')
    result = room_service().modify_vote(
        room_id, _actor(data, room_id), data.get('user_id'), data.get('issue_id'), data.get('value'))
    return _reply(result, 'modify_vote', room_id)


def handle_ping(data=None):
    emit('pong', data or {})


HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'create_room': handle_create_room,
    'join_room': handle_join_room,
    'leave_room': handle_leave_room,
    'get_room': handle_get_room,
    'subscribe': handle_subscribe,
    'unsubscribe': handle_unsubscribe,
    'upload_issues': handle_upload_issues,
    'select_issue': handle_select_issue,
    'submit_vote': handle_submit_vote,
    'reveal_votes': handle_reveal_votes,
    'finalize_estimation': handle_finalize_estimation,
    'transfer_host': handle_transfer_host,
    'remove_participant': handle_remove_participant,
    'modify_vote': handle_modify_vote,
    'ping': handle_ping,
}


def register_socketio_handlers(namespace: str = '/ws') -> None:
    """Register every room event on ``namespace``.

    Handlers return an ack payload; clients that emit without a callback
    simply never see it.
    """
    for event, handler in HANDLERS.items():
        socketio.on_event(event, handler, namespace=namespace)
