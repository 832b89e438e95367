from flask import Blueprint, current_app, jsonify, request

from planwise import room_service
from planwise.services.rooms import engine

rooms = Blueprint('rooms', __name__)


def _failure(result):
    if result.error == engine.ROOM_NOT_FOUND:
        status = 404
    elif result.message == engine.NOT_HOST:
        status = 403
    else:
        status = 400
    return jsonify(result.to_dict()), status


@rooms.route('', methods=['POST'])
def create_room():
    result = room_service().create_room()
    return jsonify({'success': True, 'room_id': result.payload}), 201


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room(room_id):
    result = room_service().get_room(room_id)
    if not result.ok:
        return _failure(result)
    return jsonify(result.to_dict())


@rooms.route('/<string:room_id>/join', methods=['POST'])
def join_room(room_id):
    data = request.get_json(silent=True) or {}
    result = room_service().join(room_id, data.get('name'))
    if not result.ok:
        return _failure(result)
    payload = result.to_dict()
    payload['user'] = result.payload.to_dict()
    return jsonify(payload), 201


@rooms.route('/<string:room_id>/leave', methods=['POST'])
def leave_room(room_id):
    data = request.get_json(silent=True) or {}
    user_id = data.get('user_id')
    if not user_id:
        return jsonify({'success': False, 'message': 'user_id is required'}), 400
    result = room_service().leave(room_id, user_id)
    if not result.ok:
        return _failure(result)
    current_app.logger.info(f"[leave] room={room_id} user={user_id} via http")
    return jsonify({'success': True})


@rooms.route('/<string:room_id>/issues', methods=['POST'])
def upload_issues(room_id):
    data = request.get_json(silent=True) or {}
    result = room_service().upload_issues(room_id, data.get('actor_id'), data.get('issues'))
    if not result.ok:
        return _failure(result)
    return jsonify({'success': True, 'issues': [i.to_dict() for i in result.payload]}), 201
