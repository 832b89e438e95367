from flask import Blueprint, jsonify

from planwise import room_service

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Planwise API is running'})


@main.route('/health')
def health():
    return jsonify({'status': 'ok', 'rooms': len(room_service().store)})
