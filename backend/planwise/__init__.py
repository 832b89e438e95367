import logging

from flask import Flask, current_app
from flask_cors import CORS
from flask_socketio import SocketIO

from planwise.config import Config

socketio = SocketIO(async_mode=None)


def room_service():
    """The RoomService owned by the current application."""
    return current_app.extensions['planwise']


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    origins = flask_app.config.get('CORS_ORIGINS') or []
    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/ws')

    log_level = flask_app.config.get('LOG_LEVEL', 'INFO')
    flask_app.logger.setLevel(log_level)
    logging.getLogger('planwise').setLevel(log_level)

    CORS(flask_app, supports_credentials=True, origins=origins)
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    # One store per app; rooms live for the lifetime of the process
    from planwise.store import RoomStore
    from planwise.services.rooms import Broadcaster, RoomService
    flask_app.extensions['planwise'] = RoomService(RoomStore(), Broadcaster(socketio, namespace))

    from planwise.main import main
    flask_app.register_blueprint(main)

    from planwise.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from planwise.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace)

    return flask_app
