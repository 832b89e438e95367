import os
import sys
import pytest

# Ensure the backend root (containing the `planwise` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from planwise import create_app, socketio
from planwise.services.rooms import RoomService


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['http://localhost:5173']
    SOCKETIO_NAMESPACE = '/ws'
    LEAVE_ON_DISCONNECT = False
    LOG_LEVEL = 'DEBUG'


class LeaveOnDisconnectConfig(TestConfig):
    LEAVE_ON_DISCONNECT = True


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def service(flask_app):
    return flask_app.extensions['planwise']


@pytest.fixture()
def make_sio(flask_app):
    """Factory for Socket.IO test clients on /ws; all are disconnected afterwards."""
    clients = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws',
        )
        test_client.get_received('/ws')  # drop the 'connected' greeting
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        try:
            if test_client.is_connected('/ws'):
                test_client.disconnect(namespace='/ws')
        except Exception:
            pass


@pytest.fixture()
def sio_client(make_sio):
    return make_sio()


@pytest.fixture()
def bare_service():
    """A RoomService with no Socket.IO server attached."""
    return RoomService()


def updates(test_client):
    """Room snapshots broadcast to ``test_client`` since the last call."""
    return [pkt['args'][0] for pkt in test_client.get_received('/ws') if pkt['name'] == 'room_updated']
