import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Dict

from planwise.models import Room

logger = logging.getLogger(__name__)

ROOM_UPDATED = 'room_updated'
ROOM_CLOSED = 'room_closed'


def channel_name(room_id: str) -> str:
    return f"room:{room_id}"


@dataclass(frozen=True)
class Subscription:
    room_id: str
    token: int


class Broadcaster:
    """Fan room snapshots out to Socket.IO rooms and in-process callbacks.

    Delivery is best-effort and at-most-once: nothing is acknowledged or
    retried, and a failing callback never stops delivery to the others.
    """

    def __init__(self, socketio=None, namespace: str = '/ws'):
        self.socketio = socketio
        self.namespace = namespace
        self._callbacks: Dict[str, Dict[int, Callable[[Room], None]]] = {}
        self._tokens = itertools.count(1)

    def subscribe(self, room_id: str, on_update: Callable[[Room], None]) -> Subscription:
        handle = Subscription(room_id=room_id, token=next(self._tokens))
        self._callbacks.setdefault(room_id, {})[handle.token] = on_update
        return handle

    def unsubscribe(self, handle: Subscription) -> bool:
        callbacks = self._callbacks.get(handle.room_id)
        if not callbacks or handle.token not in callbacks:
            return False
        del callbacks[handle.token]
        if not callbacks:
            del self._callbacks[handle.room_id]
        return True

    def subscriber_count(self, room_id: str) -> int:
        return len(self._callbacks.get(room_id, {}))

    def publish(self, room: Room) -> None:
        self._emit(ROOM_UPDATED, room.to_dict(), room.id)
        for token, callback in list(self._callbacks.get(room.id, {}).items()):
            try:
                callback(room)
            except Exception:
                logger.exception(f"[broadcast] room={room.id} subscriber={token} failed")

    def close(self, room_id: str) -> None:
        """Announce a destroyed room and drop every callback bound to it."""
        self._emit(ROOM_CLOSED, {'room_id': room_id}, room_id)
        dropped = self._callbacks.pop(room_id, None)
        if dropped:
            logger.info(f"[broadcast] room={room_id} closed, dropped {len(dropped)} subscriber(s)")

    def _emit(self, event: str, data, room_id: str) -> None:
        if self.socketio is None:
            return
        self.socketio.emit(event, data, to=channel_name(room_id), namespace=self.namespace)

