import logging
import threading
from typing import Any, Callable, Iterable, Optional

from planwise.models import Room
from planwise.store import RoomStore
from . import engine
from .broadcast import Broadcaster, Subscription
from .engine import Result

logger = logging.getLogger(__name__)


class RoomService:
    """Commit engine transitions to the store and publish the result.

    Mutations run one at a time so every room's broadcasts go out in the
    order its mutations were applied.
    """

    def __init__(self, store: Optional[RoomStore] = None, broadcaster: Optional[Broadcaster] = None):
        self.store = store if store is not None else RoomStore()
        self.broadcaster = broadcaster if broadcaster is not None else Broadcaster()
        self._lock = threading.RLock()

    # ---- request/response operations ----

    def create_room(self) -> Result:
        with self._lock:
            room = Room(id=self.store.new_id('room'))
            self.store.put(room)
        logger.info(f"[create] room={room.id}")
        return engine.ok(room, payload=room.id)

    def get_room(self, room_id: str) -> Result:
        room = self.store.get(room_id)
        if room is None:
            return engine.room_not_found()
        return engine.ok(room)

    def join(self, room_id: str, name: str) -> Result:
        result = self._apply(room_id, 'join', lambda room: engine.join(room, name, self.store.new_id))
        if result.ok:
            logger.info(f"[join] room={room_id} user={result.payload.id} host={result.payload.is_host}")
        return result

    def leave(self, room_id: str, user_id: str) -> Result:
        return self._apply(room_id, 'leave', lambda room: engine.leave(room, user_id))

    def upload_issues(self, room_id: str, actor_id: Optional[str], issues: Iterable[Any]) -> Result:
        return self._apply(
            room_id, 'upload_issues',
            lambda room: engine.upload_issues(room, actor_id, issues, self.store.new_id),
        )

    # ---- fire-and-forget commands ----

    def select_issue(self, room_id: str, actor_id: Optional[str], issue_id: str) -> Result:
        return self._apply(room_id, 'select_issue', lambda room: engine.select_issue(room, actor_id, issue_id))

    def submit_vote(self, room_id: str, user_id: str, value: Any, issue_id: Optional[str] = None) -> Result:
        return self._apply(room_id, 'submit_vote', lambda room: engine.submit_vote(room, user_id, value, issue_id))

    def reveal_votes(self, room_id: str, actor_id: Optional[str]) -> Result:
        return self._apply(room_id, 'reveal_votes', lambda room: engine.reveal_votes(room, actor_id))

    def finalize_estimation(self, room_id: str, actor_id: Optional[str], issue_id: str, value: Any) -> Result:
        return self._apply(
            room_id, 'finalize',
            lambda room: engine.finalize_estimation(room, actor_id, issue_id, value),
        )

    def transfer_host(self, room_id: str, actor_id: Optional[str], new_host_id: str) -> Result:
        return self._apply(room_id, 'transfer_host', lambda room: engine.transfer_host(room, actor_id, new_host_id))

    def remove_participant(self, room_id: str, actor_id: Optional[str], user_id: str) -> Result:
        return self._apply(
            room_id, 'remove_participant',
            lambda room: engine.remove_participant(room, actor_id, user_id),
        )

    def modify_vote(self, room_id: str, actor_id: Optional[str], user_id: str, issue_id: str, value: Any) -> Result:
        return self._apply(
            room_id, 'modify_vote',
            lambda room: engine.modify_vote(room, actor_id, user_id, issue_id, value),
        )

    # ---- subscriptions ----

    def subscribe(self, room_id: str, on_update: Callable[[Room], None]) -> Subscription:
        return self.broadcaster.subscribe(room_id, on_update)

    def unsubscribe(self, handle: Subscription) -> bool:
        return self.broadcaster.unsubscribe(handle)

    def _apply(self, room_id: str, tag: str, transition: Callable[[Room], Result]) -> Result:
        with self._lock:
            room = self.store.get(room_id)
            if room is None:
                logger.info(f"[{tag}] room={room_id} not found")
                return engine.room_not_found()
            result = transition(room)
            if not result.ok:
                logger.info(f"[{tag}] room={room_id} rejected: {result.message}")
                return result
            if result.destroyed:
                self.store.delete(room_id)
                self.broadcaster.close(room_id)
                logger.info(f"[{tag}] room={room_id} is empty, destroyed")
                return result
            self.store.put(result.room)
            self.broadcaster.publish(result.room)
        return result
