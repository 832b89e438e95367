import logging
from typing import Any, Dict, List, Optional

import socketio

from .mirror import RoomMirror

logger = logging.getLogger(__name__)


class RequestFailed(Exception):
    """A request/response call (create, join, get, upload) was rejected."""


class PlanwiseClient:
    """Socket.IO client keeping a RoomMirror in sync with the server.

    Commands are sent fire-and-forget; the mirror only changes when a
    ``room_updated`` broadcast arrives (plus the optimistic own vote).
    """

    def __init__(self, url: str, namespace: str = '/ws', timeout: float = 5.0, sio=None):
        self.url = url
        self.namespace = namespace
        self.timeout = timeout
        self.sio = sio if sio is not None else socketio.Client()
        self.mirror = RoomMirror()
        self.sio.on('room_updated', self._on_room_updated, namespace=namespace)
        self.sio.on('room_closed', self._on_room_closed, namespace=namespace)

    def connect(self) -> None:
        self.sio.connect(self.url, namespaces=[self.namespace])

    def disconnect(self) -> None:
        self.sio.disconnect()

    # ---- request/response ----

    def create_room(self) -> str:
        return self._call('create_room', {})['room_id']

    def join(self, room_id: str, name: str) -> Dict[str, Any]:
        # Bound to the room up front so broadcasts racing the ack are kept
        self.mirror = RoomMirror(room_id)
        reply = self._call('join_room', {'room_id': room_id, 'name': name})
        self.mirror.bind_user(reply['user'])
        if self.mirror.snapshot is None:
            self.mirror.apply_snapshot(reply['room'])
        return reply['user']

    def refresh(self) -> None:
        """Poll the authoritative snapshot, e.g. after a reconnect."""
        reply = self._call('get_room', {'room_id': self.mirror.room_id})
        self.mirror.apply_snapshot(reply['room'])

    def upload_issues(self, issues: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return self._call('upload_issues', {'room_id': self.mirror.room_id, 'issues': issues})['issues']

    def leave(self) -> None:
        if self.mirror.room_id is None or self.mirror.user_id is None:
            return
        self._send('leave_room', {'room_id': self.mirror.room_id, 'user_id': self.mirror.user_id})
        self.mirror.clear()

    # ---- fire-and-forget ----

    def select_issue(self, issue_id: str) -> None:
        self._send('select_issue', {'room_id': self.mirror.room_id, 'issue_id': issue_id})

    def submit_vote(self, value) -> None:
        vote = self.mirror.vote_optimistically(value)
        if vote is None:
            return
        self._send('submit_vote', {'room_id': self.mirror.room_id, 'vote': vote.to_dict()})

    def reveal_votes(self) -> None:
        self._send('reveal_votes', {'room_id': self.mirror.room_id})

    def finalize_estimation(self, value=None, issue_id: Optional[str] = None) -> None:
        """Finalize the current issue, defaulting to the most popular vote."""
        issue_id = issue_id or (self.mirror.snapshot.current_issue_id if self.mirror.snapshot else None)
        if value is None:
            value = self.mirror.most_popular()
        if issue_id is None or value is None:
            return
        self._send('finalize_estimation', {'room_id': self.mirror.room_id, 'issue_id': issue_id, 'value': value})

    def transfer_host(self, new_host_id: str) -> None:
        self._send('transfer_host', {'room_id': self.mirror.room_id, 'new_host_id': new_host_id})

    def remove_participant(self, user_id: str) -> None:
        self._send('remove_participant', {'room_id': self.mirror.room_id, 'user_id': user_id})

    def modify_vote(self, user_id: str, value, issue_id: Optional[str] = None) -> None:
        issue_id = issue_id or (self.mirror.snapshot.current_issue_id if self.mirror.snapshot else None)
        if issue_id is None:
            return
        self._send('modify_vote', {
            'room_id': self.mirror.room_id,
            'user_id': user_id,
            'issue_id': issue_id,
            'value': value,
        })

    # ---- transport ----

    def _on_room_updated(self, data):
        if not self.mirror.apply_snapshot(data):
            logger.debug(f"[mirror] ignored snapshot for room={(data or {}).get('id')}")

    def _on_room_closed(self, data):
        if self.mirror.apply_closed(data):
            logger.info(f"[mirror] room={data.get('room_id')} closed")

    def _send(self, event: str, data: Dict[str, Any]) -> None:
        self.sio.emit(event, data, namespace=self.namespace)

    def _call(self, event: str, data: Dict[str, Any]) -> Dict[str, Any]:
        reply = self.sio.call(event, data, namespace=self.namespace, timeout=self.timeout)
        if not reply or not reply.get('success'):
            raise RequestFailed((reply or {}).get('message') or f"{event} failed")
        return reply
