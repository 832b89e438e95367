from typing import Any, Dict, List, Optional

from planwise.models import Issue, Room, User, Vote, upsert_vote
from planwise.services.rooms import tally


class RoomMirror:
    """A client's read-only view of one room.

    ``snapshot`` is always the last authoritative Room received. The only
    local edit is the user's own pending vote, held in an overlay that the
    next snapshot discards. Host changes, removals and finalization are
    never simulated locally; they show up when the server says so.
    """

    def __init__(self, room_id: Optional[str] = None):
        self.room_id = room_id
        self.snapshot: Optional[Room] = None
        self.user_id: Optional[str] = None
        self._pending_vote: Optional[Vote] = None

    # ---- reconciliation ----

    def apply_snapshot(self, data: Dict[str, Any]) -> bool:
        """Replace the mirror with an authoritative snapshot.

        Snapshots for other rooms are ignored. Returns True when applied.
        """
        if not isinstance(data, dict) or not data.get('id'):
            return False
        if self.room_id is not None and data['id'] != self.room_id:
            return False
        self.room_id = data['id']
        self.snapshot = Room.from_dict(data)
        self._pending_vote = None
        return True

    def apply_closed(self, data: Dict[str, Any]) -> bool:
        if not isinstance(data, dict) or data.get('room_id') != self.room_id:
            return False
        self.clear()
        return True

    def bind_user(self, user: Dict[str, Any]) -> None:
        self.user_id = user['id']

    def clear(self) -> None:
        self.snapshot = None
        self.user_id = None
        self._pending_vote = None

    def vote_optimistically(self, value) -> Optional[Vote]:
        """Show our own vote before the broadcast round-trip completes."""
        if self.snapshot is None or self.user_id is None or self.snapshot.current_issue_id is None:
            return None
        self._pending_vote = Vote(user_id=self.user_id, issue_id=self.snapshot.current_issue_id, value=value)
        return self._pending_vote

    # ---- derived views ----

    @property
    def room(self) -> Optional[Room]:
        """Snapshot with the pending vote overlaid."""
        if self.snapshot is None or self._pending_vote is None:
            return self.snapshot
        if self._pending_vote.issue_id != self.snapshot.current_issue_id:
            return self.snapshot
        return self.snapshot.evolve(votes=upsert_vote(self.snapshot.votes, self._pending_vote))

    @property
    def me(self) -> Optional[User]:
        if self.snapshot is None or self.user_id is None:
            return None
        return self.snapshot.participant(self.user_id)

    @property
    def is_host(self) -> bool:
        return self.snapshot is not None and self.snapshot.is_host(self.user_id)

    @property
    def current_issue(self) -> Optional[Issue]:
        return tally.current_issue(self.snapshot)

    @property
    def own_vote(self):
        for vote in tally.current_votes(self.room):
            if vote.user_id == self.user_id:
                return vote.value
        return None

    def voters(self) -> List[str]:
        return tally.voters(self.room)

    def vote_summary(self) -> List[Dict[str, Any]]:
        return tally.vote_summary(self.room)

    def all_voted(self) -> bool:
        return tally.all_voted(self.room)

    def most_popular(self):
        return tally.most_popular(self.vote_summary())
