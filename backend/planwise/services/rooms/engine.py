"""Authoritative room transitions.

Every command is a pure function taking the current Room and returning a
``Result``. Nothing here touches the store or the network; the service
layer commits and publishes whatever these functions produce.
"""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from planwise.models import Issue, Room, User, Vote, is_vote_value, upsert_vote

ROOM_NOT_FOUND = 'room_not_found'
PRECONDITION_FAILED = 'precondition_failed'
NOT_HOST = 'Only the host may do that'

IdFactory = Callable[[str], str]


@dataclass(frozen=True)
class Result:
    room: Optional[Room] = None
    error: Optional[str] = None
    message: Optional[str] = None
    # True when the transition emptied the room and it must be destroyed
    destroyed: bool = False
    payload: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self):
        if not self.ok:
            return {'success': False, 'message': self.message}
        data = {'success': True}
        if self.room is not None and not self.destroyed:
            data['room'] = self.room.to_dict()
        return data


def ok(room: Room, **kwargs) -> Result:
    return Result(room=room, **kwargs)


def room_not_found() -> Result:
    return Result(error=ROOM_NOT_FOUND, message='Room not found')


def rejected(message: str) -> Result:
    return Result(error=PRECONDITION_FAILED, message=message)


def _require_host(room: Room, actor_id: Optional[str]) -> Optional[Result]:
    if not room.is_host(actor_id):
        return rejected(NOT_HOST)
    return None


def _without_user(room: Room, user_id: str) -> Room:
    return room.evolve(
        participants=[p for p in room.participants if p.id != user_id],
        votes=[v for v in room.votes if v.user_id != user_id],
    )


def join(room: Room, name: str, new_id: IdFactory) -> Result:
    """Append a new participant. The server alone decides who is host."""
    name = (name or '').strip() if isinstance(name, str) else ''
    if not name:
        return rejected('A name is required to join')
    user = User(id=new_id('user'), name=name, is_host=not room.participants)
    return ok(room.evolve(participants=list(room.participants) + [user]), payload=user)


def leave(room: Room, user_id: str) -> Result:
    """Remove a participant, promoting the first remaining one if the host left."""
    if room.participant(user_id) is None:
        return rejected('User is not in this room')
    nxt = _without_user(room, user_id)
    if not nxt.participants:
        return ok(nxt, destroyed=True)
    if nxt.host is None:
        first, rest = nxt.participants[0], nxt.participants[1:]
        nxt = nxt.evolve(participants=[replace_host(first, True)] + list(rest))
    return ok(nxt)


def replace_host(user: User, is_host: bool) -> User:
    if user.is_host == is_host:
        return user
    return User(id=user.id, name=user.name, is_host=is_host)


def upload_issues(room: Room, actor_id: Optional[str], issues: Iterable[Any], new_id: IdFactory) -> Result:
    """Append issues with fresh ids. Uploading the same batch twice duplicates it."""
    denied = _require_host(room, actor_id)
    if denied:
        return denied
    if not isinstance(issues, (list, tuple)):
        return rejected('issues must be a list')
    created = []
    for index, raw in enumerate(issues):
        raw = raw if isinstance(raw, dict) else {}
        created.append(Issue(
            id=new_id('issue'),
            key=raw.get('key') or f"ISSUE-{index + 1}",
            title=raw.get('title') or f"Issue {index + 1}",
            description=raw.get('description'),
        ))
    return ok(room.evolve(issues=list(room.issues) + created), payload=created)


def select_issue(room: Room, actor_id: Optional[str], issue_id: str) -> Result:
    denied = _require_host(room, actor_id)
    if denied:
        return denied
    if room.issue(issue_id) is None:
        return rejected('Unknown issue')
    return ok(room.evolve(
        current_issue_id=issue_id,
        reveal_votes=False,
        votes=[v for v in room.votes if v.issue_id != issue_id],
    ))


def submit_vote(room: Room, user_id: str, value: Any, issue_id: Optional[str] = None) -> Result:
    """Record ``user_id``'s vote on the current issue, replacing any earlier one."""
    if room.current_issue_id is None:
        return rejected('No issue is open for voting')
    if issue_id is not None and issue_id != room.current_issue_id:
        return rejected('Vote is for an issue that is not open')
    if room.participant(user_id) is None:
        return rejected('User is not in this room')
    if not is_vote_value(value):
        return rejected('Vote value must be a number')
    vote = Vote(user_id=user_id, issue_id=room.current_issue_id, value=value)
    return ok(room.evolve(votes=upsert_vote(room.votes, vote)))


def reveal_votes(room: Room, actor_id: Optional[str]) -> Result:
    # Not gated on everyone having voted; the UI decides when to offer reveal.
    denied = _require_host(room, actor_id)
    if denied:
        return denied
    if room.current_issue_id is None:
        return rejected('No issue is open for voting')
    return ok(room.evolve(reveal_votes=True))


def finalize_estimation(room: Room, actor_id: Optional[str], issue_id: str, value: Any) -> Result:
    denied = _require_host(room, actor_id)
    if denied:
        return denied
    if room.issue(issue_id) is None:
        return rejected('Unknown issue')
    if not is_vote_value(value):
        return rejected('Estimation must be a number')
    issues = [
        Issue(id=i.id, key=i.key, title=i.title, description=i.description, estimation=value)
        if i.id == issue_id else i
        for i in room.issues
    ]
    return ok(room.evolve(issues=issues, current_issue_id=None, reveal_votes=False))


def transfer_host(room: Room, actor_id: Optional[str], new_host_id: str) -> Result:
    denied = _require_host(room, actor_id)
    if denied:
        return denied
    if room.participant(new_host_id) is None:
        return rejected('User is not in this room')
    return ok(room.evolve(participants=[replace_host(p, p.id == new_host_id) for p in room.participants]))


def remove_participant(room: Room, actor_id: Optional[str], user_id: str) -> Result:
    """Kick a participant.

    Unlike ``leave`` this never promotes a new host; the host cannot remove
    itself and has to leave instead.
    """
    denied = _require_host(room, actor_id)
    if denied:
        return denied
    if room.participant(user_id) is None:
        return rejected('User is not in this room')
    if user_id == actor_id:
        return rejected('The host cannot remove themselves; leave the room instead')
    nxt = _without_user(room, user_id)
    return ok(nxt, destroyed=not nxt.participants)


def modify_vote(room: Room, actor_id: Optional[str], user_id: str, issue_id: str, value: Any) -> Result:
    """Host override of a participant's vote on one of the room's issues."""
    denied = _require_host(room, actor_id)
    if denied:
        return denied
    if room.participant(user_id) is None:
        return rejected('User is not in this room')
    if room.issue(issue_id) is None:
        return rejected('Unknown issue')
    if not is_vote_value(value):
        return rejected('Vote value must be a number')
    vote = Vote(user_id=user_id, issue_id=issue_id, value=value)
    return ok(room.evolve(votes=upsert_vote(room.votes, vote)))
