from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional


def is_vote_value(value: Any) -> bool:
    """Votes and estimations are plain numbers; bools are rejected."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class User:
    id: str
    name: str
    is_host: bool = False

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'is_host': self.is_host,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        return cls(id=data['id'], name=data.get('name', ''), is_host=bool(data.get('is_host')))


@dataclass(frozen=True)
class Issue:
    id: str
    key: str
    title: str
    description: Optional[str] = None
    estimation: Optional[float] = None

    def to_dict(self):
        return {
            'id': self.id,
            'key': self.key,
            'title': self.title,
            'description': self.description,
            'estimation': self.estimation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Issue':
        return cls(
            id=data['id'],
            key=data.get('key', ''),
            title=data.get('title', ''),
            description=data.get('description'),
            estimation=data.get('estimation'),
        )


@dataclass(frozen=True)
class Vote:
    user_id: str
    issue_id: str
    value: float

    @property
    def key(self):
        return (self.user_id, self.issue_id)

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'issue_id': self.issue_id,
            'value': self.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Vote':
        return cls(user_id=data['user_id'], issue_id=data['issue_id'], value=data['value'])


@dataclass(frozen=True)
class Room:
    """One estimation session.

    Rooms are immutable values: every mutation builds a new Room, so a
    snapshot handed to subscribers can never be observed half-applied.
    """
    id: str
    participants: tuple = field(default_factory=tuple)
    issues: tuple = field(default_factory=tuple)
    votes: tuple = field(default_factory=tuple)
    current_issue_id: Optional[str] = None
    reveal_votes: bool = False

    def evolve(self, **changes) -> 'Room':
        for name in ('participants', 'issues', 'votes'):
            if name in changes:
                changes[name] = tuple(changes[name])
        return replace(self, **changes)

    def participant(self, user_id: str) -> Optional[User]:
        for p in self.participants:
            if p.id == user_id:
                return p
        return None

    def issue(self, issue_id: str) -> Optional[Issue]:
        for issue in self.issues:
            if issue.id == issue_id:
                return issue
        return None

    @property
    def host(self) -> Optional[User]:
        for p in self.participants:
            if p.is_host:
                return p
        return None

    def is_host(self, user_id: Optional[str]) -> bool:
        host = self.host
        return host is not None and user_id is not None and host.id == user_id

    def to_dict(self):
        return {
            'id': self.id,
            'participants': [p.to_dict() for p in self.participants],
            'issues': [i.to_dict() for i in self.issues],
            'current_issue_id': self.current_issue_id,
            'votes': [v.to_dict() for v in self.votes],
            'reveal_votes': self.reveal_votes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Room':
        return cls(
            id=data['id'],
            participants=tuple(User.from_dict(p) for p in data.get('participants') or []),
            issues=tuple(Issue.from_dict(i) for i in data.get('issues') or []),
            votes=tuple(Vote.from_dict(v) for v in data.get('votes') or []),
            current_issue_id=data.get('current_issue_id'),
            reveal_votes=bool(data.get('reveal_votes')),
        )


def upsert_vote(votes, vote: Vote) -> List[Vote]:
    """Replace any vote sharing ``vote.key`` and append the new one."""
    kept = [v for v in votes if v.key != vote.key]
    kept.append(vote)
    return kept
