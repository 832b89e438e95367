from collections import Counter
from typing import Dict, List, Optional

from planwise.models import Issue, Room


def current_issue(room: Optional[Room]) -> Optional[Issue]:
    if room is None or room.current_issue_id is None:
        return None
    return room.issue(room.current_issue_id)


def current_votes(room: Optional[Room]):
    if room is None or room.current_issue_id is None:
        return []
    return [v for v in room.votes if v.issue_id == room.current_issue_id]


def voters(room: Optional[Room]) -> List[str]:
    return [v.user_id for v in current_votes(room)]


def all_voted(room: Optional[Room]) -> bool:
    if room is None or room.current_issue_id is None or not room.participants:
        return False
    return len(current_votes(room)) == len(room.participants)


def vote_summary(room: Optional[Room]) -> List[Dict[str, float]]:
    """Grouped count of current-issue votes, ascending by value."""
    counts = Counter(v.value for v in current_votes(room))
    return [{'value': value, 'count': counts[value]} for value in sorted(counts)]


def most_popular(summary: List[Dict[str, float]]) -> Optional[float]:
    """Value with the strictly highest count; ties go to the smallest value."""
    best = None
    for entry in sorted(summary, key=lambda e: e['value']):
        if best is None or entry['count'] > best['count']:
            best = entry
    return best['value'] if best else None
