import itertools
import random
import string
from typing import Dict, Optional

from planwise.models import Room

ID_ALPHABET = string.ascii_lowercase + string.digits


class RoomStore:
    """In-memory mapping of room id -> canonical Room.

    Pure data: the store never validates or transforms rooms, it only
    holds whatever the service commits.
    """

    def __init__(self, id_length: int = 9):
        self._rooms: Dict[str, Room] = {}
        self._sequence = itertools.count(1)
        self.id_length = id_length

    def new_id(self, prefix: str) -> str:
        """Generate an id unique for the lifetime of this store.

        The random part has a fixed width, so the trailing sequence number
        alone keeps ids distinct.
        """
        token = ''.join(random.choices(ID_ALPHABET, k=self.id_length))
        return f"{prefix}_{token}{next(self._sequence):x}"

    def get(self, room_id: Optional[str]) -> Optional[Room]:
        if not room_id:
            return None
        return self._rooms.get(room_id)

    def put(self, room: Room) -> None:
        self._rooms[room.id] = room

    def delete(self, room_id: str) -> Optional[Room]:
        return self._rooms.pop(room_id, None)

    def __contains__(self, room_id) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
