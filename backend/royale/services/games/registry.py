import random
import re
import threading
from typing import Dict, Optional

from .errors import RoomNotFound, ValidationError
from .state import GameMode, Room


# Both modes use 4-digit numeric codes (1000-9999)
ROOM_CODE_RE = re.compile(r'^\d{4}$')


def generate_room_code(rng: random.Random) -> str:
    return str(rng.randint(1000, 9999))


def normalize_room_code(value) -> str:
    """Return a well-formed room code or raise ValidationError before any lookup."""
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise ValidationError('Room code is required')
    code = value.strip()
    if not ROOM_CODE_RE.match(code):
        raise ValidationError('Room code must be 4 digits')
    return code


class RoomRegistry:
    """Live rooms keyed by code.

    Constructed once per app and handed to the lobby and scheduler. ``lock``
    must be held while reading or mutating a room so socket handlers and timer
    callbacks never interleave.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rooms: Dict[str, Room] = {}
        self.rng = rng or random.Random()
        self.lock = threading.RLock()

    def create_room(self, mode: GameMode, host_connection_id: str) -> Room:
        with self.lock:
            code = generate_room_code(self.rng)
            while code in self._rooms:
                code = generate_room_code(self.rng)
            room = Room(code=code, host_connection_id=host_connection_id, mode=mode)
            self._rooms[code] = room
            return room

    def get_room(self, code: str) -> Optional[Room]:
        return self._rooms.get(code)

    def require_room(self, code) -> Room:
        room = self._rooms.get(normalize_room_code(code))
        if room is None:
            raise RoomNotFound()
        return room

    def delete_room(self, code: str) -> Optional[Room]:
        with self.lock:
            room = self._rooms.pop(code, None)
            if room is not None:
                room.cancel_timer()
            return room
