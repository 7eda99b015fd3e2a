from typing import Any, Dict, List, Optional

from .state import GameMode, Room


LEADERBOARD_SIZE = 10


def _standing_value(room: Room, player) -> int:
    return player.territory if room.mode is GameMode.CONQUEST else player.score


def standings(room: Room, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Players sorted best first with 1-based ranks; ``limit`` caps the list."""
    ordered = sorted(room.players.values(), key=lambda p: _standing_value(room, p), reverse=True)
    if limit is not None:
        ordered = ordered[:limit]
    rows = []
    for index, player in enumerate(ordered):
        row = player.to_dict(room.mode)
        row['rank'] = index + 1
        rows.append(row)
    return rows


def top_leaderboard(room: Room) -> List[Dict[str, Any]]:
    return standings(room, limit=LEADERBOARD_SIZE)


def rank_of(rows: List[Dict[str, Any]], player_id: str):
    for row in rows:
        if row['id'] == player_id:
            return row['rank']
    return '-'


class RoomThrottle:
    """Per-room gate for pushes that may fire on every input.

    The last push time lives on the room under ``attr`` so it dies with it.
    """

    def __init__(self, interval_ms: int, attr: str):
        self.interval = interval_ms / 1000.0
        self.attr = attr

    def allow(self, room: Room, now: float) -> bool:
        last = getattr(room, self.attr)
        if last and now - last <= self.interval:
            return False
        setattr(room, self.attr, now)
        return True
