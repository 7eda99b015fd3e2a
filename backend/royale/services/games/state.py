"""In-memory room and player state.

Rooms live only in process memory. Every lifecycle flag is an enum with an
explicit transition table so handlers never compare raw strings.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import StateConflictError


GRID_SIZE = 10
SPECIAL_CELL_COUNT = 8


class GameMode(str, Enum):
    REFLEX = 'REFLEX'
    CONQUEST = 'CONQUEST'

    @classmethod
    def parse(cls, value, default=None):
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return default


class RoomState(str, Enum):
    WAITING = 'WAITING'
    PLAYING = 'PLAYING'
    FINISHED = 'FINISHED'


class RoundPhase(str, Enum):
    PENDING = 'PENDING'
    OPEN = 'OPEN'
    CLOSED = 'CLOSED'


class RoundType(str, Enum):
    COLOR_TAP = 'COLOR_TAP'
    SWIPE = 'SWIPE'
    SHAKE = 'SHAKE'
    TAP_SPAM = 'TAP_SPAM'
    CONQUEST = 'CONQUEST'

    @property
    def is_correctness(self) -> bool:
        return self in (RoundType.COLOR_TAP, RoundType.SWIPE)

    @property
    def is_volume(self) -> bool:
        return self in (RoundType.SHAKE, RoundType.TAP_SPAM)


_ROOM_TRANSITIONS = {
    RoomState.WAITING: {RoomState.PLAYING, RoomState.FINISHED},
    RoomState.PLAYING: {RoomState.FINISHED},
    RoomState.FINISHED: set(),
}

_ROUND_TRANSITIONS = {
    RoundPhase.PENDING: {RoundPhase.OPEN},
    RoundPhase.OPEN: {RoundPhase.CLOSED},
    RoundPhase.CLOSED: {RoundPhase.OPEN},
}


@dataclass
class SpecialCell:
    x: int
    y: int
    multiplier: int

    def to_dict(self) -> Dict[str, int]:
        return {'x': self.x, 'y': self.y, 'multiplier': self.multiplier}


@dataclass
class Player:
    connection_id: str
    nickname: str
    score: int = 0
    territory: int = 0

    def to_dict(self, mode: 'GameMode') -> Dict[str, Any]:
        data = {'id': self.connection_id, 'nickname': self.nickname}
        if mode is GameMode.CONQUEST:
            data['territory'] = self.territory
        else:
            data['score'] = self.score
        return data


@dataclass
class Response:
    """One player's input for the open round."""
    value: Any = None
    response_time_ms: Optional[int] = None
    count: int = 0
    points: int = 0
    received_at: float = 0.0


@dataclass
class Room:
    code: str
    host_connection_id: str
    mode: GameMode
    state: RoomState = RoomState.WAITING
    players: Dict[str, Player] = field(default_factory=dict)
    current_round_index: int = 0
    total_rounds: int = 0
    # Round-scoped working data
    round_type: Optional[RoundType] = None
    round_phase: RoundPhase = RoundPhase.PENDING
    round_data: Dict[str, Any] = field(default_factory=dict)
    round_started_at: Optional[int] = None
    responses: Dict[str, Response] = field(default_factory=dict)
    # Conquest only
    grid: List[List[Optional[str]]] = field(default_factory=list)
    special_cells: List[SpecialCell] = field(default_factory=list)
    actions: Dict[str, List[Tuple[int, int]]] = field(default_factory=dict)
    # The single outstanding scheduled task for this room
    timer: Any = None
    results_reported: bool = False
    last_leaderboard_push: float = 0.0
    last_aggregate_push: float = 0.0

    def transition(self, target: RoomState) -> None:
        if target not in _ROOM_TRANSITIONS[self.state]:
            raise StateConflictError(f'Room {self.code} cannot go from {self.state.value} to {target.value}')
        self.state = target

    def set_round_phase(self, target: RoundPhase) -> None:
        if target not in _ROUND_TRANSITIONS[self.round_phase]:
            raise StateConflictError(f'Round cannot go from {self.round_phase.value} to {target.value}')
        self.round_phase = target

    @property
    def accepting_input(self) -> bool:
        return self.state is RoomState.PLAYING and self.round_phase is RoundPhase.OPEN

    def is_host(self, connection_id: str) -> bool:
        return connection_id == self.host_connection_id

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def player_list(self) -> List[Dict[str, Any]]:
        return [p.to_dict(self.mode) for p in self.players.values()]

    def map_state(self) -> Dict[str, Any]:
        return {
            'grid': [list(row) for row in self.grid],
            'special_cells': [c.to_dict() for c in self.special_cells],
        }


def empty_grid(size: int = GRID_SIZE) -> List[List[Optional[str]]]:
    return [[None] * size for _ in range(size)]
