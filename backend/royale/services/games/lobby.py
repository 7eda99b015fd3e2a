import re
from dataclasses import dataclass
from typing import Dict, Optional

from .errors import DuplicateNickname, GameAlreadyStarted, RoomFull, RoomNotFound, ValidationError
from .registry import normalize_room_code
from .state import GameMode, Player, RoomState


NICKNAME_MAX_LENGTH = 20
_MARKUP_CHARS = re.compile(r'[<>&"\'`/\\]')
_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f]')

HOST = 'host'
PLAYER = 'player'


def sanitize_nickname(value, fallback: str) -> str:
    """Strip markup and control characters, trim, cap at 20 characters.

    Falls back to ``fallback`` when nothing usable is left.
    """
    if not isinstance(value, str):
        value = ''
    cleaned = _CONTROL_CHARS.sub('', _MARKUP_CHARS.sub('', value)).strip()
    cleaned = cleaned[:NICKNAME_MAX_LENGTH].strip()
    return cleaned or fallback


@dataclass
class Membership:
    room_code: Optional[str] = None
    role: Optional[str] = None


class Lobby:
    """Connection bookkeeping: who is connected, and which room/role each holds.

    A connection belongs to at most one room at a time, either as that room's
    host or as one of its players.
    """

    def __init__(self, registry, broadcaster, logger, settings):
        self.registry = registry
        self.out = broadcaster
        self.logger = logger
        self.settings = settings
        self.connections: Dict[str, Membership] = {}

    def connect(self, connection_id):
        with self.registry.lock:
            self.connections.setdefault(connection_id, Membership())

    def create_room(self, connection_id, mode=None):
        mode = GameMode.REFLEX if mode is None else GameMode.parse(mode)
        if mode is None:
            raise ValidationError('Unknown game mode')
        with self.registry.lock:
            self._leave(connection_id)
            room = self.registry.create_room(mode, connection_id)
            self.connections[connection_id] = Membership(room_code=room.code, role=HOST)
            self.out.subscribe(connection_id, room.code)
            self.out.to_connection(connection_id, 'room_created', {'room_code': room.code, 'mode': room.mode.value})
            self.logger.info(f"[room-create] room={room.code} mode={room.mode.value} host={connection_id}")
            return room

    def check_room_mode(self, code):
        with self.registry.lock:
            room = self.registry.require_room(code)
            return {'room_code': room.code, 'mode': room.mode.value}

    def join_room(self, connection_id, code, nickname):
        code = normalize_room_code(code)
        with self.registry.lock:
            room = self.registry.get_room(code)
            if room is None:
                raise RoomNotFound()
            if room.state is not RoomState.WAITING:
                raise GameAlreadyStarted()
            if room.is_host(connection_id):
                raise ValidationError('The host cannot join their own room as a player')

            others = [p for pid, p in room.players.items() if pid != connection_id]
            nickname = sanitize_nickname(nickname, f'Player{len(others) + 1}')
            if any(p.nickname == nickname for p in others):
                raise DuplicateNickname(nickname)
            capacity = int(self.settings.get('MAX_PLAYERS_PER_ROOM', 0))
            if capacity and len(others) >= capacity:
                raise RoomFull()

            self._leave(connection_id)

            player = Player(connection_id=connection_id, nickname=nickname)
            room.players[connection_id] = player
            self.connections[connection_id] = Membership(room_code=room.code, role=PLAYER)
            self.out.subscribe(connection_id, room.code)
            self.out.to_connection(connection_id, 'joined_room', {
                'room_code': room.code,
                'player_id': connection_id,
                'mode': room.mode.value,
            })
            self.out.to_room(room.code, 'player_list_update', {'players': room.player_list()})
            self.logger.info(f"[join] room={room.code} player={connection_id} nickname={nickname}")
            return player

    def disconnect(self, connection_id):
        with self.registry.lock:
            self._leave(connection_id)
            self.connections.pop(connection_id, None)

    def _leave(self, connection_id):
        membership = self.connections.get(connection_id)
        if membership is None or membership.room_code is None:
            return
        code, role = membership.room_code, membership.role
        self.connections[connection_id] = Membership()
        room = self.registry.get_room(code)
        if room is None:
            return

        if role == HOST and room.is_host(connection_id):
            self.out.to_room(code, 'host_disconnected', {'room_code': code})
            self.registry.delete_room(code)
            for other_id, other in self.connections.items():
                if other.room_code == code:
                    self.connections[other_id] = Membership()
            self.out.close_channel(code)
            self.logger.info(f"[room-delete] room={code} reason=host-left")
            return

        player = room.players.pop(connection_id, None)
        room.responses.pop(connection_id, None)
        room.actions.pop(connection_id, None)
        self.out.unsubscribe(connection_id, code)
        if player is not None:
            self.out.to_room(code, 'player_list_update', {'players': room.player_list()})
            self.logger.info(f"[leave] room={code} player={connection_id} nickname={player.nickname}")
