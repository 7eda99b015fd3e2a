"""Errors raised by room handlers.

Each error carries a stable ``code`` for clients and a ``user_facing`` flag;
silent errors are expected races (e.g. a double close) and are only logged.
"""


class GameError(Exception):
    code = 'game_error'
    user_facing = True
    default_message = 'Something went wrong'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {'message': self.message, 'code': self.code}


class ValidationError(GameError):
    code = 'invalid_input'
    default_message = 'Invalid input'


class NotFoundError(GameError):
    code = 'not_found'
    default_message = 'Not found'


class RoomNotFound(NotFoundError):
    code = 'room_not_found'
    default_message = 'Room does not exist'


class StateConflictError(GameError):
    code = 'state_conflict'
    default_message = 'Action not allowed right now'


class GameAlreadyStarted(StateConflictError):
    code = 'game_started'
    default_message = 'Game has already started'


class NotHost(StateConflictError):
    code = 'not_host'
    default_message = 'Only the host can do that'


class RoundClosed(StateConflictError):
    code = 'round_closed'
    user_facing = False
    default_message = 'Round is not open'


class RoomFull(StateConflictError):
    code = 'room_full'
    default_message = 'Room is full'


class DuplicateNickname(GameError):
    code = 'duplicate_nickname'

    def __init__(self, nickname):
        super().__init__(f'The name "{nickname}" is already taken! Please choose another name.')
        self.nickname = nickname
