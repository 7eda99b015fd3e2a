from functools import wraps

from flask import current_app, request
from flask_socketio import emit

from royale import socketio
from royale.services.games.errors import GameError
from royale.services.games.state import RoundType


NAMESPACE = '/ws'


def _server():
    return current_app.extensions['royale']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _remote_address() -> str:
    # X-Forwarded-For is only honored through ProxyFix (TRUSTED_PROXY_HOPS)
    return request.remote_addr or 'unknown'


def _payload(data):
    return data if isinstance(data, dict) else {}


def guarded(handler):
    """Turn GameErrors into an ``error`` reply to the sender.

    Anything else is logged and answered generically so one bad message can
    never take down the connection or touch other rooms.
    """
    @wraps(handler)
    def wrapper(data=None):
        try:
            return handler(_payload(data))
        except GameError as exc:
            if exc.user_facing:
                emit('error', exc.to_dict())
            else:
                current_app.logger.debug(f"[ignored] event={handler.__name__} sid={_get_sid()} reason={exc.code}")
            return {'error': exc.message, 'code': exc.code}
        except Exception:
            current_app.logger.exception(f"[handler-error] event={handler.__name__} sid={_get_sid()}")
            emit('error', {'message': 'Something went wrong', 'code': 'internal_error'})
            return {'error': 'Something went wrong', 'code': 'internal_error'}
    return wrapper


def handle_connect(auth=None):
    server = _server()
    address = _remote_address()
    if not server.limiter.allow(address):
        current_app.logger.warning(f"[rate-limit] address={address} refused")
        return False
    server.lobby.connect(_get_sid())
    emit('connected', {'connection_id': _get_sid()})


def handle_disconnect(*args):
    _server().lobby.disconnect(_get_sid())


@guarded
def handle_create_room(data):
    room = _server().lobby.create_room(_get_sid(), data.get('mode'))
    return {'room_code': room.code, 'mode': room.mode.value}


@guarded
def handle_create_conquest_room(data):
    room = _server().lobby.create_room(_get_sid(), 'CONQUEST')
    return {'room_code': room.code, 'mode': room.mode.value}


@guarded
def handle_join_room(data):
    player = _server().lobby.join_room(_get_sid(), data.get('room_code'), data.get('nickname'))
    return {'ok': True, 'player_id': player.connection_id, 'nickname': player.nickname}


@guarded
def handle_check_room_mode(data):
    return _server().lobby.check_room_mode(data.get('room_code'))


@guarded
def handle_start_game(data):
    _server().scheduler.start_game(data.get('room_code'), _get_sid())


@guarded
def handle_player_response(data):
    _server().scheduler.submit_response(
        data.get('room_code'), _get_sid(), data.get('response'), data.get('timestamp')
    )


@guarded
def handle_shake_update(data):
    _server().scheduler.submit_count(data.get('room_code'), _get_sid(), data.get('shake_count'), RoundType.SHAKE)


@guarded
def handle_tap_update(data):
    _server().scheduler.submit_count(data.get('room_code'), _get_sid(), data.get('tap_count'), RoundType.TAP_SPAM)


@guarded
def handle_next_round(data):
    _server().scheduler.request_next_round(data.get('room_code'), _get_sid())


@guarded
def handle_conquest_submit_actions(data):
    cells = _server().scheduler.submit_actions(data.get('room_code'), _get_sid(), data.get('actions'))
    return {'accepted': len(cells)}


@guarded
def handle_conquest_cell_clicked(data):
    _server().scheduler.relay_cell_click(
        data.get('room_code'), _get_sid(), data.get('x'), data.get('y'), data.get('action')
    )


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    events = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'create_room': handle_create_room,
        'create_conquest_room': handle_create_conquest_room,
        'join_room': handle_join_room,
        'check_room_mode': handle_check_room_mode,
        'start_game': handle_start_game,
        'player_response': handle_player_response,
        'shake_update': handle_shake_update,
        'tap_update': handle_tap_update,
        'next_round': handle_next_round,
        'conquest_submit_actions': handle_conquest_submit_actions,
        'conquest_cell_clicked': handle_conquest_cell_clicked,
        'ping': handle_ping,
    }
    for name, handler in events.items():
        socketio.on_event(name, handler, namespace=NAMESPACE)
