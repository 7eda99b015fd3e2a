from dataclasses import dataclass

from .broadcast import SocketIOBroadcaster
from .lobby import Lobby
from .ratelimit import ConnectionRateLimiter
from .registry import RoomRegistry
from .scheduler import RoundScheduler
from .sink import BackgroundResultSink, NullResultSink, SqlResultSink
from .timers import BackgroundTimers


@dataclass
class GameServer:
    registry: RoomRegistry
    lobby: Lobby
    scheduler: RoundScheduler
    limiter: ConnectionRateLimiter


def build_game_server(app, socketio, timers=None, result_sink=None, broadcaster=None, registry=None):
    """Wire one registry, lobby and scheduler for ``app``.

    ``timers``, ``result_sink`` and ``broadcaster`` default to the Socket.IO
    backed implementations; tests pass their own.
    """
    config = app.config
    registry = registry or RoomRegistry()
    broadcaster = broadcaster or SocketIOBroadcaster(socketio, namespace='/ws')
    timers = timers or BackgroundTimers(socketio, logger=app.logger)
    if result_sink is None:
        if config.get('RESULT_SINK_ENABLED', True):
            result_sink = BackgroundResultSink(SqlResultSink(app), socketio, app.logger)
        else:
            result_sink = NullResultSink()

    lobby = Lobby(registry, broadcaster, app.logger, config)
    scheduler = RoundScheduler(registry, broadcaster, timers, result_sink, app.logger, config)
    limiter = ConnectionRateLimiter(
        int(config.get('CONNECT_RATE_MAX', 30)),
        int(config.get('CONNECT_RATE_WINDOW_SEC', 60)),
    )
    return GameServer(registry=registry, lobby=lobby, scheduler=scheduler, limiter=limiter)
