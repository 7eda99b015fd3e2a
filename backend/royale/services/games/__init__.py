"""Game domain services: rooms, round timers, scoring and conflict resolution.

Transport concerns (Socket.IO handlers, HTTP routes) live outside this
package and talk to it through ``GameServer``.
"""

from .server import GameServer, build_game_server  # noqa: F401
