import math
import time

from .conquest import compute_territories, generate_special_cells, resolve_claims, sanitize_actions
from .errors import GameAlreadyStarted, NotHost, RoundClosed, StateConflictError, ValidationError
from .leaderboard import RoomThrottle, rank_of, standings, top_leaderboard
from .scoring import build_round_data, round_type_for, score_response, score_volume_round
from .state import GameMode, Response, RoomState, RoundPhase, RoundType, empty_grid


# Anything slower is stored as this; it scores the floor either way
MAX_RESPONSE_TIME_MS = 60 * 60 * 1000


def _is_finite_number(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _as_count(value):
    if not _is_finite_number(value):
        raise ValidationError('Count must be a number')
    return max(0, int(value))


class RoundScheduler:
    """Timer-driven round state machine for every live room.

    Per room: WAITING -> PLAYING -> FINISHED, and inside PLAYING each round
    goes PENDING -> OPEN -> CLOSED. Rounds with a fixed window close on a
    timer whether or not anybody answered. Every public method and timer
    callback holds ``registry.lock`` while it touches a room.
    """

    def __init__(self, registry, broadcaster, timers, sink, logger, settings, clock=time.time):
        self.registry = registry
        self.out = broadcaster
        self.timers = timers
        self.sink = sink
        self.logger = logger
        self.settings = settings
        self.clock = clock
        self.leaderboard_throttle = RoomThrottle(self._ms('LEADERBOARD_THROTTLE_MS', 1000), 'last_leaderboard_push')
        self.aggregate_throttle = RoomThrottle(self._ms('AGGREGATE_THROTTLE_MS', 100), 'last_aggregate_push')

    def _ms(self, key, default):
        return int(self.settings.get(key, default))

    def now_ms(self):
        return int(self.clock() * 1000)

    def total_rounds_for(self, mode):
        if mode is GameMode.CONQUEST:
            return self._ms('CONQUEST_TOTAL_ROUNDS', 12)
        return self._ms('REFLEX_TOTAL_ROUNDS', 4)

    # ---- timers ----

    def _arm(self, room, delay_ms, callback):
        """Replace the room's outstanding timer with ``callback`` after ``delay_ms``."""
        room.cancel_timer()
        room.timer = self.timers.call_later(delay_ms / 1000.0, callback, room.code, room.current_round_index)
        self.logger.info(f"[timer-set] room={room.code} round={room.current_round_index} delay={delay_ms}ms callback={callback.__name__}")

    def _live_room(self, code, expected_round):
        room = self.registry.get_room(code)
        if room is None or room.state is not RoomState.PLAYING or room.current_round_index != expected_round:
            self.logger.info(f"[timer-abort] room={code} expected_round={expected_round} stale")
            return None
        return room

    def _timer_open(self, code, expected_round):
        with self.registry.lock:
            room = self._live_room(code, expected_round)
            if room is not None:
                room.timer = None
                self._open_next_round(room)

    def _timer_close(self, code, expected_round):
        with self.registry.lock:
            room = self._live_room(code, expected_round)
            if room is not None:
                room.timer = None
                self._close_round(room)

    # ---- lifecycle ----

    def start_game(self, code, requester_id):
        with self.registry.lock:
            room = self.registry.require_room(code)
            if not room.is_host(requester_id):
                raise NotHost()
            if room.state is not RoomState.WAITING:
                raise GameAlreadyStarted()
            for player in room.players.values():
                player.score = 0
                player.territory = 0
            room.transition(RoomState.PLAYING)
            room.current_round_index = 0
            room.total_rounds = self.total_rounds_for(room.mode)
            if room.mode is GameMode.CONQUEST:
                room.grid = empty_grid()
                room.special_cells = generate_special_cells(self.registry.rng)
                room.actions.clear()
            self.out.to_room(room.code, 'game_started', {
                'room_code': room.code,
                'mode': room.mode.value,
                'total_rounds': room.total_rounds,
            })
            self.logger.info(f"[game-start] room={room.code} mode={room.mode.value} players={len(room.players)}")
            self._arm(room, self._ms('GAME_START_DELAY_MS', 2000), self._timer_open)
            return room

    def request_next_round(self, code, requester_id):
        """Host command: close the open round if any, then open the next one."""
        with self.registry.lock:
            room = self.registry.require_room(code)
            if not room.is_host(requester_id):
                raise NotHost()
            if room.state is RoomState.WAITING:
                raise StateConflictError('Game has not started yet')
            if room.state is RoomState.FINISHED:
                raise RoundClosed()
            self._open_next_round(room)
            return room

    def close_round(self, code):
        """Close the open round; closing a round that is not open does nothing."""
        with self.registry.lock:
            room = self.registry.require_room(code)
            return self._close_round(room)

    def end_game(self, code):
        with self.registry.lock:
            room = self.registry.require_room(code)
            return self._end_game(room)

    def _open_next_round(self, room):
        if room.round_phase is RoundPhase.OPEN:
            self._close_round(room)
        room.cancel_timer()
        room.current_round_index += 1
        if room.current_round_index > room.total_rounds:
            self._end_game(room)
            return

        room.responses.clear()
        if room.mode is GameMode.CONQUEST:
            room.round_type = RoundType.CONQUEST
            room.round_data = {'duration': self._ms('CONQUEST_ROUND_MS', 12000)}
        else:
            room.round_type = round_type_for(room.current_round_index)
            room.round_data = build_round_data(room.round_type, self.registry.rng, self._ms('REFLEX_VOLUME_ROUND_MS', 10000))
        room.round_started_at = self.now_ms()
        room.set_round_phase(RoundPhase.OPEN)

        payload = {
            'round_number': room.current_round_index,
            'total_rounds': room.total_rounds,
            'round_type': room.round_type.value,
            'round_data': room.round_data,
            'start_time': room.round_started_at,
        }
        if room.mode is GameMode.CONQUEST:
            payload['map_state'] = room.map_state()
            payload['duration'] = room.round_data['duration']
            payload['action_points'] = self._ms('CONQUEST_ACTION_POINTS', 3)
        self.out.to_room(room.code, 'round_start', payload)
        self.logger.info(f"[round-open] room={room.code} round={room.current_round_index}/{room.total_rounds} type={room.round_type.value}")

        if room.round_type is RoundType.CONQUEST:
            self._arm(room, room.round_data['duration'] + self._ms('CONQUEST_CLOSE_GRACE_MS', 2000), self._timer_close)
        elif room.round_type.is_volume:
            self._arm(room, room.round_data['duration'], self._timer_close)

    def _close_round(self, room):
        if room.state is not RoomState.PLAYING or room.round_phase is not RoundPhase.OPEN:
            self.logger.debug(f"[round-close-skip] room={room.code} round={room.current_round_index} phase={room.round_phase.value}")
            return False
        room.cancel_timer()
        room.set_round_phase(RoundPhase.CLOSED)
        if room.mode is GameMode.CONQUEST:
            self._close_conquest_round(room)
        else:
            self._close_reflex_round(room)
        return True

    def _close_reflex_round(self, room):
        summary = []
        if room.round_type.is_volume:
            gained = {}
            for player_id, count, points in score_volume_round(room.round_type, room.responses):
                player = room.players.get(player_id)
                if player is None:
                    continue
                player.score += points
                gained[player_id] = points
                summary.append({'id': player_id, 'nickname': player.nickname, 'count': count, 'points': points})
            for player_id, player in room.players.items():
                self.out.to_connection(player_id, 'response_result', {
                    'correct': None,
                    'points': gained.get(player_id, 0),
                    'total_score': player.score,
                })

        room.last_leaderboard_push = self.clock()
        self.out.to_room(room.code, 'leaderboard_update', {'leaderboard': top_leaderboard(room)})
        self.out.to_room(room.code, 'round_end', {
            'round_number': room.current_round_index,
            'round_type': room.round_type.value,
            'summary': summary,
        })
        self.logger.info(f"[round-close] room={room.code} round={room.current_round_index} type={room.round_type.value} responses={len(room.responses)}")

    def _close_conquest_round(self, room):
        claims = {pid: cells for pid, cells in room.actions.items() if pid in room.players}
        awarded, conflicts = resolve_claims(room.grid, claims)
        room.actions.clear()

        territories = compute_territories(room.grid, room.special_cells, room.players.keys())
        for player_id, territory in territories.items():
            room.players[player_id].territory = territory

        rows = standings(room)
        conflict_cells = [{'x': x, 'y': y} for x, y in conflicts]
        map_state = room.map_state()
        self.out.to_room(room.code, 'conquest_map_update', {
            'grid': map_state['grid'],
            'leaderboard': rows,
            'conflicts': conflict_cells,
        })
        for player_id, player in room.players.items():
            self.out.to_connection(player_id, 'conquest_round_end', {
                'map_state': map_state,
                'conflicts': conflict_cells,
                'your_territory': player.territory,
                'your_rank': rank_of(rows, player_id),
            })
        self.out.to_room(room.code, 'round_end', {
            'round_number': room.current_round_index,
            'round_type': room.round_type.value,
            'summary': {'submissions': len(claims), 'claimed': len(awarded), 'conflicts': len(conflicts)},
        })
        self.logger.info(
            f"[round-close] room={room.code} round={room.current_round_index} submissions={len(claims)} claimed={len(awarded)} conflicts={len(conflicts)}"
        )

        advance_ms = self._ms('CONQUEST_AUTO_ADVANCE_MS', 0)
        if advance_ms > 0:
            self._arm(room, advance_ms, self._timer_open)

    def _end_game(self, room):
        if room.state is RoomState.FINISHED:
            return False
        room.cancel_timer()
        if room.round_phase is RoundPhase.OPEN:
            room.set_round_phase(RoundPhase.CLOSED)
        room.transition(RoomState.FINISHED)

        rows = standings(room)
        self.out.to_room(room.code, 'game_over', {'final_leaderboard': rows})
        if room.mode is GameMode.CONQUEST:
            for player_id, player in room.players.items():
                self.out.to_connection(player_id, 'conquest_game_over', {
                    'your_rank': rank_of(rows, player_id),
                    'your_territory': player.territory,
                })
        self.logger.info(f"[game-over] room={room.code} mode={room.mode.value} players={len(rows)}")
        self._report_results(room, rows)
        return True

    def _report_results(self, room, rows):
        if room.results_reported:
            return
        room.results_reported = True
        try:
            self.sink.record_game_result(room.code, room.mode.value, rows)
            for player in room.players.values():
                gained = player.territory if room.mode is GameMode.CONQUEST else player.score
                self.sink.record_player_activity(player.nickname, gained)
        except Exception:
            self.logger.exception(f"[sink-error] room={room.code}")

    # ---- player input ----

    def _player_room(self, code, connection_id):
        room = self.registry.require_room(code)
        if connection_id not in room.players:
            raise StateConflictError('You are not a player in this room')
        return room

    def submit_response(self, code, connection_id, value, client_timestamp=None):
        """Score a correctness-round answer the moment it arrives.

        Only the first answer per player per round is scored; later ones
        replace the stored value without changing points.
        """
        with self.registry.lock:
            room = self._player_room(code, connection_id)
            if not room.accepting_input or not room.round_type.is_correctness:
                raise RoundClosed()
            now = self.now_ms()
            if not _is_finite_number(client_timestamp):
                client_timestamp = now
            response_time = min(max(0, client_timestamp - room.round_started_at), MAX_RESPONSE_TIME_MS)

            existing = room.responses.get(connection_id)
            if existing is not None:
                existing.value = value
                existing.received_at = now
                return None

            correct, points = score_response(room.round_type, room.round_data, value, response_time)
            room.responses[connection_id] = Response(value=value, response_time_ms=response_time, points=points, received_at=now)
            player = room.players[connection_id]
            player.score += points
            self.out.to_connection(connection_id, 'response_result', {
                'correct': correct,
                'points': points,
                'total_score': player.score,
            })
            if self.leaderboard_throttle.allow(room, self.clock()):
                self.out.to_room(room.code, 'leaderboard_update', {'leaderboard': top_leaderboard(room)})
            return correct, points

    def submit_count(self, code, connection_id, count, round_type):
        """Store the latest self-reported shake/tap count for a volume round."""
        with self.registry.lock:
            room = self._player_room(code, connection_id)
            if not room.accepting_input or room.round_type is not round_type:
                raise RoundClosed()
            count = _as_count(count)
            response = room.responses.get(connection_id)
            if response is None:
                room.responses[connection_id] = Response(count=count, received_at=self.now_ms())
            else:
                response.count = count
                response.received_at = self.now_ms()
            if self.aggregate_throttle.allow(room, self.clock()):
                self.out.to_room(room.code, 'energy_bar_update', {
                    'total_count': sum(r.count for r in room.responses.values()),
                    'capacity': len(room.players) * self._ms('AGGREGATE_CAPACITY_PER_PLAYER', 100),
                })
            return count

    def submit_actions(self, code, connection_id, actions):
        """Replace a player's conquest claims for the open round."""
        with self.registry.lock:
            room = self._player_room(code, connection_id)
            if room.mode is not GameMode.CONQUEST:
                raise ValidationError('This room is not a conquest room')
            if not room.accepting_input:
                raise RoundClosed()
            cells = sanitize_actions(actions, room.grid)
            room.actions[connection_id] = cells
            self.logger.debug(f"[conquest-actions] room={room.code} player={connection_id} cells={len(cells)}")
            return cells

    def relay_cell_click(self, code, connection_id, x, y, action):
        """Mirror a player's in-progress selection to the host screen only."""
        with self.registry.lock:
            room = self._player_room(code, connection_id)
            if not room.accepting_input or room.mode is not GameMode.CONQUEST:
                raise RoundClosed()
            if action not in ('add', 'remove'):
                raise ValidationError('Unknown cell action')
            if not all(isinstance(v, int) and not isinstance(v, bool) for v in (x, y)):
                raise ValidationError('Cell coordinates must be integers')
            self.out.to_connection(room.host_connection_id, 'conquest_player_cell_update', {
                'player_id': connection_id,
                'player_nickname': room.players[connection_id].nickname,
                'x': x,
                'y': y,
                'action': action,
            })
