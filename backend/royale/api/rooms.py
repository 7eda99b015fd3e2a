from flask import Blueprint, current_app, jsonify, request

from royale.models import PlayerStat
from royale.services.games.errors import GameError
from royale.services.games.leaderboard import top_leaderboard

rooms = Blueprint('rooms', __name__)


def _server():
    return current_app.extensions['royale']


@rooms.errorhandler(GameError)
def handle_game_error(exc):
    status = 404 if exc.code.endswith('not_found') else 400
    return jsonify({'error': exc.message, 'code': exc.code}), status


@rooms.route('/rooms/<string:room_code>', methods=['GET'])
def get_room(room_code):
    registry = _server().registry
    with registry.lock:
        room = registry.require_room(room_code)
        return jsonify({
            'room_code': room.code,
            'mode': room.mode.value,
            'state': room.state.value,
            'player_count': len(room.players),
            'current_round': room.current_round_index,
            'total_rounds': room.total_rounds or _server().scheduler.total_rounds_for(room.mode),
        })


@rooms.route('/rooms/<string:room_code>/leaderboard', methods=['GET'])
def get_leaderboard(room_code):
    registry = _server().registry
    with registry.lock:
        room = registry.require_room(room_code)
        return jsonify({'leaderboard': top_leaderboard(room)})


@rooms.route('/stats/players', methods=['GET'])
def get_player_stats():
    try:
        limit = max(1, min(100, int(request.args.get('limit', 10))))
    except ValueError:
        limit = 10
    top = PlayerStat.query.order_by(PlayerStat.total_score.desc()).limit(limit).all()
    return jsonify([p.to_dict() for p in top])
