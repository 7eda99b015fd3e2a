"""Result sink: best-effort persistence of finished games and player stats.

The scheduler always talks to a sink; when persistence is disabled it gets
``NullResultSink``. Sink failures never reach gameplay.
"""

import json
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError


class NullResultSink:
    def record_game_result(self, room_code: str, mode: str, standings: List[Dict[str, Any]]) -> None:
        pass

    def record_player_activity(self, nickname: str, score_gained: int) -> None:
        pass


class SqlResultSink:
    """Writes results through Flask-SQLAlchemy inside its own app context."""

    def __init__(self, app):
        self.app = app

    def record_game_result(self, room_code, mode, standings):
        from royale import db
        from royale.models import GameResult

        with self.app.app_context():
            winner = standings[0] if standings else None
            try:
                db.session.add(GameResult(
                    room_code=room_code,
                    mode=mode,
                    winner_nickname=winner['nickname'] if winner else None,
                    winner_score=winner.get('score', winner.get('territory')) if winner else None,
                    standings=json.dumps(standings),
                ))
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise

    def _find_stat(self, nickname):
        from royale.models import PlayerStat

        return PlayerStat.query.filter_by(nickname=nickname).first()

    def _bump_player(self, nickname, score_gained):
        from royale import db
        from royale.models import PlayerStat, _utcnow

        stat = self._find_stat(nickname)
        if stat is None:
            stat = PlayerStat(nickname=nickname, games_played=0, total_score=0)
            db.session.add(stat)
        stat.games_played += 1
        stat.total_score += int(score_gained or 0)
        stat.last_played = _utcnow()
        db.session.commit()

    def record_player_activity(self, nickname, score_gained):
        from royale import db

        with self.app.app_context():
            try:
                self._bump_player(nickname, score_gained)
            except IntegrityError:
                # Another game inserted this nickname first; the retry updates its row
                db.session.rollback()
                try:
                    self._bump_player(nickname, score_gained)
                except Exception:
                    db.session.rollback()
                    raise
            except Exception:
                db.session.rollback()
                raise


class BackgroundResultSink:
    """Dispatches each call to a background task and logs, never raises, failures."""

    def __init__(self, inner, socketio, logger):
        self.inner = inner
        self.socketio = socketio
        self.logger = logger

    def _run(self, name, *args):
        try:
            getattr(self.inner, name)(*args)
        except Exception:
            self.logger.exception(f"[sink-error] call={name}")

    def _dispatch(self, name, *args):
        try:
            self.socketio.start_background_task(self._run, name, *args)
        except Exception:
            self.logger.exception(f"[sink-error] call={name} could not be scheduled")

    def record_game_result(self, room_code, mode, standings):
        self._dispatch('record_game_result', room_code, mode, standings)

    def record_player_activity(self, nickname, score_gained):
        self._dispatch('record_player_activity', nickname, score_gained)
