from datetime import datetime, timezone
import json

from royale import db


def _utcnow():
    return datetime.now(timezone.utc)


class GameResult(db.Model):
    __tablename__ = 'game_result'
    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(8), nullable=False, index=True)
    mode = db.Column(db.String(16), nullable=False)
    winner_nickname = db.Column(db.String(64), nullable=True)
    winner_score = db.Column(db.Integer, nullable=True)
    standings = db.Column(db.Text, nullable=False)  # JSON-encoded list of rows
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'room_code': self.room_code,
            'mode': self.mode,
            'winner': {'nickname': self.winner_nickname, 'score': self.winner_score} if self.winner_nickname else None,
            'standings': json.loads(self.standings) if self.standings else [],
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class PlayerStat(db.Model):
    __tablename__ = 'player_stat'
    id = db.Column(db.Integer, primary_key=True)
    nickname = db.Column(db.String(64), unique=True, nullable=False, index=True)
    games_played = db.Column(db.Integer, default=0, nullable=False)
    total_score = db.Column(db.Integer, default=0, nullable=False)
    last_played = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_dict(self):
        return {
            'nickname': self.nickname,
            'games_played': self.games_played,
            'total_score': self.total_score,
            'last_played': self.last_played.isoformat() if self.last_played else None,
        }
