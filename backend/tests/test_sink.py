import json
import logging

from royale.models import GameResult, PlayerStat
from royale.services.games.sink import BackgroundResultSink, NullResultSink, SqlResultSink

from conftest import RecordingSink


class InlineSocketIO:
    """Runs background tasks immediately."""

    def start_background_task(self, target, *args):
        target(*args)


def test_sql_sink_records_game_result(flask_app):
    sink = SqlResultSink(flask_app)
    rows = [
        {'id': 'a', 'nickname': 'Ann', 'score': 900, 'rank': 1},
        {'id': 'b', 'nickname': 'Ben', 'score': 100, 'rank': 2},
    ]
    sink.record_game_result('4321', 'REFLEX', rows)

    result = GameResult.query.filter_by(room_code='4321').one()
    assert result.mode == 'REFLEX'
    assert result.winner_nickname == 'Ann'
    assert result.winner_score == 900
    assert json.loads(result.standings) == rows
    assert result.to_dict()['winner'] == {'nickname': 'Ann', 'score': 900}


def test_sql_sink_uses_territory_for_conquest(flask_app):
    SqlResultSink(flask_app).record_game_result('1111', 'CONQUEST', [
        {'id': 'a', 'nickname': 'Cam', 'territory': 17, 'rank': 1},
    ])
    assert GameResult.query.filter_by(room_code='1111').one().winner_score == 17


def test_sql_sink_empty_game(flask_app):
    SqlResultSink(flask_app).record_game_result('2222', 'REFLEX', [])
    result = GameResult.query.filter_by(room_code='2222').one()
    assert result.winner_nickname is None
    assert result.to_dict()['winner'] is None


def test_sql_sink_accumulates_player_stats(flask_app):
    sink = SqlResultSink(flask_app)
    sink.record_player_activity('Ann', 250)
    sink.record_player_activity('Ann', None)

    stat = PlayerStat.query.filter_by(nickname='Ann').one()
    assert stat.games_played == 2
    assert stat.total_score == 250


def test_background_sink_forwards_calls():
    inner = RecordingSink()
    sink = BackgroundResultSink(inner, InlineSocketIO(), logging.getLogger('royale.tests'))
    sink.record_game_result('1234', 'REFLEX', [])
    sink.record_player_activity('Ann', 5)
    assert inner.results == [('1234', 'REFLEX', [])]
    assert inner.activity == [('Ann', 5)]


def test_background_sink_swallows_and_logs_failures(caplog):
    sink = BackgroundResultSink(RecordingSink(fail=True), InlineSocketIO(), logging.getLogger('royale.tests'))
    with caplog.at_level(logging.ERROR, logger='royale.tests'):
        sink.record_game_result('1234', 'REFLEX', [])
        sink.record_player_activity('Ann', 5)
    assert sum('[sink-error]' in r.getMessage() for r in caplog.records) == 2


def test_null_sink_accepts_everything():
    sink = NullResultSink()
    assert sink.record_game_result('1234', 'REFLEX', []) is None
    assert sink.record_player_activity('Ann', 1) is None


def test_sql_sink_retries_when_nickname_was_inserted_concurrently(flask_app):
    sink = SqlResultSink(flask_app)
    sink.record_player_activity('Ann', 300)

    lookups = []
    real_find = sink._find_stat

    def find_after_other_writer(nickname):
        lookups.append(nickname)
        # The first lookup misses the row another game just committed
        return None if len(lookups) == 1 else real_find(nickname)

    sink._find_stat = find_after_other_writer
    sink.record_player_activity('Ann', 50)

    assert lookups == ['Ann', 'Ann']
    stat = PlayerStat.query.filter_by(nickname='Ann').one()
    assert stat.games_played == 2
    assert stat.total_score == 350
