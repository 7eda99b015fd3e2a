from royale.services.games.leaderboard import RoomThrottle, rank_of, standings, top_leaderboard
from royale.services.games.state import GameMode, Player, Room


def _room(mode, values):
    room = Room(code='1234', host_connection_id='host', mode=mode)
    for index, value in enumerate(values):
        pid = f'p{index}'
        player = Player(connection_id=pid, nickname=f'N{index}')
        if mode is GameMode.CONQUEST:
            player.territory = value
        else:
            player.score = value
        room.players[pid] = player
    return room


def test_reflex_standings_sorted_by_score_with_ranks():
    rows = standings(_room(GameMode.REFLEX, [100, -200, 900]))
    assert [r['score'] for r in rows] == [900, 100, -200]
    assert [r['rank'] for r in rows] == [1, 2, 3]
    assert 'territory' not in rows[0]


def test_conquest_standings_use_territory():
    rows = standings(_room(GameMode.CONQUEST, [3, 7]))
    assert rows[0]['id'] == 'p1'
    assert rows[0]['territory'] == 7
    assert rank_of(rows, 'p0') == 2
    assert rank_of(rows, 'nobody') == '-'


def test_top_leaderboard_caps_at_ten():
    rows = top_leaderboard(_room(GameMode.REFLEX, list(range(15))))
    assert len(rows) == 10
    assert rows[0]['score'] == 14


def test_throttle_allows_once_per_interval():
    room = _room(GameMode.REFLEX, [])
    throttle = RoomThrottle(1000, 'last_leaderboard_push')
    assert throttle.allow(room, 100.0)
    assert not throttle.allow(room, 100.5)
    assert not throttle.allow(room, 101.0)
    assert throttle.allow(room, 101.01)
