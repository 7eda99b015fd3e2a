import os


def _flag(name, default):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///royale.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Shared secret gating the host screens
    HOST_PASSWORD = os.environ.get('HOST_PASSWORD', 'WelcometoUMT')
    # Results/player stats are best-effort; disable to run without a database
    RESULT_SINK_ENABLED = _flag('RESULT_SINK_ENABLED', 'true')
    # Round timers (milliseconds)
    GAME_START_DELAY_MS = int(os.environ.get('GAME_START_DELAY_MS', '2000'))
    REFLEX_TOTAL_ROUNDS = int(os.environ.get('REFLEX_TOTAL_ROUNDS', '4'))
    REFLEX_VOLUME_ROUND_MS = int(os.environ.get('REFLEX_VOLUME_ROUND_MS', '10000'))
    CONQUEST_TOTAL_ROUNDS = int(os.environ.get('CONQUEST_TOTAL_ROUNDS', '12'))
    CONQUEST_ROUND_MS = int(os.environ.get('CONQUEST_ROUND_MS', '12000'))
    CONQUEST_CLOSE_GRACE_MS = int(os.environ.get('CONQUEST_CLOSE_GRACE_MS', '2000'))
    # 0 leaves conquest rounds waiting for the host's next_round
    CONQUEST_AUTO_ADVANCE_MS = int(os.environ.get('CONQUEST_AUTO_ADVANCE_MS', '5000'))
    CONQUEST_ACTION_POINTS = int(os.environ.get('CONQUEST_ACTION_POINTS', '3'))
    # Broadcast throttles (milliseconds)
    LEADERBOARD_THROTTLE_MS = int(os.environ.get('LEADERBOARD_THROTTLE_MS', '1000'))
    AGGREGATE_THROTTLE_MS = int(os.environ.get('AGGREGATE_THROTTLE_MS', '100'))
    AGGREGATE_CAPACITY_PER_PLAYER = int(os.environ.get('AGGREGATE_CAPACITY_PER_PLAYER', '100'))
    # Connection flood guard, per remote address
    CONNECT_RATE_WINDOW_SEC = int(os.environ.get('CONNECT_RATE_WINDOW_SEC', '60'))
    CONNECT_RATE_MAX = int(os.environ.get('CONNECT_RATE_MAX', '30'))
    # Reverse proxies in front of the app whose X-Forwarded-For is trusted
    TRUSTED_PROXY_HOPS = int(os.environ.get('TRUSTED_PROXY_HOPS', '0'))
    # 0 disables the cap
    MAX_PLAYERS_PER_ROOM = int(os.environ.get('MAX_PLAYERS_PER_ROOM', '0'))
