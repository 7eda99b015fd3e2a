from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def create_app(config_class=Config, timers=None, result_sink=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    proxy_hops = int(flask_app.config.get('TRUSTED_PROXY_HOPS', 0))
    if proxy_hops > 0:
        flask_app.wsgi_app = ProxyFix(flask_app.wsgi_app, x_for=proxy_hops)

    # Hash the shared host password once; requests only ever compare hashes
    flask_app.config['HOST_PASSWORD_HASH'] = bcrypt.generate_password_hash(
        flask_app.config.get('HOST_PASSWORD', '')
    ).decode('utf-8')

    from royale.main import main
    flask_app.register_blueprint(main)

    from royale.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api')

    # One room registry per process; handlers reach it through the app
    from royale.services.games import build_game_server
    flask_app.extensions['royale'] = build_game_server(
        flask_app, socketio, timers=timers, result_sink=result_sink
    )

    from royale.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from royale import models  # noqa: F401
    with flask_app.app_context():
        db.create_all()

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the results tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Result tables have been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
