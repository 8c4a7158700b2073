from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    _check_game_config(flask_app)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or ['*']
    if '*' in allowed_origins:
        allowed_origins = '*'
    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=allowed_origins != '*', origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from boxgame.main import main
    flask_app.register_blueprint(main)

    from boxgame.api.admin import admin
    flask_app.register_blueprint(admin, url_prefix='/api/admin')

    from boxgame.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from boxgame.auth import ControllerUser, user_from_token
    # Hash once so /login never compares plaintext
    flask_app.extensions['controller_password_hash'] = bcrypt.generate_password_hash(
        flask_app.config['CONTROLLER_PASSWORD']
    )

    @login_manager.user_loader
    def load_user(user_id):
        if user_id == flask_app.config['CONTROLLER_USERNAME']:
            return ControllerUser(user_id)
        return None

    @login_manager.request_loader
    def load_user_from_request(request):
        header = request.headers.get('Authorization', '')
        if header.startswith('Bearer '):
            return user_from_token(header[len('Bearer '):].strip())
        return None

    @login_manager.unauthorized_handler
    def unauthorized():
        from boxgame.errors import error_response
        return error_response(status=401, code='unauthorized', message='Controller login required')

    from boxgame.services.session import GameSession
    from boxgame.services.replicator import BackupReplicator
    from boxgame.services.participants import ensure_schema, load_game_state
    from boxgame.services.sheets import build_sink

    game_session = GameSession()
    replicator = BackupReplicator(
        sink=build_sink(flask_app.config),
        batch_size=flask_app.config['SYNC_BATCH_SIZE'],
        interval=flask_app.config['SYNC_INTERVAL_SEC'],
    )
    flask_app.extensions['game_session'] = game_session
    flask_app.extensions['backup_replicator'] = replicator

    with flask_app.app_context():
        ensure_schema()
        game_session.restore(load_game_state())

    if not flask_app.config.get('TESTING'):
        replicator.start(flask_app)

    @click.command('game-reset')
    def game_reset_command():
        """Deletes every participant and returns the game to collecting."""
        from boxgame.services.participants import full_reset
        with flask_app.app_context():
            full_reset()
            game_session.reset()
            print('Game has been reset!')

    flask_app.cli.add_command(game_reset_command)

    return flask_app


def _check_game_config(flask_app):
    codes = flask_app.config.get('PRIZE_CODES') or []
    max_winners = int(flask_app.config.get('MAX_WINNERS', 0))
    if len(codes) < max_winners:
        raise ValueError(f'PRIZE_CODES has {len(codes)} codes but MAX_WINNERS is {max_winners}')
    if len(set(codes)) != len(codes):
        raise ValueError('PRIZE_CODES must not contain duplicates')
    if not flask_app.config.get('BOX_CHOICES'):
        raise ValueError('BOX_CHOICES must not be empty')
