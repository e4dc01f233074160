from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from arena.services.matchmaking.location import LocationService
    flask_app.extensions['location_service'] = LocationService.from_config(flask_app.config)

    from arena.main import main
    flask_app.register_blueprint(main)

    from arena.api.queue import queue
    flask_app.register_blueprint(queue, url_prefix='/api/queue')

    from arena.api.matches import matches
    flask_app.register_blueprint(matches, url_prefix='/api/matches')

    from arena.services.matchmaking.errors import MatchmakingError

    @flask_app.errorhandler(MatchmakingError)
    def handle_matchmaking_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    from arena.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Identity comes from the upstream authenticator; we only read the
    # stable player id it forwards.
    from arena.models import AuthenticatedPlayer

    @login_manager.request_loader
    def load_player_from_request(request):
        header = flask_app.config.get('PLAYER_ID_HEADER', 'X-Player-Id')
        player_id = (request.headers.get(header) or '').strip()
        if not player_id:
            return None
        return AuthenticatedPlayer(player_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'unauthorized', 'message': 'Player identity is required', 'retryable': False}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from arena.models import PlayerProfile
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed demo profiles
            profiles = [
                ('player-1', 'CyberSamurai', 'New York'),
                ('player-2', 'NeonNinja', 'Brooklyn'),
                ('player-3', 'FlowMaster', 'Jersey City'),
            ]
            for player_id, name, locality in profiles:
                db.session.add(PlayerProfile(player_id=player_id, display_name=name, locality_label=locality))

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('expire-matches')
    def expire_matches_command():
        """Applies the move-timeout policy to every overdue match."""
        from arena.services.matchmaking.rounds import expire_overdue_matches
        with flask_app.app_context():
            count = expire_overdue_matches()
            print(f'Expired {count} overdue match(es).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(expire_matches_command)

    return flask_app
