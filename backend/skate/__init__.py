from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config, notifier=None, moderation_gate=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Per-app engine context: settings, notifier, cooldown store
    from skate.services.matches.service import MatchService
    flask_app.extensions['skate'] = MatchService.from_app(
        flask_app, notifier=notifier, moderation_gate=moderation_gate
    )

    # Import and register blueprints here
    from skate.main import main
    flask_app.register_blueprint(main)

    from skate.api.matches import matches
    flask_app.register_blueprint(matches, url_prefix='/api')

    from skate.api.disputes import disputes
    flask_app.register_blueprint(disputes, url_prefix='/api/disputes')

    from skate.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates all tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('reconcile')
    def reconcile_command():
        """Runs one pass of every deadline reconciler scan."""
        from skate.services.matches.reconciler import DeadlineReconciler
        with flask_app.app_context():
            counts = DeadlineReconciler(flask_app.extensions['skate']).run_once()
            for scan, count in counts.items():
                print(f'{scan}: {count}')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(reconcile_command)

    return flask_app
