from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from hoopboard.config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


class AppScheduler:
    """Run live-view loops as Socket.IO background tasks inside an app context."""

    def __init__(self, app, sio=socketio):
        self.app = app
        self.sio = sio

    def start_background_task(self, target, *args):
        return self.sio.start_background_task(self._run, target, *args)

    def _run(self, target, *args):
        with self.app.app_context():
            target(*args)

    def sleep(self, seconds):
        self.sio.sleep(seconds)


def create_app(config_class=Config):
    from hoopboard.errors import ConfigurationError

    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    if not flask_app.config.get('SQLALCHEMY_DATABASE_URI'):
        raise ConfigurationError('DATABASE_URL is not set')

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from hoopboard.routes import main
    flask_app.register_blueprint(main)

    from hoopboard.api.scoreboards import scoreboards
    flask_app.register_blueprint(scoreboards, url_prefix='/api/scoreboards')

    from hoopboard.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Flask-Login user loader
    from hoopboard.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return User.query.filter_by(id=int(user_id)).first()

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            user = User(username='owner')
            user.set_password('password')
            db.session.add(user)
            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('watch-scoreboard')
    @click.argument('identifier')
    @click.option('--seconds', type=float, default=None, help='Stop after this many seconds.')
    def watch_scoreboard_command(identifier, seconds):
        """Follow a scoreboard by id or share code and print its clock."""
        from hoopboard.data import LocalGateway
        from hoopboard.errors import NotFoundError
        from hoopboard.live import LiveScoreboard, feed

        target = {'scoreboard_id': int(identifier)} if identifier.isdigit() else {'share_code': identifier}
        last_line = {'text': None}

        def on_tick(text):
            if text != last_line['text']:
                last_line['text'] = text
                click.echo(text)

        def on_change(live):
            totals = ' - '.join(f"{t.name} {live.ledger.total_score(t.id)}" for t in live.scoreboard.teams)
            click.echo(f"Q{live.scoreboard.current_quarter} {live.clock.state.value} | {totals}")

        cfg = flask_app.config
        with flask_app.app_context():
            live = LiveScoreboard(
                LocalGateway(notify=False), feed=feed, scheduler=AppScheduler(flask_app),
                poll_interval=float(cfg['SYNC_POLL_INTERVAL_SEC']),
                tick_interval=cfg['TIMER_TICK_MS'] / 1000.0,
                on_tick=on_tick, on_change=on_change, **target,
            )
            try:
                live.load()
            except NotFoundError as exc:
                raise click.ClickException(str(exc))
            on_change(live)
            live.open()
            waited = 0.0
            try:
                while seconds is None or waited < seconds:
                    socketio.sleep(1)
                    waited += 1
            except KeyboardInterrupt:
                pass
            finally:
                live.close()

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(watch_scoreboard_command)

    return flask_app
