from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('FRONTEND_ORIGINS') or []
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One engine and catalog per app; tests get fresh state per app
    from app.services.games.engine import SessionEngine
    from app.services.games.catalog import CatalogUnavailable, build_catalog
    flask_app.extensions['session_engine'] = SessionEngine(
        max_sessions=int(flask_app.config.get('MAX_ACTIVE_SESSIONS', 1)),
        min_players=int(flask_app.config.get('MIN_PLAYERS', 2)),
        max_players=int(flask_app.config.get('MAX_PLAYERS', 4)),
        winning_length=int(flask_app.config.get('WINNING_TIMELINE_LENGTH', 10)),
    )
    flask_app.extensions['catalog'] = build_catalog(flask_app.config)

    from app.main import main
    flask_app.register_blueprint(main)

    from app.api.games import games
    # Mount game routes under /api to match frontend API client
    flask_app.register_blueprint(games, url_prefix='/api/games')

    # Register Socket.IO event handlers
    from app.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('catalog')
    @click.option('--limit', default=0, type=int, help='Only list the first N songs.')
    def catalog_command(limit):
        """Lists the songs the configured catalog would deal."""
        catalog = flask_app.extensions['catalog']
        try:
            items = catalog.fetch_items()
        except CatalogUnavailable as exc:
            raise click.ClickException(str(exc))
        shown = items[:limit] if limit > 0 else items
        for item in sorted(shown, key=lambda c: (c.year, c.artist, c.title)):
            click.echo(f'{item.year}  {item.artist} - {item.title}')
        click.echo(f'{len(items)} songs from the {catalog.name} catalog')

    flask_app.cli.add_command(catalog_command)

    return flask_app


def get_engine():
    from flask import current_app
    return current_app.extensions['session_engine']


def get_catalog():
    from flask import current_app
    return current_app.extensions['catalog']
