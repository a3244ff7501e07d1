import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma separated list of browser origins allowed to connect
    FRONTEND_ORIGINS = [
        o.strip() for o in os.environ.get(
            'FRONTEND_ORIGINS',
            'http://localhost:5173,http://127.0.0.1:5173,http://localhost:5174,http://127.0.0.1:5174',
        ).split(',') if o.strip()
    ]
    # Table limits
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    MAX_PLAYERS = int(os.environ.get('MAX_PLAYERS', '4'))
    WINNING_TIMELINE_LENGTH = int(os.environ.get('WINNING_TIMELINE_LENGTH', '10'))
    # One game per process unless raised
    MAX_ACTIVE_SESSIONS = int(os.environ.get('MAX_ACTIVE_SESSIONS', '1'))
    # Music catalog: 'static' (built-in deck) or 'spotify'
    CATALOG_PROVIDER = os.environ.get('CATALOG_PROVIDER', 'static')
    SPOTIFY_CLIENT_ID = os.environ.get('SPOTIFY_CLIENT_ID', '')
    SPOTIFY_CLIENT_SECRET = os.environ.get('SPOTIFY_CLIENT_SECRET', '')
    SPOTIFY_PLAYLIST_ID = os.environ.get('SPOTIFY_PLAYLIST_ID', '')
    CATALOG_TIMEOUT_SEC = float(os.environ.get('CATALOG_TIMEOUT_SEC', '20'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
