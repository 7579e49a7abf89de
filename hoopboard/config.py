import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # No default: a missing database URL is a startup error
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Clock defaults
    DEFAULT_TIMER_DURATION_SEC = int(os.environ.get('DEFAULT_TIMER_DURATION_SEC', '720'))
    # Display refresh while the clock runs (ms)
    TIMER_TICK_MS = int(os.environ.get('TIMER_TICK_MS', '100'))
    # Fallback poll for live views (sec)
    SYNC_POLL_INTERVAL_SEC = int(os.environ.get('SYNC_POLL_INTERVAL_SEC', '10'))
    # Scoring limits
    MAX_POINTS = int(os.environ.get('MAX_POINTS', '200'))
    QUARTER_COUNT = int(os.environ.get('QUARTER_COUNT', '4'))
    # Share codes
    SHARE_CODE_LENGTH = int(os.environ.get('SHARE_CODE_LENGTH', '6'))
    SHARE_CODE_MAX_ATTEMPTS = int(os.environ.get('SHARE_CODE_MAX_ATTEMPTS', '10'))
