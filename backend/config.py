import os

from dotenv import load_dotenv

load_dotenv()


def _csv(name, default):
    raw = os.environ.get(name)
    if not raw:
        return list(default)
    return [part.strip() for part in raw.split(',') if part.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///boxgame.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    PORT = int(os.environ.get('PORT', '3000'))
    CORS_ORIGINS = _csv('CORS_ORIGINS', ['*'])

    # Backup spreadsheet. Replication is disabled when SPREADSHEET_ID is empty.
    SPREADSHEET_ID = os.environ.get('SPREADSHEET_ID', '')
    GOOGLE_CREDENTIALS_FILE = os.environ.get('GOOGLE_CREDENTIALS_FILE', './google-credentials.json')
    SHEET_NAME = os.environ.get('SHEET_NAME', 'Sheet1')
    SYNC_INTERVAL_SEC = int(os.environ.get('SYNC_INTERVAL_SEC', '10'))
    SYNC_BATCH_SIZE = int(os.environ.get('SYNC_BATCH_SIZE', '50'))

    # Static controller credentials for /login
    CONTROLLER_USERNAME = os.environ.get('CONTROLLER_USERNAME', 'controller')
    CONTROLLER_PASSWORD = os.environ.get('CONTROLLER_PASSWORD', 'change-me')
    AUTH_TOKEN_MAX_AGE_SEC = int(os.environ.get('AUTH_TOKEN_MAX_AGE_SEC', str(12 * 3600)))
    # When set, registering a socket as controller requires a /login token
    CONTROLLER_REQUIRE_TOKEN = os.environ.get('CONTROLLER_REQUIRE_TOKEN', '0') in ('1', 'true', 'True')

    # Game rules
    BOX_CHOICES = [int(b) for b in _csv('BOX_CHOICES', ['1', '2', '3'])]
    MAX_WINNERS = int(os.environ.get('MAX_WINNERS', '10'))
    PRIZE_CODES = _csv('PRIZE_CODES', [f'PRIZE-{i:02d}' for i in range(1, 11)])
    PRIZE_LOCATION = os.environ.get('PRIZE_LOCATION', 'Section 101, Gate B')
