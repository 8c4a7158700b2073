import os
import sys
import pytest

# Ensure the backend root (containing the `boxgame` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from boxgame import create_app, db, socketio
from config import Config


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SPREADSHEET_ID = ''
    CONTROLLER_USERNAME = 'controller'
    CONTROLLER_PASSWORD = 'letmein'
    CONTROLLER_REQUIRE_TOKEN = False
    BOX_CHOICES = [1, 2, 3]
    MAX_WINNERS = 10
    PRIZE_CODES = [f'PRIZE-{i:02d}' for i in range(1, 11)]
    PRIZE_LOCATION = 'Section 101, Gate B'
    SYNC_BATCH_SIZE = 50
    BCRYPT_LOG_ROUNDS = 4


class FakeSheet:
    """In-memory stand-in for the Google Sheets sink."""

    def __init__(self, rows=None):
        self.rows = [list(r) for r in (rows or [])]
        self.fetch_calls = 0
        self.append_calls = 0
        self.update_calls = 0
        self.fail_on = None
        self.on_append = None

    def _maybe_fail(self, op):
        if self.fail_on == op:
            from boxgame.errors import SinkUnavailable, SinkWriteFailure
            if op == 'fetch':
                raise SinkUnavailable('sheet offline')
            raise SinkWriteFailure(f'{op} failed')

    def fetch_rows(self):
        self.fetch_calls += 1
        self._maybe_fail('fetch')
        return [list(r) for r in self.rows]

    def append_rows(self, rows):
        if not rows:
            return
        self.append_calls += 1
        self._maybe_fail('append')
        if self.on_append:
            self.on_append()
        self.rows.extend([list(r) for r in rows])

    def update_rows(self, updates):
        if not updates:
            return
        self.update_calls += 1
        self._maybe_fail('update')
        for number, values in updates:
            self.rows[number - 1] = list(values)

    def row_for(self, identity):
        for row in self.rows[1:]:
            if row[1] == identity:
                return row
        return None

    @property
    def writes(self):
        return self.append_calls + self.update_calls


def _build_app(config_class):
    application = create_app(config_class)
    with application.app_context():
        # Ensure models are imported so tables are created
        import boxgame.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def flask_app():
    yield from _build_app(TestConfig)


@pytest.fixture()
def file_db_app(tmp_path):
    class FileDbConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'boxgame.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {'connect_args': {'check_same_thread': False}}

    yield from _build_app(FileDbConfig)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sheet(flask_app):
    fake = FakeSheet()
    flask_app.extensions['backup_replicator'].sink = fake
    return fake


@pytest.fixture()
def connect(flask_app):
    """Open a Socket.IO test client registered with the given role."""
    opened = []

    def _connect(role=None):
        test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        opened.append(test_client)
        if role:
            test_client.emit('register', {'type': role})
        test_client.get_received()
        return test_client

    yield _connect
    for test_client in opened:
        try:
            test_client.disconnect()
        except Exception:
            pass

