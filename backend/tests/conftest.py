import os
import sys
from dataclasses import replace

import pytest

# Ensure the backend root (containing the `skate` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from skate import create_app, db, socketio
from skate.services.matches.notifications import NotificationPort
from skate.services.matches.rules import SELF_REPORT

START = 1_700_000_000.0
DAY = 24 * 60 * 60


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = []
    TURN_DEADLINE_SEC = DAY
    MATCH_HARD_CAP_SEC = 7 * DAY
    WARNING_LEAD_SEC = 3600
    WARNING_COOLDOWN_SEC = 3600
    WARNING_STORE = 'memory'
    DISPUTE_GRACE_SEC = DAY
    JUDGING_MODE = 'dual_vote'
    RECONCILE_INTERVAL_SEC = 0


class RecordingNotifier(NotificationPort):
    def __init__(self):
        self.sent = []

    def notify(self, player_id, event_type, payload):
        self.sent.append((player_id, event_type, payload))

    def of_type(self, event_type):
        return [(pid, payload) for pid, kind, payload in self.sent if kind == event_type]

    def clear(self):
        self.sent.clear()


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
        return self.now


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def flask_app(notifier, clock):
    application = create_app(TestConfig, notifier=notifier)
    application.extensions['skate'].clock = clock
    with application.app_context():
        # Ensure models are imported so tables are created
        import skate.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def service(flask_app):
    return flask_app.extensions['skate']


@pytest.fixture()
def start_match(service):
    """Challenge and accept; returns the id of an active match where A attacks first."""
    def _start(player_a='alice', player_b='bob'):
        match = service.challenge(player_a, player_b)
        match_id = match.id
        service.submit_action(match_id, player_b, 'accept')
        return match_id
    return _start


@pytest.fixture()
def self_report(service):
    """Switch the running service to self-reported judging."""
    service.settings = replace(service.settings, judging_mode=SELF_REPORT)
    service.disputes.settings = service.settings
    return service


@pytest.fixture()
def play_trick(service):
    """Set, respond and judge one trick.

    The defender reports ``verdict``. Under dual-vote the attacker then
    votes ``attacker_vote``, which defaults to agreeing.
    """
    def _play(match_id, verdict, trick='kickflip', attacker_vote=None):
        match = service.get_match(match_id)
        attacker, defender = match.attacker_id, match.defender_id
        service.submit_action(match_id, attacker, 'set_trick', {'name': trick, 'evidence_ref': f'clip://{trick}/set'})
        service.submit_action(match_id, defender, 'attempt_response', {'evidence_ref': f'clip://{trick}/try'})
        outcome = service.submit_action(match_id, defender, 'judge', {'verdict': verdict})
        if service.settings.judging_mode == SELF_REPORT:
            return outcome
        return service.submit_action(match_id, attacker, 'judge', {'verdict': attacker_vote or verdict})
    return _play


@pytest.fixture()
def file_app(tmp_path, notifier, clock):
    """An app on a file-backed SQLite database, so two app contexts can write concurrently."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'race.db'}"

    application = create_app(FileConfig, notifier=notifier)
    application.extensions['skate'].clock = clock
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
