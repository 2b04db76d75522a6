import pytest

from awayline import create_app
from awayline.extensions import db as _db
from tests.number_test_utils import FakeProvider


@pytest.fixture
def app():
    """Application with an in-memory database and a fake telephony provider"""
    app = create_app('testing')

    with app.app_context():
        _db.create_all()
        app.extensions['signalwire_client'] = FakeProvider()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def provider(app):
    return app.extensions['signalwire_client']


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def dispatched(monkeypatch):
    """Capture queued tasks instead of sending them to the broker"""
    calls = []

    def fake_dispatch(task, *args, **kwargs):
        calls.append((task.name, args))
        return 'task-id'

    monkeypatch.setattr('awayline.api.stripe_webhooks.dispatch', fake_dispatch)
    monkeypatch.setattr('awayline.api.telephony.dispatch', fake_dispatch)
    return calls
