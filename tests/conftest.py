"""
Pytest configuration and fixtures.

The app runs against an in-memory fake of the hosted backend; every
request builds a FakeBackend for its bearer token over the shared `db`.
"""
import pytest

from data_builder import DataBuilder, WEBHOOK_SECRET, HOTTOK
from fake_backend import FakeDatabase, FakeBackend, FakeStorage, FakeFunctions
from feedfy.app import create_app
from feedfy.model import Model


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def functions():
    return FakeFunctions()


@pytest.fixture
def backend_for(db, storage, functions):
    """backend_for(user) -> FakeBackend acting as that user (None = anonymous)"""
    def make(user=None):
        return FakeBackend(db, user['token'] if user else None, storage, functions)
    return make


@pytest.fixture
def app(db, storage, functions, tmp_path):
    app = create_app({
        'TESTING': True,
        'DB_PATH': str(tmp_path / 'feedfy.sqlite'),
        'BACKEND_FACTORY': lambda token: FakeBackend(db, token, storage, functions),
        'SERVICE_BACKEND_FACTORY': lambda: FakeBackend(db, None, storage, functions),
        'REALTIME_WEBHOOK_SECRET': WEBHOOK_SECRET,
        'HOTMART_HOTTOK': HOTTOK,
        'TENOR_API_KEY': '',
    })
    yield app
    Model.close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def builder(db):
    return DataBuilder(db)


@pytest.fixture
def cache(app):
    return app.extensions['feedfy']['cache']


@pytest.fixture
def feed(app):
    return app.extensions['feedfy']['feed']

