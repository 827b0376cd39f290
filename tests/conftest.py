import hmac
import hashlib
import json

import pytest

from commitlink import create_app
from commitlink.config import Config
from commitlink.extensions import db
from commitlink.models import RepositorySource, Ticket, User


class ConfigForTests(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SETTINGS_API_TOKEN = ""
    ACCEPT_LEGACY_SECRET_SIGNATURE = False
    GITEA_API_TIMEOUT = 1.0


@pytest.fixture
def app():
    app = create_app(ConfigForTests)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_source(app):
    def _make(url="https://gitea.example.com/acme/widgets", secret="s3cret", branch_filter="*"):
        source = RepositorySource(
            repository_url=url,
            repository_access_token="token-1234",
            hook_id=0,
            hook_secret=secret,
            branch_filter=branch_filter,
        )
        db.session.add(source)
        db.session.commit()
        return source
    return _make


@pytest.fixture
def make_user(app):
    def _make(user_id, username, firstname="", lastname=""):
        user = User(id=user_id, username=username, firstname=firstname, lastname=lastname)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def make_ticket(app):
    def _make(ticket_id, headline="ticket"):
        ticket = Ticket(id=ticket_id, headline=headline)
        db.session.add(ticket)
        db.session.commit()
        return ticket
    return _make


def sign(secret: str, body: bytes) -> str:
    return "sha256=" + hmac.new(secret.encode(), msg=body, digestmod=hashlib.sha256).hexdigest()


def encode(payload) -> bytes:
    return json.dumps(payload).encode("utf-8")
