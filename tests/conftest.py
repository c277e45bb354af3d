"""
Pytest configuration and fixtures
"""
import pytest
from flask import Flask

from flask_drive_folder_auth import Config, setup_authorization_routes
from flask_drive_folder_auth.config import SECRET_SETTINGS, TUNING_SETTINGS
from flask_drive_folder_auth.providers import ProviderError

FOLDER_ID = "folder-123"
GRANTEES = ["alice@gmail.com", "eng-team@googlegroups.com"]
GROUPS = {"eng-team@googlegroups.com": ["bob.jones@gmail.com"]}


class FakeProvider:
    """In-memory stand-in for DriveFolderProvider that records its calls."""

    def __init__(self, grantees=None, groups=None, folder_error=None):
        self.grantees = list(grantees or [])
        self.groups = dict(groups or {})
        self.folder_error = folder_error
        self.folder_calls = []
        self.group_calls = []

    def fetch_folder_grantees(self, folder_id):
        self.folder_calls.append(folder_id)
        if self.folder_error is not None:
            raise self.folder_error
        return list(self.grantees)

    def fetch_group_members(self, group_address):
        self.group_calls.append(group_address)
        members = self.groups.get(group_address)
        if isinstance(members, Exception):
            raise members
        if members is None:
            raise ProviderError(f"Group {group_address} not found", status=404)
        return list(members)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every setting this package reads from the environment"""
    for name in list(SECRET_SETTINGS) + list(TUNING_SETTINGS):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def provider() -> FakeProvider:
    """Provider serving the folder from the README scenario"""
    return FakeProvider(GRANTEES, GROUPS)


@pytest.fixture
def app(clean_env, provider) -> Flask:
    """Flask app with the authorization endpoint and a fake provider"""
    app = Flask(__name__)
    app.config.update(
        TESTING=True,
        SECRET_KEY="test-secret",
        SECRET_MANAGER_ENABLED=False,
        DRIVE_FOLDER_ID=FOLDER_ID,
    )
    Config(app)
    app.extensions["drive_folder_provider"] = provider
    setup_authorization_routes(app)
    return app


@pytest.fixture
def client(app):
    return app.test_client()
