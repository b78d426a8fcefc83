import json
import sys
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

import pytest
from flask import Request
from werkzeug.test import EnvironBuilder

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from oauthbridge import create_app
from oauthbridge.core.auth.bridge import OAuthBridge
from oauthbridge.core.auth.schemas import UserProfile
from oauthbridge.core.providers.base import Provider, ProviderError, ProviderSession
from oauthbridge.core.session.store import CookieSessionStore

SESSION_SECRET = "unit-test-secret"


# ==================== Pytest Markers ====================
def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (Flask app, HTTP routes)")


# ==================== Fake provider ====================
class FakeSession(ProviderSession):
    def __init__(self, auth_url: str, access_token: str = "", authorized: Optional[bool] = None):
        self.auth_url = auth_url
        self.access_token = access_token
        self.authorized = authorized

    def marshal(self) -> str:
        return json.dumps(
            {"auth_url": self.auth_url, "access_token": self.access_token, "authorized": self.authorized}
        )

    def get_auth_url(self) -> str:
        return self.auth_url

    def authorize(self, provider, params) -> str:
        provider.calls.append("authorize")
        provider.authorize_params.append(dict(params))
        self.access_token = f"token-{params.get('code', '')}"
        return self.access_token

    def is_authorized(self) -> Optional[bool]:
        return self.authorized


class FakeProvider(Provider):
    """Records calls instead of talking to a real identity provider."""

    def __init__(self, name: str = "github", authorized: Optional[bool] = None, access_token: str = ""):
        self.name = name
        self.authorized = authorized
        self.access_token = access_token
        self.calls = []
        self.authorize_params = []

    def begin_auth(self, state: str) -> FakeSession:
        self.calls.append("begin_auth")
        params = {"client_id": f"{self.name}-client"}
        if state:
            params["state"] = state
        url = f"https://{self.name}.example.com/authorize?{urlencode(params)}"
        return FakeSession(url, access_token=self.access_token, authorized=self.authorized)

    def unmarshal_session(self, data: str) -> FakeSession:
        payload = json.loads(data)
        return FakeSession(payload["auth_url"], payload["access_token"], payload["authorized"])

    def fetch_user(self, session: FakeSession) -> UserProfile:
        self.calls.append("fetch_user")
        if not session.access_token:
            raise ProviderError(self.name, "cannot get user information without an access token")
        return UserProfile(
            provider=self.name,
            user_id="42",
            email="octo@example.com",
            access_token=session.access_token,
        )


# ==================== Request helpers ====================
def build_request(
    path: str = "/",
    *,
    method: str = "GET",
    query: Optional[dict] = None,
    form: Optional[dict] = None,
    cookie: Optional[str] = None,
) -> Request:
    headers = {"Cookie": cookie} if cookie else {}
    builder = EnvironBuilder(
        path=path,
        method=method,
        query_string=urlencode(query) if query else None,
        data=form,
        headers=headers,
    )
    return Request(builder.get_environ())


def cookie_from(response, name: str) -> Optional[str]:
    """Return ``name=value`` for the last Set-Cookie header written for ``name``."""
    found = None
    for header in response.headers.getlist("Set-Cookie"):
        key, _, value = header.split(";", 1)[0].partition("=")
        if key == name:
            found = f"{name}={value}"
    return found


@pytest.fixture()
def make_request():
    return build_request


@pytest.fixture()
def session_cookie():
    return cookie_from


@pytest.fixture()
def fake_provider_cls():
    return FakeProvider


@pytest.fixture()
def github():
    return FakeProvider("github")


@pytest.fixture()
def google():
    return FakeProvider("google")


@pytest.fixture()
def bridge(github, google):
    return OAuthBridge(store=CookieSessionStore(SESSION_SECRET), providers=[github, google])


# ==================== Flask app ====================
@pytest.fixture()
def app():
    app = create_app("testing")
    ctx = app.app_context()
    ctx.push()
    try:
        yield app
    finally:
        ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()
