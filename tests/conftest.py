from __future__ import annotations

from typing import Callable, Dict, List

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from gistauth.app import create_app
from gistauth.core import Settings
from gistauth.services import outbound


def make_settings(**overrides) -> Settings:
    values = {
        "secret_key": "test-secret",
        "database_url": "sqlite://",
        "github_client_key": "gh-key",
        "github_secret": "gh-secret",
        "gitlab_client_key": "gl-key",
        "gitlab_secret": "gl-secret",
        "gitlab_url": "https://gitlab.example.com/",
        "gitea_client_key": "gt-key",
        "gitea_secret": "gt-secret",
        "gitea_url": "https://gitea.example.com/",
    }
    values.update(overrides)
    return Settings(**values)


class OutboundStub:
    """Answers outbound provider calls from a URL -> response mapping."""

    def __init__(self) -> None:
        self.responses: Dict[str, httpx.Response] = {}
        self.calls: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(url)
        return self.responses.get(url) or httpx.Response(404, text="not found")

    def client(self, settings: Settings) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest.fixture()
def client(app):
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture()
def db(app, client) -> Callable[[], Session]:
    """Factory of sessions bound to the app's engine (tables exist once ``client`` started)."""

    return lambda: Session(app.state.engine)


@pytest.fixture()
def register(client) -> Callable[..., httpx.Response]:
    def _register(username: str = "alice", password: str = "s3cret-pass") -> httpx.Response:
        return client.post(
            "/register", data={"username": username, "password": password}
        )

    return _register


@pytest.fixture()
def stub_outbound(monkeypatch) -> OutboundStub:
    stub = OutboundStub()
    monkeypatch.setattr(outbound, "async_client", stub.client)
    return stub
