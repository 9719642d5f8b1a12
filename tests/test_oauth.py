from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from conftest import make_settings
from gistauth.api.routers import oauth as oauth_router
from gistauth.app import create_app
from gistauth.models import SSHKey, User
from gistauth.services.providers import GITHUB_AUTHORIZE_URL, OAuthProfile, Provider
from gistauth.services.users import create_user


@pytest.fixture()
def profile(monkeypatch):
    """Replace the provider code exchange with a canned profile."""

    current = {}

    async def fake_fetch_profile(client, provider, request):
        return current["profile"]

    monkeypatch.setattr(oauth_router, "fetch_profile", fake_fetch_profile)

    def _set(
        provider=Provider.GITHUB,
        user_id="1001",
        nickname="alice",
        email=" Alice@Example.com ",
        avatar_url="",
    ):
        current["profile"] = OAuthProfile(provider, user_id, nickname, email, avatar_url)
        return current["profile"]

    return _set


def _users(db):
    with db() as session:
        return session.exec(select(User).order_by(User.id)).all()


def _keys(db):
    with db() as session:
        return session.exec(select(SSHKey).order_by(SSHKey.id)).all()


def _redirect_uri(response):
    query = parse_qs(urlparse(response.headers["location"]).query)
    return query["redirect_uri"][0]


def test_begin_redirects_to_provider(client):
    r = client.get("/oauth/github")
    assert r.status_code == 302
    location = r.headers["location"]
    assert location.startswith(GITHUB_AUTHORIZE_URL)
    assert parse_qs(urlparse(location).query)["client_id"] == ["gh-key"]
    assert _redirect_uri(r) == "http://testserver/oauth/github/callback"


def test_begin_honours_forwarded_proto(client):
    r = client.get("/oauth/gitlab", headers={"X-Forwarded-Proto": "https"})
    assert r.headers["location"].startswith("https://gitlab.example.com/oauth/authorize")
    assert _redirect_uri(r) == "https://testserver/oauth/gitlab/callback"


def test_begin_prefers_external_url():
    app = create_app(make_settings(external_url="https://gists.example.org/"))
    with TestClient(app, follow_redirects=False) as client:
        r = client.get("/oauth/gitea")
    assert r.headers["location"].startswith("https://gitea.example.com/login/oauth/authorize")
    assert _redirect_uri(r) == "https://gists.example.org/oauth/gitea/callback"


def test_begin_unsupported_provider(client):
    r = client.get("/oauth/bitbucket")
    assert r.status_code == 400
    assert r.json()["detail"] == "Unsupported provider"


def test_callback_unsupported_provider(client):
    assert client.get("/oauth/bitbucket/callback").status_code == 400


def test_begin_oidc_without_discovery_url(client):
    r = client.get("/oauth/openid-connect")
    assert r.status_code == 500
    assert r.json()["detail"] == "Cannot create OpenID Connect provider"


def test_begin_unlinks_linked_provider(client, register, db):
    register("alice")
    with db() as session:
        user = session.exec(select(User)).one()
        user.github_id = "1001"
        session.add(user)
        session.commit()

    r = client.get("/oauth/github")
    assert r.status_code == 302
    assert r.headers["location"] == "/settings"
    assert _users(db)[0].github_id == ""
    assert "Account unlinked from GitHub" in client.get("/login").text


def test_begin_refuses_to_unlink_last_sign_in_method(client, profile, db, stub_outbound):
    profile(nickname="alice")
    client.get("/oauth/github/callback")

    r = client.get("/oauth/github")
    assert r.headers["location"] == "/settings"
    assert _users(db)[0].github_id == "1001"
    assert "only way to sign in" in client.get("/login").text


def test_callback_creates_user_and_imports_keys(client, profile, db, stub_outbound):
    profile(Provider.GITHUB, user_id="1001", nickname="alice")
    stub_outbound.responses["https://github.com/alice.keys"] = httpx.Response(
        200, text="ssh-ed25519 AAAAkey1 alice@laptop\nssh-rsa AAAAkey2 alice@desktop\n"
    )

    r = client.get("/oauth/github/callback", params={"code": "c", "state": "s"})
    assert r.status_code == 302
    assert r.headers["location"] == "/"
    assert any(c.startswith("_csrf=") for c in r.headers.get_list("set-cookie"))

    (user,) = _users(db)
    assert user.username == "alice"
    assert user.github_id == "1001"
    assert user.email == " Alice@Example.com "
    assert user.md5_hash == "c160f8cc69a4f0bf2b0362752353d060"
    assert user.avatar_url == "https://avatars.githubusercontent.com/u/1001?v=4"
    assert user.is_admin is True

    keys = _keys(db)
    assert [k.content for k in keys] == [
        "ssh-ed25519 AAAAkey1 alice@laptop",
        "ssh-rsa AAAAkey2 alice@desktop",
    ]
    assert {k.title for k in keys} == {"Added from github"}
    assert {k.user_id for k in keys} == {user.id}

    assert client.get("/me").json()["user"]["providers"] == ["github"]


def test_callback_signs_in_existing_linked_user(client, profile, db, stub_outbound):
    with db() as session:
        create_user(session, User(username="alice", gitlab_id="55"))
    profile(Provider.GITLAB, user_id="55", nickname="alice")

    r = client.get("/oauth/gitlab/callback")
    assert r.headers["location"] == "/"
    assert len(_users(db)) == 1
    assert stub_outbound.calls == []
    assert client.get("/me").json()["user"]["username"] == "alice"


def test_callback_links_account_when_logged_in(client, register, profile, db, stub_outbound):
    register("alice")
    profile(Provider.GITLAB, user_id="77", nickname="someone-else")

    r = client.get("/oauth/gitlab/callback")
    assert r.status_code == 302
    assert r.headers["location"] == "/settings"

    (user,) = _users(db)
    assert user.username == "alice"
    assert user.gitlab_id == "77"
    assert (
        user.avatar_url
        == "https://gitlab.example.com/uploads/-/system/user/avatar/77/avatar.png?width=400"
    )
    assert _keys(db) == []
    assert "Account linked to GitLab" in client.get("/login").text


def test_callback_username_collision_redirects_to_login(client, register, profile, db, stub_outbound):
    register("alice")
    client.get("/logout")
    profile(Provider.GITHUB, user_id="9", nickname="alice")

    r = client.get("/oauth/github/callback")
    assert r.headers["location"] == "/login"
    assert len(_users(db)) == 1
    assert "Username alice already exists" in client.get("/login").text
    assert client.get("/me").json()["user"] is None


def test_callback_username_collision_ignores_case(client, register, profile, db, stub_outbound):
    register("alice")
    client.get("/logout")
    profile(Provider.GITHUB, user_id="9", nickname="Alice")

    r = client.get("/oauth/github/callback")
    assert r.headers["location"] == "/login"
    assert [u.username for u in _users(db)] == ["alice"]
    assert stub_outbound.calls == []
    assert "Username Alice already exists" in client.get("/login").text
    assert client.get("/me").json()["user"] is None


def test_callback_without_nickname_creates_nothing(client, profile, db, stub_outbound):
    profile(Provider.GITLAB, user_id="12", nickname="")

    r = client.get("/oauth/gitlab/callback")
    assert r.headers["location"] == "/login"
    assert _users(db) == []
    assert stub_outbound.calls == []
    assert "GitLab did not provide a username" in client.get("/login").text


def test_callback_signup_disabled(profile, stub_outbound):
    app = create_app(make_settings(disable_signup=True))
    profile(nickname="alice")
    with TestClient(app, follow_redirects=False) as client:
        r = client.get("/oauth/github/callback")
    assert r.status_code == 403


def test_second_oauth_account_is_not_admin(client, profile, db, stub_outbound):
    profile(user_id="1", nickname="first")
    client.get("/oauth/github/callback")
    client.get("/logout")
    profile(user_id="2", nickname="second")
    client.get("/oauth/github/callback")

    assert [(u.username, u.is_admin) for u in _users(db)] == [
        ("first", True),
        ("second", False),
    ]


def test_oidc_signup_skips_key_import(profile, stub_outbound):
    profile(
        Provider.OIDC,
        user_id="sub-1",
        nickname="olivia",
        avatar_url="https://idp.example.com/olivia.png",
    )
    app = create_app(
        make_settings(
            oidc_discovery_url="https://idp.example.com/.well-known/openid-configuration"
        )
    )
    with TestClient(app, follow_redirects=False) as client:
        r = client.get("/oauth/openid-connect/callback")
        me = client.get("/me").json()["user"]
        # The in-memory database lives only while the app is running.
        with Session(app.state.engine) as session:
            keys = session.exec(select(SSHKey)).all()

    assert r.headers["location"] == "/"
    assert me["providers"] == ["openid-connect"]
    assert me["avatar_url"] == "https://idp.example.com/olivia.png"
    assert stub_outbound.calls == []
    assert keys == []


def test_key_fetch_failure_does_not_abort_signup(client, profile, db, stub_outbound):
    profile(Provider.GITEA, user_id="3", nickname="gus")
    stub_outbound.responses["https://gitea.example.com/api/v1/users/3"] = httpx.Response(
        200, json={"avatar_url": "https://gitea.example.com/avatars/gus"}
    )

    r = client.get("/oauth/gitea/callback")
    assert r.headers["location"] == "/"
    assert "https://gitea.example.com/gus.keys" in stub_outbound.calls

    (user,) = _users(db)
    assert user.avatar_url == "https://gitea.example.com/avatars/gus"
    assert _keys(db) == []
    assert "Could not get user keys" in client.get("/login").text


def test_key_creation_failure_is_flashed(client, profile, db, stub_outbound, monkeypatch):
    profile(Provider.GITHUB, user_id="5", nickname="alice")
    stub_outbound.responses["https://github.com/alice.keys"] = httpx.Response(
        200, text="ssh-ed25519 AAAAbroken\nssh-ed25519 AAAAgood\n"
    )
    real_create = oauth_router.create_ssh_key

    def flaky_create(session, user, title, content):
        if "broken" in content:
            raise SQLAlchemyError("disk full")
        return real_create(session, user, title, content)

    monkeypatch.setattr(oauth_router, "create_ssh_key", flaky_create)

    r = client.get("/oauth/github/callback")
    assert r.headers["location"] == "/"
    assert [k.content for k in _keys(db)] == ["ssh-ed25519 AAAAgood"]
    assert "Could not create ssh key" in client.get("/login").text


def test_callback_handshake_failure_is_client_error(client):
    r = client.get("/oauth/github/callback", params={"code": "c", "state": "unknown"})
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Cannot complete user auth")


def test_callback_refuses_to_link_account_owned_by_someone_else(
    client, register, profile, db, stub_outbound
):
    with db() as session:
        create_user(session, User(username="bob", github_id="1001"))
    register("alice")
    profile(Provider.GITHUB, user_id="1001", nickname="bob")

    r = client.get("/oauth/github/callback")
    assert r.headers["location"] == "/settings"
    assert [(u.username, u.github_id) for u in _users(db)] == [
        ("bob", "1001"),
        ("alice", ""),
    ]
    assert "already linked to another user" in client.get("/login").text


def test_callback_non_json_profile_is_client_error(client, monkeypatch):
    class HtmlProvider:
        async def authorize_access_token(self, request):
            return {"access_token": "t"}

        async def get(self, url, token=None):
            return httpx.Response(
                200,
                text="<html>oops</html>",
                request=httpx.Request("GET", "https://api.github.com/user"),
            )

    monkeypatch.setattr(oauth_router, "build_client", lambda provider, settings: HtmlProvider())

    r = client.get("/oauth/github/callback", params={"code": "c", "state": "s"})
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Cannot complete user auth")
