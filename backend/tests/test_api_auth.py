import logging
from urllib.parse import parse_qs, urlparse

from wordle_identity.api.deps import get_auth_service
from wordle_identity.config import settings
from wordle_identity.main import app

from conftest import make_auth_service, make_oauth_client

API = "/api/v1"


def _register(client, username="alice", email="alice@example.com", password="password1"):
    return client.post(f"{API}/auth/register", json={"username": username, "email": email, "password": password})


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_register_login_refresh_scenario(client):
    registered = _register(client)
    assert registered.status_code == 201
    body = registered.json()
    assert body["account"]["username"] == "alice"
    assert body["account"]["hasPassword"] is True
    assert "password_hash" not in body["account"]
    assert body["tokenType"] == "bearer"
    assert body["expiresIn"] == 3600
    first_refresh = body["refreshToken"]

    wrong = client.post(f"{API}/auth/login", json={"username": "alice", "password": "wrong-pass"})
    assert wrong.status_code == 401
    assert wrong.json()["error"] == "Invalid credentials or account deactivated"
    assert wrong.json()["code"] == "invalid_credentials"
    assert wrong.json()["success"] is False

    logged_in = client.post(f"{API}/auth/login", json={"username": "alice", "password": "password1"})
    assert logged_in.status_code == 200
    assert logged_in.json()["refreshToken"] != first_refresh

    # Earlier sessions survive a new login.
    refreshed = client.post(f"{API}/auth/refresh", json={"refresh_token": first_refresh})
    assert refreshed.status_code == 200
    assert refreshed.json()["refreshToken"] != first_refresh

    replay = client.post(f"{API}/auth/refresh", json={"refresh_token": first_refresh})
    assert replay.status_code == 401
    assert replay.json()["error"] == "Token refresh failed"


def test_register_conflict_and_validation(client):
    assert _register(client).status_code == 201

    duplicate = _register(client, email="other@example.com")
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "username_taken"

    duplicate = _register(client, username="alice2", email="ALICE@example.com")
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "email_taken"

    invalid = _register(client, username="bob", email="not-an-email")
    assert invalid.status_code == 400
    assert invalid.json()["code"] == "validation_error"

    invalid = _register(client, username="b!", email="b@example.com")
    assert invalid.status_code == 400
    assert invalid.json()["code"] == "validation_error"


def test_refresh_accepts_camel_case_and_rejects_access_tokens(client):
    tokens = _register(client).json()

    wrong_kind = client.post(f"{API}/auth/refresh", json={"refreshToken": tokens["accessToken"]})
    assert wrong_kind.status_code == 401

    ok = client.post(f"{API}/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert ok.status_code == 200


def test_logout_always_succeeds(client):
    tokens = _register(client).json()

    first = client.post(f"{API}/auth/logout", json={"refresh_token": tokens["refreshToken"]})
    assert first.status_code == 200
    assert first.json()["revoked"] == 1

    again = client.post(f"{API}/auth/logout", json={"refresh_token": tokens["refreshToken"]})
    assert again.status_code == 200
    assert again.json()["revoked"] == 0

    assert client.post(f"{API}/auth/logout").status_code == 200
    assert client.post(f"{API}/auth/logout", json={}).status_code == 200

    after = client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["refreshToken"]})
    assert after.status_code == 401


def test_me_requires_valid_access_token(client):
    tokens = _register(client).json()

    me = client.get(f"{API}/auth/me", headers=_bearer(tokens["accessToken"]))
    assert me.status_code == 200
    assert me.json()["account"]["email"] == "alice@example.com"

    assert client.get(f"{API}/auth/me").status_code == 401
    assert client.get(f"{API}/auth/me", headers=_bearer("garbage")).status_code == 401
    assert client.get(f"{API}/auth/me", headers=_bearer(tokens["refreshToken"])).status_code == 401


def test_logout_all(client):
    tokens = _register(client).json()
    client.post(f"{API}/auth/login", json={"username": "alice", "password": "password1"})

    response = client.post(f"{API}/auth/logout-all", headers=_bearer(tokens["accessToken"]))
    assert response.status_code == 200
    assert response.json()["revoked"] == 2
    assert client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["refreshToken"]}).status_code == 401


def test_oauth_round_trip(client):
    start = client.get(f"{API}/auth/oauth/login")
    assert start.status_code == 200
    state = parse_qs(urlparse(start.json()["authorizationUrl"]).query)["state"][0]

    callback = client.get(f"{API}/auth/oauth/callback", params={"code": "abc", "state": state})
    assert callback.status_code == 200
    assert callback.json()["account"]["username"] == "gl_alice"
    assert callback.json()["account"]["oauthLinked"] is True
    assert callback.json()["account"]["hasPassword"] is False

    replay = client.get(f"{API}/auth/oauth/callback", params={"code": "abc", "state": state})
    assert replay.status_code == 400
    assert replay.json()["code"] == "invalid_state"


def test_oauth_post_callback(client, provider):
    state = parse_qs(urlparse(client.get(f"{API}/auth/oauth/login").json()["authorizationUrl"]).query)["state"][0]
    response = client.post(
        f"{API}/auth/oauth/callback",
        json={"code": "abc", "state": state, "redirectUri": "https://wordle.example.com/cb"},
    )
    assert response.status_code == 200
    form = parse_qs(provider.requests[0].content.decode())
    assert form["redirect_uri"] == ["https://wordle.example.com/cb"]


def test_oauth_callback_errors(client, provider):
    assert client.get(f"{API}/auth/oauth/callback", params={"code": "abc"}).json()["code"] == "invalid_state"

    provider.token_status = 500
    state = parse_qs(urlparse(client.get(f"{API}/auth/oauth/login").json()["authorizationUrl"]).query)["state"][0]
    failed = client.get(f"{API}/auth/oauth/callback", params={"code": "abc", "state": state})
    assert failed.status_code == 400
    assert failed.json()["code"] == "exchange_failed"

    denied = client.get(f"{API}/auth/oauth/callback", params={"error": "access_denied"})
    assert denied.status_code == 400


def test_oauth_not_configured_is_503(client, provider):
    unconfigured = make_auth_service(provider, oauth=make_oauth_client(provider, client_secret=""))
    app.dependency_overrides[get_auth_service] = lambda: unconfigured
    response = client.get(f"{API}/auth/oauth/login")
    assert response.status_code == 503
    assert response.json()["code"] == "oauth_not_configured"


def test_profile_password_and_deactivation(client):
    tokens = _register(client).json()
    headers = _bearer(tokens["accessToken"])

    profile = client.put(f"{API}/users/me", json={"displayName": "Alice L."}, headers=headers)
    assert profile.status_code == 200
    assert profile.json()["account"]["displayName"] == "Alice L."
    assert client.put(f"{API}/users/me", json={}, headers=headers).status_code == 400

    wrong = client.post(
        f"{API}/users/me/password",
        json={"current_password": "nope", "new_password": "new-password"},
        headers=headers,
    )
    assert wrong.status_code == 401

    changed = client.post(
        f"{API}/users/me/password",
        json={"currentPassword": "password1", "newPassword": "new-password"},
        headers=headers,
    )
    assert changed.status_code == 200
    assert client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["refreshToken"]}).status_code == 401

    new_headers = _bearer(changed.json()["accessToken"])
    assert client.get(f"{API}/users/me", headers=new_headers).status_code == 200

    removed = client.delete(f"{API}/users/me", headers=new_headers)
    assert removed.status_code == 200
    assert removed.json()["revoked"] == 1

    login = client.post(f"{API}/auth/login", json={"username": "alice", "password": "new-password"})
    assert login.status_code == 401
    assert client.get(f"{API}/users/me", headers=new_headers).status_code == 401


def test_login_rate_limited(client, monkeypatch):
    monkeypatch.setattr(settings, "LOGIN_RATE_LIMIT_PER_MINUTE", 2)
    _register(client)
    for _ in range(2):
        client.post(f"{API}/auth/login", json={"username": "alice", "password": "wrong-pass"})
    limited = client.post(f"{API}/auth/login", json={"username": "alice", "password": "password1"})
    assert limited.status_code == 429
    assert limited.json()["code"] == "rate_limited"


def test_service_endpoints(client):
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["database"] == "ok"
    assert client.get("/").json()["status"] == "running"
    assert client.get("/metrics").status_code == 200

    response = client.get("/")
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_responses_use_camel_case_field_names(client):
    body = _register(client).json()
    assert set(body) == {"account", "accessToken", "refreshToken", "tokenType", "expiresIn"}
    assert {"displayName", "avatarUrl", "isActive", "hasPassword", "oauthLinked"} <= set(body["account"])

    refreshed = client.post(f"{API}/auth/refresh", json={"refreshToken": body["refreshToken"]}).json()
    assert set(refreshed) == {"accessToken", "refreshToken", "tokenType", "expiresIn"}

    assert set(client.get(f"{API}/auth/oauth/login").json()) == {"authorizationUrl"}


def test_register_conflict_is_logged_under_register(client, caplog):
    assert _register(client).status_code == 201
    with caplog.at_level(logging.INFO, logger="wordle_identity.core.exceptions"):
        assert _register(client, email="other@example.com").status_code == 409
    messages = [r.getMessage() for r in caplog.records if r.name == "wordle_identity.core.exceptions"]
    assert any("context=register kind=username_taken" in m for m in messages)
