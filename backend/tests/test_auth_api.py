import pytest
from fastapi.testclient import TestClient

from jobboard.api.v1 import auth as auth_routes
from jobboard.api.v1 import users as users_routes
from jobboard.config import settings
from jobboard.core.database import get_db
from jobboard.main import app
from jobboard.models.user import User, UserRole

from conftest import PASSWORD

COOKIE = settings.REFRESH_COOKIE_NAME


@pytest.fixture
def client(db, service, monkeypatch):
    monkeypatch.setattr(auth_routes, "session_service", service)
    monkeypatch.setattr(users_routes, "session_service", service)
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def login(client, email="ada@talent.io", password=PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def auth_header(response):
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def test_login_sets_refresh_cookie(client, make_user):
    make_user()

    response = login(client)

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{COOKIE}=")
    assert "httponly" in set_cookie.lower()
    assert "Path=/" in set_cookie
    assert f"Max-Age={int(settings.refresh_token_ttl.total_seconds())}" in set_cookie


def test_login_with_bad_credentials(client, make_user):
    make_user()

    wrong = login(client, password="not the password")
    unknown = login(client, email="ghost@talent.io")

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json()["error"] == unknown.json()["error"] == "Invalid credentials"
    assert "set-cookie" not in wrong.headers


def test_unverified_login_prompts_verification(client, make_user):
    make_user(verified=False)

    response = login(client)

    assert response.status_code == 200
    assert response.json()["requires_verification"] is True
    assert response.json()["verification_token"]
    assert "set-cookie" not in response.headers


def test_me_returns_profile(client, make_user):
    make_user()

    response = client.get("/api/v1/auth/me", headers=auth_header(login(client)))

    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "ada@talent.io"
    assert body["role"] == UserRole.TALENT.value
    assert body["profile"]["first_name"] == "Ada"


def test_me_for_moderator_has_no_profile(client, make_user):
    make_user(email="mod@jobs.io", role=UserRole.MODERATOR)

    response = client.get("/api/v1/auth/me", headers=auth_header(login(client, email="mod@jobs.io")))

    assert response.status_code == 200
    assert response.json()["profile"] is None


def test_missing_and_malformed_authorization(client):
    missing = client.get("/api/v1/auth/me")
    malformed = client.get("/api/v1/auth/me", headers={"Authorization": "Basic YWRhOnB3"})
    garbage = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer nope"})

    assert missing.status_code == 401
    assert malformed.status_code == 400
    assert garbage.status_code == 401
    assert missing.json()["success"] is False


def test_refresh_rotates_cookie_and_replay_clears_it(client, make_user):
    make_user()
    login(client)
    original = client.cookies.get(COOKIE)

    rotated = client.post("/api/v1/auth/refresh")

    assert rotated.status_code == 200
    assert rotated.json()["access_token"]
    current = client.cookies.get(COOKIE)
    assert current and current != original

    client.cookies.clear()
    replay = client.post("/api/v1/auth/refresh", headers={"Cookie": f"{COOKIE}={original}"})

    assert replay.status_code == 401
    assert "Max-Age=0" in replay.headers["set-cookie"]

    # The replay took the newer session down too.
    after = client.post("/api/v1/auth/refresh", headers={"Cookie": f"{COOKIE}={current}"})
    assert after.status_code == 401


def test_refresh_without_cookie(client):
    response = client.post("/api/v1/auth/refresh")

    assert response.status_code == 401
    assert "Max-Age=0" in response.headers["set-cookie"]


def test_logout_clears_cookie_and_revokes(client, make_user):
    make_user()
    login(client)
    secret = client.cookies.get(COOKIE)

    first = client.post("/api/v1/auth/logout")
    client.cookies.clear()
    second = client.post("/api/v1/auth/logout", headers={"Cookie": f"{COOKIE}={secret}"})

    assert first.status_code == second.status_code == 200
    assert "Max-Age=0" in first.headers["set-cookie"]
    refresh = client.post("/api/v1/auth/refresh", headers={"Cookie": f"{COOKIE}={secret}"})
    assert refresh.status_code == 401


def test_logout_all(client, make_user):
    make_user()
    first = login(client)
    client.cookies.clear()
    login(client)
    other_device = client.cookies.get(COOKIE)

    response = client.post("/api/v1/auth/logout-all", headers=auth_header(first))

    assert response.status_code == 200
    client.cookies.clear()
    refresh = client.post("/api/v1/auth/refresh", headers={"Cookie": f"{COOKIE}={other_device}"})
    assert refresh.status_code == 401


def test_register_verify_and_login(client, mailer):
    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": "Lin@Hiring.io",
            "password": PASSWORD,
            "role": "EMPLOYER",
            "profile": {"company_name": "Lin & Co"},
        },
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"]["email"] == "lin@hiring.io"
    assert data["user"]["is_email_verified"] is False
    assert mailer.sent[0][0] == "verify"

    verified = client.post("/api/v1/auth/verify-email", json={"token": data["verification_token"]})
    assert verified.status_code == 200
    assert verified.json()["data"]["is_email_verified"] is True

    me = client.get("/api/v1/auth/me", headers=auth_header(login(client, email="lin@hiring.io")))
    assert me.json()["profile"]["company_name"] == "Lin & Co"


@pytest.mark.parametrize(
    "payload",
    [
        {"role": "MODERATOR", "profile": {"first_name": "Mo", "last_name": "D"}},
        {"role": "TALENT", "profile": {"company_name": "Wrong Shape"}},
        {"role": "EMPLOYER", "profile": {"first_name": "Ada", "last_name": "L"}},
    ],
)
def test_register_rejects_role_profile_mismatch(client, db, payload):
    response = client.post(
        "/api/v1/auth/register",
        json={"email": "someone@talent.io", "password": PASSWORD, **payload},
    )

    assert response.status_code == 422
    assert db.query(User).count() == 0


def test_register_duplicate_email(client, make_user):
    make_user()

    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": "ada@talent.io",
            "password": PASSWORD,
            "role": "TALENT",
            "profile": {"first_name": "Ada", "last_name": "Again"},
        },
    )

    assert response.status_code == 409


def test_password_reset_flow(client, make_user):
    make_user()
    login(client)
    old_cookie = client.cookies.get(COOKIE)

    forgot = client.post("/api/v1/auth/password/forgot", json={"email": "ada@talent.io"})
    token = forgot.json()["data"]["reset_token"]
    reset = client.post(
        "/api/v1/auth/password/reset",
        json={"token": token, "new_password": "a brand new passphrase"},
    )

    assert reset.status_code == 200
    assert login(client).status_code == 401
    assert login(client, password="a brand new passphrase").status_code == 200
    client.cookies.clear()
    refresh = client.post("/api/v1/auth/refresh", headers={"Cookie": f"{COOKIE}={old_cookie}"})
    assert refresh.status_code == 401


def test_forgot_password_for_unknown_email(client):
    response = client.post("/api/v1/auth/password/forgot", json={"email": "ghost@talent.io"})

    assert response.status_code == 200
    assert response.json()["data"] is None


def test_moderator_deactivates_user(client, make_user):
    target = make_user()
    make_user(email="mod@jobs.io", role=UserRole.MODERATOR)
    target_login = login(client)
    target_cookie = client.cookies.get(COOKIE)
    client.cookies.clear()

    response = client.patch(
        f"/api/v1/users/{target.id}/status",
        json={"is_active": False},
        headers=auth_header(login(client, email="mod@jobs.io")),
    )

    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert client.get("/api/v1/auth/me", headers=auth_header(target_login)).status_code == 403
    client.cookies.clear()
    refresh = client.post("/api/v1/auth/refresh", headers={"Cookie": f"{COOKIE}={target_cookie}"})
    assert refresh.status_code == 401


def test_status_change_requires_moderator(client, make_user):
    make_user()
    other = make_user(email="lin@hiring.io", role=UserRole.EMPLOYER)

    response = client.patch(
        f"/api/v1/users/{other.id}/status",
        json={"is_active": False},
        headers=auth_header(login(client)),
    )

    assert response.status_code == 403


def test_delete_own_account(client, db, make_user):
    make_user()

    response = client.delete("/api/v1/users/me", headers=auth_header(login(client)))

    assert response.status_code == 200
    assert db.query(User).count() == 0


def test_health(client):
    assert client.get("/health").status_code == 200


LONG_PASSWORDS = ["x" * 100, "\U0001F600" * 40]


@pytest.mark.parametrize("password", LONG_PASSWORDS)
def test_register_rejects_password_bcrypt_cannot_hash(client, db, password):
    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": "ada@talent.io",
            "password": password,
            "role": "TALENT",
            "profile": {"first_name": "Ada", "last_name": "Lovelace"},
        },
    )

    assert response.status_code == 422
    assert db.query(User).count() == 0


def test_register_accepts_password_at_the_byte_limit(client):
    # 18 four-byte characters: exactly 72 bytes
    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": "ada@talent.io",
            "password": "\U0001F600" * 18,
            "role": "TALENT",
            "profile": {"first_name": "Ada", "last_name": "Lovelace"},
        },
    )

    assert response.status_code == 201


@pytest.mark.parametrize("password", LONG_PASSWORDS)
def test_password_reset_rejects_password_bcrypt_cannot_hash(client, make_user, password):
    make_user()
    forgot = client.post("/api/v1/auth/password/forgot", json={"email": "ada@talent.io"})
    token = forgot.json()["data"]["reset_token"]

    response = client.post("/api/v1/auth/password/reset", json={"token": token, "new_password": password})

    assert response.status_code == 422
    assert login(client).status_code == 200


@pytest.mark.parametrize("password", LONG_PASSWORDS)
def test_login_rejects_password_bcrypt_cannot_hash(client, make_user, password):
    make_user()
    assert login(client, password=password).status_code == 422
