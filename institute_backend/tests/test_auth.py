from datetime import timedelta

import pytest

from app.core.security import create_access_token, decode_access_token, decode_refresh_token, utcnow
from app.models.user import UserSession

TEST_PASSWORD = "Secret123"


def _login(client, user, password=TEST_PASSWORD):
    return client.post("/api/auth/login", json={"email": user.email, "password": password})


def test_register_creates_active_student_and_sets_cookies(client):
    response = client.post(
        "/api/auth/register",
        json={"email": "new.student@academy.io", "password": "Str0ngPass", "name": "New Student", "phone": "01700000000"},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"]["email"] == "new.student@academy.io"
    assert data["user"]["role"] == "STUDENT"
    assert data["user"]["status"] == "ACTIVE"
    assert data["user"]["profile"]["name"] == "New Student"
    assert decode_access_token(data["access_token"]).sub == data["user"]["id"]
    assert decode_refresh_token(data["refresh_token"]) == data["user"]["id"]

    cookie_names = {c.split("=", 1)[0] for c in response.headers.get_list("set-cookie")}
    assert cookie_names == {"access_token", "refresh_token"}


def test_register_duplicate_email(client, make_user):
    user = make_user()

    response = client.post(
        "/api/auth/register", json={"email": user.email, "password": "Str0ngPass", "name": "Someone"}
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "EMAIL_EXISTS"


@pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"])
def test_register_rejects_weak_passwords(client, password):
    response = client.post(
        "/api/auth/register", json={"email": "weak@academy.io", "password": password, "name": "Weak"}
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_login_returns_tokens_and_user(client, make_user):
    user = make_user("TEACHER")

    response = _login(client, user)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["id"] == user.id
    identity = decode_access_token(data["access_token"])
    assert (identity.role, identity.email, identity.status) == ("TEACHER", user.email, "ACTIVE")


def test_login_wrong_password(client, make_user):
    response = _login(client, make_user(), password="WrongPass1")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"


def test_login_unknown_email(client):
    response = client.post("/api/auth/login", json={"email": "ghost@academy.io", "password": TEST_PASSWORD})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"


def test_login_inactive_account(client, make_user):
    response = _login(client, make_user(status="SUSPENDED"))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "ACCOUNT_INACTIVE"


def test_refresh_rotates_the_session(client, make_user, db_session):
    user = make_user()
    old_refresh = _login(client, user).json()["data"]["refresh_token"]

    response = client.post("/api/auth/refresh", json={"refresh_token": old_refresh})

    assert response.status_code == 200
    new_refresh = response.json()["data"]["refresh_token"]
    assert new_refresh != old_refresh
    assert db_session.query(UserSession).filter(UserSession.refresh_token == new_refresh).count() == 1

    reused = client.post("/api/auth/refresh", json={"refresh_token": old_refresh})
    assert reused.status_code == 401
    assert reused.json()["error"]["code"] == "INVALID_TOKEN"


def test_refresh_rejects_access_tokens(client, make_user):
    access = _login(client, make_user()).json()["data"]["access_token"]

    response = client.post("/api/auth/refresh", json={"refresh_token": access})

    assert response.status_code == 401


def test_verify_returns_identity(client, make_user):
    user = make_user("FINANCE")
    token = create_access_token(user.id, email=user.email, role=user.role, status=user.status)

    response = client.post("/api/auth/verify", json={"token": token})

    assert response.status_code == 200
    assert response.json()["data"] == {
        "user_id": user.id,
        "email": user.email,
        "role": "FINANCE",
        "status": "ACTIVE",
    }


def test_verify_rejects_expired_token(client, make_user):
    user = make_user()
    token = create_access_token(
        user.id, email=user.email, role=user.role, status=user.status, expires_delta=timedelta(seconds=-10)
    )

    response = client.post("/api/auth/verify", json={"token": token})

    assert response.status_code == 401


def test_me_uses_the_access_cookie(client, make_user):
    user = make_user()
    _login(client, user)

    response = client.get("/api/auth/me")

    assert response.status_code == 200
    assert response.json()["data"]["id"] == user.id
    assert response.json()["data"]["profile"]["name"] == "Student User"


def test_expired_access_cookie_is_refreshed_through_local_provider(client, make_user):
    user = make_user()
    tokens = _login(client, user).json()["data"]
    expired = create_access_token(
        user.id, email=user.email, role=user.role, status=user.status, expires_delta=timedelta(minutes=-1)
    )
    client.cookies.clear()
    client.cookies.set("access_token", expired)
    client.cookies.set("refresh_token", tokens["refresh_token"])

    response = client.get("/api/auth/me")

    assert response.status_code == 200
    assert response.json()["data"]["id"] == user.id
    assert len(response.headers.get_list("set-cookie")) == 2

    # The refresh rotated the session, so the old refresh token is spent.
    reused = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert reused.status_code == 401


def test_logout_revokes_refresh_token_and_clears_cookies(client, make_user, auth_headers):
    user = make_user()
    refresh_token = _login(client, user).json()["data"]["refresh_token"]

    response = client.post("/api/auth/logout", json={"refresh_token": refresh_token}, headers=auth_headers(user))

    assert response.status_code == 200
    assert all("Max-Age=0" in c for c in response.headers.get_list("set-cookie"))
    assert client.post("/api/auth/refresh", json={"refresh_token": refresh_token}).status_code == 401


def test_logout_all_revokes_every_session(client, make_user, auth_headers, db_session):
    user = make_user()
    first = _login(client, user).json()["data"]["refresh_token"]
    second = _login(client, user).json()["data"]["refresh_token"]

    response = client.post("/api/auth/logout-all", headers=auth_headers(user))

    assert response.status_code == 200
    assert db_session.query(UserSession).filter(UserSession.user_id == user.id).count() == 0
    for token in (first, second):
        assert client.post("/api/auth/refresh", json={"refresh_token": token}).status_code == 401


def test_refresh_rejects_an_expired_session(client, make_user, db_session):
    user = make_user()
    refresh_token = _login(client, user).json()["data"]["refresh_token"]
    db_session.query(UserSession).filter(UserSession.refresh_token == refresh_token).update(
        {UserSession.expires_at: utcnow() - timedelta(minutes=1)}, synchronize_session=False
    )
    db_session.commit()

    response = client.post("/api/auth/refresh", json={"refresh_token": refresh_token})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "INVALID_TOKEN"
    assert db_session.query(UserSession).filter(UserSession.user_id == user.id).count() == 0
