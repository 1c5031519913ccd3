# pyright: reportMissingImports=false

from __future__ import annotations

from typing import cast

from fastapi.testclient import TestClient
from sqlalchemy import select

from beertracker.core.config import settings
from beertracker.db.models import User
from beertracker.db.session import SessionLocal
from beertracker.main import app
from beertracker.services.ledger import LedgerStore


def _seed_invite(code: str, *, is_admin: bool = False) -> None:
    _ = LedgerStore(SessionLocal).insert_invite(code=code, created_by_id=None, is_admin=is_admin)


def _register(client: TestClient, **body: object) -> dict[str, object]:
    resp = client.post("/api/register", json=body)
    assert resp.status_code == 200, resp.text
    data = cast(dict[str, object], resp.json())
    assert data["success"] is True
    return cast(dict[str, object], data["user"])


def test_me_without_session_returns_401() -> None:
    with TestClient(app) as client:
        resp = client.get("/api/me")
        assert resp.status_code == 401, resp.text
        assert resp.json() == {"detail": "not_authenticated"}


def test_register_sets_http_only_cookie_and_me_works() -> None:
    _seed_invite("FIRSTBEER")
    with TestClient(app) as client:
        resp = client.post(
            "/api/register",
            json={"username": "alice", "password": "secret123", "inviteCode": "FIRSTBEER"},
        )
        assert resp.status_code == 200, resp.text
        set_cookie = resp.headers.get("set-cookie", "")
        assert set_cookie.startswith(f"{settings.session_cookie_name}=")
        assert "httponly" in set_cookie.lower()
        assert "max-age=2592000" in set_cookie.lower()

        user = cast(dict[str, object], resp.json()["user"])
        assert user["username"] == "alice"
        assert user["display_name"] == "alice"
        assert user["beer_count"] == 0
        assert user["is_admin"] is False
        assert "password_hash" not in user

        me = client.get("/api/me")
        assert me.status_code == 200, me.text
        assert me.json()["user"]["id"] == user["id"]


def test_register_missing_fields_returns_400() -> None:
    _seed_invite("FIRSTBEER")
    with TestClient(app) as client:
        no_invite = client.post("/api/register", json={"username": "a", "password": "secret123"})
        assert no_invite.status_code == 400, no_invite.text
        assert no_invite.json() == {"detail": "missing_fields"}

        no_login = client.post(
            "/api/register", json={"password": "secret123", "inviteCode": "FIRSTBEER"}
        )
        assert no_login.status_code == 400, no_login.text
        assert no_login.json() == {"detail": "missing_fields"}

        no_password = client.post(
            "/api/register", json={"username": "a", "inviteCode": "FIRSTBEER"}
        )
        assert no_password.status_code == 400, no_password.text

    inv = LedgerStore(SessionLocal).get_invite("FIRSTBEER")
    assert inv is not None and not inv.is_used


def test_register_weak_password_returns_400_and_keeps_invite() -> None:
    _seed_invite("FIRSTBEER")
    with TestClient(app) as client:
        resp = client.post(
            "/api/register",
            json={"username": "alice", "password": "abc", "inviteCode": "FIRSTBEER"},
        )
        assert resp.status_code == 400, resp.text
        assert resp.json() == {"detail": "invalid_password"}

    inv = LedgerStore(SessionLocal).get_invite("FIRSTBEER")
    assert inv is not None and not inv.is_used


def test_register_with_unknown_or_used_invite_returns_400() -> None:
    _seed_invite("ONCE")
    with TestClient(app) as client:
        unknown = client.post(
            "/api/register",
            json={"username": "alice", "password": "secret123", "inviteCode": "NOPE"},
        )
        assert unknown.status_code == 400, unknown.text
        assert unknown.json() == {"detail": "invite_code_invalid"}

        _ = _register(client, username="alice", password="secret123", inviteCode="ONCE")

    with TestClient(app) as client:
        replay = client.post(
            "/api/register",
            json={"username": "bob", "password": "secret123", "inviteCode": "ONCE"},
        )
        assert replay.status_code == 400, replay.text
        assert replay.json() == {"detail": "invite_code_used"}

    with SessionLocal() as db:
        names = sorted(u.username or "" for u in db.execute(select(User)).scalars())
    assert names == ["alice"]


def test_username_taken_returns_400_without_burning_invite() -> None:
    _seed_invite("A1")
    _seed_invite("A2")
    with TestClient(app) as client:
        _ = _register(client, username="alice", password="secret123", inviteCode="A1")

    with TestClient(app) as client:
        resp = client.post(
            "/api/register",
            json={"username": "alice", "password": "other123", "inviteCode": "A2"},
        )
        assert resp.status_code == 400, resp.text
        assert resp.json() == {"detail": "username_taken"}

    inv = LedgerStore(SessionLocal).get_invite("A2")
    assert inv is not None
    assert not inv.is_used


def test_login_after_register_returns_same_user() -> None:
    _seed_invite("FIRSTBEER")
    with TestClient(app) as client:
        registered = _register(client, username="alice", password="secret123", inviteCode="FIRSTBEER")

    with TestClient(app) as client:
        resp = client.post("/api/login", json={"username": "alice", "password": "secret123"})
        assert resp.status_code == 200, resp.text
        assert resp.json()["user"]["id"] == registered["id"]
        assert client.get("/api/me").status_code == 200


def test_login_wrong_password_or_unknown_user_returns_401() -> None:
    _seed_invite("FIRSTBEER")
    with TestClient(app) as client:
        _ = _register(client, username="alice", password="secret123", inviteCode="FIRSTBEER")

    with TestClient(app) as client:
        bad_pw = client.post("/api/login", json={"username": "alice", "password": "wrong123"})
        assert bad_pw.status_code == 401, bad_pw.text
        assert bad_pw.json() == {"detail": "invalid_credentials"}

        unknown = client.post("/api/login", json={"username": "nobody", "password": "secret123"})
        assert unknown.status_code == 401, unknown.text
        assert unknown.json() == {"detail": "invalid_credentials"}

        assert "set-cookie" not in unknown.headers


def test_email_registration_is_case_insensitive() -> None:
    _seed_invite("E1")
    _seed_invite("E2")
    with TestClient(app) as client:
        user = _register(client, email="  Alice@Example.COM ", password="secret123", inviteCode="E1")
        assert user["email"] == "alice@example.com"
        assert user["username"] is None
        assert user["display_name"] == "alice"

    with TestClient(app) as client:
        dup = client.post(
            "/api/register",
            json={"email": "ALICE@example.com", "password": "secret123", "inviteCode": "E2"},
        )
        assert dup.status_code == 400, dup.text
        assert dup.json() == {"detail": "username_taken"}

        login = client.post("/api/login", json={"email": "ALICE@EXAMPLE.com", "password": "secret123"})
        assert login.status_code == 200, login.text
        assert login.json()["user"]["id"] == user["id"]

        via_username_field = client.post(
            "/api/login", json={"username": "alice@example.com", "password": "secret123"}
        )
        assert via_username_field.status_code == 200, via_username_field.text


def test_register_with_username_and_email_allows_login_with_either() -> None:
    _seed_invite("B1")
    _seed_invite("B2")
    _seed_invite("B3")
    with TestClient(app) as client:
        user = _register(
            client, username="bob", email="Bob@Example.com", password="secret123", inviteCode="B1"
        )
        assert user["username"] == "bob"
        assert user["email"] == "bob@example.com"
        assert user["display_name"] == "bob"

    with TestClient(app) as client:
        by_name = client.post("/api/login", json={"username": "bob", "password": "secret123"})
        assert by_name.status_code == 200, by_name.text
        assert by_name.json()["user"]["id"] == user["id"]

        by_email = client.post("/api/login", json={"email": "bob@example.com", "password": "secret123"})
        assert by_email.status_code == 200, by_email.text
        assert by_email.json()["user"]["id"] == user["id"]

        same_email = client.post(
            "/api/register",
            json={"username": "robert", "email": "BOB@example.com", "password": "secret123", "inviteCode": "B2"},
        )
        assert same_email.status_code == 400, same_email.text
        assert same_email.json() == {"detail": "username_taken"}

        same_name = client.post(
            "/api/register",
            json={"username": "bob", "email": "other@example.com", "password": "secret123", "inviteCode": "B3"},
        )
        assert same_name.status_code == 400, same_name.text
        assert same_name.json() == {"detail": "username_taken"}

    spare = LedgerStore(SessionLocal).get_invite("B2")
    assert spare is not None and spare.used_at is None


def test_register_display_name_is_kept() -> None:
    _seed_invite("FIRSTBEER")
    with TestClient(app) as client:
        user = _register(
            client,
            username="alice",
            displayName="  Alice the Brave  ",
            password="secret123",
            inviteCode="FIRSTBEER",
        )
    assert user["display_name"] == "Alice the Brave"


def test_passwords_are_not_stored_in_plaintext() -> None:
    _seed_invite("FIRSTBEER")
    with TestClient(app) as client:
        _ = _register(client, username="alice", password="secret123", inviteCode="FIRSTBEER")

    with SessionLocal() as db:
        stored = db.execute(select(User.password_hash)).scalar_one()
    assert stored != "secret123"
    assert stored.startswith("pbkdf2_sha256$")


def test_logout_revokes_session_and_clears_cookie() -> None:
    _seed_invite("FIRSTBEER")
    with TestClient(app) as client:
        _ = _register(client, username="alice", password="secret123", inviteCode="FIRSTBEER")
        token = client.cookies.get(settings.session_cookie_name)
        assert token

        out = client.post("/api/logout")
        assert out.status_code == 200, out.text
        assert out.json() == {"success": True}
        assert client.get("/api/me").status_code == 401

    with TestClient(app, cookies={settings.session_cookie_name: token}) as replay:
        assert replay.get("/api/me").status_code == 401


def test_logout_without_session_still_succeeds() -> None:
    with TestClient(app) as client:
        resp = client.post("/api/logout")
        assert resp.status_code == 200, resp.text
        assert resp.json() == {"success": True}


def test_bearer_header_is_accepted() -> None:
    _seed_invite("FIRSTBEER")
    with TestClient(app) as client:
        _ = _register(client, username="alice", password="secret123", inviteCode="FIRSTBEER")
        token = client.cookies.get(settings.session_cookie_name)
        assert token

    with TestClient(app) as client:
        me = client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200, me.text
        assert me.json()["user"]["username"] == "alice"

        bogus = client.get("/api/me", headers={"Authorization": "Bearer not-a-token"})
        assert bogus.status_code == 401, bogus.text
        assert bogus.json() == {"detail": "invalid_session"}


def test_update_profile() -> None:
    _seed_invite("FIRSTBEER")
    with TestClient(app) as client:
        _ = _register(client, username="alice", password="secret123", inviteCode="FIRSTBEER")

        resp = client.patch("/api/me", json={"displayName": "Ally", "beerFact": "Prefers stouts"})
        assert resp.status_code == 200, resp.text
        user = resp.json()["user"]
        assert user["display_name"] == "Ally"
        assert user["beer_fact"] == "Prefers stouts"

        cleared = client.patch("/api/me", json={"beerFact": ""})
        assert cleared.status_code == 200, cleared.text
        assert cleared.json()["user"]["beer_fact"] is None
        assert cleared.json()["user"]["display_name"] == "Ally"

        too_long = client.patch("/api/me", json={"beerFact": "x" * 281})
        assert too_long.status_code == 400, too_long.text
        assert too_long.json() == {"detail": "beer_fact_too_long"}

        blank_name = client.patch("/api/me", json={"displayName": "   "})
        assert blank_name.status_code == 400, blank_name.text


def test_malformed_body_returns_400_invalid_input() -> None:
    with TestClient(app) as client:
        resp = client.post("/api/login", json={"username": ["not", "a", "string"]})
        assert resp.status_code == 400, resp.text
        assert resp.json() == {"detail": "invalid_input"}
