# pyright: reportMissingImports=false

from __future__ import annotations

import asyncio
import base64
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import cast

from fastapi.testclient import TestClient
from sqlalchemy import func, select

from beertracker.api.deps import get_drink_verifier, get_roast_writer
from beertracker.core.config import settings
from beertracker.db.models import DrinkEvent
from beertracker.db.session import SessionLocal
from beertracker.main import app
from beertracker.services.drinks import FAILED_CLOSED_MESSAGE, FAILED_OPEN_MESSAGE
from beertracker.services.errors import CollaboratorUnavailable
from beertracker.services.ledger import LedgerStore
from beertracker.services.verification import VerificationVerdict


_PNG_B64 = base64.b64encode(b"\x89PNG\r\n\x1a\n" + b"\x00" * 56).decode("ascii")


class _ScriptedVerifier:
    def __init__(
        self,
        *,
        accepted: bool = True,
        message: str = "Looks like beer.",
        error: Exception | None = None,
        delay_s: float = 0.0,
    ):
        self.accepted: bool = accepted
        self.message: str = message
        self.error: Exception | None = error
        self.delay_s: float = delay_s
        self.calls: list[tuple[str, str]] = []

    async def verify(self, *, image_data_url: str, label: str) -> VerificationVerdict:
        self.calls.append((image_data_url, label))
        if self.delay_s > 0:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return VerificationVerdict(accepted=self.accepted, message=self.message)


class _BrokenRoastWriter:
    async def write(self, *, display_name: str, label: str, count: int, remaining: int) -> str:
        raise CollaboratorUnavailable("roast_down")


def _use_verifier(verifier: _ScriptedVerifier) -> None:
    app.dependency_overrides[get_drink_verifier] = lambda: verifier


def _register(client: TestClient, username: str, invite_code: str = "FIRSTBEER") -> dict[str, object]:
    _ = LedgerStore(SessionLocal).insert_invite(code=invite_code, created_by_id=None)
    resp = client.post(
        "/api/register",
        json={"username": username, "password": "secret123", "inviteCode": invite_code},
    )
    assert resp.status_code == 200, resp.text
    return cast(dict[str, object], resp.json()["user"])


def _drink(client: TestClient, **body: object) -> dict[str, object]:
    resp = client.post("/api/drink", json=body)
    assert resp.status_code == 200, resp.text
    return cast(dict[str, object], resp.json())


def _events() -> list[DrinkEvent]:
    with SessionLocal() as db:
        return list(db.execute(select(DrinkEvent).order_by(DrinkEvent.id.asc())).scalars())


def test_first_beer_scenario() -> None:
    verifier = _ScriptedVerifier(accepted=True)
    _use_verifier(verifier)

    with TestClient(app) as client:
        user = _register(client, "alice", "FIRSTBEER")
        assert user["beer_count"] == 0

        first = _drink(client, beerType="IPA", photo=_PNG_B64)
        assert first["success"] is True
        assert first["verified"] is True
        assert first["beer_count"] == 1
        assert first["verificationMessage"] == "Looks like beer."

        events = _events()
        assert len(events) == 1
        assert events[0].beer_type == "IPA"
        assert events[0].user_id == user["id"]
        assert events[0].username == "alice"

        second = _drink(client, beerType="IPA", photo=_PNG_B64)
        assert second["beer_count"] == 2

        assert client.get("/api/me").json()["user"]["beer_count"] == 2

    assert len(verifier.calls) == 2
    image_url, label = verifier.calls[0]
    assert image_url.startswith("data:image/png;base64,")
    assert label == "IPA"


def test_drink_requires_session() -> None:
    with TestClient(app) as client:
        resp = client.post("/api/drink", json={"beerType": "IPA"})
        assert resp.status_code == 401, resp.text
    assert _events() == []


def test_drink_without_photo_is_counted_and_gets_flavor_text() -> None:
    with TestClient(app) as client:
        _ = _register(client, "alice")
        body = _drink(client, beerType="  Pilsner  ")

    assert body["success"] is True
    assert body["verified"] is True
    assert body["beer_count"] == 1
    assert "verificationMessage" not in body
    roast = body.get("aiRoast")
    assert isinstance(roast, str) and "alice" in roast

    events = _events()
    assert [e.beer_type for e in events] == ["Pilsner"]


def test_blank_or_missing_label_is_rejected_before_any_mutation() -> None:
    verifier = _ScriptedVerifier()
    _use_verifier(verifier)

    with TestClient(app) as client:
        _ = _register(client, "alice")
        for body in ({"beerType": "   "}, {}, {"beerType": ""}):
            resp = client.post("/api/drink", json=body)
            assert resp.status_code == 400, resp.text
            assert resp.json() == {"detail": "beer_type_required"}

        too_long = client.post("/api/drink", json={"beerType": "x" * 101})
        assert too_long.status_code == 400, too_long.text
        assert too_long.json() == {"detail": "beer_type_too_long"}

        assert client.get("/api/me").json()["user"]["beer_count"] == 0

    assert verifier.calls == []
    assert _events() == []


def test_rejected_drink_never_increments() -> None:
    verifier = _ScriptedVerifier(accepted=False, message="That is a cat.")
    _use_verifier(verifier)

    with TestClient(app) as client:
        _ = _register(client, "alice")
        body = _drink(client, beerType="IPA", photo=_PNG_B64)
        assert body["success"] is False
        assert body["verified"] is False
        assert body["beer_count"] == 0
        assert body["verificationMessage"] == "That is a cat."
        assert "aiRoast" not in body

        assert client.get("/api/me").json()["user"]["beer_count"] == 0

    assert _events() == []


def test_photo_required_by_configuration() -> None:
    prev = settings.drink_photo_required
    settings.drink_photo_required = True
    try:
        _use_verifier(_ScriptedVerifier())
        with TestClient(app) as client:
            _ = _register(client, "alice")
            missing = client.post("/api/drink", json={"beerType": "IPA"})
            assert missing.status_code == 400, missing.text
            assert missing.json() == {"detail": "photo_required"}

            ok = _drink(client, beerType="IPA", photo=f"data:image/png;base64,{_PNG_B64}")
            assert ok["beer_count"] == 1
    finally:
        settings.drink_photo_required = prev


def test_invalid_or_oversized_photo_returns_400() -> None:
    verifier = _ScriptedVerifier()
    _use_verifier(verifier)

    prev = settings.drink_photo_max_bytes
    with TestClient(app) as client:
        _ = _register(client, "alice")

        not_b64 = client.post("/api/drink", json={"beerType": "IPA", "photo": "%%%not-base64%%%"})
        assert not_b64.status_code == 400, not_b64.text
        assert not_b64.json() == {"detail": "photo_invalid"}

        not_image = base64.b64encode(b"just some text, not an image").decode("ascii")
        text_photo = client.post("/api/drink", json={"beerType": "IPA", "photo": not_image})
        assert text_photo.status_code == 400, text_photo.text
        assert text_photo.json() == {"detail": "photo_invalid"}

        settings.drink_photo_max_bytes = 16
        try:
            big = client.post("/api/drink", json={"beerType": "IPA", "photo": _PNG_B64})
            assert big.status_code == 400, big.text
            assert big.json() == {"detail": "photo_too_large"}
        finally:
            settings.drink_photo_max_bytes = prev

    assert verifier.calls == []
    assert _events() == []


def test_collaborator_failure_fail_closed_rejects() -> None:
    _use_verifier(_ScriptedVerifier(error=CollaboratorUnavailable("boom")))
    prev = settings.verification_failure_policy
    settings.verification_failure_policy = "closed"
    try:
        with TestClient(app) as client:
            _ = _register(client, "alice")
            body = _drink(client, beerType="IPA", photo=_PNG_B64)
    finally:
        settings.verification_failure_policy = prev

    assert body["success"] is False
    assert body["verified"] is False
    assert body["beer_count"] == 0
    assert body["verificationMessage"] == FAILED_CLOSED_MESSAGE
    assert _events() == []


def test_collaborator_failure_fail_open_accepts() -> None:
    _use_verifier(_ScriptedVerifier(error=CollaboratorUnavailable("boom")))
    prev = settings.verification_failure_policy
    settings.verification_failure_policy = "open"
    try:
        with TestClient(app) as client:
            _ = _register(client, "alice")
            body = _drink(client, beerType="IPA", photo=_PNG_B64)
    finally:
        settings.verification_failure_policy = prev

    assert body["success"] is True
    assert body["verified"] is True
    assert body["beer_count"] == 1
    assert body["verificationMessage"] == FAILED_OPEN_MESSAGE
    assert len(_events()) == 1


def test_unexpected_verifier_error_follows_the_failure_policy() -> None:
    prev = settings.verification_failure_policy
    try:
        settings.verification_failure_policy = "closed"
        _use_verifier(_ScriptedVerifier(error=RuntimeError("verifier bug")))
        with TestClient(app) as client:
            _ = _register(client, "alice", "CLOSED")
            closed = _drink(client, beerType="IPA", photo=_PNG_B64)
        assert closed["success"] is False
        assert closed["verificationMessage"] == FAILED_CLOSED_MESSAGE
        assert _events() == []

        settings.verification_failure_policy = "open"
        with TestClient(app) as client:
            _ = _register(client, "bob", "OPEN")
            opened = _drink(client, beerType="IPA", photo=_PNG_B64)
        assert opened["success"] is True
        assert opened["beer_count"] == 1
        assert opened["verificationMessage"] == FAILED_OPEN_MESSAGE
    finally:
        settings.verification_failure_policy = prev

    assert len(_events()) == 1

def test_verification_timeout_is_a_collaborator_failure() -> None:
    _use_verifier(_ScriptedVerifier(delay_s=5.0))
    prev_policy = settings.verification_failure_policy
    prev_timeout = settings.verification_timeout_seconds
    settings.verification_failure_policy = "closed"
    settings.verification_timeout_seconds = 0.05
    try:
        with TestClient(app) as client:
            _ = _register(client, "alice")
            body = _drink(client, beerType="IPA", photo=_PNG_B64)
    finally:
        settings.verification_failure_policy = prev_policy
        settings.verification_timeout_seconds = prev_timeout

    assert body["success"] is False
    assert body["beer_count"] == 0
    assert _events() == []


def test_flavor_text_failure_never_blocks_the_drink() -> None:
    app.dependency_overrides[get_roast_writer] = lambda: _BrokenRoastWriter()
    with TestClient(app) as client:
        _ = _register(client, "alice")
        body = _drink(client, beerType="IPA")

    assert body["success"] is True
    assert body["beer_count"] == 1
    assert "aiRoast" not in body
    assert len(_events()) == 1


def test_concurrent_increments_in_the_ledger_are_never_lost() -> None:
    ledger = LedgerStore(SessionLocal)
    user = ledger.create_user(
        username="thirsty",
        email=None,
        display_name="Thirsty",
        password_hash="not-a-hash",
        is_admin=False,
    )

    n = 20
    barrier = threading.Barrier(n)

    def drink(_: int) -> int:
        _ = barrier.wait(timeout=30)
        return ledger.record_drink(user.id, "Lager")

    with ThreadPoolExecutor(max_workers=n) as ex:
        counts = list(ex.map(drink, range(n)))

    assert sorted(counts) == list(range(1, n + 1))
    refreshed = ledger.get_user(user.id)
    assert refreshed is not None
    assert refreshed.beer_count == n

    with SessionLocal() as db:
        events = db.execute(select(func.count()).select_from(DrinkEvent)).scalar_one()
    assert events == n


def test_concurrent_drink_requests_from_one_user() -> None:
    app.dependency_overrides[get_roast_writer] = lambda: None
    with TestClient(app) as client:
        _ = _register(client, "alice")
        token = client.cookies.get(settings.session_cookie_name)
        assert token

    n = 8
    barrier = threading.Barrier(n)

    def submit(_: int) -> int:
        with TestClient(app, cookies={settings.session_cookie_name: token}) as c:
            _ = barrier.wait(timeout=30)
            resp = c.post("/api/drink", json={"beerType": "IPA"})
            assert resp.status_code == 200, resp.text
            return cast(int, resp.json()["beer_count"])

    with ThreadPoolExecutor(max_workers=n) as ex:
        counts = list(ex.map(submit, range(n)))

    assert sorted(counts) == list(range(1, n + 1))
    assert len(_events()) == n
