from __future__ import annotations

from datetime import datetime, timedelta

from beertracker.core import security as core_security
from beertracker.db.models import utcnow
from beertracker.services.errors import NotFound
from beertracker.services.ledger import LedgerStore


class SessionManager:
    """Opaque session tokens; only their SHA-256 digest is stored."""

    def __init__(self, ledger: LedgerStore, *, ttl_days: int):
        self._ledger: LedgerStore = ledger
        self._ttl: timedelta = timedelta(days=int(ttl_days))

    def create(self, user_id: str) -> str:
        token = core_security.new_session_token()
        _ = self._ledger.insert_session(
            token_hash=core_security.hash_session_token(token),
            user_id=user_id,
            expires_at=utcnow() + self._ttl,
        )
        return token

    def resolve(self, token: str, *, now: datetime | None = None) -> str:
        if token == "":
            raise NotFound("session_not_found")
        row = self._ledger.get_session(core_security.hash_session_token(token))
        if row is None:
            raise NotFound("session_not_found")
        if row.expires_at <= (now or utcnow()):
            raise NotFound("session_expired")
        return row.user_id

    def revoke(self, token: str) -> None:
        if token == "":
            return
        self._ledger.delete_session(core_security.hash_session_token(token))
