from __future__ import annotations

import logging

from beertracker.core import security as core_security
from beertracker.services.errors import AlreadyUsed, Conflict, InvalidInput, NotFound
from beertracker.services.ledger import InviteRecord, LedgerStore


logger = logging.getLogger(__name__)

_CREATE_ATTEMPTS = 5

# Matches the width of invites.code.
INVITE_CODE_MAX_LENGTH = 50


def normalize_invite_code(raw: str) -> str:
    """Upper-case a caller-chosen code and check it fits the invites table."""
    code = raw.strip().upper()
    if code == "":
        raise InvalidInput("invite_code_required")
    if len(code) > INVITE_CODE_MAX_LENGTH or any(ch.isspace() for ch in code):
        raise InvalidInput("invite_code_invalid")
    return code


class InviteManager:
    """Single-use invite codes; an invite's admin grant is fixed at creation."""

    def __init__(self, ledger: LedgerStore):
        self._ledger: LedgerStore = ledger

    def is_valid(self, code: str) -> bool:
        if code.strip() == "":
            return False
        inv = self._ledger.get_invite(code)
        return inv is not None and not inv.is_used

    def admin_grant(self, code: str) -> bool:
        """Read the grant of an unused invite without touching it.

        Raises ``NotFound`` for unknown codes and ``AlreadyUsed`` for spent ones.
        """
        inv = self._ledger.get_invite(code)
        if inv is None:
            raise NotFound("invite_code_invalid")
        if inv.is_used:
            raise AlreadyUsed("invite_code_used")
        return inv.is_admin

    def consume(self, code: str, consuming_user_id: str) -> bool:
        return self._ledger.consume_invite(code, consuming_user_id)

    def create(self, code: str, creator_user_id: str | None) -> InviteRecord:
        code = normalize_invite_code(code)
        return self._ledger.insert_invite(code=code, created_by_id=creator_user_id, is_admin=False)

    def create_random(self, creator_user_id: str | None) -> InviteRecord:
        for _ in range(_CREATE_ATTEMPTS):
            try:
                return self.create(core_security.new_invite_code(), creator_user_id)
            except Conflict:
                continue
        logger.error("failed to generate a unique invite code after %d attempts", _CREATE_ATTEMPTS)
        raise Conflict("invite_code_generation_failed")


def invite_link(code: str, *, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/?invite={code}"
