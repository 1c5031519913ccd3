from __future__ import annotations

import logging
from datetime import datetime, timedelta

from beertracker.core import security as core_security
from beertracker.core.email import email_local_part, looks_like_email, normalize_email
from beertracker.db.models import utcnow
from beertracker.metrics.prometheus import record_registration
from beertracker.services.errors import (
    AlreadyUsed,
    Conflict,
    InvalidInput,
    NotFound,
    Unauthenticated,
)
from beertracker.services.invites import InviteManager
from beertracker.services.ledger import LedgerStore, UserRecord


logger = logging.getLogger(__name__)

USERNAME_MAX_LENGTH = 50
DISPLAY_NAME_MAX_LENGTH = 100
BEER_FACT_MAX_LENGTH = 280

# Verified against when the login is unknown so both paths cost one PBKDF2 run.
_DUMMY_PASSWORD_HASH = core_security.hash_password("not-a-real-password")


def login_credential(username: str | None, email: str | None) -> tuple[str | None, str | None]:
    """Return ``(username, email)`` with exactly one set.

    An email typed into the username field is treated as an email.
    """
    raw_email = (email or "").strip()
    raw_username = (username or "").strip()
    if raw_email:
        if not looks_like_email(raw_email):
            raise InvalidInput("invalid_email")
        return None, normalize_email(raw_email)
    if raw_username:
        if looks_like_email(raw_username):
            return None, normalize_email(raw_username)
        if len(raw_username) > USERNAME_MAX_LENGTH or any(ch.isspace() for ch in raw_username):
            raise InvalidInput("invalid_username")
        return raw_username, None
    raise InvalidInput("missing_fields")


def registration_credentials(
    username: str | None, email: str | None
) -> tuple[str | None, str | None]:
    """Like :func:`login_credential`, but keeps both when both are given."""
    raw_email = (email or "").strip()
    raw_username = (username or "").strip()
    if not (raw_email and raw_username):
        return login_credential(username, email)
    if not looks_like_email(raw_email):
        raise InvalidInput("invalid_email")
    if (
        looks_like_email(raw_username)
        or len(raw_username) > USERNAME_MAX_LENGTH
        or any(ch.isspace() for ch in raw_username)
    ):
        raise InvalidInput("invalid_username")
    return raw_username, normalize_email(raw_email)


def normalize_display_name(raw: str | None) -> str | None:
    if raw is None:
        return None
    name = raw.strip()
    if name == "":
        return None
    if len(name) > DISPLAY_NAME_MAX_LENGTH:
        raise InvalidInput("display_name_too_long")
    return name


class AccountService:
    def __init__(self, ledger: LedgerStore, invites: InviteManager):
        self._ledger: LedgerStore = ledger
        self._invites: InviteManager = invites

    def register(
        self,
        *,
        username: str | None,
        email: str | None,
        display_name: str | None,
        password: str | None,
        invite_code: str | None,
    ) -> UserRecord:
        code = (invite_code or "").strip()
        if code == "" or not password:
            raise InvalidInput("missing_fields")
        login_username, login_email = registration_credentials(username, email)
        try:
            core_security.validate_password_policy(password)
        except ValueError as exc:
            raise InvalidInput("invalid_password") from exc
        name = normalize_display_name(display_name)
        if name is None:
            name = login_username if login_username is not None else email_local_part(login_email or "")

        # The grant is read before anything is written; user creation and
        # invite consumption then commit together.
        try:
            is_admin = self._invites.admin_grant(code)
        except (NotFound, AlreadyUsed) as exc:
            raise InvalidInput(exc.reason) from exc

        if login_username is not None and self._ledger.find_user(username=login_username) is not None:
            raise InvalidInput("username_taken")
        if login_email is not None and self._ledger.find_user(email=login_email) is not None:
            raise InvalidInput("username_taken")

        try:
            user = self._ledger.create_user(
                username=login_username,
                email=login_email,
                display_name=name,
                password_hash=core_security.hash_password(password),
                is_admin=is_admin,
                invite_code=code,
            )
        except Conflict as exc:
            raise InvalidInput("username_taken") from exc
        except (NotFound, AlreadyUsed) as exc:
            raise InvalidInput(exc.reason) from exc

        record_registration(is_admin=user.is_admin)
        logger.info("user registered user_id=%s admin=%s", user.id, user.is_admin)
        return user

    def authenticate(self, *, username: str | None, email: str | None, password: str | None) -> UserRecord:
        if not password:
            raise InvalidInput("missing_fields")
        try:
            login_username, login_email = login_credential(username, email)
        except InvalidInput as exc:
            if exc.reason == "missing_fields":
                raise
            raise Unauthenticated("invalid_credentials") from exc

        user = self._ledger.find_user(username=login_username, email=login_email)
        if user is None:
            _ = core_security.verify_password(password, _DUMMY_PASSWORD_HASH)
            raise Unauthenticated("invalid_credentials")
        if not core_security.verify_password(password, user.password_hash):
            raise Unauthenticated("invalid_credentials")
        return user

    def update_profile(
        self, user_id: str, *, display_name: str | None, beer_fact: str | None
    ) -> UserRecord:
        name: str | None = None
        if display_name is not None:
            name = normalize_display_name(display_name)
            if name is None:
                raise InvalidInput("display_name_required")
        fact: str | None = None
        if beer_fact is not None:
            fact = beer_fact.strip()
            if len(fact) > BEER_FACT_MAX_LENGTH:
                raise InvalidInput("beer_fact_too_long")
        return self._ledger.update_profile(user_id, display_name=name, beer_fact=fact)

    def issue_reset_code(
        self, *, username: str | None, email: str | None, ttl_minutes: int
    ) -> tuple[str, datetime]:
        login_username, login_email = login_credential(username, email)
        user = self._ledger.find_user(username=login_username, email=login_email)
        if user is None:
            raise NotFound("user_not_found")
        code = core_security.new_password_reset_code()
        expires_at = utcnow() + timedelta(minutes=int(ttl_minutes))
        self._ledger.insert_reset_code(
            user_id=user.id,
            code_hash=core_security.hash_password_reset_code(code),
            expires_at=expires_at,
        )
        logger.info("password reset code issued user_id=%s", user.id)
        return code, expires_at

    def reset_password(
        self,
        *,
        username: str | None,
        email: str | None,
        code: str | None,
        new_password: str | None,
    ) -> None:
        if not (code or "").strip() or not new_password:
            raise InvalidInput("missing_fields")
        try:
            core_security.validate_password_policy(new_password)
        except ValueError as exc:
            raise InvalidInput("invalid_password") from exc
        try:
            login_username, login_email = login_credential(username, email)
        except InvalidInput as exc:
            raise InvalidInput("invalid_reset_code") from exc

        user = self._ledger.find_user(username=login_username, email=login_email)
        if user is None:
            raise InvalidInput("invalid_reset_code")
        self._ledger.redeem_reset_code(
            user_id=user.id,
            code_hash=core_security.hash_password_reset_code(code or ""),
            password_hash=core_security.hash_password(new_password),
        )
        logger.info("password reset redeemed user_id=%s", user.id)
