# pyright: reportMissingImports=false
# pyright: reportUnknownMemberType=false
# pyright: reportAttributeAccessIssue=false
"""Transactional store for users, invites, sessions and drink events.

Every mutation of the ledger goes through :class:`LedgerStore`. Each public
method runs in its own database transaction and either commits completely or
rolls back; callers only ever see immutable snapshot records, never ORM rows.

The atomic operations are expressed as single SQL statements evaluated by the
database rather than read-modify-write in Python:

* invite consumption is a compare-and-set ``UPDATE ... WHERE used_at IS NULL``,
* a drink is ``UPDATE users SET beer_count = beer_count + 1`` plus the event
  insert in the same transaction,
* the admin reset zeroes every count and deletes every event in one
  transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import cast

from sqlalchemy import delete, func, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from beertracker.db.models import (
    DrinkEvent,
    Invite,
    PasswordResetCode,
    User,
    UserSession,
    utcnow,
)
from beertracker.services.errors import (
    AlreadyUsed,
    Conflict,
    InvalidInput,
    LedgerError,
    NotFound,
    StoreFailure,
)


logger = logging.getLogger(__name__)

_NO_SYNC = {"synchronize_session": False}


@dataclass(frozen=True)
class UserRecord:
    id: str
    username: str | None
    email: str | None
    display_name: str
    password_hash: str
    beer_count: int
    is_admin: bool
    beer_fact: str | None
    created_at: datetime


@dataclass(frozen=True)
class InviteRecord:
    code: str
    created_by_id: str | None
    used_by_id: str | None
    is_admin: bool
    created_at: datetime
    used_at: datetime | None

    @property
    def is_used(self) -> bool:
        return self.used_at is not None or self.used_by_id is not None


@dataclass(frozen=True)
class SessionRecord:
    token_hash: str
    user_id: str
    created_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class DrinkRecord:
    id: int
    user_id: str
    username: str
    beer_type: str
    created_at: datetime


@dataclass(frozen=True)
class LeaderboardRow:
    display_name: str
    beer_count: int
    is_admin: bool


def _user_record(u: User) -> UserRecord:
    return UserRecord(
        id=u.id,
        username=u.username,
        email=u.email,
        display_name=u.display_name,
        password_hash=u.password_hash,
        beer_count=int(u.beer_count),
        is_admin=bool(u.is_admin),
        beer_fact=u.beer_fact,
        created_at=u.created_at,
    )


def _invite_record(i: Invite) -> InviteRecord:
    return InviteRecord(
        code=i.code,
        created_by_id=i.created_by_id,
        used_by_id=i.used_by_id,
        is_admin=bool(i.is_admin),
        created_at=i.created_at,
        used_at=i.used_at,
    )


def _drink_record(d: DrinkEvent) -> DrinkRecord:
    return DrinkRecord(
        id=int(d.id),
        user_id=d.user_id,
        username=d.username,
        beer_type=d.beer_type,
        created_at=d.created_at,
    )


def _rowcount(result: object) -> int:
    return int(cast(CursorResult[object], result).rowcount)


class LedgerStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory: Callable[[], Session] = session_factory

    @contextmanager
    def _tx(self, *, conflict_reason: str = "conflict") -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except LedgerError:
            db.rollback()
            raise
        except IntegrityError as exc:
            db.rollback()
            raise Conflict(conflict_reason) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("ledger transaction failed")
            raise StoreFailure() from exc
        finally:
            db.close()

    @contextmanager
    def _read(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as exc:
            logger.exception("ledger read failed")
            raise StoreFailure() from exc
        finally:
            db.close()

    # Users

    def get_user(self, user_id: str) -> UserRecord | None:
        with self._read() as db:
            u = db.get(User, user_id)
            return _user_record(u) if u is not None else None

    def find_user(self, *, username: str | None = None, email: str | None = None) -> UserRecord | None:
        if email is not None:
            stmt = select(User).where(User.email == email)
        elif username is not None:
            stmt = select(User).where(User.username == username)
        else:
            return None
        with self._read() as db:
            u = db.execute(stmt).scalar_one_or_none()
            return _user_record(u) if u is not None else None

    def create_user(
        self,
        *,
        username: str | None,
        email: str | None,
        display_name: str,
        password_hash: str,
        is_admin: bool,
        invite_code: str | None = None,
    ) -> UserRecord:
        """Insert a user and, when given, consume ``invite_code`` for it.

        Both happen in one transaction: if the invite was consumed by someone
        else in the meantime the new user is rolled back and ``AlreadyUsed``
        is raised.
        """
        now = utcnow()
        with self._tx(conflict_reason="username_taken") as db:
            user = User(
                username=username,
                email=email,
                display_name=display_name,
                password_hash=password_hash,
                beer_count=0,
                is_admin=bool(is_admin),
                created_at=now,
            )
            db.add(user)
            db.flush()
            if invite_code is not None:
                _ = self._consume_invite(db, code=invite_code, user_id=user.id, now=now)
            return _user_record(user)

    def update_profile(
        self,
        user_id: str,
        *,
        display_name: str | None = None,
        beer_fact: str | None = None,
    ) -> UserRecord:
        with self._tx() as db:
            u = db.get(User, user_id)
            if u is None:
                raise NotFound("user_not_found")
            if display_name is not None:
                u.display_name = display_name
            if beer_fact is not None:
                u.beer_fact = beer_fact or None
            db.flush()
            return _user_record(u)

    # Invites

    def get_invite(self, code: str) -> InviteRecord | None:
        with self._read() as db:
            inv = db.get(Invite, code)
            return _invite_record(inv) if inv is not None else None

    def insert_invite(
        self, *, code: str, created_by_id: str | None, is_admin: bool = False
    ) -> InviteRecord:
        with self._tx(conflict_reason="invite_code_taken") as db:
            if db.get(Invite, code) is not None:
                raise Conflict("invite_code_taken")
            inv = Invite(
                code=code,
                created_by_id=created_by_id,
                used_by_id=None,
                is_admin=bool(is_admin),
                created_at=utcnow(),
                used_at=None,
            )
            db.add(inv)
            db.flush()
            return _invite_record(inv)

    def consume_invite(self, code: str, user_id: str) -> bool:
        with self._tx() as db:
            return self._consume_invite(db, code=code, user_id=user_id, now=utcnow())

    def _consume_invite(self, db: Session, *, code: str, user_id: str, now: datetime) -> bool:
        result = db.execute(
            update(Invite)
            .where(
                Invite.code == code,
                Invite.used_at.is_(None),
                Invite.used_by_id.is_(None),
            )
            .values(used_by_id=user_id, used_at=now)
            .execution_options(**_NO_SYNC)
        )
        if _rowcount(result) != 1:
            if db.get(Invite, code) is None:
                raise NotFound("invite_code_invalid")
            raise AlreadyUsed("invite_code_used")

        is_admin = db.execute(select(Invite.is_admin).where(Invite.code == code)).scalar_one()
        logger.info("invite consumed user_id=%s admin_grant=%s", user_id, bool(is_admin))
        return bool(is_admin)

    def list_invites(self, *, limit: int, offset: int) -> list[InviteRecord]:
        stmt = (
            select(Invite)
            .order_by(Invite.created_at.desc(), Invite.code.asc())
            .offset(offset)
            .limit(limit)
        )
        with self._read() as db:
            return [_invite_record(i) for i in db.execute(stmt).scalars().all()]

    def ensure_admin_invite(self, code: str) -> tuple[InviteRecord, bool]:
        """Return an unused admin invite, creating ``code`` if none exists."""
        with self._tx(conflict_reason="invite_code_taken") as db:
            existing = (
                db.execute(
                    select(Invite)
                    .where(Invite.is_admin.is_(True), Invite.used_at.is_(None))
                    .order_by(Invite.created_at.asc())
                    .limit(1)
                )
                .scalars()
                .first()
            )
            if existing is not None:
                return _invite_record(existing), False
            if db.get(Invite, code) is not None:
                raise Conflict("invite_code_taken")
            inv = Invite(code=code, created_by_id=None, is_admin=True, created_at=utcnow())
            db.add(inv)
            db.flush()
            return _invite_record(inv), True

    def rotate_admins(self, new_code: str) -> tuple[int, InviteRecord]:
        """Delete every admin account and unused admin invite, then mint ``new_code``.

        Sessions and drink events of deleted admins cascade; invites they
        created or consumed keep existing with the reference nulled.
        """
        with self._tx(conflict_reason="invite_code_taken") as db:
            admin_ids = list(db.execute(select(User.id).where(User.is_admin.is_(True))).scalars())
            if admin_ids:
                _ = db.execute(
                    update(Invite)
                    .where(Invite.created_by_id.in_(admin_ids))
                    .values(created_by_id=None)
                    .execution_options(**_NO_SYNC)
                )
                _ = db.execute(
                    update(Invite)
                    .where(Invite.used_by_id.in_(admin_ids))
                    .values(used_by_id=None)
                    .execution_options(**_NO_SYNC)
                )
                _ = db.execute(
                    delete(DrinkEvent)
                    .where(DrinkEvent.user_id.in_(admin_ids))
                    .execution_options(**_NO_SYNC)
                )
                _ = db.execute(
                    delete(UserSession)
                    .where(UserSession.user_id.in_(admin_ids))
                    .execution_options(**_NO_SYNC)
                )
                _ = db.execute(
                    delete(User).where(User.id.in_(admin_ids)).execution_options(**_NO_SYNC)
                )
            _ = db.execute(
                delete(Invite)
                .where(Invite.is_admin.is_(True), Invite.used_at.is_(None))
                .execution_options(**_NO_SYNC)
            )
            db.flush()
            if db.get(Invite, new_code) is not None:
                raise Conflict("invite_code_taken")
            inv = Invite(code=new_code, created_by_id=None, is_admin=True, created_at=utcnow())
            db.add(inv)
            db.flush()
            logger.info("admin accounts rotated deleted=%d", len(admin_ids))
            return len(admin_ids), _invite_record(inv)

    # Sessions

    def insert_session(self, *, token_hash: str, user_id: str, expires_at: datetime) -> SessionRecord:
        now = utcnow()
        with self._tx() as db:
            if db.get(User, user_id) is None:
                raise NotFound("user_not_found")
            row = UserSession(
                token_hash=token_hash,
                user_id=user_id,
                created_at=now,
                expires_at=expires_at,
            )
            db.add(row)
            db.flush()
            return SessionRecord(
                token_hash=row.token_hash,
                user_id=row.user_id,
                created_at=row.created_at,
                expires_at=row.expires_at,
            )

    def get_session(self, token_hash: str) -> SessionRecord | None:
        with self._read() as db:
            row = db.get(UserSession, token_hash)
            if row is None:
                return None
            return SessionRecord(
                token_hash=row.token_hash,
                user_id=row.user_id,
                created_at=row.created_at,
                expires_at=row.expires_at,
            )

    def delete_session(self, token_hash: str) -> None:
        with self._tx() as db:
            _ = db.execute(
                delete(UserSession)
                .where(UserSession.token_hash == token_hash)
                .execution_options(**_NO_SYNC)
            )

    # Drinks

    def record_drink(self, user_id: str, beer_type: str) -> int:
        """Increment the user's count by one and append the event atomically."""
        with self._tx() as db:
            # The increment is the first statement so the write lock is taken
            # before anything is read inside this transaction.
            result = db.execute(
                update(User)
                .where(User.id == user_id)
                .values(beer_count=User.beer_count + 1)
                .execution_options(**_NO_SYNC)
            )
            if _rowcount(result) != 1:
                raise NotFound("user_not_found")

            row = db.execute(
                select(User.beer_count, User.display_name).where(User.id == user_id)
            ).one()
            new_count = int(row[0])
            db.add(
                DrinkEvent(
                    user_id=user_id,
                    username=str(row[1]),
                    beer_type=beer_type,
                    created_at=utcnow(),
                )
            )
            db.flush()
            return new_count

    def reset_drinks(self) -> None:
        """Zero every count and clear the event log as one unit."""
        with self._tx() as db:
            _ = db.execute(update(User).values(beer_count=0).execution_options(**_NO_SYNC))
            _ = db.execute(delete(DrinkEvent).execution_options(**_NO_SYNC))
        logger.info("drink ledger reset")

    def leaderboard(self) -> list[LeaderboardRow]:
        stmt = select(User.display_name, User.beer_count, User.is_admin).order_by(
            User.beer_count.desc(), User.created_at.asc(), User.id.asc()
        )
        with self._read() as db:
            return [
                LeaderboardRow(display_name=str(r[0]), beer_count=int(r[1]), is_admin=bool(r[2]))
                for r in db.execute(stmt).all()
            ]

    def total_beers(self) -> int:
        with self._read() as db:
            total = db.execute(select(func.coalesce(func.sum(User.beer_count), 0))).scalar_one()
            return int(total)

    def recent_drinks(self, limit: int) -> list[DrinkRecord]:
        if limit <= 0:
            return []
        stmt = select(DrinkEvent).order_by(DrinkEvent.id.desc()).limit(limit)
        with self._read() as db:
            return [_drink_record(d) for d in db.execute(stmt).scalars().all()]

    # Password reset codes

    def insert_reset_code(self, *, user_id: str, code_hash: str, expires_at: datetime) -> None:
        with self._tx() as db:
            if db.get(User, user_id) is None:
                raise NotFound("user_not_found")
            db.add(
                PasswordResetCode(
                    user_id=user_id,
                    code_hash=code_hash,
                    expires_at=expires_at,
                    used_at=None,
                    created_at=utcnow(),
                )
            )

    def redeem_reset_code(self, *, user_id: str, code_hash: str, password_hash: str) -> None:
        """Burn a live reset code, set the new password and drop all sessions."""
        now = utcnow()
        with self._tx() as db:
            result = db.execute(
                update(PasswordResetCode)
                .where(
                    PasswordResetCode.user_id == user_id,
                    PasswordResetCode.code_hash == code_hash,
                    PasswordResetCode.used_at.is_(None),
                    PasswordResetCode.expires_at > now,
                )
                .values(used_at=now)
                .execution_options(**_NO_SYNC)
            )
            if _rowcount(result) < 1:
                raise InvalidInput("invalid_reset_code")
            _ = db.execute(
                update(User)
                .where(User.id == user_id)
                .values(password_hash=password_hash)
                .execution_options(**_NO_SYNC)
            )
            _ = db.execute(
                delete(UserSession)
                .where(UserSession.user_id == user_id)
                .execution_options(**_NO_SYNC)
            )
