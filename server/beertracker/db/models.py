# pyright: reportMissingImports=false
# pyright: reportImplicitOverride=false
# pyright: reportIncompatibleVariableOverride=false
from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from beertracker.db.base import Base


def _uuid_str() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class User(Base):
    __tablename__: str = "users"
    __table_args__: tuple[object, ...] = (
        CheckConstraint("beer_count >= 0", name="ck_users_beer_count_ge_0"),
        CheckConstraint(
            "username IS NOT NULL OR email IS NOT NULL",
            name="ck_users_has_login",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    username: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    # Stored normalized (lower-cased), so uniqueness is case-insensitive.
    email: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    beer_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    beer_fact: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(), default=utcnow, nullable=False)

    sessions: Mapped[list["UserSession"]] = relationship(
        "UserSession",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    drinks: Mapped[list["DrinkEvent"]] = relationship(
        "DrinkEvent",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    password_reset_codes: Mapped[list["PasswordResetCode"]] = relationship(
        "PasswordResetCode",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Invite(Base):
    __tablename__: str = "invites"

    code: Mapped[str] = mapped_column(String(50), primary_key=True)
    created_by_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    used_by_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(), default=utcnow, nullable=False)
    # used_at survives deletion of the consuming user, so a used invite stays used.
    used_at: Mapped[datetime | None] = mapped_column(DateTime(), index=True, nullable=True)


class UserSession(Base):
    __tablename__: str = "sessions"

    token_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(), default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(), nullable=False)

    user: Mapped[User] = relationship("User", back_populates="sessions")


class DrinkEvent(Base):
    __tablename__: str = "drinks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    beer_type: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(), default=utcnow, index=True, nullable=False
    )

    user: Mapped[User] = relationship("User", back_populates="drinks")


class PasswordResetCode(Base):
    __tablename__: str = "password_reset_codes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    code_hash: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(), default=utcnow, nullable=False)
