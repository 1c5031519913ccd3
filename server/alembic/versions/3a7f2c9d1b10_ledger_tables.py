"""ledger tables

Revision ID: 3a7f2c9d1b10
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "3a7f2c9d1b10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    _ = op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("username", sa.String(length=50), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("beer_count", sa.Integer(), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("beer_fact", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("beer_count >= 0", name="ck_users_beer_count_ge_0"),
        sa.CheckConstraint("username IS NOT NULL OR email IS NOT NULL", name="ck_users_has_login"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name=op.f("uq_users_username")),
        sa.UniqueConstraint("email", name=op.f("uq_users_email")),
    )

    _ = op.create_table(
        "invites",
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("created_by_id", sa.String(length=36), nullable=True),
        sa.Column("used_by_id", sa.String(length=36), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("used_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["used_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("code"),
    )
    op.create_index(op.f("ix_invites_created_by_id"), "invites", ["created_by_id"], unique=False)
    op.create_index(op.f("ix_invites_used_by_id"), "invites", ["used_by_id"], unique=False)
    op.create_index(op.f("ix_invites_used_at"), "invites", ["used_at"], unique=False)

    _ = op.create_table(
        "sessions",
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("token_hash"),
    )
    op.create_index(op.f("ix_sessions_user_id"), "sessions", ["user_id"], unique=False)

    _ = op.create_table(
        "drinks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("beer_type", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_drinks_user_id"), "drinks", ["user_id"], unique=False)
    op.create_index(op.f("ix_drinks_created_at"), "drinks", ["created_at"], unique=False)

    _ = op.create_table(
        "password_reset_codes",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("code_hash", sa.String(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_password_reset_codes_user_id"), "password_reset_codes", ["user_id"], unique=False
    )
    op.create_index(
        op.f("ix_password_reset_codes_code_hash"), "password_reset_codes", ["code_hash"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_password_reset_codes_code_hash"), table_name="password_reset_codes")
    op.drop_index(op.f("ix_password_reset_codes_user_id"), table_name="password_reset_codes")
    op.drop_table("password_reset_codes")
    op.drop_index(op.f("ix_drinks_created_at"), table_name="drinks")
    op.drop_index(op.f("ix_drinks_user_id"), table_name="drinks")
    op.drop_table("drinks")
    op.drop_index(op.f("ix_sessions_user_id"), table_name="sessions")
    op.drop_table("sessions")
    op.drop_index(op.f("ix_invites_used_at"), table_name="invites")
    op.drop_index(op.f("ix_invites_used_by_id"), table_name="invites")
    op.drop_index(op.f("ix_invites_created_by_id"), table_name="invites")
    op.drop_table("invites")
    op.drop_table("users")
