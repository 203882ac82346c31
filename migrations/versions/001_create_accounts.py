"""Create accounts table with verification, reset, edit and delete triples.

Revision ID: 001
Revises:
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


revision = "001"
down_revision = None

account_role = sa.Enum("user", "admin", name="role")


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("account_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("email", sa.String(320), unique=True, nullable=False),
        sa.Column("username", sa.String(64), unique=True, nullable=False),
        sa.Column("document", sa.String(32), unique=True, nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", account_role, nullable=False, server_default="user"),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("verification_code", sa.String(6), nullable=True),
        sa.Column("verification_token", sa.String(128), unique=True, nullable=True),
        sa.Column("verification_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reset_code", sa.String(6), nullable=True),
        sa.Column("reset_token", sa.String(128), unique=True, nullable=True),
        sa.Column("reset_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("edit_token", sa.String(128), unique=True, nullable=True),
        sa.Column("edit_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delete_token", sa.String(128), unique=True, nullable=True),
        sa.Column("delete_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    op.drop_table("accounts")
    account_role.drop(op.get_bind(), checkfirst=True)
