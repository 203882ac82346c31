"""Account model: identity, credential, role and the four workflow triples."""

import enum
import uuid
from datetime import UTC, date, datetime

from sqlalchemy import Boolean, Date, Enum, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from propertyhub.database import Base, UTCDateTime


class Role(enum.Enum):
    USER = "user"
    ADMIN = "admin"


class Account(Base):
    __tablename__ = "accounts"

    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(
        String(320), unique=True, nullable=False
    )
    username: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False
    )
    document: Mapped[str | None] = mapped_column(
        String(32), unique=True, nullable=True,
        doc="National id / identity document number",
    )
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=Role.USER,
    )

    # Email verification
    verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    verification_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    verification_token: Mapped[str | None] = mapped_column(
        String(128), unique=True, nullable=True
    )
    verification_expires_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Password reset
    reset_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    reset_token: Mapped[str | None] = mapped_column(
        String(128), unique=True, nullable=True
    )
    reset_expires_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Profile edit confirmation
    edit_token: Mapped[str | None] = mapped_column(
        String(128), unique=True, nullable=True
    )
    edit_expires_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Account deletion confirmation
    delete_token: Mapped[str | None] = mapped_column(
        String(128), unique=True, nullable=True
    )
    delete_expires_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
