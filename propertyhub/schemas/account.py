"""Pydantic schemas for the account lifecycle endpoints, and the account view mapper."""

import re
import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from propertyhub.models.account import Account

_EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)
_CODE_PATTERN = r"^[0-9]{6}$"


def normalize_email(v: str) -> str:
    v = v.strip().lower()
    if not _EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email address")
    return v


def _blank_to_none(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip()
    return v or None


class ProfileFields(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    email: str = Field(..., max_length=320)
    username: str = Field(..., min_length=3, max_length=64)
    document: str | None = Field(None, max_length=32)
    phone: str | None = Field(None, max_length=32)
    birth_date: date | None = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("name", "username")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Must not be blank")
        return v

    @field_validator("document", "phone")
    @classmethod
    def strip_optional(cls, v: str | None) -> str | None:
        return _blank_to_none(v)


class RegisterRequest(ProfileFields):
    password: str = Field(..., min_length=6, max_length=128)


class AccountUpdateRequest(ProfileFields):
    password: str | None = Field(
        None, max_length=128, description="New password. Empty or absent keeps the current one."
    )

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str | None) -> str | None:
        if v and len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v or None


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class EmailRequest(BaseModel):
    email: str = Field(..., max_length=320)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class VerifyEmailRequest(BaseModel):
    verification_token: str = Field(..., min_length=1, max_length=128)
    code: str = Field(..., pattern=_CODE_PATTERN)


class ResetPasswordRequest(BaseModel):
    reset_token: str = Field(..., min_length=1, max_length=128)
    code: str = Field(..., pattern=_CODE_PATTERN)
    new_password: str = Field(..., min_length=6, max_length=128)


class MessageResponse(BaseModel):
    message: str


class ForgotPasswordResponse(BaseModel):
    reset_token: str = Field(..., description="Pair this token with the emailed code")
    message: str


class AccountResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    username: str
    document: str | None
    phone: str | None
    birth_date: date | None
    role: str
    verified: bool
    created_at: datetime
    verification_token: str | None = Field(
        None, description="Only returned by register, resend-verification and an email-changing confirm-edit"
    )


def to_account_view(account: Account, reveal_verification_token: bool = False) -> AccountResponse:
    """Map an account to its external view.

    The password hash, codes, expiries and the edit/delete tokens are never
    copied. The verification token is included only when
    ``reveal_verification_token`` is set; the reset token travels in
    ForgotPasswordResponse instead.
    """
    view = AccountResponse(
        id=account.account_id,
        name=account.name,
        email=account.email,
        username=account.username,
        document=account.document,
        phone=account.phone,
        birth_date=account.birth_date,
        role=account.role.value,
        verified=account.verified,
        created_at=account.created_at,
    )
    if reveal_verification_token:
        view.verification_token = account.verification_token
    return view
