"""Service-level tests for the account lifecycle (propertyhub/services/account.py)."""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from propertyhub.auth import session as session_gate
from propertyhub.schemas.account import AccountUpdateRequest
from propertyhub.services import account as account_service
from propertyhub.services.account_store import AccountStore
from propertyhub.services.errors import (
    AlreadyVerified,
    DuplicateIdentity,
    Expired,
    InvalidCode,
    InvalidCredentials,
    InvalidToken,
    NotFound,
    NotVerified,
    RateLimited,
)
from propertyhub.utils.crypto import verify_password
from tests.conftest import load_account, make_register_request


def _later(minutes: float) -> datetime:
    return datetime.now(UTC) + timedelta(minutes=minutes)


def _wrong(code: str) -> str:
    return "000000" if code != "000000" else "111111"


def _update_for(account, **changes) -> AccountUpdateRequest:  # type: ignore[no-untyped-def]
    data = {
        "name": account.name,
        "email": account.email,
        "username": account.username,
        "document": account.document,
        "phone": account.phone,
        "birth_date": account.birth_date,
    }
    data.update(changes)
    return AccountUpdateRequest(**data)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_creates_unverified_account_with_pair(db_session: AsyncSession) -> None:
    view = await account_service.register(db_session, make_register_request())

    assert view.verification_token
    assert view.verified is False
    assert view.role == "user"
    assert not hasattr(view, "reset_token")

    account = await load_account(db_session, "ana@example.com")
    assert account.verification_token == view.verification_token
    assert len(account.verification_code) == 6
    assert account.verification_code.isdigit()
    remaining = account.verification_expires_at - datetime.now(UTC)
    assert timedelta(minutes=4) < remaining <= timedelta(minutes=5)
    assert verify_password("s3cret-pass", account.password_hash)
    assert account.password_hash != "s3cret-pass"


@pytest.mark.asyncio
async def test_register_sends_verification_code(db_session: AsyncSession, email_sender) -> None:  # type: ignore[no-untyped-def]
    await account_service.register(db_session, make_register_request())
    account = await load_account(db_session, "ana@example.com")

    email_sender.send.assert_called_once()
    kwargs = email_sender.send.call_args.kwargs
    assert kwargs["to"] == "ana@example.com"
    assert account.verification_code in kwargs["text"]
    assert account.verification_code in kwargs["html"]
    # The lookup token never goes in the email
    assert account.verification_token not in kwargs["text"]


@pytest.mark.asyncio
async def test_register_duplicate_email(db_session: AsyncSession) -> None:
    first = await account_service.register(db_session, make_register_request())

    with pytest.raises(DuplicateIdentity) as exc_info:
        await account_service.register(
            db_session, make_register_request(username="other", document="2002")
        )
    assert exc_info.value.field == "email"
    assert exc_info.value.status_code == 409

    account = await load_account(db_session, "ana@example.com")
    assert account.account_id == first.id
    assert account.verification_token == first.verification_token


@pytest.mark.asyncio
async def test_register_duplicate_document(db_session: AsyncSession) -> None:
    await account_service.register(db_session, make_register_request())
    with pytest.raises(DuplicateIdentity) as exc_info:
        await account_service.register(
            db_session, make_register_request(email="b@example.com", username="bea")
        )
    assert exc_info.value.field == "document"


@pytest.mark.asyncio
async def test_register_duplicate_username(db_session: AsyncSession) -> None:
    await account_service.register(db_session, make_register_request())
    with pytest.raises(DuplicateIdentity) as exc_info:
        await account_service.register(
            db_session, make_register_request(email="b@example.com", document="2002")
        )
    assert exc_info.value.field == "username"


@pytest.mark.asyncio
async def test_register_without_document_allows_many(db_session: AsyncSession) -> None:
    await account_service.register(db_session, make_register_request(document=None))
    await account_service.register(
        db_session, make_register_request(email="b@example.com", username="bea", document=None)
    )


@pytest.mark.asyncio
async def test_register_succeeds_when_email_fails(db_session: AsyncSession, email_sender, caplog) -> None:  # type: ignore[no-untyped-def]
    email_sender.send.side_effect = ConnectionError("smtp down")

    view = await account_service.register(db_session, make_register_request())

    assert view.verification_token
    account = await load_account(db_session, "ana@example.com")
    assert account.verified is False
    assert "Failed to send verify_account email" in caplog.text


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_verify_email_success_clears_triple(db_session: AsyncSession, email_sender) -> None:  # type: ignore[no-untyped-def]
    view = await account_service.register(db_session, make_register_request())
    account = await load_account(db_session, "ana@example.com")

    await account_service.verify_email(db_session, view.verification_token, account.verification_code)

    assert account.verified is True
    assert account.verification_code is None
    assert account.verification_token is None
    assert account.verification_expires_at is None
    assert "verified" in email_sender.send.call_args.kwargs["subject"]


@pytest.mark.asyncio
async def test_verify_email_is_exactly_once(db_session: AsyncSession) -> None:
    view = await account_service.register(db_session, make_register_request())
    code = (await load_account(db_session, "ana@example.com")).verification_code

    await account_service.verify_email(db_session, view.verification_token, code)
    with pytest.raises(InvalidToken):
        await account_service.verify_email(db_session, view.verification_token, code)


@pytest.mark.asyncio
async def test_verify_email_unknown_token(db_session: AsyncSession) -> None:
    with pytest.raises(InvalidToken):
        await account_service.verify_email(db_session, "nope", "123456")


@pytest.mark.asyncio
async def test_verify_email_wrong_code(db_session: AsyncSession) -> None:
    view = await account_service.register(db_session, make_register_request())
    account = await load_account(db_session, "ana@example.com")

    with pytest.raises(InvalidCode):
        await account_service.verify_email(
            db_session, view.verification_token, _wrong(account.verification_code)
        )
    assert account.verified is False
    assert account.verification_token == view.verification_token


@pytest.mark.asyncio
async def test_verify_email_expired(db_session: AsyncSession) -> None:
    view = await account_service.register(db_session, make_register_request())
    account = await load_account(db_session, "ana@example.com")

    with patch("propertyhub.services.account._now", return_value=_later(6)):
        with pytest.raises(Expired):
            await account_service.verify_email(db_session, view.verification_token, account.verification_code)
    assert account.verified is False


@pytest.mark.asyncio
async def test_verify_email_at_exact_expiry_is_expired(db_session: AsyncSession) -> None:
    view = await account_service.register(db_session, make_register_request())
    account = await load_account(db_session, "ana@example.com")

    with patch("propertyhub.services.account._now", return_value=account.verification_expires_at):
        with pytest.raises(Expired):
            await account_service.verify_email(db_session, view.verification_token, account.verification_code)


@pytest.mark.asyncio
async def test_expired_then_resend_then_verify(db_session: AsyncSession) -> None:
    """Code C1 expires; resend issues C2 with a fresh window; C2 verifies."""
    view = await account_service.register(db_session, make_register_request())
    account = await load_account(db_session, "ana@example.com")
    first_code = account.verification_code
    six_minutes_later = _later(6)

    with patch("propertyhub.services.account._now", return_value=six_minutes_later):
        with pytest.raises(Expired):
            await account_service.verify_email(db_session, view.verification_token, first_code)

        resent = await account_service.resend_verification(db_session, "ana@example.com")
        assert resent.verification_token != view.verification_token
        assert account.verification_expires_at == six_minutes_later + timedelta(minutes=5)

        await account_service.verify_email(
            db_session, resent.verification_token, account.verification_code
        )

    assert account.verified is True


# ---------------------------------------------------------------------------
# Login gate
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_login_blocked_until_verified(db_session: AsyncSession) -> None:
    view = await account_service.register(db_session, make_register_request())

    with pytest.raises(NotVerified):
        await session_gate.login(db_session, "ana@example.com", "s3cret-pass")

    code = (await load_account(db_session, "ana@example.com")).verification_code
    await account_service.verify_email(db_session, view.verification_token, code)

    logged_in = await session_gate.login(db_session, "ana@example.com", "s3cret-pass")
    assert logged_in.id == view.id
    assert logged_in.verification_token is None


@pytest.mark.asyncio
async def test_login_failures_are_uniform(db_session: AsyncSession) -> None:
    await account_service.register(db_session, make_register_request())

    with pytest.raises(InvalidCredentials) as unknown:
        await session_gate.login(db_session, "ghost@example.com", "s3cret-pass")
    with pytest.raises(InvalidCredentials) as wrong_password:
        await session_gate.login(db_session, "ana@example.com", "wrong-pass")

    assert unknown.value.detail == wrong_password.value.detail
    assert unknown.value.status_code == wrong_password.value.status_code == 401


@pytest.mark.asyncio
async def test_wrong_password_on_unverified_is_invalid_credentials(db_session: AsyncSession) -> None:
    await account_service.register(db_session, make_register_request())
    with pytest.raises(InvalidCredentials):
        await session_gate.login(db_session, "ana@example.com", "wrong-pass")


# ---------------------------------------------------------------------------
# Resend verification
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_resend_rate_limited_while_live(db_session: AsyncSession) -> None:
    view = await account_service.register(db_session, make_register_request())

    with pytest.raises(RateLimited) as exc_info:
        await account_service.resend_verification(db_session, "ana@example.com")
    assert timedelta(0) < exc_info.value.remaining <= timedelta(minutes=5)

    account = await load_account(db_session, "ana@example.com")
    assert account.verification_token == view.verification_token


@pytest.mark.asyncio
async def test_resend_unknown_email(db_session: AsyncSession) -> None:
    with pytest.raises(NotFound):
        await account_service.resend_verification(db_session, "ghost@example.com")


@pytest.mark.asyncio
async def test_resend_already_verified(db_session: AsyncSession) -> None:
    view = await account_service.register(db_session, make_register_request())
    code = (await load_account(db_session, "ana@example.com")).verification_code
    await account_service.verify_email(db_session, view.verification_token, code)

    with pytest.raises(AlreadyVerified):
        await account_service.resend_verification(db_session, "ana@example.com")


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_forgot_password_rate_limit_then_reissue(db_session: AsyncSession) -> None:
    await account_service.register(db_session, make_register_request())
    first = await account_service.forgot_password(db_session, "ana@example.com")
    assert first.reset_token
    assert "5 minutes" in first.message

    with pytest.raises(RateLimited) as exc_info:
        await account_service.forgot_password(db_session, "ana@example.com")
    assert timedelta(0) < exc_info.value.remaining <= timedelta(minutes=5)
    assert exc_info.value.status_code == 429

    with patch("propertyhub.services.account._now", return_value=_later(6)):
        second = await account_service.forgot_password(db_session, "ana@example.com")
    assert second.reset_token != first.reset_token


@pytest.mark.asyncio
async def test_forgot_password_unknown_email(db_session: AsyncSession) -> None:
    with pytest.raises(NotFound):
        await account_service.forgot_password(db_session, "ghost@example.com")


@pytest.mark.asyncio
async def test_reset_password_replaces_hash(db_session: AsyncSession, email_sender) -> None:  # type: ignore[no-untyped-def]
    await account_service.register(db_session, make_register_request())
    issued = await account_service.forgot_password(db_session, "ana@example.com")
    account = await load_account(db_session, "ana@example.com")

    await account_service.reset_password(db_session, issued.reset_token, account.reset_code, "brand-new-pass")

    assert verify_password("brand-new-pass", account.password_hash)
    assert not verify_password("s3cret-pass", account.password_hash)
    assert account.reset_code is None
    assert account.reset_token is None
    assert account.reset_expires_at is None
    kwargs = email_sender.send.call_args.kwargs
    assert "password was changed" in kwargs["subject"]
    assert "SECURITY NOTICE" in kwargs["text"]

    with pytest.raises(InvalidToken):
        await account_service.reset_password(db_session, issued.reset_token, "123456", "again-pass")


@pytest.mark.asyncio
async def test_reset_password_wrong_code_and_expired(db_session: AsyncSession) -> None:
    await account_service.register(db_session, make_register_request())
    issued = await account_service.forgot_password(db_session, "ana@example.com")
    account = await load_account(db_session, "ana@example.com")
    old_hash = account.password_hash

    with pytest.raises(InvalidCode):
        await account_service.reset_password(db_session, issued.reset_token, _wrong(account.reset_code), "xx-new-pass")
    with patch("propertyhub.services.account._now", return_value=_later(6)):
        with pytest.raises(Expired):
            await account_service.reset_password(db_session, issued.reset_token, account.reset_code, "xx-new-pass")

    assert account.password_hash == old_hash


@pytest.mark.asyncio
async def test_reset_does_not_touch_verification(db_session: AsyncSession) -> None:
    view = await account_service.register(db_session, make_register_request())
    await account_service.forgot_password(db_session, "ana@example.com")
    account = await load_account(db_session, "ana@example.com")
    assert account.verification_token == view.verification_token


# ---------------------------------------------------------------------------
# Edit confirmation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_request_edit_token_always_reissues(db_session: AsyncSession, email_sender) -> None:  # type: ignore[no-untyped-def]
    view = await account_service.register(db_session, make_register_request())
    account = await load_account(db_session, "ana@example.com")

    await account_service.request_edit_token(db_session, view.id)
    first = account.edit_token
    assert first in email_sender.send.call_args.kwargs["text"]
    remaining = account.edit_expires_at - datetime.now(UTC)
    assert timedelta(minutes=14) < remaining <= timedelta(minutes=15)

    await account_service.request_edit_token(db_session, view.id)
    assert account.edit_token != first

    with pytest.raises(InvalidToken):
        await account_service.confirm_edit(db_session, first, _update_for(account, name="Old Token"))


@pytest.mark.asyncio
async def test_request_edit_unknown_account(db_session: AsyncSession) -> None:
    with pytest.raises(NotFound):
        await account_service.request_edit_token(db_session, uuid.uuid4())


@pytest.mark.asyncio
async def test_confirm_edit_updates_profile_and_keeps_password(db_session: AsyncSession) -> None:
    view = await account_service.register(db_session, make_register_request())
    await account_service.request_edit_token(db_session, view.id)
    account = await load_account(db_session, "ana@example.com")
    old_hash = account.password_hash

    updated = await account_service.confirm_edit(
        db_session, account.edit_token, _update_for(account, name="Ana M. Gomez", phone=None, password="")
    )

    assert updated.name == "Ana M. Gomez"
    assert updated.phone is None
    assert updated.verification_token is None
    assert account.password_hash == old_hash
    assert account.edit_token is None
    assert account.edit_expires_at is None


@pytest.mark.asyncio
async def test_confirm_edit_changes_password_when_given(db_session: AsyncSession) -> None:
    view = await account_service.register(db_session, make_register_request())
    await account_service.request_edit_token(db_session, view.id)
    account = await load_account(db_session, "ana@example.com")

    await account_service.confirm_edit(db_session, account.edit_token, _update_for(account, password="changed-pass"))
    assert verify_password("changed-pass", account.password_hash)


@pytest.mark.asyncio
async def test_confirm_edit_new_email_rearms_verification(db_session: AsyncSession, email_sender) -> None:  # type: ignore[no-untyped-def]
    view = await account_service.register(db_session, make_register_request())
    account = await load_account(db_session, "ana@example.com")
    await account_service.verify_email(db_session, view.verification_token, account.verification_code)
    await account_service.request_edit_token(db_session, view.id)

    updated = await account_service.confirm_edit(
        db_session, account.edit_token, _update_for(account, email="ana.new@example.com")
    )

    assert updated.email == "ana.new@example.com"
    assert updated.verified is False
    assert updated.verification_token == account.verification_token
    assert account.verification_code is not None
    assert email_sender.send.call_args.kwargs["to"] == "ana.new@example.com"
    assert account.verification_code in email_sender.send.call_args.kwargs["text"]

    with pytest.raises(NotVerified):
        await session_gate.login(db_session, "ana.new@example.com", "s3cret-pass")


@pytest.mark.asyncio
async def test_confirm_edit_duplicate_email_leaves_profile_unchanged(db_session: AsyncSession) -> None:
    await account_service.register(db_session, make_register_request())
    other = await account_service.register(
        db_session, make_register_request(email="bea@example.com", username="bea", document="2002")
    )
    await account_service.request_edit_token(db_session, other.id)
    account = await load_account(db_session, "bea@example.com")
    token = account.edit_token

    with pytest.raises(DuplicateIdentity) as exc_info:
        await account_service.confirm_edit(
            db_session, token, _update_for(account, email="ana@example.com", name="Changed")
        )

    assert exc_info.value.field == "email"
    await db_session.refresh(account)
    assert account.email == "bea@example.com"
    assert account.name == "Ana Gomez"
    assert account.edit_token == token


@pytest.mark.asyncio
async def test_confirm_edit_duplicate_document(db_session: AsyncSession) -> None:
    await account_service.register(db_session, make_register_request())
    other = await account_service.register(
        db_session, make_register_request(email="bea@example.com", username="bea", document="2002")
    )
    await account_service.request_edit_token(db_session, other.id)
    account = await load_account(db_session, "bea@example.com")

    with pytest.raises(DuplicateIdentity) as exc_info:
        await account_service.confirm_edit(db_session, account.edit_token, _update_for(account, document="1001"))
    assert exc_info.value.field == "document"


@pytest.mark.asyncio
async def test_confirm_edit_expired(db_session: AsyncSession) -> None:
    view = await account_service.register(db_session, make_register_request())
    await account_service.request_edit_token(db_session, view.id)
    account = await load_account(db_session, "ana@example.com")

    with patch("propertyhub.services.account._now", return_value=_later(16)):
        with pytest.raises(Expired):
            await account_service.confirm_edit(db_session, account.edit_token, _update_for(account, name="Late"))
    assert account.name == "Ana Gomez"


# ---------------------------------------------------------------------------
# Delete confirmation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_confirm_delete_expired_keeps_account(db_session: AsyncSession) -> None:
    view = await account_service.register(db_session, make_register_request())
    await account_service.request_delete_token(db_session, view.id)
    account = await load_account(db_session, "ana@example.com")

    with patch("propertyhub.services.account._now", return_value=_later(16)):
        with pytest.raises(Expired):
            await account_service.confirm_delete(db_session, account.delete_token)

    assert await AccountStore(db_session).find_by_id(view.id) is not None


@pytest.mark.asyncio
async def test_confirm_delete_removes_account(db_session: AsyncSession, email_sender) -> None:  # type: ignore[no-untyped-def]
    view = await account_service.register(db_session, make_register_request())
    await account_service.request_delete_token(db_session, view.id)
    account = await load_account(db_session, "ana@example.com")
    token = account.delete_token
    assert "IRREVERSIBLE" in email_sender.send.call_args.kwargs["text"]

    await account_service.confirm_delete(db_session, token)

    assert await AccountStore(db_session).find_by_id(view.id) is None
    with pytest.raises(InvalidToken):
        await account_service.confirm_delete(db_session, token)


@pytest.mark.asyncio
async def test_confirm_delete_unknown_token(db_session: AsyncSession) -> None:
    with pytest.raises(InvalidToken):
        await account_service.confirm_delete(db_session, "nope")
