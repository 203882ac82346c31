"""Account lifecycle: registration, email verification, password reset, and
token-confirmed profile edits and deletion.

Each workflow (verification, reset, edit, delete) owns one triple of fields on
the account: code (verification/reset only), token and expiry. Issuing a new
triple overwrites the previous one. A triple can be consumed while
``now < expiry``; consumption clears it in the same commit as the change it
guards. Notifications go out after the commit and never fail the request.
"""

import logging
import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from propertyhub.auth.session import Requester, ensure_can_list_accounts, ensure_can_view
from propertyhub.config import settings
from propertyhub.models.account import Account, Role
from propertyhub.schemas.account import (
    AccountResponse,
    AccountUpdateRequest,
    ForgotPasswordResponse,
    RegisterRequest,
    to_account_view,
)
from propertyhub.services.account_store import AccountStore
from propertyhub.services.email_templates import TemplateKind
from propertyhub.services.errors import (
    AlreadyVerified,
    DuplicateIdentity,
    Expired,
    InvalidCode,
    InvalidToken,
    NotFound,
    RateLimited,
)
from propertyhub.services.notifier import get_notifier
from propertyhub.utils.crypto import codes_match, hash_password, opaque_token, six_digit_code

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


def _is_live(expires_at: datetime | None, now: datetime) -> bool:
    return expires_at is not None and now < expires_at


def _check_code(stored_code: str | None, code: str, expires_at: datetime | None, now: datetime) -> None:
    """Token already matched; the code must match next, then the triple must be unexpired."""
    if not codes_match(stored_code, code):
        raise InvalidCode()
    if not _is_live(expires_at, now):
        raise Expired()


def _check_token_expiry(expires_at: datetime | None, now: datetime) -> None:
    if not _is_live(expires_at, now):
        raise Expired("The token has expired. Request a new one.")


def _ensure_no_live_triple(expires_at: datetime | None, now: datetime) -> None:
    """Re-issue is refused while the current triple is still live."""
    if _is_live(expires_at, now):
        raise RateLimited(expires_at - now)  # type: ignore[operator]


def _issue_verification(account: Account, now: datetime) -> None:
    account.verified = False
    account.verification_code = six_digit_code()
    account.verification_token = opaque_token()
    account.verification_expires_at = now + timedelta(minutes=settings.verification_ttl_minutes)


def _clear_verification(account: Account) -> None:
    account.verification_code = None
    account.verification_token = None
    account.verification_expires_at = None


def _verification_params(account: Account) -> dict:
    return {
        "name": account.name,
        "code": account.verification_code,
        "expires_minutes": settings.verification_ttl_minutes,
    }


async def _ensure_unique(
    store: AccountStore,
    email: str | None = None,
    username: str | None = None,
    document: str | None = None,
) -> None:
    if email is not None and await store.find_by_email(email) is not None:
        raise DuplicateIdentity("email", email)
    if username is not None and await store.find_by_username(username) is not None:
        raise DuplicateIdentity("username", username)
    if document is not None and await store.find_by_document(document) is not None:
        raise DuplicateIdentity("document", document)


async def _get_account(store: AccountStore, account_id: uuid.UUID) -> Account:
    account = await store.find_by_id(account_id, lock=True)
    if account is None:
        raise NotFound(f"No account with id {account_id}")
    return account


async def register(db: AsyncSession, data: RegisterRequest) -> AccountResponse:
    """Create an unverified account and email its verification code.

    The returned view carries the verification token the client pairs with
    the emailed code.
    """
    store = AccountStore(db)
    await _ensure_unique(store, email=data.email, username=data.username, document=data.document)

    now = _now()
    account = Account(
        account_id=uuid.uuid4(),
        name=data.name,
        email=data.email,
        username=data.username,
        document=data.document,
        phone=data.phone,
        birth_date=data.birth_date,
        password_hash=hash_password(data.password),
        role=Role.USER,
        created_at=now,
    )
    _issue_verification(account, now)
    await store.save(account)
    logger.info("Registered account %s", account.account_id)

    await get_notifier().send(account.email, TemplateKind.VERIFY_ACCOUNT, _verification_params(account))
    return to_account_view(account, reveal_verification_token=True)


async def verify_email(db: AsyncSession, token: str, code: str) -> None:
    store = AccountStore(db)
    account = await store.find_by_verification_token(token)
    if account is None:
        raise InvalidToken("Invalid verification token")
    _check_code(account.verification_code, code, account.verification_expires_at, _now())

    account.verified = True
    _clear_verification(account)
    await store.save(account)
    logger.info("Email verified for account %s", account.account_id)

    await get_notifier().send(account.email, TemplateKind.ACCOUNT_VERIFIED, {"name": account.name})


async def resend_verification(db: AsyncSession, email: str) -> AccountResponse:
    """Issue a fresh verification pair, unless the current one is still live."""
    store = AccountStore(db)
    account = await store.find_by_email(email, lock=True)
    if account is None:
        raise NotFound(f"No account with email {email}")
    if account.verified:
        raise AlreadyVerified()

    now = _now()
    _ensure_no_live_triple(account.verification_expires_at, now)
    _issue_verification(account, now)
    await store.save(account)
    logger.info("Verification code re-issued for account %s", account.account_id)

    await get_notifier().send(account.email, TemplateKind.RESEND_VERIFICATION, _verification_params(account))
    return to_account_view(account, reveal_verification_token=True)


async def forgot_password(db: AsyncSession, email: str) -> ForgotPasswordResponse:
    """Issue a reset code/token pair, unless the current one is still live."""
    store = AccountStore(db)
    account = await store.find_by_email(email, lock=True)
    if account is None:
        raise NotFound(f"No account with email {email}")

    now = _now()
    _ensure_no_live_triple(account.reset_expires_at, now)
    account.reset_code = six_digit_code()
    account.reset_token = opaque_token()
    account.reset_expires_at = now + timedelta(minutes=settings.reset_ttl_minutes)
    await store.save(account)
    logger.info("Password reset code issued for account %s", account.account_id)

    await get_notifier().send(
        account.email,
        TemplateKind.PASSWORD_RESET,
        {
            "name": account.name,
            "code": account.reset_code,
            "expires_minutes": settings.reset_ttl_minutes,
        },
    )
    return ForgotPasswordResponse(
        reset_token=account.reset_token,
        message=(
            "A recovery code has been sent to your email. "
            f"It is valid for {settings.reset_ttl_minutes} minutes."
        ),
    )


async def reset_password(db: AsyncSession, token: str, code: str, new_password: str) -> None:
    store = AccountStore(db)
    account = await store.find_by_reset_token(token)
    if account is None:
        raise InvalidToken("Invalid recovery token")
    now = _now()
    _check_code(account.reset_code, code, account.reset_expires_at, now)

    account.password_hash = hash_password(new_password)
    account.reset_code = None
    account.reset_token = None
    account.reset_expires_at = None
    await store.save(account)
    logger.info("Password reset for account %s", account.account_id)

    # Sent even if unsolicited: it doubles as a compromise alert
    await get_notifier().send(
        account.email,
        TemplateKind.PASSWORD_CHANGED,
        {"name": account.name, "changed_at": now.strftime("%Y-%m-%d %H:%M")},
    )


async def request_edit_token(db: AsyncSession, account_id: uuid.UUID) -> None:
    store = AccountStore(db)
    account = await _get_account(store, account_id)

    account.edit_token = opaque_token()
    account.edit_expires_at = _now() + timedelta(minutes=settings.edit_ttl_minutes)
    await store.save(account)
    logger.info("Edit token issued for account %s", account.account_id)

    await get_notifier().send(
        account.email,
        TemplateKind.CONFIRM_EDIT,
        {"name": account.name, "token": account.edit_token, "expires_minutes": settings.edit_ttl_minutes},
    )


async def confirm_edit(db: AsyncSession, token: str, data: AccountUpdateRequest) -> AccountResponse:
    """Apply a profile update guarded by a live edit token.

    All uniqueness checks run before anything is changed, so a conflict
    leaves the account untouched. A new email re-arms verification; the
    returned view then carries the new verification token.
    """
    store = AccountStore(db)
    account = await store.find_by_edit_token(token)
    if account is None:
        raise InvalidToken("Invalid or expired token")
    now = _now()
    _check_token_expiry(account.edit_expires_at, now)

    email_changed = data.email != account.email
    username_changed = data.username != account.username
    document_changed = data.document is not None and data.document != account.document
    await _ensure_unique(
        store,
        email=data.email if email_changed else None,
        username=data.username if username_changed else None,
        document=data.document if document_changed else None,
    )

    if email_changed:
        account.email = data.email
        _issue_verification(account, now)
    if document_changed:
        account.document = data.document
    account.name = data.name
    account.username = data.username
    account.phone = data.phone
    account.birth_date = data.birth_date
    if data.password:
        account.password_hash = hash_password(data.password)
    account.edit_token = None
    account.edit_expires_at = None
    await store.save(account)
    logger.info("Profile updated for account %s (email changed: %s)", account.account_id, email_changed)

    if email_changed:
        await get_notifier().send(account.email, TemplateKind.VERIFY_ACCOUNT, _verification_params(account))
        return to_account_view(account, reveal_verification_token=True)
    return to_account_view(account)


async def request_delete_token(db: AsyncSession, account_id: uuid.UUID) -> None:
    store = AccountStore(db)
    account = await _get_account(store, account_id)

    account.delete_token = opaque_token()
    account.delete_expires_at = _now() + timedelta(minutes=settings.delete_ttl_minutes)
    await store.save(account)
    logger.info("Delete token issued for account %s", account.account_id)

    await get_notifier().send(
        account.email,
        TemplateKind.CONFIRM_DELETE,
        {"name": account.name, "token": account.delete_token, "expires_minutes": settings.delete_ttl_minutes},
    )


async def confirm_delete(db: AsyncSession, token: str) -> None:
    """Permanently remove the account owning a live delete token. No undo."""
    store = AccountStore(db)
    account = await store.find_by_delete_token(token)
    if account is None:
        raise InvalidToken("Invalid or expired token")
    _check_token_expiry(account.delete_expires_at, _now())

    account_id = account.account_id
    await store.delete_by_id(account_id)
    logger.info("Account %s deleted", account_id)


async def get_by_document(db: AsyncSession, document: str, requester: Requester) -> AccountResponse:
    account = await AccountStore(db).find_by_document(document)
    if account is None:
        raise NotFound(f"No account with document {document}")
    ensure_can_view(requester, account)
    return to_account_view(account)


async def list_accounts(db: AsyncSession, requester: Requester) -> list[AccountResponse]:
    ensure_can_list_accounts(requester)
    accounts = await AccountStore(db).list_all()
    return [to_account_view(a) for a in accounts]
