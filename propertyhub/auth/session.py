"""Login gate and requester identity for role-restricted lookups."""

import logging
import uuid
from typing import assert_never

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from propertyhub.database import get_db
from propertyhub.models.account import Account, Role
from propertyhub.schemas.account import AccountResponse, to_account_view
from propertyhub.services.account_store import AccountStore
from propertyhub.services.errors import InvalidCredentials, NotVerified, PermissionDenied
from propertyhub.utils.crypto import dummy_password_hash, verify_password

logger = logging.getLogger(__name__)


async def login(db: AsyncSession, email: str, password: str) -> AccountResponse:
    """Check the credential first, then the verified flag.

    Unknown email and wrong password fail with the same error.
    """
    account = await AccountStore(db).find_by_email(email)
    if account is None:
        verify_password(password, dummy_password_hash())
        raise InvalidCredentials()
    if not verify_password(password, account.password_hash):
        logger.info("Failed login for account %s", account.account_id)
        raise InvalidCredentials()
    if not account.verified:
        raise NotVerified()
    logger.info("Login for account %s", account.account_id)
    return to_account_view(account)


class Requester:
    """Verified account on whose behalf a request is made."""

    def __init__(self, account: Account) -> None:
        self.account = account

    @property
    def account_id(self) -> uuid.UUID:
        return self.account.account_id

    @property
    def role(self) -> Role:
        return self.account.role


async def get_requester(
    x_user_id: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Requester:
    """Resolve the X-User-Id header to a stored, verified account.

    The role always comes from the store, never from the client.
    """
    if not x_user_id:
        raise HTTPException(status_code=403, detail="Missing X-User-Id header")
    try:
        account_id = uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=403, detail="Malformed X-User-Id header")

    account = await AccountStore(db).find_by_id(account_id)
    if account is None:
        raise HTTPException(status_code=403, detail="Requester not found")
    if not account.verified:
        raise NotVerified()
    return Requester(account)


def ensure_can_view(requester: Requester, target: Account) -> None:
    match requester.role:
        case Role.ADMIN:
            return
        case Role.USER:
            if requester.account_id != target.account_id:
                raise PermissionDenied("You don't have permission to view this account")
        case _:
            assert_never(requester.role)


def ensure_can_list_accounts(requester: Requester) -> None:
    match requester.role:
        case Role.ADMIN:
            return
        case Role.USER:
            raise PermissionDenied("Only administrators can list accounts")
        case _:
            assert_never(requester.role)
