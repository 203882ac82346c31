"""Account management: token-confirmed edit and delete, role-restricted lookups."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from propertyhub.auth.rate_limit import check_rate_limit, rate_limited_requester
from propertyhub.auth.session import Requester
from propertyhub.database import get_db
from propertyhub.schemas.account import AccountResponse, AccountUpdateRequest, MessageResponse
from propertyhub.services import account as account_service

router = APIRouter(prefix="/api", tags=["users"])


@router.post(
    "/user/{account_id}/request-edit",
    response_model=MessageResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def request_edit(
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await account_service.request_edit_token(db, account_id)
    return MessageResponse(message="A confirmation email to edit your account has been sent")


@router.put(
    "/user/confirm-edit",
    response_model=AccountResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def confirm_edit(
    data: AccountUpdateRequest,
    token: str = Query(..., max_length=128),
    db: AsyncSession = Depends(get_db),
) -> AccountResponse:
    """Apply profile changes. Changing the email requires verifying it again."""
    return await account_service.confirm_edit(db, token, data)


@router.post(
    "/user/{account_id}/request-delete",
    response_model=MessageResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def request_delete(
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await account_service.request_delete_token(db, account_id)
    return MessageResponse(message="A confirmation email to delete your account has been sent")


@router.delete(
    "/user/confirm-delete",
    response_model=MessageResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def confirm_delete(
    token: str = Query(..., max_length=128),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Permanently delete the account. Irreversible."""
    await account_service.confirm_delete(db, token)
    return MessageResponse(message="Account deleted")


@router.get("/users", response_model=list[AccountResponse])
async def list_accounts(
    requester: Requester = Depends(rate_limited_requester),
    db: AsyncSession = Depends(get_db),
) -> list[AccountResponse]:
    """All accounts. Admin only."""
    return await account_service.list_accounts(db, requester)


@router.get("/user/document/{document}", response_model=AccountResponse)
async def get_by_document(
    document: str,
    requester: Requester = Depends(rate_limited_requester),
    db: AsyncSession = Depends(get_db),
) -> AccountResponse:
    """Look up an account by identity document. Admins, or the owner."""
    return await account_service.get_by_document(db, document, requester)
