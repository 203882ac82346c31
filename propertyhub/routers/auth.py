"""Auth endpoints: registration, login, email verification, password recovery."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from propertyhub.auth import session as session_gate
from propertyhub.auth.rate_limit import check_rate_limit
from propertyhub.database import get_db
from propertyhub.schemas.account import (
    AccountResponse,
    EmailRequest,
    ForgotPasswordResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from propertyhub.services import account as account_service

router = APIRouter(prefix="/api", tags=["auth"])


@router.post(
    "/register",
    response_model=AccountResponse,
    status_code=201,
    dependencies=[Depends(check_rate_limit)],
)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> AccountResponse:
    """Create an account. The response carries the token to pair with the emailed code."""
    return await account_service.register(db, data)


@router.post("/login", response_model=AccountResponse, dependencies=[Depends(check_rate_limit)])
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> AccountResponse:
    return await session_gate.login(db, data.email, data.password)


@router.post("/user/verify", response_model=MessageResponse, dependencies=[Depends(check_rate_limit)])
async def verify_email(
    data: VerifyEmailRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await account_service.verify_email(db, data.verification_token, data.code)
    return MessageResponse(message="Email verified. You can log in now.")


@router.post(
    "/forgot-password",
    response_model=ForgotPasswordResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def forgot_password(
    data: EmailRequest,
    db: AsyncSession = Depends(get_db),
) -> ForgotPasswordResponse:
    return await account_service.forgot_password(db, data.email)


@router.post(
    "/user/reset-password",
    response_model=MessageResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def reset_password(
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await account_service.reset_password(db, data.reset_token, data.code, data.new_password)
    return MessageResponse(message="Password reset successfully")


@router.post(
    "/user/resend-verification",
    response_model=AccountResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def resend_verification(
    data: EmailRequest,
    db: AsyncSession = Depends(get_db),
) -> AccountResponse:
    """Re-send the verification code. Refused while the previous code is still live."""
    return await account_service.resend_verification(db, data.email)
