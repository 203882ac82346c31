"""Typed account lifecycle errors.

Each error is an HTTPException so it reaches the client with its status code
and message without any extra handler; callers inside the service layer can
still catch the specific type.
"""

import math
from datetime import timedelta

from fastapi import HTTPException


class AccountError(HTTPException):
    status_code: int = 400
    default_detail: str = "Account operation failed"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None) -> None:
        super().__init__(
            status_code=type(self).status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


class DuplicateIdentity(AccountError):
    status_code = 409

    def __init__(self, field: str, value: str | None = None) -> None:
        self.field = field
        if value:
            detail = f"The {field} {value} is already registered"
        else:
            detail = f"The {field} is already registered"
        super().__init__(detail)


class InvalidCredentials(AccountError):
    status_code = 401
    default_detail = "Invalid email or password"


class NotVerified(AccountError):
    status_code = 403
    default_detail = "Verify your email before logging in. Check your inbox."


class NotFound(AccountError):
    status_code = 404
    default_detail = "Account not found"


class InvalidToken(AccountError):
    status_code = 400
    default_detail = "Invalid token"


class InvalidCode(AccountError):
    status_code = 400
    default_detail = "Invalid code"


class Expired(AccountError):
    status_code = 410
    default_detail = "The code has expired. Request a new one."


class AlreadyVerified(AccountError):
    status_code = 409
    default_detail = "This account is already verified"


class PermissionDenied(AccountError):
    status_code = 403
    default_detail = "You don't have permission to perform this action"


def format_remaining(remaining: timedelta) -> str:
    """Render a wait time as minutes:seconds, e.g. 4:07."""
    total = max(int(remaining.total_seconds()), 0)
    minutes, seconds = divmod(total, 60)
    return f"{minutes}:{seconds:02d}"


class RateLimited(AccountError):
    status_code = 429

    def __init__(self, remaining: timedelta) -> None:
        self.remaining = remaining
        retry_after = max(math.ceil(remaining.total_seconds()), 1)
        super().__init__(
            f"A code is already active. You can request a new one in {format_remaining(remaining)}",
            headers={"Retry-After": str(retry_after)},
        )
