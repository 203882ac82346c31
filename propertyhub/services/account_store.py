"""Persistence adapter for Account records.

Lookups by token only match a triple that is still stored (not yet consumed
or overwritten); expiry is judged by the caller so that an expired token can
be told apart from an unknown one. Pass ``lock=True`` on read-modify-write
paths to take a row lock until the next commit.
"""

import logging
import re
import uuid

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from propertyhub.models.account import Account
from propertyhub.services.errors import DuplicateIdentity

logger = logging.getLogger(__name__)

_UNIQUE_FIELDS = ("email", "username", "document")

# SQLite reports e.g. "UNIQUE constraint failed: accounts.email"
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: accounts\.(\w+)")


def _violated_field(exc: IntegrityError) -> str | None:
    """Name the identity column behind a unique violation, or None.

    Only the constraint or column name is inspected; the message also echoes
    the conflicting value, which may itself contain a column name.
    """
    # asyncpg raises the driver error as the cause, e.g. accounts_email_key
    constraint = getattr(exc.orig.__cause__, "constraint_name", None)
    if constraint:
        for field in _UNIQUE_FIELDS:
            if constraint == f"accounts_{field}_key":
                return field
        return None
    match = _SQLITE_UNIQUE.search(str(exc.orig))
    if match and match.group(1) in _UNIQUE_FIELDS:
        return match.group(1)
    return None


class AccountStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _find_one(
        self, column: InstrumentedAttribute, value: object, lock: bool = False
    ) -> Account | None:
        stmt = select(Account).where(column == value)
        if lock:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_id(self, account_id: uuid.UUID, lock: bool = False) -> Account | None:
        return await self._find_one(Account.account_id, account_id, lock)

    async def find_by_email(self, email: str, lock: bool = False) -> Account | None:
        return await self._find_one(Account.email, email, lock)

    async def find_by_username(self, username: str) -> Account | None:
        return await self._find_one(Account.username, username)

    async def find_by_document(self, document: str) -> Account | None:
        return await self._find_one(Account.document, document)

    async def find_by_verification_token(self, token: str) -> Account | None:
        return await self._find_one(Account.verification_token, token, lock=True)

    async def find_by_reset_token(self, token: str) -> Account | None:
        return await self._find_one(Account.reset_token, token, lock=True)

    async def find_by_edit_token(self, token: str) -> Account | None:
        return await self._find_one(Account.edit_token, token, lock=True)

    async def find_by_delete_token(self, token: str) -> Account | None:
        return await self._find_one(Account.delete_token, token, lock=True)

    async def list_all(self) -> list[Account]:
        result = await self.db.execute(select(Account).order_by(Account.created_at))
        return list(result.scalars().all())

    async def save(self, account: Account) -> Account:
        """Persist and commit. Unique violations become DuplicateIdentity."""
        self.db.add(account)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            field = _violated_field(e)
            if field is not None:
                raise DuplicateIdentity(field) from e
            logger.error("Unexpected integrity error saving account: %s", e.orig)
            raise
        return account

    async def delete_by_id(self, account_id: uuid.UUID) -> None:
        await self.db.execute(delete(Account).where(Account.account_id == account_id))
        await self.db.commit()
