"""Credential store - persistent accounts with unique username, email and provider id"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wordle_identity.core.database import utcnow
from wordle_identity.core.exceptions import (
    ConflictError,
    EmailTakenError,
    ExternalIdLinkedError,
    ResourceNotFoundError,
    UsernameTakenError,
)
from wordle_identity.models.account import Account

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {
    "username",
    "email",
    "password_hash",
    "external_provider_id",
    "display_name",
    "avatar_url",
    "is_active",
}


@dataclass
class NewAccount:
    username: str
    email: str
    password_hash: Optional[str] = None
    external_provider_id: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


def normalize_email(email: str) -> str:
    return email.strip().lower()


_CONFLICTS = {
    "username": UsernameTakenError,
    "email": EmailTakenError,
    "external_provider_id": ExternalIdLinkedError,
}

# PostgreSQL: unique constraint "uq_accounts_email"; SQLite: UNIQUE constraint failed: accounts.email
_PG_CONSTRAINT = re.compile(r'unique constraint "([^"]+)"', re.IGNORECASE)
_SQLITE_CONSTRAINT = re.compile(r"unique constraint failed: ([\w.]+)", re.IGNORECASE)


def _violated_column(exc: IntegrityError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    name = getattr(getattr(orig, "diag", None), "constraint_name", None)
    if not name:
        message = str(orig if orig is not None else exc)
        match = _PG_CONSTRAINT.search(message) or _SQLITE_CONSTRAINT.search(message)
        name = match.group(1) if match else None
    if not name:
        return None
    name = name.lower()
    for prefix in ("uq_accounts_", "accounts."):
        if name.startswith(prefix):
            return name[len(prefix):]
    return None


def conflict_from_integrity_error(exc: IntegrityError) -> ConflictError:
    """
    Map a unique-constraint violation onto the conflict it represents.

    Only the constraint name is inspected; the driver message also quotes
    the rejected value, which may contain any column name.
    """
    conflict = _CONFLICTS.get(_violated_column(exc))
    if conflict is None:
        raise exc
    return conflict()


class AccountStore:
    """Accounts table access. Reads hide inactive accounts unless asked not to."""

    def _query(self, db: Session, include_inactive: bool):
        query = db.query(Account)
        if not include_inactive:
            query = query.filter(Account.is_active.is_(True))
        return query

    def find_by_id(self, db: Session, account_id: int, include_inactive: bool = False) -> Optional[Account]:
        return self._query(db, include_inactive).filter(Account.id == account_id).first()

    def find_by_username(self, db: Session, username: str, include_inactive: bool = False) -> Optional[Account]:
        return self._query(db, include_inactive).filter(Account.username == username).first()

    def find_by_email(self, db: Session, email: str, include_inactive: bool = False) -> Optional[Account]:
        return (
            self._query(db, include_inactive)
            .filter(Account.email == normalize_email(email))
            .first()
        )

    def find_by_external_id(
        self, db: Session, external_id: str, include_inactive: bool = False
    ) -> Optional[Account]:
        return (
            self._query(db, include_inactive)
            .filter(Account.external_provider_id == str(external_id))
            .first()
        )

    def create(self, db: Session, data: NewAccount) -> Account:
        """
        Insert a new account (flushed, not committed)

        Raises:
            UsernameTakenError, EmailTakenError, ExternalIdLinkedError:
                on the matching uniqueness violation. The session is rolled back.
        """
        account = Account(
            username=data.username,
            email=normalize_email(data.email),
            password_hash=data.password_hash,
            external_provider_id=data.external_provider_id,
            display_name=data.display_name,
            avatar_url=data.avatar_url,
            is_active=True,
        )
        db.add(account)
        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            conflict = conflict_from_integrity_error(exc)
            logger.info("Account insert rejected: %s", conflict.code)
            raise conflict from exc
        return account

    def update(self, db: Session, account_id: int, **fields: Any) -> Account:
        """
        Partially update an active account (flushed, not committed)

        Raises:
            ResourceNotFoundError: account missing or inactive
            ConflictError: new username/email/provider id already in use
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update account fields: {sorted(unknown)}")

        account = self.find_by_id(db, account_id)
        if not account:
            raise ResourceNotFoundError("Account")

        for key, value in fields.items():
            if key == "email" and value is not None:
                value = normalize_email(value)
            setattr(account, key, value)
        account.updated_at = utcnow()

        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            raise conflict_from_integrity_error(exc) from exc
        return account

    def deactivate(self, db: Session, account_id: int) -> Account:
        """Terminal state: accounts are never hard-deleted."""
        return self.update(db, account_id, is_active=False)
