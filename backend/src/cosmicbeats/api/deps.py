"""Request dependencies: the caller's identity and the shared service."""

from functools import lru_cache
from typing import Annotated

from fastapi import Header, HTTPException, status

from cosmicbeats.identity.service import UserDirectory
from cosmicbeats.referral.service import ReferralService
from cosmicbeats.storage.db import Database
from cosmicbeats.wallet.service import LedgerWallet


@lru_cache
def get_database() -> Database:
    return Database()


@lru_cache
def get_referral_service() -> ReferralService:
    """Process-wide service wired to the configured database."""
    database = get_database()
    return ReferralService(database, LedgerWallet(database), UserDirectory(database))


def get_current_user_id(
    x_user_id: Annotated[str | None, Header(alias="X-User-ID")] = None,
) -> str:
    """User id set by the identity gateway in front of this service."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-ID header",
        )
    return x_user_id.strip()
