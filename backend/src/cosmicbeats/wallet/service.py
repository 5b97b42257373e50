"""Beatcoin wallet.

The referral engine only needs `credit`. `LedgerWallet` is the database-backed
implementation used locally and by the API; production deployments can pass
any object that satisfies `Wallet`.
"""

from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from cosmicbeats.logging_config import get_logger
from cosmicbeats.storage.db import Database
from cosmicbeats.wallet.models import WalletAccount, WalletTransaction

logger = get_logger(__name__)


class WalletError(Exception):
    """Raised when a wallet operation cannot be applied."""
    pass


class Wallet(Protocol):
    """Collaborator interface the engine credits rewards through."""

    def credit(self, user_id: str, amount: int, *, idempotency_key: str, reason: str) -> None:
        """Add `amount` beatcoins to `user_id`.

        Must be idempotent per `idempotency_key` and raise on failure.
        """
        ...


class LedgerWallet:
    """Wallet stored in the engine's own database."""

    def __init__(self, database: Database):
        self.db = database
        self.logger = get_logger(__name__)

    def get_balance(self, user_id: str) -> int:
        """Get user's beatcoin balance.

        Args:
            user_id: User ID

        Returns:
            Balance, 0 for users without an account
        """
        with self.db.session() as session:
            account = session.get(WalletAccount, user_id)
            return account.balance if account else 0

    def credit(self, user_id: str, amount: int, *, idempotency_key: str, reason: str) -> None:
        """Add beatcoins to a user's wallet.

        Args:
            user_id: User ID
            amount: Amount to add (positive)
            idempotency_key: Replays with the same key are ignored
            reason: Operation type (referral_validation, referral_action, referral_badge, referral_milestone)
        """
        if amount <= 0:
            raise WalletError("Amount must be positive")

        self._ensure_account(user_id)

        try:
            with self.db.session() as session:
                existing = session.scalar(
                    select(WalletTransaction).where(WalletTransaction.idempotency_key == idempotency_key)
                )
                if existing:
                    self.logger.info("wallet_credit_replayed", user_id=user_id, idempotency_key=idempotency_key)
                    return

                session.execute(
                    update(WalletAccount)
                    .where(WalletAccount.user_id == user_id)
                    .values(balance=WalletAccount.balance + amount)
                )
                new_balance = session.scalar(
                    select(WalletAccount.balance).where(WalletAccount.user_id == user_id)
                )
                session.add(
                    WalletTransaction(
                        user_id=user_id,
                        amount=amount,
                        balance_after=new_balance,
                        reason=reason,
                        idempotency_key=idempotency_key,
                    )
                )
        except IntegrityError:
            # A concurrent replay committed the same key first
            self.logger.info("wallet_credit_replayed", user_id=user_id, idempotency_key=idempotency_key)
            return

        self.logger.info(
            "wallet_credited",
            user_id=user_id,
            amount=amount,
            reason=reason,
            new_balance=new_balance,
        )

    def list_transactions(self, user_id: str) -> list[WalletTransaction]:
        with self.db.session() as session:
            return list(
                session.scalars(
                    select(WalletTransaction)
                    .where(WalletTransaction.user_id == user_id)
                    .order_by(WalletTransaction.id)
                )
            )

    def _ensure_account(self, user_id: str) -> None:
        """Create an empty account unless one exists."""
        try:
            with self.db.session() as session:
                if session.get(WalletAccount, user_id) is None:
                    session.add(WalletAccount(user_id=user_id, balance=0))
        except IntegrityError:
            # Created concurrently, which is all we wanted
            pass
