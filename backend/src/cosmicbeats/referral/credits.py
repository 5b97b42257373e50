"""Wallet side effects of referral transitions.

Credits are written to `referral_reward_credits` in the same transaction as
the ledger change that earns them, then pushed to the wallet after commit
under their idempotency key. A credit that keeps failing is marked failed,
logged and reported to the caller with `WalletCreditFailed`; it stays in the
table until `retry_pending` settles it. Delivery is therefore at-least-once
and the wallet deduplicates by key.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session
from tenacity import Retrying, stop_after_attempt, wait_exponential

from cosmicbeats.clock import utcnow
from cosmicbeats.logging_config import get_logger
from cosmicbeats.referral.exceptions import WalletCreditFailed
from cosmicbeats.referral.models import CreditStatus, RewardCredit
from cosmicbeats.storage.db import Database
from cosmicbeats.wallet.service import Wallet

logger = get_logger(__name__)


class CreditDispatcher:
    """Outbox of wallet credits owed by the referral engine."""

    def __init__(
        self,
        database: Database,
        wallet: Wallet,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
    ):
        self.db = database
        self.wallet = wallet
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    def enqueue(
        self,
        session: Session,
        *,
        user_id: str,
        amount: int,
        reason: str,
        idempotency_key: str,
        referral_id: str | None = None,
    ) -> str | None:
        """Record a credit inside the caller's transaction.

        Returns:
            The idempotency key to dispatch after commit, None for zero amounts
        """
        if amount <= 0:
            return None
        session.add(
            RewardCredit(
                idempotency_key=idempotency_key,
                user_id=user_id,
                amount=amount,
                reason=reason,
                referral_id=referral_id,
                status=CreditStatus.PENDING,
            )
        )
        return idempotency_key

    def dispatch(self, keys: list[str | None]) -> int:
        """Push committed credits to the wallet.

        Args:
            keys: Idempotency keys returned by `enqueue`

        Returns:
            Number of credits applied

        Raises:
            WalletCreditFailed: If any credit still fails after all retries
        """
        failed = []
        applied = 0
        for key in keys:
            if key is None:
                continue
            if self._deliver(key):
                applied += 1
            else:
                failed.append(key)

        if failed:
            raise WalletCreditFailed(failed)
        return applied

    def retry_pending(self) -> int:
        """Re-dispatch every credit that has not reached the wallet.

        Returns:
            Number of credits applied

        Raises:
            WalletCreditFailed: If some credits are still failing
        """
        with self.db.session() as session:
            keys = list(
                session.scalars(
                    select(RewardCredit.idempotency_key)
                    .where(RewardCredit.status != CreditStatus.CREDITED)
                    .order_by(RewardCredit.id)
                )
            )
        logger.info("wallet_credit_retry_started", pending=len(keys))
        return self.dispatch(keys)

    def outstanding(self, user_id: str | None = None) -> list[RewardCredit]:
        """Credits not yet applied, optionally for one user."""
        with self.db.session() as session:
            stmt = select(RewardCredit).where(RewardCredit.status != CreditStatus.CREDITED)
            if user_id is not None:
                stmt = stmt.where(RewardCredit.user_id == user_id)
            return list(session.scalars(stmt.order_by(RewardCredit.id)))

    def _deliver(self, key: str) -> bool:
        with self.db.session() as session:
            credit = session.scalar(select(RewardCredit).where(RewardCredit.idempotency_key == key))
        if credit is None:
            logger.error("wallet_credit_missing", idempotency_key=key)
            return False
        if credit.status == CreditStatus.CREDITED:
            return True

        attempts = 0
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=10),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    attempts += 1
                    self.wallet.credit(
                        credit.user_id,
                        credit.amount,
                        idempotency_key=credit.idempotency_key,
                        reason=credit.reason,
                    )
        except Exception as exc:
            self._mark(key, CreditStatus.FAILED, attempts, error=repr(exc))
            logger.error(
                "wallet_credit_failed",
                idempotency_key=key,
                user_id=credit.user_id,
                amount=credit.amount,
                reason=credit.reason,
                attempts=attempts,
                error=repr(exc),
            )
            return False

        self._mark(key, CreditStatus.CREDITED, attempts)
        logger.debug("wallet_credit_applied", idempotency_key=key, user_id=credit.user_id, amount=credit.amount)
        return True

    def _mark(self, key: str, status: CreditStatus, attempts: int, error: str | None = None) -> None:
        with self.db.session() as session:
            credit = session.scalar(select(RewardCredit).where(RewardCredit.idempotency_key == key))
            credit.status = status
            credit.attempts = credit.attempts + attempts
            credit.last_error = error
            if status == CreditStatus.CREDITED:
                credit.credited_at = utcnow()
