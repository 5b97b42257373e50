"""Expiration of stale pending referrals."""

from datetime import datetime, timedelta

from sqlalchemy import select

from cosmicbeats.logging_config import get_logger
from cosmicbeats.referral.ledger import ReferralLedger
from cosmicbeats.referral.models import Referral, ReferralStatus

logger = get_logger(__name__)


class ExpirationSweeper:
    """Invalidates pending referrals whose window has closed.

    Only the status changes; nobody is rewarded or penalized. Safe to run
    next to user traffic because the ledger's transition is conditional.
    """

    def __init__(self, ledger: ReferralLedger):
        self.ledger = ledger

    def due(self, now: datetime) -> list[str]:
        """Ids of pending referrals created at least `expiration_days` ago."""
        cutoff = now - timedelta(days=self.ledger.expiration_days)
        with self.ledger.db.session() as session:
            return list(
                session.scalars(
                    select(Referral.id)
                    .where(Referral.status == ReferralStatus.PENDING, Referral.created_at <= cutoff)
                    .order_by(Referral.created_at)
                )
            )

    def sweep(self, now: datetime) -> int:
        """Expire every due referral.

        Returns:
            Number of referrals this sweep moved to invalid
        """
        expired = 0
        for referral_id in self.due(now):
            if self.ledger.transition_to_invalid(referral_id, reason="expired"):
                expired += 1
                logger.info("referral_expired", referral_id=referral_id)

        logger.info("referral_sweep_finished", expired=expired, swept_at=now.isoformat())
        return expired
