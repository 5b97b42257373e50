"""Weekly referral quota."""

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from cosmicbeats.logging_config import get_logger
from cosmicbeats.referral.catalog import WEEKLY_REFERRAL_LIMIT
from cosmicbeats.referral.exceptions import QuotaExceeded
from cosmicbeats.referral.models import QuotaReservation, Referral
from cosmicbeats.referral.windows import week_bounds

logger = get_logger(__name__)


class QuotaGuard:
    """Caps referral creation per referrer and calendar week (Monday to Monday)."""

    def __init__(self, limit: int = WEEKLY_REFERRAL_LIMIT):
        self.limit = limit

    def weekly_count(self, session: Session, referrer_id: str, now: datetime) -> int:
        """Referrals created by `referrer_id` in the week containing `now`."""
        start, end = week_bounds(now)
        return session.scalar(
            select(func.count(Referral.id)).where(
                Referral.referrer_id == referrer_id,
                Referral.created_at >= start,
                Referral.created_at < end,
            )
        ) or 0

    def check_and_reserve(self, session: Session, referrer_id: str, now: datetime) -> int:
        """Reserve one weekly slot inside the caller's transaction.

        The reservation row is bumped with a conditional UPDATE, so two
        transactions racing for the last slot cannot both succeed. The slot
        is released again if the caller's transaction rolls back.

        Returns:
            Slots used this week, including the new one

        Raises:
            QuotaExceeded: If the referrer has no slot left this week
        """
        start, _ = week_bounds(now)
        used = self.weekly_count(session, referrer_id, now)
        if used >= self.limit:
            self._reject(referrer_id, used)

        reservation = session.scalar(
            select(QuotaReservation).where(
                QuotaReservation.referrer_id == referrer_id,
                QuotaReservation.week_start == start,
            )
        )
        if reservation is None:
            session.add(QuotaReservation(referrer_id=referrer_id, week_start=start, reserved=used))
            session.flush()

        result = session.execute(
            update(QuotaReservation)
            .where(
                QuotaReservation.referrer_id == referrer_id,
                QuotaReservation.week_start == start,
                QuotaReservation.reserved < self.limit,
            )
            .values(reserved=QuotaReservation.reserved + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self._reject(referrer_id, self.limit)

        return used + 1

    def _reject(self, referrer_id: str, used: int) -> None:
        logger.info("referral_quota_exceeded", referrer_id=referrer_id, used=used, limit=self.limit)
        raise QuotaExceeded(referrer_id, self.limit)
