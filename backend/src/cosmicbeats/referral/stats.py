"""Read-only projections of the referral ledger."""

from datetime import datetime

from sqlalchemy import func, select

from cosmicbeats.identity.service import RoleProvider
from cosmicbeats.referral.catalog import get_badge, rewards_for_role
from cosmicbeats.referral.ledger import ReferralLedger
from cosmicbeats.referral.models import Referral, ReferralStatus
from cosmicbeats.referral.schemas import (
    BadgeView,
    LeaderboardEntry,
    LeaderboardPeriod,
    MilestoneView,
    ReferralDetail,
    ReferralStats,
)
from cosmicbeats.referral.windows import days_remaining, month_bounds, week_bounds


class StatsProjector:
    """Builds referrer dashboards and leaderboards. Never writes."""

    def __init__(self, ledger: ReferralLedger, roles: RoleProvider):
        self.ledger = ledger
        self.roles = roles

    def build_stats(self, referrer_id: str, now: datetime) -> ReferralStats:
        """Assemble the stats view for one referrer.

        Args:
            referrer_id: Referrer to summarize
            now: Reference time for the weekly window and days remaining

        Returns:
            ReferralStats
        """
        referrals = self.ledger.list_by_referrer(referrer_id)
        role = self.roles.role_of(referrer_id)

        valid = sum(1 for r in referrals if r.status == ReferralStatus.VALID)
        pending = sum(1 for r in referrals if r.status == ReferralStatus.PENDING)
        invalid = sum(1 for r in referrals if r.status == ReferralStatus.INVALID)

        milestones = [MilestoneView.build(m, valid) for m in rewards_for_role(role).milestones]
        next_milestone = next((m for m in milestones if not m.is_completed), None)

        badges = [
            BadgeView.build(badge)
            for badge in (get_badge(badge_id) for badge_id in self.ledger.granted_badges(referrer_id))
            if badge is not None
        ]

        details = [
            ReferralDetail.build(r, days_remaining(r.created_at, now, self.ledger.expiration_days))
            for r in referrals
        ]

        return ReferralStats(
            referrer_id=referrer_id,
            role=role,
            total_referrals=len(referrals),
            valid_referrals=valid,
            pending_referrals=pending,
            invalid_referrals=invalid,
            total_beatcoins_earned=sum(r.beatcoins_earned for r in referrals),
            milestones=milestones,
            next_milestone=next_milestone,
            weekly_referrals=self.ledger.weekly_count(referrer_id, now),
            weekly_referrals_limit=self.ledger.quota.limit,
            badges=badges,
            referral_details=details,
        )

    def referral_detail(self, referral_id: str, now: datetime) -> ReferralDetail:
        """One referral with its actions and days left.

        Raises:
            NotFound: Unknown referral
        """
        referral = self.ledger.get(referral_id)
        return ReferralDetail.build(referral, days_remaining(referral.created_at, now, self.ledger.expiration_days))

    def leaderboard(self, period: LeaderboardPeriod, now: datetime, limit: int = 10) -> list[LeaderboardEntry]:
        """Referrers ranked by referrals validated in the current week or month."""
        if period == "weekly":
            start, end = week_bounds(now)
        elif period == "monthly":
            start, end = month_bounds(now)
        else:
            raise ValueError(f"Unknown leaderboard period: {period}")

        valid_count = func.count(Referral.id).label("valid_count")
        stmt = (
            select(Referral.referrer_id, valid_count)
            .where(
                Referral.status == ReferralStatus.VALID,
                Referral.completed_at >= start,
                Referral.completed_at < end,
            )
            .group_by(Referral.referrer_id)
            .order_by(valid_count.desc(), Referral.referrer_id)
            .limit(limit)
        )
        with self.ledger.db.session() as session:
            rows = session.execute(stmt).all()

        return [
            LeaderboardEntry(rank=rank, referrer_id=row.referrer_id, valid_referrals=row.valid_count)
            for rank, row in enumerate(rows, start=1)
        ]
