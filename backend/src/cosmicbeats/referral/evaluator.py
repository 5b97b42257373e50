"""Milestone and badge progression for referrers."""

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cosmicbeats.clock import utcnow
from cosmicbeats.identity.service import RoleProvider
from cosmicbeats.logging_config import get_logger
from cosmicbeats.referral.catalog import REFERRAL_BADGES, Badge, Milestone, RewardKind, rewards_for_role
from cosmicbeats.referral.credits import CreditDispatcher
from cosmicbeats.referral.locks import KeyedLock
from cosmicbeats.referral.models import GrantKind, Referral, ReferralStatus, RewardGrant
from cosmicbeats.storage.db import Database

logger = get_logger(__name__)


def valid_referral_count(session: Session, referrer_id: str) -> int:
    return session.scalar(
        select(func.count(Referral.id)).where(
            Referral.referrer_id == referrer_id,
            Referral.status == ReferralStatus.VALID,
        )
    ) or 0


def granted_keys(session: Session, referrer_id: str, kind: GrantKind) -> list[str]:
    return list(
        session.scalars(
            select(RewardGrant.key)
            .where(RewardGrant.referrer_id == referrer_id, RewardGrant.kind == kind)
            .order_by(RewardGrant.id)
        )
    )


@dataclass
class EvaluationResult:
    referrer_id: str
    valid_referrals: int
    newly_completed_milestones: list[Milestone] = field(default_factory=list)
    newly_granted_badges: list[Badge] = field(default_factory=list)


class MilestoneEvaluator:
    """Grants milestones and badges the first time a referrer qualifies.

    Grants live in `referral_reward_grants` under a unique
    (referrer, kind, key) constraint, so each one is recorded and paid once no
    matter how often `reevaluate` runs.
    """

    def __init__(
        self,
        database: Database,
        roles: RoleProvider,
        credits: CreditDispatcher,
        badges: tuple[Badge, ...] = REFERRAL_BADGES,
        locks: KeyedLock | None = None,
    ):
        self.db = database
        self.roles = roles
        self.credits = credits
        self.badges = badges
        self.locks = locks or KeyedLock()

    def reevaluate(self, referrer_id: str, now: datetime | None = None) -> EvaluationResult:
        """Recompute progress and grant anything newly earned.

        Args:
            referrer_id: Referrer to evaluate
            now: Grant timestamp

        Returns:
            What this call granted; empty lists when nothing changed
        """
        now = now or utcnow()
        ladder = rewards_for_role(self.roles.role_of(referrer_id)).milestones

        with self.locks.hold(f"referrer:{referrer_id}"):
            try:
                result, keys = self._grant(referrer_id, ladder, now)
            except IntegrityError:
                # Another process recorded one of the grants first; the second
                # pass sees it and only adds what is still missing
                logger.info("reward_grant_conflict", referrer_id=referrer_id)
                result, keys = self._grant(referrer_id, ladder, now)

        for milestone in result.newly_completed_milestones:
            logger.info(
                "referral_milestone_completed",
                referrer_id=referrer_id,
                count=milestone.count,
                reward_kind=milestone.reward.kind.value,
                reward_value=milestone.reward.value,
            )
        for badge in result.newly_granted_badges:
            logger.info("referral_badge_granted", referrer_id=referrer_id, badge_id=badge.id, reward=badge.reward)

        if keys:
            self.credits.dispatch(keys)
        return result

    def _grant(
        self, referrer_id: str, ladder: tuple[Milestone, ...], now: datetime
    ) -> tuple[EvaluationResult, list[str | None]]:
        keys: list[str | None] = []
        with self.db.session() as session:
            valid = valid_referral_count(session, referrer_id)
            result = EvaluationResult(referrer_id=referrer_id, valid_referrals=valid)
            milestones_done = set(granted_keys(session, referrer_id, GrantKind.MILESTONE))
            badges_done = set(granted_keys(session, referrer_id, GrantKind.BADGE))

            for milestone in ladder:
                if not milestone.is_completed(valid) or milestone.key in milestones_done:
                    continue
                beatcoins = int(milestone.reward.value) if milestone.reward.kind == RewardKind.BEATCOINS else 0
                session.add(
                    RewardGrant(
                        referrer_id=referrer_id,
                        kind=GrantKind.MILESTONE,
                        key=milestone.key,
                        beatcoins=beatcoins,
                        granted_at=now,
                    )
                )
                keys.append(
                    self.credits.enqueue(
                        session,
                        user_id=referrer_id,
                        amount=beatcoins,
                        reason="referral_milestone",
                        idempotency_key=f"milestone:{referrer_id}:{milestone.key}",
                    )
                )
                result.newly_completed_milestones.append(milestone)

            for badge in self.badges:
                if valid < badge.requirement or badge.id in badges_done:
                    continue
                session.add(
                    RewardGrant(
                        referrer_id=referrer_id,
                        kind=GrantKind.BADGE,
                        key=badge.id,
                        beatcoins=badge.reward,
                        granted_at=now,
                    )
                )
                keys.append(
                    self.credits.enqueue(
                        session,
                        user_id=referrer_id,
                        amount=badge.reward,
                        reason="referral_badge",
                        idempotency_key=f"badge:{referrer_id}:{badge.id}",
                    )
                )
                result.newly_granted_badges.append(badge)

        return result, keys
