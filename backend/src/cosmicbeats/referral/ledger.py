"""Referral ledger: the authoritative store of referrals and their actions."""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from cosmicbeats.identity.service import RoleProvider
from cosmicbeats.logging_config import get_logger
from cosmicbeats.referral.catalog import REFERRAL_EXPIRATION_DAYS, Role, actions_for_role, get_badge, rewards_for_role
from cosmicbeats.referral.credits import CreditDispatcher
from cosmicbeats.referral.evaluator import MilestoneEvaluator, granted_keys, valid_referral_count
from cosmicbeats.referral.exceptions import (
    AlreadyProcessed,
    Expired,
    NotAuthorized,
    NotFound,
    SelfReferral,
    WalletCreditFailed,
)
from cosmicbeats.referral.locks import KeyedLock
from cosmicbeats.referral.models import GrantKind, Referral, ReferralAction, ReferralStatus
from cosmicbeats.referral.quota import QuotaGuard
from cosmicbeats.referral.windows import is_expired
from cosmicbeats.storage.db import Database

logger = get_logger(__name__)

# Actor name for transitions driven by the platform rather than a user
SYSTEM_ACTOR = "system"


class ReferralLedger:
    """Creates, validates and invalidates referrals.

    Status transitions are conditional UPDATEs on the current status, so a
    transition happens exactly once however many requests race for it.
    """

    def __init__(
        self,
        database: Database,
        roles: RoleProvider,
        credits: CreditDispatcher,
        quota: QuotaGuard | None = None,
        evaluator: MilestoneEvaluator | None = None,
        expiration_days: int = REFERRAL_EXPIRATION_DAYS,
        locks: KeyedLock | None = None,
    ):
        self.db = database
        self.roles = roles
        self.credits = credits
        self.quota = quota or QuotaGuard()
        self.evaluator = evaluator
        self.expiration_days = expiration_days
        self.locks = locks or KeyedLock()

    # ==================== WRITES ====================

    def create_referral(
        self,
        referrer_id: str,
        referred_id: str,
        code: str,
        referred_role: Role,
        now: datetime,
    ) -> Referral:
        """Open a pending referral after a code redemption.

        Args:
            referrer_id: Owner of the redeemed code
            referred_id: User who redeemed it
            code: Code as presented
            referred_role: Role of the referred user, fixes the action set
            now: Creation time

        Returns:
            The new referral with its actions

        Raises:
            SelfReferral: If both ids are the same user
            QuotaExceeded: If the referrer used up this week's slots
        """
        if referrer_id == referred_id:
            logger.warning("referral_self_attempt", user_id=referrer_id, code=code)
            raise SelfReferral(referrer_id)

        role = Role(referred_role)
        with self.locks.hold(f"referrer:{referrer_id}"):
            try:
                referral = self._insert(referrer_id, referred_id, code, role, now)
            except IntegrityError:
                # Lost the race to create this week's reservation row; it
                # exists now, so the retry goes through the conditional UPDATE
                logger.info("referral_quota_row_conflict", referrer_id=referrer_id)
                referral = self._insert(referrer_id, referred_id, code, role, now)

        logger.info(
            "referral_created",
            referral_id=referral.id,
            referrer_id=referrer_id,
            referred_id=referred_id,
            referred_role=role.value,
            actions=[a.type.value for a in referral.actions],
        )
        return referral

    def validate_referral(self, referral_id: str, actor: str, now: datetime) -> Referral:
        """Promote a pending referral to valid and pay the referrer.

        Args:
            referral_id: Referral to validate
            actor: The referrer, or SYSTEM_ACTOR for automatic validation
            now: Validation time

        Returns:
            The validated referral

        Raises:
            NotFound: Unknown referral
            NotAuthorized: Actor is neither the referrer nor the system
            Expired: The referral's window closed while it was pending
            AlreadyProcessed: The referral already left pending
            WalletCreditFailed: The referral is valid but the credit is still queued
        """
        with self.locks.hold(f"referral:{referral_id}"):
            referral = self.get(referral_id)
            if actor not in (SYSTEM_ACTOR, referral.referrer_id):
                logger.warning("referral_validation_denied", referral_id=referral_id, actor=actor)
                raise NotAuthorized(referral_id, actor)

            if referral.status == ReferralStatus.PENDING and is_expired(
                referral.created_at, now, self.expiration_days
            ):
                self.expire(referral_id)
                raise Expired(referral_id)

            reward = rewards_for_role(self.roles.role_of(referral.referrer_id)).beatcoins_per_referral
            with self.db.session() as session:
                result = session.execute(
                    update(Referral)
                    .where(Referral.id == referral_id, Referral.status == ReferralStatus.PENDING)
                    .values(status=ReferralStatus.VALID, completed_at=now, beatcoins_rewarded=reward)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    current = session.get(Referral, referral_id)
                    logger.info(
                        "referral_already_processed",
                        referral_id=referral_id,
                        status=current.status.value,
                    )
                    raise AlreadyProcessed(referral_id, current.status.value)

                key = self.credits.enqueue(
                    session,
                    user_id=referral.referrer_id,
                    amount=reward,
                    reason="referral_validation",
                    idempotency_key=f"referral:{referral_id}:validation",
                    referral_id=referral_id,
                )

        logger.info(
            "referral_validated",
            referral_id=referral_id,
            referrer_id=referral.referrer_id,
            actor=actor,
            beatcoins=reward,
        )
        failed: list[str] = []
        try:
            self.credits.dispatch([key])
        except WalletCreditFailed as e:
            failed.extend(e.idempotency_keys)

        if self.evaluator is not None:
            try:
                self.evaluator.reevaluate(referral.referrer_id, now)
            except WalletCreditFailed as e:
                failed.extend(e.idempotency_keys)

        if failed:
            raise WalletCreditFailed(failed)
        return self.get(referral_id)

    def expire(self, referral_id: str) -> Referral:
        """System-only transition pending -> invalid.

        A no-op for referrals that already reached a terminal status.

        Raises:
            NotFound: Unknown referral
        """
        if self.transition_to_invalid(referral_id, reason="expired"):
            logger.info("referral_expired", referral_id=referral_id)
        return self.get(referral_id)

    def invalidate(self, referral_id: str, reason: str) -> Referral:
        """Reject a pending referral, e.g. after an abuse report."""
        if self.transition_to_invalid(referral_id, reason=reason):
            logger.warning("referral_invalidated", referral_id=referral_id, reason=reason)
        return self.get(referral_id)

    def transition_to_invalid(self, referral_id: str, reason: str) -> bool:
        """Move a pending referral to invalid.

        Returns:
            True if this call made the transition
        """
        with self.db.session() as session:
            result = session.execute(
                update(Referral)
                .where(Referral.id == referral_id, Referral.status == ReferralStatus.PENDING)
                .values(status=ReferralStatus.INVALID, invalid_reason=reason)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0 and session.get(Referral, referral_id) is None:
                raise NotFound(referral_id)
            return result.rowcount == 1

    # ==================== READS ====================

    def get(self, referral_id: str) -> Referral:
        """Get a referral with its actions.

        Raises:
            NotFound: Unknown referral
        """
        with self.db.session() as session:
            referral = session.get(Referral, referral_id)
            if referral is None:
                raise NotFound(referral_id)
            return referral

    def list_by_referrer(self, referrer_id: str) -> list[Referral]:
        """All referrals of a referrer, oldest first."""
        with self.db.session() as session:
            return list(
                session.scalars(
                    select(Referral)
                    .where(Referral.referrer_id == referrer_id)
                    .order_by(Referral.created_at, Referral.id)
                )
            )

    def list_pending(self) -> list[Referral]:
        with self.db.session() as session:
            return list(
                session.scalars(
                    select(Referral)
                    .where(Referral.status == ReferralStatus.PENDING)
                    .order_by(Referral.created_at)
                )
            )

    def valid_count(self, referrer_id: str) -> int:
        with self.db.session() as session:
            return valid_referral_count(session, referrer_id)

    def weekly_count(self, referrer_id: str, now: datetime) -> int:
        with self.db.session() as session:
            return self.quota.weekly_count(session, referrer_id, now)

    def granted_badges(self, referrer_id: str) -> list[str]:
        """Badge ids granted to a referrer, in grant order."""
        with self.db.session() as session:
            return [
                key for key in granted_keys(session, referrer_id, GrantKind.BADGE)
                if get_badge(key) is not None
            ]

    # ==================== INTERNALS ====================

    def _insert(
        self,
        referrer_id: str,
        referred_id: str,
        code: str,
        role: Role,
        now: datetime,
    ) -> Referral:
        with self.db.session() as session:
            self.quota.check_and_reserve(session, referrer_id, now)

            referral = Referral(
                referrer_id=referrer_id,
                referred_id=referred_id,
                code=code,
                referred_role=role,
                status=ReferralStatus.PENDING,
                created_at=now,
            )
            referral.actions = [
                ReferralAction(type=action_type, position=position, completed=False, dual_reward=True)
                for position, action_type in enumerate(actions_for_role(role))
            ]
            session.add(referral)
            session.flush()
            return referral
