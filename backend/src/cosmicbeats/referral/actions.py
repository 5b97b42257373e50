"""Onboarding action completion with dual rewards."""

from datetime import datetime

from sqlalchemy import update

from cosmicbeats.logging_config import get_logger
from cosmicbeats.referral.catalog import ActionType, action_reward
from cosmicbeats.referral.credits import CreditDispatcher
from cosmicbeats.referral.evaluator import MilestoneEvaluator
from cosmicbeats.referral.exceptions import (
    ActionNotFound,
    AlreadyCompleted,
    AlreadyProcessed,
    Expired,
    WalletCreditFailed,
)
from cosmicbeats.referral.ledger import SYSTEM_ACTOR, ReferralLedger
from cosmicbeats.referral.models import Referral, ReferralAction, ReferralStatus
from cosmicbeats.referral.policy import ValidationPolicy, manual_only
from cosmicbeats.referral.windows import is_expired

logger = get_logger(__name__)


class ActionCompletionProtocol:
    """Marks a referral action done and pays both sides of the referral."""

    def __init__(
        self,
        ledger: ReferralLedger,
        credits: CreditDispatcher,
        evaluator: MilestoneEvaluator,
        policy: ValidationPolicy = manual_only,
    ):
        self.ledger = ledger
        self.credits = credits
        self.evaluator = evaluator
        self.policy = policy

    def complete_action(self, referral_id: str, action_type: ActionType | str, now: datetime) -> ReferralAction:
        """Complete one action of a referral.

        Args:
            referral_id: Referral the action belongs to
            action_type: Action to complete
            now: Completion time

        Returns:
            The completed action

        Raises:
            NotFound: Unknown referral
            Expired: The referral's window closed or it was invalidated
            ActionNotFound: The referral has no such action
            AlreadyCompleted: The action was completed before
            WalletCreditFailed: The action is completed but a credit is still queued
        """
        try:
            action_type = ActionType(action_type)
        except ValueError:
            raise ActionNotFound(referral_id, str(action_type)) from None

        with self.ledger.locks.hold(f"referral:{referral_id}"):
            referral = self.ledger.get(referral_id)
            self._ensure_open(referral, now)

            action = referral.action(action_type)
            if action is None:
                raise ActionNotFound(referral_id, action_type.value)
            if action.completed:
                self._already_completed(referral_id, action_type)

            reward = action_reward(action_type)
            with self.ledger.db.session() as session:
                result = session.execute(
                    update(ReferralAction)
                    .where(ReferralAction.id == action.id, ReferralAction.completed.is_(False))
                    .values(completed=True, completed_at=now, beatcoins_rewarded=reward)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    self._already_completed(referral_id, action_type)

                keys = [
                    self.credits.enqueue(
                        session,
                        user_id=referral.referrer_id,
                        amount=reward,
                        reason="referral_action",
                        idempotency_key=f"action:{action.id}:referrer",
                        referral_id=referral_id,
                    ),
                    self.credits.enqueue(
                        session,
                        user_id=referral.referred_id,
                        amount=reward,
                        reason="referral_action",
                        idempotency_key=f"action:{action.id}:referred",
                        referral_id=referral_id,
                    ),
                ]

            logger.info(
                "referral_action_completed",
                referral_id=referral_id,
                action=action_type.value,
                referrer_id=referral.referrer_id,
                referred_id=referral.referred_id,
                beatcoins_each=reward,
            )
            failed: list[str] = []
            try:
                self.credits.dispatch(keys)
            except WalletCreditFailed as e:
                failed.extend(e.idempotency_keys)
            failed.extend(self._after_completion(referral_id, referral.referrer_id, now))
            if failed:
                raise WalletCreditFailed(failed)

            completed = self.ledger.get(referral_id).action(action_type)
        return completed

    def _ensure_open(self, referral: Referral, now: datetime) -> None:
        if referral.status == ReferralStatus.INVALID:
            logger.info("referral_action_on_invalid", referral_id=referral.id)
            raise Expired(referral.id)
        if referral.status == ReferralStatus.PENDING and is_expired(
            referral.created_at, now, self.ledger.expiration_days
        ):
            # Sweeper has not run yet; expire now so nobody sees it pending
            self.ledger.expire(referral.id)
            logger.info("referral_action_on_expired", referral_id=referral.id)
            raise Expired(referral.id)

    def _already_completed(self, referral_id: str, action_type: ActionType) -> None:
        logger.info("referral_action_already_completed", referral_id=referral_id, action=action_type.value)
        raise AlreadyCompleted(referral_id, action_type.value)

    def _after_completion(self, referral_id: str, referrer_id: str, now: datetime) -> list[str]:
        """Run auto-validation and reevaluation.

        Returns:
            Idempotency keys of credits that failed along the way
        """
        failed: list[str] = []
        referral = self.ledger.get(referral_id)
        if referral.status == ReferralStatus.PENDING and self.policy(referral):
            try:
                self.ledger.validate_referral(referral_id, SYSTEM_ACTOR, now)
            except AlreadyProcessed:
                logger.info("referral_auto_validation_skipped", referral_id=referral_id)
            except WalletCreditFailed as e:
                failed.extend(e.idempotency_keys)
        try:
            self.evaluator.reevaluate(referrer_id, now)
        except WalletCreditFailed as e:
            failed.extend(e.idempotency_keys)
        return failed
