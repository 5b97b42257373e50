"""Referral service: the command/query surface of the rewards engine."""

from datetime import datetime

from cosmicbeats.clock import utcnow
from cosmicbeats.identity.service import RoleProvider
from cosmicbeats.logging_config import get_logger
from cosmicbeats.referral.actions import ActionCompletionProtocol
from cosmicbeats.referral.catalog import ActionType, Badge, Role, get_badge
from cosmicbeats.referral.credits import CreditDispatcher
from cosmicbeats.referral.evaluator import EvaluationResult, MilestoneEvaluator
from cosmicbeats.referral.ledger import ReferralLedger
from cosmicbeats.referral.locks import KeyedLock
from cosmicbeats.referral.models import Referral, ReferralAction
from cosmicbeats.referral.policy import ValidationPolicy, get_policy
from cosmicbeats.referral.quota import QuotaGuard
from cosmicbeats.referral.schemas import LeaderboardEntry, LeaderboardPeriod, ReferralDetail, ReferralStats
from cosmicbeats.referral.sharing import build_share_links
from cosmicbeats.referral.stats import StatsProjector
from cosmicbeats.referral.sweeper import ExpirationSweeper
from cosmicbeats.settings import settings
from cosmicbeats.storage.db import Database
from cosmicbeats.wallet.service import Wallet

logger = get_logger(__name__)


class ReferralService:
    """Wires the ledger, quota, sweeper, completion protocol, evaluator and
    projections around one database, wallet and role provider.

    Every method takes an optional `now`; it defaults to the current UTC time
    and exists so callers (and tests) can pin the clock.
    """

    def __init__(
        self,
        database: Database,
        wallet: Wallet,
        roles: RoleProvider,
        *,
        weekly_limit: int | None = None,
        expiration_days: int | None = None,
        policy: ValidationPolicy | None = None,
        credit_max_attempts: int | None = None,
        credit_backoff_seconds: float | None = None,
        share_base_url: str | None = None,
    ):
        self.db = database
        self.roles = roles
        self.share_base_url = settings.share_base_url if share_base_url is None else share_base_url

        locks = KeyedLock()
        self.credits = CreditDispatcher(
            database,
            wallet,
            max_attempts=settings.wallet_credit_max_attempts if credit_max_attempts is None else credit_max_attempts,
            backoff_seconds=(
                settings.wallet_credit_backoff_seconds if credit_backoff_seconds is None else credit_backoff_seconds
            ),
        )
        self.quota = QuotaGuard(
            limit=settings.weekly_referral_limit if weekly_limit is None else weekly_limit
        )
        self.evaluator = MilestoneEvaluator(database, roles, self.credits, locks=locks)
        self.ledger = ReferralLedger(
            database,
            roles,
            self.credits,
            quota=self.quota,
            evaluator=self.evaluator,
            expiration_days=settings.referral_expiration_days if expiration_days is None else expiration_days,
            locks=locks,
        )
        self.sweeper = ExpirationSweeper(self.ledger)
        self.actions = ActionCompletionProtocol(
            self.ledger,
            self.credits,
            self.evaluator,
            policy=policy or get_policy(settings.auto_validation_policy),
        )
        self.stats = StatsProjector(self.ledger, roles)

    # ==================== COMMANDS ====================

    def redeem_code(
        self,
        referrer_id: str,
        referred_id: str,
        code: str,
        referred_role: Role | None = None,
        now: datetime | None = None,
    ) -> Referral:
        """Open a referral for a code the registry already resolved to `referrer_id`.

        The referred user's role is looked up when not given.
        """
        role = referred_role if referred_role is not None else self.roles.role_of(referred_id)
        return self.ledger.create_referral(referrer_id, referred_id, code.strip(), role, now or utcnow())

    def validate_referral(self, referral_id: str, actor: str, now: datetime | None = None) -> Referral:
        return self.ledger.validate_referral(referral_id, actor, now or utcnow())

    def complete_action(
        self,
        referral_id: str,
        action_type: ActionType | str,
        now: datetime | None = None,
    ) -> ReferralAction:
        return self.actions.complete_action(referral_id, action_type, now or utcnow())

    def invalidate(self, referral_id: str, reason: str) -> Referral:
        return self.ledger.invalidate(referral_id, reason)

    def reevaluate(self, referrer_id: str, now: datetime | None = None) -> EvaluationResult:
        return self.evaluator.reevaluate(referrer_id, now or utcnow())

    def sweep(self, now: datetime | None = None) -> int:
        """Expire due referrals. Returns how many were expired."""
        return self.sweeper.sweep(now or utcnow())

    def retry_pending_credits(self) -> int:
        """Push queued wallet credits again. Returns how many were applied."""
        return self.credits.retry_pending()

    # ==================== QUERIES ====================

    def get_referral(self, referral_id: str) -> Referral:
        return self.ledger.get(referral_id)

    def get_referral_detail(self, referral_id: str, now: datetime | None = None) -> ReferralDetail:
        return self.stats.referral_detail(referral_id, now or utcnow())

    def list_referrals(self, referrer_id: str) -> list[Referral]:
        return self.ledger.list_by_referrer(referrer_id)

    def get_stats(self, referrer_id: str, now: datetime | None = None) -> ReferralStats:
        return self.stats.build_stats(referrer_id, now or utcnow())

    def get_leaderboard(
        self,
        period: LeaderboardPeriod = "weekly",
        now: datetime | None = None,
        limit: int = 10,
    ) -> list[LeaderboardEntry]:
        return self.stats.leaderboard(period, now or utcnow(), limit=limit)

    def get_badges(self, referrer_id: str) -> list[Badge]:
        return [badge for badge in map(get_badge, self.ledger.granted_badges(referrer_id)) if badge]

    def share_links(self, code: str) -> dict[str, str]:
        return build_share_links(code, self.share_base_url)
