"""Referral rewards engine for CosmicBeats.

Dual-sided rewards: every onboarding action the referred user completes pays
the same amount of beatcoins to the referrer and to the referred user.
Referrers also earn a flat reward per validated referral, role milestones and
global badges. Creation is capped per week and pending referrals expire.
"""

from cosmicbeats.referral.catalog import ActionType, Role
from cosmicbeats.referral.exceptions import (
    ActionNotFound,
    AlreadyCompleted,
    AlreadyProcessed,
    Expired,
    NotAuthorized,
    NotFound,
    QuotaExceeded,
    ReferralError,
    SelfReferral,
    WalletCreditFailed,
)
from cosmicbeats.referral.ledger import SYSTEM_ACTOR
from cosmicbeats.referral.models import Referral, ReferralAction, ReferralStatus
from cosmicbeats.referral.service import ReferralService

__all__ = [
    "ActionNotFound",
    "ActionType",
    "AlreadyCompleted",
    "AlreadyProcessed",
    "Expired",
    "NotAuthorized",
    "NotFound",
    "QuotaExceeded",
    "Referral",
    "ReferralAction",
    "ReferralError",
    "ReferralService",
    "ReferralStatus",
    "Role",
    "SYSTEM_ACTOR",
    "SelfReferral",
    "WalletCreditFailed",
]
