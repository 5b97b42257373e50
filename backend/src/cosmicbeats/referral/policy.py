"""Automatic validation policies.

A policy looks at a pending referral after one of its actions completes and
says whether it now qualifies as valid. Validation stays manual unless a
deployment opts into a policy.
"""

from typing import Callable

from cosmicbeats.referral.catalog import ActionType
from cosmicbeats.referral.models import Referral

ValidationPolicy = Callable[[Referral], bool]


def manual_only(referral: Referral) -> bool:
    """Never validate automatically; the referrer or an operator does it."""
    return False


def profile_plus_interaction(referral: Referral) -> bool:
    """Valid once the profile is complete and one other action is done."""
    profile = referral.action(ActionType.PROFILE_COMPLETION)
    if profile is None or not profile.completed:
        return False
    return any(a.completed for a in referral.actions if a.type != ActionType.PROFILE_COMPLETION)


POLICIES: dict[str, ValidationPolicy] = {
    "manual_only": manual_only,
    "profile_plus_interaction": profile_plus_interaction,
}


def get_policy(name: str) -> ValidationPolicy:
    try:
        return POLICIES[name]
    except KeyError:
        raise ValueError(f"Unknown validation policy: {name}") from None
