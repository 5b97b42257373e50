"""Static reward catalog for the referral program.

Lookup tables only: flat validation rewards and milestone ladders per role,
the global badge list and per-action dual rewards.
"""

from dataclasses import dataclass
from enum import Enum

from cosmicbeats.identity.roles import Role


class ActionType(str, Enum):
    """Onboarding actions a referred user can complete."""
    PROFILE_COMPLETION = "profile_completion"
    SCAN_QR = "scan_qr"
    VOTE = "vote"
    MATCH = "match"
    UPLOAD_SESSION = "upload_session"  # Performers only


class RewardKind(str, Enum):
    """What a milestone hands out."""
    BEATCOINS = "beatcoins"
    SUBSCRIPTION = "subscription"
    ITEM = "item"
    FEATURE = "feature"


@dataclass(frozen=True)
class MilestoneReward:
    kind: RewardKind
    value: str | int
    description: str


@dataclass(frozen=True)
class Milestone:
    """A step on a role's ladder, reached at `count` valid referrals."""
    count: int
    reward: MilestoneReward

    @property
    def key(self) -> str:
        return f"{self.count}:{self.reward.kind.value}:{self.reward.value}"

    def is_completed(self, valid_count: int) -> bool:
        return valid_count >= self.count


@dataclass(frozen=True)
class Badge:
    id: str
    name: str
    requirement: int
    reward: int
    icon: str
    description: str


@dataclass(frozen=True)
class RoleRewards:
    beatcoins_per_referral: int
    milestones: tuple[Milestone, ...]


WEEKLY_REFERRAL_LIMIT = 5
REFERRAL_EXPIRATION_DAYS = 7


ROLE_REWARDS: dict[Role, RoleRewards] = {
    Role.PERFORMER: RoleRewards(
        beatcoins_per_referral=50,
        milestones=(
            Milestone(5, MilestoneReward(RewardKind.SUBSCRIPTION, "technic", "1 month Technic free")),
            Milestone(10, MilestoneReward(RewardKind.BEATCOINS, 500, "500 extra Beatcoins")),
            Milestone(20, MilestoneReward(RewardKind.SUBSCRIPTION, "master", "1 month Master free")),
        ),
    ),
    Role.ATTENDEE: RoleRewards(
        beatcoins_per_referral=30,
        milestones=(
            Milestone(5, MilestoneReward(RewardKind.BEATCOINS, 200, "200 extra Beatcoins")),
            Milestone(10, MilestoneReward(RewardKind.ITEM, "free_drink", "1 free drink at a partner club")),
            Milestone(20, MilestoneReward(RewardKind.SUBSCRIPTION, "supporter", "1 month Supporter free")),
        ),
    ),
    Role.OTHER: RoleRewards(
        beatcoins_per_referral=40,
        milestones=(
            Milestone(5, MilestoneReward(RewardKind.FEATURE, "exclusive_training", "Access to exclusive training")),
            Milestone(10, MilestoneReward(RewardKind.BEATCOINS, 300, "300 extra Beatcoins")),
            Milestone(20, MilestoneReward(RewardKind.ITEM, "premium_equipment", "Access to premium equipment")),
        ),
    ),
    Role.VENUE: RoleRewards(
        beatcoins_per_referral=100,
        milestones=(
            Milestone(3, MilestoneReward(RewardKind.FEATURE, "map_highlight", "Highlighted on the map for 1 week")),
            Milestone(10, MilestoneReward(RewardKind.SUBSCRIPTION, "embassy", "1 month Embassy free")),
            Milestone(20, MilestoneReward(RewardKind.FEATURE, "premium_analytics", "Premium analytics for 3 months")),
        ),
    ),
}


REFERRAL_BADGES: tuple[Badge, ...] = (
    Badge("signal_beacon", "Signal Beacon", 3, 50, "radio",
          "Your signal has reached 3 new crew members"),
    Badge("orbital_influencer", "Orbital Influencer", 10, 100, "satellite",
          "Your influence spans the whole orbit"),
    Badge("wormhole_captain", "Wormhole Captain", 20, 200, "compass",
          "You opened a wormhole for 20 new crew members"),
    Badge("fleet_commander", "Fleet Commander", 50, 500, "users",
          "You command a fleet of 50 crew members"),
    Badge("high_council_strategist", "High Council Strategist", 100, 1000, "crown",
          "Your recruiting strategies are legendary"),
)


ACTION_REWARDS: dict[ActionType, int] = {
    ActionType.PROFILE_COMPLETION: 10,
    ActionType.SCAN_QR: 5,
    ActionType.VOTE: 5,
    ActionType.MATCH: 3,
    ActionType.UPLOAD_SESSION: 10,
}


_BASE_ACTIONS = (
    ActionType.PROFILE_COMPLETION,
    ActionType.SCAN_QR,
    ActionType.VOTE,
    ActionType.MATCH,
)

ROLE_ACTIONS: dict[Role, tuple[ActionType, ...]] = {
    Role.PERFORMER: _BASE_ACTIONS + (ActionType.UPLOAD_SESSION,),
    Role.ATTENDEE: _BASE_ACTIONS,
    Role.VENUE: _BASE_ACTIONS,
    Role.OTHER: _BASE_ACTIONS,
}


def rewards_for_role(role: Role) -> RoleRewards:
    """Reward row for a referrer role."""
    return ROLE_REWARDS[Role(role)]


def actions_for_role(role: Role) -> tuple[ActionType, ...]:
    """Action set a referral gets when the referred user has `role`."""
    return ROLE_ACTIONS[Role(role)]


def action_reward(action_type: ActionType) -> int:
    """Beatcoins paid to each side when `action_type` is completed."""
    return ACTION_REWARDS[ActionType(action_type)]


def get_badge(badge_id: str) -> Badge | None:
    for badge in REFERRAL_BADGES:
        if badge.id == badge_id:
            return badge
    return None
