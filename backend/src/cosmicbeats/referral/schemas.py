"""Read models for referral stats, details and leaderboards."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from cosmicbeats.referral.catalog import ActionType, Badge, Milestone, Role
from cosmicbeats.referral.models import Referral, ReferralStatus

LeaderboardPeriod = Literal["weekly", "monthly"]


class MilestoneRewardView(BaseModel):
    kind: str
    value: str | int
    description: str


class MilestoneView(BaseModel):
    count: int
    reward: MilestoneRewardView
    is_completed: bool

    @classmethod
    def build(cls, milestone: Milestone, valid_referrals: int) -> "MilestoneView":
        return cls(
            count=milestone.count,
            reward=MilestoneRewardView(
                kind=milestone.reward.kind.value,
                value=milestone.reward.value,
                description=milestone.reward.description,
            ),
            is_completed=milestone.is_completed(valid_referrals),
        )


class BadgeView(BaseModel):
    id: str
    name: str
    requirement: int
    reward: int
    icon: str
    description: str

    @classmethod
    def build(cls, badge: Badge) -> "BadgeView":
        return cls(
            id=badge.id,
            name=badge.name,
            requirement=badge.requirement,
            reward=badge.reward,
            icon=badge.icon,
            description=badge.description,
        )


class ActionView(BaseModel):
    type: ActionType
    completed: bool
    completed_at: datetime | None = None
    beatcoins_rewarded: int | None = None
    dual_reward: bool = True


class ReferralDetail(BaseModel):
    """One referral as shown to its referrer."""
    id: str
    referrer_id: str
    referred_id: str
    referred_role: Role
    code: str
    status: ReferralStatus
    created_at: datetime
    completed_at: datetime | None = None
    beatcoins_earned: int
    actions: list[ActionView]
    time_remaining_days: int = Field(description="Whole days left before a pending referral expires")

    @classmethod
    def build(cls, referral: Referral, time_remaining_days: int) -> "ReferralDetail":
        return cls(
            id=referral.id,
            referrer_id=referral.referrer_id,
            referred_id=referral.referred_id,
            referred_role=referral.referred_role,
            code=referral.code,
            status=referral.status,
            created_at=referral.created_at,
            completed_at=referral.completed_at,
            beatcoins_earned=referral.beatcoins_earned,
            actions=[
                ActionView(
                    type=action.type,
                    completed=action.completed,
                    completed_at=action.completed_at,
                    beatcoins_rewarded=action.beatcoins_rewarded,
                    dual_reward=action.dual_reward,
                )
                for action in referral.actions
            ],
            time_remaining_days=time_remaining_days,
        )


class ReferralStats(BaseModel):
    """Summary of a referrer's program progress."""
    referrer_id: str
    role: Role
    total_referrals: int
    valid_referrals: int
    pending_referrals: int
    invalid_referrals: int
    total_beatcoins_earned: int
    milestones: list[MilestoneView]
    next_milestone: MilestoneView | None = None
    weekly_referrals: int
    weekly_referrals_limit: int
    badges: list[BadgeView]
    referral_details: list[ReferralDetail]


class LeaderboardEntry(BaseModel):
    rank: int
    referrer_id: str
    valid_referrals: int
