"""Referral system database models."""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cosmicbeats.clock import utcnow
from cosmicbeats.referral.catalog import ActionType, Role
from cosmicbeats.storage.db import Base


def _new_id() -> str:
    return uuid4().hex


def _enum_column(enum_cls: type[Enum]) -> SQLEnum:
    # Store the lowercase values, not the member names
    return SQLEnum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=32,
    )


class ReferralStatus(str, Enum):
    """Referral lifecycle states."""
    PENDING = "pending"
    VALID = "valid"      # Terminal, flat reward paid
    INVALID = "invalid"  # Terminal, expired or rejected for abuse


class GrantKind(str, Enum):
    BADGE = "badge"
    MILESTONE = "milestone"


class CreditStatus(str, Enum):
    PENDING = "pending"
    CREDITED = "credited"
    FAILED = "failed"


class Referral(Base):
    """Individual referral record.

    One row per invitation relationship. Rows are never deleted.
    """
    __tablename__ = "referrals"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    referrer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    referred_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    referred_role: Mapped[Role] = mapped_column(_enum_column(Role), nullable=False)

    # Status
    status: Mapped[ReferralStatus] = mapped_column(
        _enum_column(ReferralStatus), nullable=False, default=ReferralStatus.PENDING, index=True
    )
    beatcoins_rewarded: Mapped[int | None] = mapped_column(Integer, nullable=True)
    invalid_reason: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Relationships
    actions: Mapped[list["ReferralAction"]] = relationship(
        "ReferralAction",
        back_populates="referral",
        cascade="all, delete-orphan",
        order_by="ReferralAction.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Referral(id={self.id}, referrer={self.referrer_id}, status={self.status.value})>"

    def action(self, action_type: ActionType) -> "ReferralAction | None":
        for action in self.actions:
            if action.type == action_type:
                return action
        return None

    @property
    def action_beatcoins(self) -> int:
        """Beatcoins paid per side for the completed actions."""
        return sum(a.beatcoins_rewarded or 0 for a in self.actions if a.completed)

    @property
    def beatcoins_earned(self) -> int:
        """Flat validation reward plus completed action rewards."""
        return (self.beatcoins_rewarded or 0) + self.action_beatcoins


class ReferralAction(Base):
    """Trackable onboarding task tied to a referral.

    `completed` only ever goes from false to true.
    """
    __tablename__ = "referral_actions"
    __table_args__ = (
        UniqueConstraint("referral_id", "type", name="uq_referral_actions_referral_type"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    referral_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("referrals.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    type: Mapped[ActionType] = mapped_column(_enum_column(ActionType), nullable=False)

    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    beatcoins_rewarded: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dual_reward: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    referral: Mapped["Referral"] = relationship("Referral", back_populates="actions")

    def __repr__(self) -> str:
        return f"<ReferralAction(referral={self.referral_id}, type={self.type.value}, completed={self.completed})>"


class RewardGrant(Base):
    """One-shot reward delivered to a referrer (badge or milestone)."""
    __tablename__ = "referral_reward_grants"
    __table_args__ = (
        UniqueConstraint("referrer_id", "kind", "key", name="uq_reward_grants_referrer_kind_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    referrer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    kind: Mapped[GrantKind] = mapped_column(_enum_column(GrantKind), nullable=False)
    key: Mapped[str] = mapped_column(String(64), nullable=False)
    beatcoins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    granted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<RewardGrant(referrer={self.referrer_id}, kind={self.kind.value}, key={self.key})>"


class QuotaReservation(Base):
    """Referral slots a referrer has used in one calendar week."""
    __tablename__ = "referral_quota_reservations"
    __table_args__ = (
        UniqueConstraint("referrer_id", "week_start", name="uq_quota_referrer_week"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    referrer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    week_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    reserved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class RewardCredit(Base):
    """Wallet credit owed for a ledger transition.

    Written in the same transaction as the transition and dispatched after
    commit. `idempotency_key` is handed to the wallet so replays are no-ops.
    """
    __tablename__ = "referral_reward_credits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    idempotency_key: Mapped[str] = mapped_column(String(160), nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(64), nullable=False)
    referral_id: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)

    status: Mapped[CreditStatus] = mapped_column(
        _enum_column(CreditStatus), nullable=False, default=CreditStatus.PENDING, index=True
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    credited_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<RewardCredit(key={self.idempotency_key}, amount={self.amount}, status={self.status.value})>"
