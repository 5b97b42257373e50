"""Initial referral rewards schema

Revision ID: 001_referral_engine
Revises:
Create Date: 2026-10-19

Adds tables for:
- user_roles: Platform role per user, drives reward selection
- wallet_accounts / wallet_transactions: Local beatcoin wallet
- referrals / referral_actions: Referral ledger
- referral_reward_grants: One-shot badge and milestone grants
- referral_quota_reservations: Weekly creation slots per referrer
- referral_reward_credits: Wallet credits owed by the ledger
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_referral_engine"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create referral engine tables."""

    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # Wallet
    op.create_table(
        "wallet_accounts",
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )
    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(64), nullable=False),
        sa.Column("idempotency_key", sa.String(160), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotency_key"),
    )
    op.create_index("ix_wallet_transactions_user_id", "wallet_transactions", ["user_id"], unique=False)

    # Referral ledger
    op.create_table(
        "referrals",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("referrer_id", sa.String(64), nullable=False),
        sa.Column("referred_id", sa.String(64), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("referred_role", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("beatcoins_rewarded", sa.Integer(), nullable=True),
        sa.Column("invalid_reason", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_referrals_referrer_id", "referrals", ["referrer_id"], unique=False)
    op.create_index("ix_referrals_referred_id", "referrals", ["referred_id"], unique=False)
    op.create_index("ix_referrals_status", "referrals", ["status"], unique=False)
    op.create_index("ix_referrals_created_at", "referrals", ["created_at"], unique=False)

    op.create_table(
        "referral_actions",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("referral_id", sa.String(32), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("beatcoins_rewarded", sa.Integer(), nullable=True),
        sa.Column("dual_reward", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["referral_id"], ["referrals.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("referral_id", "type", name="uq_referral_actions_referral_type"),
    )
    op.create_index("ix_referral_actions_referral_id", "referral_actions", ["referral_id"], unique=False)

    # Grants, quota and wallet outbox
    op.create_table(
        "referral_reward_grants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("referrer_id", sa.String(64), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("beatcoins", sa.Integer(), nullable=False),
        sa.Column("granted_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("referrer_id", "kind", "key", name="uq_reward_grants_referrer_kind_key"),
    )
    op.create_index("ix_referral_reward_grants_referrer_id", "referral_reward_grants", ["referrer_id"], unique=False)

    op.create_table(
        "referral_quota_reservations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("referrer_id", sa.String(64), nullable=False),
        sa.Column("week_start", sa.DateTime(), nullable=False),
        sa.Column("reserved", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("referrer_id", "week_start", name="uq_quota_referrer_week"),
    )
    op.create_index(
        "ix_referral_quota_reservations_referrer_id", "referral_quota_reservations", ["referrer_id"], unique=False
    )

    op.create_table(
        "referral_reward_credits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("idempotency_key", sa.String(160), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(64), nullable=False),
        sa.Column("referral_id", sa.String(32), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("credited_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotency_key"),
    )
    op.create_index("ix_referral_reward_credits_user_id", "referral_reward_credits", ["user_id"], unique=False)
    op.create_index("ix_referral_reward_credits_referral_id", "referral_reward_credits", ["referral_id"], unique=False)
    op.create_index("ix_referral_reward_credits_status", "referral_reward_credits", ["status"], unique=False)


def downgrade() -> None:
    """Drop referral engine tables."""
    op.drop_table("referral_reward_credits")
    op.drop_table("referral_quota_reservations")
    op.drop_table("referral_reward_grants")
    op.drop_index("ix_referral_actions_referral_id", table_name="referral_actions")
    op.drop_table("referral_actions")
    op.drop_index("ix_referrals_created_at", table_name="referrals")
    op.drop_index("ix_referrals_status", table_name="referrals")
    op.drop_index("ix_referrals_referred_id", table_name="referrals")
    op.drop_index("ix_referrals_referrer_id", table_name="referrals")
    op.drop_table("referrals")
    op.drop_index("ix_wallet_transactions_user_id", table_name="wallet_transactions")
    op.drop_table("wallet_transactions")
    op.drop_table("wallet_accounts")
    op.drop_table("user_roles")
