"""Create Golbucks ledger, streak, event, bill-support and reward tables

Revision ID: 5c2e9a7b1f30
Revises:
Create Date: 2026-10-19 09:12:41.208113

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c2e9a7b1f30'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- accounts ---
    op.create_table(
        "accounts",
        sa.Column("id", sa.BigInteger, primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("balance", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
    )

    # --- ledger_entries ---
    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column(
            "account_id", sa.BigInteger, sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column("delta", sa.Integer, nullable=False),
        sa.Column("resulting_balance", sa.Integer, nullable=False),
        sa.Column("reason_code", sa.String(30), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.CheckConstraint("delta <> 0", name="ck_ledger_entries_delta_non_zero"),
        sa.CheckConstraint(
            "resulting_balance >= 0", name="ck_ledger_entries_balance_non_negative"
        ),
    )
    op.create_index(
        "ix_ledger_entries_account_time", "ledger_entries", ["account_id", "created_at"]
    )
    op.create_index("ix_ledger_entries_reason", "ledger_entries", ["reason_code"])

    # --- reward_streaks ---
    op.create_table(
        "reward_streaks",
        sa.Column(
            "account_id", sa.BigInteger, sa.ForeignKey("accounts.id"), primary_key=True
        ),
        sa.Column("last_claim_date", sa.Date, nullable=True),
        sa.Column("current_streak", sa.Integer, nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_claims", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
    )

    # --- events / event_registrations ---
    op.create_table(
        "events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("event_date", sa.Date, nullable=False),
        sa.Column("capacity", sa.Integer, nullable=True),
        sa.Column("registered_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reward_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.CheckConstraint(
            "registered_count >= 0", name="ck_events_registered_non_negative"
        ),
        sa.CheckConstraint(
            "capacity IS NULL OR registered_count <= capacity",
            name="ck_events_within_capacity",
        ),
        sa.CheckConstraint("reward_points >= 0", name="ck_events_reward_non_negative"),
    )
    op.create_index("ix_events_date", "events", ["event_date"])

    op.create_table(
        "event_registrations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "account_id", sa.BigInteger, sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id"), nullable=False),
        sa.Column(
            "status", sa.String(20), nullable=False, server_default="registered"
        ),
        sa.Column("qr_token", sa.String(64), nullable=False, unique=True),
        sa.Column("reference_code", sa.String(50), nullable=True, unique=True),
        sa.Column(
            "registered_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
    )
    # One active seat per (account, event)
    op.create_index(
        "ix_event_registrations_active",
        "event_registrations",
        ["account_id", "event_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('registered', 'attended')"),
    )
    op.create_index(
        "ix_event_registrations_event", "event_registrations", ["event_id", "status"]
    )

    # --- bill_supports / bill_support_contributions ---
    op.create_table(
        "bill_supports",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "owner_account_id", sa.BigInteger, sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column("bill_type", sa.String(20), nullable=False, server_default="other"),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("target_amount", sa.BigInteger, nullable=False),
        sa.Column("collected_amount", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("supporter_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("reference_number", sa.String(50), nullable=True, unique=True),
        sa.Column("admin_response", sa.Text, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.CheckConstraint("target_amount > 0", name="ck_bill_supports_target_positive"),
        sa.CheckConstraint(
            "collected_amount >= 0 AND collected_amount <= target_amount",
            name="ck_bill_supports_collected_within_target",
        ),
    )
    op.create_index("ix_bill_supports_owner", "bill_supports", ["owner_account_id"])
    op.create_index("ix_bill_supports_status", "bill_supports", ["status"])

    op.create_table(
        "bill_support_contributions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "campaign_id", sa.Integer, sa.ForeignKey("bill_supports.id"), nullable=False
        ),
        sa.Column(
            "contributor_id", sa.BigInteger, sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column("amount", sa.BigInteger, nullable=False),
        sa.Column(
            "payment_method", sa.String(20), nullable=False, server_default="direct"
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="completed"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.UniqueConstraint(
            "campaign_id", "contributor_id", name="uq_bill_support_contributor"
        ),
        sa.CheckConstraint("amount > 0", name="ck_contributions_amount_positive"),
    )

    # --- rewards / user_rewards ---
    op.create_table(
        "rewards",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("points_cost", sa.Integer, nullable=False),
        sa.Column("stock", sa.Integer, nullable=True),
        sa.Column("validity_days", sa.Integer, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.CheckConstraint("points_cost > 0", name="ck_rewards_cost_positive"),
        sa.CheckConstraint(
            "stock IS NULL OR stock >= 0", name="ck_rewards_stock_non_negative"
        ),
    )

    op.create_table(
        "user_rewards",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "account_id", sa.BigInteger, sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column("reward_id", sa.Integer, sa.ForeignKey("rewards.id"), nullable=False),
        sa.Column("qr_token", sa.String(64), nullable=False, unique=True),
        sa.Column("reference_code", sa.String(50), nullable=True, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_used", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
    )
    op.create_index("ix_user_rewards_account", "user_rewards", ["account_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_user_rewards_account", table_name="user_rewards")
    op.drop_table("user_rewards")
    op.drop_table("rewards")
    op.drop_table("bill_support_contributions")
    op.drop_index("ix_bill_supports_status", table_name="bill_supports")
    op.drop_index("ix_bill_supports_owner", table_name="bill_supports")
    op.drop_table("bill_supports")
    op.drop_index("ix_event_registrations_event", table_name="event_registrations")
    op.drop_index("ix_event_registrations_active", table_name="event_registrations")
    op.drop_table("event_registrations")
    op.drop_index("ix_events_date", table_name="events")
    op.drop_table("events")
    op.drop_table("reward_streaks")
    op.drop_index("ix_ledger_entries_reason", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_account_time", table_name="ledger_entries")
    op.drop_table("ledger_entries")
    op.drop_table("accounts")
