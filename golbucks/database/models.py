"""
golbucks.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- accounts                    — Point balances (rows owned by the identity service)
- ledger_entries              — Append-only history of every balance change
- reward_streaks              — Daily-claim streak state, one row per account
- events                      — Event capacity counters and registration rewards
- event_registrations         — Seats held by accounts (soft-cancelled, never deleted)
- bill_supports               — Crowdfunded bill-support campaigns
- bill_support_contributions  — One contribution per (campaign, contributor)
- rewards                     — Catalog rewards purchasable with points
- user_rewards                — Redeemed catalog rewards

Foreign keys are plain typed columns.  Nothing here hooks the ORM lifecycle;
every mutation is performed explicitly by the service layer.
"""

from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Golbucks ORM models."""

    # Fetch server-generated timestamps on flush so rows returned from a
    # closed unit of work are fully loaded.
    __mapper_args__ = {"eager_defaults": True}


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ReasonCode(enum.StrEnum):
    """Why a ledger entry was written."""
    DAILY_REWARD = "daily_reward"
    EVENT_REGISTRATION = "event_registration"
    REWARD_PURCHASE = "reward_purchase"
    BILL_SUPPORT = "bill_support"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class RegistrationStatus(enum.StrEnum):
    REGISTERED = "registered"
    CANCELLED = "cancelled"
    ATTENDED = "attended"
    NO_SHOW = "no_show"


# A registration in one of these states holds the (account, event) slot.
ACTIVE_REGISTRATION_STATUSES: tuple[str, ...] = (
    RegistrationStatus.REGISTERED.value,
    RegistrationStatus.ATTENDED.value,
)


class CampaignStatus(enum.StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"
    CANCELLED = "cancelled"


class BillType(enum.StrEnum):
    ELECTRICITY = "electricity"
    WATER = "water"
    GAS = "gas"
    INTERNET = "internet"
    PHONE = "phone"
    OTHER = "other"


class PaymentMethod(enum.StrEnum):
    """How a contributor pays.  ``INTERNAL`` spends Golbucks."""
    INTERNAL = "internal"
    DIRECT = "direct"
    OTHER = "other"


class ContributionStatus(enum.StrEnum):
    """Contributions are recorded only once payment has gone through."""
    COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Accounts — balance holder
# ---------------------------------------------------------------------------
class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Account id={self.id} balance={self.balance}>"


# ---------------------------------------------------------------------------
# LedgerEntry — append-only balance journal
# ---------------------------------------------------------------------------
class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("accounts.id"), nullable=False
    )
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    resulting_balance: Mapped[int] = mapped_column(Integer, nullable=False)
    reason_code: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), default=None)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("delta <> 0", name="ck_ledger_entries_delta_non_zero"),
        CheckConstraint(
            "resulting_balance >= 0", name="ck_ledger_entries_balance_non_negative"
        ),
        Index("ix_ledger_entries_account_time", "account_id", "created_at"),
        Index("ix_ledger_entries_reason", "reason_code"),
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry id={self.id} account={self.account_id} "
            f"delta={self.delta:+d} reason={self.reason_code}>"
        )


# ---------------------------------------------------------------------------
# RewardStreak — daily claim state
# ---------------------------------------------------------------------------
class RewardStreak(Base):
    __tablename__ = "reward_streaks"

    account_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("accounts.id"), primary_key=True
    )
    last_claim_date: Mapped[date | None] = mapped_column(Date, default=None)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_claims: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<RewardStreak account={self.account_id} "
            f"streak={self.current_streak} last={self.last_claim_date}>"
        )


# ---------------------------------------------------------------------------
# Events — capacity row
# ---------------------------------------------------------------------------
class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    capacity: Mapped[int | None] = mapped_column(Integer, default=None)  # None = unlimited
    registered_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reward_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("registered_count >= 0", name="ck_events_registered_non_negative"),
        CheckConstraint(
            "capacity IS NULL OR registered_count <= capacity",
            name="ck_events_within_capacity",
        ),
        CheckConstraint("reward_points >= 0", name="ck_events_reward_non_negative"),
        Index("ix_events_date", "event_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Event id={self.id} {self.registered_count}/"
            f"{self.capacity if self.capacity is not None else '∞'}>"
        )


class Registration(Base):
    __tablename__ = "event_registrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("accounts.id"), nullable=False
    )
    event_id: Mapped[int] = mapped_column(Integer, ForeignKey("events.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RegistrationStatus.REGISTERED.value
    )
    qr_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    reference_code: Mapped[str | None] = mapped_column(String(50), unique=True, default=None)
    registered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    __table_args__ = (
        # One active seat per (account, event); cancelled/no-show rows are history.
        Index(
            "ix_event_registrations_active",
            "account_id",
            "event_id",
            unique=True,
            postgresql_where=status.in_(ACTIVE_REGISTRATION_STATUSES),
            sqlite_where=status.in_(ACTIVE_REGISTRATION_STATUSES),
        ),
        Index("ix_event_registrations_event", "event_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_REGISTRATION_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Registration id={self.id} account={self.account_id} "
            f"event={self.event_id} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# Bill supports — crowdfunded campaigns (amounts in minor units)
# ---------------------------------------------------------------------------
class Campaign(Base):
    __tablename__ = "bill_supports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_account_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("accounts.id"), nullable=False
    )
    bill_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BillType.OTHER.value
    )
    description: Mapped[str | None] = mapped_column(Text, default=None)
    target_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    collected_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    supporter_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CampaignStatus.PENDING.value
    )
    reference_number: Mapped[str | None] = mapped_column(String(50), unique=True, default=None)
    admin_response: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("target_amount > 0", name="ck_bill_supports_target_positive"),
        CheckConstraint(
            "collected_amount >= 0 AND collected_amount <= target_amount",
            name="ck_bill_supports_collected_within_target",
        ),
        Index("ix_bill_supports_owner", "owner_account_id"),
        Index("ix_bill_supports_status", "status"),
    )

    @property
    def remaining_amount(self) -> int:
        return self.target_amount - self.collected_amount

    def __repr__(self) -> str:
        return (
            f"<Campaign id={self.id} {self.collected_amount}/{self.target_amount} "
            f"status={self.status}>"
        )


class Contribution(Base):
    __tablename__ = "bill_support_contributions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("bill_supports.id"), nullable=False
    )
    contributor_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("accounts.id"), nullable=False
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payment_method: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentMethod.DIRECT.value
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContributionStatus.COMPLETED.value
    )
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "campaign_id", "contributor_id", name="uq_bill_support_contributor"
        ),
        CheckConstraint("amount > 0", name="ck_contributions_amount_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<Contribution id={self.id} campaign={self.campaign_id} "
            f"contributor={self.contributor_id} amount={self.amount}>"
        )


# ---------------------------------------------------------------------------
# Reward catalog
# ---------------------------------------------------------------------------
class RewardItem(Base):
    __tablename__ = "rewards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    points_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    stock: Mapped[int | None] = mapped_column(Integer, default=None)  # None = unlimited
    validity_days: Mapped[int | None] = mapped_column(Integer, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("points_cost > 0", name="ck_rewards_cost_positive"),
        CheckConstraint("stock IS NULL OR stock >= 0", name="ck_rewards_stock_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<RewardItem id={self.id} cost={self.points_cost} stock={self.stock}>"


class RewardRedemption(Base):
    __tablename__ = "user_rewards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("accounts.id"), nullable=False
    )
    reward_id: Mapped[int] = mapped_column(Integer, ForeignKey("rewards.id"), nullable=False)
    qr_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    reference_code: Mapped[str | None] = mapped_column(String(50), unique=True, default=None)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    is_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_user_rewards_account", "account_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<RewardRedemption id={self.id} account={self.account_id} used={self.is_used}>"
