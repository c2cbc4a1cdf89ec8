"""
golbucks.services.contribution_service — Bill-Support Contribution Pool
========================================================================

Crowdfunded bill-support campaigns.  Amounts are integer minor units.

A contribution is validated and applied against one locked snapshot of the
campaign row, so two concurrent contributions can never jointly push
``collected_amount`` past ``target_amount``.  Paying with Golbucks
(``PaymentMethod.INTERNAL``) debits the contributor inside the same unit
of work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from golbucks.database.models import (
    Account,
    BillType,
    Campaign,
    CampaignStatus,
    Contribution,
    ContributionStatus,
    PaymentMethod,
    ReasonCode,
)
from golbucks.errors import (
    CampaignApprovedError,
    DuplicateContributionError,
    ExceedsRemainingError,
    InvalidTransitionError,
    NotAcceptingContributionsError,
    NotFoundError,
    SelfContributionError,
    ValidationError,
)
from golbucks.services import ledger_service
from golbucks.services.notifications import Notifier, notify_after_commit
from golbucks.services.unit_of_work import lock_by_pk, unit_of_work

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

# Admin status transitions.  ``pending → approved`` also happens
# automatically when a contribution completes the target.
ALLOWED_TRANSITIONS: dict[CampaignStatus, frozenset[CampaignStatus]] = {
    CampaignStatus.PENDING: frozenset({
        CampaignStatus.APPROVED, CampaignStatus.REJECTED, CampaignStatus.CANCELLED,
    }),
    CampaignStatus.APPROVED: frozenset({CampaignStatus.PAID, CampaignStatus.CANCELLED}),
    CampaignStatus.REJECTED: frozenset(),
    CampaignStatus.PAID: frozenset(),
    CampaignStatus.CANCELLED: frozenset(),
}


@dataclass
class ContributionResult:
    contribution: Contribution
    collected_amount: int
    remaining_amount: int
    supporter_count: int
    campaign_status: str
    new_balance: int | None = None


def _reference_number(campaign: Campaign, created: datetime) -> str:
    return f"BILL-{created:%Y%m%d}-{campaign.id:06d}"


# ---------------------------------------------------------------------------
# Campaign creation
# ---------------------------------------------------------------------------
def create_campaign(
    engine: Engine,
    owner_account_id: int,
    *,
    target_amount: int,
    bill_type: BillType | str = BillType.OTHER,
    description: str | None = None,
    lock_timeout_ms: int | None = None,
) -> Campaign:
    """Open a pending campaign.  The reference number derives from its id."""
    if target_amount <= 0:
        raise ValidationError("Target amount must be positive")
    try:
        bill_type = BillType(bill_type)
    except ValueError:
        raise ValidationError(f"Unknown bill type: {bill_type!r}") from None

    with unit_of_work(engine, lock_timeout_ms=lock_timeout_ms) as session:
        if session.get(Account, owner_account_id) is None:
            raise NotFoundError("Account", owner_account_id)
        campaign = Campaign(
            owner_account_id=owner_account_id,
            bill_type=bill_type.value,
            description=description,
            target_amount=target_amount,
            collected_amount=0,
            supporter_count=0,
            status=CampaignStatus.PENDING.value,
        )
        session.add(campaign)
        session.flush()
        campaign.reference_number = _reference_number(campaign, datetime.now(UTC))

    logger.info(
        "Campaign %s opened by account %d (target %d)",
        campaign.reference_number, owner_account_id, target_amount,
    )
    return campaign


# ---------------------------------------------------------------------------
# Contribute
# ---------------------------------------------------------------------------
def contribute(
    engine: Engine,
    campaign_id: int,
    contributor_id: int,
    amount: int,
    payment_method: PaymentMethod | str = PaymentMethod.DIRECT,
    *,
    notes: str | None = None,
    notifier: Notifier | None = None,
    lock_timeout_ms: int | None = None,
) -> ContributionResult:
    """Support *campaign_id* with *amount* minor units.

    Check order: existence, status, self-support, duplicate, remaining,
    then the Golbucks debit for internal payments.
    """
    if amount <= 0:
        raise ValidationError("Support amount must be greater than 0")
    try:
        payment_method = PaymentMethod(payment_method)
    except ValueError:
        raise ValidationError(f"Unknown payment method: {payment_method!r}") from None

    with unit_of_work(engine, lock_timeout_ms=lock_timeout_ms) as session:
        campaign = lock_by_pk(session, Campaign, campaign_id)
        if campaign is None:
            raise NotFoundError("Bill support", campaign_id)
        if campaign.status == CampaignStatus.APPROVED.value:
            raise CampaignApprovedError("Bill support has already reached its target")
        if campaign.status != CampaignStatus.PENDING.value:
            raise NotAcceptingContributionsError(
                f"Bill support is {campaign.status} and no longer accepting contributions"
            )
        if contributor_id == campaign.owner_account_id:
            raise SelfContributionError("You cannot support your own bill")
        existing = session.scalar(
            select(Contribution.id).where(
                Contribution.campaign_id == campaign_id,
                Contribution.contributor_id == contributor_id,
            )
        )
        if existing is not None:
            raise DuplicateContributionError("You have already supported this bill")
        remaining = campaign.target_amount - campaign.collected_amount
        if amount > remaining:
            raise ExceedsRemainingError(amount=amount, remaining=remaining)

        new_balance = None
        if payment_method is PaymentMethod.INTERNAL:
            new_balance = ledger_service.debit(
                session,
                contributor_id,
                amount,
                ReasonCode.BILL_SUPPORT,
                {"campaign_id": campaign_id, "reference_number": campaign.reference_number},
                description=f"Bill support {campaign.reference_number or campaign_id}",
            )
        elif session.get(Account, contributor_id) is None:
            raise NotFoundError("Account", contributor_id)

        contribution = Contribution(
            campaign_id=campaign_id,
            contributor_id=contributor_id,
            amount=amount,
            payment_method=payment_method.value,
            status=ContributionStatus.COMPLETED.value,
            notes=notes,
        )
        session.add(contribution)

        campaign.collected_amount += amount
        campaign.supporter_count += 1
        if campaign.collected_amount >= campaign.target_amount:
            campaign.status = CampaignStatus.APPROVED.value
            notify_after_commit(
                session, notifier, "bill_support.status_changed",
                campaign.owner_account_id,
                campaign_id=campaign_id, status=campaign.status,
            )
        session.flush()

        notify_after_commit(
            session, notifier, "bill_support.contributed", campaign.owner_account_id,
            campaign_id=campaign_id, amount=amount, contributor_id=contributor_id,
        )
        result = ContributionResult(
            contribution=contribution,
            collected_amount=campaign.collected_amount,
            remaining_amount=campaign.remaining_amount,
            supporter_count=campaign.supporter_count,
            campaign_status=campaign.status,
            new_balance=new_balance,
        )

    logger.info(
        "Account %d contributed %d to campaign %d via %s (%d/%d)",
        contributor_id, amount, campaign_id, payment_method.value,
        result.collected_amount, result.collected_amount + result.remaining_amount,
    )
    return result


# ---------------------------------------------------------------------------
# Admin status changes
# ---------------------------------------------------------------------------
def set_campaign_status(
    engine: Engine,
    campaign_id: int,
    new_status: CampaignStatus | str,
    *,
    admin_response: str | None = None,
    notifier: Notifier | None = None,
    lock_timeout_ms: int | None = None,
) -> Campaign:
    """Apply an admin status transition from :data:`ALLOWED_TRANSITIONS`."""
    try:
        target = CampaignStatus(new_status)
    except ValueError:
        raise ValidationError(f"Unknown campaign status: {new_status!r}") from None

    with unit_of_work(engine, lock_timeout_ms=lock_timeout_ms) as session:
        campaign = lock_by_pk(session, Campaign, campaign_id)
        if campaign is None:
            raise NotFoundError("Bill support", campaign_id)
        current = CampaignStatus(campaign.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Cannot move bill support from {current.value} to {target.value}"
            )
        campaign.status = target.value
        if admin_response is not None:
            campaign.admin_response = admin_response
        session.flush()
        notify_after_commit(
            session, notifier, "bill_support.status_changed", campaign.owner_account_id,
            campaign_id=campaign_id, status=target.value,
        )

    logger.info("Campaign %d: %s → %s", campaign_id, current.value, target.value)
    return campaign


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_campaign(engine: Engine, campaign_id: int) -> Campaign:
    with Session(engine, expire_on_commit=False) as session:
        campaign = session.get(Campaign, campaign_id)
        if campaign is None:
            raise NotFoundError("Bill support", campaign_id)
        session.expunge(campaign)
        return campaign


def list_contributions(engine: Engine, campaign_id: int) -> list[Contribution]:
    with Session(engine, expire_on_commit=False) as session:
        rows = session.scalars(
            select(Contribution)
            .where(Contribution.campaign_id == campaign_id)
            .order_by(Contribution.created_at, Contribution.id)
        ).all()
        session.expunge_all()
        return list(rows)
