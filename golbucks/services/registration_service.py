"""
golbucks.services.registration_service — Event Capacity Allocation
====================================================================

Allocates seats on fixed-capacity events.  The event row is the capacity
lock: every register/cancel/attendance change locks it first, so two
attempts racing for the last seat serialize and exactly one wins.

Registering may grant points (``Event.reward_points``); the credit is
written in the same unit of work.  Cancelling never refunds or claws back
a granted reward.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from golbucks.database.models import (
    ACTIVE_REGISTRATION_STATUSES,
    Account,
    Event,
    ReasonCode,
    Registration,
    RegistrationStatus,
)
from golbucks.errors import (
    CapacityExceededError,
    DuplicateRegistrationError,
    EventExpiredError,
    EventInactiveError,
    InvalidTransitionError,
    NotFoundError,
    PastEventError,
    ValidationError,
)
from golbucks.services import ledger_service
from golbucks.services.notifications import Notifier, notify_after_commit
from golbucks.services.unit_of_work import lock_by_pk, lock_one, unit_of_work

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass
class RegistrationResult:
    registration: Registration
    reward_points: int = 0
    new_balance: int | None = None


@dataclass(frozen=True)
class CapacitySnapshot:
    """Unlocked view of an event's seat usage; may be slightly stale."""

    event_id: int
    capacity: int | None
    registered_count: int

    @property
    def remaining(self) -> int | None:
        if self.capacity is None:
            return None
        return max(self.capacity - self.registered_count, 0)

    @property
    def is_full(self) -> bool:
        return self.capacity is not None and self.registered_count >= self.capacity


def _today() -> date:
    return datetime.now(UTC).date()


def _reference_code(event_id: int, registration_id: int) -> str:
    return f"EVT-{event_id}-{registration_id:06d}"


def _lock_event(session: Session, event_id: int) -> Event:
    event = lock_by_pk(session, Event, event_id)
    if event is None:
        raise NotFoundError("Event", event_id)
    return event


def _active_registration(
    session: Session, account_id: int, event_id: int, *, lock: bool = False
) -> Registration | None:
    criteria = (
        Registration.account_id == account_id,
        Registration.event_id == event_id,
        Registration.status.in_(ACTIVE_REGISTRATION_STATUSES),
    )
    if lock:
        return lock_one(session, Registration, *criteria)
    return session.scalars(select(Registration).where(*criteria)).first()


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------
def register(
    engine: Engine,
    account_id: int,
    event_id: int,
    *,
    today: date | None = None,
    notifier: Notifier | None = None,
    lock_timeout_ms: int | None = None,
) -> RegistrationResult:
    """Take a seat on *event_id* for *account_id*.

    Check order: existence, active flag, date, duplicate, capacity.
    """
    today = today or _today()
    with unit_of_work(engine, lock_timeout_ms=lock_timeout_ms) as session:
        event = _lock_event(session, event_id)
        if not event.is_active:
            raise EventInactiveError("Event is not active")
        if event.event_date < today:
            raise EventExpiredError("Event date has passed")
        if session.get(Account, account_id) is None:
            raise NotFoundError("Account", account_id)
        if _active_registration(session, account_id, event_id) is not None:
            raise DuplicateRegistrationError("Account already registered for this event")
        if event.capacity is not None and event.registered_count >= event.capacity:
            raise CapacityExceededError("Event is full")

        registration = Registration(
            account_id=account_id,
            event_id=event_id,
            status=RegistrationStatus.REGISTERED.value,
            qr_token=uuid.uuid4().hex,
        )
        session.add(registration)
        session.flush()
        registration.reference_code = _reference_code(event_id, registration.id)

        event.registered_count += 1

        new_balance = None
        if event.reward_points > 0:
            new_balance = ledger_service.credit(
                session,
                account_id,
                event.reward_points,
                ReasonCode.EVENT_REGISTRATION,
                {"event_id": event_id, "registration_id": registration.id},
                description=f"Event registration: {event.title}",
            )

        session.flush()
        notify_after_commit(
            session, notifier, "event.registered", account_id,
            event_id=event_id, registration_id=registration.id,
        )
        result = RegistrationResult(
            registration=registration,
            reward_points=event.reward_points,
            new_balance=new_balance,
        )

    logger.info(
        "Account %d registered for event %d (%s)",
        account_id, event_id, registration.reference_code,
    )
    return result


# ---------------------------------------------------------------------------
# Cancel
# ---------------------------------------------------------------------------
def cancel(
    engine: Engine,
    account_id: int,
    event_id: int,
    *,
    today: date | None = None,
    notifier: Notifier | None = None,
    lock_timeout_ms: int | None = None,
) -> Registration:
    """Cancel an active ``registered`` seat and release it."""
    today = today or _today()
    with unit_of_work(engine, lock_timeout_ms=lock_timeout_ms) as session:
        event = _lock_event(session, event_id)
        registration = lock_one(
            session,
            Registration,
            Registration.account_id == account_id,
            Registration.event_id == event_id,
            Registration.status == RegistrationStatus.REGISTERED.value,
        )
        if registration is None:
            raise NotFoundError("Event registration")
        if event.event_date < today:
            raise PastEventError("Cannot cancel registration after event date")

        registration.status = RegistrationStatus.CANCELLED.value
        registration.cancelled_at = datetime.now(UTC)
        event.registered_count = max(0, event.registered_count - 1)

        notify_after_commit(
            session, notifier, "event.cancelled", account_id,
            event_id=event_id, registration_id=registration.id,
        )

    logger.info("Account %d cancelled registration for event %d", account_id, event_id)
    return registration


# ---------------------------------------------------------------------------
# Attendance (admin)
# ---------------------------------------------------------------------------
def mark_attendance(
    engine: Engine,
    registration_id: int,
    *,
    attended: bool,
    lock_timeout_ms: int | None = None,
) -> Registration:
    """Move a ``registered`` seat to ``attended`` or ``no_show``.

    A no-show releases the seat.
    """
    with unit_of_work(engine, lock_timeout_ms=lock_timeout_ms) as session:
        found = session.get(Registration, registration_id)
        if found is None:
            raise NotFoundError("Event registration", registration_id)
        event = _lock_event(session, found.event_id)
        registration = lock_by_pk(session, Registration, registration_id)
        if registration.status != RegistrationStatus.REGISTERED.value:
            raise InvalidTransitionError(
                f"Cannot mark attendance on a {registration.status} registration"
            )
        if attended:
            registration.status = RegistrationStatus.ATTENDED.value
        else:
            registration.status = RegistrationStatus.NO_SHOW.value
            event.registered_count = max(0, event.registered_count - 1)

    logger.info("Registration %d marked %s", registration_id, registration.status)
    return registration


# ---------------------------------------------------------------------------
# Reads (no locks)
# ---------------------------------------------------------------------------
def capacity_snapshot(engine: Engine, event_id: int) -> CapacitySnapshot:
    with Session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event", event_id)
        return CapacitySnapshot(
            event_id=event.id,
            capacity=event.capacity,
            registered_count=event.registered_count,
        )


def is_registered(engine: Engine, account_id: int, event_id: int) -> bool:
    with Session(engine) as session:
        return _active_registration(session, account_id, event_id) is not None


def list_registrations(
    engine: Engine,
    account_id: int,
    *,
    status: RegistrationStatus | str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Registration], int]:
    """Return ``(registrations, total)`` for *account_id*, newest first."""
    if limit <= 0 or offset < 0:
        raise ValidationError("limit must be positive and offset non-negative")
    criteria = [Registration.account_id == account_id]
    if status is not None:
        criteria.append(Registration.status == str(status))
    with Session(engine, expire_on_commit=False) as session:
        total = session.scalar(
            select(func.count()).select_from(Registration).where(*criteria)
        ) or 0
        rows = session.scalars(
            select(Registration)
            .where(*criteria)
            .order_by(Registration.registered_at.desc(), Registration.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        session.expunge_all()
        return list(rows), total
