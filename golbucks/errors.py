"""
golbucks.errors — Engine Error Taxonomy
========================================

Every failure the engine raises derives from :class:`GolbucksError`.

* Business-rule errors (:class:`ConflictError`, :class:`InsufficientFundsError`,
  :class:`ExpiredError`, :class:`NotFoundError`) are terminal.  The enclosing
  unit of work has already rolled back, so nothing partial was committed.
* :class:`TransientError` wraps lock timeouts and deadlocks from the store.
  It is the only error that :func:`~golbucks.services.unit_of_work.run_with_retry`
  retries.

Each class carries a stable ``code`` (rendered in API error bodies) and the
HTTP status the API layer maps it to.
"""

from __future__ import annotations


class GolbucksError(Exception):
    """Base class for all engine errors."""

    code: str = "error"
    http_status: int = 500
    retryable: bool = False

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)

    @property
    def message(self) -> str:
        return str(self.args[0])


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------
class ValidationError(GolbucksError):
    """Malformed or out-of-range input."""

    code = "validation_error"
    http_status = 400


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------
class NotFoundError(GolbucksError):
    """The requested record does not exist."""

    code = "not_found"
    http_status = 404

    def __init__(self, entity: str, key: object | None = None) -> None:
        self.entity = entity
        self.key = key
        suffix = f" {key}" if key is not None else ""
        super().__init__(f"{entity}{suffix} not found")


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------
class ConflictError(GolbucksError):
    """The operation conflicts with the current state."""

    code = "conflict"
    http_status = 409


class AlreadyClaimedError(ConflictError):
    """Daily reward already claimed today."""

    code = "already_claimed"


class DuplicateRegistrationError(ConflictError):
    """Account is already registered for this event."""

    code = "duplicate_registration"


class CapacityExceededError(ConflictError):
    """Event is full."""

    code = "capacity_exceeded"


class DuplicateContributionError(ConflictError):
    """Account has already supported this bill."""

    code = "duplicate_contribution"


class SelfContributionError(ConflictError):
    """Owners cannot support their own bill."""

    code = "self_contribution"


class ExceedsRemainingError(ConflictError):
    """Contribution exceeds the campaign's remaining amount."""

    code = "exceeds_remaining"

    def __init__(self, amount: int, remaining: int) -> None:
        self.amount = amount
        self.remaining = remaining
        super().__init__(
            f"Contribution of {amount} exceeds the remaining amount {remaining}"
        )


class InvalidTransitionError(ConflictError):
    """Status transition is not allowed."""

    code = "invalid_transition"


class OutOfStockError(ConflictError):
    """Reward is out of stock."""

    code = "out_of_stock"


class AlreadyUsedError(ConflictError):
    """Reward already used."""

    code = "already_used"


# ---------------------------------------------------------------------------
# Funds
# ---------------------------------------------------------------------------
class InsufficientFundsError(GolbucksError):
    """Insufficient Golbucks balance."""

    code = "insufficient_funds"
    http_status = 402

    def __init__(self, balance: int, requested: int) -> None:
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient Golbucks balance: need {requested}, have {balance}"
        )


# ---------------------------------------------------------------------------
# Time / lifecycle
# ---------------------------------------------------------------------------
class ExpiredError(GolbucksError):
    """The target is closed or in the past."""

    code = "expired"
    http_status = 410


class EventExpiredError(ExpiredError):
    """Event date has passed."""

    code = "event_expired"


class EventInactiveError(ExpiredError):
    """Event is not active."""

    code = "event_inactive"


class PastEventError(ExpiredError):
    """Cannot cancel a registration after the event date."""

    code = "past_event"


class NotAcceptingContributionsError(ExpiredError):
    """Bill support is no longer accepting contributions."""

    code = "not_accepting_contributions"


class CampaignApprovedError(ConflictError, NotAcceptingContributionsError):
    """Bill support already reached its target."""

    code = "campaign_approved"


class RedemptionExpiredError(ExpiredError):
    """Reward has expired."""

    code = "redemption_expired"


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
class TransientError(GolbucksError):
    """Lock or timeout failure from the store; safe to retry."""

    code = "transient"
    http_status = 503
    retryable = True
