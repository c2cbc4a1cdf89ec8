"""
Golbucks — Reward Ledger and Allocation Engine
===============================================
Point balances with an append-only ledger, daily-claim streaks, capacity-
limited event registration and crowdfunded bill-support campaigns.  Every
mutation runs in one database transaction under row locks, so concurrent
requests can never overdraw a balance, oversell a seat or overfund a bill.

Package layout::

    golbucks/
    ├── config.py          # YAML → typed Python config
    ├── errors.py          # Error taxonomy (code + HTTP status)
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (9 tables)
    ├── engine/
    │   └── streak.py      # Pure streak arithmetic
    ├── services/
    │   ├── unit_of_work.py        # Transactions, row locks, retry
    │   ├── notifications.py       # Post-commit notification queue
    │   ├── ledger_service.py      # Credit / debit / history
    │   ├── streak_service.py      # Daily reward claims
    │   ├── registration_service.py  # Event seats
    │   ├── contribution_service.py  # Bill-support campaigns
    │   └── redemption_service.py    # Reward catalog purchases
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT auth + engine/config dependencies
        └── routes/        # REST endpoints
"""

__version__ = "0.1.0"
