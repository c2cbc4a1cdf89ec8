"""
golbucks.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for engine tunables: the daily reward economy and the
database lock policy.  Secrets and connection strings (``DATABASE_URL``,
``JWT_SECRET``) stay in the environment / ``.env``.

Usage::

    from golbucks.config import load_config

    cfg = load_config()                    # ./config.yaml, defaults if absent
    print(cfg.rewards.daily_amount)        # 10
    print(cfg.database.lock_timeout_ms)    # 5000
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RewardSettings:
    """Daily reward economy.

    A claim that completes a ``bonus_days`` streak pays
    ``daily_amount + bonus_amount`` in a single ledger entry.
    """

    daily_amount: int = 10
    bonus_days: int = 7
    bonus_amount: int = 20

    def __post_init__(self) -> None:
        if self.daily_amount <= 0:
            raise ValueError("rewards.daily_amount must be positive")
        if self.bonus_amount < 0:
            raise ValueError("rewards.bonus_amount must not be negative")
        if self.bonus_days < 1:
            raise ValueError("rewards.bonus_days must be at least 1")


@dataclass(frozen=True, slots=True)
class DatabaseSettings:
    """Lock policy for units of work."""

    lock_timeout_ms: int = 5000
    retry_attempts: int = 3
    retry_base_delay: float = 0.05

    def __post_init__(self) -> None:
        if self.lock_timeout_ms < 0:
            raise ValueError("database.lock_timeout_ms must not be negative")
        if self.retry_attempts < 1:
            raise ValueError("database.retry_attempts must be at least 1")


@dataclass(frozen=True, slots=True)
class GolbucksConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    rewards: RewardSettings = field(default_factory=RewardSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml", *, required: bool = False) -> GolbucksConfig:
    """Read *path* and return a :class:`GolbucksConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
    required:
        When False (the default) a missing file yields the built-in defaults.

    Raises
    ------
    FileNotFoundError
        If *required* is True and the file doesn't exist.
    ValueError
        If a section is not a mapping or a value is out of range.
    """
    config_path = Path(path)
    if not config_path.exists():
        if required:
            raise FileNotFoundError(
                f"Configuration file not found: {config_path.resolve()}\n"
                "Hint: copy config.yaml.example → config.yaml and edit it."
            )
        return GolbucksConfig()

    with open(config_path, encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"{config_path}: top level must be a mapping")

    rewards = _section(raw, "rewards")
    database = _section(raw, "database")

    return GolbucksConfig(
        rewards=RewardSettings(
            daily_amount=int(rewards.get("daily_amount", 10)),
            bonus_days=int(rewards.get("bonus_days", 7)),
            bonus_amount=int(rewards.get("bonus_amount", 20)),
        ),
        database=DatabaseSettings(
            lock_timeout_ms=int(database.get("lock_timeout_ms", 5000)),
            retry_attempts=int(database.get("retry_attempts", 3)),
            retry_base_delay=float(database.get("retry_base_delay", 0.05)),
        ),
    )


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"config section '{name}' must be a mapping")
    return value
