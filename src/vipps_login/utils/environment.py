"""Utility functions related to environment parsing."""

import os


def env_str(name: str, default: str = "") -> str:
    """Return the stripped value of *name*, or *default* when unset/blank."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def env_int(name: str, default: int) -> int:
    """
    Return *name* parsed as a positive integer.

    Raises ``ValueError`` naming the variable when the value is not a
    positive integer, so misconfiguration fails at startup.
    """
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def is_production() -> bool:
    """True when ``APP_ENV`` (or legacy ``NODE_ENV``) is ``production``."""
    env = env_str("APP_ENV") or env_str("NODE_ENV")
    return env.lower() == "production"
