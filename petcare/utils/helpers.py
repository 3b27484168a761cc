"""Helper utilities for PetCare."""

from datetime import datetime


def utcnow() -> datetime:
    """Current UTC time at the millisecond precision MongoDB stores."""
    now = datetime.utcnow()
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def normalize_name(name: str) -> str:
    """Normalize a name for case-insensitive uniqueness checks."""
    return name.strip().lower()
