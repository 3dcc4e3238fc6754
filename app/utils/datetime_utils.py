"""
Helpers for UTC timestamps and HH:MM parsing.
"""
from __future__ import annotations

from datetime import UTC, datetime, time


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_hhmm(value: str) -> time:
    """Parse "HH:MM" into a time; raises ValueError on anything else."""
    hours, sep, minutes = value.strip().partition(":")
    if not sep or not hours.isdigit() or not minutes.isdigit() or len(minutes) != 2:
        raise ValueError(f"Expected HH:MM, got '{value}'")
    return time(int(hours), int(minutes))
