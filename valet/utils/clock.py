# valet/utils/clock.py
"""Timestamps for records. Naive UTC, matching how the database columns store them."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
