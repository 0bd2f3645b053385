"""Lease helpers for work claimed by a single request (order group intents, payment claims).

A claim records ``claimed_at``. Handing it over is a conditional UPDATE/DELETE
on that exact value, so two requests can never both take over the same claim.
"""
from datetime import datetime, timedelta
from typing import Optional

import pytz


def utcnow() -> datetime:
    return datetime.now(pytz.utc)


def is_stale(claimed_at: Optional[datetime], lease_seconds: float, now: Optional[datetime] = None) -> bool:
    """True when a claim is older than its lease; naive timestamps are read as UTC."""
    if claimed_at is None:
        return True
    if claimed_at.tzinfo is None:
        claimed_at = pytz.utc.localize(claimed_at)
    return (now or utcnow()) - claimed_at > timedelta(seconds=lease_seconds)
