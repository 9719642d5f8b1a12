"""Clock helpers, kept in one place so tests can reason about time."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def epoch_seconds() -> int:
    return int(time.time())


__all__ = ["epoch_seconds", "utcnow"]
