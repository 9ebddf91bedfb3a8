"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC ``datetime``; every timestamp column stores naive UTC."""

    return datetime.now(timezone.utc).replace(tzinfo=None)
