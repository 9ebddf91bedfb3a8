"""Concurrency helpers for controlling background thread usage."""

from __future__ import annotations

from typing import Any, Callable

import anyio

from app.core.config import settings

_email_sem = anyio.Semaphore(settings.EMAIL_MAX_CONCURRENCY)


async def run_in_thread_email(func: Callable[..., Any], *args: Any, **kwargs: Any):
    """Run a blocking email gateway call in a worker thread with bounded concurrency."""

    async with _email_sem:
        return await anyio.to_thread.run_sync(lambda: func(*args, **kwargs))
