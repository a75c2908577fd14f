"""Utility helper functions."""

import asyncio
import functools
from datetime import datetime, timezone
from typing import Any, Callable


async def run_blocking(func: Callable[..., Any], *args, **kwargs) -> Any:
    """Run a blocking data store call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
