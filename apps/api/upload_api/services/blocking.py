from __future__ import annotations

from collections.abc import Callable
from functools import partial
from typing import Any, TypeVar

import anyio
import anyio.to_thread

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], /, *args: Any, timeout: float, **kwargs: Any) -> T:
    # On timeout the worker thread is abandoned, not stopped; only the request gives up.
    with anyio.fail_after(timeout):
        return await anyio.to_thread.run_sync(partial(func, *args, **kwargs), abandon_on_cancel=True)
