import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from e2e_runner.config import DEFAULT_INTERVAL_MS, DEFAULT_TIMEOUT_MS
from e2e_runner.errors import PollCancelledError, TimedOutError


@dataclass(frozen=True)
class Pending:
    last_error: Any = None


@dataclass(frozen=True)
class Satisfied:
    value: Any = None


@dataclass(frozen=True)
class TimedOut:
    last_error: Any = None


PollOutcome = Pending | Satisfied | TimedOut


async def _pause(seconds: float, cancel: asyncio.Event | None) -> bool:
    """Sleep for ``seconds``; return True if ``cancel`` fired first."""
    if cancel is None:
        await asyncio.sleep(seconds)
        return False
    try:
        await asyncio.wait_for(cancel.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True


async def poll(
    predicate: Callable[[], Awaitable[PollOutcome]],
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    interval_ms: int = DEFAULT_INTERVAL_MS,
    cancel: asyncio.Event | None = None,
    description: str = "condition",
):
    """Evaluate ``predicate`` until it is Satisfied or ``timeout_ms`` elapses.

    The predicate is always evaluated once more at the deadline, so a
    timeout is reported no earlier than ``timeout_ms`` and, for a fast
    predicate, before ``timeout_ms + interval_ms``. Exceptions raised by the
    predicate propagate immediately; transient failures must be reported as
    ``Pending(last_error)``. A predicate returning ``TimedOut`` gives up
    without waiting for the deadline.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    interval = interval_ms / 1000
    last_error = None
    while True:
        if cancel is not None and cancel.is_set():
            raise PollCancelledError(description, last_error)
        outcome = await predicate()
        if isinstance(outcome, Satisfied):
            return outcome.value
        if isinstance(outcome, TimedOut):
            raise TimedOutError(description, timeout_ms, outcome.last_error)
        last_error = outcome.last_error
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise TimedOutError(description, timeout_ms, last_error)
        if await _pause(min(interval, remaining), cancel):
            raise PollCancelledError(description, last_error)
