import asyncio
import os
import time
from dataclasses import dataclass

import pyotp

from e2e_runner.config import RunConfig
from e2e_runner.errors import ElementNotActionableError, InvalidStepError, TimedOutError, TransientBrowserError
from e2e_runner.poller import Pending, Satisfied, poll
from e2e_runner.steps import Subject


ELEMENT_ACTIONS = ("click", "type", "clear")


def first_set(*values):
    return next((v for v in values if v is not None), None)


def resolve_text(args: dict) -> str:
    """Text for a ``type`` action: literal, from an env var, or a current TOTP code."""
    if "totp_env" in args:
        secret = os.environ.get(args["totp_env"], "")
        if not secret:
            raise InvalidStepError(f"Missing required environment variable: {args['totp_env']}")
        return pyotp.TOTP(secret).now()
    if "env" in args:
        value = os.environ.get(args["env"])
        if value is None:
            raise InvalidStepError(f"Missing required environment variable: {args['env']}")
        return value
    if "text" in args:
        return str(args["text"])
    raise InvalidStepError("type needs one of 'text', 'env' or 'totp_env'")


@dataclass(frozen=True)
class ActionOutcome:
    kind: str
    target: str
    duration_ms: int
    url: str | None = None
    status: int | None = None


class ActionDispatcher:
    def __init__(self, driver, config: RunConfig, cancel: asyncio.Event | None = None):
        self.driver = driver
        self.config = config
        self.cancel = cancel

    async def dispatch(self, kind: str, target: Subject | None = None, args: dict | None = None,
                       timeout_ms: int | None = None) -> ActionOutcome:
        args = args or {}
        if kind == "visit":
            if not args.get("url"):
                raise InvalidStepError("visit needs a url")
            return await self.visit(args["url"], timeout_ms)
        if kind not in ELEMENT_ACTIONS:
            raise InvalidStepError(f"Unknown action: {kind}")
        if target is None or not target.is_elements:
            raise InvalidStepError(f"'{kind}' needs a located element as its subject")
        text = resolve_text(args) if kind == "type" else None

        handle = await self.wait_for_actionable(target, first_set(timeout_ms, target.timeout_ms))
        started = time.monotonic()
        # Dispatched exactly once; never retried after this point.
        if kind == "click":
            await self.driver.click(handle)
        elif kind == "type":
            await self.driver.type_text(handle, text)
        else:
            await self.driver.clear(handle)
        return ActionOutcome(kind, str(target), int((time.monotonic() - started) * 1000))

    async def visit(self, url: str, timeout_ms: int | None = None) -> ActionOutcome:
        target = self.config.absolute_url(url)
        timeout = first_set(timeout_ms, self.config.page_load_timeout_ms)
        started = time.monotonic()
        result = await self.driver.navigate(target, timeout_ms=timeout)
        return ActionOutcome("visit", target, int((time.monotonic() - started) * 1000), result.url, result.status)

    async def wait_for_actionable(self, target: Subject, timeout_ms: int | None = None):
        """Poll until the first matched element is attached, visible, uncovered and enabled."""

        async def actionable():
            try:
                fresh = await target.refresh(self.driver)
                handles = fresh.value or []
                if not handles:
                    return Pending(f"no element matches {target}")
                state = await self.driver.element_state(handles[0])
            except TransientBrowserError as e:
                return Pending(str(e))
            reason = state.not_actionable_reason()
            if reason:
                return Pending(reason)
            return Satisfied(handles[0])

        timeout = first_set(timeout_ms, self.config.timeout_ms)
        try:
            return await poll(actionable, timeout, self.config.interval_ms, self.cancel,
                              description=f"{target} to be actionable")
        except TimedOutError as e:
            raise ElementNotActionableError(e.description, e.timeout_ms, e.last_error) from e
