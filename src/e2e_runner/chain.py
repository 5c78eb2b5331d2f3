import asyncio
import time

from e2e_runner.actions import ActionDispatcher, first_set
from e2e_runner.assertions import AssertionEngine
from e2e_runner.config import RunConfig
from e2e_runner.errors import E2EError, InvalidStepError, PollCancelledError, SessionError, TransientBrowserError
from e2e_runner.steps import (
    EMPTY_SUBJECT,
    Act,
    Assert,
    ElementQuery,
    Locate,
    PageQuery,
    Query,
    Subject,
    TestResult,
    Visit,
)


class StepFailed(Exception):
    """Raised by ``ChainExecutor.run`` with the index of the step that broke the chain."""

    def __init__(self, index: int, step, cause: Exception):
        self.index = index
        self.step = step
        self.cause = cause
        super().__init__(f"Step {index} ({step}) failed: {cause}")


class ChainExecutor:
    """Run steps strictly in order, threading each step's subject into the next."""

    def __init__(self, driver, config: RunConfig, cancel: asyncio.Event | None = None):
        self.driver = driver
        self.config = config
        self.cancel = cancel or asyncio.Event()
        self.dispatcher = ActionDispatcher(driver, config, self.cancel)
        self.assertions = AssertionEngine(driver, config, self.cancel)

    def abort(self) -> None:
        self.cancel.set()

    async def run(self, steps, subject: Subject = EMPTY_SUBJECT) -> Subject:
        for index, step in enumerate(steps):
            if self.cancel.is_set():
                raise StepFailed(index, step, PollCancelledError(str(step)))
            if self.config.verbose:
                print(f"→ Step {index}: {step}")
            try:
                subject = await self.run_step(step, subject)
            except SessionError:
                raise
            except Exception as e:
                raise StepFailed(index, step, e) from e
        return subject

    async def run_step(self, step, subject: Subject) -> Subject:
        if isinstance(step, Visit):
            outcome = await self.dispatcher.dispatch("visit", args={"url": step.url}, timeout_ms=step.timeout_ms)
            return Subject(outcome.url)
        if isinstance(step, Locate):
            parent = None
            if step.within:
                if not subject.is_elements:
                    raise InvalidStepError(f"'{step}' needs a located element to search within")
                parent = subject.source
            query = ElementQuery(step.selector, parent)
            return Subject(await self._snapshot(query, []), query, step.timeout_ms)
        if isinstance(step, Query):
            source = PageQuery(step.kind)
            if step.kind not in ("title", "url"):
                raise InvalidStepError(f"Unknown query: {step.kind}")
            return Subject(await self._snapshot(source, None), source, step.timeout_ms)
        if isinstance(step, Act):
            await self.dispatcher.dispatch(step.kind, subject, dict(step.args), step.timeout_ms)
            if step.kind == "visit":
                return Subject(await self.driver.url())
            # Actions yield the same subject so assertions can follow.
            return subject
        if isinstance(step, Assert):
            if subject is EMPTY_SUBJECT:
                raise InvalidStepError(f"'{step}' has no subject to assert on")
            return await self.assertions.check(subject, step.predicate, step.expected,
                                               first_set(step.timeout_ms, subject.timeout_ms))
        raise InvalidStepError(f"Unknown step: {step!r}")

    async def _snapshot(self, source, fallback):
        """First value of ``source``; a transient browser error yields ``fallback``."""
        try:
            return await source(self.driver)
        except TransientBrowserError as e:
            if self.config.verbose:
                print(f"⚠️ {e}; assertions will retry")
            return fallback

    async def execute(self, name: str, steps, subject: Subject = EMPTY_SUBJECT) -> TestResult:
        """Run a chain and report it; stops at the first failing step."""
        started = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - started) * 1000)

        try:
            await self.run(steps, subject)
        except StepFailed as failure:
            if isinstance(failure.cause, E2EError):
                return TestResult.failed_case(name, failure.cause, failure.index, elapsed())
            return TestResult.errored_case(name, failure.cause, elapsed())
        return TestResult.passed_case(name, elapsed())
