class E2EError(Exception):
    """Base class for every failure raised by the runner."""


class InvalidSelectorError(E2EError):
    def __init__(self, selector: str, message: str, position: int | None = None):
        self.selector = selector
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid selector {selector!r}{where}: {message}")


class InvalidStepError(E2EError):
    """A step is declared wrong (unknown action, missing subject, missing env var)."""


class NavigationError(E2EError):
    def __init__(self, url: str, status: int | None = None, message: str = ""):
        self.url = url
        self.status = status
        detail = message or (f"HTTP {status}" if status is not None else "navigation failed")
        super().__init__(f"Visit to {url} failed: {detail}")


class TimedOutError(E2EError):
    def __init__(self, description: str, timeout_ms: int, last_error=None):
        self.description = description
        self.timeout_ms = timeout_ms
        self.last_error = last_error
        msg = f"Timed out after {timeout_ms}ms: {description}"
        if last_error:
            msg += f" (last: {last_error})"
        super().__init__(msg)


class ElementNotActionableError(TimedOutError):
    pass


class AssertionFailure(TimedOutError, AssertionError):
    def __init__(self, subject, predicate: str, expected, actual, timeout_ms: int):
        self.subject = subject
        self.predicate = predicate
        self.expected = expected
        self.actual = actual
        wanted = predicate if expected is None else f"{predicate} {expected!r}"
        E2EError.__init__(self, f"Expected {subject} to {wanted} within {timeout_ms}ms, but got {actual!r}")
        self.description = f"assert {predicate}"
        self.timeout_ms = timeout_ms
        self.last_error = actual

    def details(self) -> dict:
        return {
            "subject": str(self.subject),
            "predicate": self.predicate,
            "expected": self.expected,
            "actual": self.actual,
        }


class PollCancelledError(E2EError):
    def __init__(self, description: str, last_error=None):
        self.description = description
        self.last_error = last_error
        super().__init__(f"Aborted while waiting: {description}")


class TransientBrowserError(E2EError):
    """The browser rejected a call but the session is alive (e.g. a navigation raced it)."""


class SessionError(E2EError):
    """The browser session is gone; fatal for the rest of the run."""
