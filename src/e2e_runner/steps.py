from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from e2e_runner.selector_resolver import SelectorResolver, parse_selector


# ---- Steps -----------------------------------------------------------------

@dataclass(frozen=True)
class Visit:
    url: str
    timeout_ms: int | None = None

    def __str__(self):
        return f"visit {self.url}"


@dataclass(frozen=True)
class Locate:
    selector: str
    # Look inside the current subject's elements instead of the whole document.
    within: bool = False
    timeout_ms: int | None = None

    def __post_init__(self):
        parse_selector(self.selector)

    def __str__(self):
        return f"{'find' if self.within else 'get'} {self.selector}"


@dataclass(frozen=True)
class Query:
    kind: str
    timeout_ms: int | None = None

    def __str__(self):
        return self.kind


@dataclass(frozen=True)
class Act:
    kind: str
    args: dict = field(default_factory=dict)
    timeout_ms: int | None = None

    def __str__(self):
        return f"{self.kind} {self.args}" if self.args else self.kind


@dataclass(frozen=True)
class Assert:
    predicate: str
    expected: Any = None
    timeout_ms: int | None = None

    def __str__(self):
        if self.expected is None:
            return f"should {self.predicate}"
        return f"should {self.predicate} {self.expected!r}"


Step = Visit | Locate | Query | Act | Assert


# ---- Subjects --------------------------------------------------------------

_resolver = SelectorResolver()


@dataclass(frozen=True)
class ElementQuery:
    selector: str
    parent: "ElementQuery | None" = None

    async def __call__(self, driver) -> list:
        scope = await self.parent(driver) if self.parent is not None else None
        return await _resolver.resolve(self.selector, driver, scope=scope)

    def __str__(self):
        if self.parent is None:
            return self.selector
        return f"{self.parent} {self.selector}"


@dataclass(frozen=True)
class PageQuery:
    kind: str

    async def __call__(self, driver):
        if self.kind == "title":
            return await driver.title()
        if self.kind == "url":
            return await driver.url()
        raise ValueError(f"Unknown page query: {self.kind}")

    def __str__(self):
        return f"page {self.kind}"


@dataclass(frozen=True)
class Subject:
    """Value threaded between steps; ``source`` re-queries a fresh snapshot."""

    value: Any = None
    source: ElementQuery | PageQuery | None = None
    timeout_ms: int | None = None

    @property
    def is_elements(self) -> bool:
        return isinstance(self.source, ElementQuery)

    async def refresh(self, driver) -> "Subject":
        if self.source is None:
            return self
        return Subject(await self.source(driver), self.source, self.timeout_ms)

    def __str__(self):
        if self.source is not None:
            return str(self.source)
        return repr(self.value)


EMPTY_SUBJECT = Subject()


# ---- Declarations ----------------------------------------------------------

@dataclass(frozen=True)
class TestCase:
    __test__ = False

    name: str
    steps: tuple = ()
    before: tuple = ()
    after: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "before", tuple(self.before))
        object.__setattr__(self, "after", tuple(self.after))


@dataclass(frozen=True)
class Suite:
    name: str
    children: tuple = ()
    before_each: tuple = ()
    after_each: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "children", tuple(self.children))
        object.__setattr__(self, "before_each", tuple(self.before_each))
        object.__setattr__(self, "after_each", tuple(self.after_each))
        for child in self.children:
            if not isinstance(child, (Suite, TestCase)):
                raise TypeError(f"Suite {self.name!r} child must be Suite or TestCase, got {type(child).__name__}")


@dataclass(frozen=True)
class PlannedCase:
    title: str
    case: TestCase
    setup: tuple
    teardown: tuple


def plan_cases(node, parents: tuple = (), setup: tuple = (), teardown: tuple = ()):
    """Flatten a suite tree into cases with hooks resolved.

    Setup hooks run outer-to-inner and teardown hooks inner-to-outer.
    """
    if isinstance(node, TestCase):
        title = " > ".join(parents + (node.name,))
        yield PlannedCase(title, node, setup + node.before, node.after + teardown)
        return
    names = parents + (node.name,)
    for child in node.children:
        yield from plan_cases(child, names, setup + node.before_each, node.after_each + teardown)


# ---- Results ---------------------------------------------------------------

class Status(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"


@dataclass(frozen=True)
class TestResult:
    __test__ = False

    name: str
    status: Status
    reason: str = ""
    step_index: int | None = None
    error_type: str = ""
    details: dict = field(default_factory=dict)
    duration_ms: int = 0
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))
    screenshot: str = ""

    @property
    def passed(self) -> bool:
        return self.status == Status.PASSED

    @classmethod
    def passed_case(cls, name: str, duration_ms: int) -> "TestResult":
        return cls(name, Status.PASSED, duration_ms=duration_ms)

    @classmethod
    def failed_case(cls, name: str, error: Exception, step_index: int, duration_ms: int = 0) -> "TestResult":
        details = error.details() if hasattr(error, "details") else {}
        return cls(name, Status.FAILED, str(error), step_index, type(error).__name__, details, duration_ms)

    @classmethod
    def errored_case(cls, name: str, cause: Exception | str, duration_ms: int = 0) -> "TestResult":
        error_type = type(cause).__name__ if isinstance(cause, Exception) else ""
        return cls(name, Status.ERRORED, str(cause), error_type=error_type, duration_ms=duration_ms)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data
