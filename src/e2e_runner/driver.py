import abc
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ElementState:
    attached: bool = False
    visible: bool = False
    enabled: bool = False
    obscured: bool = False
    tag: str = ""
    text: str = ""
    value: str | None = None
    attributes: dict = field(default_factory=dict)

    def not_actionable_reason(self) -> str | None:
        if not self.attached:
            return "element is detached from the document"
        if not self.visible:
            return "element is not visible"
        if self.obscured:
            return "element is covered by another element"
        if not self.enabled:
            return "element is disabled"
        return None


@dataclass(frozen=True)
class NavigationResult:
    url: str
    status: int | None = None


class Driver(abc.ABC):
    """Browser primitives the runner needs. One instance per session."""

    @abc.abstractmethod
    async def navigate(self, url: str, timeout_ms: int) -> NavigationResult:
        """Load ``url`` and return once the page-load signal fired."""

    @abc.abstractmethod
    async def title(self) -> str: ...

    @abc.abstractmethod
    async def url(self) -> str: ...

    @abc.abstractmethod
    async def query(self, selector, root=None) -> list:
        """Return handles matching a parsed selector, in document order."""

    @abc.abstractmethod
    async def element_state(self, handle) -> ElementState: ...

    @abc.abstractmethod
    async def click(self, handle) -> None: ...

    @abc.abstractmethod
    async def type_text(self, handle, text: str) -> None: ...

    @abc.abstractmethod
    async def clear(self, handle) -> None: ...

    async def screenshot(self, path) -> bool:
        return False

    async def reset(self) -> None:
        await self.navigate("about:blank", timeout_ms=5000)


class SessionFactory(abc.ABC):
    """Hands out one isolated driver per test case."""

    @abc.abstractmethod
    def session(self):
        """Async context manager yielding a fresh ``Driver``."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False
