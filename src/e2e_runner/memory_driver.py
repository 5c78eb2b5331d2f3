"""A scriptable in-memory document that stands in for a browser.

Pages are registered per path as builder callables that return a ``Page``.
Nodes can carry an ``on_click`` callback (for example to navigate or to
mutate the tree), so asynchronous UI behaviour can be reproduced with
``asyncio`` timers when exercising suites without a real browser.
"""

import asyncio
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from e2e_runner.driver import Driver, ElementState, NavigationResult, SessionFactory
from e2e_runner.errors import NavigationError, SessionError, TimedOutError


class Node:
    def __init__(self, tag: str, attributes: dict | None = None, text: str = "", children=(),
                 visible: bool = True, enabled: bool = True, obscured: bool = False, on_click=None):
        self.tag = tag
        self.attributes = dict(attributes or {})
        self.text = text
        self.visible = visible
        self.enabled = enabled
        self.obscured = obscured
        self.on_click = on_click
        self.value = ""
        self.clicks = 0
        self.parent = None
        self.children = []
        for child in children:
            self.append(child)

    def append(self, child: "Node") -> "Node":
        if child.parent is not None:
            child.remove()
        child.parent = self
        self.children.append(child)
        return child

    def remove(self) -> None:
        if self.parent is not None:
            self.parent.children.remove(self)
            self.parent = None

    def descendants(self):
        for child in self.children:
            yield child
            yield from child.descendants()

    @property
    def root(self) -> "Node":
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    @property
    def rendered(self) -> bool:
        node = self
        while node is not None:
            if not node.visible:
                return False
            node = node.parent
        return True

    @property
    def full_text(self) -> str:
        parts = [self.text] + [c.full_text for c in self.children]
        return " ".join(p for p in parts if p).strip()

    def __repr__(self):
        attrs = "".join(f' {k}="{v}"' for k, v in self.attributes.items())
        return f"<{self.tag}{attrs}>"


class Page:
    def __init__(self, title: str = "", body=(), status: int = 200):
        self.title = title
        self.status = status
        self.document = Node("html", children=[Node("body", children=body)])

    @property
    def body(self) -> Node:
        return self.document.children[0]


def el(tag: str, *children, text: str = "", **options) -> Node:
    """Shorthand for building trees: ``el("button", text="Go", attrs={...})``."""
    return Node(tag, options.pop("attrs", None), text, children, **options)


class InMemoryDriver(Driver):
    def __init__(self, routes: dict | None = None, load_delay_ms: int = 0):
        self.routes = dict(routes or {})
        self.load_delay_ms = load_delay_ms
        self.page = Page()
        self.current_url = "about:blank"
        self.history = []
        self.closed = False

    def _check_open(self):
        if self.closed:
            raise SessionError("In-memory session is closed")

    def crash(self) -> None:
        self.closed = True

    async def close(self) -> None:
        self.closed = True

    async def navigate(self, url: str, timeout_ms: int) -> NavigationResult:
        self._check_open()
        if url == "about:blank":
            self.page = Page()
            self.current_url = url
            return NavigationResult(url)
        if self.load_delay_ms:
            if self.load_delay_ms > timeout_ms:
                await asyncio.sleep(timeout_ms / 1000)
                raise TimedOutError(f"page load of {url}", timeout_ms, "load event never fired")
            await asyncio.sleep(self.load_delay_ms / 1000)
        path = urlparse(url).path or "/"
        builder = self.routes.get(path)
        if builder is None:
            self.page = Page("404", [el("h1", text="Not Found")], status=404)
            self.current_url = url
            raise NavigationError(url, 404)
        self.page = builder(self)
        self.current_url = url
        self.history.append(url)
        if self.page.status >= 400:
            raise NavigationError(url, self.page.status)
        return NavigationResult(url, self.page.status)

    def go(self, path: str) -> None:
        """Client-side navigation triggered from page scripts (no load wait)."""
        builder = self.routes[path]
        base = urlparse(self.current_url)
        self.page = builder(self)
        self.current_url = f"{base.scheme}://{base.netloc}{path}" if base.netloc else path
        self.history.append(self.current_url)

    async def title(self) -> str:
        self._check_open()
        return self.page.title

    async def url(self) -> str:
        self._check_open()
        return self.current_url

    async def query(self, selector, root=None) -> list:
        self._check_open()
        scope = root if root is not None else self.page.document
        return [node for node in scope.descendants() if selector.matches(node)]

    def _attached(self, node: Node) -> bool:
        return node.root is self.page.document

    async def element_state(self, handle: Node) -> ElementState:
        self._check_open()
        attrs = dict(handle.attributes)
        return ElementState(
            attached=self._attached(handle),
            visible=handle.rendered,
            enabled=handle.enabled and "disabled" not in attrs,
            obscured=handle.obscured,
            tag=handle.tag,
            text=handle.full_text,
            value=handle.value if handle.tag in ("input", "textarea", "select") else None,
            attributes=attrs,
        )

    async def click(self, handle: Node) -> None:
        self._check_open()
        handle.clicks += 1
        if handle.on_click is not None:
            handle.on_click(self, handle)

    async def type_text(self, handle: Node, text: str) -> None:
        self._check_open()
        handle.value += text

    async def clear(self, handle: Node) -> None:
        self._check_open()
        handle.value = ""


class InMemorySessionFactory(SessionFactory):
    """Build a fresh ``InMemoryDriver`` for every test case."""

    def __init__(self, routes: dict, load_delay_ms: int = 0):
        self.routes = routes
        self.load_delay_ms = load_delay_ms
        self.drivers = []

    def new_driver(self) -> InMemoryDriver:
        return InMemoryDriver(self.routes, self.load_delay_ms)

    @asynccontextmanager
    async def session(self):
        driver = self.new_driver()
        self.drivers.append(driver)
        try:
            yield driver
        finally:
            await driver.close()
