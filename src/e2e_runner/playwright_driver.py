from contextlib import asynccontextmanager

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from e2e_runner.config import RunConfig
from e2e_runner.driver import Driver, ElementState, NavigationResult, SessionFactory
from e2e_runner.errors import NavigationError, SessionError, TimedOutError, TransientBrowserError


# Attachment, covering element and content of a handle in one round trip.
_STATE_SCRIPT = """
el => {
    const attached = el.isConnected;
    let obscured = false;
    if (attached) {
        const r = el.getBoundingClientRect();
        if (r.width > 0 && r.height > 0) {
            const top = document.elementFromPoint(r.left + r.width / 2, r.top + r.height / 2);
            obscured = !!top && top !== el && !el.contains(top);
        }
    }
    const attributes = {};
    for (const a of Array.from(el.attributes || [])) attributes[a.name] = a.value;
    return {
        attached,
        obscured,
        tag: (el.tagName || '').toLowerCase(),
        text: (el.innerText ?? el.textContent ?? '').trim(),
        value: ('value' in el) ? String(el.value) : null,
        attributes,
    };
}
"""


def _first_line(error: Exception) -> str:
    return (str(error).splitlines() or [""])[0]


class PlaywrightDriver(Driver):
    def __init__(self, page, config: RunConfig | None = None):
        self.page = page
        self.config = config or RunConfig()

    def session_gone(self) -> bool:
        try:
            if self.page.is_closed():
                return True
            browser = self.page.context.browser
            return browser is not None and not browser.is_connected()
        except Exception:
            return True

    @asynccontextmanager
    async def _guard(self, what: str, timeout_ms: int | None = None):
        try:
            yield
        except PlaywrightTimeoutError as e:
            budget = timeout_ms if timeout_ms is not None else self.config.timeout_ms
            raise TimedOutError(what, budget, _first_line(e)) from e
        except PlaywrightError as e:
            if self.session_gone():
                raise SessionError(f"Browser session lost during {what}: {e}") from e
            raise TransientBrowserError(f"{what}: {_first_line(e)}") from e

    async def navigate(self, url: str, timeout_ms: int) -> NavigationResult:
        try:
            async with self._guard(f"page load of {url}", timeout_ms):
                response = await self.page.goto(url, timeout=timeout_ms, wait_until="load")
        except TransientBrowserError as e:
            raise NavigationError(url, message=str(e)) from e
        status = response.status if response is not None else None
        if status is not None and status >= 400:
            raise NavigationError(url, status)
        return NavigationResult(self.page.url, status)

    async def title(self) -> str:
        async with self._guard("title"):
            return await self.page.title()

    async def url(self) -> str:
        if self.session_gone():
            raise SessionError("Browser session lost during url")
        return self.page.url

    async def query(self, selector, root=None) -> list:
        async with self._guard(f"query {selector}"):
            if root is not None:
                return await root.query_selector_all(selector.css)
            return await self.page.query_selector_all(selector.css)

    async def element_state(self, handle) -> ElementState:
        try:
            info = await handle.evaluate(_STATE_SCRIPT)
            visible = await handle.is_visible()
            enabled = await handle.is_enabled()
        except PlaywrightError as e:
            if self.session_gone():
                raise SessionError(f"Browser session lost during element state: {e}") from e
            # Handles of removed nodes stop answering; treat them as detached.
            return ElementState()
        return ElementState(
            attached=bool(info.get("attached")),
            visible=visible,
            enabled=enabled,
            obscured=bool(info.get("obscured")),
            tag=info.get("tag") or "",
            text=info.get("text") or "",
            value=info.get("value"),
            attributes=info.get("attributes") or {},
        )

    async def click(self, handle) -> None:
        # Actionability was already checked by the dispatcher.
        async with self._guard("click"):
            await handle.click(force=True, timeout=self.config.timeout_ms)

    async def type_text(self, handle, text: str) -> None:
        async with self._guard("type"):
            await handle.focus()
            await self.page.keyboard.type(text)

    async def clear(self, handle) -> None:
        async with self._guard("clear"):
            await handle.fill("", force=True, timeout=self.config.timeout_ms)

    async def screenshot(self, path) -> bool:
        if self.session_gone():
            return False
        async with self._guard("screenshot"):
            await self.page.screenshot(path=str(path), full_page=True)
        return True

    async def reset(self) -> None:
        if self.session_gone():
            return
        async with self._guard("reset", self.config.page_load_timeout_ms):
            await self.page.goto("about:blank", timeout=self.config.page_load_timeout_ms)


class PlaywrightSessionFactory(SessionFactory):
    """Launch one browser per run and open a fresh context per test case."""

    def __init__(self, config: RunConfig):
        self.config = config
        self._playwright = None
        self._browser = None

    async def __aenter__(self):
        try:
            self._playwright = await async_playwright().start()
            launcher = getattr(self._playwright, self.config.browser)
            self._browser = await launcher.launch(headless=self.config.headless)
        except PlaywrightError as e:
            await self._stop()
            raise SessionError(f"Could not launch {self.config.browser}: {e}") from e
        if self.config.verbose:
            print(f"→ Launched {self.config.browser} (headless={self.config.headless})")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self._stop()
        return False

    async def _stop(self):
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                if self.config.verbose:
                    print(f"⚠️ Browser close failed: {e}")
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    @asynccontextmanager
    async def session(self):
        if self._browser is None or not self._browser.is_connected():
            raise SessionError("Browser is not running")
        try:
            context = await self._browser.new_context(viewport=self.config.viewport)
            page = await context.new_page()
        except PlaywrightError as e:
            raise SessionError(f"Could not open a browser context: {e}") from e
        try:
            yield PlaywrightDriver(page, self.config)
        finally:
            try:
                await context.close()
            except PlaywrightError as e:
                if self.config.verbose:
                    print(f"⚠️ Context close failed: {e}")
