import asyncio

import pytest

from e2e_runner.config import RunConfig
from e2e_runner.memory_driver import InMemoryDriver, Page, el


BASE_URL = "http://localhost:8080"


def home_routes(button_delay=None, redirect=True, redirect_delay=0.0, counters=None):
    """Routes mimicking the go-project home and endpoint screens."""
    counters = counters if counters is not None else {}

    def on_click(driver, node):
        if not redirect:
            return
        if redirect_delay:
            asyncio.get_running_loop().call_later(redirect_delay, driver.go, "/endpoint")
        else:
            driver.go("/endpoint")

    def home(driver):
        main = el("main", el("h1", text="Endpoints"))
        button = el("button", text="Create endpoint", attrs={"data-test": "create-endpoint"}, on_click=on_click)
        if button_delay is None:
            main.append(button)
        else:
            asyncio.get_running_loop().call_later(button_delay, main.append, button)
        return Page("Home | go-project", [main])

    def endpoint(driver):
        return Page("Endpoint | go-project", [
            el("section", el("input", attrs={"data-test": "unique-endpoint-url", "readonly": ""})),
        ])

    def teardown(driver):
        counters["teardown"] = counters.get("teardown", 0) + 1
        return Page("Teardown")

    return {"/": home, "/endpoint": endpoint, "/teardown": teardown}


@pytest.fixture
def make_routes():
    return home_routes


@pytest.fixture
def config():
    return RunConfig(base_url=BASE_URL, timeout_ms=300, interval_ms=10, page_load_timeout_ms=1000)


@pytest.fixture
async def home_driver():
    driver = InMemoryDriver(home_routes())
    await driver.navigate(BASE_URL + "/", timeout_ms=1000)
    return driver
