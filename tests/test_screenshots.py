from e2e_runner.config import RunConfig
from e2e_runner.memory_driver import InMemoryDriver, InMemorySessionFactory
from e2e_runner.runner import run_suite
from e2e_runner.steps import Assert, Locate, Suite, TestCase, Visit


class ShootingDriver(InMemoryDriver):
    async def screenshot(self, path) -> bool:
        path.write_bytes(b"png")
        return True


class ShootingSessions(InMemorySessionFactory):
    def new_driver(self):
        return ShootingDriver(self.routes, self.load_delay_ms)


def failing_suite():
    return Suite("Home screen", [
        TestCase("missing table", [Locate("table"), Assert("exist", timeout_ms=20)]),
    ], before_each=[Visit("/")])


async def test_failure_screenshot_lands_in_run_dir(tmp_path, make_routes):
    config = RunConfig(base_url="http://localhost:8080", timeout_ms=50, interval_ms=10, run_dir=tmp_path)

    [result] = await run_suite(failing_suite(), ShootingSessions(make_routes()), config)

    assert result.screenshot.startswith("screenshots/test_home_screen_missing_table_step02_failure")
    assert (tmp_path / result.screenshot).read_bytes() == b"png"


async def test_no_screenshot_without_run_dir(make_routes, config):
    [result] = await run_suite(failing_suite(), ShootingSessions(make_routes()), config)
    assert result.screenshot == ""


async def test_no_screenshot_when_driver_cannot_take_one(tmp_path, make_routes):
    config = RunConfig(base_url="http://localhost:8080", timeout_ms=50, interval_ms=10, run_dir=tmp_path)
    [result] = await run_suite(failing_suite(), InMemorySessionFactory(make_routes()), config)
    assert result.screenshot == ""
