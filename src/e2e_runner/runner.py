import asyncio
import re
import time
from dataclasses import replace
from pathlib import Path

from e2e_runner.chain import ChainExecutor, StepFailed
from e2e_runner.config import RunConfig
from e2e_runner.errors import SessionError
from e2e_runner.steps import PlannedCase, Suite, TestCase, TestResult, plan_cases


def sanitize_for_filename(text: str) -> str:
    """Sanitize text for use in filenames."""
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[-\s]+", "_", text)
    return text.strip("_").lower()[:100]


def get_screenshot_path(screenshots_dir: Path, test_name: str, step_index: int | None, action_type: str,
                        context: str = "", extension: str = "png") -> Path:
    """Descriptive screenshot path: ``test_<name>_step<NN>_<action>[_<context>].<ext>``.

    ``step_index`` is zero-based; filenames use the 1-based step number.
    """
    test_slug = sanitize_for_filename(test_name)
    action_slug = sanitize_for_filename(action_type)
    context_slug = f"_{sanitize_for_filename(context)}" if context else ""
    step_no = (step_index + 1) if step_index is not None else 0
    filename = f"test_{test_slug}_step{step_no:02d}_{action_slug}{context_slug}.{extension}"
    return screenshots_dir / filename


def collect_cases(declarations) -> list[PlannedCase]:
    if isinstance(declarations, (Suite, TestCase)):
        declarations = [declarations]
    planned = []
    for node in declarations:
        planned.extend(plan_cases(node))
    return planned


async def capture_failure(driver, config: RunConfig, result: TestResult) -> str:
    screenshots_dir = config.screenshots_dir
    if screenshots_dir is None:
        return ""
    try:
        screenshots_dir.mkdir(parents=True, exist_ok=True)
        error_context = sanitize_for_filename(result.reason.split("(")[0].strip()[:50]) if result.reason else "error"
        shot = get_screenshot_path(screenshots_dir, result.name, result.step_index, "failure", context=error_context)
        if config.screenshot_delay_ms > 0:
            await asyncio.sleep(config.screenshot_delay_ms / 1000)
        if not await driver.screenshot(shot):
            return ""
        if config.verbose:
            print(f"📸 Failure screenshot saved: {shot.name}")
        return shot.relative_to(config.run_dir).as_posix()
    except Exception as e:
        if config.verbose:
            print(f"⚠️ Could not save failure screenshot: {e}")
        return ""


async def run_case(planned: PlannedCase, sessions, config: RunConfig) -> TestResult:
    """Run one case in its own session: setup, chain, teardown, reset.

    Teardown is attempted exactly once whatever happens in setup or the
    chain. ``SessionError`` is re-raised after the session is released.
    """
    started = time.monotonic()

    def elapsed() -> int:
        return int((time.monotonic() - started) * 1000)

    cancel = asyncio.Event()
    watchdog = None
    if config.case_timeout_ms is not None:
        watchdog = asyncio.get_running_loop().call_later(config.case_timeout_ms / 1000, cancel.set)

    result = None
    session_error = None
    try:
        async with sessions.session() as driver:
            executor = ChainExecutor(driver, config, cancel)
            try:
                try:
                    subject = await executor.run(planned.setup)
                except StepFailed as failure:
                    result = TestResult.errored_case(planned.title, f"setup failed: {failure}")
                else:
                    result = await executor.execute(planned.title, planned.case.steps, subject)
                if not result.passed:
                    shot = await capture_failure(driver, config, result)
                    if shot:
                        result = replace(result, screenshot=shot)
            except SessionError as e:
                session_error = e
            finally:
                # Teardown gets its own executor so an aborted case still cleans up.
                try:
                    await ChainExecutor(driver, config).run(planned.teardown)
                except StepFailed as failure:
                    if result is not None and result.passed:
                        result = TestResult.errored_case(planned.title, f"teardown failed: {failure}")
                except SessionError as e:
                    session_error = session_error or e
                if session_error is None:
                    try:
                        await driver.reset()
                    except SessionError as e:
                        session_error = e
                    except Exception as e:
                        # Every case opens its own session.
                        print(f"⚠️ Could not reset session after {planned.title}: {e}")
    except SessionError as e:
        session_error = session_error or e
    finally:
        if watchdog is not None:
            watchdog.cancel()

    if session_error is not None:
        raise session_error
    return replace(result, duration_ms=elapsed())


async def run_suite(declarations, sessions, config: RunConfig | None = None) -> list[TestResult]:
    """Run every case in declaration order and return their results.

    Step failures are recorded and never raised. A ``SessionError`` aborts the
    run: the current case is recorded as errored and the remaining cases are
    recorded as not run.
    """
    config = config or RunConfig()
    planned = collect_cases(declarations)
    results = []
    aborted = None
    for index, case in enumerate(planned):
        if config.verbose:
            print(f"\n===== Running Test: {case.title} =====")
        try:
            result = await run_case(case, sessions, config)
        except SessionError as e:
            aborted = e
            results.append(TestResult.errored_case(case.title, e))
            print(f"✖ Session lost during: {case.title} — {e}")
            for rest in planned[index + 1:]:
                results.append(TestResult.errored_case(rest.title, f"not run: session aborted ({e})"))
            break
        results.append(result)
        if result.passed:
            print(f"✓ Passed: {case.title} ({result.duration_ms}ms)")
        else:
            # Trim error for readability
            err = result.reason if len(result.reason) < 300 else (result.reason[:297] + "...")
            where = f" [step {result.step_index}]" if result.step_index is not None else ""
            print(f"✖ {result.status.value.capitalize()}: {case.title}{where} — {err}")
    if aborted is not None and config.verbose:
        print(f"⛔ Run aborted after session error: {aborted}")
    return results
