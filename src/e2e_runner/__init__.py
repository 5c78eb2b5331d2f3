from e2e_runner.config import RunConfig
from e2e_runner.errors import (
    AssertionFailure,
    E2EError,
    ElementNotActionableError,
    InvalidSelectorError,
    InvalidStepError,
    NavigationError,
    PollCancelledError,
    SessionError,
    TimedOutError,
    TransientBrowserError,
)
from e2e_runner.runner import run_suite
from e2e_runner.steps import Act, Assert, Locate, Query, Status, Suite, TestCase, TestResult, Visit

__version__ = "0.1.0"
