import os
from dataclasses import dataclass, field, replace
from pathlib import Path


DEFAULT_TIMEOUT_MS = 4000
DEFAULT_INTERVAL_MS = 50
DEFAULT_PAGE_LOAD_TIMEOUT_MS = 60000
DEFAULT_VIEWPORT = {"width": 1366, "height": 900}
BROWSERS = ("chromium", "firefox", "webkit")


def env_int(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except Exception:
        return default


@dataclass(frozen=True)
class RunConfig:
    base_url: str = ""
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    interval_ms: int = DEFAULT_INTERVAL_MS
    page_load_timeout_ms: int = DEFAULT_PAGE_LOAD_TIMEOUT_MS
    # Abort deadline for a whole test case; None disables it.
    case_timeout_ms: int | None = None
    headless: bool = True
    browser: str = "chromium"
    viewport: dict = field(default_factory=lambda: dict(DEFAULT_VIEWPORT))
    run_dir: Path | None = None
    screenshot_delay_ms: int = 0
    verbose: bool = False

    def __post_init__(self):
        if self.timeout_ms < 0:
            raise ValueError(f"timeout_ms must be >= 0, got {self.timeout_ms}")
        if self.interval_ms <= 0:
            raise ValueError(f"interval_ms must be > 0, got {self.interval_ms}")
        if self.page_load_timeout_ms <= 0:
            raise ValueError(f"page_load_timeout_ms must be > 0, got {self.page_load_timeout_ms}")
        if self.case_timeout_ms is not None and self.case_timeout_ms <= 0:
            raise ValueError(f"case_timeout_ms must be > 0, got {self.case_timeout_ms}")
        if self.browser not in BROWSERS:
            raise ValueError(f"browser must be one of {', '.join(BROWSERS)}, got {self.browser!r}")

    @classmethod
    def from_env(cls, **overrides) -> "RunConfig":
        """Build a config from E2E_* environment variables; explicit overrides win."""
        values = {
            "base_url": os.environ.get("E2E_BASE_URL", ""),
            "timeout_ms": env_int("E2E_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
            "interval_ms": env_int("E2E_INTERVAL_MS", DEFAULT_INTERVAL_MS),
            "page_load_timeout_ms": env_int("E2E_PAGE_LOAD_TIMEOUT_MS", DEFAULT_PAGE_LOAD_TIMEOUT_MS),
            "case_timeout_ms": env_int("E2E_CASE_TIMEOUT_MS", None),
            "screenshot_delay_ms": env_int("SCREENSHOT_DELAY_MS", 0),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def with_overrides(self, **changes) -> "RunConfig":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @property
    def screenshots_dir(self) -> Path | None:
        if self.run_dir is None:
            return None
        return Path(self.run_dir) / "screenshots"

    def absolute_url(self, url: str) -> str:
        if url.startswith(("http://", "https://", "about:", "file:", "data:")) or not self.base_url:
            return url
        return self.base_url.rstrip("/") + "/" + url.lstrip("/")
