import pytest

from e2e_runner.config import DEFAULT_TIMEOUT_MS, RunConfig, env_int


def test_defaults():
    config = RunConfig()
    assert config.timeout_ms == 4000
    assert config.interval_ms == 50
    assert config.case_timeout_ms is None
    assert config.screenshots_dir is None


def test_from_env(monkeypatch):
    monkeypatch.setenv("E2E_BASE_URL", "http://localhost:8080")
    monkeypatch.setenv("E2E_TIMEOUT_MS", "2500")
    monkeypatch.setenv("E2E_CASE_TIMEOUT_MS", "30000")

    config = RunConfig.from_env(interval_ms=25, base_url=None)

    assert config.base_url == "http://localhost:8080"
    assert config.timeout_ms == 2500
    assert config.interval_ms == 25
    assert config.case_timeout_ms == 30000


def test_bad_env_values_fall_back(monkeypatch):
    monkeypatch.setenv("E2E_TIMEOUT_MS", "soon")
    monkeypatch.setenv("E2E_INTERVAL_MS", " ")
    assert env_int("E2E_TIMEOUT_MS", 7) == 7
    assert RunConfig.from_env().timeout_ms == DEFAULT_TIMEOUT_MS


@pytest.mark.parametrize("changes", [
    {"timeout_ms": -1},
    {"interval_ms": 0},
    {"page_load_timeout_ms": 0},
    {"case_timeout_ms": 0},
    {"browser": "lynx"},
])
def test_rejects_bad_values(changes):
    with pytest.raises(ValueError):
        RunConfig(**changes)


def test_with_overrides_ignores_none():
    config = RunConfig(timeout_ms=100).with_overrides(timeout_ms=None, interval_ms=5)
    assert config.timeout_ms == 100
    assert config.interval_ms == 5


@pytest.mark.parametrize("url,expected", [
    ("/", "http://localhost:8080/"),
    ("endpoint", "http://localhost:8080/endpoint"),
    ("https://example.com/x", "https://example.com/x"),
    ("about:blank", "about:blank"),
])
def test_absolute_url(url, expected):
    assert RunConfig(base_url="http://localhost:8080/").absolute_url(url) == expected


def test_relative_url_without_base_is_kept():
    assert RunConfig().absolute_url("/login") == "/login"


def test_screenshots_dir(tmp_path):
    assert RunConfig(run_dir=tmp_path).screenshots_dir == tmp_path / "screenshots"
