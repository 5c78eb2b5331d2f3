import json
from pathlib import Path

import pytest

from e2e_runner.errors import InvalidSelectorError, InvalidStepError
from e2e_runner.steps import Act, Assert, Locate, Query, Suite, TestCase, Visit
from e2e_runner.suite_loader import load_suite, parse_step


HOME_SUITE = Path(__file__).resolve().parents[1] / "suites" / "home_screen.json"


def test_home_screen_declaration():
    suite = load_suite(HOME_SUITE)

    assert suite.name == "Home screen"
    assert suite.before_each == (Visit("/"),)
    title, button = suite.children
    assert title.children[0] == TestCase("should be correct", [Query("title"), Assert("eq", "Home | go-project")])
    visible, redirect = button.children
    assert visible.steps == (Locate('button[data-test="create-endpoint'), Assert("be.visible"))
    assert redirect.steps == (
        Locate('button[data-test="create-endpoint'),
        Act("click"),
        Locate('[data-test="unique-endpoint-url'),
        Assert("be.visible"),
    )


@pytest.mark.parametrize("raw,expected", [
    ({"action": "navigate", "url": "/login"}, [Visit("/login")]),
    ({"action": "visit"}, [Visit("/")]),
    ({"action": "find", "selector": "li"}, [Locate("li", within=True)]),
    ({"action": "url"}, [Query("url")]),
    ({"action": "fill", "selector": "#email", "env": "LOGIN_USERNAME"},
     [Locate("#email"), Act("type", {"env": "LOGIN_USERNAME"})]),
    ({"action": "type", "totp_env": "TOTP_SECRET", "timeout_ms": 9000},
     [Act("type", {"totp_env": "TOTP_SECRET"}, 9000)]),
    ({"action": "assert", "target": "h1", "predicate": "have.text", "value": "Hi"},
     [Locate("h1"), Assert("have.text", "Hi")]),
])
def test_step_shapes_and_aliases(raw, expected):
    assert parse_step(raw) == expected


@pytest.mark.parametrize("raw", [
    {"action": "hover", "selector": "a"},
    {"action": "get"},
    {"action": "should"},
    "visit /",
])
def test_bad_steps(raw):
    with pytest.raises(InvalidStepError):
        parse_step(raw)


def test_malformed_selector_is_rejected_at_load_time():
    with pytest.raises(InvalidSelectorError):
        parse_step({"action": "get", "selector": "button[data-test"})


def test_list_of_cases_is_wrapped_in_a_suite(tmp_path):
    path = tmp_path / "smoke.json"
    path.write_text(json.dumps([
        {"name": "loads", "steps": [{"action": "visit", "url": "/"}, {"action": "title"}]},
    ]), encoding="utf-8")

    suite = load_suite(path)

    assert isinstance(suite, Suite)
    assert suite.name == "smoke"
    assert suite.children[0].name == "loads"


def test_single_case_file(tmp_path):
    path = tmp_path / "one.json"
    path.write_text(json.dumps({"name": "solo", "steps": [], "before": [{"action": "visit"}]}), encoding="utf-8")

    suite = load_suite(path)

    assert suite.children == (TestCase("solo", [], before=[Visit("/")]),)


def test_entries_need_names(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"children": []}), encoding="utf-8")
    with pytest.raises(InvalidStepError):
        load_suite(path)


def test_non_string_selector_is_rejected_at_load_time(tmp_path):
    path = tmp_path / "odd.json"
    path.write_text(json.dumps([
        {"name": "odd", "steps": [{"action": "get", "selector": {"css": "button"}}]},
    ]), encoding="utf-8")
    with pytest.raises(InvalidSelectorError):
        load_suite(path)
