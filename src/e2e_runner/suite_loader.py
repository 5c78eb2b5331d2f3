"""Load suite declarations from JSON.

A suite file holds either a suite object::

    {"name": "Home screen",
     "beforeEach": [{"action": "visit", "url": "/"}],
     "children": [{"name": "Title", "children": [
         {"name": "should be correct", "steps": [
             {"action": "title"},
             {"action": "should", "predicate": "eq", "expected": "Home | go-project"}]}]}]}

or a bare list of test cases (``[{"name": ..., "steps": [...]}]``), which is
wrapped in a suite named after the file. A step that carries a ``selector``
next to an element action or assertion (``{"action": "click", "selector":
"button"}``) expands into a locate step followed by that step.
"""

import json
from pathlib import Path

from e2e_runner.errors import InvalidStepError
from e2e_runner.steps import Act, Assert, Locate, Query, Suite, TestCase, Visit


ACTION_ALIASES = {
    "navigate": "visit",
    "navigate_to": "visit",
    "goto": "visit",
    "locate": "get",
    "fill": "type",
    "assert": "should",
    "expect": "should",
}


def parse_step(raw: dict) -> list:
    if not isinstance(raw, dict):
        raise InvalidStepError(f"Step must be an object, got {raw!r}")
    action = raw.get("action")
    action = ACTION_ALIASES.get(action, action)
    timeout = raw.get("timeout_ms", raw.get("timeout"))
    selector = raw.get("selector") or raw.get("target")

    if action == "visit":
        return [Visit(raw.get("url") or raw.get("target") or "/", timeout)]
    if action in ("get", "find"):
        if not selector:
            raise InvalidStepError(f"'{action}' needs a selector: {raw}")
        return [Locate(selector, within=(action == "find"), timeout_ms=timeout)]
    if action in ("title", "url"):
        return [Query(action, timeout)]

    prefix = [Locate(selector, timeout_ms=timeout)] if selector else []
    if action in ("click", "type", "clear"):
        args = {k: raw[k] for k in ("text", "env", "totp_env") if k in raw}
        return prefix + [Act(action, args, timeout)]
    if action == "should":
        predicate = raw.get("predicate") or raw.get("should")
        if not predicate:
            raise InvalidStepError(f"'should' needs a predicate: {raw}")
        return prefix + [Assert(predicate, raw.get("expected", raw.get("value")), timeout)]
    raise InvalidStepError(f"Unknown action: {action}")


def parse_steps(raw_steps) -> list:
    steps = []
    for raw in raw_steps or []:
        steps.extend(parse_step(raw))
    return steps


def parse_node(raw: dict):
    if not isinstance(raw, dict) or not raw.get("name"):
        raise InvalidStepError(f"Suite and test entries need a name: {raw!r}")
    if "steps" in raw:
        return TestCase(
            raw["name"],
            parse_steps(raw["steps"]),
            before=parse_steps(raw.get("before")),
            after=parse_steps(raw.get("after")),
        )
    children = raw.get("children", raw.get("tests", []))
    return Suite(
        raw["name"],
        [parse_node(child) for child in children],
        before_each=parse_steps(raw.get("beforeEach", raw.get("before_each"))),
        after_each=parse_steps(raw.get("afterEach", raw.get("after_each"))),
    )


def load_suite(path) -> Suite:
    path = Path(path)
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        return Suite(path.stem, [parse_node(item) for item in data])
    node = parse_node(data)
    if isinstance(node, TestCase):
        return Suite(path.stem, [node])
    return node
