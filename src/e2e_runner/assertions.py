"""Eventual assertions.

Every check is re-evaluated against a fresh snapshot of its subject until it
holds or the timeout elapses; only a check that stays false past the timeout
is a failure. Predicates are registered by name, take
``(driver, subject, expected)`` and return ``(ok, actual)``. Any predicate can
be negated with a ``not.`` prefix, and the usual chai/Cypress chainer names
(``eq``, ``be.visible``, ``have.text`` ...) are accepted as aliases.
"""

import asyncio
import re

from e2e_runner.actions import first_set
from e2e_runner.config import RunConfig
from e2e_runner.errors import AssertionFailure, InvalidStepError, TimedOutError, TransientBrowserError
from e2e_runner.poller import Pending, Satisfied, poll
from e2e_runner.steps import Subject


PREDICATES = {}
ALIASES = {}


def register_predicate(name: str, *aliases: str):
    def decorator(fn):
        PREDICATES[name] = fn
        for alias in aliases:
            ALIASES[alias] = name
        return fn
    return decorator


def lookup_predicate(name: str):
    """Return ``(fn, negate, label)`` for a predicate name or alias."""
    label = (name or "").strip()
    negate = False
    key = label
    if key.startswith("not."):
        negate, key = True, key[4:]
    key = ALIASES.get(key, key)
    if key.startswith("not."):
        negate, key = not negate, key[4:]
    fn = PREDICATES.get(key)
    if fn is None:
        raise InvalidStepError(f"Unknown assertion: {name!r}")
    return fn, negate, label


async def _states(driver, subject: Subject) -> list:
    return [await driver.element_state(h) for h in subject.value or []]


def _require_elements(subject: Subject, predicate: str):
    if not subject.is_elements:
        raise InvalidStepError(f"'{predicate}' needs a located element as its subject")


async def _text(driver, subject: Subject) -> str:
    if subject.is_elements:
        return "".join(s.text for s in await _states(driver, subject))
    return "" if subject.value is None else str(subject.value)


@register_predicate("equals", "eq", "equal")
async def equals(driver, subject, expected):
    actual = await _text(driver, subject) if subject.is_elements else subject.value
    return actual == expected, actual


@register_predicate("contains", "contain", "include")
async def contains(driver, subject, expected):
    actual = await _text(driver, subject)
    return str(expected) in actual, actual


@register_predicate("matches", "match")
async def matches(driver, subject, expected):
    actual = await _text(driver, subject)
    return re.search(str(expected), actual) is not None, actual


@register_predicate("exists", "exist")
async def exists(driver, subject, expected):
    if subject.is_elements:
        count = len(subject.value or [])
        return count > 0, f"{count} element(s)"
    return subject.value is not None, subject.value


@register_predicate("isVisible", "be.visible", "visible")
async def is_visible(driver, subject, expected):
    _require_elements(subject, "isVisible")
    states = await _states(driver, subject)
    if not states:
        return False, "not found"
    hidden = sum(1 for s in states if not (s.attached and s.visible))
    return hidden == 0, "visible" if hidden == 0 else f"{hidden} of {len(states)} hidden"


@register_predicate("isHidden", "be.hidden", "hidden")
async def is_hidden(driver, subject, expected):
    _require_elements(subject, "isHidden")
    states = await _states(driver, subject)
    if not states:
        return False, "not found"
    shown = sum(1 for s in states if s.attached and s.visible)
    return shown == 0, "hidden" if shown == 0 else f"{shown} of {len(states)} visible"


@register_predicate("isEnabled", "be.enabled", "enabled")
async def is_enabled(driver, subject, expected):
    _require_elements(subject, "isEnabled")
    states = await _states(driver, subject)
    if not states:
        return False, "not found"
    disabled = sum(1 for s in states if not s.enabled)
    return disabled == 0, "enabled" if disabled == 0 else f"{disabled} of {len(states)} disabled"


ALIASES["be.disabled"] = "not.isEnabled"
ALIASES["disabled"] = "not.isEnabled"


@register_predicate("hasText", "have.text")
async def has_text(driver, subject, expected):
    _require_elements(subject, "hasText")
    actual = await _text(driver, subject)
    return actual == str(expected), actual


@register_predicate("containsText", "contain.text", "include.text")
async def contains_text(driver, subject, expected):
    _require_elements(subject, "containsText")
    actual = await _text(driver, subject)
    return str(expected) in actual, actual


@register_predicate("hasAttribute", "have.attr")
async def has_attribute(driver, subject, expected):
    """``expected`` is an attribute name, or ``[name, value]`` / ``{"name", "value"}``."""
    _require_elements(subject, "hasAttribute")
    if isinstance(expected, dict):
        name, value, check_value = expected.get("name"), expected.get("value"), "value" in expected
    elif isinstance(expected, (list, tuple)) and expected:
        name, value, check_value = expected[0], (expected[1] if len(expected) > 1 else None), len(expected) > 1
    else:
        name, value, check_value = expected, None, False
    if not isinstance(name, str) or not name:
        raise InvalidStepError(f"hasAttribute needs an attribute name, got {expected!r}")
    states = await _states(driver, subject)
    if not states:
        return False, "not found"
    attrs = states[0].attributes
    if name not in attrs:
        return False, f"no {name} attribute"
    if check_value:
        return attrs[name] == str(value), attrs[name]
    return True, attrs[name]


@register_predicate("hasValue", "have.value")
async def has_value(driver, subject, expected):
    _require_elements(subject, "hasValue")
    states = await _states(driver, subject)
    if not states:
        return False, "not found"
    actual = states[0].value
    return actual == str(expected), actual


@register_predicate("hasLength", "have.length")
async def has_length(driver, subject, expected):
    if not isinstance(expected, int):
        raise InvalidStepError(f"hasLength needs an integer, got {expected!r}")
    try:
        actual = len(subject.value or [])
    except TypeError:
        actual = None
    return actual == int(expected), actual


def describe(subject: Subject) -> str:
    if subject.is_elements:
        return f"{subject.source} ({len(subject.value or [])} element(s))"
    if subject.source is not None:
        return f"{subject.source} {subject.value!r}"
    return repr(subject.value)


class AssertionEngine:
    def __init__(self, driver, config: RunConfig, cancel: asyncio.Event | None = None):
        self.driver = driver
        self.config = config
        self.cancel = cancel

    async def check(self, subject: Subject | None, predicate: str, expected=None,
                    timeout_ms: int | None = None) -> Subject:
        if subject is None:
            raise InvalidStepError(f"'{predicate}' has no subject to assert on")
        fn, negate, label = lookup_predicate(predicate)
        last = {"subject": subject}

        async def attempt():
            try:
                fresh = await subject.refresh(self.driver)
                last["subject"] = fresh
                ok, actual = await fn(self.driver, fresh, expected)
            except TransientBrowserError as e:
                return Pending(str(e))
            if ok != negate:
                return Satisfied(fresh)
            return Pending(actual)

        timeout = first_set(timeout_ms, subject.timeout_ms, self.config.timeout_ms)
        try:
            return await poll(attempt, timeout, self.config.interval_ms, self.cancel,
                              description=f"{subject} to {label}")
        except TimedOutError as e:
            raise AssertionFailure(describe(last["subject"]), label, expected, e.last_error, timeout) from e
