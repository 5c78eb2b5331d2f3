"""Parse structural selectors and resolve them against the current document.

Supported syntax is a CSS subset: selector lists (``,``), descendant and child
(``>``) combinators, and compound selectors built from a tag (or ``*``),
``#id``, ``.class`` and attribute predicates ``[attr]`` / ``[attr OP value]``
with ``OP`` one of ``= ^= $= *= ~= |=``.

A quoted attribute value that is still open when the selector ends, e.g.
``button[data-test="create-endpoint``, is read as a prefix match and behaves
exactly like ``button[data-test^="create-endpoint"]``.
"""

import re
from dataclasses import dataclass
from functools import lru_cache

from e2e_runner.errors import InvalidSelectorError


_TAG_RE = re.compile(r"\*|[A-Za-z][A-Za-z0-9-]*")
_IDENT_RE = re.compile(r"-?[_A-Za-z][_A-Za-z0-9-]*")
_ATTR_NAME_RE = re.compile(r"[_A-Za-z][_A-Za-z0-9:.-]*")
_BARE_VALUE_RE = re.compile(r"[_A-Za-z0-9-]+")
_OPERATORS = ("^=", "$=", "*=", "~=", "|=", "=")
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


def _unescape(value: str) -> str:
    return _ESCAPE_RE.sub(r"\1", value)


@dataclass(frozen=True)
class AttributePredicate:
    name: str
    operator: str | None = None
    value: str | None = None

    def test(self, attributes: dict) -> bool:
        if self.name not in attributes:
            return False
        if self.operator is None:
            return True
        actual = attributes.get(self.name)
        actual = "" if actual is None else str(actual)
        value = self.value or ""
        if self.operator == "=":
            return actual == value
        if self.operator == "^=":
            return bool(value) and actual.startswith(value)
        if self.operator == "$=":
            return bool(value) and actual.endswith(value)
        if self.operator == "*=":
            return bool(value) and value in actual
        if self.operator == "~=":
            return value in actual.split()
        if self.operator == "|=":
            return actual == value or actual.startswith(value + "-")
        return False

    def css(self) -> str:
        if self.operator is None:
            return f"[{self.name}]"
        escaped = (self.value or "").replace("\\", "\\\\").replace('"', '\\"')
        return f'[{self.name}{self.operator}"{escaped}"]'


@dataclass(frozen=True)
class Compound:
    tag: str | None = None
    id: str | None = None
    classes: tuple = ()
    attributes: tuple = ()

    def test(self, node) -> bool:
        if self.tag not in (None, "*") and (node.tag or "").lower() != self.tag.lower():
            return False
        attrs = node.attributes or {}
        if self.id is not None and attrs.get("id") != self.id:
            return False
        if self.classes:
            present = str(attrs.get("class") or "").split()
            if any(c not in present for c in self.classes):
                return False
        return all(a.test(attrs) for a in self.attributes)

    def css(self) -> str:
        out = self.tag or ""
        if self.id:
            out += f"#{self.id}"
        out += "".join(f".{c}" for c in self.classes)
        out += "".join(a.css() for a in self.attributes)
        return out or "*"


@dataclass(frozen=True)
class ComplexSelector:
    # parts[0] is the leftmost compound; combinators[i] joins parts[i] and parts[i + 1]
    parts: tuple
    combinators: tuple

    def test(self, node) -> bool:
        return self._match_from(node, len(self.parts) - 1)

    def _match_from(self, node, index: int) -> bool:
        if not self.parts[index].test(node):
            return False
        if index == 0:
            return True
        combinator = self.combinators[index - 1]
        parent = node.parent
        if combinator == ">":
            return parent is not None and self._match_from(parent, index - 1)
        while parent is not None:
            if self._match_from(parent, index - 1):
                return True
            parent = parent.parent
        return False

    def css(self) -> str:
        out = self.parts[0].css()
        for combinator, part in zip(self.combinators, self.parts[1:]):
            out += " > " if combinator == ">" else " "
            out += part.css()
        return out


@dataclass(frozen=True)
class Selector:
    source: str
    alternatives: tuple
    prefix_mode: bool = False

    @property
    def css(self) -> str:
        return ", ".join(alt.css() for alt in self.alternatives)

    def matches(self, node) -> bool:
        """Match a node exposing ``tag``, ``attributes`` and ``parent``."""
        return any(alt.test(node) for alt in self.alternatives)

    def __str__(self) -> str:
        return self.source


class _Parser:
    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.prefix_mode = False

    def fail(self, message: str):
        raise InvalidSelectorError(self.source, message, self.pos)

    def peek(self) -> str:
        return self.source[self.pos] if self.pos < len(self.source) else ""

    def skip_ws(self) -> bool:
        start = self.pos
        while self.peek().isspace():
            self.pos += 1
        return self.pos > start

    def take(self, pattern: re.Pattern) -> str | None:
        m = pattern.match(self.source, self.pos)
        if not m:
            return None
        self.pos = m.end()
        return m.group(0)

    def parse(self) -> Selector:
        if not self.source.strip():
            self.fail("selector is empty")
        alternatives = []
        self.skip_ws()
        while True:
            alternatives.append(self.parse_complex())
            self.skip_ws()
            if self.peek() == ",":
                if self.prefix_mode:
                    self.fail("unterminated attribute value")
                self.pos += 1
                self.skip_ws()
                continue
            if self.peek():
                self.fail(f"unexpected character {self.peek()!r}")
            break
        return Selector(self.source, tuple(alternatives), self.prefix_mode)

    def parse_complex(self) -> ComplexSelector:
        parts = [self.parse_compound()]
        combinators = []
        while True:
            had_ws = self.skip_ws()
            ch = self.peek()
            if ch == ">":
                self.pos += 1
                self.skip_ws()
                combinators.append(">")
            elif ch in ("", ","):
                break
            elif had_ws:
                combinators.append(" ")
            else:
                self.fail(f"unexpected character {ch!r}")
            if self.prefix_mode:
                self.fail("unterminated attribute value")
            parts.append(self.parse_compound())
        return ComplexSelector(tuple(parts), tuple(combinators))

    def parse_compound(self) -> Compound:
        tag = self.take(_TAG_RE)
        ident = None
        classes = []
        attributes = []
        while True:
            ch = self.peek()
            if ch == "#":
                self.pos += 1
                value = self.take(_IDENT_RE)
                if value is None:
                    self.fail("expected an id after '#'")
                if ident is not None:
                    self.fail("more than one id in a compound selector")
                ident = value
            elif ch == ".":
                self.pos += 1
                value = self.take(_IDENT_RE)
                if value is None:
                    self.fail("expected a class name after '.'")
                classes.append(value)
            elif ch == "[":
                if self.prefix_mode:
                    self.fail("unterminated attribute value")
                attributes.append(self.parse_attribute())
            elif ch == ":":
                self.fail("pseudo-classes are not supported")
            else:
                break
        if tag is None and ident is None and not classes and not attributes:
            self.fail("expected a tag, id, class or attribute")
        return Compound(tag, ident, tuple(classes), tuple(attributes))

    def closing_quote(self, quote: str) -> int:
        """Index of the quote closing the value opened at ``pos``, skipping ``\\``-escapes; -1 if none."""
        i = self.pos + 1
        while i < len(self.source):
            ch = self.source[i]
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                return i
            i += 1
        return -1

    def parse_attribute(self) -> AttributePredicate:
        self.pos += 1
        self.skip_ws()
        name = self.take(_ATTR_NAME_RE)
        if name is None:
            self.fail("expected an attribute name")
        self.skip_ws()
        if self.peek() == "]":
            self.pos += 1
            return AttributePredicate(name)
        operator = next((op for op in _OPERATORS if self.source.startswith(op, self.pos)), None)
        if operator is None:
            self.fail("expected an attribute operator or ']'")
        self.pos += len(operator)
        self.skip_ws()
        quote = self.peek()
        if quote in ("'", '"'):
            end = self.closing_quote(quote)
            if end == -1:
                # Open quote running to the end of the selector: prefix match.
                value = _unescape(self.source[self.pos + 1:])
                if not value:
                    self.fail("unterminated attribute value")
                self.pos = len(self.source)
                self.prefix_mode = True
                return AttributePredicate(name, "^=" if operator == "=" else operator, value)
            value = _unescape(self.source[self.pos + 1:end])
            self.pos = end + 1
        else:
            value = self.take(_BARE_VALUE_RE)
            if value is None:
                self.fail("expected an attribute value")
        self.skip_ws()
        if self.peek() != "]":
            self.fail("expected ']'")
        self.pos += 1
        return AttributePredicate(name, operator, value)


def parse_selector(source) -> Selector:
    if not isinstance(source, str):
        raise InvalidSelectorError(repr(source), "selector must be a string")
    return _parse(source)


@lru_cache(maxsize=512)
def _parse(source: str) -> Selector:
    return _Parser(source).parse()


class SelectorResolver:
    """Resolve selectors to element handles through a driver. Never retries."""

    def parse(self, selector) -> Selector:
        if isinstance(selector, Selector):
            return selector
        return parse_selector(selector)

    async def resolve(self, selector, driver, scope=None) -> list:
        parsed = self.parse(selector)
        if scope is None:
            return list(await driver.query(parsed))
        found = []
        seen = set()
        for root in scope:
            for handle in await driver.query(parsed, root=root):
                key = id(handle)
                if key in seen:
                    continue
                seen.add(key)
                found.append(handle)
        return found
