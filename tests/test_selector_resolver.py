import pytest

from e2e_runner.errors import InvalidSelectorError
from e2e_runner.memory_driver import InMemoryDriver, Page, el
from e2e_runner.selector_resolver import SelectorResolver, parse_selector
from e2e_runner.steps import Locate


def make_tree():
    return Page("Tree", [
        el("nav", el("a", text="Home", attrs={"id": "home", "class": "link active", "href": "/"})),
        el("main",
           el("button", text="Create", attrs={"data-test": "create-endpoint"}),
           el("button", text="Create copy", attrs={"data-test": "create-endpoint-copy"}),
           el("button", text="Delete", attrs={"data-test": "delete-endpoint", "lang": "en-US"}),
           el("div", el("span", el("button", text="Nested", attrs={"class": "nested"})), attrs={"class": "panel"})),
    ])


@pytest.fixture
def driver():
    d = InMemoryDriver()
    d.page = make_tree()
    return d


class TestParsing:
    def test_closed_attribute_selector_round_trips_to_css(self):
        sel = parse_selector('button[data-test="create-endpoint"]')
        assert sel.css == 'button[data-test="create-endpoint"]'
        assert sel.prefix_mode is False

    def test_unterminated_quote_is_a_prefix_match(self):
        sel = parse_selector('button[data-test="create-endpoint')
        assert sel.prefix_mode is True
        assert sel.css == 'button[data-test^="create-endpoint"]'

    def test_single_quotes_and_bare_values(self):
        assert parse_selector("a[href='/']").css == 'a[href="/"]'
        assert parse_selector("input[type=text]").css == 'input[type="text"]'

    def test_compound_and_combinators(self):
        sel = parse_selector("nav > a#home.link.active, main  .panel   button")
        assert sel.css == "nav > a#home.link.active, main .panel button"

    def test_parsed_selectors_are_cached(self):
        assert parse_selector("main button") is parse_selector("main button")

    @pytest.mark.parametrize("source", [
        "",
        "   ",
        "button[",
        "button[data-test",
        "[=x]",
        "div > ",
        "a:hover",
        'a[x="1" ',
        'a[x="',
        "div,,p",
        "#",
        ".",
        "a#one#two",
        "div!",
        'a[x="open" b[y="z',
    ])
    def test_malformed_selectors_fail_eagerly(self, source):
        with pytest.raises(InvalidSelectorError):
            parse_selector(source)

    def test_error_reports_position(self):
        with pytest.raises(InvalidSelectorError) as exc:
            parse_selector("main a:hover")
        assert exc.value.position == 6
        assert "pseudo-classes" in str(exc.value)

    def test_prefix_mode_only_at_end_of_selector(self):
        # An open quote swallows the rest of the selector into the prefix.
        sel = parse_selector('a[title="x] b')
        assert sel.alternatives[0].parts[0].attributes[0].value == "x] b"

    def test_escaped_quotes_inside_values(self):
        sel = parse_selector(r'[title="a\"b"]')
        assert sel.prefix_mode is False
        assert sel.alternatives[0].parts[0].attributes[0].value == 'a"b'
        assert sel.css == r'[title="a\"b"]'
        assert parse_selector(r"[title='it\'s']").alternatives[0].parts[0].attributes[0].value == "it's"

    def test_escaped_quote_in_unterminated_value(self):
        sel = parse_selector(r'[title="say \"hi')
        assert sel.prefix_mode is True
        assert sel.css == r'[title^="say \"hi"]'

    @pytest.mark.parametrize("source", [{"css": "button"}, ["button"], None, 7])
    def test_non_string_selectors_are_invalid(self, source):
        with pytest.raises(InvalidSelectorError):
            parse_selector(source)

    def test_non_string_selector_in_a_step(self):
        with pytest.raises(InvalidSelectorError):
            Locate({"css": "button"})


class TestMatching:
    async def test_prefix_selector_matches_every_value_with_that_prefix(self, driver):
        found = await SelectorResolver().resolve('button[data-test="create-endpoint', driver)
        assert [n.text for n in found] == ["Create", "Create copy"]

    async def test_escaped_quote_matches_literal_value(self, driver):
        quoted = driver.page.body.append(el("p", text="Quoted", attrs={"title": 'a"b'}))
        assert await SelectorResolver().resolve(r'p[title="a\"b"]', driver) == [quoted]

    async def test_exact_selector_matches_only_equal_value(self, driver):
        found = await SelectorResolver().resolve('button[data-test="create-endpoint"]', driver)
        assert [n.text for n in found] == ["Create"]

    @pytest.mark.parametrize("selector,texts", [
        ('[data-test$="-endpoint"]', ["Create", "Delete"]),
        ('[data-test*="endpoint-c"]', ["Create copy"]),
        ('a[class~="active"]', ["Home"]),
        ('[lang|="en"]', ["Delete"]),
        ("#home", ["Home"]),
        (".nested", ["Nested"]),
        ("main > button", ["Create", "Create copy", "Delete"]),
        ("main button", ["Create", "Create copy", "Delete", "Nested"]),
        (".panel > button", []),
        ("[href]", ["Home"]),
        ("nav a, .nested", ["Home", "Nested"]),
        ("*[data-test^=delete]", ["Delete"]),
    ])
    async def test_operators_and_combinators(self, driver, selector, texts):
        found = await SelectorResolver().resolve(selector, driver)
        assert [n.text for n in found] == texts

    async def test_resolution_is_deterministic_for_a_fixed_document(self, driver):
        resolver = SelectorResolver()
        first = await resolver.resolve("main button", driver)
        second = await resolver.resolve("main button", driver)
        assert first == second

    async def test_empty_result_is_not_an_error(self, driver):
        assert await SelectorResolver().resolve("table", driver) == []

    async def test_scoped_lookup_searches_inside_scope_without_duplicates(self, driver):
        resolver = SelectorResolver()
        scope = await resolver.resolve("main, .panel", driver)
        found = await resolver.resolve("button", driver, scope=scope)
        assert [n.text for n in found] == ["Create", "Create copy", "Delete", "Nested"]

    async def test_invalid_selector_raises_before_querying(self):
        class ExplodingDriver:
            async def query(self, selector, root=None):
                raise AssertionError("query must not run")

        with pytest.raises(InvalidSelectorError):
            await SelectorResolver().resolve("button[", ExplodingDriver())
