"""Tests for the in-memory URL provider."""

from querystate.infrastructure.history import (
    Location,
    MemoryHistory,
    UrlProvider,
    format_query,
    parse_query,
)


class TestQueryHelpers:
    def test_parse_keeps_first_repeated_value(self) -> None:
        assert parse_query("?page=2&search=a&page=3") == {"page": "2", "search": "a"}

    def test_parse_keeps_blank_values(self) -> None:
        assert parse_query("a=&b=1") == {"a": "", "b": "1"}

    def test_format(self) -> None:
        assert format_query({}) == ""
        assert format_query({"search": "a b", "page": "2"}) == "?search=a+b&page=2"

    def test_location_from_url(self) -> None:
        loc = Location.from_url("/tests?page=2")
        assert loc.path == "/tests"
        assert loc.params == {"page": "2"}
        assert str(loc) == "/tests?page=2"


class TestMemoryHistory:
    def test_is_a_url_provider(self) -> None:
        assert isinstance(MemoryHistory(), UrlProvider)

    def test_replace_does_not_grow_stack(self) -> None:
        history = MemoryHistory("/tests?page=2")
        history.replace_params({"page": "3"})
        history.replace_params({"page": "4"})
        assert history.length == 1
        assert history.replace_count == 2
        assert str(history.location) == "/tests?page=4"

    def test_push_and_back(self) -> None:
        history = MemoryHistory("/a")
        history.push("/b?x=1")
        assert history.length == 2
        assert history.read_all_params() == {"x": "1"}
        history.back()
        assert str(history.location) == "/a"
        history.back()
        assert history.length == 1

    def test_listeners_see_each_replace_once(self) -> None:
        history = MemoryHistory("/")
        seen: list[str] = []
        unsubscribe = history.subscribe(lambda loc: seen.append(str(loc)))
        history.replace_params({"a": "1"})
        unsubscribe()
        history.replace_params({"a": "2"})
        assert seen == ["/?a=1"]

    def test_read_all_params_is_read_only(self) -> None:
        params = MemoryHistory("/?a=1").read_all_params()
        try:
            params["a"] = "2"  # type: ignore[index]
        except TypeError:
            pass
        else:  # pragma: no cover
            raise AssertionError("params mapping must be read-only")
