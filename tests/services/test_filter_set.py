"""Tests for FilterSetController — pagination reset and atomic clear."""

from __future__ import annotations

import pytest

from querystate.domain.filters import STUDENT_FILTERS, TEST_FILTERS, TUTOR_FILTERS
from querystate.infrastructure.history import MemoryHistory
from querystate.services.filter_set import FilterSetController
from querystate.services.url_state import UrlStateStore


class TestReads:
    def test_read_filter_bag(self) -> None:
        controller = FilterSetController(TUTOR_FILTERS, MemoryHistory("/tutors?search=x&page=3"))
        bag = controller.read_filter_bag()
        assert bag["search"] == "x"
        assert bag["page"] == 3
        assert bag["status"] == "all"
        assert controller.active_count() == 2

    def test_read_field(self) -> None:
        controller = FilterSetController(TEST_FILTERS, MemoryHistory("/?limit=24"))
        assert controller.read_field("limit") == 24
        with pytest.raises(KeyError):
            controller.read_field("colour")

    def test_accepts_existing_store(self) -> None:
        store = UrlStateStore(MemoryHistory("/"))
        controller = FilterSetController(TEST_FILTERS, store)
        assert controller.store is store
        assert controller.schema is TEST_FILTERS


class TestPaginationReset:
    def test_filter_change_resets_page(self) -> None:
        history = MemoryHistory("/tutors?page=5")
        FilterSetController(TUTOR_FILTERS, history).write_field("search", "math")
        assert history.read_all_params() == {"search": "math"}
        assert history.replace_count == 1

    def test_sort_change_resets_page(self) -> None:
        history = MemoryHistory("/tests?page=3")
        FilterSetController(TEST_FILTERS, history).write_field("sortOrder", "asc")
        assert history.read_all_params() == {"sortOrder": "asc"}

    def test_page_change_keeps_filters(self) -> None:
        history = MemoryHistory("/tutors?search=math")
        FilterSetController(TUTOR_FILTERS, history).write_field("page", 4)
        assert history.read_all_params() == {"search": "math", "page": "4"}

    def test_limit_change_does_not_reset_page(self) -> None:
        history = MemoryHistory("/tests?page=3")
        FilterSetController(TEST_FILTERS, history).write_field("limit", 24)
        assert history.read_all_params() == {"page": "3", "limit": "24"}

    def test_update_with_explicit_page_wins(self) -> None:
        history = MemoryHistory("/tests?page=3")
        FilterSetController(TEST_FILTERS, history).update(search="x", page=2)
        assert history.read_all_params() == {"search": "x", "page": "2"}

    def test_updater_function(self) -> None:
        history = MemoryHistory("/?page=2")
        FilterSetController(TEST_FILTERS, history).write_field("page", lambda p: p + 1)
        assert history.read_all_params() == {"page": "3"}

    def test_reset_page(self) -> None:
        history = MemoryHistory("/?page=9&search=x")
        FilterSetController(TEST_FILTERS, history).reset_page()
        assert history.read_all_params() == {"search": "x"}

    def test_unknown_field_leaves_url_untouched(self) -> None:
        history = MemoryHistory("/?page=2")
        with pytest.raises(KeyError):
            FilterSetController(TEST_FILTERS, history).update(search="x", colour="red")
        assert history.replace_count == 0


class TestOutOfDomainWrites:
    def test_invalid_values_never_reach_the_url(self) -> None:
        history = MemoryHistory("/tutors")
        controller = FilterSetController(TUTOR_FILTERS, history)
        controller.write_field("limit", 7)
        controller.write_field("sortOrder", "bogus")
        assert str(history.location) == "/tutors"
        assert history.replace_count == 0
        assert controller.read_field("limit") == 12
        assert controller.read_field("sortOrder") == "desc"

    def test_invalid_value_replaces_valid_one_with_default(self) -> None:
        history = MemoryHistory("/tutors?limit=24&page=2")
        controller = FilterSetController(TUTOR_FILTERS, history)
        controller.write_field("limit", 7)
        assert history.read_all_params() == {"page": "2"}
        assert controller.read_field("limit") == 12

    def test_every_written_param_differs_from_its_default(self) -> None:
        history = MemoryHistory("/students")
        controller = FilterSetController(STUDENT_FILTERS, history)
        controller.update(minScore=float("nan"), page=0, search="math", sortOrder="asc")
        params = history.read_all_params()
        assert params == {"search": "math", "sortOrder": "asc"}
        for name, raw in params.items():
            field = STUDENT_FILTERS.field(name)
            assert field.decode(raw) != field.default


class TestClearAll:
    def test_clear_eight_fields_is_one_event(self) -> None:
        history = MemoryHistory(
            "/tutors?search=x&status=active&specialization=math&experience=5"
            "&rating=4&verified=true&sortBy=name&sortOrder=asc&tab=2"
        )
        events: list[str] = []
        history.subscribe(lambda loc: events.append(str(loc)))
        controller = FilterSetController(TUTOR_FILTERS, history)
        assert controller.active_count() == 8

        controller.clear_all()

        assert history.replace_count == 1
        assert events == ["/tutors?tab=2"]
        assert controller.read_filter_bag() == TUTOR_FILTERS.defaults()

    def test_clear_when_already_default_is_noop(self) -> None:
        history = MemoryHistory("/students?tab=2")
        FilterSetController(STUDENT_FILTERS, history).clear_all()
        assert history.replace_count == 0
