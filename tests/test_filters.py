"""Tests for ghdash.filters: the view filter language and free-text search."""

from collections.abc import Callable

import pytest

from ghdash.filters import (
    clause_matches,
    filter_items,
    filter_options,
    iter_clauses,
    matches_filters,
    matches_search,
    parse_filter_string,
)
from ghdash.models import FilterClause, ItemType, Label, NormalizedItem

ItemFactory = Callable[..., NormalizedItem]


class TestParseFilterString:
    def test_single_value(self) -> None:
        assert parse_filter_string("status:Done") == {"status": ["done"]}

    def test_comma_values(self) -> None:
        assert parse_filter_string("state:open,closed") == {"state": ["open", "closed"]}

    def test_quoted_value_keeps_spaces(self) -> None:
        assert parse_filter_string('iteration:"Sprint 12" status:Todo') == {
            "iteration": ["sprint 12"],
            "status": ["todo"],
        }

    def test_negation(self) -> None:
        assert parse_filter_string("-label:bug") == {"-label": ["bug"]}

    def test_negated_and_plain_kept_apart(self) -> None:
        assert parse_filter_string("label:ui -label:bug") == {"label": ["ui"], "-label": ["bug"]}

    def test_repeated_field_accumulates(self) -> None:
        assert parse_filter_string("label:bug label:ui label:BUG") == {"label": ["bug", "ui"]}

    def test_hyphenated_field(self) -> None:
        assert parse_filter_string("parent-issue:acme/web#4") == {"parent-issue": ["acme/web#4"]}

    def test_field_name_lowercased(self) -> None:
        assert parse_filter_string("Status:Done") == {"status": ["done"]}

    @pytest.mark.parametrize("garbage", [None, "", "   ", "just some words", "status:", ":done", 'status:""', "a,b,c"])
    def test_malformed_degrades_to_no_filters(self, garbage: str | None) -> None:
        assert parse_filter_string(garbage) == {}

    def test_bare_words_between_tokens_ignored(self) -> None:
        assert parse_filter_string("hello status:Done world") == {"status": ["done"]}


class TestIterClauses:
    def test_negation_flag(self) -> None:
        clauses = iter_clauses({"label": ["ui"], "-state": ["closed"]})
        assert clauses == [
            FilterClause(field="label", values=["ui"], negated=False),
            FilterClause(field="state", values=["closed"], negated=True),
        ]


class TestFilterItems:
    def test_label_selects_matching_item(self, make_item: ItemFactory) -> None:
        a = make_item(labels=[Label(name="bug")])
        b = make_item(labels=[Label(name="feature")])
        assert filter_items([a, b], "label:bug") == [a]

    def test_negated_label(self, make_item: ItemFactory) -> None:
        a = make_item(labels=[Label(name="Bug")])
        b = make_item(labels=[Label(name="feature")])
        c = make_item()
        assert filter_items([a, b, c], "-label:bug") == [b, c]

    def test_or_within_field(self, make_item: ItemFactory) -> None:
        opened = make_item(state="open")
        closed = make_item(state="closed")
        merged = make_item(state="MERGED", type=ItemType.PULL_REQUEST)
        assert filter_items([opened, closed, merged], "state:open,closed") == [opened, closed]

    def test_and_across_fields(self, bug_item: NormalizedItem, feature_item: NormalizedItem) -> None:
        assert filter_items([bug_item, feature_item], "assignee:alice status:done") == [feature_item]

    def test_list_field_matches_any_element(self, bug_item: NormalizedItem, feature_item: NormalizedItem) -> None:
        assert filter_items([bug_item, feature_item], "assignee:bob") == [feature_item]
        assert filter_items([bug_item, feature_item], "assignee:alice") == [bug_item, feature_item]

    def test_custom_field_case_insensitive(self, bug_item: NormalizedItem, feature_item: NormalizedItem) -> None:
        assert filter_items([bug_item, feature_item], 'iteration:"sprint 12"') == [feature_item]
        assert filter_items([bug_item, feature_item], "STATUS:in") == []

    def test_missing_custom_field_never_matches(self, bug_item: NormalizedItem) -> None:
        assert filter_items([bug_item], "estimate:3") == []
        assert filter_items([bug_item], "-estimate:3") == [bug_item]

    def test_repo_accepts_name_or_full_name(self, bug_item: NormalizedItem, feature_item: NormalizedItem) -> None:
        assert filter_items([bug_item, feature_item], "repo:api") == [feature_item]
        assert filter_items([bug_item, feature_item], "repository:acme/web") == [bug_item]

    def test_empty_filter_matches_all(self, bug_item: NormalizedItem, feature_item: NormalizedItem) -> None:
        assert filter_items([bug_item, feature_item], "nonsense") == [bug_item, feature_item]

    def test_does_not_mutate_input(self, bug_item: NormalizedItem, feature_item: NormalizedItem) -> None:
        items = [bug_item, feature_item]
        filter_items(items, "label:bug")
        assert items == [bug_item, feature_item]


class TestIsPredicates:
    @pytest.fixture
    def items(self, make_item: ItemFactory) -> dict[str, NormalizedItem]:
        return {
            "open_issue": make_item(state="open"),
            "closed_issue": make_item(state="closed"),
            "merged_pr": make_item(type=ItemType.PULL_REQUEST, state="MERGED"),
            "open_pr": make_item(type=ItemType.PULL_REQUEST, state="OPEN"),
            "draft": make_item(type=ItemType.DRAFT_ISSUE, number=None),
        }

    @pytest.mark.parametrize(
        "query,expected",
        [
            ("is:open", ["open_issue", "open_pr", "draft"]),
            ("is:closed", ["closed_issue"]),
            ("is:merged", ["merged_pr"]),
            ("is:issue", ["open_issue", "closed_issue"]),
            ("is:pr", ["merged_pr", "open_pr"]),
            ("is:draft", ["draft"]),
            ("is:pr,draft", ["merged_pr", "open_pr", "draft"]),
            ("is:issue is:open", ["open_issue", "closed_issue", "open_pr", "draft"]),
            ("-is:pr", ["open_issue", "closed_issue", "draft"]),
            ("is:archived", []),
        ],
    )
    def test_is(self, items: dict[str, NormalizedItem], query: str, expected: list[str]) -> None:
        matched = filter_items(list(items.values()), query)
        assert [key for key, item in items.items() if item in matched] == expected


class TestParentIssue:
    def test_number_match(self, make_item: ItemFactory) -> None:
        child = make_item(custom_fields={"Parent issue": "acme/web#4 Checkout epic"})
        other = make_item(custom_fields={"Parent issue": "acme/web#42 Other epic"})
        orphan = make_item()
        assert filter_items([child, other, orphan], "parent-issue:acme/web#4") == [child]

    def test_title_substring(self, make_item: ItemFactory) -> None:
        child = make_item(custom_fields={"Parent issue": "acme/web#4 Checkout epic"})
        assert filter_items([child], 'parent-issue:"checkout"') == [child]

    def test_clause_without_parent(self, make_item: ItemFactory) -> None:
        clause = FilterClause(field="parent-issue", values=["#4"])
        assert clause_matches(make_item(), clause) is False


class TestMatchesFilters:
    def test_rejects_on_first_failing_field(self, bug_item: NormalizedItem) -> None:
        assert matches_filters(bug_item, {"label": ["bug"], "state": ["closed"]}) is False

    def test_negated_miss_passes(self, bug_item: NormalizedItem) -> None:
        assert matches_filters(bug_item, {"-state": ["closed"]}) is True


class TestMatchesSearch:
    @pytest.mark.parametrize("term", ["login", "WEB", "acme", "alice", "BUG", "in progress", "p1"])
    def test_matches_text(self, bug_item: NormalizedItem, term: str) -> None:
        assert matches_search(bug_item, term)

    def test_matches_number_substring(self, make_item: ItemFactory) -> None:
        item = make_item(number=1234, title="Untitled")
        assert matches_search(item, "23")

    def test_no_match(self, bug_item: NormalizedItem) -> None:
        assert not matches_search(bug_item, "kubernetes")

    def test_empty_search_matches(self, bug_item: NormalizedItem) -> None:
        assert matches_search(bug_item, None)
        assert matches_search(bug_item, "")

    def test_combined_with_filter(self, bug_item: NormalizedItem, feature_item: NormalizedItem) -> None:
        assert filter_items([bug_item, feature_item], "assignee:alice", search="dark") == [feature_item]


class TestFilterOptions:
    def test_distinct_values_in_first_seen_order(
        self, bug_item: NormalizedItem, feature_item: NormalizedItem, draft_item: NormalizedItem
    ) -> None:
        options = filter_options([bug_item, feature_item, draft_item])
        assert options.states == ["open", "closed"]
        assert options.statuses == ["In Progress", "Done"]
        assert options.repositories == ["acme/web", "acme/api", "Unknown/Unknown"]
        assert options.assignees == ["alice", "bob"]
