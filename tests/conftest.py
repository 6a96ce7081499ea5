"""Shared test fixtures."""

from collections.abc import Callable

import pytest

from ghdash.models import Assignee, ItemType, Label, NormalizedItem, ProjectField, FieldOption

ItemFactory = Callable[..., NormalizedItem]


@pytest.fixture
def make_item() -> ItemFactory:
    counter = iter(range(1, 10_000))

    def _make(**kwargs) -> NormalizedItem:
        n = next(counter)
        custom_fields = kwargs.pop("custom_fields", {})
        defaults = {
            "id": f"PVTI_{n}",
            "type": ItemType.ISSUE,
            "number": n,
            "title": f"Item {n}",
            "url": f"https://github.com/acme/web/issues/{n}",
            "state": "open",
            "repository": "web",
            "repository_owner": "acme",
            "created_at": "2024-01-01T00:00:00Z",
            "updated_at": "2024-01-01T00:00:00Z",
            "custom_fields": custom_fields,
            "status": custom_fields.get("Status"),
            "priority": custom_fields.get("Priority"),
        }
        defaults.update(kwargs)
        return NormalizedItem(**defaults)

    return _make


@pytest.fixture
def bug_item(make_item: ItemFactory) -> NormalizedItem:
    return make_item(
        title="Login button broken",
        labels=[Label(name="bug", color="d73a4a")],
        assignees=[Assignee(login="alice", avatar_url="https://avatars.example/alice")],
        custom_fields={"Status": "In Progress", "Priority": "P1", "Size": "3"},
        updated_at="2024-06-01T12:00:00Z",
    )


@pytest.fixture
def feature_item(make_item: ItemFactory) -> NormalizedItem:
    return make_item(
        title="Dark mode",
        repository="api",
        labels=[Label(name="feature", color="a2eeef")],
        assignees=[Assignee(login="bob"), Assignee(login="alice")],
        custom_fields={"Status": "Done", "Iteration": "Sprint 12"},
        state="closed",
        updated_at="2024-01-01T12:00:00Z",
    )


@pytest.fixture
def draft_item(make_item: ItemFactory) -> NormalizedItem:
    return make_item(
        type=ItemType.DRAFT_ISSUE,
        number=None,
        title="Investigate caching",
        url="#",
        repository="Unknown",
        repository_owner="Unknown",
        updated_at="2024-03-15T08:30:00Z",
    )


@pytest.fixture
def status_field() -> ProjectField:
    return ProjectField(
        name="Status",
        data_type="SINGLE_SELECT",
        options=[
            FieldOption(name="Todo", color="GRAY"),
            FieldOption(name="In Progress", color="YELLOW"),
            FieldOption(name="Done", color="GREEN"),
        ],
    )


@pytest.fixture
def rest_issue_item() -> dict:
    """A Projects V2 item as returned by GET /orgs/{org}/projectsV2/{number}/items."""
    return {
        "id": 13,
        "node_id": "PVTI_lADOANN5s84ACbL0zgBueEI",
        "content_type": "Issue",
        "created_at": "2024-02-01T10:00:00Z",
        "updated_at": "2024-05-01T10:00:00Z",
        "content": {
            "id": 1347,
            "number": 42,
            "title": "Fix flaky checkout test",
            "html_url": "https://github.com/acme/web/issues/42",
            "repository_url": "https://api.github.com/repos/acme/web",
            "state": "open",
            "assignees": [{"login": "alice", "avatar_url": "https://avatars.example/alice"}],
            "labels": [{"name": "bug", "color": "d73a4a"}],
            "milestone": {"title": "v1.2"},
            "created_at": "2024-02-01T09:00:00Z",
            "updated_at": "2024-05-02T09:00:00Z",
        },
        "fields": [
            {"id": 1, "name": "Title", "data_type": "title", "value": {"raw": "Fix flaky checkout test"}},
            {
                "id": 2,
                "name": "Status",
                "data_type": "single_select",
                "value": {"id": "98236657", "name": {"raw": "In Progress", "html": "In Progress"}, "color": "YELLOW"},
            },
            {"id": 3, "name": "Size", "data_type": "number", "value": 3.0},
            {"id": 4, "name": "Iteration", "data_type": "iteration", "value": {"title": {"raw": "Sprint 12"}}},
            {"id": 5, "name": "Due", "data_type": "date", "value": "2024-06-30"},
            {
                "id": 6,
                "name": "Parent issue",
                "data_type": "parent_issue",
                "value": {
                    "number": 7,
                    "title": "Checkout epic",
                    "url": "https://api.github.com/repos/acme/web/issues/7",
                },
            },
            {"id": 7, "name": "Notes", "data_type": "text", "value": None},
        ],
    }


@pytest.fixture
def graphql_pr_item() -> dict:
    """A Projects V2 item node as returned by the GraphQL items connection."""
    return {
        "id": "PVTI_pr1",
        "type": "PULL_REQUEST",
        "content": {
            "__typename": "PullRequest",
            "id": "PR_1",
            "number": 99,
            "title": "Add dark mode",
            "url": "https://github.com/acme/api/pull/99",
            "state": "MERGED",
            "repository": {"name": "api", "owner": {"login": "acme"}},
            "assignees": {"nodes": [{"login": "bob", "avatarUrl": "https://avatars.example/bob"}]},
            "labels": {"nodes": [{"name": "feature", "color": "a2eeef"}]},
            "createdAt": "2024-03-01T00:00:00Z",
            "updatedAt": "2024-03-02T00:00:00Z",
        },
        "fieldValues": {
            "nodes": [
                {"__typename": "ProjectV2ItemFieldSingleSelectValue", "name": "Done", "field": {"name": "Status"}},
                {"__typename": "ProjectV2ItemFieldNumberValue", "number": 5, "field": {"name": "Estimate"}},
                {
                    "__typename": "ProjectV2ItemFieldRepositoryValue",
                    "repository": {"name": "api", "owner": {"login": "acme"}},
                    "field": {"name": "Repository"},
                },
                {"__typename": "ProjectV2ItemFieldTextValue", "text": "", "field": {"name": "Notes"}},
                {},
            ]
        },
    }
