"""GitHub REST v3 + GraphQL provider."""

import logging
import subprocess
import time
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

import httpx

from ghdash.activity import pull_request_from_node, repository_from_node, workflow_runs
from ghdash.fields import extract_field_value
from ghdash.grouping import sort_items
from ghdash.models import (
    FieldOption,
    NormalizedItem,
    ProjectDetails,
    ProjectField,
    ProjectSummary,
    ProjectView,
    PullRequest,
    Repository,
    SortSpec,
    WorkflowRun,
)
from ghdash.normalize import normalize_items
from ghdash.providers.base import DashboardProvider, GhdashError, GitHubAPIError, GitHubAuthError
from ghdash.settings import GhdashSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LIST_PROJECTS = """
query ListProjects($owner: String!) {
  organization(login: $owner) {
    projectsV2(first: 20) {
      nodes {
        id
        number
        title
        shortDescription
        url
        createdAt
        updatedAt
        closed
        items { totalCount }
      }
    }
  }
}
"""

_PROJECT_VIEWS = """
query ProjectViews($owner: String!, $number: Int!) {
  organization(login: $owner) {
    projectV2(number: $number) {
      id
      title
      shortDescription
      url
      views(first: 20) {
        nodes {
          id
          name
          number
          layout
          filter
          groupByFields(first: 10) {
            nodes {
              ... on ProjectV2FieldCommon { name }
            }
          }
          sortByFields(first: 10) {
            nodes {
              field {
                ... on ProjectV2FieldCommon { name }
              }
              direction
            }
          }
        }
      }
    }
  }
}
"""

_PROJECT_ITEMS = """
query ProjectItems($projectId: ID!, $first: Int!, $after: String) {
  node(id: $projectId) {
    ... on ProjectV2 {
      items(first: $first, after: $after) {
        totalCount
        pageInfo { hasNextPage endCursor }
        nodes {
          id
          type
          content {
            __typename
            ... on Issue {
              id number title url state createdAt updatedAt
              milestone { title }
              repository { name owner { login } }
              assignees(first: 10) { nodes { login avatarUrl } }
              labels(first: 20) { nodes { name color } }
              trackedInIssues(first: 5) { nodes { title number url } }
              trackedIssues(first: 5) { nodes { title number url } }
            }
            ... on PullRequest {
              id number title url state createdAt updatedAt
              milestone { title }
              repository { name owner { login } }
              assignees(first: 10) { nodes { login avatarUrl } }
              labels(first: 20) { nodes { name color } }
            }
            ... on DraftIssue {
              id title createdAt updatedAt
              assignees(first: 10) { nodes { login avatarUrl } }
            }
          }
          fieldValues(first: 50) {
            nodes {
              __typename
              ... on ProjectV2ItemFieldTextValue { text field { ... on ProjectV2FieldCommon { name } } }
              ... on ProjectV2ItemFieldNumberValue { number field { ... on ProjectV2FieldCommon { name } } }
              ... on ProjectV2ItemFieldDateValue { date field { ... on ProjectV2FieldCommon { name } } }
              ... on ProjectV2ItemFieldSingleSelectValue { name field { ... on ProjectV2FieldCommon { name } } }
              ... on ProjectV2ItemFieldIterationValue { title field { ... on ProjectV2FieldCommon { name } } }
              ... on ProjectV2ItemFieldMilestoneValue {
                milestone { title }
                field { ... on ProjectV2FieldCommon { name } }
              }
              ... on ProjectV2ItemFieldRepositoryValue {
                repository { name owner { login } }
                field { ... on ProjectV2FieldCommon { name } }
              }
              ... on ProjectV2ItemFieldPullRequestValue {
                pullRequests(first: 5) { nodes { number title url } }
                field { ... on ProjectV2FieldCommon { name } }
              }
              ... on ProjectV2ItemFieldLabelValue {
                labels(first: 20) { nodes { name } }
                field { ... on ProjectV2FieldCommon { name } }
              }
              ... on ProjectV2ItemFieldUserValue {
                users(first: 10) { nodes { login } }
                field { ... on ProjectV2FieldCommon { name } }
              }
            }
          }
        }
      }
    }
  }
}
"""


def _resolve_token(settings: GhdashSettings) -> str:
    if settings.github_auth == "gh-cli":
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            raise GitHubAuthError("gh auth token failed. Run: gh auth login")
        return result.stdout.strip()
    if settings.github_token:
        return settings.github_token.get_secret_value()
    raise GitHubAuthError("No GitHub credentials. Set GHDASH_GITHUB_TOKEN or use github_auth = \"gh-cli\".")


def _option_name(option: dict[str, Any]) -> str:
    return extract_field_value("text", option.get("name")) or ""


def _field_from_node(node: dict[str, Any]) -> ProjectField:
    return ProjectField(
        name=node["name"],
        data_type=str(node.get("data_type") or node.get("dataType") or "TEXT").upper(),
        options=[FieldOption(name=_option_name(o), color=o.get("color")) for o in node.get("options") or []],
    )


def _view_from_node(node: dict[str, Any]) -> ProjectView:
    group_by = [f["name"] for f in (node.get("groupByFields") or {}).get("nodes") or [] if f and f.get("name")]
    sort_by = [
        SortSpec(field_name=s["field"]["name"], direction=s.get("direction") or "ASC")
        for s in (node.get("sortByFields") or {}).get("nodes") or []
        if s and (s.get("field") or {}).get("name")
    ]
    return ProjectView(
        id=node["id"],
        name=node["name"],
        number=node.get("number"),
        layout=node.get("layout") or "TABLE",
        filter=node.get("filter") or None,
        group_by_fields=group_by,
        sort_by_fields=sort_by,
    )


class GitHubProvider(DashboardProvider):
    def __init__(self, settings: GhdashSettings) -> None:
        self._token = _resolve_token(settings)
        self._owner = settings.owner or ""
        self._api_url = settings.api_url.rstrip("/")
        self._graphql_url = settings.graphql_url
        self._batch_size = max(1, settings.batch_size)
        self._batch_delay = settings.batch_delay
        self._page_size = settings.page_size
        self._timeout = settings.timeout
        self._headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "ghdash",
        }

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _check(self, response: httpx.Response) -> None:
        if response.status_code == 401:
            raise GitHubAuthError("GitHub API returned 401. Check the token for the active profile.", 401)
        if response.is_error:
            raise GitHubAPIError(
                f"GitHub API error: {response.status_code} {response.reason_phrase} - {response.text}",
                response.status_code,
            )

    def _get_response(self, path: str, params: dict | None = None) -> httpx.Response:
        url = path if path.startswith("http") else f"{self._api_url}{path}"
        try:
            response = httpx.get(url, headers=self._headers, params=params, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"GitHub request failed: {exc}") from exc
        self._check(response)
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubAPIError(
                f"GitHub returned a non-JSON body ({response.status_code}): {response.text[:200]}",
                response.status_code,
            ) from exc

    def _get(self, path: str, params: dict | None = None) -> Any:
        return self._json(self._get_response(path, params))

    def _get_pages(self, path: str, params: dict | None = None) -> Iterator[list]:
        """Yield each page of a list endpoint, following the Link rel="next" header."""
        url: str | None = path
        page_params = params
        page = 1
        while url:
            response = self._get_response(url, page_params)
            body = self._json(response)
            yield body if isinstance(body, list) else []
            logger.debug("Fetched page %d of %s", page, path)
            url = response.links.get("next", {}).get("url")
            page_params = None  # the next link already carries the query string
            page += 1

    def _gql(self, query: str, variables: dict | None = None) -> dict:
        try:
            response = httpx.post(
                self._graphql_url,
                json={"query": query, "variables": variables or {}},
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"GitHub GraphQL request failed: {exc}") from exc
        self._check(response)
        data = self._json(response)
        if not isinstance(data, dict):
            raise GitHubAPIError("GraphQL response was not a JSON object", response.status_code)
        if data.get("errors"):
            messages = ", ".join(e.get("message") or "Unknown error" for e in data["errors"])
            raise GitHubAPIError(f"GraphQL error: {messages}")
        return data.get("data") or {}

    def _in_batches(self, repos: list[dict], fetch: Callable[[dict], list[T]], label: str) -> list[T]:
        """Run fetch over repos, batch_size at a time, pausing between batches.

        A repo whose fetch fails, or whose payload cannot be mapped, contributes
        nothing; the rest of the batch still counts.
        """

        def safe(repo: dict) -> list[T]:
            try:
                return fetch(repo)
            except (GhdashError, KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping %s for %s: %s", label, repo.get("full_name"), exc)
                return []

        results: list[T] = []
        for start in range(0, len(repos), self._batch_size):
            batch = repos[start : start + self._batch_size]
            with ThreadPoolExecutor(max_workers=len(batch)) as pool:
                for partial in pool.map(safe, batch):
                    results.extend(partial)
            if start + self._batch_size < len(repos):
                time.sleep(self._batch_delay)
        return results

    # ------------------------------------------------------------------
    # Projects V2
    # ------------------------------------------------------------------

    def list_projects(self) -> list[ProjectSummary]:
        data = self._gql(_LIST_PROJECTS, {"owner": self._owner})
        nodes = ((data.get("organization") or {}).get("projectsV2") or {}).get("nodes") or []
        projects = [
            ProjectSummary(
                id=n["id"],
                number=n.get("number"),
                title=n["title"],
                short_description=n.get("shortDescription"),
                url=n["url"],
                created_at=n.get("createdAt") or "",
                updated_at=n.get("updatedAt") or "",
                closed=bool(n.get("closed")),
                item_count=(n.get("items") or {}).get("totalCount", 0),
            )
            for n in nodes
            if n and not n.get("closed")
        ]
        logger.info("Found %d open projects for %s", len(projects), self._owner)
        return sorted(projects, key=lambda p: p.updated_at, reverse=True)

    def _project_item_nodes(self, number: int, field_ids: list[str]) -> list[dict]:
        params: dict[str, Any] = {"per_page": self._page_size}
        if field_ids:
            params["fields"] = ",".join(field_ids)
        nodes: list[dict] = []
        for page in self._get_pages(f"/orgs/{self._owner}/projectsV2/{number}/items", params):
            nodes.extend(page)
            logger.info("Fetched %d items for project %d (total: %d)", len(page), number, len(nodes))
        return nodes

    def get_project(self, number: int) -> ProjectDetails:
        """Items and field schema come from REST; views exist only in GraphQL."""
        field_nodes = self._get(f"/orgs/{self._owner}/projectsV2/{number}/fields", {"per_page": self._page_size})
        fields = [_field_from_node(n) for n in field_nodes or [] if n.get("name")]
        field_ids = [str(n["id"]) for n in field_nodes or [] if n.get("id") is not None]

        items = sort_items(normalize_items(self._project_item_nodes(number, field_ids)))

        known = {f.name for f in fields}
        for item in items:
            for name in item.custom_fields:
                if name not in known:
                    known.add(name)
                    fields.append(ProjectField(name=name))

        try:
            data = self._gql(_PROJECT_VIEWS, {"owner": self._owner, "number": number})
        except GhdashError as exc:
            logger.warning("Failed to fetch views for project %d, continuing without views: %s", number, exc)
            data = {}

        project = (data.get("organization") or {}).get("projectV2")
        if not project:
            return ProjectDetails(id=str(number), number=number, title=f"Project {number}", fields=fields, items=items)

        views = [_view_from_node(n) for n in (project.get("views") or {}).get("nodes") or [] if n]
        logger.info("Processed %d items and %d views for project %s", len(items), len(views), project["title"])
        return ProjectDetails(
            id=project["id"],
            number=number,
            title=project["title"],
            short_description=project.get("shortDescription"),
            url=project.get("url") or "",
            views=views,
            fields=fields,
            items=items,
        )

    def list_project_items(self, project_id: str) -> list[NormalizedItem]:
        """All items of a project node, following GraphQL cursors."""
        nodes: list[dict] = []
        after: str | None = None
        while True:
            data = self._gql(_PROJECT_ITEMS, {"projectId": project_id, "first": self._page_size, "after": after})
            connection = (data.get("node") or {}).get("items") or {}
            page = connection.get("nodes") or []
            nodes.extend(page)
            logger.info("Fetched %d items (total: %d)", len(page), len(nodes))
            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage") or not page_info.get("endCursor"):
                break
            after = page_info["endCursor"]
        return normalize_items(nodes)

    # ------------------------------------------------------------------
    # Repositories, pull requests, workflows
    # ------------------------------------------------------------------

    def _owner_repo_nodes(self) -> list[dict]:
        """Non-archived repos for the owner, as an organization first and then as a user."""
        params = {"type": "all", "per_page": self._page_size, "sort": "updated"}
        try:
            pages = list(self._get_pages(f"/orgs/{self._owner}/repos", params))
        except GitHubAuthError:
            raise
        except GitHubAPIError as exc:
            logger.info("Organization endpoint failed (%s), trying user endpoint", exc.status_code)
            pages = list(self._get_pages(f"/users/{self._owner}/repos", params))
        repos = [repo for page in pages for repo in page if not repo.get("archived")]
        logger.info("Found %d repositories for %s", len(repos), self._owner)
        return repos

    def list_repositories(self) -> list[Repository]:
        repos = [repository_from_node(node) for node in self._owner_repo_nodes()]
        return sorted(repos, key=lambda r: r.updated_at, reverse=True)

    def _repo_pull_requests(self, repo: dict, state: str) -> list[PullRequest]:
        nodes = self._get(
            f"/repos/{repo['full_name']}/pulls",
            {"state": state, "per_page": self._page_size, "sort": "updated", "direction": "desc"},
        )
        return [pull_request_from_node(node, repo["full_name"]) for node in nodes or []]

    def list_pull_requests(self, state: str = "open") -> list[PullRequest]:
        repos = self._owner_repo_nodes()
        prs = self._in_batches(repos, lambda repo: self._repo_pull_requests(repo, state), "pull requests")
        logger.info("Found %d pull requests across %d repositories", len(prs), len(repos))
        return sorted(prs, key=lambda pr: pr.updated_at, reverse=True)

    def _repo_workflow_runs(self, repo: dict) -> list[WorkflowRun]:
        workflows = (self._get(f"/repos/{repo['full_name']}/actions/workflows") or {}).get("workflows") or []
        result: list[WorkflowRun] = []
        for workflow in workflows:
            try:
                runs = self._get(
                    f"/repos/{repo['full_name']}/actions/workflows/{workflow['id']}/runs",
                    {"per_page": 10},
                )
            except GhdashError as exc:
                logger.warning("Skipping runs of workflow %s in %s: %s", workflow["id"], repo["full_name"], exc)
                continue
            result.extend(workflow_runs(repo, workflow, (runs or {}).get("workflow_runs") or []))
        return result

    def list_workflow_runs(self) -> list[WorkflowRun]:
        repos = self._owner_repo_nodes()
        runs = self._in_batches(repos, self._repo_workflow_runs, "workflows")
        logger.info("Found %d workflow runs", len(runs))
        return sorted(runs, key=lambda run: run.updated_at, reverse=True)
