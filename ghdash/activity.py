"""Repository, pull request and Actions workflow records for the dashboard overview pages."""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from ghdash.models import Assignee, Label, PullRequest, PullRequestStats, Repository, WorkflowRun

_TECH_TOPICS = {
    "vue",
    "nuxt",
    "react",
    "next",
    "node",
    "typescript",
    "javascript",
    "python",
    "docker",
    "kubernetes",
    "aws",
    "vercel",
    "supabase",
}

# (category, topics, name fragments, languages) checked in order
_CATEGORIES = [
    ("Web Application", {"webapp", "website"}, ("web", "app"), {"typescript", "javascript"}),
    ("API/Service", {"api", "server"}, ("api", "server", "service"), set()),
    ("Library/Component", {"library", "component"}, ("library", "component"), set()),
    ("Documentation", {"documentation"}, ("doc", "guide"), {"markdown"}),
    ("Tool/Utility", {"tool", "utility"}, ("tool", "util"), set()),
]


def categorize_repository(name: str, topics: Iterable[str] = (), language: str | None = None) -> str:
    name = name.lower()
    topics = {t.lower() for t in topics}
    language = (language or "").lower()
    for category, cat_topics, fragments, languages in _CATEGORIES:
        if topics & cat_topics or any(f in name for f in fragments) or language in languages:
            return category
    return "General"


def tech_stack(language: str | None, topics: Iterable[str] = ()) -> list[str]:
    """Primary language followed by recognised framework/platform topics, without duplicates."""
    stack = [language] if language else []
    stack += [t for t in topics if t.lower() in _TECH_TOPICS]
    return list(dict.fromkeys(stack))


def repository_from_node(node: dict[str, Any]) -> Repository:
    topics = node.get("topics") or []
    return Repository(
        id=node["id"],
        name=node["name"],
        full_name=node["full_name"],
        description=node.get("description"),
        private=node.get("private", False),
        archived=node.get("archived", False),
        language=node.get("language"),
        stars=node.get("stargazers_count", 0),
        forks=node.get("forks_count", 0),
        open_issues=node.get("open_issues_count", 0),
        topics=topics,
        html_url=node.get("html_url", ""),
        default_branch=node.get("default_branch") or "main",
        created_at=node.get("created_at") or "",
        updated_at=node.get("updated_at") or "",
        category=categorize_repository(node["name"], topics, node.get("language")),
        tech_stack=tech_stack(node.get("language"), topics),
    )


def pull_request_from_node(node: dict[str, Any], full_name: str) -> PullRequest:
    user = node.get("user") or {}
    return PullRequest(
        id=node["id"],
        number=node["number"],
        title=node["title"],
        state=node.get("state", "open"),
        html_url=node.get("html_url", ""),
        repository=full_name,
        author=user.get("login"),
        draft=bool(node.get("draft")),
        merged_at=node.get("merged_at"),
        closed_at=node.get("closed_at"),
        head_ref=(node.get("head") or {}).get("ref", ""),
        base_ref=(node.get("base") or {}).get("ref", ""),
        assignees=[Assignee(login=a["login"], avatar_url=a.get("avatar_url") or "") for a in node.get("assignees") or []],
        labels=[Label(name=lb["name"], color=lb.get("color") or "") for lb in node.get("labels") or []],
        created_at=node.get("created_at") or "",
        updated_at=node.get("updated_at") or "",
    )


def pull_request_state_label(pr: PullRequest) -> str:
    if pr.merged_at:
        return "Merged"
    if pr.state == "open":
        return "Draft" if pr.draft else "Open"
    return "Closed"


def pull_request_stats(prs: Iterable[PullRequest]) -> PullRequestStats:
    prs = list(prs)
    return PullRequestStats(
        total=len(prs),
        open=sum(1 for pr in prs if pr.state == "open"),
        closed=sum(1 for pr in prs if pr.state == "closed"),
        merged=sum(1 for pr in prs if pr.merged_at),
        draft=sum(1 for pr in prs if pr.draft),
        repositories=len({pr.repository for pr in prs}),
    )


def _updated(run: dict[str, Any]) -> datetime | None:
    value = run.get("updated_at")
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def latest_runs_by_branch(runs: Iterable[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Keep only the most recently updated run for each head branch.

    Runs without a branch or a parseable updated_at are skipped.
    """
    latest: dict[str, tuple[datetime, dict[str, Any]]] = {}
    for run in runs:
        branch = run.get("head_branch")
        updated = _updated(run)
        if not branch or updated is None:
            continue
        if branch not in latest or updated > latest[branch][0]:
            latest[branch] = (updated, run)
    return {branch: run for branch, (_, run) in latest.items()}


def workflow_badge_url(full_name: str, workflow_path: str, branch: str) -> str:
    filename = workflow_path.removeprefix(".github/workflows/")
    return f"https://github.com/{full_name}/actions/workflows/{filename}/badge.svg?branch={branch}"


def workflow_runs(
    repo: dict[str, Any],
    workflow: dict[str, Any],
    runs: Iterable[dict[str, Any]],
) -> list[WorkflowRun]:
    """One WorkflowRun per branch, from a workflow's recent runs."""
    result = []
    for branch, run in latest_runs_by_branch(runs).items():
        result.append(
            WorkflowRun(
                id=f"{repo['name']}-{workflow['id']}-{branch}",
                workflow_id=workflow["id"],
                name=workflow["name"],
                repository=repo["name"],
                branch=branch,
                state=workflow.get("state") or "unknown",
                status=run.get("conclusion") or run.get("status") or workflow.get("state") or "unknown",
                run_number=run.get("run_number", 0),
                event=run.get("event", ""),
                html_url=run.get("html_url", ""),
                workflow_url=workflow.get("html_url", ""),
                badge_url=workflow_badge_url(repo["full_name"], workflow.get("path", ""), branch),
                is_private=repo.get("private", False),
                updated_at=run["updated_at"],
            )
        )
    return result
