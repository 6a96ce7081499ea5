"""Typer application: project, view, repository, pull request and workflow commands."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

import tomlkit
import typer
from pydantic import TypeAdapter
from rich import print as rprint
from rich.markup import escape
from rich.table import Table

from ghdash.activity import pull_request_state_label, pull_request_stats
from ghdash.filters import filter_options
from ghdash.grouping import available_group_fields
from ghdash.models import (
    FilterOptions,
    GroupedItems,
    ItemType,
    NormalizedItem,
    ProjectSummary,
    PullRequestReport,
    Repository,
    WorkflowRun,
)
from ghdash.providers.base import DashboardProvider, GhdashError
from ghdash.providers.github import GitHubProvider
from ghdash.settings import CONFIG_PATH, _list_profiles, get_settings
from ghdash.views import apply_view, find_view, parse_sort_option

app = typer.Typer(help="ghdash: GitHub projects, pull requests and workflows dashboard", no_args_is_help=True)

logger = logging.getLogger("ghdash")

_state = {"verbose": 0}

ProfileOpt = Annotated[
    str | None,
    typer.Option("--profile", "-P", help="Profile name from ~/.config/ghdash/config.toml"),
]
FilterOpt = Annotated[str | None, typer.Option("--filter", "-f", help='View filter, e.g. "status:Done -label:bug"')]
SearchOpt = Annotated[str | None, typer.Option("--search", "-s", help="Free-text search term")]
GroupOpt = Annotated[str | None, typer.Option("--group-by", "-g", help="Field to group by")]
SortOpt = Annotated[
    list[str] | None,
    typer.Option("--sort", help="Sort field; prefix with - or suffix :desc to descend. Repeatable."),
]
JsonOpt = Annotated[bool, typer.Option("--json", help="Print JSON instead of a table")]

_TYPE_TEXT = {ItemType.ISSUE: "Issue", ItemType.PULL_REQUEST: "PR", ItemType.DRAFT_ISSUE: "Draft"}
_STATE_STYLE = {"open": "green", "closed": "grey50", "merged": "magenta"}

# single-select option colors GitHub reports -> rich colors
_OPTION_COLORS = {
    "GRAY": "grey50",
    "BLUE": "blue",
    "GREEN": "green",
    "YELLOW": "yellow",
    "ORANGE": "dark_orange",
    "RED": "red",
    "PINK": "hot_pink",
    "PURPLE": "purple",
}


@app.callback()
def main(
    verbose: Annotated[int, typer.Option("--verbose", "-v", count=True, help="-v for info, -vv for debug")] = 0,
) -> None:
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    _state["verbose"] = verbose
    if verbose:
        logger.setLevel(logging.DEBUG if verbose > 1 else logging.INFO)


# ---------------------------------------------------------------------------
# Provider factory
# ---------------------------------------------------------------------------


def get_provider(profile: str | None = None) -> DashboardProvider:
    settings = get_settings(profile=profile)
    if not _state["verbose"]:
        logger.setLevel(settings.log_level.upper())
    try:
        return GitHubProvider(settings)
    except GhdashError as exc:
        rprint(f"[red]{exc}[/red]")
        raise typer.Exit(1)


@contextmanager
def _reporting_errors() -> Iterator[None]:
    """Turn provider failures into a red message and exit code 1."""
    try:
        yield
    except GhdashError as exc:
        logger.debug("Command failed", exc_info=True)
        rprint(f"[red]{exc}[/red]")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _dump_json(value: object, annotation: type) -> None:
    typer.echo(TypeAdapter(annotation).dump_json(value, indent=2).decode())


def _state_cell(state: str) -> str:
    style = _STATE_STYLE.get(state.lower())
    return f"[{style}]{state}[/{style}]" if style else state


def render_groups(groups: list[GroupedItems]) -> None:
    for group in groups:
        color = _OPTION_COLORS.get((group.color or "").upper())
        title = f"{group.name} ({group.count})"
        table = Table(title=f"[{color}]{title}[/{color}]" if color else title, title_justify="left")
        table.add_column("Type")
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Title")
        table.add_column("Repository", style="dim")
        table.add_column("State")
        table.add_column("Status")
        table.add_column("Assignees")
        table.add_column("Labels")
        table.add_column("Updated", style="dim")
        for item in group.items:
            table.add_row(*_item_row(item))
        rprint(table)


def _item_row(item: NormalizedItem) -> list[str]:
    return [
        _TYPE_TEXT.get(item.type, item.type.value),
        str(item.number) if item.number is not None else "—",
        escape(item.title),
        item.full_repository,
        _state_cell(item.state),
        item.status or "—",
        ", ".join(a.login for a in item.assignees) or "Unassigned",
        escape(", ".join(label.name for label in item.labels)) or "—",
        item.updated_at[:10],
    ]


def _show_items(
    items: list[NormalizedItem],
    groups: list[GroupedItems],
    as_json: bool,
) -> None:
    if as_json:
        _dump_json(groups, list[GroupedItems])
        return
    render_groups(groups)
    shown = sum(g.count for g in groups)
    rprint(f"[dim]{shown} of {len(items)} items[/dim]")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("projects")
def projects_cmd(profile: ProfileOpt = None, as_json: JsonOpt = False) -> None:
    """List open Projects V2 boards for the owner."""
    provider = get_provider(profile)
    with _reporting_errors():
        projects = provider.list_projects()

    if as_json:
        _dump_json(projects, list[ProjectSummary])
        return

    table = Table(title="Projects")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Title")
    table.add_column("Items", justify="right")
    table.add_column("Updated", style="dim")
    table.add_column("URL", style="dim")
    for project in projects:
        number = str(project.number) if project.number is not None else "—"
        table.add_row(number, project.title, str(project.item_count), project.updated_at[:10], project.url)
    rprint(table)


@app.command("project")
def project_cmd(
    number: Annotated[int, typer.Argument(help="Project number")],
    profile: ProfileOpt = None,
) -> None:
    """Show a project's views and fields."""
    provider = get_provider(profile)
    with _reporting_errors():
        project = provider.get_project(number)

    rprint(f"[bold]{project.title}[/bold] ({len(project.items)} items)")
    if project.short_description:
        rprint(project.short_description)

    views = Table(title="Views")
    views.add_column("#", style="cyan", justify="right")
    views.add_column("Name")
    views.add_column("Layout")
    views.add_column("Filter")
    views.add_column("Group by")
    views.add_column("Sort by")
    for view in project.views:
        views.add_row(
            str(view.number) if view.number is not None else "—",
            view.name,
            view.layout.value,
            view.filter or "—",
            view.group_by_fields[0] if view.group_by_fields else "—",
            ", ".join(f"{s.field_name} {s.direction.value}" for s in view.sort_by_fields) or "—",
        )
    rprint(views)

    fields = Table(title="Fields")
    fields.add_column("Name")
    fields.add_column("Type")
    fields.add_column("Options")
    for field in project.fields:
        fields.add_row(field.name, field.data_type, ", ".join(o.name for o in field.options) or "—")
    rprint(fields)
    rprint(f"[dim]Group-by candidates: {', '.join(available_group_fields(project.items))}[/dim]")


@app.command("view")
def view_cmd(
    number: Annotated[int, typer.Argument(help="Project number")],
    view_key: Annotated[str, typer.Argument(help="View id, number or name")],
    profile: ProfileOpt = None,
    filter_string: FilterOpt = None,
    search: SearchOpt = None,
    group_by: GroupOpt = None,
    sort: SortOpt = None,
    as_json: JsonOpt = False,
) -> None:
    """Render a project view: its filter, grouping and sort, with optional overrides."""
    provider = get_provider(profile)
    with _reporting_errors():
        project = provider.get_project(number)

    view = find_view(project.views, view_key)
    if view is None:
        names = ", ".join(v.name for v in project.views) or "(none)"
        rprint(f"[red]View '{view_key}' not found in project {number}. Available: {names}[/red]")
        raise typer.Exit(1)

    groups = apply_view(
        project.items,
        view,
        project.fields,
        filter_string=filter_string,
        search=search,
        group_by=group_by,
        sort_by=[parse_sort_option(s) for s in sort] if sort else None,
    )
    if not as_json:
        rprint(f"[bold]{project.title} / {view.name}[/bold] [dim]{view.filter or ''}[/dim]")
    _show_items(project.items, groups, as_json)


@app.command("items")
def items_cmd(
    number: Annotated[int, typer.Argument(help="Project number")],
    profile: ProfileOpt = None,
    filter_string: FilterOpt = None,
    search: SearchOpt = None,
    group_by: GroupOpt = None,
    sort: SortOpt = None,
    graphql: Annotated[
        bool, typer.Option("--graphql", help="Page items through the GraphQL API instead of REST")
    ] = False,
    as_json: JsonOpt = False,
) -> None:
    """List a project's items with ad-hoc filter, grouping and sort."""
    provider = get_provider(profile)
    with _reporting_errors():
        if graphql:
            summary = next((p for p in provider.list_projects() if p.number == number), None)
            if summary is None:
                rprint(f"[red]Project {number} not found among open projects.[/red]")
                raise typer.Exit(1)
            items, fields = provider.list_project_items(summary.id), []
        else:
            project = provider.get_project(number)
            items, fields = project.items, project.fields

    groups = apply_view(
        items,
        fields=fields,
        filter_string=filter_string,
        search=search,
        group_by=group_by,
        sort_by=[parse_sort_option(s) for s in sort] if sort else None,
    )
    _show_items(items, groups, as_json)


@app.command("options")
def options_cmd(
    number: Annotated[int, typer.Argument(help="Project number")],
    profile: ProfileOpt = None,
    as_json: JsonOpt = False,
) -> None:
    """Distinct states, statuses, repositories and assignees in a project, for building filters."""
    provider = get_provider(profile)
    with _reporting_errors():
        project = provider.get_project(number)

    options = filter_options(project.items)
    if as_json:
        _dump_json(options, FilterOptions)
        return

    table = Table(title=f"Filter values in {project.title}")
    table.add_column("Qualifier", style="cyan")
    table.add_column("Values")
    table.add_row("state:", ", ".join(options.states) or "—")
    table.add_row("status:", escape(", ".join(options.statuses)) or "—")
    table.add_row("repo:", ", ".join(options.repositories) or "—")
    table.add_row("assignee:", ", ".join(options.assignees) or "—")
    rprint(table)


@app.command("repos")
def repos_cmd(profile: ProfileOpt = None, as_json: JsonOpt = False) -> None:
    """List the owner's non-archived repositories."""
    provider = get_provider(profile)
    with _reporting_errors():
        repos = provider.list_repositories()

    if as_json:
        _dump_json(repos, list[Repository])
        return

    table = Table(title="Repositories")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("Stack")
    table.add_column("★", justify="right")
    table.add_column("Issues", justify="right")
    table.add_column("Updated", style="dim")
    for repo in repos:
        name = f"{repo.name} [dim](private)[/dim]" if repo.private else repo.name
        table.add_row(
            name,
            repo.category,
            ", ".join(repo.tech_stack) or "—",
            str(repo.stars),
            str(repo.open_issues),
            repo.updated_at[:10],
        )
    rprint(table)


@app.command("pulls")
def pulls_cmd(
    profile: ProfileOpt = None,
    state: Annotated[str, typer.Option("--state", help="open, closed or all")] = "open",
    as_json: JsonOpt = False,
) -> None:
    """List pull requests across all repositories."""
    if state not in ("open", "closed", "all"):
        rprint("[red]Invalid state. Choose 'open', 'closed' or 'all'.[/red]")
        raise typer.Exit(1)

    provider = get_provider(profile)
    with _reporting_errors():
        prs = provider.list_pull_requests(state=state)
    stats = pull_request_stats(prs)

    if as_json:
        typer.echo(PullRequestReport(pull_requests=prs, stats=stats).model_dump_json(indent=2))
        return

    table = Table(title="Pull Requests")
    table.add_column("Repository", style="dim")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Title")
    table.add_column("State")
    table.add_column("Author")
    table.add_column("Branch", style="dim")
    table.add_column("Updated", style="dim")
    for pr in prs:
        table.add_row(
            pr.repository,
            str(pr.number),
            escape(pr.title),
            _state_cell(pull_request_state_label(pr)),
            pr.author or "—",
            f"{pr.head_ref} → {pr.base_ref}",
            pr.updated_at[:10],
        )
    rprint(table)
    rprint(
        f"[dim]{stats.total} total · {stats.open} open · {stats.closed} closed · "
        f"{stats.merged} merged · {stats.draft} draft · {stats.repositories} repositories[/dim]"
    )


@app.command("workflows")
def workflows_cmd(profile: ProfileOpt = None, as_json: JsonOpt = False) -> None:
    """Latest Actions run per workflow and branch across all repositories."""
    provider = get_provider(profile)
    with _reporting_errors():
        runs = provider.list_workflow_runs()

    if as_json:
        _dump_json(runs, list[WorkflowRun])
        return

    table = Table(title="Workflows")
    table.add_column("Repository", style="dim")
    table.add_column("Workflow")
    table.add_column("Branch", style="cyan")
    table.add_column("Status")
    table.add_column("Run", justify="right")
    table.add_column("Event", style="dim")
    table.add_column("Updated", style="dim")
    for run in runs:
        style = {"success": "green", "failure": "red", "cancelled": "grey50"}.get(run.status, "yellow")
        table.add_row(
            run.repository,
            run.name,
            run.branch,
            f"[{style}]{run.status}[/{style}]",
            str(run.run_number),
            run.event,
            run.updated_at[:10],
        )
    rprint(table)


@app.command("set-default")
def set_default(
    profile: Annotated[str, typer.Argument(help="Profile name to set as default")],
) -> None:
    """Set the default profile in ~/.config/ghdash/config.toml."""
    if not CONFIG_PATH.exists():
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        doc = tomlkit.document()
        doc.add("default_profile", profile)
        CONFIG_PATH.write_text(tomlkit.dumps(doc))
        rprint(f'[green]✓[/green] Default profile set to "{profile}" in {CONFIG_PATH}')
        return

    doc = tomlkit.load(CONFIG_PATH.open())
    profiles = _list_profiles(doc)
    if profile not in profiles:
        rprint(f"[red]Profile '{profile}' not found in {CONFIG_PATH}. Available: {profiles or '(none)'}[/red]")
        raise typer.Exit(1)

    doc["default_profile"] = profile
    CONFIG_PATH.write_text(tomlkit.dumps(doc))
    rprint(f'[green]✓[/green] Default profile set to "{profile}" in {CONFIG_PATH}')


@app.command("config-show")
def config_show(profile: ProfileOpt = None) -> None:
    """Show resolved configuration (masks credentials)."""
    settings = get_settings(profile=profile)

    token = settings.github_token.get_secret_value() if settings.github_token else None
    if token is None:
        masked = "[dim](not set)[/dim]"
    elif len(token) <= 5:
        masked = "***"
    else:
        masked = f"...{token[-5:]}"

    table = Table(title="ghdash Configuration")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("owner", settings.owner or "[dim](not set)[/dim]")
    table.add_row("default_profile", settings.default_profile or "[dim](not set)[/dim]")
    table.add_row("github_token", masked)
    table.add_row("github_auth", settings.github_auth)
    table.add_row("api_url", settings.api_url)
    table.add_row("batch_size", str(settings.batch_size))
    table.add_row("batch_delay", f"{settings.batch_delay}s")
    table.add_row("log_level", settings.log_level)

    rprint(table)
