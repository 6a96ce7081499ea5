"""Shared pydantic models exchanged by the providers, the view engine and main.py."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator

# field key -> accepted lowercase values; "-key" marks a negated clause
FilterSet = dict[str, list[str]]


class ItemType(str, Enum):
    ISSUE = "ISSUE"
    PULL_REQUEST = "PULL_REQUEST"
    DRAFT_ISSUE = "DRAFT_ISSUE"


class ViewLayout(str, Enum):
    TABLE = "TABLE"
    BOARD = "BOARD"
    ROADMAP = "ROADMAP"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class Assignee(BaseModel):
    model_config = ConfigDict(frozen=True)

    login: str
    avatar_url: str = ""


class Label(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    color: str = ""


class NormalizedItem(BaseModel):
    """One project item (issue, pull request or draft) flattened for display."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: ItemType = ItemType.ISSUE
    number: int | None = None  # drafts have no number
    title: str
    url: str = "#"
    state: str = "open"  # free text from GitHub: open, closed, merged, ...
    repository: str = "Unknown"
    repository_owner: str = "Unknown"
    assignees: list[Assignee] = []
    labels: list[Label] = []
    created_at: str = ""
    updated_at: str = ""
    status: str | None = None  # mirrors custom_fields["Status"]
    priority: str | None = None  # mirrors custom_fields["Priority"]
    custom_fields: dict[str, str] = {}

    @property
    def full_repository(self) -> str:
        return f"{self.repository_owner}/{self.repository}"


class FilterClause(BaseModel):
    """A single parsed `[-]field:value,value` entry of a FilterSet."""

    model_config = ConfigDict(frozen=True)

    field: str
    values: list[str]
    negated: bool = False


class SortSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    field_name: str
    direction: SortDirection = SortDirection.ASC


class ProjectView(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    number: int | None = None
    layout: ViewLayout = ViewLayout.TABLE
    filter: str | None = None
    group_by_fields: list[str] = []  # only the first one is honored
    sort_by_fields: list[SortSpec] = []

    @field_validator("layout", mode="before")
    @classmethod
    def _strip_layout_suffix(cls, value: object) -> object:
        # GitHub reports TABLE_LAYOUT / BOARD_LAYOUT / ROADMAP_LAYOUT
        if isinstance(value, str):
            return value.upper().removesuffix("_LAYOUT")
        return value


class FieldOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    color: str | None = None


class ProjectField(BaseModel):
    """Field schema entry; options are set for single-select fields, in declared order."""

    model_config = ConfigDict(frozen=True)

    name: str
    data_type: str = "TEXT"
    options: list[FieldOption] = []


class GroupedItems(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    items: list[NormalizedItem]
    count: int
    color: str | None = None
    order: int | None = None  # index of the matching field option, if any


class ProjectSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    number: int | None = None
    title: str
    short_description: str | None = None
    url: str
    created_at: str = ""
    updated_at: str = ""
    closed: bool = False
    item_count: int = 0


class ProjectDetails(BaseModel):
    """A project board with its views, field schema and normalized items."""

    model_config = ConfigDict(frozen=True)

    id: str
    number: int
    title: str
    short_description: str | None = None
    url: str = ""
    views: list[ProjectView] = []
    fields: list[ProjectField] = []
    items: list[NormalizedItem] = []


class Repository(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    full_name: str
    description: str | None = None
    private: bool = False
    archived: bool = False
    language: str | None = None
    stars: int = 0
    forks: int = 0
    open_issues: int = 0
    topics: list[str] = []
    html_url: str = ""
    default_branch: str = "main"
    created_at: str = ""
    updated_at: str = ""
    category: str = "General"
    tech_stack: list[str] = []


class PullRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    number: int
    title: str
    state: str
    html_url: str
    repository: str  # owner/name
    author: str | None = None
    draft: bool = False
    merged_at: str | None = None
    closed_at: str | None = None
    head_ref: str = ""
    base_ref: str = ""
    assignees: list[Assignee] = []
    labels: list[Label] = []
    created_at: str = ""
    updated_at: str = ""


class PullRequestStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = 0
    open: int = 0
    closed: int = 0
    merged: int = 0
    draft: int = 0
    repositories: int = 0


class WorkflowRun(BaseModel):
    """Latest run of one workflow on one branch."""

    model_config = ConfigDict(frozen=True)

    id: str  # repo-workflow-branch
    workflow_id: int
    name: str
    repository: str
    branch: str
    state: str
    status: str  # run conclusion, else run status, else workflow state
    run_number: int
    event: str
    html_url: str
    workflow_url: str
    badge_url: str
    is_private: bool = False
    updated_at: str = ""


class FilterOptions(BaseModel):
    """Distinct values present in a set of items, for populating filter dropdowns."""

    model_config = ConfigDict(frozen=True)

    states: list[str] = []
    statuses: list[str] = []
    repositories: list[str] = []  # owner/name
    assignees: list[str] = []


class PullRequestReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    pull_requests: list[PullRequest]
    stats: PullRequestStats
