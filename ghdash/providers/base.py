"""Abstract base class for dashboard data providers, and the errors they raise."""

from abc import ABC, abstractmethod

from ghdash.models import NormalizedItem, ProjectDetails, ProjectSummary, PullRequest, Repository, WorkflowRun


class GhdashError(Exception):
    """Base class for errors the CLI reports as a failed operation."""


class GitHubAPIError(GhdashError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubAuthError(GitHubAPIError):
    pass


class DashboardProvider(ABC):
    @abstractmethod
    def list_projects(self) -> list[ProjectSummary]: ...

    @abstractmethod
    def get_project(self, number: int) -> ProjectDetails: ...

    @abstractmethod
    def list_project_items(self, project_id: str) -> list[NormalizedItem]: ...

    @abstractmethod
    def list_repositories(self) -> list[Repository]: ...

    @abstractmethod
    def list_pull_requests(self, state: str = "open") -> list[PullRequest]: ...

    @abstractmethod
    def list_workflow_runs(self) -> list[WorkflowRun]: ...
