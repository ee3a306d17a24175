"""Turn slash-command input into a Gitea issue and a chat reply."""

import logging
from dataclasses import dataclass, field
from typing import Any

from .config import Settings
from .gitea import CreatedIssue, GiteaClient, GiteaError, Label, Milestone, Project

logger = logging.getLogger(__name__)

# Discord rejects messages longer than this
MESSAGE_LIMIT = 2000


@dataclass(frozen=True)
class IssueRequest:
    title: str
    body: str
    labels: str | None = None
    milestone: str | None = None
    project: str | None = None

    @property
    def label_names(self) -> list[str]:
        """Comma-separated label names, trimmed, empties dropped."""
        if not self.labels:
            return []
        return [name.strip() for name in self.labels.split(",") if name.strip()]


@dataclass
class IssuePayload:
    """JSON body for POST /issues plus the names that were resolved."""

    data: dict[str, Any]
    label_names: list[str] = field(default_factory=list)
    milestone_title: str | None = None
    project_title: str | None = None


@dataclass(frozen=True)
class IssueOutcome:
    """Result of one create_issue invocation."""

    request: IssueRequest
    payload: IssuePayload
    issue: CreatedIssue | None = None
    error: GiteaError | None = None

    @property
    def ok(self) -> bool:
        return self.issue is not None

    @property
    def message(self) -> str:
        """Plain-text reply for the invoking user."""
        if self.issue is not None:
            return f"Issue created: {self.issue.html_url}"
        if self.error is None:
            raise ValueError("IssueOutcome has neither an issue nor an error")
        text = (
            f"Failed to create issue. Status code: {self.error.status}. "
            f"Error: {self.error.body}"
        )
        if len(text) > MESSAGE_LIMIT:
            text = text[: MESSAGE_LIMIT - 3] + "..."
        return text


def find_labels(names: list[str], labels: list[Label]) -> list[Label]:
    """Labels whose name exactly matches one of ``names``, in catalog order."""
    wanted = set(names)
    return [label for label in labels if label.name in wanted]


def find_milestone(title: str, milestones: list[Milestone]) -> Milestone | None:
    for milestone in milestones:
        if milestone.title == title:
            return milestone
    return None


def find_project(value: str, projects: list[Project]) -> Project | None:
    """Match by exact title, falling back to a numeric id in the catalog."""
    for project in projects:
        if project.title == value:
            return project
    if value.isdigit():
        for project in projects:
            if project.id == int(value):
                return project
    return None


def build_issue_payload(
    request: IssueRequest,
    *,
    labels: list[Label] | None = None,
    milestones: list[Milestone] | None = None,
    projects: list[Project] | None = None,
    default_project_id: int | None = None,
) -> IssuePayload:
    """Build the create-issue payload.

    Unmatched label names are dropped; an unmatched milestone omits the
    ``milestone`` key entirely. ``project_id`` comes from an explicit project
    that resolves, otherwise from ``default_project_id``.
    """
    payload = IssuePayload(data={"title": request.title, "body": request.body})

    names = request.label_names
    if names:
        matched = find_labels(names, labels or [])
        dropped = set(names) - {label.name for label in matched}
        if dropped:
            logger.info(f"Dropping unknown labels: {sorted(dropped)}")
        if matched:
            payload.data["labels"] = [label.id for label in matched]
            payload.label_names = [label.name for label in matched]

    if request.milestone:
        milestone = find_milestone(request.milestone, milestones or [])
        if milestone is not None:
            payload.data["milestone"] = milestone.id
            payload.milestone_title = milestone.title
        else:
            logger.info(f"Unknown milestone {request.milestone!r}, omitting")

    project = None
    if request.project:
        project = find_project(request.project, projects or [])
        if project is None:
            logger.info(f"Unknown project {request.project!r}")
    if project is not None:
        payload.data["project_id"] = project.id
        payload.project_title = project.title
    elif default_project_id is not None:
        payload.data["project_id"] = default_project_id
        logger.debug(f"Using default project ID: {default_project_id}")

    return payload


async def create_issue(
    client: GiteaClient, settings: Settings, request: IssueRequest
) -> IssueOutcome:
    """Resolve names against fresh catalogs, then create the issue.

    Catalogs are fetched only for arguments that were supplied. Gitea
    failures are captured in the outcome rather than raised.
    """
    labels = await client.list_labels() if request.label_names else []
    milestones = await client.list_milestones() if request.milestone else []
    projects = await client.list_projects() if request.project else []

    payload = build_issue_payload(
        request,
        labels=labels,
        milestones=milestones,
        projects=projects,
        default_project_id=settings.default_project_id,
    )

    try:
        issue = await client.create_issue(payload.data)
    except GiteaError as e:
        logger.warning(f"Error creating issue: {e} body={e.body!r}")
        return IssueOutcome(request=request, payload=payload, error=e)

    logger.info(f"Successfully created issue: {issue.html_url}")
    return IssueOutcome(request=request, payload=payload, issue=issue)
