"""Tests for issue payload building and the create flow."""

import dataclasses
import json

import pytest

from issuebot.gitea import GiteaError, Label, Milestone, Project
from issuebot.issues import (
    MESSAGE_LIMIT,
    IssueOutcome,
    IssuePayload,
    IssueRequest,
    build_issue_payload,
    create_issue,
    find_project,
)

LABELS = [Label(1, "bug"), Label(2, "feature"), Label(3, "Docs")]
MILESTONES = [Milestone(10, "v1.0"), Milestone(11, "v2.0")]
PROJECTS = [Project(100, "Roadmap"), Project(101, "Backlog")]


class TestIssueRequest:
    def test_label_names_split_and_trimmed(self):
        request = IssueRequest("T", "B", labels=" bug , feature,, ")
        assert request.label_names == ["bug", "feature"]

    def test_no_labels(self):
        assert IssueRequest("T", "B").label_names == []
        assert IssueRequest("T", "B", labels="").label_names == []


class TestBuildPayload:
    def test_minimal(self):
        payload = build_issue_payload(IssueRequest("T", "B"))
        assert payload.data == {"title": "T", "body": "B"}

    def test_labels_resolve_to_ids(self):
        payload = build_issue_payload(
            IssueRequest("T", "B", labels="feature, bug"), labels=LABELS
        )
        assert payload.data["labels"] == [1, 2]
        assert payload.label_names == ["bug", "feature"]

    def test_unknown_labels_dropped(self):
        payload = build_issue_payload(
            IssueRequest("T", "B", labels="bug, nope"), labels=LABELS
        )
        assert payload.data["labels"] == [1]

    def test_labels_are_case_sensitive(self):
        payload = build_issue_payload(
            IssueRequest("T", "B", labels="docs"), labels=LABELS
        )
        assert "labels" not in payload.data

    def test_labels_only_from_catalog(self):
        request = IssueRequest("T", "B", labels="bug,feature,Docs,ghost,BUG")
        payload = build_issue_payload(request, labels=LABELS)
        catalog_ids = {label.id for label in LABELS}
        assert set(payload.data["labels"]) <= catalog_ids

    def test_milestone_resolves(self):
        payload = build_issue_payload(
            IssueRequest("T", "B", milestone="v2.0"), milestones=MILESTONES
        )
        assert payload.data["milestone"] == 11
        assert payload.milestone_title == "v2.0"

    def test_unknown_milestone_omitted(self):
        payload = build_issue_payload(
            IssueRequest("T", "B", milestone="v9"), milestones=MILESTONES
        )
        assert "milestone" not in payload.data

    def test_default_project_attached(self):
        payload = build_issue_payload(IssueRequest("T", "B"), default_project_id=42)
        assert payload.data["project_id"] == 42

    def test_explicit_project_wins(self):
        payload = build_issue_payload(
            IssueRequest("T", "B", project="Backlog"),
            projects=PROJECTS,
            default_project_id=42,
        )
        assert payload.data["project_id"] == 101
        assert payload.project_title == "Backlog"

    def test_unknown_project_falls_back_to_default(self):
        payload = build_issue_payload(
            IssueRequest("T", "B", project="Nope"),
            projects=PROJECTS,
            default_project_id=42,
        )
        assert payload.data["project_id"] == 42

    def test_unknown_project_without_default(self):
        payload = build_issue_payload(
            IssueRequest("T", "B", project="Nope"), projects=PROJECTS
        )
        assert "project_id" not in payload.data


class TestFindProject:
    def test_by_title(self):
        assert find_project("Roadmap", PROJECTS) == PROJECTS[0]

    def test_by_numeric_id(self):
        assert find_project("101", PROJECTS) == PROJECTS[1]

    def test_numeric_id_not_in_catalog(self):
        assert find_project("7", PROJECTS) is None


class TestOutcomeMessage:
    def test_failure_truncated_to_discord_limit(self):
        error = GiteaError("bad", status=500, body="x" * 5000)
        outcome = IssueOutcome(
            request=IssueRequest("T", "B"),
            payload=IssuePayload(data={}),
            error=error,
        )
        assert len(outcome.message) == MESSAGE_LIMIT
        assert outcome.message.startswith("Failed to create issue. Status code: 500.")

    def test_requires_issue_or_error(self):
        outcome = IssueOutcome(request=IssueRequest("T", "B"), payload=IssuePayload(data={}))
        assert not outcome.ok
        with pytest.raises(ValueError):
            outcome.message


@pytest.mark.anyio
class TestCreateIssue:
    async def test_success_reply_contains_url(self, gitea_client, gitea_api, settings):
        gitea_api.add(
            "POST",
            "issues",
            status=201,
            json={"html_url": "https://gitea.example/o/r/issues/1"},
        )
        outcome = await create_issue(gitea_client, settings, IssueRequest("T", "B"))
        assert outcome.ok
        assert "https://gitea.example/o/r/issues/1" in outcome.message

    async def test_failure_reply_contains_status_and_body(
        self, gitea_client, gitea_api, settings
    ):
        gitea_api.add("POST", "issues", status=422, text="[Title]: Required")
        outcome = await create_issue(gitea_client, settings, IssueRequest("T", "B"))
        assert not outcome.ok
        assert "422" in outcome.message
        assert "[Title]: Required" in outcome.message

    async def test_resolves_against_fresh_catalogs(
        self, gitea_client, gitea_api, settings
    ):
        gitea_api.add("GET", "labels", json=[{"id": 1, "name": "bug"}])
        gitea_api.add("GET", "milestones", json=[{"id": 10, "title": "v1.0"}])
        gitea_api.add("POST", "issues", status=201, json={"html_url": "u"})

        request = IssueRequest("T", "B", labels="bug, ghost", milestone="v2.0")
        await create_issue(gitea_client, settings, request)

        sent = json.loads(gitea_api.sent("POST", "issues")[0].content)
        assert sent == {"title": "T", "body": "B", "labels": [1]}

    async def test_label_fetch_failure_drops_labels(
        self, gitea_client, gitea_api, settings
    ):
        gitea_api.add("GET", "labels", status=500, text="boom")
        gitea_api.add("POST", "issues", status=201, json={"html_url": "u"})

        await create_issue(gitea_client, settings, IssueRequest("T", "B", labels="bug"))

        sent = json.loads(gitea_api.sent("POST", "issues")[0].content)
        assert "labels" not in sent

    async def test_catalogs_only_fetched_when_needed(
        self, gitea_client, gitea_api, settings
    ):
        gitea_api.add("POST", "issues", status=201, json={"html_url": "u"})
        await create_issue(gitea_client, settings, IssueRequest("T", "B"))
        assert [r.method for r in gitea_api.requests] == ["POST"]

    async def test_default_project_sent(self, gitea_client, gitea_api, settings):
        gitea_api.add("POST", "issues", status=201, json={"html_url": "u"})
        settings = dataclasses.replace(settings, default_project_id=42)

        await create_issue(gitea_client, settings, IssueRequest("T", "B"))

        sent = json.loads(gitea_api.sent("POST", "issues")[0].content)
        assert sent["project_id"] == 42
