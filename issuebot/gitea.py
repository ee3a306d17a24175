"""Gitea API client for labels, milestones, projects and issue creation."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .config import Settings

logger = logging.getLogger(__name__)


class GiteaError(Exception):
    """Raised when a Gitea write call fails.

    ``status`` is the HTTP status code (0 for transport errors) and ``body``
    the raw response text, kept for display to the user.
    """

    def __init__(self, message: str, status: int = 0, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


def _normalize_base_url(url: str) -> str:
    """Normalize a base URL for API requests.

    Handles various URL formats:
    - Strips leading/trailing whitespace
    - Strips trailing slashes and /api/v1 if already present
    - Returns a clean base URL ending with /api/v1
    """
    url = url.strip().rstrip("/")
    # Remove any existing /api/v1 suffix to avoid duplication
    if url.endswith("/api/v1"):
        url = url[:-7]
    elif url.endswith("/api"):
        url = url[:-4]
    return url + "/api/v1"


# --- Data Models ---


@dataclass(frozen=True)
class Label:
    id: int
    name: str

    @classmethod
    def from_api(cls, item: dict) -> "Label":
        return cls(id=int(item["id"]), name=str(item["name"]))


@dataclass(frozen=True)
class Milestone:
    id: int
    title: str

    @classmethod
    def from_api(cls, item: dict) -> "Milestone":
        return cls(id=int(item["id"]), title=str(item["title"]))


@dataclass(frozen=True)
class Project:
    id: int
    title: str

    @classmethod
    def from_api(cls, item: dict) -> "Project":
        return cls(id=int(item["id"]), title=str(item["title"]))


@dataclass(frozen=True)
class CreatedIssue:
    html_url: str
    number: int | None = None


# --- Gitea Client ---


class GiteaClient:
    """Async Gitea API client scoped to a single repository.

    Read calls never raise: any failure is logged and yields an empty list.
    ``create_issue`` raises GiteaError so the caller can show the failure.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        owner: str,
        repo: str,
        **kwargs: Any,
    ):
        self.base_url = base_url
        self.owner = owner
        self.repo = repo
        self._client = httpx.AsyncClient(
            base_url=_normalize_base_url(base_url),
            headers={
                "Authorization": f"token {token}",
                "Accept": "application/json",
            },
            timeout=30.0,
            **kwargs,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "GiteaClient":
        return cls(
            settings.gitea_url,
            settings.gitea_token,
            settings.gitea_owner,
            settings.gitea_repo,
            **kwargs,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "GiteaClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def _list(self, resource: str, parse) -> list:
        """GET a repo collection, degrading to [] on any failure."""
        try:
            resp = await self._client.get(f"{self._repo_path}/{resource}")
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Failed to fetch {resource}: Gitea API error "
                f"{e.response.status_code}: {e.response.text}"
            )
            return []
        except httpx.RequestError as e:
            logger.warning(f"Failed to fetch {resource}: network error: {e}")
            return []
        except ValueError as e:
            logger.warning(f"Failed to fetch {resource}: invalid JSON: {e}")
            return []

        if not isinstance(data, list):
            logger.warning(f"Unexpected {resource} response: {type(data).__name__}")
            return []

        items = []
        for item in data:
            try:
                items.append(parse(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed {resource} entry: {e!r}")
        return items

    async def list_labels(self) -> list[Label]:
        """List repository labels."""
        return await self._list("labels", Label.from_api)

    async def list_milestones(self) -> list[Milestone]:
        """List repository milestones."""
        return await self._list("milestones", Milestone.from_api)

    async def list_projects(self) -> list[Project]:
        """List repository projects."""
        return await self._list("projects", Project.from_api)

    async def create_issue(self, payload: dict[str, Any]) -> CreatedIssue:
        """Create an issue.

        Args:
            payload: JSON body with at least ``title`` and ``body``.

        Returns:
            The created issue's URL and number.

        Raises:
            GiteaError: Non-2xx response or transport failure.
        """
        logger.debug(f"POST {self._repo_path}/issues body={payload}")
        try:
            resp = await self._client.post(f"{self._repo_path}/issues", json=payload)
        except httpx.RequestError as e:
            raise GiteaError(f"Network error: {e}", status=0, body=str(e)) from e

        logger.info(f"Create issue response: {resp.status_code}")
        if not resp.is_success:
            raise GiteaError(
                f"Gitea API error: {resp.status_code}",
                status=resp.status_code,
                body=resp.text,
            )

        try:
            data = resp.json()
            return CreatedIssue(html_url=str(data["html_url"]), number=data.get("number"))
        except (ValueError, KeyError, TypeError) as e:
            raise GiteaError(
                f"Unexpected create issue response: {e!r}",
                status=resp.status_code,
                body=resp.text,
            ) from e
