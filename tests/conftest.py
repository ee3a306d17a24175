"""Shared fixtures: settings and an in-memory Gitea API."""

from typing import Any

import httpx
import pytest

from issuebot.config import Settings
from issuebot.gitea import GiteaClient

API_PREFIX = "/api/v1/repos/testowner/testrepo"


@pytest.fixture()
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def settings():
    return Settings(
        discord_token="discord-token",
        gitea_url="https://gitea.example",
        gitea_token="gitea-token",
        gitea_owner="testowner",
        gitea_repo="testrepo",
    )


class FakeGitea:
    """Routes requests to canned responses and records what was sent."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], tuple[int, dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self.fail_with: Exception | None = None

    def add(self, method: str, resource: str, status: int = 200, **kwargs: Any) -> None:
        self.routes[(method, f"{API_PREFIX}/{resource}")] = (status, kwargs)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"message": "not found"})
        status, kwargs = self.routes[key]
        return httpx.Response(status, **kwargs)

    def sent(self, method: str, resource: str) -> list[httpx.Request]:
        path = f"{API_PREFIX}/{resource}"
        return [r for r in self.requests if r.method == method and r.url.path == path]


@pytest.fixture()
def gitea_api():
    return FakeGitea()


@pytest.fixture()
def gitea_client(settings, gitea_api):
    return GiteaClient.from_settings(
        settings, transport=httpx.MockTransport(gitea_api.handler)
    )
