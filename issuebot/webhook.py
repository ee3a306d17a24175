"""Gitea webhook listener.

A single POST /webhook endpoint turns pull request and issue events into
channel notifications. Deliveries are not authenticated unless a verifier
is supplied to ``create_app``.
"""

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Protocol

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

ACK_BODY = "Webhook received"
EVENT_HEADER = "X-Gitea-Event"


# --- Payload models ---


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GiteaUser(_Payload):
    login: str = ""
    username: str = ""

    @property
    def name(self) -> str:
        return self.login or self.username or "unknown"


class PullRequestSubject(_Payload):
    title: str = ""
    html_url: str = ""
    merged: bool = False
    user: GiteaUser | None = None


class IssueSubject(_Payload):
    title: str = ""
    html_url: str = ""
    user: GiteaUser | None = None


class PullRequestEvent(_Payload):
    action: str
    pull_request: PullRequestSubject
    sender: GiteaUser | None = None


class IssuesEvent(_Payload):
    action: str
    issue: IssueSubject
    sender: GiteaUser | None = None


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    url: str
    author: str
    # Name of a discord.Colour classmethod, e.g. "orange"
    colour: str


def _author(user: GiteaUser | None, sender: GiteaUser | None) -> str:
    if user is not None:
        return user.name
    if sender is not None:
        return sender.name
    return "unknown"


def _pull_request_notification(event: PullRequestEvent) -> Notification | None:
    pr = event.pull_request
    author = _author(pr.user, event.sender)
    if event.action == "opened":
        return Notification("New merge request", pr.title, pr.html_url, author, "blue")
    if event.action == "closed" and pr.merged:
        return Notification(
            "Merge request merged", pr.title, pr.html_url, author, "purple"
        )
    return None


def _issues_notification(event: IssuesEvent) -> Notification | None:
    issue = event.issue
    author = _author(issue.user, event.sender)
    if event.action == "opened":
        return Notification("New issue", issue.title, issue.html_url, author, "orange")
    if event.action == "closed":
        return Notification("Issue closed", issue.title, issue.html_url, author, "red")
    return None


def build_notification(event_type: str, body: bytes | str) -> Notification | None:
    """Map a raw webhook delivery to at most one notification.

    Raises:
        pydantic.ValidationError: The payload does not match the event schema.
    """
    if event_type == "pull_request":
        return _pull_request_notification(PullRequestEvent.model_validate_json(body))
    if event_type == "issues":
        return _issues_notification(IssuesEvent.model_validate_json(body))
    logger.info(f"Ignoring unhandled webhook event type: {event_type!r}")
    return None


# --- App ---


class Notifier(Protocol):
    async def send(self, notification: Notification) -> None: ...


Verifier = Callable[[Mapping[str, str], bytes], bool | Awaitable[bool]]


def allow_unsigned(headers: Mapping[str, str], body: bytes) -> bool:
    """Accept every delivery. Replace with a shared-secret/HMAC check."""
    return True


def create_app(notifier: Notifier, verifier: Verifier = allow_unsigned) -> FastAPI:
    """Build the webhook app bound to one notifier."""
    app = FastAPI(title="Gitea Issue Bot webhook")

    if verifier is allow_unsigned:
        logger.warning(
            "Webhook endpoint is unauthenticated: deliveries are not "
            "signature-checked. Pass a verifier to create_app to enforce one."
        )

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse(content={"status": "ok"})

    @app.post("/webhook")
    async def webhook(request: Request) -> PlainTextResponse:
        body = await request.body()
        event_type = request.headers.get(EVENT_HEADER, "")

        accepted = verifier(request.headers, body)
        if inspect.isawaitable(accepted):
            accepted = await accepted
        if not bool(accepted):
            logger.warning(f"Rejected webhook delivery for event {event_type!r}")
            return PlainTextResponse("Unauthorized", status_code=401)

        logger.info(f"Received webhook event: {event_type!r}")
        try:
            notification = build_notification(event_type, body)
        except ValidationError as e:
            logger.warning(f"Malformed {event_type!r} payload: {e}")
            notification = None

        if notification is not None:
            try:
                await notifier.send(notification)
            except Exception:
                logger.exception(f"Failed to send {notification.title!r} notification")

        return PlainTextResponse(ACK_BODY)

    return app


class EmbeddedServer(uvicorn.Server):
    """uvicorn server sharing the bot's event loop.

    Signal handling stays with the host process; shut down by setting
    ``should_exit``.
    """

    def install_signal_handlers(self) -> None:
        pass

    def capture_signals(self) -> contextlib.AbstractContextManager[None]:
        return contextlib.nullcontext()


def create_server(app: FastAPI, host: str, port: int) -> EmbeddedServer:
    config = uvicorn.Config(app, host=host, port=port, log_config=None)
    return EmbeddedServer(config)
