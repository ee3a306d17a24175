"""Environment configuration for the issue bot."""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK_HOST = "0.0.0.0"
DEFAULT_WEBHOOK_PORT = 3000


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""

    pass


@dataclass(frozen=True)
class Settings:
    discord_token: str
    gitea_url: str
    gitea_token: str
    gitea_owner: str
    gitea_repo: str
    default_project_id: int | None = None
    update_channel_id: int | None = None
    webhook_host: str = DEFAULT_WEBHOOK_HOST
    webhook_port: int = DEFAULT_WEBHOOK_PORT

    @property
    def webhook_enabled(self) -> bool:
        """The listener only has somewhere to post when a channel is set."""
        return self.update_channel_id is not None


def _require(env: Mapping[str, str], name: str) -> str:
    value = env.get(name, "").strip()
    if not value:
        raise ConfigError(f"No {name} configured. Set {name} in the environment.")
    return value


def _parse_int(env: Mapping[str, str], name: str) -> int | None:
    value = env.get(name, "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _parse_bind_host(value: str) -> str:
    """Accept either a bare host or a URL such as ``http://0.0.0.0:3000/``."""
    value = value.strip()
    if not value:
        return DEFAULT_WEBHOOK_HOST
    if "://" in value:
        host = urlsplit(value).hostname
        if not host or host in ("+", "*"):
            return DEFAULT_WEBHOOK_HOST
        return host
    return value


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from environment variables.

    Required: DISCORD_TOKEN, GITEA_URL, GITEA_TOKEN, GITEA_OWNER, GITEA_REPO.
    Optional: DEFAULT_PROJECT_ID, UPDATE_CHANNEL_ID, WEBHOOK_URL, WEBHOOK_PORT.

    Args:
        env: Mapping to read from. Defaults to ``os.environ``.

    Raises:
        ConfigError: A required variable is missing or an integer is malformed.
    """
    if env is None:
        env = os.environ

    # An unparsable project id is ignored rather than fatal
    default_project_id: int | None = None
    raw_project = env.get("DEFAULT_PROJECT_ID", "").strip()
    if raw_project:
        try:
            default_project_id = int(raw_project)
        except ValueError:
            logger.warning(f"Ignoring invalid DEFAULT_PROJECT_ID: {raw_project!r}")

    port = _parse_int(env, "WEBHOOK_PORT")

    return Settings(
        discord_token=_require(env, "DISCORD_TOKEN"),
        gitea_url=_require(env, "GITEA_URL"),
        gitea_token=_require(env, "GITEA_TOKEN"),
        gitea_owner=_require(env, "GITEA_OWNER"),
        gitea_repo=_require(env, "GITEA_REPO"),
        default_project_id=default_project_id,
        update_channel_id=_parse_int(env, "UPDATE_CHANNEL_ID"),
        webhook_host=_parse_bind_host(env.get("WEBHOOK_URL", "")),
        webhook_port=port if port is not None else DEFAULT_WEBHOOK_PORT,
    )


def log_settings(settings: Settings) -> None:
    """Log the effective configuration without leaking secrets."""
    logger.info(f"Gitea URL: {settings.gitea_url}")
    logger.info(f"Gitea repo: {settings.gitea_owner}/{settings.gitea_repo}")
    logger.info(f"Discord token length: {len(settings.discord_token)}")
    logger.info(f"Gitea token length: {len(settings.gitea_token)}")
    if settings.default_project_id is not None:
        logger.info(f"Default project ID: {settings.default_project_id}")
    else:
        logger.info("No default project ID set")
    if settings.webhook_enabled:
        logger.info(
            f"Webhook listener on {settings.webhook_host}:{settings.webhook_port}, "
            f"posting to channel {settings.update_channel_id}"
        )
    else:
        logger.info("Webhook listener disabled (UPDATE_CHANNEL_ID not set)")
