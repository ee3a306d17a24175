"""issuebot: Discord slash command that files issues in Gitea.

Usage:
    issuebot [--log-level LEVEL] [--no-webhook]

Configuration comes from the environment (DISCORD_TOKEN, GITEA_URL,
GITEA_TOKEN, GITEA_OWNER, GITEA_REPO, and optionally DEFAULT_PROJECT_ID,
UPDATE_CHANNEL_ID, WEBHOOK_URL, WEBHOOK_PORT).
"""

import argparse
import asyncio
import logging
import os
import sys

from .bot import run_bot
from .config import ConfigError, load_settings, log_settings

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Discord bot that creates Gitea issues and relays webhooks"
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: LOG_LEVEL env or INFO)",
    )
    parser.add_argument(
        "--no-webhook",
        action="store_true",
        help="Do not start the webhook listener even if UPDATE_CHANNEL_ID is set",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings()
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    log_settings(settings)

    logger.info("Starting bot...")
    try:
        asyncio.run(run_bot(settings, webhook=not args.no_webhook))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
