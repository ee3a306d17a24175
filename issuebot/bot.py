"""Discord client: registers /create_issue and relays webhook notifications."""

import asyncio
import logging

import discord
from discord import app_commands

from .config import Settings
from .gitea import GiteaClient, Label, Milestone, Project
from .issues import IssueOutcome, IssueRequest, create_issue
from .webhook import Notification, create_app, create_server

logger = logging.getLogger(__name__)

COMMAND_NAME = "create_issue"

# Discord application command limits
MAX_CHOICES = 25
MAX_CHOICE_LENGTH = 100
EMBED_TITLE_LIMIT = 256
EMBED_DESCRIPTION_LIMIT = 4096


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _choices(option: str, names: list[str]) -> list[app_commands.Choice[str]]:
    """Choice list for one option, within Discord's count and length limits."""
    unique: list[str] = []
    for name in names:
        if not name or name in unique:
            continue
        if len(name) > MAX_CHOICE_LENGTH:
            logger.warning(f"Skipping {option} choice longer than {MAX_CHOICE_LENGTH}: {name!r}")
            continue
        unique.append(name)
    if len(unique) > MAX_CHOICES:
        logger.warning(
            f"{len(unique)} {option} choices available, offering only the first {MAX_CHOICES}"
        )
        unique = unique[:MAX_CHOICES]
    return [app_commands.Choice(name=name, value=name) for name in unique]


# --- Embeds ---


def issue_embed(outcome: IssueOutcome) -> discord.Embed:
    """Rich confirmation for a created issue."""
    if outcome.issue is None:
        raise ValueError("Cannot build an issue embed for a failed outcome")
    embed = discord.Embed(
        title=_truncate(outcome.request.title, EMBED_TITLE_LIMIT),
        url=outcome.issue.html_url,
        description=_truncate(outcome.request.body, EMBED_DESCRIPTION_LIMIT),
        colour=discord.Colour.green(),
    )
    payload = outcome.payload
    if payload.label_names:
        embed.add_field(name="Labels", value=", ".join(payload.label_names), inline=True)
    if payload.milestone_title:
        embed.add_field(name="Milestone", value=payload.milestone_title, inline=True)
    if payload.project_title:
        embed.add_field(name="Project", value=payload.project_title, inline=True)
    elif "project_id" in payload.data:
        embed.add_field(name="Project", value=f"#{payload.data['project_id']}", inline=True)
    return embed


def notification_embed(notification: Notification) -> discord.Embed:
    colour_factory = getattr(discord.Colour, notification.colour, discord.Colour.default)
    embed = discord.Embed(
        title=notification.title,
        description=_truncate(notification.description, EMBED_DESCRIPTION_LIMIT),
        url=notification.url or None,
        colour=colour_factory(),
    )
    embed.set_author(name=notification.author)
    return embed


# --- Command handling ---


async def handle_create_issue(
    interaction: discord.Interaction,
    gitea: GiteaClient,
    settings: Settings,
    request: IssueRequest,
) -> None:
    """Create the issue and send the single reply for this invocation."""
    logger.info(
        f"Handling {COMMAND_NAME} from {interaction.user}: title={request.title!r} "
        f"labels={request.labels!r} milestone={request.milestone!r} "
        f"project={request.project!r}"
    )
    outcome = await create_issue(gitea, settings, request)
    if outcome.ok:
        await interaction.response.send_message(outcome.message, embed=issue_embed(outcome))
    else:
        await interaction.response.send_message(outcome.message)


def build_create_issue_command(
    gitea: GiteaClient,
    settings: Settings,
    label_catalog: list[Label],
    milestone_catalog: list[Milestone],
    project_catalog: list[Project],
) -> app_commands.Command:
    """Build /create_issue with choices snapshotted from the given catalogs."""

    async def create_issue_command(
        interaction: discord.Interaction,
        title: str,
        body: str,
        labels: str | None = None,
        milestone: str | None = None,
        project: str | None = None,
    ) -> None:
        request = IssueRequest(
            title=title,
            body=body,
            labels=labels,
            milestone=milestone,
            project=project,
        )
        await handle_create_issue(interaction, gitea, settings, request)

    callback = app_commands.describe(
        title="The issue title",
        body="The issue body",
        labels="Labels for the issue",
        milestone="Milestone for the issue",
        project="Project for the issue",
    )(create_issue_command)

    choices = {
        "labels": _choices("labels", [label.name for label in label_catalog]),
        "milestone": _choices("milestone", [m.title for m in milestone_catalog]),
        "project": _choices("project", [p.title for p in project_catalog]),
    }
    # An option with no choices stays free text
    non_empty = {option: values for option, values in choices.items() if values}
    if non_empty:
        callback = app_commands.choices(**non_empty)(callback)

    return app_commands.Command(
        name=COMMAND_NAME,
        description="Create a new issue in Gitea",
        callback=callback,
    )


async def register_commands(
    tree: app_commands.CommandTree, gitea: GiteaClient, settings: Settings
) -> list[app_commands.AppCommand]:
    """Fetch catalogs, build /create_issue and register it globally.

    Errors are logged and swallowed; the bot keeps running without the command.
    """
    try:
        logger.info("Retrieving labels from Gitea...")
        labels = await gitea.list_labels()
        logger.info(f"Retrieved {len(labels)} labels")

        logger.info("Retrieving milestones from Gitea...")
        milestones = await gitea.list_milestones()
        logger.info(f"Retrieved {len(milestones)} milestones")

        logger.info("Retrieving projects from Gitea...")
        projects = await gitea.list_projects()
        logger.info(f"Retrieved {len(projects)} projects")

        command = build_create_issue_command(gitea, settings, labels, milestones, projects)
        tree.add_command(command, override=True)

        synced = await tree.sync()
        for registered in synced:
            logger.info(
                f"Slash command registered: {registered.name} (id={registered.id})"
            )
        return synced
    except Exception:
        logger.exception("Error registering slash commands")
        return []


# --- Client ---


class ChannelNotifier:
    """Posts webhook notifications to one fixed channel."""

    def __init__(self, client: discord.Client, channel_id: int):
        self.client = client
        self.channel_id = channel_id

    async def send(self, notification: Notification) -> None:
        channel = self.client.get_channel(self.channel_id)
        if channel is None:
            channel = await self.client.fetch_channel(self.channel_id)
        await channel.send(embed=notification_embed(notification))
        logger.info(f"Sent {notification.title!r} notification to {self.channel_id}")


class IssueBot(discord.Client):
    def __init__(
        self,
        settings: Settings,
        gitea: GiteaClient | None = None,
        *,
        webhook: bool = True,
        intents: discord.Intents | None = None,
    ):
        if intents is None:
            intents = discord.Intents(guilds=True, guild_messages=True)
        super().__init__(intents=intents)
        self.settings = settings
        self.gitea = gitea if gitea is not None else GiteaClient.from_settings(settings)
        self.tree = app_commands.CommandTree(self)
        self.webhook = webhook and settings.webhook_enabled
        self._commands_registered = False
        self._webhook_server = None
        self._webhook_task: asyncio.Task | None = None

    async def setup_hook(self) -> None:
        channel_id = self.settings.update_channel_id
        if self.webhook and channel_id is not None:
            self._start_webhook(channel_id)

    def _start_webhook(self, channel_id: int) -> None:
        notifier = ChannelNotifier(self, channel_id)
        self._webhook_server = create_server(
            create_app(notifier), self.settings.webhook_host, self.settings.webhook_port
        )
        self._webhook_task = asyncio.create_task(self._webhook_server.serve())
        logger.info(
            f"Webhook listener started on "
            f"{self.settings.webhook_host}:{self.settings.webhook_port}"
        )

    async def on_ready(self) -> None:
        logger.info(f"Logged in as {self.user}")
        # on_ready fires again on every reconnect; register only the first time
        if self._commands_registered:
            return
        self._commands_registered = True
        logger.info("Client is ready. Initializing slash commands...")
        await register_commands(self.tree, self.gitea, self.settings)

    async def close(self) -> None:
        if self._webhook_server is not None and self._webhook_task is not None:
            self._webhook_server.should_exit = True
            await asyncio.wait([self._webhook_task])
            self._webhook_server = None
            self._webhook_task = None
        await self.gitea.close()
        await super().close()


async def run_bot(settings: Settings, *, webhook: bool = True) -> None:
    """Connect and block until the client is closed."""
    async with IssueBot(settings, webhook=webhook) as bot:
        await bot.start(settings.discord_token)
