"""Prefix command handling.

Listens for inbound messages, filters out anything that is not addressed to
the bot, and runs the resolved command under the configured timeout. Success
and failure are reported through the command completion/error events.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import discord
import structlog
from discord.ext import commands

from corebot.discord.cogs import PREFIX_COGS
from corebot.discord.context import BotContext
from corebot.discord.events import EventSubscriptions
from corebot.discord.formatting import COLOR_ERROR
from corebot.logging import get_logger

TIMEOUT_NOTICE = "⏱️ Command execution timed out."

CogFactory = Callable[[BotContext], commands.Cog]


@dataclass(frozen=True)
class CommandDescriptor:
    """Read-only description of a loaded prefix command."""

    name: str
    description: str | None
    module: str


def command_start(content: str, prefix: str, bot_user_id: int | None) -> int | None:
    """Return the index where the command text starts, or None.

    A message addresses the bot when it starts with the string prefix or with
    a mention of the bot account (``<@id>`` or ``<@!id>``) followed by
    optional whitespace.

    Args:
        content: Raw message content.
        prefix: Configured command prefix.
        bot_user_id: ID of the bot account, if logged in.
    """
    if prefix and content.startswith(prefix):
        return len(prefix)
    if bot_user_id is not None:
        for mention in (f"<@{bot_user_id}>", f"<@!{bot_user_id}>"):
            if content.startswith(mention):
                rest = content[len(mention):]
                return len(content) - len(rest.lstrip())
    return None


def error_reason(error: commands.CommandError) -> str:
    """Human-readable failure reason, unwrapping invoke errors."""
    original = getattr(error, "original", None) or error
    return str(original) or type(original).__name__


def _guild_name(guild: discord.Guild | None) -> str:
    return guild.name if guild is not None else "DM"


class CommandHandler:
    """Dispatches prefix commands from chat messages.

    Args:
        client: Gateway client owning the command registry.
        context: Bot context handed to the command cogs.
        cogs: Factories building the cogs to load.
        logger: Structured logger.
    """

    def __init__(
        self,
        client: commands.Bot,
        context: BotContext,
        cogs: Sequence[CogFactory] = PREFIX_COGS,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self._context = context
        self._config = context.config
        self._cog_factories = tuple(cogs)
        self._logger = logger or get_logger(__name__)
        self._subscriptions = EventSubscriptions(client)
        self._loaded = False

    @property
    def module_count(self) -> int:
        return len(self._client.cogs)

    async def initialize(self) -> None:
        """Load the command cogs and subscribe to message events."""
        if not self._config.features.enable_prefix_commands:
            self._logger.info("prefix_commands_disabled")
            return

        if not self._loaded:
            for factory in self._cog_factories:
                await self._client.add_cog(factory(self._context))
            self._loaded = True

        self._subscriptions.dispose()
        self._subscriptions.subscribe("message", self.handle_message)
        self._subscriptions.subscribe("command_completion", self.on_command_completion)
        self._subscriptions.subscribe("command_error", self.on_command_error)

        self._logger.info(
            "command_handler_initialized",
            modules=self.module_count,
            commands=len(self.get_commands()),
        )

    def close(self) -> None:
        """Unsubscribe from all events."""
        self._subscriptions.dispose()

    def get_commands(self) -> list[CommandDescriptor]:
        """Describe every loaded prefix command, including subcommands."""
        return sorted(
            (
                CommandDescriptor(
                    name=command.qualified_name,
                    description=command.short_doc or None,
                    module=command.cog_name or "",
                )
                for command in self._client.walk_commands()
            ),
            key=lambda descriptor: descriptor.name,
        )

    async def handle_message(self, message: discord.Message) -> None:
        """Run the command addressed by ``message``, if any."""
        if message.author.bot or message.is_system():
            return
        if not isinstance(message.channel, discord.TextChannel):
            return

        bot_user = self._client.user
        start = command_start(
            message.content,
            self._config.settings.command_prefix,
            bot_user.id if bot_user is not None else None,
        )
        if start is None:
            return

        ctx = await self._client.get_context(message)
        scope = asyncio.timeout(self._config.command_timeout_seconds)
        try:
            async with scope:
                await self._client.invoke(ctx)
        except TimeoutError:
            pass

        # Command callbacks swallow the cancellation, so the scope may expire
        # without raising.
        if not scope.expired():
            return

        self._logger.warning(
            "command_timeout",
            content=message.content,
            timeout_ms=self._config.settings.command_timeout,
        )
        try:
            await message.channel.send(TIMEOUT_NOTICE)
        except discord.HTTPException as exc:
            self._logger.error("timeout_notice_failed", error=str(exc))

    async def on_command_completion(self, ctx: commands.Context) -> None:
        if not self._config.features.enable_command_logging or ctx.command is None:
            return
        # discord.py dispatches completion for cancelled callbacks too
        if ctx.command_failed:
            return
        self._logger.info(
            "command_executed",
            command=ctx.command.qualified_name,
            user=str(ctx.author),
            guild=_guild_name(ctx.guild),
            channel=getattr(ctx.channel, "name", "DM"),
        )

    async def on_command_error(self, ctx: commands.Context, error: commands.CommandError) -> None:
        if isinstance(error, commands.CommandNotFound) or ctx.command is None:
            return

        name = ctx.command.qualified_name
        reason = error_reason(error)

        embed = discord.Embed(
            title="❌ Command Error",
            description=reason,
            color=COLOR_ERROR,
            timestamp=discord.utils.utcnow(),
        )
        embed.set_footer(text=f"Command: {name}")

        try:
            await ctx.send(embed=embed)
        except discord.HTTPException as exc:
            self._logger.error("command_error_reply_failed", command=name, error=str(exc))

        self._logger.error(
            "command_failed",
            command=name,
            error=reason,
            user=str(ctx.author),
            guild=_guild_name(ctx.guild),
            exc_info=getattr(error, "original", None),
        )
