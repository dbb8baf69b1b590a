"""General prefix commands: ping, help, info, uptime, invite."""

from __future__ import annotations

import platform

import discord
import structlog
from discord.ext import commands

from corebot import __version__
from corebot.discord.context import BotContext
from corebot.discord.formatting import (
    COLOR_INFO,
    COLOR_SUCCESS,
    format_uptime_long,
    invite_url,
    latency_color,
    set_requested_by,
)
from corebot.logging import get_logger

HELP_USAGE = "Use `/help [command]` to get detailed information about a specific command."

AVAILABLE_COMMANDS = (
    "• `ping` - Check bot latency\n"
    "• `info` - Get bot information\n"
    "• `uptime` - Check bot uptime\n"
    "• `invite` - Get bot invite link"
)

# Administrator, as requested by the prefix invite command
ADMIN_PERMISSIONS = discord.Permissions(administrator=True)


def ping_embed(context: BotContext, user: discord.abc.User) -> discord.Embed:
    latency = context.latency_ms
    embed = discord.Embed(
        title="🏓 Pong!",
        description=f"Latency: **{latency}ms**",
        color=latency_color(latency),
        timestamp=discord.utils.utcnow(),
    )
    return set_requested_by(embed, user)


def help_embed(user: discord.abc.User, command: str | None = None) -> discord.Embed:
    embed = discord.Embed(title="📚 Bot Help", color=COLOR_INFO, timestamp=discord.utils.utcnow())
    if command is None or not command.strip():
        embed.description = HELP_USAGE
        embed.add_field(name="Available Commands", value=AVAILABLE_COMMANDS, inline=False)
    else:
        embed.description = f"Help for command: **{command}**"
        embed.add_field(
            name="Command Not Found",
            value=f"No detailed help available for '{command}' yet.",
            inline=False,
        )
    return set_requested_by(embed, user)


def info_embed(
    context: BotContext,
    application: discord.AppInfo,
    user: discord.abc.User,
) -> discord.Embed:
    """Bot identity, owner, reach and runtime versions."""
    bot_user = context.client.user
    embed = discord.Embed(title="ℹ️ Bot Information", color=COLOR_INFO, timestamp=discord.utils.utcnow())
    if bot_user is not None:
        embed.set_thumbnail(url=bot_user.display_avatar.url)
        embed.add_field(name="Bot Name", value=bot_user.name, inline=True)
        embed.add_field(name="Bot ID", value=str(bot_user.id), inline=True)
    embed.add_field(name="Owner", value=str(application.owner), inline=True)
    embed.add_field(name="Servers", value=str(context.guild_count), inline=True)
    embed.add_field(name="Latency", value=f"{context.latency_ms}ms", inline=True)
    embed.add_field(name="Uptime", value=format_uptime_long(context.uptime), inline=True)
    embed.add_field(name="Framework", value=f"Python {platform.python_version()}", inline=True)
    embed.add_field(name="Library", value=f"discord.py {discord.__version__}", inline=True)
    embed.add_field(name="Version", value=__version__, inline=True)
    return set_requested_by(embed, user)


def uptime_embed(context: BotContext, user: discord.abc.User) -> discord.Embed:
    embed = discord.Embed(
        title="⏱️ Bot Uptime",
        description=f"The bot has been running for: **{format_uptime_long(context.uptime)}**",
        color=COLOR_SUCCESS,
        timestamp=discord.utils.utcnow(),
    )
    embed.add_field(
        name="Started At",
        value=context.started_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
        inline=False,
    )
    return set_requested_by(embed, user)


def invite_embed(url: str, user: discord.abc.User) -> discord.Embed:
    embed = discord.Embed(
        title="🔗 Invite Link",
        description=f"[Click here to invite the bot to your server]({url})",
        color=COLOR_SUCCESS,
        timestamp=discord.utils.utcnow(),
    )
    return set_requested_by(embed, user)


class GeneralCommands(commands.Cog, name="General", description="General bot commands"):
    """General purpose prefix commands.

    Args:
        context: Bot context with references to the running client.
        logger: Structured logger.
    """

    def __init__(
        self,
        context: BotContext,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._context = context
        self._logger = logger or get_logger(__name__)

    @commands.command(name="ping", aliases=["pong", "latency"], help="Check the bot's latency")
    async def ping_command(self, ctx: commands.Context) -> None:
        await ctx.send(embed=ping_embed(self._context, ctx.author))
        self._logger.debug("ping_command", user=ctx.author.name, latency_ms=self._context.latency_ms)

    @commands.command(name="help", help="Display help information")
    async def help_command(self, ctx: commands.Context, *, command: str | None = None) -> None:
        await ctx.send(embed=help_embed(ctx.author, command))

    @commands.command(name="info", aliases=["about", "botinfo"], help="Display bot information")
    async def info_command(self, ctx: commands.Context) -> None:
        application = await self._context.client.application_info()
        await ctx.send(embed=info_embed(self._context, application, ctx.author))

    @commands.command(name="uptime", help="Check how long the bot has been running")
    async def uptime_command(self, ctx: commands.Context) -> None:
        await ctx.send(embed=uptime_embed(self._context, ctx.author))

    @commands.command(name="invite", help="Get the bot invite link")
    async def invite_command(self, ctx: commands.Context) -> None:
        application = await self._context.client.application_info()
        await ctx.send(embed=invite_embed(invite_url(application.id, ADMIN_PERMISSIONS), ctx.author))
