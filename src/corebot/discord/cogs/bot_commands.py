"""Slash commands of the ``/bot`` group and their component handlers."""

from __future__ import annotations

from typing import Any

import discord
import psutil
from discord import app_commands

from corebot.discord.components import ComponentRouter, InteractionKind
from corebot.discord.context import BotContext
from corebot.discord.formatting import (
    COLOR_INFO,
    COLOR_SETTINGS,
    COLOR_SUCCESS,
    format_uptime_short,
    invite_url,
    latency_tier,
    set_requested_by,
    title_case,
)
from corebot.discord.views import (
    HELP_BUTTON_PREFIX,
    HELP_CATEGORIES,
    SETTINGS_MENU_ID,
    HelpCategoryView,
    InviteView,
    SettingsMenuView,
)

HELP_FOOTER = "Use /help [category] to see specific commands"

CATEGORY_COMMANDS: dict[str, str] = {
    "general": (
        "• `/bot ping` - Check bot latency\n"
        "• `/bot status` - Get bot status\n"
        "• `/bot invite` - Get invite link"
    ),
    "moderation": "• Coming soon...",
    "fun": "• Coming soon...",
    "utility": "• Coming soon...",
}

SETTING_DESCRIPTIONS: dict[str, str] = {
    "prefix": "Command prefix configuration (requires implementation)",
    "logging": "Logging settings configuration (requires implementation)",
    "features": "Feature toggle configuration (requires implementation)",
}

# Permissions requested by the invite link
INVITE_PERMISSIONS = discord.Permissions(
    add_reactions=True,
    view_channel=True,
    send_messages=True,
    embed_links=True,
    attach_files=True,
    read_message_history=True,
    use_external_emojis=True,
    connect=True,
    speak=True,
    use_voice_activation=True,
)


def _set_bot_thumbnail(embed: discord.Embed, ctx: BotContext) -> None:
    user = ctx.client.user
    if user is not None:
        embed.set_thumbnail(url=user.display_avatar.url)


def build_ping_embed(ctx: BotContext, user: discord.abc.User) -> discord.Embed:
    latency = ctx.latency_ms
    label, color = latency_tier(latency)
    embed = discord.Embed(
        title="🏓 Pong!",
        description=f"**Latency:** {latency}ms\n**Status:** {label}",
        color=color,
        timestamp=discord.utils.utcnow(),
    )
    return set_requested_by(embed, user)


def build_status_embed(ctx: BotContext) -> discord.Embed:
    """Connection, latency, guilds, uptime, memory and CPU of the bot process."""
    embed = discord.Embed(title="📊 Bot Status", color=COLOR_INFO, timestamp=discord.utils.utcnow())
    embed.add_field(
        name="Connection",
        value="✅ Connected" if ctx.is_connected else "❌ Disconnected",
        inline=True,
    )
    embed.add_field(name="Latency", value=f"{ctx.latency_ms}ms", inline=True)
    embed.add_field(name="Guilds", value=str(ctx.guild_count), inline=True)
    embed.add_field(name="Uptime", value=format_uptime_short(ctx.uptime), inline=True)
    embed.add_field(name="Memory Usage", value=f"{ctx.memory_mb:.2f} MB", inline=True)
    embed.add_field(name="CPU Cores", value=str(psutil.cpu_count() or 0), inline=True)
    embed.set_footer(text=f"Process ID: {ctx.process.pid}")
    return embed


def build_invite_embed(ctx: BotContext) -> discord.Embed:
    embed = discord.Embed(
        title="🤖 Invite Bot",
        description="Click the button below to invite me to your server!",
        color=COLOR_SUCCESS,
    )
    embed.add_field(
        name="Required Permissions",
        value=(
            "• Send Messages\n"
            "• Embed Links\n"
            "• Read Message History\n"
            "• Use Slash Commands"
        ),
        inline=True,
    )
    _set_bot_thumbnail(embed, ctx)
    return embed


def build_help_embed(ctx: BotContext, category: str | None = None) -> discord.Embed:
    """Help overview, or the command list of one category."""
    embed = discord.Embed(title="📚 Bot Help", color=COLOR_INFO, timestamp=discord.utils.utcnow())
    _set_bot_thumbnail(embed, ctx)

    if not category:
        embed.description = "Select a category to view available commands:"
        for name, summary in HELP_CATEGORIES.items():
            embed.add_field(name=title_case(name), value=summary, inline=False)
    else:
        embed.description = f"Commands in **{title_case(category)}** category:"
        embed.add_field(
            name="Available Commands",
            value=CATEGORY_COMMANDS.get(category, "No commands available in this category."),
            inline=False,
        )

    embed.set_footer(text=HELP_FOOTER)
    return embed


def build_settings_embed() -> discord.Embed:
    return discord.Embed(
        title="⚙️ Bot Settings",
        description="Select a setting category from the dropdown below:",
        color=COLOR_SETTINGS,
    )


def build_setting_detail_embed(selection: str) -> discord.Embed:
    return discord.Embed(
        title=f"⚙️ {title_case(selection)} Settings",
        description=SETTING_DESCRIPTIONS.get(selection, "Unknown setting selected"),
        color=COLOR_SETTINGS,
    )


async def _respond(interaction: discord.Interaction, **kwargs: Any) -> None:
    """Send the initial response, or a follow-up once the interaction is deferred."""
    if interaction.response.is_done():
        await interaction.followup.send(**kwargs)
    else:
        await interaction.response.send_message(**kwargs)


async def _send_help(interaction: discord.Interaction, ctx: BotContext, category: str | None) -> None:
    """Send the help embed (shared by the slash command and the category buttons)."""
    embed = build_help_embed(ctx, category)
    if category:
        await _respond(interaction, embed=embed, ephemeral=True)
    else:
        await _respond(interaction, embed=embed, view=HelpCategoryView(), ephemeral=True)


def register_bot_commands(
    tree: app_commands.CommandTree,
    components: ComponentRouter,
    ctx: BotContext,
) -> None:
    """Register the ``/bot`` command group and its component handlers.

    Args:
        tree: Discord command tree to register commands on.
        components: Router for button and select menu interactions.
        ctx: Bot context with references to the running client.
    """
    group = app_commands.Group(name="bot", description="Bot management and information commands")

    @group.command(name="ping", description="Check the bot's response time")
    async def ping_command(interaction: discord.Interaction) -> None:
        await interaction.response.send_message(embed=build_ping_embed(ctx, interaction.user))

    @group.command(name="status", description="Get detailed bot status")
    async def status_command(interaction: discord.Interaction) -> None:
        await interaction.response.send_message(embed=build_status_embed(ctx))

    @group.command(name="invite", description="Get the bot invite link")
    async def invite_command(interaction: discord.Interaction) -> None:
        application = await ctx.client.application_info()
        url = invite_url(application.id, INVITE_PERMISSIONS)
        await interaction.response.send_message(embed=build_invite_embed(ctx), view=InviteView(url))

    @group.command(name="help", description="Get help with bot commands")
    @app_commands.describe(category="Command category to get help for")
    @app_commands.choices(
        category=[
            app_commands.Choice(name=title_case(name), value=name) for name in HELP_CATEGORIES
        ]
    )
    async def help_command(interaction: discord.Interaction, category: str | None = None) -> None:
        await _send_help(interaction, ctx, category)

    @group.command(name="settings", description="Configure bot settings")
    @app_commands.checks.has_permissions(administrator=True)
    async def settings_command(interaction: discord.Interaction) -> None:
        await interaction.response.send_message(
            embed=build_settings_embed(),
            view=SettingsMenuView(),
            ephemeral=True,
        )

    tree.add_command(group)

    @components.component(f"{HELP_BUTTON_PREFIX}*", InteractionKind.BUTTON)
    async def help_button(interaction: discord.Interaction, category: str) -> None:
        await interaction.response.defer(ephemeral=True)
        await _send_help(interaction, ctx, category)

    @components.component(SETTINGS_MENU_ID, InteractionKind.SELECT_MENU)
    async def settings_menu(interaction: discord.Interaction, *selections: str) -> None:
        selection = selections[0] if selections else ""
        await interaction.response.send_message(
            embed=build_setting_detail_embed(selection),
            ephemeral=True,
        )
