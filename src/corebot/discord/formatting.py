"""Embed formatting helpers shared by the command modules."""

from __future__ import annotations

from datetime import timedelta

import discord

# Embed colors
COLOR_INFO = discord.Color.blue()
COLOR_SUCCESS = discord.Color.green()
COLOR_ERROR = discord.Color.red()
COLOR_SETTINGS = discord.Color.dark_blue()

INVITE_SCOPES = ("bot", "applications.commands")


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}{'' if value == 1 else 's'}"


def format_uptime_long(uptime: timedelta) -> str:
    """Format a duration as "1 day, 2 hours, 3 minutes, 4 seconds".

    Zero-valued units are dropped; seconds are shown when non-zero or when no
    larger unit is.
    """
    total = max(int(uptime.total_seconds()), 0)
    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts: list[str] = []
    if days > 0:
        parts.append(_plural(days, "day"))
    if hours > 0:
        parts.append(_plural(hours, "hour"))
    if minutes > 0:
        parts.append(_plural(minutes, "minute"))
    if not parts or seconds > 0:
        parts.append(_plural(seconds, "second"))
    return ", ".join(parts)


def format_uptime_short(uptime: timedelta) -> str:
    """Format a duration compactly: "1d 2h 3m", "2h 3m 4s", "3m 4s" or "4s"."""
    total = max(int(uptime.total_seconds()), 0)
    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def latency_color(latency_ms: int) -> discord.Color:
    """Three-band color used by the prefix ping command."""
    if latency_ms < 100:
        return discord.Color.green()
    if latency_ms < 250:
        return discord.Color.gold()
    return discord.Color.red()


def latency_tier(latency_ms: int) -> tuple[str, discord.Color]:
    """Four-band status label and color used by the slash ping command."""
    if latency_ms < 100:
        return "🟢 Excellent", discord.Color.green()
    if latency_ms < 200:
        return "🟡 Good", discord.Color.gold()
    if latency_ms < 500:
        return "🟠 Fair", discord.Color.orange()
    return "🔴 Poor", discord.Color.red()


def invite_url(client_id: int, permissions: discord.Permissions) -> str:
    """OAuth2 URL inviting the bot with the given permissions."""
    return discord.utils.oauth_url(client_id, permissions=permissions, scopes=INVITE_SCOPES)


def title_case(value: str) -> str:
    """Upper-case the first character only ("general" -> "General")."""
    return value[:1].upper() + value[1:]


def set_requested_by(embed: discord.Embed, user: discord.abc.User) -> discord.Embed:
    """Add the "Requested by" footer with the user's avatar."""
    return embed.set_footer(text=f"Requested by {user.name}", icon_url=user.display_avatar.url)
