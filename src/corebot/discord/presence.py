"""Presence lookup tables: bot status and activity types."""

from __future__ import annotations

from enum import Enum

import discord

from corebot.config import ActivitySettings


class BotStatus(str, Enum):
    """Online status the bot can advertise."""

    ONLINE = "online"
    IDLE = "idle"
    DO_NOT_DISTURB = "dnd"
    INVISIBLE = "invisible"
    OFFLINE = "offline"


STATUS_TABLE: dict[BotStatus, discord.Status] = {
    BotStatus.ONLINE: discord.Status.online,
    BotStatus.IDLE: discord.Status.idle,
    BotStatus.DO_NOT_DISTURB: discord.Status.dnd,
    BotStatus.INVISIBLE: discord.Status.invisible,
    BotStatus.OFFLINE: discord.Status.offline,
}

_STATUS_REVERSE: dict[discord.Status, BotStatus] = {v: k for k, v in STATUS_TABLE.items()}

ACTIVITY_TYPES: dict[str, discord.ActivityType] = {
    "playing": discord.ActivityType.playing,
    "streaming": discord.ActivityType.streaming,
    "listening": discord.ActivityType.listening,
    "watching": discord.ActivityType.watching,
    "competing": discord.ActivityType.competing,
}

_ACTIVITY_REVERSE: dict[discord.ActivityType, str] = {v: k for k, v in ACTIVITY_TYPES.items()}


def to_discord_status(status: BotStatus) -> discord.Status:
    return STATUS_TABLE[status]


def from_discord_status(status: discord.Status) -> BotStatus:
    return _STATUS_REVERSE[status]


def parse_activity_type(name: str) -> discord.ActivityType:
    """Resolve a configured activity type name; unknown names mean playing."""
    return ACTIVITY_TYPES.get(name.strip().lower(), discord.ActivityType.playing)


def activity_type_name(activity_type: discord.ActivityType) -> str:
    return _ACTIVITY_REVERSE[activity_type]


def build_activity(settings: ActivitySettings) -> discord.BaseActivity:
    """Build the presence activity described by the configuration.

    Streaming with a URL becomes ``discord.Streaming``; every other case is a
    plain ``discord.Activity`` of the resolved type.
    """
    activity_type = parse_activity_type(settings.type)
    if activity_type == discord.ActivityType.streaming and settings.stream_url:
        return discord.Streaming(name=settings.name, url=settings.stream_url)
    return discord.Activity(type=activity_type, name=settings.name)
