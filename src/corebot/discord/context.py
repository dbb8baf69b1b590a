"""Bot context bundle for command modules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import discord
import psutil

from corebot.config import BotConfiguration


def gateway_latency_ms(client: discord.Client) -> int:
    """Heartbeat latency in whole milliseconds (0 before the first heartbeat)."""
    latency = client.latency
    if math.isnan(latency) or math.isinf(latency):
        return 0
    return round(latency * 1000)


@dataclass
class BotContext:
    """Read-only view over the running bot, passed to all command modules.

    Modules read connection state through this bundle and never start, stop or
    change presence themselves.

    Args:
        config: Bot configuration.
        client: The gateway client.
        process: Handle on the current process, for uptime and memory.
    """

    config: BotConfiguration
    client: discord.Client
    process: psutil.Process = field(default_factory=psutil.Process)

    @property
    def latency_ms(self) -> int:
        return gateway_latency_ms(self.client)

    @property
    def guild_count(self) -> int:
        return len(self.client.guilds)

    @property
    def is_connected(self) -> bool:
        return self.client.is_ready() and not self.client.is_closed()

    @property
    def started_at(self) -> datetime:
        return datetime.fromtimestamp(self.process.create_time(), tz=timezone.utc)

    @property
    def uptime(self) -> timedelta:
        return datetime.now(timezone.utc) - self.started_at

    @property
    def memory_mb(self) -> float:
        """Resident set size of the process in megabytes."""
        return self.process.memory_info().rss / (1024.0 * 1024.0)
