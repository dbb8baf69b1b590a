"""Discord integration: gateway client, command handlers and lifecycle."""

from corebot.discord.client import GatewayClient, TimedCommandTree
from corebot.discord.command_handler import CommandDescriptor, CommandHandler
from corebot.discord.components import ComponentRouter, InteractionKind
from corebot.discord.context import BotContext
from corebot.discord.interaction_handler import InteractionDescriptor, InteractionHandler
from corebot.discord.log_bridge import LogBridge
from corebot.discord.presence import BotStatus
from corebot.discord.service import BotService, ConnectionState

__all__ = [
    "BotContext",
    "BotService",
    "BotStatus",
    "CommandDescriptor",
    "CommandHandler",
    "ComponentRouter",
    "ConnectionState",
    "GatewayClient",
    "InteractionDescriptor",
    "InteractionHandler",
    "InteractionKind",
    "LogBridge",
    "TimedCommandTree",
]
