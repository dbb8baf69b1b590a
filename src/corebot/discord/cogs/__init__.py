"""Command modules: prefix command cogs and slash command groups."""

from corebot.discord.cogs.bot_commands import register_bot_commands
from corebot.discord.cogs.general_commands import GeneralCommands

# Factories taking a BotContext, loaded by the command handler
PREFIX_COGS = (GeneralCommands,)

# Registration functions taking (tree, components, context), loaded by the interaction handler
INTERACTION_MODULES = (register_bot_commands,)

__all__ = [
    "INTERACTION_MODULES",
    "PREFIX_COGS",
    "GeneralCommands",
    "register_bot_commands",
]
