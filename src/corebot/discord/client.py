"""Gateway client and application command tree."""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from typing import Any

import discord
from discord import app_commands
from discord.ext import commands

Executor = Callable[[discord.Interaction, Callable[[], Awaitable[None]]], Awaitable[Any]]


class TimedCommandTree(app_commands.CommandTree):
    """Command tree that runs every invocation through a bound executor.

    The interaction handler binds its ``execute`` coroutine here so slash
    commands and context menus share the same timeout and error reporting
    as component interactions. Autocomplete requests bypass the executor.
    """

    def __init__(self, client: discord.Client) -> None:
        super().__init__(client)
        self._executor: Executor | None = None

    def bind(self, executor: Executor | None) -> None:
        self._executor = executor

    async def _call(self, interaction: discord.Interaction) -> None:
        if self._executor is None or interaction.type is discord.InteractionType.autocomplete:
            await super()._call(interaction)
            return
        await self._executor(interaction, functools.partial(super()._call, interaction))

    async def on_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError, /) -> None:
        """Hand command errors back to the bound executor.

        The base dispatch catches check failures and wrapped handler
        exceptions itself and reports them here, so they are re-raised for
        the executor to log and answer.
        """
        if self._executor is None or interaction.type is discord.InteractionType.autocomplete:
            await super().on_error(interaction, error)
            return
        raise error


class GatewayClient(commands.Bot):
    """The single gateway client of the process.

    Holds the prefix command registry and the application command tree but
    never dispatches prefix commands by itself; the command handler reads
    messages and invokes commands under its own timeout.
    """

    def __init__(self, *, command_prefix: str, intents: discord.Intents, **options: Any) -> None:
        super().__init__(
            command_prefix=commands.when_mentioned_or(command_prefix),
            intents=intents,
            tree_cls=TimedCommandTree,
            case_insensitive=True,
            help_command=None,
            **options,
        )

    async def on_message(self, message: discord.Message, /) -> None:
        return None
