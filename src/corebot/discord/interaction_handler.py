"""Slash command, context menu and component interaction handling.

Application commands are dispatched by the command tree, which hands every
invocation to :meth:`InteractionHandler.execute`. Component and modal
interactions are routed by ``custom_id`` through a :class:`ComponentRouter`.
Both paths share the same timeout and error reporting.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

import discord
import structlog
from discord import app_commands

from corebot.discord.cogs import INTERACTION_MODULES
from corebot.discord.components import ComponentRouter, InteractionKind
from corebot.discord.context import BotContext
from corebot.discord.events import EventSubscriptions
from corebot.logging import get_logger

TIMEOUT_NOTICE = "⏱️ Command execution timed out."
ERROR_NOTICE = "❌ An error occurred while processing your request."


@dataclass(frozen=True)
class InteractionDescriptor:
    """Read-only description of a registered interaction."""

    name: str
    description: str | None
    kind: InteractionKind


InteractionModule = Callable[[app_commands.CommandTree, ComponentRouter, BotContext], None]


def interaction_kind(interaction: discord.Interaction) -> InteractionKind | None:
    """Classify an inbound interaction; None for pings and autocomplete."""
    data: dict[str, Any] = interaction.data or {}  # type: ignore[assignment]
    if interaction.type is discord.InteractionType.application_command:
        command_type = data.get("type", discord.AppCommandType.chat_input.value)
        if command_type == discord.AppCommandType.user.value:
            return InteractionKind.USER_COMMAND
        if command_type == discord.AppCommandType.message.value:
            return InteractionKind.MESSAGE_COMMAND
        return InteractionKind.SLASH_COMMAND
    if interaction.type is discord.InteractionType.component:
        if data.get("component_type") == discord.ComponentType.button.value:
            return InteractionKind.BUTTON
        return InteractionKind.SELECT_MENU
    if interaction.type is discord.InteractionType.modal_submit:
        return InteractionKind.MODAL
    return None


def interaction_name(interaction: discord.Interaction) -> str:
    command = interaction.command
    if command is not None:
        return command.qualified_name
    data: dict[str, Any] = interaction.data or {}  # type: ignore[assignment]
    return data.get("custom_id") or data.get("name") or "unknown"


def _error_reason(error: BaseException) -> str:
    original = getattr(error, "original", None) or error
    return str(original) or type(original).__name__


class InteractionHandler:
    """Dispatches slash commands, context menus and components.

    Args:
        client: Gateway client owning the command tree.
        context: Bot context handed to the interaction modules.
        modules: Registration functions for the interaction modules.
        logger: Structured logger.
    """

    def __init__(
        self,
        client: discord.Client,
        context: BotContext,
        modules: Sequence[InteractionModule] = INTERACTION_MODULES,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self._tree: app_commands.CommandTree = client.tree  # type: ignore[attr-defined]
        self._context = context
        self._config = context.config
        self._modules = tuple(modules)
        self._logger = logger or get_logger(__name__)
        self._subscriptions = EventSubscriptions(client)  # type: ignore[arg-type]
        self.components = ComponentRouter()
        self._loaded = False

    @property
    def module_count(self) -> int:
        return len(self._modules) if self._loaded else 0

    async def initialize(self) -> None:
        """Load the interaction modules and subscribe to interaction events."""
        if not self._config.features.enable_slash_commands:
            self._logger.info("slash_commands_disabled")
            return

        if not self._loaded:
            for register in self._modules:
                register(self._tree, self.components, self._context)
            self._tree.bind(self.execute)  # type: ignore[attr-defined]
            self._loaded = True

        self._subscriptions.dispose()
        self._subscriptions.subscribe("interaction", self.on_interaction)
        self._subscriptions.subscribe("app_command_completion", self.on_app_command_completion)

        self._logger.info(
            "interaction_handler_initialized",
            modules=self.module_count,
            slash_commands=sum(
                1 for d in self.get_interactions() if d.kind is InteractionKind.SLASH_COMMAND
            ),
            components=len(self.components),
        )

    def close(self) -> None:
        """Unsubscribe from all events."""
        self._subscriptions.dispose()

    async def register_commands(self) -> None:
        """Publish the command definitions to Discord.

        Guild-scoped when ``discord.guild_id`` is set (visible immediately),
        global otherwise (may take up to an hour to propagate).
        """
        if not self._config.features.enable_slash_commands:
            self._logger.info("command_registration_skipped", reason="slash commands disabled")
            return

        guild_id = self._config.discord.guild_id
        try:
            if guild_id:
                guild = discord.Object(id=guild_id)
                self._tree.copy_global_to(guild=guild)
                synced = await self._tree.sync(guild=guild)
                self._logger.info("commands_registered", scope="guild", guild_id=guild_id, count=len(synced))
            else:
                synced = await self._tree.sync()
                self._logger.info(
                    "commands_registered",
                    scope="global",
                    count=len(synced),
                    msg="Global commands may take up to 1 hour to propagate",
                )
        except Exception:
            self._logger.exception("command_registration_failed", guild_id=guild_id)
            raise

    def get_interactions(self) -> list[InteractionDescriptor]:
        """Describe every registered slash command, context menu and component."""
        descriptors: list[InteractionDescriptor] = []
        for command in self._tree.walk_commands():
            if isinstance(command, app_commands.Command):
                descriptors.append(
                    InteractionDescriptor(
                        name=command.qualified_name,
                        description=command.description or None,
                        kind=InteractionKind.SLASH_COMMAND,
                    )
                )
        for command_type, kind in (
            (discord.AppCommandType.user, InteractionKind.USER_COMMAND),
            (discord.AppCommandType.message, InteractionKind.MESSAGE_COMMAND),
        ):
            for menu in self._tree.get_commands(type=command_type):
                descriptors.append(InteractionDescriptor(name=menu.name, description=None, kind=kind))
        for route in self.components:
            descriptors.append(InteractionDescriptor(name=route.pattern, description=None, kind=route.kind))
        return descriptors

    async def execute(
        self,
        interaction: discord.Interaction,
        invoke: Callable[[], Awaitable[None]],
    ) -> bool:
        """Run one interaction handler under the configured timeout.

        Failures are reported to the user as ephemeral notices and never
        propagate.

        Returns:
            True if the handler completed without error.
        """
        try:
            async with asyncio.timeout(self._config.command_timeout_seconds):
                await invoke()
        except TimeoutError:
            self._logger.warning(
                "interaction_timeout",
                interaction_id=interaction.id,
                name=interaction_name(interaction),
                timeout_ms=self._config.settings.command_timeout,
            )
            if not interaction.response.is_done():
                await self._send_notice(interaction, TIMEOUT_NOTICE)
            return False
        except Exception as exc:
            kind = interaction_kind(interaction)
            self._logger.error(
                "interaction_failed",
                interaction_id=interaction.id,
                kind=kind.value if kind is not None else None,
                name=interaction_name(interaction),
                error=_error_reason(exc),
                user=str(interaction.user),
                guild=interaction.guild.name if interaction.guild is not None else "DM",
                exc_info=exc,
            )
            await self._send_notice(interaction, ERROR_NOTICE)
            return False
        return True

    async def _send_notice(self, interaction: discord.Interaction, text: str) -> None:
        try:
            if not interaction.response.is_done():
                await interaction.response.send_message(text, ephemeral=True)
            else:
                await interaction.followup.send(text, ephemeral=True)
        except discord.HTTPException as exc:
            self._logger.error("interaction_notice_failed", interaction_id=interaction.id, error=str(exc))

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        """Route component and modal interactions to their registered handlers."""
        kind = interaction_kind(interaction)
        if kind not in (InteractionKind.BUTTON, InteractionKind.SELECT_MENU, InteractionKind.MODAL):
            return
        if not self._config.features.enable_interactions:
            return

        data: dict[str, Any] = interaction.data or {}  # type: ignore[assignment]
        custom_id = data.get("custom_id")
        if not custom_id:
            return
        matched = self.components.match(custom_id)
        if matched is None:
            # Unknown ids belong to persistent views or other listeners
            return

        route, captured = matched
        args = (*captured, *data.get("values", ()))
        invoke = functools.partial(route.callback, interaction, *args)
        if await self.execute(interaction, invoke):
            self._log_success(kind, custom_id, interaction)

    async def on_app_command_completion(
        self,
        interaction: discord.Interaction,
        command: app_commands.Command | app_commands.ContextMenu,
    ) -> None:
        kind = interaction_kind(interaction) or InteractionKind.SLASH_COMMAND
        self._log_success(kind, command.qualified_name, interaction)

    def _log_success(self, kind: InteractionKind, name: str, interaction: discord.Interaction) -> None:
        if not self._config.features.enable_command_logging:
            return
        self._logger.info(
            "interaction_executed",
            kind=kind.value,
            name=name,
            user=str(interaction.user),
            guild=interaction.guild.name if interaction.guild is not None else "DM",
            channel=getattr(interaction.channel, "name", None) or "Unknown",
        )
