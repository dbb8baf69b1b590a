"""Bot lifecycle: start/stop, presence and the one-shot reconnect.

``BotService`` owns the single gateway client of the process. Start and stop
are serialized by one lock; command handlers only read connection state
through :class:`~corebot.discord.context.BotContext`.
"""

from __future__ import annotations

import asyncio
from enum import Enum

import aiohttp
import discord
import structlog
from discord.ext import commands

from corebot.config import BotConfiguration, require_token
from corebot.discord.command_handler import CommandHandler
from corebot.discord.context import gateway_latency_ms
from corebot.discord.events import EventSubscriptions
from corebot.discord.interaction_handler import InteractionHandler
from corebot.discord.presence import BotStatus, build_activity, to_discord_status
from corebot.logging import get_logger

RECONNECT_DELAY_SECONDS = 5.0

# Errors discord.py raises when it gives up on a gateway session
CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    discord.HTTPException,
    discord.GatewayNotFound,
    discord.ConnectionClosed,
    aiohttp.ClientError,
    TimeoutError,
)

# Gateway close codes a new session cannot recover from: authentication
# failed, invalid shard, sharding required, invalid API version, invalid or
# disallowed intents
FATAL_CLOSE_CODES = frozenset({4004, 4010, 4011, 4012, 4013, 4014})


def is_fatal_close(error: BaseException) -> bool:
    """Return True if ``error`` is a gateway close that must not be retried."""
    return isinstance(error, discord.ConnectionClosed) and error.code in FATAL_CLOSE_CODES


class ConnectionState(str, Enum):
    """Gateway connection state as seen by the service."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class BotService:
    """Owns the gateway client and its connection lifecycle.

    Args:
        client: The gateway client.
        config: Bot configuration.
        command_handler: Prefix command handler.
        interaction_handler: Slash command and component handler.
        logger: Structured logger.
        reconnect_delay: Seconds to wait before the reconnect attempt.
    """

    def __init__(
        self,
        client: commands.Bot,
        config: BotConfiguration,
        command_handler: CommandHandler,
        interaction_handler: InteractionHandler,
        logger: structlog.stdlib.BoundLogger | None = None,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
    ) -> None:
        self._client = client
        self._config = config
        self._command_handler = command_handler
        self._interaction_handler = interaction_handler
        self._logger = logger or get_logger(__name__)
        self._reconnect_delay = reconnect_delay

        self._lock = asyncio.Lock()
        self._subscriptions = EventSubscriptions(client)
        self._gateway_task: asyncio.Task[None] | None = None
        self._stopping = False
        self._session_ready = False
        self._commands_registered = False

    # --- Properties ---

    @property
    def state(self) -> ConnectionState:
        if self._client.is_ready() and not self._client.is_closed():
            return ConnectionState.CONNECTED
        if self._gateway_task is not None and not self._gateway_task.done():
            return ConnectionState.CONNECTING
        return ConnectionState.DISCONNECTED

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def latency(self) -> int:
        """Gateway heartbeat latency in milliseconds."""
        return gateway_latency_ms(self._client)

    @property
    def guild_count(self) -> int:
        return len(self._client.guilds)

    # --- Lifecycle ---

    async def start(self) -> None:
        """Initialize the handlers, log in and open the gateway connection.

        The connection runs in a background task; use :meth:`wait_closed` to
        wait for it to end.

        Raises:
            ConfigurationError: If no token is configured.
            discord.LoginFailure: If Discord rejects the token.
        """
        async with self._lock:
            if self.state is not ConnectionState.DISCONNECTED:
                self._logger.warning("bot_already_running", state=self.state.value)
                return

            token = require_token(self._config)
            self._stopping = False
            self._logger.info("bot_starting")

            self._subscriptions.subscribe("ready", self._on_ready)
            self._subscriptions.subscribe("connect", self._on_connect)
            self._subscriptions.subscribe("disconnect", self._on_disconnect)
            self._subscriptions.subscribe("guild_join", self._on_guild_join)
            self._subscriptions.subscribe("guild_remove", self._on_guild_remove)

            try:
                await asyncio.gather(
                    self._command_handler.initialize(),
                    self._interaction_handler.initialize(),
                )
                if self._client.is_closed():
                    self._client.clear()
                await self._client.login(token)
            except Exception:
                self._release_subscriptions()
                await self._client.close()
                raise

            self._gateway_task = asyncio.create_task(self._run_gateway(), name="discord-gateway")
            self._logger.info("bot_started")

    async def stop(self) -> None:
        """Go offline, close the connection and release all subscriptions."""
        async with self._lock:
            if self.state is ConnectionState.DISCONNECTED:
                self._logger.warning("bot_not_running")
                return

            self._stopping = True
            self._logger.info("bot_stopping")
            self._release_subscriptions()

            if self.is_connected:
                try:
                    await self._client.change_presence(status=discord.Status.offline)
                except CONNECTION_ERRORS as exc:
                    self._logger.warning("offline_presence_failed", error=str(exc))

            await self._client.close()

            task = self._gateway_task
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            self._logger.info("bot_stopped")

    async def wait_closed(self) -> None:
        """Wait until the gateway connection ends for good.

        Follows the replacement task when a reconnect starts one, and
        re-raises a fatal error the gateway task ended with.
        """
        task = self._gateway_task
        while task is not None:
            await asyncio.wait({task})
            if self._gateway_task is task:
                break
            task = self._gateway_task

        if task is not None and not task.cancelled():
            error = task.exception()
            if error is not None:
                raise error

    async def set_activity(self, text: str, status: BotStatus = BotStatus.ONLINE) -> None:
        """Update the presence text and online status."""
        if not self.is_connected:
            self._logger.warning("set_activity_skipped", reason="not connected")
            return
        await self._client.change_presence(
            activity=discord.Game(name=text),
            status=to_discord_status(status),
        )
        self._logger.info("activity_updated", activity=text, status=status.value)

    def _release_subscriptions(self) -> None:
        self._subscriptions.dispose()
        self._command_handler.close()
        self._interaction_handler.close()

    # --- Gateway connection ---

    async def _run_gateway(self, reconnect_attempt: bool = False) -> None:
        """Run one gateway session and handle its unexpected end.

        discord.py resumes or reconnects dropped sessions on its own; this
        returns only once the library gives up. Fatal close codes are
        re-raised. A session opened by the reconnect attempt that ends before
        reaching ready counts as a failed attempt and is not retried.
        """
        self._session_ready = False
        error: BaseException | None = None
        try:
            await self._client.connect(reconnect=True)
        except CONNECTION_ERRORS as exc:
            if is_fatal_close(exc) and not self._stopping:
                self._logger.error("gateway_closed", code=exc.code)
                await self._client.close()
                raise
            error = exc
        except discord.PrivilegedIntentsRequired:
            await self._client.close()
            raise

        if self._stopping:
            return

        reason = (str(error) or type(error).__name__) if error is not None else None
        if reconnect_attempt and not self._session_ready:
            self._logger.error("reconnect_failed", error=reason)
            return

        self._logger.warning("gateway_connection_lost", error=reason)
        if not self._config.features.enable_auto_reconnect:
            self._logger.info("auto_reconnect_disabled")
            return
        await self._reconnect_once()

    async def _reconnect_once(self) -> None:
        """Reopen the connection a single time after a fixed delay."""
        self._logger.info("reconnect_scheduled", delay_s=self._reconnect_delay)
        await asyncio.sleep(self._reconnect_delay)
        if self._stopping:
            return

        try:
            self._client.clear()
            await self._client.login(require_token(self._config))
        except (discord.DiscordException, *CONNECTION_ERRORS) as exc:
            self._logger.error("reconnect_failed", error=str(exc) or type(exc).__name__)
            await self._client.close()
            return

        self._gateway_task = asyncio.create_task(
            self._run_gateway(reconnect_attempt=True),
            name="discord-gateway",
        )
        self._logger.info("reconnect_started")

    # --- Lifecycle events ---

    async def _on_ready(self) -> None:
        self._session_ready = True
        user = self._client.user
        self._logger.info("bot_ready", user=str(user), user_id=user.id if user is not None else None)

        await self._client.change_presence(
            activity=build_activity(self._config.settings.activity),
            status=discord.Status.online,
        )

        if not self._commands_registered:
            try:
                await self._interaction_handler.register_commands()
            except discord.HTTPException:
                self._logger.warning("command_registration_retry_on_next_ready")
            else:
                self._commands_registered = True

        guilds = self._client.guilds
        self._logger.info(
            "bot_statistics",
            guilds=len(guilds),
            users=sum(guild.member_count or 0 for guild in guilds),
            channels=sum(len(guild.channels) for guild in guilds),
            command_modules=self._command_handler.module_count,
            interaction_modules=self._interaction_handler.module_count,
        )

    async def _on_connect(self) -> None:
        self._logger.info("gateway_connected")

    async def _on_disconnect(self) -> None:
        self._logger.warning("gateway_disconnected")

    async def _on_guild_join(self, guild: discord.Guild) -> None:
        self._logger.info("guild_joined", guild=guild.name, guild_id=guild.id, members=guild.member_count)

    async def _on_guild_remove(self, guild: discord.Guild) -> None:
        self._logger.info("guild_left", guild=guild.name, guild_id=guild.id)
