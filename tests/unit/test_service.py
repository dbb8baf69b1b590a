"""Unit tests for the bot lifecycle service."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from corebot.config import BotConfiguration
from corebot.discord.presence import BotStatus
from corebot.discord.service import RECONNECT_DELAY_SECONDS, BotService, ConnectionState
from corebot.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _no_token_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("BOT_DISCORD__TOKEN", raising=False)


async def _hang(*, reconnect: bool) -> None:
    """Stand-in for a gateway session that stays open until cancelled."""
    await asyncio.Event().wait()


def _make_config(token: str = "t0k3n", **features: bool) -> BotConfiguration:
    return BotConfiguration(discord={"token": token}, features=features)


def _make_client() -> MagicMock:
    """Create a mock GatewayClient whose session stays open."""
    client = MagicMock()
    client.login = AsyncMock()
    client.connect = AsyncMock(side_effect=_hang)
    client.close = AsyncMock()
    client.change_presence = AsyncMock()
    client.is_ready.return_value = False
    client.is_closed.return_value = False
    client.latency = 0.042
    client.guilds = []
    return client


def _make_service(
    config: BotConfiguration | None = None,
    client: MagicMock | None = None,
) -> tuple[BotService, MagicMock, MagicMock, MagicMock]:
    client = client or _make_client()
    command_handler = MagicMock(initialize=AsyncMock(), module_count=1)
    interaction_handler = MagicMock(
        initialize=AsyncMock(),
        register_commands=AsyncMock(),
        module_count=1,
    )
    logger = MagicMock()
    service = BotService(
        client,
        config or _make_config(),
        command_handler,
        interaction_handler,
        logger=logger,
        reconnect_delay=0,
    )
    return service, client, interaction_handler, logger


async def _wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


def _events(mock_method: MagicMock) -> list[str]:
    return [c.args[0] for c in mock_method.call_args_list]


def _http_error() -> discord.HTTPException:
    return discord.HTTPException(MagicMock(status=503, reason="Service Unavailable"), "unavailable")


# ---------------------------------------------------------------------------
# start / stop
# ---------------------------------------------------------------------------


class TestStart:
    """Tests for bringing the gateway connection up."""

    async def test_start_logs_in_and_connects(self) -> None:
        service, client, interaction_handler, _ = _make_service()

        await service.start()
        await _wait_for(lambda: client.connect.await_count == 1)

        client.login.assert_awaited_once_with("t0k3n")
        client.connect.assert_awaited_once_with(reconnect=True)
        interaction_handler.initialize.assert_awaited_once()
        assert service.state is ConnectionState.CONNECTING
        assert service.is_connected is False

        await service.stop()

    async def test_concurrent_start_logs_in_once(self) -> None:
        service, client, _, logger = _make_service()

        await asyncio.gather(service.start(), service.start())

        client.login.assert_awaited_once()
        assert "bot_already_running" in _events(logger.warning)

        await service.stop()

    async def test_missing_token_raises(self) -> None:
        service, client, _, _ = _make_service(_make_config(token=""))

        with pytest.raises(ConfigurationError):
            await service.start()

        client.login.assert_not_awaited()
        client.add_listener.assert_not_called()
        assert service.state is ConnectionState.DISCONNECTED

    async def test_login_failure_releases_everything(self) -> None:
        service, client, interaction_handler, _ = _make_service()
        client.login.side_effect = discord.LoginFailure("Improper token has been passed.")

        with pytest.raises(discord.LoginFailure):
            await service.start()

        client.close.assert_awaited_once()
        interaction_handler.close.assert_called_once()
        # Every gateway event subscribed by start is removed again
        assert client.remove_listener.call_count == client.add_listener.call_count == 5
        assert service.state is ConnectionState.DISCONNECTED

    async def test_restart_after_close_clears_client(self) -> None:
        service, client, _, _ = _make_service()
        client.is_closed.return_value = True

        await service.start()

        client.clear.assert_called_once()
        await service.stop()


class TestStop:
    async def test_stop_when_not_running_warns(self) -> None:
        service, client, _, logger = _make_service()

        await service.stop()

        assert _events(logger.warning) == ["bot_not_running"]
        client.close.assert_not_awaited()

    async def test_stop_goes_offline_and_closes(self) -> None:
        service, client, interaction_handler, _ = _make_service()
        await service.start()
        client.is_ready.return_value = True
        task = service._gateway_task

        await service.stop()

        client.change_presence.assert_awaited_once_with(status=discord.Status.offline)
        client.close.assert_awaited_once()
        interaction_handler.close.assert_called_once()
        assert task.cancelled()

    async def test_stop_survives_presence_failure(self) -> None:
        service, client, _, logger = _make_service()
        await service.start()
        client.is_ready.return_value = True
        client.change_presence.side_effect = _http_error()

        await service.stop()

        client.close.assert_awaited_once()
        assert "offline_presence_failed" in _events(logger.warning)

    async def test_stop_while_connecting_skips_presence(self) -> None:
        service, client, _, _ = _make_service()
        await service.start()

        await service.stop()

        client.change_presence.assert_not_awaited()
        client.close.assert_awaited_once()


# ---------------------------------------------------------------------------
# Presence and state
# ---------------------------------------------------------------------------


class TestPresence:
    async def test_set_activity_when_connected(self) -> None:
        service, client, _, _ = _make_service()
        client.is_ready.return_value = True

        await service.set_activity("maintenance", BotStatus.DO_NOT_DISTURB)

        kwargs = client.change_presence.call_args.kwargs
        assert isinstance(kwargs["activity"], discord.Game)
        assert kwargs["activity"].name == "maintenance"
        assert kwargs["status"] is discord.Status.dnd

    async def test_set_activity_defaults_to_online(self) -> None:
        service, client, _, _ = _make_service()
        client.is_ready.return_value = True

        await service.set_activity("hello")

        assert client.change_presence.call_args.kwargs["status"] is discord.Status.online

    async def test_set_activity_when_disconnected_warns(self) -> None:
        service, client, _, logger = _make_service()

        await service.set_activity("hello")

        client.change_presence.assert_not_awaited()
        assert _events(logger.warning) == ["set_activity_skipped"]

    def test_latency_and_guilds(self) -> None:
        service, client, _, _ = _make_service()
        client.guilds = [MagicMock(), MagicMock()]
        assert service.latency == 42
        assert service.guild_count == 2

    def test_latency_before_heartbeat(self) -> None:
        service, client, _, _ = _make_service()
        client.latency = float("nan")
        assert service.latency == 0

    def test_connected_state(self) -> None:
        service, client, _, _ = _make_service()
        client.is_ready.return_value = True
        assert service.state is ConnectionState.CONNECTED
        client.is_closed.return_value = True
        assert service.state is ConnectionState.DISCONNECTED

    def test_default_reconnect_delay(self) -> None:
        assert RECONNECT_DELAY_SECONDS == 5.0


# ---------------------------------------------------------------------------
# Reconnect
# ---------------------------------------------------------------------------


class TestReconnect:
    """Tests for the single reconnect attempt after an unexpected drop."""

    async def test_reconnects_once_after_drop(self) -> None:
        service, client, _, logger = _make_service()
        calls: list[bool] = []

        async def _connect(*, reconnect: bool) -> None:
            calls.append(reconnect)
            if len(calls) == 1:
                # discord.py gave up on the session without an error
                return
            await _hang(reconnect=reconnect)

        client.connect.side_effect = _connect

        await service.start()
        await _wait_for(lambda: len(calls) == 2)

        assert calls == [True, True]
        assert client.login.await_count == 2
        client.clear.assert_called_once()
        assert "gateway_connection_lost" in _events(logger.warning)
        assert "reconnect_started" in _events(logger.info)
        assert service.state is ConnectionState.CONNECTING

        await service.stop()

    async def test_failed_reconnect_login_is_not_retried(self) -> None:
        service, client, _, logger = _make_service()
        client.connect.side_effect = OSError("connection reset")
        client.login.side_effect = [None, discord.LoginFailure("token revoked")]

        await service.start()
        await asyncio.wait_for(service.wait_closed(), 1)

        assert client.login.await_count == 2
        assert client.connect.await_count == 1
        assert "reconnect_failed" in _events(logger.error)
        client.close.assert_awaited_once()
        assert service.state is ConnectionState.DISCONNECTED

    async def test_reconnect_session_failing_before_ready_is_not_retried(self) -> None:
        service, client, _, logger = _make_service()
        client.connect.side_effect = OSError("connection refused")

        await service.start()
        await asyncio.wait_for(service.wait_closed(), 1)

        assert client.connect.await_count == 2
        assert client.login.await_count == 2
        assert _events(logger.error) == ["reconnect_failed"]

    async def test_ready_reconnect_session_may_reconnect_again(self) -> None:
        service, client, _, _ = _make_service()
        client.user = MagicMock(id=1)
        calls: list[bool] = []

        async def _connect(*, reconnect: bool) -> None:
            calls.append(reconnect)
            if len(calls) == 2:
                await service._on_ready()
            if len(calls) < 3:
                raise OSError("connection reset")
            await _hang(reconnect=reconnect)

        client.connect.side_effect = _connect

        await service.start()
        await _wait_for(lambda: len(calls) == 3)

        assert client.login.await_count == 3
        await service.stop()

    async def test_auto_reconnect_disabled(self) -> None:
        service, client, _, logger = _make_service(_make_config(enable_auto_reconnect=False))
        client.connect.side_effect = OSError("connection reset")

        await service.start()
        await asyncio.wait_for(service.wait_closed(), 1)

        client.login.assert_awaited_once()
        assert "auto_reconnect_disabled" in _events(logger.info)

    async def test_no_reconnect_after_stop(self) -> None:
        service, client, _, _ = _make_service()

        await service.start()
        await service.stop()

        client.login.assert_awaited_once()
        client.clear.assert_not_called()

    async def test_privileged_intents_error_is_raised(self) -> None:
        service, client, _, _ = _make_service()
        client.connect.side_effect = discord.PrivilegedIntentsRequired(None)

        await service.start()

        with pytest.raises(discord.PrivilegedIntentsRequired):
            await asyncio.wait_for(service.wait_closed(), 1)
        client.login.assert_awaited_once()
        client.close.assert_awaited_once()

    @pytest.mark.parametrize("code", [4004, 4010, 4011, 4012, 4013, 4014])
    async def test_fatal_close_code_is_raised_without_retry(self, code: int) -> None:
        service, client, _, logger = _make_service()
        client.connect.side_effect = discord.ConnectionClosed(MagicMock(close_code=code), shard_id=None, code=code)

        await service.start()

        with pytest.raises(discord.ConnectionClosed) as exc_info:
            await asyncio.wait_for(service.wait_closed(), 1)

        assert exc_info.value.code == code
        client.login.assert_awaited_once()
        client.connect.assert_awaited_once_with(reconnect=True)
        client.clear.assert_not_called()
        client.close.assert_awaited_once()
        assert _events(logger.error) == ["gateway_closed"]
        assert service.state is ConnectionState.DISCONNECTED

    async def test_recoverable_close_code_reconnects_once(self) -> None:
        service, client, _, logger = _make_service()
        calls: list[bool] = []

        async def _connect(*, reconnect: bool) -> None:
            calls.append(reconnect)
            if len(calls) == 1:
                raise discord.ConnectionClosed(MagicMock(close_code=1006), shard_id=None, code=1006)
            await _hang(reconnect=reconnect)

        client.connect.side_effect = _connect

        await service.start()
        await _wait_for(lambda: len(calls) == 2)

        assert client.login.await_count == 2
        assert "gateway_connection_lost" in _events(logger.warning)

        await service.stop()

    async def test_wait_closed_without_start(self) -> None:
        service, _, _, _ = _make_service()
        await service.wait_closed()


# ---------------------------------------------------------------------------
# Lifecycle events
# ---------------------------------------------------------------------------


class TestOnReady:
    """Tests for the ready event handler."""

    def _prepare(self, client: MagicMock) -> None:
        client.user = MagicMock(id=99)
        client.guilds = [
            MagicMock(member_count=10, channels=[1, 2, 3]),
            MagicMock(member_count=None, channels=[4]),
        ]

    async def test_sets_configured_activity(self) -> None:
        config = BotConfiguration(
            discord={"token": "t"},
            settings={"activity": {"type": "Watching", "name": "the server"}},
        )
        service, client, _, _ = _make_service(config)
        self._prepare(client)

        await service._on_ready()

        kwargs = client.change_presence.call_args.kwargs
        assert kwargs["status"] is discord.Status.online
        assert kwargs["activity"].type is discord.ActivityType.watching
        assert kwargs["activity"].name == "the server"

    async def test_registers_commands_once(self) -> None:
        service, client, interaction_handler, _ = _make_service()
        self._prepare(client)

        await service._on_ready()
        await service._on_ready()

        interaction_handler.register_commands.assert_awaited_once()

    async def test_registration_retried_after_http_error(self) -> None:
        service, client, interaction_handler, logger = _make_service()
        self._prepare(client)
        interaction_handler.register_commands.side_effect = [_http_error(), None]

        await service._on_ready()
        await service._on_ready()
        await service._on_ready()

        assert interaction_handler.register_commands.await_count == 2
        assert "command_registration_retry_on_next_ready" in _events(logger.warning)

    async def test_logs_statistics(self) -> None:
        service, client, _, logger = _make_service()
        self._prepare(client)

        await service._on_ready()

        stats = next(c for c in logger.info.call_args_list if c.args[0] == "bot_statistics")
        assert stats.kwargs["guilds"] == 2
        assert stats.kwargs["users"] == 10
        assert stats.kwargs["channels"] == 4
        assert stats.kwargs["command_modules"] == 1

    async def test_guild_events_logged(self) -> None:
        service, _, _, logger = _make_service()
        guild = MagicMock(id=7, member_count=3)
        guild.name = "Test Guild"

        await service._on_guild_join(guild)
        await service._on_guild_remove(guild)

        assert _events(logger.info) == ["guild_joined", "guild_left"]
        assert logger.info.call_args.kwargs["guild"] == "Test Guild"
