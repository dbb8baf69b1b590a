"""corebot entry point.

Assembles the gateway client, command handlers and lifecycle service from
configuration and runs the bot until interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

from corebot.config import BotConfiguration, load_config, parse_gateway_intents, require_token
from corebot.discord.client import GatewayClient
from corebot.discord.command_handler import CommandHandler
from corebot.discord.context import BotContext
from corebot.discord.interaction_handler import InteractionHandler
from corebot.discord.log_bridge import LogBridge
from corebot.discord.service import BotService
from corebot.logging import get_logger, setup_logging, shutdown_logging

LOG_LEVELS = ["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def build_client(config: BotConfiguration) -> GatewayClient:
    """Create the gateway client with configuration-derived options.

    Args:
        config: Bot configuration.

    Returns:
        Unconnected GatewayClient.
    """
    cache_size = config.discord.message_cache_size
    return GatewayClient(
        command_prefix=config.settings.command_prefix,
        intents=parse_gateway_intents(config.discord.gateway_intents),
        # discord.py treats 0 as its default of 1000; None disables the cache
        max_messages=cache_size if cache_size > 0 else None,
        chunk_guilds_at_startup=config.discord.always_download_users > 0,
    )


def build_service(config: BotConfiguration) -> BotService:
    """Wire the client, bot context, handlers and lifecycle service."""
    client = build_client(config)
    context = BotContext(config=config, client=client)
    command_handler = CommandHandler(
        client,
        context,
        logger=get_logger("corebot.discord.command_handler"),
    )
    interaction_handler = InteractionHandler(
        client,
        context,
        logger=get_logger("corebot.discord.interaction_handler"),
    )
    return BotService(
        client,
        config,
        command_handler,
        interaction_handler,
        logger=get_logger("corebot.discord.service"),
    )


async def run(
    config: BotConfiguration,
    service: BotService | None = None,
    shutdown_event: asyncio.Event | None = None,
) -> None:
    """Run the bot until a shutdown signal or the end of the gateway session.

    Args:
        config: Validated bot configuration.
        service: Lifecycle service to run (built from config by default).
        shutdown_event: Event that stops the bot when set (SIGINT/SIGTERM
            set it too).
    """
    logger = get_logger("main")
    bridge = LogBridge(get_logger("corebot.discord.library"))
    bridge.install()

    service = service or build_service(config)
    shutdown_event = shutdown_event or asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    try:
        await service.start()

        shutdown_waiter = asyncio.create_task(shutdown_event.wait())
        closed_waiter = asyncio.create_task(service.wait_closed())
        done, pending = await asyncio.wait(
            {shutdown_waiter, closed_waiter},
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if closed_waiter in done:
            # Re-raise a fatal gateway error
            closed_waiter.result()
            logger.warning("gateway_session_ended")

    finally:
        logger.info("bot_shutting_down")
        await service.stop()
        bridge.uninstall()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="corebot - Discord bot with prefix and slash commands",
    )
    parser.add_argument(
        "--config-dir",
        default="configs",
        help="Path to configuration directory (default: configs)",
    )
    parser.add_argument(
        "--environment",
        default=None,
        help="Configuration overlay to apply (default: $BOT_ENVIRONMENT or production)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Minimum log level override (default: from config)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    # Load configuration, with the log level override if specified
    overrides = {"logging": {"minimum_level": args.log_level}} if args.log_level is not None else None
    config = load_config(config_dir=args.config_dir, environment=args.environment, overrides=overrides)

    # Setup logging
    setup_logging(config.logging)
    logger = get_logger("main")

    try:
        require_token(config)
        asyncio.run(run(config))
    except Exception as exc:
        logger.critical("bot_terminated", error=str(exc) or type(exc).__name__, exc_info=exc)
        shutdown_logging()
        sys.exit(1)


if __name__ == "__main__":
    main()
