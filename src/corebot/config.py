"""Configuration management with Pydantic Settings and YAML loading."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import discord
import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from corebot.errors import ConfigurationError

DEFAULT_ENVIRONMENT = "production"
ENVIRONMENT_VARIABLE = "BOT_ENVIRONMENT"


# --- Sub-config models ---


class DiscordSettings(BaseModel):
    """Discord API and gateway connection settings."""

    token: str = ""
    guild_id: int | None = None
    message_cache_size: int = 100
    always_download_users: int = 250
    gateway_intents: str = "AllUnprivileged"


class ActivitySettings(BaseModel):
    """Presence shown once the bot is ready.

    ``type`` is one of Playing, Streaming, Listening, Watching, Competing.
    ``stream_url`` is only used with Streaming.
    """

    type: str = "Playing"
    name: str = "with discord.py"
    stream_url: str | None = None


class BotSettings(BaseModel):
    """General bot behaviour."""

    command_prefix: str = "!"
    activity: ActivitySettings = Field(default_factory=ActivitySettings)
    command_timeout: int = 3000


class FeatureSettings(BaseModel):
    """Feature toggles."""

    enable_slash_commands: bool = True
    enable_prefix_commands: bool = True
    enable_interactions: bool = True
    enable_auto_reconnect: bool = True
    enable_command_logging: bool = True


class LoggingSettings(BaseModel):
    """Log sinks and verbosity."""

    minimum_level: str = "INFO"
    enable_console_logging: bool = True
    enable_file_logging: bool = True
    log_file_path: str = "logs/bot.log"
    retained_file_count_limit: int = 7
    json_format: bool = False


# --- Main config ---


class BotConfiguration(BaseSettings):
    """Bot configuration.

    Loads from YAML files, with environment variable overrides
    (``BOT_DISCORD__TOKEN``, ``BOT_SETTINGS__COMMAND_PREFIX``, ...).
    """

    model_config = SettingsConfigDict(
        env_prefix="BOT_",
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Environment variables override YAML (init) values."""
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    settings: BotSettings = Field(default_factory=BotSettings)
    features: FeatureSettings = Field(default_factory=FeatureSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def command_timeout_seconds(self) -> float:
        """Command timeout converted from milliseconds."""
        return self.settings.command_timeout / 1000.0


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict."""
    with open(path) as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries. Override values take precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(
    config_dir: str | Path = "configs",
    config_file: str = "default.yaml",
    environment: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> BotConfiguration:
    """Load bot configuration from YAML files with env var overrides.

    The base file is read first, then ``{environment}.yaml`` is deep-merged
    on top of it. Both files are optional. ``overrides`` (command-line
    values) are merged last, so only environment variables take precedence
    over them.

    Args:
        config_dir: Path to the configuration directory.
        config_file: Name of the base config YAML file.
        environment: Overlay name. Defaults to ``$BOT_ENVIRONMENT`` or "production".
        overrides: Nested values applied on top of the YAML files.

    Returns:
        Validated BotConfiguration instance.
    """
    config_path = Path(config_dir)
    environment = environment or os.environ.get(ENVIRONMENT_VARIABLE, DEFAULT_ENVIRONMENT)

    raw: dict[str, Any] = {}
    main_config_path = config_path / config_file
    if main_config_path.exists():
        raw = _load_yaml(main_config_path)

    overlay_path = config_path / f"{environment}.yaml"
    if overlay_path.exists() and overlay_path != main_config_path:
        raw = _deep_merge(raw, _load_yaml(overlay_path))

    if overrides:
        raw = _deep_merge(raw, overrides)

    # Pydantic Settings will automatically apply env var overrides
    return BotConfiguration(**raw)


def require_token(config: BotConfiguration) -> str:
    """Return the bot token, failing loudly when it is not configured."""
    token = config.discord.token.strip()
    if not token:
        raise ConfigurationError(
            "Discord bot token is not configured (set discord.token or BOT_DISCORD__TOKEN)"
        )
    return token


# --- Gateway intents ---

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

# Discord API / .NET style names that differ from discord.py flag names
_INTENT_ALIASES: dict[str, str] = {
    "guild_members": "members",
    "guild_bans": "moderation",
    "guild_moderation": "moderation",
    "guild_emojis": "emojis_and_stickers",
    "guild_emojis_and_stickers": "emojis_and_stickers",
    "guild_integrations": "integrations",
    "guild_webhooks": "webhooks",
    "guild_invites": "invites",
    "guild_voice_states": "voice_states",
    "guild_presences": "presences",
    "guild_message_reactions": "guild_reactions",
    "guild_message_typing": "guild_typing",
    "direct_messages": "dm_messages",
    "direct_message_reactions": "dm_reactions",
    "direct_message_typing": "dm_typing",
    "auto_moderation_action_execution": "auto_moderation_execution",
}


def _intent_value(name: str) -> int | None:
    """Resolve one intent name to its bit value, or None if unknown."""
    key = _CAMEL_BOUNDARY.sub("_", name.strip()).lower()
    key = _INTENT_ALIASES.get(key, key)
    if key == "all":
        return discord.Intents.all().value
    if key == "all_unprivileged":
        return discord.Intents.default().value
    if key == "none":
        return 0
    return discord.Intents.VALID_FLAGS.get(key)


def parse_gateway_intents(value: str | None) -> discord.Intents:
    """Parse a configured intent string into discord.py Intents.

    Accepts a single name or a comma-separated list, in PascalCase
    (``GuildMessages``) or snake_case (``guild_messages``). Unknown names are
    skipped. Empty input, or input with no usable names, yields
    ``Intents.default()`` (all unprivileged intents).

    Args:
        value: Raw configuration value.

    Returns:
        Intents with the union of the named flags.
    """
    if value is None or not value.strip():
        return discord.Intents.default()

    combined = 0
    for part in value.split(","):
        if not part.strip():
            continue
        flag = _intent_value(part)
        if flag is not None:
            combined |= flag

    if combined == 0:
        return discord.Intents.default()

    intents = discord.Intents.none()
    intents.value = combined
    return intents
