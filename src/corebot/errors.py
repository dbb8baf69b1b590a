"""Exception types raised by CoreBot."""

from __future__ import annotations


class CoreBotError(Exception):
    """Base class for CoreBot errors."""


class ConfigurationError(CoreBotError):
    """Raised when required configuration is missing or invalid."""
