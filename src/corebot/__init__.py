"""CoreBot - Discord bot host built on discord.py."""

__version__ = "1.0.0"
