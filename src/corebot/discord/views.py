"""Reusable Discord UI components (buttons, select menus)."""

from __future__ import annotations

import discord

from corebot.discord.formatting import title_case

HELP_BUTTON_PREFIX = "help_button:"
SETTINGS_MENU_ID = "settings_menu"

# Category -> summary shown in the help overview
HELP_CATEGORIES: dict[str, str] = {
    "general": "Basic bot commands and information",
    "moderation": "Server moderation tools (Admin only)",
    "fun": "Entertainment and game commands",
    "utility": "Useful tools and utilities",
}

# (label, value, description)
SETTINGS_OPTIONS: tuple[tuple[str, str, str], ...] = (
    ("Prefix", "prefix", "Change the command prefix"),
    ("Logging", "logging", "Configure logging settings"),
    ("Features", "features", "Toggle bot features"),
)


class InviteView(discord.ui.View):
    """Single link button pointing at the bot's OAuth2 invite URL.

    Args:
        url: Invite URL.
    """

    def __init__(self, url: str) -> None:
        super().__init__(timeout=None)
        self.add_item(
            discord.ui.Button(
                label="Invite Bot",
                style=discord.ButtonStyle.link,
                url=url,
                emoji="🔗",
            )
        )


class RoutedView(discord.ui.View):
    """Component container whose clicks are answered by the component router.

    The view is stopped once built, so discord.py does not keep it in its view
    store and the interaction event carries the click to the router instead.

    Args:
        items: Components to show.
    """

    def __init__(self, *items: discord.ui.Item) -> None:
        super().__init__(timeout=None)
        for item in items:
            self.add_item(item)
        self.stop()


class HelpCategoryView(RoutedView):
    """One button per help category (``help_button:<category>``)."""

    def __init__(self) -> None:
        super().__init__(
            *(
                discord.ui.Button(
                    label=title_case(category),
                    style=discord.ButtonStyle.secondary,
                    custom_id=f"{HELP_BUTTON_PREFIX}{category}",
                )
                for category in HELP_CATEGORIES
            )
        )


class SettingsMenuView(RoutedView):
    """Select menu listing the configurable setting categories."""

    def __init__(self) -> None:
        super().__init__(
            discord.ui.Select(
                custom_id=SETTINGS_MENU_ID,
                placeholder="Select a setting to configure",
                options=[
                    discord.SelectOption(label=label, value=value, description=description)
                    for label, value, description in SETTINGS_OPTIONS
                ],
            )
        )
