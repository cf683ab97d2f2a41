"""User-facing text for raid commands."""
from __future__ import annotations

import math


MESSAGES: dict[str, str] = {
    "raid_started": "⚔️ **{player}** started a raid! Next raid available in {time}.",
    "raid_started_bypass": "⚔️ **{player}** started a raid!",
    "raid_blocked": "You must wait **{time}** before starting another raid.",
    "cooldown_remaining_self": "Your raid cooldown: **{time}** remaining.",
    "cooldown_remaining_other": "{player}'s raid cooldown: **{time}** remaining.",
    "raid_available_self": "You can start a raid now!",
    "raid_available_other": "{player} can start a raid now.",
    "reset_cooldown": "Reset the raid cooldown for {player}.",
    "reset_notification": "Your raid cooldown has been reset by an administrator.",
    "guild_only": "This command must be used in a guild.",
    "reload_success": "Configuration reloaded. Settings removed from .env keep their old value until restart.",
    "reload_error": "Configuration reload failed: {error}",
    "info": (
        "**Raid Cooldown Info**\n"
        "Active cooldowns: {count}\n"
        "Cooldown duration: {duration}\n"
        "Pending writes: {pending}\n"
        "Config valid: {valid}"
    ),
}


def format_duration(seconds: float) -> str:
    """Render a remaining duration as e.g. '1h 5m 3s'.

    Fractions round up so a cooldown with 0.2s left still reads '1s'.
    """
    if seconds <= 0:
        return "0s"
    total = math.ceil(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    parts: list[str] = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def render(key: str, **placeholders: object) -> str:
    template = MESSAGES.get(key)
    if template is None:
        return f"Message not found: {key}"
    return template.format(**placeholders)
