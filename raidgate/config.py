from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv


log = logging.getLogger(__name__)


DEFAULT_COOLDOWN_SECONDS = 86400  # 24 hours
DEFAULT_CLEANUP_INTERVAL_MINUTES = 10
DEFAULT_SAVE_INTERVAL_SEC = 30.0
LONG_COOLDOWN_WARNING_SEC = 604800  # 7 days
LOW_CLEANUP_WARNING_MINUTES = 5
MAX_COOLDOWN_SECONDS = 10 * 365 * 86400  # 10 years

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class CooldownSettings:
    cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS
    auto_cleanup: bool = True
    cleanup_interval_minutes: int = DEFAULT_CLEANUP_INTERVAL_MINUTES
    log_actions: bool = True
    save_interval_sec: float = DEFAULT_SAVE_INTERVAL_SEC
    bypass_role_ids: list[int] = field(default_factory=list)
    # Raw values as read, kept for validation warnings
    raw_cooldown_seconds: int | None = None
    raw_cleanup_interval_minutes: int | None = None

    @property
    def cleanup_interval_sec(self) -> float:
        """Seconds between cleanup sweeps; 0 means the sweeper is disabled."""
        if not self.auto_cleanup:
            return 0.0
        return float(self.cleanup_interval_minutes * 60)


@dataclass
class Config:
    discord_token: str
    db_path: str = "data/raidgate.db"
    log_level: str = "INFO"
    # Fast command sync to specific guilds (comma-separated IDs)
    command_guild_ids: list[int] | None = None
    cooldown: CooldownSettings = field(default_factory=CooldownSettings)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return raw.lower() in _TRUTHY


def _parse_id_list(raw: str) -> list[int]:
    ids: list[int] = []
    for part in raw.replace(";", ",").split(","):
        p = part.strip()
        if not p:
            continue
        try:
            ids.append(int(p))
        except ValueError:
            # ignore malformed entries
            log.debug("ignoring malformed id %r", p)
    return ids


def load_cooldown_settings(override: bool = False) -> CooldownSettings:
    """Read the cooldown settings from the environment (and .env).

    Raises RuntimeError when a numeric value cannot be parsed. Out-of-range
    values are clamped; validate_settings() reports them.
    """
    load_dotenv(override=override)

    cooldown = _env_int("RAID_COOLDOWN_SECONDS", DEFAULT_COOLDOWN_SECONDS)
    interval = _env_int("CLEANUP_INTERVAL_MINUTES", DEFAULT_CLEANUP_INTERVAL_MINUTES)
    save_interval = _env_float("SAVE_INTERVAL_SECONDS", DEFAULT_SAVE_INTERVAL_SEC)
    if save_interval <= 0:
        raise RuntimeError("SAVE_INTERVAL_SECONDS must be greater than 0")

    raw_cooldown = os.getenv("RAID_COOLDOWN_SECONDS", "").strip()
    raw_interval = os.getenv("CLEANUP_INTERVAL_MINUTES", "").strip()

    return CooldownSettings(
        cooldown_seconds=min(max(0, cooldown), MAX_COOLDOWN_SECONDS),
        auto_cleanup=_env_bool("AUTO_CLEANUP", True),
        cleanup_interval_minutes=interval if interval >= 0 else DEFAULT_CLEANUP_INTERVAL_MINUTES,
        log_actions=_env_bool("LOG_COOLDOWN_ACTIONS", True),
        save_interval_sec=save_interval,
        bypass_role_ids=_parse_id_list(os.getenv("BYPASS_ROLE_IDS", "")),
        raw_cooldown_seconds=cooldown if raw_cooldown else None,
        raw_cleanup_interval_minutes=interval if raw_interval else None,
    )


def validate_settings(settings: CooldownSettings) -> list[str]:
    """Return human-readable warnings about questionable settings."""
    warnings: list[str] = []

    raw = settings.raw_cooldown_seconds
    if raw is None:
        warnings.append(f"Missing 'RAID_COOLDOWN_SECONDS' - using default: {DEFAULT_COOLDOWN_SECONDS}")
    elif raw < 0:
        warnings.append("Invalid 'RAID_COOLDOWN_SECONDS' (negative value) - using 0")
    elif raw > MAX_COOLDOWN_SECONDS:
        warnings.append(f"'RAID_COOLDOWN_SECONDS' is above the maximum - using {MAX_COOLDOWN_SECONDS}")
    elif raw > LONG_COOLDOWN_WARNING_SEC:
        warnings.append(f"'RAID_COOLDOWN_SECONDS' is very high ({raw}s = {raw // 86400} days)")

    interval = settings.raw_cleanup_interval_minutes
    if interval is not None and interval < 0:
        warnings.append(
            f"Invalid 'CLEANUP_INTERVAL_MINUTES' (negative value) - using default: {DEFAULT_CLEANUP_INTERVAL_MINUTES}"
        )
    elif settings.auto_cleanup and settings.cleanup_interval_minutes == 0:
        log.info("Auto cleanup is configured but interval is 0 - cleanup will be disabled")
    elif 0 < settings.cleanup_interval_minutes < LOW_CLEANUP_WARNING_MINUTES:
        warnings.append(
            f"'CLEANUP_INTERVAL_MINUTES' is very low ({settings.cleanup_interval_minutes} minutes) - may impact performance"
        )

    return warnings


def log_settings_warnings(warnings: list[str]) -> None:
    if not warnings:
        log.info("Configuration validated successfully")
        return
    log.warning("=== Configuration Validation Warnings ===")
    for w in warnings:
        log.warning("  - %s", w)
    log.warning("=========================================")


def load_config() -> Config:
    load_dotenv(override=False)

    discord_token = os.getenv("DISCORD_TOKEN", "").strip()
    if not discord_token:
        raise RuntimeError("DISCORD_TOKEN is required in environment or .env")

    raw_guilds = os.getenv("COMMAND_GUILD_IDS", "").strip()
    guild_ids = _parse_id_list(raw_guilds) if raw_guilds else []

    # Handle db_path - use default if empty or whitespace
    db_path = os.getenv("RAIDGATE_DB_PATH", "").strip()
    if not db_path:
        db_path = "data/raidgate.db"

    log_level = os.getenv("LOG_LEVEL", "").strip()
    if not log_level:
        log_level = "INFO"

    return Config(
        discord_token=discord_token,
        db_path=db_path,
        log_level=log_level,
        command_guild_ids=guild_ids or None,
        cooldown=load_cooldown_settings(),
    )
