from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from ..config import CooldownSettings, load_cooldown_settings, log_settings_warnings, validate_settings
from .cooldowns import CooldownManager


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CooldownStatus:
    actor_id: int
    remaining: float

    @property
    def available(self) -> bool:
        return self.remaining <= 0


@dataclass
class ReloadResult:
    ok: bool
    error: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class GateInfo:
    active_count: int
    tracked_count: int
    pending_writes: int
    cooldown_seconds: int
    config_valid: bool
    warnings: list[str] = field(default_factory=list)


def resolve_bypass(member: Any, bypass_role_ids: Iterable[int] = ()) -> bool:
    """Whether a guild member skips the raid cooldown.

    Administrators always bypass; otherwise any role listed in
    bypass_role_ids grants it. Non-members (DMs) never bypass.
    """
    perms = getattr(member, "guild_permissions", None)
    if perms is not None and getattr(perms, "administrator", False):
        return True
    wanted = set(bypass_role_ids)
    if not wanted:
        return False
    for role in getattr(member, "roles", None) or []:
        if getattr(role, "id", None) in wanted:
            return True
    return False


class RaidGate:
    """What the Discord layer is allowed to do with the cooldown engine."""

    def __init__(self, cooldowns: CooldownManager) -> None:
        self.cooldowns = cooldowns

    @property
    def settings(self) -> CooldownSettings:
        return self.cooldowns.settings

    def attempt_trigger(self, actor_id: int, bypass: bool = False) -> bool:
        return bool(self.cooldowns.try_reserve(actor_id, bypass=bypass))

    def query_status(self, actor_id: int) -> CooldownStatus:
        return CooldownStatus(actor_id=actor_id, remaining=self.cooldowns.remaining(actor_id))

    def reset(self, actor_id: int) -> bool:
        return self.cooldowns.clear(actor_id)

    def active_count(self) -> int:
        return self.cooldowns.active_count()

    def reload(self, loader: Callable[..., CooldownSettings] = load_cooldown_settings) -> ReloadResult:
        """Re-read the cooldown settings; the current ones stay if that fails.

        Values in .env override the process environment, but a variable that
        was deleted from .env keeps its previous value until restart, since
        python-dotenv only sets variables and never unsets them.
        """
        try:
            settings = loader(override=True)
        except RuntimeError as e:
            log.warning("Configuration reload failed: %s", e)
            return ReloadResult(ok=False, error=str(e))
        warnings = validate_settings(settings)
        log_settings_warnings(warnings)
        self.cooldowns.apply_settings(settings)
        log.info("Configuration reloaded successfully (cooldown=%ss)", settings.cooldown_seconds)
        return ReloadResult(ok=True, warnings=warnings)

    def info(self) -> GateInfo:
        warnings = validate_settings(self.settings)
        return GateInfo(
            active_count=self.cooldowns.active_count(),
            tracked_count=self.cooldowns.tracked_count(),
            pending_writes=self.cooldowns.pending_writes(),
            cooldown_seconds=self.settings.cooldown_seconds,
            config_valid=not warnings,
            warnings=warnings,
        )
