"""Tests for the host-facing RaidGate boundary."""
from types import SimpleNamespace

import pytest

from raidgate.config import CooldownSettings
from raidgate.services.cooldowns import CooldownManager
from raidgate.services.gate import RaidGate, resolve_bypass


def _member(admin: bool = False, role_ids=()):
    return SimpleNamespace(
        guild_permissions=SimpleNamespace(administrator=admin),
        roles=[SimpleNamespace(id=r) for r in role_ids],
    )


@pytest.fixture
async def gate(store, settings, clock):
    manager = await CooldownManager.create(store, settings, clock=clock)
    return RaidGate(manager)


class TestResolveBypass:
    def test_administrator_bypasses(self):
        assert resolve_bypass(_member(admin=True)) is True

    def test_bypass_role(self):
        assert resolve_bypass(_member(role_ids=[1, 55]), [55]) is True

    def test_regular_member(self):
        assert resolve_bypass(_member(role_ids=[1, 2]), [55]) is False
        assert resolve_bypass(_member(role_ids=[1, 2])) is False

    def test_non_member_user(self):
        assert resolve_bypass(SimpleNamespace(id=1), [55]) is False


class TestRaidGate:
    @pytest.mark.asyncio
    async def test_attempt_trigger(self, gate):
        assert gate.attempt_trigger(1) is True
        assert gate.attempt_trigger(1) is False
        assert gate.attempt_trigger(1, bypass=True) is True

    @pytest.mark.asyncio
    async def test_query_status(self, gate, clock):
        status = gate.query_status(1)
        assert status.available is True
        assert status.remaining == 0

        gate.attempt_trigger(1)
        clock.advance(3)
        status = gate.query_status(1)
        assert status.available is False
        assert status.remaining == pytest.approx(7)

    @pytest.mark.asyncio
    async def test_reset_twice_never_errors(self, gate):
        gate.attempt_trigger(1)

        assert gate.reset(1) is True
        assert gate.query_status(1).remaining == 0
        assert gate.reset(1) is False
        assert gate.query_status(1).remaining == 0

    @pytest.mark.asyncio
    async def test_active_count(self, gate, clock):
        gate.attempt_trigger(1)
        gate.attempt_trigger(2)
        assert gate.active_count() == 2

        clock.advance(11)
        assert gate.active_count() == 0

    @pytest.mark.asyncio
    async def test_reload_success_keeps_ledger(self, gate):
        gate.attempt_trigger(1)

        result = gate.reload(loader=lambda override=False: CooldownSettings(cooldown_seconds=60, raw_cooldown_seconds=60))

        assert result.ok is True
        assert gate.settings.cooldown_seconds == 60
        assert gate.query_status(1).remaining == pytest.approx(10)
        gate.attempt_trigger(2)
        assert gate.query_status(2).remaining == pytest.approx(60)

    @pytest.mark.asyncio
    async def test_reload_failure_keeps_old_settings(self, gate):
        def broken(override=False):
            raise RuntimeError("RAID_COOLDOWN_SECONDS must be an integer, got 'x'")

        result = gate.reload(loader=broken)

        assert result.ok is False
        assert "RAID_COOLDOWN_SECONDS" in result.error
        assert gate.settings.cooldown_seconds == 10

    @pytest.mark.asyncio
    async def test_reload_reports_warnings(self, gate):
        result = gate.reload(loader=lambda override=False: CooldownSettings(cooldown_seconds=0, raw_cooldown_seconds=-3))
        assert result.ok is True
        assert result.warnings

    @pytest.mark.asyncio
    async def test_info(self, gate):
        gate.attempt_trigger(1)

        info = gate.info()

        assert info.active_count == 1
        assert info.tracked_count == 1
        assert info.pending_writes == 1
        assert info.cooldown_seconds == 10
        # fixture settings were built directly, so the raw cooldown is "missing"
        assert info.config_valid is False
