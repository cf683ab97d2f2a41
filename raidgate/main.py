from __future__ import annotations

import asyncio
import logging

from .config import load_config, log_settings_warnings, validate_settings
from .logging import setup_logging
from .services.cooldown_store import CooldownStore
from .services.cooldowns import CooldownManager
from .services.gate import RaidGate


log = logging.getLogger(__name__)


def build_bot(cfg):
    # Lazy import to avoid import-time failures on unsupported Python versions
    import discord  # type: ignore

    intents = discord.Intents.default()
    bot = discord.Bot(intents=intents)
    return bot


def register_events(bot) -> None:
    @bot.event
    async def on_ready():
        log.info("Logged in as %s (%s)", bot.user, bot.user and bot.user.id)
        try:
            gids = getattr(bot.raidgate_cfg, "command_guild_ids", None)  # type: ignore[attr-defined]
            if gids:
                await bot.sync_commands(guild_ids=gids, force=True, method="auto")  # type: ignore[arg-type]
                log.info("Synced commands to guilds: %s", ",".join(str(g) for g in gids))
        except Exception as e:  # noqa: BLE001
            log.exception("Guild command sync failed: %s", e)
        log.info("Cooldown state: %s", bot.raidgate_cooldowns.get_stats())  # type: ignore[attr-defined]

    @bot.event
    async def on_connect():
        log.info("Connected to Discord gateway")

    @bot.event
    async def on_disconnect():
        log.warning("Disconnected from Discord gateway")


def _install_loop_exception_handler() -> None:
    loop = asyncio.get_running_loop()

    def _loop_exception_handler(loop, context):
        exc = context.get("exception")
        msg = context.get("message") or ""
        src = context.get("task") or context.get("future") or context.get("handle") or "loop"
        if exc is not None:
            logging.getLogger("asyncio").error("Unhandled asyncio exception in %s: %s", src, msg, exc_info=exc)
        else:
            logging.getLogger("asyncio").error("Unhandled asyncio error in %s: %s", src, msg)

    loop.set_exception_handler(_loop_exception_handler)


async def amain() -> None:
    # Initialize logging ASAP so config errors are captured
    setup_logging("INFO")
    cfg = load_config()
    setup_logging(cfg.log_level)
    log.info("Starting raidgate bot")
    log_settings_warnings(validate_settings(cfg.cooldown))
    _install_loop_exception_handler()

    bot = build_bot(cfg)
    # Storage failures are fatal: no cooldown state can be trusted without it
    try:
        store = await CooldownStore.open(cfg.db_path)
    except Exception as e:  # noqa: BLE001
        log.critical("Cooldown storage unavailable, refusing to start: %s", e)
        raise
    try:
        cooldowns = await CooldownManager.create(store, cfg.cooldown)
    except BaseException:
        await store.close()
        raise
    cooldowns.start()

    bot.raidgate_cfg = cfg  # type: ignore[attr-defined]
    bot.raidgate_cooldowns = cooldowns  # type: ignore[attr-defined]
    bot.raidgate_gate = RaidGate(cooldowns)  # type: ignore[attr-defined]

    # Install signal handlers for graceful shutdown (including SIGTERM)
    try:
        import signal
        loop = asyncio.get_running_loop()

        def _graceful_signal(sig_name: str) -> None:
            log.info("Received %s, requesting graceful shutdown...", sig_name)
            loop.create_task(bot.close())

        for _sig, _name in ((signal.SIGINT, "SIGINT"), (signal.SIGTERM, "SIGTERM")):
            loop.add_signal_handler(_sig, _graceful_signal, _name)
    except (NotImplementedError, RuntimeError):
        # Not available on some platforms (e.g., Windows)
        pass

    try:
        register_events(bot)
        from .cogs.raid import setup as setup_raid
        from .cogs.admin import setup as setup_admin

        setup_raid(bot)
        setup_admin(bot)

        log.info("Logging in to Discord...")
        await bot.start(cfg.discord_token)
    except KeyboardInterrupt:
        log.info("Received Ctrl-C, shutting down gracefully...")
    except asyncio.CancelledError:
        log.info("Cancelled, shutting down gracefully...")
    except Exception as e:  # noqa: BLE001
        log.exception("Bot failed to start: %s", e)
        raise
    finally:
        try:
            if not bot.is_closed():
                await bot.close()
        except Exception:  # noqa: BLE001
            log.debug("bot close failed", exc_info=True)
        # Final flush must complete before the database goes away
        try:
            await cooldowns.shutdown()
        finally:
            await store.close()


def main() -> None:
    try:
        asyncio.run(amain())
    except KeyboardInterrupt:
        # Redundant guard in case Ctrl-C propagates past amain(); keep output clean
        print("Interrupted, exiting cleanly.")


if __name__ == "__main__":
    main()
