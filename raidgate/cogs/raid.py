from __future__ import annotations

import logging

import discord
from discord.commands import SlashCommandGroup

from ..messages import format_duration, render
from ..services.gate import resolve_bypass


log = logging.getLogger(__name__)


class RaidCog(discord.Cog):
    def __init__(self, bot: discord.Bot):
        self.bot = bot

    raid = SlashCommandGroup("raid", "Raid commands")

    @raid.command(name="start", description="Start a raid (subject to a per-user cooldown)")
    async def raid_start(self, ctx: discord.ApplicationContext):  # type: ignore[override]
        if not ctx.guild:
            await ctx.respond(render("guild_only"), ephemeral=True)
            return
        gate = self.bot.raidgate_gate  # type: ignore[attr-defined]
        bypass = resolve_bypass(ctx.author, gate.settings.bypass_role_ids)
        if not gate.attempt_trigger(ctx.author.id, bypass=bypass):
            remaining = gate.query_status(ctx.author.id).remaining
            await ctx.respond(render("raid_blocked", time=format_duration(remaining)), ephemeral=True)
            return
        name = getattr(ctx.author, "display_name", None) or str(ctx.author)
        if bypass:
            await ctx.respond(render("raid_started_bypass", player=name))
        else:
            await ctx.respond(render("raid_started", player=name, time=format_duration(gate.settings.cooldown_seconds)))

    @raid.command(name="status", description="Check your own raid cooldown")
    async def raid_status(self, ctx: discord.ApplicationContext):  # type: ignore[override]
        status = self.bot.raidgate_gate.query_status(ctx.author.id)  # type: ignore[attr-defined]
        if status.available:
            await ctx.respond(render("raid_available_self"), ephemeral=True)
        else:
            await ctx.respond(render("cooldown_remaining_self", time=format_duration(status.remaining)), ephemeral=True)


def setup(bot: discord.Bot):
    """Setup the RaidCog and optionally scope commands to specific guilds."""
    gids = getattr(getattr(bot, "raidgate_cfg", None), "command_guild_ids", None)
    if gids:
        try:
            RaidCog.raid.guild_ids = gids  # type: ignore[attr-defined]
            for sc in getattr(RaidCog.raid, "subcommands", []) or []:
                try:
                    setattr(sc, "guild_ids", gids)
                except AttributeError:
                    # Some subcommand types may not support guild_ids
                    pass
            log.info("raid commands scoped to guilds: %s", ",".join(str(g) for g in gids))
        except Exception:
            log.warning("Failed to scope raid commands to guilds", exc_info=True)
    bot.add_cog(RaidCog(bot))
