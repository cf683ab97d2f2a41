from __future__ import annotations

import logging

import discord
from discord.commands import SlashCommandGroup, option

from ..messages import format_duration, render


log = logging.getLogger(__name__)


class RaidCooldownCog(discord.Cog):
    def __init__(self, bot: discord.Bot):
        self.bot = bot

    raidcooldown = SlashCommandGroup(
        "raidcooldown",
        "Raid cooldown administration",
        default_member_permissions=discord.Permissions(manage_guild=True),
    )

    @raidcooldown.command(name="check", description="Check a member's raid cooldown")
    @option("member", discord.Member, description="Member to check", required=True)
    async def cooldown_check(self, ctx: discord.ApplicationContext, member: discord.Member):  # type: ignore[override]
        status = self.bot.raidgate_gate.query_status(member.id)  # type: ignore[attr-defined]
        if status.available:
            await ctx.respond(render("raid_available_other", player=member.display_name), ephemeral=True)
        else:
            await ctx.respond(
                render("cooldown_remaining_other", player=member.display_name, time=format_duration(status.remaining)),
                ephemeral=True,
            )

    @raidcooldown.command(name="reset", description="Reset a member's raid cooldown")
    @option("member", discord.Member, description="Member to reset", required=True)
    async def cooldown_reset(self, ctx: discord.ApplicationContext, member: discord.Member):  # type: ignore[override]
        self.bot.raidgate_gate.reset(member.id)  # type: ignore[attr-defined]
        log.info("Raid cooldown for %s reset by %s", member.id, ctx.author.id)
        await ctx.respond(render("reset_cooldown", player=member.display_name), ephemeral=True)
        try:
            await member.send(render("reset_notification"))
        except discord.HTTPException as e:
            log.debug("could not notify %s about reset: %s", member.id, e)

    @raidcooldown.command(name="info", description="Show raid cooldown statistics")
    async def cooldown_info(self, ctx: discord.ApplicationContext):  # type: ignore[override]
        info = self.bot.raidgate_gate.info()  # type: ignore[attr-defined]
        await ctx.respond(
            render(
                "info",
                count=info.active_count,
                duration=format_duration(info.cooldown_seconds),
                pending=info.pending_writes,
                valid=info.config_valid,
            ),
            ephemeral=True,
        )

    @raidcooldown.command(name="reload", description="Reload cooldown settings from the environment")
    async def cooldown_reload(self, ctx: discord.ApplicationContext):  # type: ignore[override]
        result = self.bot.raidgate_gate.reload()  # type: ignore[attr-defined]
        if result.ok:
            await ctx.respond(render("reload_success"), ephemeral=True)
        else:
            await ctx.respond(render("reload_error", error=result.error), ephemeral=True)


def setup(bot: discord.Bot):
    gids = getattr(getattr(bot, "raidgate_cfg", None), "command_guild_ids", None)
    if gids:
        try:
            RaidCooldownCog.raidcooldown.guild_ids = gids  # type: ignore[attr-defined]
            for sc in getattr(RaidCooldownCog.raidcooldown, "subcommands", []) or []:
                try:
                    setattr(sc, "guild_ids", gids)
                except AttributeError:
                    pass
            log.info("raidcooldown commands scoped to guilds: %s", ",".join(str(g) for g in gids))
        except Exception:
            log.warning("Failed to scope raidcooldown commands to guilds", exc_info=True)
    bot.add_cog(RaidCooldownCog(bot))
