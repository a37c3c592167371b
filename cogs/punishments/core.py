from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.bot import RaincoatBot
from models.punishments import PunishmentDuration, PunishmentKind
from services.lifecycle import LiftOutcome, PunishmentResult
from services.permissions import PermissionGuard, bot_has_guild_permissions, is_moderator


NO_MENTIONS = discord.AllowedMentions.none()

DURATION_DESCRIPTIONS = dict(
    years="Years (cumulative)",
    months="Months (cumulative)",
    weeks="Weeks (cumulative)",
    days="Days (cumulative)",
    hours="Hours (cumulative)",
    minutes="Minutes (cumulative)",
)

Amount = app_commands.Range[int, 0]


def _duration(
    years: Optional[int],
    months: Optional[int],
    weeks: Optional[int],
    days: Optional[int],
    hours: Optional[int],
    minutes: Optional[int],
) -> PunishmentDuration:
    return PunishmentDuration(
        years=years or 0,
        months=months or 0,
        weeks=weeks or 0,
        days=days or 0,
        hours=hours or 0,
        minutes=minutes or 0,
    )


def punished_message(verb: str, mention: str, result: PunishmentResult) -> str:
    expires = result.punishment.expires
    if expires is None:
        text = f"{verb} {mention} indefinitely"
    else:
        text = f"{verb} {mention} until {discord.utils.format_dt(expires)}"
    if result.resumed:
        text += " (re-applied existing punishment)"
    return text


class Punishments(commands.Cog, PermissionGuard):
    def __init__(self, bot: RaincoatBot) -> None:
        self.bot = bot

    async def _punish(
        self,
        interaction: discord.Interaction,
        user: discord.Member,
        kind: PunishmentKind,
        duration: PunishmentDuration,
        verb: str,
    ) -> None:
        await self.ensure_target_hierarchy(interaction, user)
        await interaction.response.defer()
        result = await self.bot.punishment_manager.create(interaction.guild_id, user.id, kind, duration)
        await interaction.followup.send(
            punished_message(verb, user.mention, result),
            allowed_mentions=NO_MENTIONS,
        )

    async def _lift(
        self,
        interaction: discord.Interaction,
        user: discord.User,
        kind: PunishmentKind,
        verb: str,
        state: str,
    ) -> None:
        await interaction.response.defer()
        outcome = await self.bot.punishment_manager.lift(interaction.guild_id, user.id, kind)
        if outcome is LiftOutcome.LIFTED:
            content = f"{verb} <@{user.id}>"
        else:
            content = f"User <@{user.id}> is not {state} on this server"
        await interaction.followup.send(content, allowed_mentions=NO_MENTIONS)

    @app_commands.command(name="dunce", description="Dunce a user for some amount of time (or indefinitely)")
    @app_commands.guild_only()
    @is_moderator()
    @bot_has_guild_permissions(manage_roles=True)
    @app_commands.describe(user="The user to dunce", **DURATION_DESCRIPTIONS)
    async def dunce(
        self,
        interaction: discord.Interaction,
        user: discord.Member,
        years: Optional[Amount] = None,
        months: Optional[Amount] = None,
        weeks: Optional[Amount] = None,
        days: Optional[Amount] = None,
        hours: Optional[Amount] = None,
        minutes: Optional[Amount] = None,
    ) -> None:
        duration = _duration(years, months, weeks, days, hours, minutes)
        await self._punish(interaction, user, PunishmentKind.DUNCE, duration, "Dunced")

    @app_commands.command(name="undunce", description="Undunces a user")
    @app_commands.guild_only()
    @is_moderator()
    @bot_has_guild_permissions(manage_roles=True)
    @app_commands.describe(user="The user to undunce")
    async def undunce(self, interaction: discord.Interaction, user: discord.User) -> None:
        await self._lift(interaction, user, PunishmentKind.DUNCE, "Undunced", "dunced")

    @app_commands.command(name="ban", description="Ban a user for some amount of time (or indefinitely)")
    @app_commands.guild_only()
    @is_moderator()
    @bot_has_guild_permissions(ban_members=True)
    @app_commands.describe(user="The user to ban", **DURATION_DESCRIPTIONS)
    async def ban(
        self,
        interaction: discord.Interaction,
        user: discord.Member,
        years: Optional[Amount] = None,
        months: Optional[Amount] = None,
        weeks: Optional[Amount] = None,
        days: Optional[Amount] = None,
        hours: Optional[Amount] = None,
        minutes: Optional[Amount] = None,
    ) -> None:
        duration = _duration(years, months, weeks, days, hours, minutes)
        await self._punish(interaction, user, PunishmentKind.BAN, duration, "Banned")

    @app_commands.command(name="unban", description="Unbans a user")
    @app_commands.guild_only()
    @is_moderator()
    @bot_has_guild_permissions(ban_members=True)
    @app_commands.describe(user="The user to unban")
    async def unban(self, interaction: discord.Interaction, user: discord.User) -> None:
        await self._lift(interaction, user, PunishmentKind.BAN, "Unbanned", "banned")

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        await self.bot.rejoin_handler.handle_join(member.guild.id, member.id)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(Punishments(bot))
