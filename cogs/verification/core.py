from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.bot import RaincoatBot
from core.errors import ValidationError
from services.permissions import bot_has_guild_permissions, is_moderator
from services.verification import normalize_emoji


def parse_message_id(raw: str) -> int:
    try:
        value = int(raw.strip())
    except ValueError:
        raise ValidationError(f"Couldn't parse {raw} as message id")
    if value <= 0:
        raise ValidationError(f"Couldn't parse {raw} as message id")
    return value


class Verification(commands.Cog):
    def __init__(self, bot: RaincoatBot) -> None:
        self.bot = bot

    group = app_commands.Group(
        name="verification",
        description="Configure verification for this server.",
        guild_only=True,
    )

    @group.command(name="enable", description="Enable/configure verification on this server")
    @is_moderator()
    @bot_has_guild_permissions(manage_roles=True, kick_members=True)
    @app_commands.describe(
        role="The role to give users who verify",
        message="The message ID users should react to",
        emoji="The emoji users should react with to verify",
        timeout="The hours to wait before kicking users who do not verify",
    )
    async def enable(
        self,
        interaction: discord.Interaction,
        role: discord.Role,
        message: str,
        emoji: str,
        timeout: Optional[app_commands.Range[int, 0]] = None,
    ) -> None:
        guild = interaction.guild
        if guild is None or role.guild.id != guild.id:
            raise ValidationError("You must select a role from this server.")
        message_id = parse_message_id(message)
        normalize_emoji(emoji)
        self.bot.context.servers.enable_verification(guild.id, role.id, message_id, emoji.strip(), timeout)
        if timeout is None:
            suffix = "Unverified members will not be kicked."
        else:
            suffix = f"Unverified members are kicked after {timeout} hours."
        await interaction.response.send_message(
            f"Successfully configured verification. {suffix}",
            ephemeral=True,
        )

    @group.command(name="disable", description="Disable verification on this server")
    @is_moderator()
    async def disable(self, interaction: discord.Interaction) -> None:
        if interaction.guild_id is None:
            raise ValidationError("This command can only be run in servers.")
        self.bot.context.servers.disable_verification(interaction.guild_id)
        await interaction.response.send_message("Successfully disabled verification.", ephemeral=True)

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        if payload.user_id == getattr(self.bot.user, "id", None):
            return
        is_bot = payload.member.bot if payload.member is not None else False
        await self.bot.verification_gate.handle_reaction(
            payload.guild_id,
            payload.message_id,
            str(payload.emoji),
            payload.user_id,
            bot=is_bot,
        )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(Verification(bot))
