from typing import List

import discord
from discord import app_commands
from discord.ext import commands

from core.bot import RaincoatBot
from core.errors import ValidationError
from models.servers import ServerPolicy
from services.permissions import is_administrator, is_moderator


NO_MENTIONS = discord.AllowedMentions.none()


def describe_policy(policy: ServerPolicy) -> str:
    lines: List[str] = [f"Moderator role: <@&{policy.mod_role_id}>"]
    if policy.dunce_role_id is not None:
        lines.append(f"Dunce role: <@&{policy.dunce_role_id}>")
    else:
        lines.append("Dunce role: not configured")
    if policy.verification_enabled:
        lines.append(
            f"Verification: react {policy.verification_emoji} on message "
            f"`{policy.verification_message_id}` for <@&{policy.verified_role_id}>"
        )
        if policy.verification_timeout is not None:
            lines.append(f"Unverified members are kicked after {policy.verification_timeout} hours")
    else:
        lines.append("Verification: disabled")
    return "\n".join(lines)


class Setup(commands.Cog):
    def __init__(self, bot: RaincoatBot) -> None:
        self.bot = bot

    group = app_commands.Group(name="setup", description="Server configuration", guild_only=True)

    @group.command(name="moderator-role", description="Set the role allowed to use moderation commands")
    @is_administrator()
    @app_commands.describe(role="Role whose members may moderate")
    async def moderator_role(self, interaction: discord.Interaction, role: discord.Role) -> None:
        guild = interaction.guild
        if guild is None or role.guild.id != guild.id:
            raise ValidationError("You must select a role from this server.")
        self.bot.context.servers.set_mod_role(guild.id, role.id)
        await interaction.response.send_message(
            f"Moderator role set to {role.mention}.",
            ephemeral=True,
            allowed_mentions=NO_MENTIONS,
        )

    @group.command(name="dunce-role", description="Set the role given to dunced members")
    @is_moderator()
    @app_commands.describe(role="Role applied while a member is dunced")
    async def dunce_role(self, interaction: discord.Interaction, role: discord.Role) -> None:
        guild = interaction.guild
        if guild is None or role.guild.id != guild.id:
            raise ValidationError("You must select a role from this server.")
        if role.is_default() or role.managed:
            raise ValidationError(f"`{role.name}` cannot be used as the dunce role.")
        self.bot.context.servers.set_dunce_role(guild.id, role.id)
        await interaction.response.send_message(
            f"Dunce role set to {role.mention}.",
            ephemeral=True,
            allowed_mentions=NO_MENTIONS,
        )

    @group.command(name="show", description="Show this server's configuration")
    @is_moderator()
    async def show(self, interaction: discord.Interaction) -> None:
        if interaction.guild_id is None:
            raise ValidationError("This command can only be run in servers.")
        policy = self.bot.context.servers.require(interaction.guild_id)
        await interaction.response.send_message(
            describe_policy(policy),
            ephemeral=True,
            allowed_mentions=NO_MENTIONS,
        )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(Setup(bot))
