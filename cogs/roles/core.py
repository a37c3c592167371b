from typing import List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.bot import RaincoatBot
from core.errors import ValidationError
from core.views import RoleSelectView
from models.servers import OptionalRole
from services.permissions import bot_has_guild_permissions, is_moderator
from services.verification import normalize_emoji


NO_MENTIONS = discord.AllowedMentions.none()


def build_role_options(
    guild: discord.Guild,
    optional_roles: List[OptionalRole],
    held_role_ids: frozenset,
) -> List[discord.SelectOption]:
    options: List[discord.SelectOption] = []
    for optional in optional_roles:
        role = guild.get_role(optional.role_id)
        if role is None:
            raise ValidationError(f"Role {optional.role_id} no longer exists.")
        emoji = None
        if optional.emoji:
            try:
                normalize_emoji(optional.emoji)
            except ValidationError:
                raise ValidationError(f"Invalid emoji for role {role.name}")
            emoji = discord.PartialEmoji.from_str(optional.emoji)
        options.append(
            discord.SelectOption(
                label=role.name,
                value=str(role.id),
                description=optional.description,
                emoji=emoji,
                default=role.id in held_role_ids,
            )
        )
    return options


class Roles(commands.Cog):
    def __init__(self, bot: RaincoatBot) -> None:
        self.bot = bot

    @app_commands.command(name="role", description="Assign yourself optional roles")
    @app_commands.guild_only()
    @bot_has_guild_permissions(manage_roles=True)
    async def role(self, interaction: discord.Interaction) -> None:
        guild = interaction.guild
        if guild is None:
            raise ValidationError("This command can only be run in servers.")
        context = self.bot.context
        optional_roles = context.optional_roles.for_server(guild.id)
        if not optional_roles:
            raise ValidationError("No optional roles set for this server.")
        state = await context.platform.member_state(guild.id, interaction.user.id)
        options = build_role_options(guild, optional_roles, state.role_ids)
        await interaction.response.send_message(view=RoleSelectView(context, options), ephemeral=True)

    @app_commands.command(name="addrole", description="Set up a role as an optional role, assignable with /role")
    @app_commands.guild_only()
    @is_moderator()
    @app_commands.describe(
        role="The role to set up as an optional role.",
        emoji="An emoji to represent this role.",
        description="A description for this role.",
    )
    async def addrole(
        self,
        interaction: discord.Interaction,
        role: discord.Role,
        emoji: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        guild = interaction.guild
        if guild is None or role.guild.id != guild.id:
            raise ValidationError("You must select a role from this server.")
        if role.is_default() or role.managed:
            raise ValidationError(f"`{role.name}` cannot be assigned by members.")
        if emoji:
            normalize_emoji(emoji)
            emoji = emoji.strip()
        self.bot.context.optional_roles.set_role(guild.id, role.id, emoji or None, description)
        await interaction.response.send_message(
            f"Successfully configured `{role.name}` as an optional role.",
            allowed_mentions=NO_MENTIONS,
        )

    @app_commands.command(name="removerole", description="Remove a role as an optional role")
    @app_commands.guild_only()
    @is_moderator()
    @app_commands.describe(role="The role to remove as an optional role.")
    async def removerole(self, interaction: discord.Interaction, role: discord.Role) -> None:
        guild = interaction.guild
        if guild is None:
            raise ValidationError("This command can only be run in servers.")
        if not self.bot.context.optional_roles.remove_role(guild.id, role.id):
            raise ValidationError(f"`{role.name}` is not an optional role.")
        await interaction.response.send_message(
            f"Successfully removed `{role.name}` as an optional role.",
            allowed_mentions=NO_MENTIONS,
        )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(Roles(bot))
