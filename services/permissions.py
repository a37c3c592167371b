from typing import List

import discord
from discord import app_commands

from core.errors import DomainError
from core.logger import get_logger


logger = get_logger(__name__)

GUILD_ONLY = "This command can only be run in servers."


def _invoking_member(interaction: discord.Interaction) -> discord.Member:
    if interaction.guild is None:
        raise app_commands.CheckFailure(GUILD_ONLY)
    if not isinstance(interaction.user, discord.Member):
        raise app_commands.CheckFailure("Couldn't resolve you as a member of this server")
    return interaction.user


def is_administrator():
    async def predicate(interaction: discord.Interaction) -> bool:
        if _invoking_member(interaction).guild_permissions.administrator:
            return True
        raise app_commands.CheckFailure("Only server administrators can use this command")

    return app_commands.check(predicate)


def is_moderator():
    """Administrators, or holders of the server's configured moderator role."""

    async def predicate(interaction: discord.Interaction) -> bool:
        member = _invoking_member(interaction)
        if member.guild_permissions.administrator:
            return True
        context = getattr(interaction.client, "context", None)
        policy = None
        if context is not None:
            try:
                policy = context.servers.get(member.guild.id)
            except DomainError as exc:
                logger.error("Could not load moderator role for %s: %s", member.guild.id, exc)
        if policy is not None and member.get_role(policy.mod_role_id) is not None:
            return True
        raise app_commands.CheckFailure("Only moderators can use this command")

    return app_commands.check(predicate)


def bot_has_guild_permissions(**perms: bool):
    async def predicate(interaction: discord.Interaction) -> bool:
        guild = interaction.guild
        if guild is None:
            raise app_commands.CheckFailure(GUILD_ONLY)
        if guild.me is None:
            raise app_commands.CheckFailure("The bot is not a member of this server")
        granted = guild.me.guild_permissions
        if granted.administrator:
            return True
        lacking: List[str] = [name for name, wanted in perms.items() if getattr(granted, name, False) != wanted]
        if lacking:
            pretty = ", ".join(name.replace("_", " ") for name in lacking)
            raise app_commands.CheckFailure(f"I need the following permissions here: {pretty}")
        return True

    return app_commands.check(predicate)


class PermissionGuard:
    """Mixin for cogs whose commands act on another member."""

    async def ensure_target_hierarchy(self, interaction: discord.Interaction, target: discord.Member) -> None:
        actor = _invoking_member(interaction)
        guild = actor.guild
        if actor.id == target.id:
            raise app_commands.CheckFailure("You can't use this on yourself")
        if guild.owner_id != actor.id and target.top_role >= actor.top_role:
            raise app_commands.CheckFailure(f"{target.display_name} has a role at or above your highest role")
        if guild.me is not None and target.top_role >= guild.me.top_role:
            raise app_commands.CheckFailure(f"{target.display_name} has a role at or above mine")
