from typing import Callable, Collection, Dict, FrozenSet, Iterable, List, Optional, Protocol, Set

import discord

from core.errors import ExternalInterfaceError
from core.logger import get_logger
from models.punishments import MemberState


logger = get_logger(__name__)


class Platform(Protocol):
    def guild_ids(self) -> List[int]: ...

    def has_role(self, server_id: int, role_id: int) -> bool: ...

    async def member_state(self, server_id: int, user_id: int) -> MemberState: ...

    async def members(self, server_id: int) -> List[MemberState]: ...

    async def add_roles(self, server_id: int, user_id: int, role_ids: Collection[int], reason: str) -> None: ...

    async def remove_roles(self, server_id: int, user_id: int, role_ids: Collection[int], reason: str) -> None: ...

    async def ban(self, server_id: int, user_id: int, reason: str) -> None: ...

    async def unban(self, server_id: int, user_id: int, reason: str) -> None: ...

    async def kick(self, server_id: int, user_id: int, reason: str) -> None: ...

    def role_names(self, server_id: int, role_ids: Iterable[int]) -> Dict[int, str]: ...


def _assignable_role_ids(member: discord.Member) -> FrozenSet[int]:
    return frozenset(role.id for role in member.roles if not role.is_default() and not role.managed)


def _to_state(member: discord.Member) -> MemberState:
    return MemberState(
        user_id=member.id,
        role_ids=_assignable_role_ids(member),
        joined_at=member.joined_at,
        bot=member.bot,
    )


class DiscordPlatform:
    """The bot's only path to Discord mutations; every HTTP failure surfaces as ExternalInterfaceError."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    def guild_ids(self) -> List[int]:
        return [guild.id for guild in self.client.guilds]

    def has_role(self, server_id: int, role_id: int) -> bool:
        return self._guild(server_id).get_role(role_id) is not None

    def _guild(self, server_id: int) -> discord.Guild:
        guild = self.client.get_guild(server_id)
        if guild is None:
            raise ExternalInterfaceError(f"Server {server_id} is not available to the bot")
        return guild

    async def _fetch_member(self, guild: discord.Guild, user_id: int) -> discord.Member:
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            raise ExternalInterfaceError("Unable to fetch information about user")
        except discord.HTTPException as exc:
            raise ExternalInterfaceError(f"Unable to fetch information about user: {exc}")

    async def member_state(self, server_id: int, user_id: int) -> MemberState:
        guild = self._guild(server_id)
        member = await self._fetch_member(guild, user_id)
        return _to_state(member)

    async def members(self, server_id: int) -> List[MemberState]:
        guild = self._guild(server_id)
        return [_to_state(member) for member in guild.members]

    async def _edit_roles(
        self,
        server_id: int,
        user_id: int,
        change: Callable[[Set[int]], Set[int]],
        reason: str,
    ) -> None:
        guild = self._guild(server_id)
        member = await self._fetch_member(guild, user_id)
        kept = {role.id for role in member.roles if not role.is_default()}
        updated = change(set(kept))
        if updated == kept:
            return
        try:
            await member.edit(roles=[discord.Object(id=role_id) for role_id in sorted(updated)], reason=reason)
        except discord.HTTPException as exc:
            raise ExternalInterfaceError(f"Couldn't update roles: {exc}")

    async def add_roles(self, server_id: int, user_id: int, role_ids: Collection[int], reason: str) -> None:
        guild = self._guild(server_id)
        existing = {role_id for role_id in role_ids if guild.get_role(role_id) is not None}
        missing = set(role_ids) - existing
        if missing:
            logger.info("Skipping roles that no longer exist in %s: %s", server_id, sorted(missing))
        if not existing:
            return
        await self._edit_roles(server_id, user_id, lambda roles: roles | existing, reason)

    async def remove_roles(self, server_id: int, user_id: int, role_ids: Collection[int], reason: str) -> None:
        removed = set(role_ids)
        await self._edit_roles(server_id, user_id, lambda roles: roles - removed, reason)

    async def ban(self, server_id: int, user_id: int, reason: str) -> None:
        guild = self._guild(server_id)
        try:
            await guild.ban(discord.Object(id=user_id), reason=reason, delete_message_seconds=0)
        except discord.HTTPException as exc:
            raise ExternalInterfaceError(f"Unable to ban user: {exc}")

    async def unban(self, server_id: int, user_id: int, reason: str) -> None:
        guild = self._guild(server_id)
        try:
            await guild.unban(discord.Object(id=user_id), reason=reason)
        except discord.NotFound:
            logger.info("User %s was not banned in %s; nothing to lift", user_id, server_id)
        except discord.HTTPException as exc:
            raise ExternalInterfaceError(f"Unable to unban user: {exc}")

    async def kick(self, server_id: int, user_id: int, reason: str) -> None:
        guild = self._guild(server_id)
        try:
            await guild.kick(discord.Object(id=user_id), reason=reason)
        except discord.HTTPException as exc:
            raise ExternalInterfaceError(f"Unable to kick user: {exc}")

    def role_names(self, server_id: int, role_ids: Iterable[int]) -> Dict[int, str]:
        guild = self._guild(server_id)
        names: Dict[int, str] = {}
        for role_id in role_ids:
            role: Optional[discord.Role] = guild.get_role(role_id)
            names[role_id] = role.name if role is not None else str(role_id)
        return names
