"""
Pytest fixtures: a throwaway database, an in-memory stand-in for Discord and a
controllable clock.
"""

from typing import Collection, Dict, Iterable, List, Optional, Set, Tuple
import datetime

import pytest

from core.context import BotContext
from core.errors import ExternalInterfaceError
from models.punishments import MemberState
from services.database import Database
from services.lifecycle import PunishmentManager


BASE_TIME = datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)


class FakeClock:
    def __init__(self, now: datetime.datetime = BASE_TIME) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += datetime.timedelta(**kwargs)


class FakeMember:
    def __init__(self, user_id: int, roles: Iterable[int] = (), joined_at: Optional[datetime.datetime] = None, bot: bool = False) -> None:
        self.user_id = user_id
        self.roles: Set[int] = set(roles)
        self.joined_at = joined_at
        self.bot = bot


class FakePlatform:
    """Records every mutating call as a tuple, mirroring the DiscordPlatform surface."""

    def __init__(self) -> None:
        self.guilds: Dict[int, Dict[int, FakeMember]] = {}
        self.role_names_by_id: Dict[int, str] = {}
        self.bans: Set[Tuple[int, int]] = set()
        self.calls: List[tuple] = []
        self.fail_on: Set[str] = set()
        # Non-domain exceptions to raise from a call, keyed by call name.
        self.errors: Dict[str, BaseException] = {}
        self.deleted_roles: Set[int] = set()

    def add_member(self, server_id: int, user_id: int, roles: Iterable[int] = (), **kwargs) -> FakeMember:
        member = FakeMember(user_id, roles, **kwargs)
        self.guilds.setdefault(server_id, {})[user_id] = member
        return member

    def member(self, server_id: int, user_id: int) -> FakeMember:
        try:
            return self.guilds[server_id][user_id]
        except KeyError:
            raise ExternalInterfaceError("Unable to fetch information about user")

    def mutations(self, name: Optional[str] = None) -> List[tuple]:
        return [call for call in self.calls if name is None or call[0] == name]

    def _check(self, name: str) -> None:
        if name in self.errors:
            raise self.errors[name]
        if name in self.fail_on:
            raise ExternalInterfaceError(f"{name} failed")

    def guild_ids(self) -> List[int]:
        return list(self.guilds)

    def has_role(self, server_id: int, role_id: int) -> bool:
        return role_id not in self.deleted_roles

    async def member_state(self, server_id: int, user_id: int) -> MemberState:
        member = self.member(server_id, user_id)
        return MemberState(user_id=user_id, role_ids=frozenset(member.roles), joined_at=member.joined_at, bot=member.bot)

    async def members(self, server_id: int) -> List[MemberState]:
        return [await self.member_state(server_id, user_id) for user_id in self.guilds.get(server_id, {})]

    async def add_roles(self, server_id: int, user_id: int, role_ids: Collection[int], reason: str) -> None:
        self._check("add_roles")
        self.calls.append(("add_roles", server_id, user_id, frozenset(role_ids)))
        self.member(server_id, user_id).roles |= set(role_ids)

    async def remove_roles(self, server_id: int, user_id: int, role_ids: Collection[int], reason: str) -> None:
        self._check("remove_roles")
        self.calls.append(("remove_roles", server_id, user_id, frozenset(role_ids)))
        self.member(server_id, user_id).roles -= set(role_ids)

    async def ban(self, server_id: int, user_id: int, reason: str) -> None:
        self._check("ban")
        self.calls.append(("ban", server_id, user_id))
        self.bans.add((server_id, user_id))
        self.guilds.get(server_id, {}).pop(user_id, None)

    async def unban(self, server_id: int, user_id: int, reason: str) -> None:
        self._check("unban")
        self.calls.append(("unban", server_id, user_id))
        self.bans.discard((server_id, user_id))

    async def kick(self, server_id: int, user_id: int, reason: str) -> None:
        self._check("kick")
        self.calls.append(("kick", server_id, user_id))
        self.guilds.get(server_id, {}).pop(user_id, None)

    def role_names(self, server_id: int, role_ids: Iterable[int]) -> Dict[int, str]:
        return {role_id: self.role_names_by_id.get(role_id, str(role_id)) for role_id in role_ids}


@pytest.fixture
def db(tmp_path) -> Database:
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def context(db, platform, clock) -> BotContext:
    return BotContext.create(db, platform, clock=clock)


@pytest.fixture
def manager(context) -> PunishmentManager:
    return PunishmentManager(context)
