"""Punishment lifecycle: create, lift, expire and re-apply dunces and bans.

Ordering contract with the store:

* creation writes the punishment and its removed-role snapshot before any
  Discord mutation;
* termination deletes the punishment row before any Discord mutation that
  undoes it, and the removed-role rows are deleted only once acted upon.

A crash can therefore leave restore obligations behind but never lose one.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional
import datetime

from core.context import BotContext
from core.errors import ConfigurationError, ValidationError
from core.logger import get_logger
from models.punishments import Punishment, PunishmentDuration, PunishmentKind
from services.roles import apply_role_diff, diff_roles


logger = get_logger(__name__)


class LiftOutcome(Enum):
    LIFTED = "lifted"
    NOT_FOUND = "not-found"


@dataclass
class PunishmentResult:
    punishment: Punishment
    resumed: bool = False


@dataclass(frozen=True)
class KindHandlers:
    apply: Callable[[Punishment], Awaitable[None]]
    restore: Callable[[Punishment], Awaitable[None]]
    reapply: Callable[[Punishment], Awaitable[None]]


class PunishmentManager:
    def __init__(self, context: BotContext) -> None:
        self.context = context
        self._handlers: Dict[PunishmentKind, KindHandlers] = {
            PunishmentKind.DUNCE: KindHandlers(self._apply_dunce, self._restore_dunce, self._reapply_dunce),
            PunishmentKind.BAN: KindHandlers(self._apply_ban, self._restore_ban, self._reapply_ban),
        }

    def _dunce_role_id(self, server_id: int) -> int:
        policy = self.context.servers.get(server_id)
        if policy is None or policy.dunce_role_id is None:
            raise ConfigurationError("No dunce role has been configured for this server.")
        if not self.context.platform.has_role(server_id, policy.dunce_role_id):
            raise ConfigurationError(
                "The configured dunce role no longer exists. Set a new one with `/setup dunce-role`."
            )
        return policy.dunce_role_id

    async def create(
        self,
        server_id: Optional[int],
        user_id: Optional[int],
        kind: PunishmentKind,
        duration: Optional[PunishmentDuration] = None,
        now: Optional[datetime.datetime] = None,
    ) -> PunishmentResult:
        if server_id is None:
            raise ValidationError("This command can only be run in servers.")
        if user_id is None:
            raise ValidationError("Requires 'user' param")
        duration = duration or PunishmentDuration()
        now = now or self.context.clock()
        handlers = self._handlers[kind]

        excluded: frozenset = frozenset()
        if kind is PunishmentKind.DUNCE:
            excluded = frozenset({self._dunce_role_id(server_id)})

        existing = self.context.punishments.find(server_id, user_id, kind)
        if existing:
            punishment = existing[0]
            logger.info(
                "Resuming %s %s for user %s in %s from its stored snapshot",
                kind.value,
                punishment.id,
                user_id,
                server_id,
            )
            await handlers.apply(punishment)
            return PunishmentResult(punishment=punishment, resumed=True)

        state = await self.context.platform.member_state(server_id, user_id)
        punishment = self.context.punishments.create(
            server_id=server_id,
            user_id=user_id,
            kind=kind,
            created_at=now,
            expires=duration.expires_from(now),
            role_ids=state.role_ids - excluded,
        )
        logger.info(
            "Recorded %s %s for user %s in %s (expires %s, %d roles snapshotted)",
            kind.value,
            punishment.id,
            user_id,
            server_id,
            punishment.expires.isoformat() if punishment.expires else "never",
            len(punishment.removed_roles),
        )
        await handlers.apply(punishment)
        return PunishmentResult(punishment=punishment)

    async def lift(self, server_id: Optional[int], user_id: Optional[int], kind: PunishmentKind) -> LiftOutcome:
        if server_id is None:
            raise ValidationError("This command can only be run in servers.")
        if user_id is None:
            raise ValidationError("Requires 'user' param")
        lifted = False
        for punishment in self.context.punishments.find(server_id, user_id, kind):
            if await self.terminate(punishment):
                lifted = True
        return LiftOutcome.LIFTED if lifted else LiftOutcome.NOT_FOUND

    async def terminate(self, punishment: Punishment) -> bool:
        """End ``punishment`` and restore what it took away.

        Returns False when the row was already deleted by another flow, in
        which case nothing is touched on Discord.
        """
        if not self.context.punishments.delete(punishment.id):
            logger.debug("Punishment %s already terminated elsewhere", punishment.id)
            return False
        await self._handlers[punishment.kind].restore(punishment)
        logger.info(
            "Lifted %s %s for user %s in %s",
            punishment.kind.value,
            punishment.id,
            punishment.user_id,
            punishment.server_id,
        )
        return True

    async def reapply(self, punishment: Punishment) -> None:
        await self._handlers[punishment.kind].reapply(punishment)

    def punishments_for(self, server_id: int, user_id: int) -> List[Punishment]:
        return self.context.punishments.for_user(server_id, user_id)

    async def _apply_dunce(self, punishment: Punishment) -> None:
        dunce_role_id = self._dunce_role_id(punishment.server_id)
        platform = self.context.platform
        state = await platform.member_state(punishment.server_id, punishment.user_id)
        current = state.role_ids & (punishment.removed_role_ids | {dunce_role_id})
        diff = diff_roles(current, {dunce_role_id})
        await apply_role_diff(
            platform,
            punishment.server_id,
            punishment.user_id,
            diff,
            reason="Dunced",
        )

    async def _restore_dunce(self, punishment: Punishment) -> None:
        platform = self.context.platform
        snapshot = punishment.removed_role_ids
        if snapshot:
            await platform.add_roles(punishment.server_id, punishment.user_id, snapshot, "Undunced: returning roles")
        self.context.punishments.delete_removed_roles(punishment.id)
        policy = self.context.servers.get(punishment.server_id)
        if policy is None or policy.dunce_role_id is None:
            logger.warning(
                "No dunce role configured in %s; cannot remove it from user %s",
                punishment.server_id,
                punishment.user_id,
            )
            return
        await platform.remove_roles(
            punishment.server_id,
            punishment.user_id,
            {policy.dunce_role_id},
            "Undunced",
        )

    async def _reapply_dunce(self, punishment: Punishment) -> None:
        dunce_role_id = self._dunce_role_id(punishment.server_id)
        await self.context.platform.add_roles(
            punishment.server_id,
            punishment.user_id,
            {dunce_role_id},
            "Rejoined while dunced",
        )

    async def _apply_ban(self, punishment: Punishment) -> None:
        await self.context.platform.ban(punishment.server_id, punishment.user_id, "Banned")

    async def _restore_ban(self, punishment: Punishment) -> None:
        # TODO: give the pre-ban roles back once the member rejoins instead of discarding the snapshot.
        self.context.punishments.delete_removed_roles(punishment.id)
        await self.context.platform.unban(punishment.server_id, punishment.user_id, "Unbanned")

    async def _reapply_ban(self, punishment: Punishment) -> None:
        await self.context.platform.ban(punishment.server_id, punishment.user_id, "Rejoined while banned")
