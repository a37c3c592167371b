from dataclasses import dataclass, field
from typing import AbstractSet, Iterable, List, Optional
import asyncio
import datetime

from core.context import BotContext
from core.errors import DomainError
from core.logger import get_logger
from models.punishments import MemberState, Punishment
from models.servers import ServerPolicy
from services.lifecycle import PunishmentManager


logger = get_logger(__name__)


@dataclass(frozen=True)
class KickAction:
    server_id: int
    user_id: int
    joined_at: datetime.datetime


@dataclass
class SweepReport:
    kicked: List[KickAction] = field(default_factory=list)
    expired: List[Punishment] = field(default_factory=list)
    failures: int = 0


def plan_verification_kicks(
    policy: Optional[ServerPolicy],
    members: Iterable[MemberState],
    punished_user_ids: AbstractSet[int],
    now: datetime.datetime,
) -> List[KickAction]:
    """Members who joined more than the timeout ago and never verified.

    Anyone with a punishment in the community is exempt, as are bots.
    """
    if policy is None or not policy.kick_enabled:
        return []
    timeout = datetime.timedelta(hours=policy.verification_timeout)
    actions: List[KickAction] = []
    for member in members:
        if member.bot or member.joined_at is None:
            continue
        if policy.verified_role_id in member.role_ids:
            continue
        if now - member.joined_at <= timeout:
            continue
        if member.user_id in punished_user_ids:
            continue
        actions.append(KickAction(server_id=policy.id, user_id=member.user_id, joined_at=member.joined_at))
    return actions


def plan_expiries(punishments: Iterable[Punishment], now: datetime.datetime) -> List[Punishment]:
    return [punishment for punishment in punishments if punishment.is_expired(now)]


class ReconciliationScheduler:
    def __init__(
        self,
        context: BotContext,
        manager: PunishmentManager,
        interval: float = 5.0,
    ) -> None:
        self.context = context
        self.manager = manager
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._runner(), name="reconciliation")
        logger.info("Reconciliation scheduler started (every %.1fs)", self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Reconciliation scheduler stopped")

    async def _runner(self) -> None:
        while True:
            try:
                report = await self.run_once()
                if report.kicked or report.expired or report.failures:
                    logger.info(
                        "Reconciliation tick: %d kicked, %d expired, %d failures",
                        len(report.kicked),
                        len(report.expired),
                        report.failures,
                    )
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Reconciliation tick failed")
            await asyncio.sleep(self.interval)

    async def run_once(self, now: Optional[datetime.datetime] = None) -> SweepReport:
        now = now or self.context.clock()
        report = SweepReport()
        for server_id in self.context.platform.guild_ids():
            try:
                await self._reconcile_server(server_id, now, report)
            except DomainError as exc:
                report.failures += 1
                logger.error("Reconciliation of %s failed: %s", server_id, exc)
            except Exception:
                report.failures += 1
                logger.exception("Reconciliation of %s failed unexpectedly", server_id)
        return report

    async def _reconcile_server(self, server_id: int, now: datetime.datetime, report: SweepReport) -> None:
        policy = self.context.servers.get(server_id)
        # Read once per tick so a punishment expiring below still shields its member from this tick's kicks.
        punishments = self.context.punishments.for_server(server_id)
        punished = {punishment.user_id for punishment in punishments}

        if policy is not None and policy.kick_enabled:
            members = await self.context.platform.members(server_id)
            for action in plan_verification_kicks(policy, members, punished, now):
                try:
                    await self.context.platform.kick(
                        server_id,
                        action.user_id,
                        f"Did not verify within {policy.verification_timeout} hours",
                    )
                except DomainError as exc:
                    report.failures += 1
                    logger.error("Failed to kick unverified user %s from %s: %s", action.user_id, server_id, exc)
                    continue
                except Exception:
                    report.failures += 1
                    logger.exception("Unexpected error kicking user %s from %s", action.user_id, server_id)
                    continue
                report.kicked.append(action)
                logger.info("Kicked unverified user %s from %s", action.user_id, server_id)

        for punishment in plan_expiries(punishments, now):
            try:
                if await self.manager.terminate(punishment):
                    report.expired.append(punishment)
            except DomainError as exc:
                report.failures += 1
                logger.error(
                    "Failed to expire %s %s for user %s in %s: %s",
                    punishment.kind.value,
                    punishment.id,
                    punishment.user_id,
                    server_id,
                    exc,
                )
            except Exception:
                report.failures += 1
                logger.exception(
                    "Unexpected error expiring %s %s for user %s in %s",
                    punishment.kind.value,
                    punishment.id,
                    punishment.user_id,
                    server_id,
                )
