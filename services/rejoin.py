from core.context import BotContext
from core.errors import DomainError
from core.logger import get_logger
from services.lifecycle import PunishmentManager


logger = get_logger(__name__)


class RejoinHandler:
    """Re-applies outstanding punishments to members who leave and come back."""

    def __init__(self, context: BotContext, manager: PunishmentManager) -> None:
        self.context = context
        self.manager = manager

    async def handle_join(self, server_id: int, user_id: int) -> int:
        try:
            punishments = self.manager.punishments_for(server_id, user_id)
        except DomainError as exc:
            logger.error("Could not look up punishments for user %s in %s: %s", user_id, server_id, exc)
            return 0
        except Exception:
            logger.exception("Unexpected error looking up punishments for user %s in %s", user_id, server_id)
            return 0
        reapplied = 0
        for punishment in punishments:
            try:
                await self.manager.reapply(punishment)
            except DomainError as exc:
                logger.error(
                    "Failed to re-apply %s %s to user %s in %s: %s",
                    punishment.kind.value,
                    punishment.id,
                    user_id,
                    server_id,
                    exc,
                )
                continue
            except Exception:
                logger.exception(
                    "Unexpected error re-applying %s %s to user %s in %s",
                    punishment.kind.value,
                    punishment.id,
                    user_id,
                    server_id,
                )
                continue
            reapplied += 1
            logger.info("Re-applied %s to returning user %s in %s", punishment.kind.value, user_id, server_id)
        return reapplied
