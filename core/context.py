from dataclasses import dataclass, field
from typing import Callable
import datetime

from services.database import Database
from services.optional_roles import OptionalRoleStore
from services.platform import Platform
from services.punishments import PunishmentStore
from services.servers import ServerPolicyStore


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass
class BotContext:
    """Store and platform handles shared by every component; passed in, never global."""

    db: Database
    platform: Platform
    servers: ServerPolicyStore
    punishments: PunishmentStore
    optional_roles: OptionalRoleStore
    clock: Callable[[], datetime.datetime] = field(default=utcnow)

    @classmethod
    def create(
        cls,
        db: Database,
        platform: Platform,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> "BotContext":
        return cls(
            db=db,
            platform=platform,
            servers=ServerPolicyStore(db),
            punishments=PunishmentStore(db),
            optional_roles=OptionalRoleStore(db),
            clock=clock,
        )
