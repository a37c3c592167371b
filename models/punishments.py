from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional
import datetime

from core.errors import ValidationError


class PunishmentKind(str, Enum):
    DUNCE = "dunce"
    BAN = "ban"


# Fixed approximations, not calendar arithmetic.
DAYS_PER_WEEK = 7
WEEKS_PER_MONTH = 4
WEEKS_PER_YEAR = 48


@dataclass(frozen=True)
class PunishmentDuration:
    years: int = 0
    months: int = 0
    weeks: int = 0
    days: int = 0
    hours: int = 0
    minutes: int = 0

    def __post_init__(self) -> None:
        for name in ("years", "months", "weeks", "days", "hours", "minutes"):
            if getattr(self, name) < 0:
                raise ValidationError(f"'{name}' cannot be negative")

    def total(self) -> datetime.timedelta:
        weeks = self.weeks + self.months * WEEKS_PER_MONTH + self.years * WEEKS_PER_YEAR
        return datetime.timedelta(
            weeks=weeks,
            days=self.days,
            hours=self.hours,
            minutes=self.minutes,
        )

    def is_indefinite(self) -> bool:
        return self.total() == datetime.timedelta(0)

    def expires_from(self, now: datetime.datetime) -> Optional[datetime.datetime]:
        if self.is_indefinite():
            return None
        return now + self.total()


@dataclass(frozen=True)
class RemovedRole:
    id: int
    punishment_id: int
    role_id: int


@dataclass
class Punishment:
    id: int
    user_id: int
    server_id: int
    kind: PunishmentKind
    created_at: datetime.datetime
    expires: Optional[datetime.datetime]
    removed_roles: List[RemovedRole] = field(default_factory=list)

    @property
    def removed_role_ids(self) -> FrozenSet[int]:
        return frozenset(role.role_id for role in self.removed_roles)

    def is_expired(self, now: datetime.datetime) -> bool:
        return self.expires is not None and self.expires < now


@dataclass(frozen=True)
class MemberState:
    user_id: int
    role_ids: FrozenSet[int]
    joined_at: Optional[datetime.datetime]
    bot: bool = False
