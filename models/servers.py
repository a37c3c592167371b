from dataclasses import dataclass
from typing import Optional

from core.errors import ValidationError


@dataclass
class ServerPolicy:
    id: int
    mod_role_id: int
    dunce_role_id: Optional[int] = None
    verified_role_id: Optional[int] = None
    verification_message_id: Optional[int] = None
    verification_emoji: Optional[str] = None
    verification_timeout: Optional[int] = None

    def __post_init__(self) -> None:
        fields = (self.verified_role_id, self.verification_message_id, self.verification_emoji)
        present = [value is not None for value in fields]
        if any(present) and not all(present):
            raise ValidationError("Verification role, message and emoji must be configured together")
        if self.verification_timeout is not None:
            if not all(present):
                raise ValidationError("A verification timeout requires verification to be enabled")
            if self.verification_timeout < 0:
                raise ValidationError("Verification timeout cannot be negative")

    @property
    def verification_enabled(self) -> bool:
        return self.verified_role_id is not None

    @property
    def kick_enabled(self) -> bool:
        return self.verification_enabled and self.verification_timeout is not None


@dataclass
class OptionalRole:
    role_id: int
    server_id: int
    emoji: Optional[str] = None
    description: Optional[str] = None
