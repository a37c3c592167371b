from typing import Optional

from core.errors import ConfigurationError
from models.servers import ServerPolicy
from services.database import Database


class ServerPolicyStore:
    def __init__(self, db: Database) -> None:
        self._db = db

    def _row_to_policy(self, row) -> ServerPolicy:
        return ServerPolicy(
            id=row["id"],
            mod_role_id=row["mod_role_id"],
            dunce_role_id=row["dunce_role_id"],
            verified_role_id=row["verified_role_id"],
            verification_message_id=row["verification_message_id"],
            verification_emoji=row["verification_emoji"],
            verification_timeout=row["verification_timeout"],
        )

    def get(self, server_id: int) -> Optional[ServerPolicy]:
        row = self._db.query_one("SELECT * FROM servers WHERE id = ?", (server_id,))
        if row is None:
            return None
        return self._row_to_policy(row)

    def require(self, server_id: int) -> ServerPolicy:
        policy = self.get(server_id)
        if policy is None:
            raise ConfigurationError(
                "This server has not been set up yet. An administrator must run `/setup moderator-role` first."
            )
        return policy

    def set_mod_role(self, server_id: int, role_id: int) -> ServerPolicy:
        self._db.execute(
            """
            INSERT INTO servers (id, mod_role_id) VALUES (?, ?)
            ON CONFLICT(id) DO UPDATE SET mod_role_id = excluded.mod_role_id
            """,
            (server_id, role_id),
        )
        return self.require(server_id)

    def set_dunce_role(self, server_id: int, role_id: Optional[int]) -> ServerPolicy:
        self.require(server_id)
        self._db.execute(
            "UPDATE servers SET dunce_role_id = ? WHERE id = ?",
            (role_id, server_id),
        )
        return self.require(server_id)

    def enable_verification(
        self,
        server_id: int,
        role_id: int,
        message_id: int,
        emoji: str,
        timeout_hours: Optional[int],
    ) -> ServerPolicy:
        current = self.require(server_id)
        # Validates the combination before anything is written.
        ServerPolicy(
            id=current.id,
            mod_role_id=current.mod_role_id,
            dunce_role_id=current.dunce_role_id,
            verified_role_id=role_id,
            verification_message_id=message_id,
            verification_emoji=emoji,
            verification_timeout=timeout_hours,
        )
        self._db.execute(
            """
            UPDATE servers SET
                verified_role_id = ?,
                verification_message_id = ?,
                verification_emoji = ?,
                verification_timeout = ?
            WHERE id = ?
            """,
            (role_id, message_id, emoji, timeout_hours, server_id),
        )
        return self.require(server_id)

    def disable_verification(self, server_id: int) -> ServerPolicy:
        self.require(server_id)
        self._db.execute(
            """
            UPDATE servers SET
                verified_role_id = NULL,
                verification_message_id = NULL,
                verification_emoji = NULL,
                verification_timeout = NULL
            WHERE id = ?
            """,
            (server_id,),
        )
        return self.require(server_id)
