from typing import List, Optional

from models.servers import OptionalRole
from services.database import Database


class OptionalRoleStore:
    def __init__(self, db: Database) -> None:
        self._db = db

    def set_role(
        self,
        server_id: int,
        role_id: int,
        emoji: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        self._db.execute(
            """
            INSERT INTO optional_roles (role_id, server_id, emoji, description)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(role_id) DO UPDATE SET
                server_id = excluded.server_id,
                emoji = excluded.emoji,
                description = excluded.description
            """,
            (role_id, server_id, emoji, description),
        )

    def remove_role(self, server_id: int, role_id: int) -> bool:
        cur = self._db.execute(
            "DELETE FROM optional_roles WHERE server_id = ? AND role_id = ?",
            (server_id, role_id),
        )
        return cur.rowcount > 0

    def for_server(self, server_id: int) -> List[OptionalRole]:
        rows = self._db.query_all(
            "SELECT * FROM optional_roles WHERE server_id = ? ORDER BY role_id ASC",
            (server_id,),
        )
        return [
            OptionalRole(
                role_id=row["role_id"],
                server_id=row["server_id"],
                emoji=row["emoji"],
                description=row["description"],
            )
            for row in rows
        ]
