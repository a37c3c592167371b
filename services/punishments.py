from typing import Dict, Iterable, List, Optional
import datetime
import sqlite3

from core.errors import StoreError
from models.punishments import Punishment, PunishmentKind, RemovedRole
from services.database import Database


class PunishmentStore:
    def __init__(self, db: Database) -> None:
        self._db = db

    def create(
        self,
        server_id: int,
        user_id: int,
        kind: PunishmentKind,
        created_at: datetime.datetime,
        expires: Optional[datetime.datetime],
        role_ids: Iterable[int],
    ) -> Punishment:
        """Insert a punishment and its removed-role snapshot as one unit."""
        role_ids = sorted(set(role_ids))
        try:
            with self._db.transaction() as tx:
                cur = tx.execute(
                    """
                    INSERT INTO punishments (user_id, server_id, kind, created_at, expires)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        user_id,
                        server_id,
                        kind.value,
                        created_at.isoformat(),
                        expires.isoformat() if expires else None,
                    ),
                )
                punishment_id = int(cur.lastrowid)
                tx.executemany(
                    "INSERT INTO punishment_removed_roles (punishment_id, role_id) VALUES (?, ?)",
                    [(punishment_id, role_id) for role_id in role_ids],
                )
        except StoreError as exc:
            if isinstance(exc.__context__, sqlite3.IntegrityError):
                raise StoreError(f"User {user_id} already has an active {kind.value} on this server")
            raise
        punishment = self.get(punishment_id)
        if punishment is None:
            raise StoreError(f"Punishment {punishment_id} vanished after insert")
        return punishment

    def _row_to_punishment(self, row, removed_roles: List[RemovedRole]) -> Punishment:
        expires = datetime.datetime.fromisoformat(row["expires"]) if row["expires"] else None
        return Punishment(
            id=row["id"],
            user_id=row["user_id"],
            server_id=row["server_id"],
            kind=PunishmentKind(row["kind"]),
            created_at=datetime.datetime.fromisoformat(row["created_at"]),
            expires=expires,
            removed_roles=removed_roles,
        )

    def _with_removed_roles(self, rows) -> List[Punishment]:
        if not rows:
            return []
        ids = [row["id"] for row in rows]
        placeholders = ", ".join("?" for _ in ids)
        role_rows = self._db.query_all(
            f"""
            SELECT * FROM punishment_removed_roles
            WHERE punishment_id IN ({placeholders})
            ORDER BY id ASC
            """,
            ids,
        )
        grouped: Dict[int, List[RemovedRole]] = {punishment_id: [] for punishment_id in ids}
        for role_row in role_rows:
            grouped[role_row["punishment_id"]].append(
                RemovedRole(
                    id=role_row["id"],
                    punishment_id=role_row["punishment_id"],
                    role_id=role_row["role_id"],
                )
            )
        return [self._row_to_punishment(row, grouped[row["id"]]) for row in rows]

    def get(self, punishment_id: int) -> Optional[Punishment]:
        row = self._db.query_one("SELECT * FROM punishments WHERE id = ?", (punishment_id,))
        if row is None:
            return None
        return self._with_removed_roles([row])[0]

    def find(self, server_id: int, user_id: int, kind: PunishmentKind) -> List[Punishment]:
        rows = self._db.query_all(
            """
            SELECT * FROM punishments
            WHERE server_id = ? AND user_id = ? AND kind = ?
            ORDER BY id ASC
            """,
            (server_id, user_id, kind.value),
        )
        return self._with_removed_roles(rows)

    def for_user(self, server_id: int, user_id: int) -> List[Punishment]:
        rows = self._db.query_all(
            "SELECT * FROM punishments WHERE server_id = ? AND user_id = ? ORDER BY id ASC",
            (server_id, user_id),
        )
        return self._with_removed_roles(rows)

    def for_server(self, server_id: int) -> List[Punishment]:
        rows = self._db.query_all(
            "SELECT * FROM punishments WHERE server_id = ? ORDER BY id ASC",
            (server_id,),
        )
        return self._with_removed_roles(rows)

    def delete(self, punishment_id: int) -> bool:
        """Delete the punishment row only; returns False if it was already gone."""
        cur = self._db.execute("DELETE FROM punishments WHERE id = ?", (punishment_id,))
        return cur.rowcount > 0

    def delete_removed_roles(self, punishment_id: int) -> int:
        cur = self._db.execute(
            "DELETE FROM punishment_removed_roles WHERE punishment_id = ?",
            (punishment_id,),
        )
        return cur.rowcount

    def removed_roles(self, punishment_id: int) -> List[RemovedRole]:
        rows = self._db.query_all(
            "SELECT * FROM punishment_removed_roles WHERE punishment_id = ? ORDER BY id ASC",
            (punishment_id,),
        )
        return [
            RemovedRole(id=row["id"], punishment_id=row["punishment_id"], role_id=row["role_id"])
            for row in rows
        ]
