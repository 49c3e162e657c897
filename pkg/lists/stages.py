"""Pipeline-stage lookup service."""
import sqlite3
from typing import List, Optional

from .schema import ListStage
from .store import Database, _connect


class ListStagesService:
    """Reads (and seeds) the pipeline stages of a list."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, list_id: int, name: str, color: Optional[str] = None,
               order: int = 0, is_completed: bool = False) -> ListStage:
        with _connect(self.db.db_path) as conn:
            cursor = conn.execute(
                'INSERT INTO list_stages (list_id, name, color, "order", is_completed) VALUES (?, ?, ?, ?, ?)',
                (list_id, name, color, order, 1 if is_completed else 0),
            )
            conn.commit()
            stage_id = cursor.lastrowid
        return ListStage(id=stage_id, list_id=list_id, name=name, color=color,
                         order=order, is_completed=is_completed)

    def find_all(self, list_id: int) -> List[ListStage]:
        """All stages of a list in their defined order."""
        return self.find_by(list_id)

    def find_by(self, list_id: int, is_completed: Optional[bool] = None) -> List[ListStage]:
        """Stages of a list, optionally restricted by completion flag."""
        sql = 'SELECT * FROM list_stages WHERE list_id = ?'
        params: list = [list_id]
        if is_completed is not None:
            sql += " AND is_completed = ?"
            params.append(1 if is_completed else 0)
        sql += ' ORDER BY "order" ASC, id ASC'
        with _connect(self.db.db_path) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_stage(row) for row in rows]

    def _row_to_stage(self, row: sqlite3.Row) -> ListStage:
        return ListStage(
            id=row["id"],
            list_id=row["list_id"],
            name=row["name"],
            color=row["color"],
            order=row["order"],
            is_completed=bool(row["is_completed"]),
        )
