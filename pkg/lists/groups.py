"""
List group persistence.

Groups are listed together with their (optional) filter, joined on
filter.entity_id = group.id and filter.entity_type = 'list_group'.
"""
import sqlite3
from typing import List, Optional

from .filters import parse_where
from .schema import Filter, FilterEntityTypes, ListGroup, ListGroupOptions
from .store import Database, _connect

_SELECT_WITH_FILTER = """
    SELECT lg.*,
           f.id AS filter_id,
           f.entity_id AS filter_entity_id,
           f.entity_type AS filter_entity_type,
           f."where" AS filter_where
    FROM list_groups lg
    JOIN lists l ON l.id = lg.list_id
    LEFT JOIN filters f ON f.entity_id = lg.id AND f.entity_type = ?
"""


class ListGroupsRepository:
    """SQLite-backed store for list groups."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, group: ListGroup) -> ListGroup:
        """
        Insert a new group and return it with its id set.

        Raises sqlite3.IntegrityError if a group with the same
        (list, type, entity id, entity type, name) already exists.
        """
        with _connect(self.db.db_path) as conn:
            cursor = conn.execute(
                """
                INSERT INTO list_groups
                (list_id, type, name, color, icon, "order", is_expanded, entity_id, entity_type)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    group.list_id,
                    group.type.value,
                    group.name,
                    group.color,
                    group.icon,
                    group.order,
                    1 if group.is_expanded else 0,
                    group.entity_id,
                    group.entity_type.value if group.entity_type else None,
                ),
            )
            conn.commit()
            group.id = cursor.lastrowid
        return group

    def find(self, list_id: int, group_by: Optional[ListGroupOptions] = None) -> List[ListGroup]:
        """Groups of a list (optionally of one type), ascending by order."""
        sql = _SELECT_WITH_FILTER + " WHERE lg.list_id = ?"
        params: list = [FilterEntityTypes.LIST_GROUP.value, list_id]
        if group_by is not None:
            sql += " AND lg.type = ?"
            params.append(group_by.value)
        sql += ' ORDER BY lg."order" IS NULL, lg."order" ASC, lg.id ASC'
        with _connect(self.db.db_path) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_group(row) for row in rows]

    def find_one(self, group_id: int) -> Optional[ListGroup]:
        sql = _SELECT_WITH_FILTER + " WHERE lg.id = ?"
        with _connect(self.db.db_path) as conn:
            row = conn.execute(sql, (FilterEntityTypes.LIST_GROUP.value, group_id)).fetchone()
        return self._row_to_group(row) if row else None

    def save(self, group: ListGroup) -> ListGroup:
        """Write every column of an existing group back."""
        with _connect(self.db.db_path) as conn:
            conn.execute(
                """
                UPDATE list_groups SET
                    list_id = ?, type = ?, name = ?, color = ?, icon = ?,
                    "order" = ?, is_expanded = ?, entity_id = ?, entity_type = ?
                WHERE id = ?
                """,
                (
                    group.list_id,
                    group.type.value,
                    group.name,
                    group.color,
                    group.icon,
                    group.order,
                    1 if group.is_expanded else 0,
                    group.entity_id,
                    group.entity_type.value if group.entity_type else None,
                    group.id,
                ),
            )
            conn.commit()
        return group

    def delete(self, group_id: int) -> bool:
        """Delete a group and its filter. Returns False if nothing was deleted."""
        with _connect(self.db.db_path) as conn:
            conn.execute(
                "DELETE FROM filters WHERE entity_id = ? AND entity_type = ?",
                (group_id, FilterEntityTypes.LIST_GROUP.value),
            )
            cursor = conn.execute("DELETE FROM list_groups WHERE id = ?", (group_id,))
            conn.commit()
            return cursor.rowcount > 0

    def _row_to_group(self, row: sqlite3.Row) -> ListGroup:
        data = dict(row)
        group = ListGroup.from_row(data)
        if data.get("filter_id") is not None:
            group.filter = Filter(
                id=data["filter_id"],
                entity_id=data["filter_entity_id"],
                entity_type=FilterEntityTypes(data["filter_entity_type"]),
                where=parse_where(data["filter_where"]),
            )
        return group
