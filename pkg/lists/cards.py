"""
Card storage and group membership.

Cards are stored once and attached to lists (with a stage per list) and to
users (assignees). A group's cards are the cards of its list that satisfy
the group's filter.
"""
import sqlite3
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from .filters import evaluate
from .schema import Card, ListGroup
from .store import Database, _connect


def _parse_due(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    due = datetime.fromisoformat(value)
    if due.tzinfo is None:
        due = due.replace(tzinfo=timezone.utc)
    return due


class CardStore:

    def __init__(self, db: Database):
        self.db = db

    def create(self, title: str, list_id: int, list_stage_id: Optional[int] = None,
               due_at: Optional[datetime] = None,
               assignee_ids: Iterable[int] = ()) -> Card:
        """Create a card in a list, optionally staged and assigned."""
        assignee_ids = list(assignee_ids)
        with _connect(self.db.db_path) as conn:
            cursor = conn.execute(
                "INSERT INTO cards (title, due_at) VALUES (?, ?)",
                (title, due_at.isoformat() if due_at else None),
            )
            card_id = cursor.lastrowid
            conn.execute(
                "INSERT INTO card_lists (card_id, list_id, list_stage_id) VALUES (?, ?, ?)",
                (card_id, list_id, list_stage_id),
            )
            for user_id in assignee_ids:
                conn.execute(
                    "INSERT INTO card_users (card_id, user_id) VALUES (?, ?)",
                    (card_id, user_id),
                )
            conn.commit()
        return Card(id=card_id, title=title, due_at=due_at, list_id=list_id,
                    list_stage_id=list_stage_id, assignee_ids=assignee_ids)

    def list_by_list(self, list_id: int) -> List[Card]:
        """All cards of a list, with their stage there and their assignees."""
        with _connect(self.db.db_path) as conn:
            rows = conn.execute(
                """
                SELECT c.id, c.title, c.due_at, cl.list_id, cl.list_stage_id
                FROM cards c
                JOIN card_lists cl ON cl.card_id = c.id
                WHERE cl.list_id = ?
                ORDER BY c.id ASC
                """,
                (list_id,),
            ).fetchall()
            assignees = {}
            for r in conn.execute(
                """
                SELECT cu.card_id, cu.user_id FROM card_users cu
                JOIN card_lists cl ON cl.card_id = cu.card_id
                WHERE cl.list_id = ?
                ORDER BY cu.user_id ASC
                """,
                (list_id,),
            ):
                assignees.setdefault(r["card_id"], []).append(r["user_id"])
        return [self._row_to_card(row, assignees.get(row["id"], [])) for row in rows]

    def find_for_group(self, group: ListGroup, now: Optional[datetime] = None) -> List[Card]:
        """Cards of the group's list selected by the group's filter."""
        cards = self.list_by_list(group.list_id)
        if group.filter is None:
            return cards
        if now is None:
            now = datetime.now(timezone.utc)
        return [c for c in cards if evaluate(group.filter.where, c.record(), now)]

    def _row_to_card(self, row: sqlite3.Row, assignee_ids: List[int]) -> Card:
        return Card(
            id=row["id"],
            title=row["title"],
            due_at=_parse_due(row["due_at"]),
            list_id=row["list_id"],
            list_stage_id=row["list_stage_id"],
            assignee_ids=assignee_ids,
        )
