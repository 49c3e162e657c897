"""Filter persistence service."""
import logging
from typing import Optional

from .filters import Expression, dump_where
from .schema import Filter, FilterEntityTypes
from .store import Database, _connect

logger = logging.getLogger(__name__)


class FiltersService:

    def __init__(self, db: Database):
        self.db = db

    def create(self, entity_id: int, entity_type: FilterEntityTypes, where: Expression) -> Filter:
        """Persist a filter for one owning entity."""
        with _connect(self.db.db_path) as conn:
            cursor = conn.execute(
                'INSERT INTO filters (entity_id, entity_type, "where") VALUES (?, ?, ?)',
                (entity_id, entity_type.value, dump_where(where)),
            )
            conn.commit()
            filter_id = cursor.lastrowid
        logger.debug(f"Created filter {filter_id} for {entity_type.value} {entity_id}")
        return Filter(id=filter_id, entity_id=entity_id, entity_type=entity_type, where=where)

    def find_for(self, entity_id: int, entity_type: FilterEntityTypes) -> Optional[Filter]:
        with _connect(self.db.db_path) as conn:
            row = conn.execute(
                'SELECT * FROM filters WHERE entity_id = ? AND entity_type = ?',
                (entity_id, entity_type.value),
            ).fetchone()
        return Filter.from_row(dict(row)) if row else None
