"""
SQLite storage backend.

Owns the connection helper and the schema for every table the list group
services read or write. Each service opens its own short-lived connection
per call, so calls can run concurrently from worker threads.
"""
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional


@contextmanager
def _connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """
    Open a connection with FK enforcement and WAL mode.

    Commits on success, rolls back on error, and always closes.
    """
    conn = sqlite3.connect(db_path, timeout=30)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        with conn:
            yield conn
    finally:
        conn.close()


def default_db_path() -> str:
    return str(Path.home() / ".local" / "share" / "listgroups" / "listgroups.db")


class Database:
    """Creates the schema on first use and hands out connections."""

    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            db_path = default_db_path()
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def connect(self):
        """Context manager yielding a fresh connection (closed on exit)."""
        return _connect(self.db_path)

    def _init_schema(self):
        """Create tables if they don't exist."""
        with _connect(self.db_path) as conn:
            # Ownership chain: project -> workspace -> space -> list
            conn.execute("""
                CREATE TABLE IF NOT EXISTS projects (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS workspaces (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    project_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    FOREIGN KEY (project_id) REFERENCES projects(id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS spaces (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workspace_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    FOREIGN KEY (workspace_id) REFERENCES workspaces(id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS lists (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    space_id INTEGER,
                    name TEXT NOT NULL,
                    FOREIGN KEY (space_id) REFERENCES spaces(id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS list_stages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    list_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    color TEXT,
                    "order" INTEGER NOT NULL DEFAULT 0,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY (list_id) REFERENCES lists(id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    photo TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS project_users (
                    project_id INTEGER NOT NULL,
                    user_id INTEGER NOT NULL,
                    PRIMARY KEY (project_id, user_id),
                    FOREIGN KEY (project_id) REFERENCES projects(id),
                    FOREIGN KEY (user_id) REFERENCES users(id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS cards (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    due_at TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS card_lists (
                    card_id INTEGER NOT NULL,
                    list_id INTEGER NOT NULL,
                    list_stage_id INTEGER,
                    PRIMARY KEY (card_id, list_id),
                    FOREIGN KEY (card_id) REFERENCES cards(id),
                    FOREIGN KEY (list_id) REFERENCES lists(id),
                    FOREIGN KEY (list_stage_id) REFERENCES list_stages(id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS card_users (
                    card_id INTEGER NOT NULL,
                    user_id INTEGER NOT NULL,
                    PRIMARY KEY (card_id, user_id),
                    FOREIGN KEY (card_id) REFERENCES cards(id),
                    FOREIGN KEY (user_id) REFERENCES users(id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS list_groups (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    list_id INTEGER NOT NULL,
                    type TEXT NOT NULL DEFAULT 'all',
                    name TEXT NOT NULL,
                    color TEXT,
                    icon TEXT,
                    "order" INTEGER,
                    is_expanded INTEGER NOT NULL DEFAULT 0,
                    entity_id INTEGER,
                    entity_type TEXT,
                    FOREIGN KEY (list_id) REFERENCES lists(id)
                )
            """)
            # Reconciliation key. NULLs are distinct in a plain UNIQUE index,
            # so the entity columns are coalesced.
            conn.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS uq_list_groups_key ON list_groups(
                    list_id, type, COALESCE(entity_id, -1), COALESCE(entity_type, ''), name
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS filters (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    entity_id INTEGER NOT NULL,
                    entity_type TEXT NOT NULL,
                    "where" TEXT NOT NULL,  -- JSON expression tree
                    UNIQUE (entity_id, entity_type)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_list_groups_list ON list_groups(list_id, type)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_list_stages_list ON list_stages(list_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_card_lists_list ON card_lists(list_id)")
            conn.commit()

    # ── Ownership chain ──

    def _insert(self, sql: str, params: tuple) -> int:
        with _connect(self.db_path) as conn:
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor.lastrowid

    def create_project(self, name: str) -> int:
        return self._insert("INSERT INTO projects (name) VALUES (?)", (name,))

    def create_workspace(self, project_id: int, name: str) -> int:
        return self._insert(
            "INSERT INTO workspaces (project_id, name) VALUES (?, ?)", (project_id, name)
        )

    def create_space(self, workspace_id: int, name: str) -> int:
        return self._insert(
            "INSERT INTO spaces (workspace_id, name) VALUES (?, ?)", (workspace_id, name)
        )

    def create_list(self, name: str, space_id: Optional[int] = None) -> int:
        return self._insert(
            "INSERT INTO lists (space_id, name) VALUES (?, ?)", (space_id, name)
        )

    def list_exists(self, list_id: int) -> bool:
        with _connect(self.db_path) as conn:
            row = conn.execute("SELECT 1 FROM lists WHERE id = ?", (list_id,)).fetchone()
        return row is not None
