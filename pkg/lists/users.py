"""
User lookup service.

A user is a member of a list when they belong to the project that owns the
list through the workspace -> space -> list chain.
"""
from typing import Any, Dict, List, Optional

from .schema import User
from .store import Database, _connect


class UsersService:

    def __init__(self, db: Database):
        self.db = db

    def create(self, first_name: str, last_name: str, photo: Optional[str] = None) -> User:
        with _connect(self.db.db_path) as conn:
            cursor = conn.execute(
                "INSERT INTO users (first_name, last_name, photo) VALUES (?, ?, ?)",
                (first_name, last_name, photo),
            )
            conn.commit()
            user_id = cursor.lastrowid
        return User(id=user_id, first_name=first_name, last_name=last_name, photo=photo)

    def add_to_project(self, user_id: int, project_id: int) -> None:
        with _connect(self.db.db_path) as conn:
            conn.execute(
                "INSERT OR IGNORE INTO project_users (project_id, user_id) VALUES (?, ?)",
                (project_id, user_id),
            )
            conn.commit()

    def find_all(self, list_id: Optional[int] = None,
                 project_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Users, optionally narrowed to the members of a list or a project.

        Returns:
            {"users": [User, ...], "count": n}, ordered by user id.
        """
        sql = "SELECT DISTINCT u.* FROM users u"
        clauses: List[str] = []
        params: List[Any] = []
        if list_id is not None or project_id is not None:
            sql += " JOIN project_users pu ON pu.user_id = u.id"
        if list_id is not None:
            sql += """
                JOIN workspaces w ON w.project_id = pu.project_id
                JOIN spaces s ON s.workspace_id = w.id
                JOIN lists l ON l.space_id = s.id
            """
            clauses.append("l.id = ?")
            params.append(list_id)
        if project_id is not None:
            clauses.append("pu.project_id = ?")
            params.append(project_id)
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY u.id ASC"

        with _connect(self.db.db_path) as conn:
            rows = conn.execute(sql, params).fetchall()
        users = [
            User(id=r["id"], first_name=r["first_name"], last_name=r["last_name"], photo=r["photo"])
            for r in rows
        ]
        return {"users": users, "count": len(users)}
