"""Owner-scoped persistence for projects, tasks, notebooks and notebook pages."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
import json
import logging
import sqlite3
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from ..models.search import TimeRange
from .database import DatabaseService
from .errors import PersistenceError

logger = logging.getLogger(__name__)

TASK_UPDATABLE_FIELDS = ("title", "description", "status", "priority", "due_date")

Row = Dict[str, Any]


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def _row(row: Optional[sqlite3.Row]) -> Optional[Row]:
    return dict(row) if row is not None else None


def _time_filter(column: str, time_range: Optional[TimeRange]) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if time_range is not None:
        if time_range.start is not None:
            clauses.append(f"{column} >= ?")
            params.append(_to_iso(time_range.start))
        if time_range.end is not None:
            clauses.append(f"{column} <= ?")
            params.append(_to_iso(time_range.end))
    sql = "".join(f" AND {clause}" for clause in clauses)
    return sql, params


def _message(row: sqlite3.Row) -> Row:
    message = dict(row)
    message["metadata"] = json.loads(message["metadata"]) if message.get("metadata") else {}
    return message


def _placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


class WorkspaceStore:
    """SQLite-backed store; every lookup is filtered by the owning user."""

    def __init__(self, db_service: DatabaseService | None = None) -> None:
        self._db = db_service or DatabaseService()

    @contextmanager
    def _session(self, operation: str) -> Iterator[sqlite3.Connection]:
        conn = self._db.connect()
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error(f"Store operation {operation} failed: {exc}")
            raise PersistenceError(
                f"Database operation failed: {operation}",
                {"operation": operation, "reason": str(exc)},
            ) from exc
        finally:
            conn.close()

    # =========================================================================
    # Users
    # =========================================================================

    def ensure_user(self, user_id: int, email: str, username: str) -> bool:
        """Create the user row with a fixed id if missing; True when created."""
        now = _utcnow_iso()
        with self._session("ensure_user") as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO users (id, email, username, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, email, username, now, now),
            )
            return cursor.rowcount > 0

    def get_user(self, user_id: int) -> Optional[Row]:
        with self._session("get_user") as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row(row)

    # =========================================================================
    # Ownership lookups
    # =========================================================================

    def get_owned_project(self, user_id: int, project_id: int) -> Optional[Row]:
        with self._session("get_owned_project") as conn:
            row = conn.execute(
                "SELECT * FROM projects WHERE id = ? AND user_id = ?",
                (project_id, user_id),
            ).fetchone()
        return _row(row)

    def get_owned_notebook(self, user_id: int, notebook_id: int) -> Optional[Row]:
        with self._session("get_owned_notebook") as conn:
            row = conn.execute(
                "SELECT * FROM notebooks WHERE id = ? AND user_id = ?",
                (notebook_id, user_id),
            ).fetchone()
        return _row(row)

    def get_owned_page(self, user_id: int, page_id: int) -> Optional[Row]:
        with self._session("get_owned_page") as conn:
            row = conn.execute(
                """
                SELECT p.*, n.title AS notebook_title
                FROM notebook_pages AS p
                JOIN notebooks AS n ON p.notebook_id = n.id
                WHERE p.id = ? AND n.user_id = ?
                """,
                (page_id, user_id),
            ).fetchone()
        return _row(row)

    def get_task(self, task_id: int) -> Optional[Row]:
        with self._session("get_task") as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row(row)

    def get_owned_task(self, user_id: int, task_id: int) -> Optional[Row]:
        """A task with its project name, when the project belongs to ``user_id``."""
        with self._session("get_owned_task") as conn:
            row = conn.execute(
                """
                SELECT t.*, p.name AS project_name
                FROM tasks AS t
                JOIN projects AS p ON t.project_id = p.id
                WHERE t.id = ? AND p.user_id = ?
                """,
                (task_id, user_id),
            ).fetchone()
        return _row(row)

    @staticmethod
    def _owned_task_ids(
        conn: sqlite3.Connection, user_id: int, task_ids: Sequence[int]
    ) -> List[int]:
        rows = conn.execute(
            f"""
            SELECT t.id
            FROM tasks AS t
            JOIN projects AS p ON t.project_id = p.id
            WHERE p.user_id = ? AND t.id IN ({_placeholders(task_ids)})
            ORDER BY t.id
            """,
            (user_id, *task_ids),
        ).fetchall()
        return [int(row["id"]) for row in rows]

    # =========================================================================
    # Projects
    # =========================================================================

    def insert_project(
        self,
        user_id: int,
        name: str,
        description: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Row:
        now = _utcnow_iso()
        with self._session("insert_project") as conn:
            cursor = conn.execute(
                """
                INSERT INTO projects (user_id, name, description, color, created_at, updated_at)
                VALUES (?, ?, ?, COALESCE(?, '#10B981'), ?, ?)
                """,
                (user_id, name, description, color, now, now),
            )
            row = conn.execute(
                "SELECT * FROM projects WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return dict(row)

    def list_projects(
        self,
        user_id: int,
        *,
        include_archived: bool = False,
        time_range: Optional[TimeRange] = None,
    ) -> List[Row]:
        time_sql, time_params = _time_filter("updated_at", time_range)
        archived_sql = "" if include_archived else " AND archived = 0"
        with self._session("list_projects") as conn:
            rows = conn.execute(
                f"""
                SELECT id, name, description, status, updated_at
                FROM projects
                WHERE user_id = ?{archived_sql}{time_sql}
                ORDER BY id
                """,
                (user_id, *time_params),
            ).fetchall()
        return [dict(row) for row in rows]

    # =========================================================================
    # Tasks
    # =========================================================================

    def insert_task(
        self,
        user_id: int,
        project_id: int,
        title: str,
        *,
        description: Optional[str] = None,
        status: str = "todo",
        priority: str = "medium",
        due_date: Optional[str] = None,
    ) -> Row:
        """Insert a task at the bottom of its (project, status) column."""
        now = _utcnow_iso()
        with self._session("insert_task") as conn:
            # Position is assigned inside the INSERT, never from a separate read.
            cursor = conn.execute(
                """
                INSERT INTO tasks (
                    project_id, user_id, title, description, status,
                    priority, position, due_date, created_at, updated_at
                )
                SELECT ?, ?, ?, ?, ?, ?, COALESCE(MAX(position), 0) + 1, ?, ?, ?
                FROM tasks
                WHERE project_id = ? AND status = ?
                """,
                (
                    project_id,
                    user_id,
                    title,
                    description,
                    status,
                    priority,
                    due_date,
                    now,
                    now,
                    project_id,
                    status,
                ),
            )
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return dict(row)

    def update_tasks(
        self, user_id: int, task_ids: Sequence[int], updates: Mapping[str, Any]
    ) -> List[int]:
        """Apply ``updates`` to the owned subset of ``task_ids``; return updated ids."""
        fields = {key: value for key, value in updates.items() if key in TASK_UPDATABLE_FIELDS}
        with self._session("update_tasks") as conn:
            owned = self._owned_task_ids(conn, user_id, task_ids) if task_ids else []
            if not owned or not fields:
                return owned
            assignments = ", ".join(f"{column} = ?" for column in fields)
            conn.execute(
                f"""
                UPDATE tasks
                SET {assignments}, updated_at = ?
                WHERE id IN ({_placeholders(owned)})
                """,
                (*fields.values(), _utcnow_iso(), *owned),
            )
        return owned

    def delete_tasks(self, user_id: int, task_ids: Sequence[int]) -> List[int]:
        """Delete the owned subset of ``task_ids``; return the deleted ids."""
        with self._session("delete_tasks") as conn:
            owned = self._owned_task_ids(conn, user_id, task_ids) if task_ids else []
            if owned:
                conn.execute(
                    f"DELETE FROM tasks WHERE id IN ({_placeholders(owned)})",
                    tuple(owned),
                )
        return owned

    def list_project_tasks(self, project_id: int) -> List[Row]:
        with self._session("list_project_tasks") as conn:
            rows = conn.execute(
                """
                SELECT id, title, description, status, priority
                FROM tasks
                WHERE project_id = ?
                ORDER BY status, position, id
                """,
                (project_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    def list_tasks(self, user_id: int, *, time_range: Optional[TimeRange] = None) -> List[Row]:
        time_sql, time_params = _time_filter("t.updated_at", time_range)
        with self._session("list_tasks") as conn:
            rows = conn.execute(
                f"""
                SELECT t.id, t.title, t.description, t.status, t.priority, t.position,
                       t.updated_at, p.id AS project_id, p.name AS project_name
                FROM tasks AS t
                JOIN projects AS p ON t.project_id = p.id
                WHERE p.user_id = ?{time_sql}
                ORDER BY t.id
                """,
                (user_id, *time_params),
            ).fetchall()
        return [dict(row) for row in rows]

    # =========================================================================
    # Notebooks and pages
    # =========================================================================

    def insert_notebook(
        self,
        user_id: int,
        title: str,
        *,
        description: Optional[str] = None,
        project_id: Optional[int] = None,
        icon: Optional[str] = None,
    ) -> Row:
        now = _utcnow_iso()
        with self._session("insert_notebook") as conn:
            cursor = conn.execute(
                """
                INSERT INTO notebooks (
                    user_id, project_id, title, description, icon, position, created_at, updated_at
                )
                SELECT ?, ?, ?, ?, ?, COALESCE(MAX(position), 0) + 1, ?, ?
                FROM notebooks
                WHERE user_id = ?
                """,
                (user_id, project_id, title, description, icon, now, now, user_id),
            )
            row = conn.execute(
                "SELECT * FROM notebooks WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return dict(row)

    def insert_page(self, notebook_id: int, title: str, slug: str, content: str) -> Row:
        """Insert a page at the end of its notebook, suffixing the slug if taken."""
        now = _utcnow_iso()
        with self._session("insert_page") as conn:
            taken = {
                row["slug"]
                for row in conn.execute(
                    "SELECT slug FROM notebook_pages WHERE notebook_id = ? AND slug LIKE ?",
                    (notebook_id, f"{slug}%"),
                ).fetchall()
            }
            unique_slug = slug
            suffix = 2
            while unique_slug in taken:
                unique_slug = f"{slug}-{suffix}"
                suffix += 1

            cursor = conn.execute(
                """
                INSERT INTO notebook_pages (
                    notebook_id, title, slug, content, position, created_at, updated_at
                )
                SELECT ?, ?, ?, ?, COALESCE(MAX(position), 0) + 1, ?, ?
                FROM notebook_pages
                WHERE notebook_id = ?
                """,
                (notebook_id, title, unique_slug, content, now, now, notebook_id),
            )
            row = conn.execute(
                "SELECT * FROM notebook_pages WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return dict(row)

    def update_page(
        self,
        page_id: int,
        *,
        content: Optional[str] = None,
        title: Optional[str] = None,
    ) -> None:
        assignments: list[str] = []
        params: list[Any] = []
        if content is not None:
            assignments.append("content = ?")
            params.append(content)
        if title is not None:
            assignments.append("title = ?")
            params.append(title)
        if not assignments:
            return
        with self._session("update_page") as conn:
            conn.execute(
                f"UPDATE notebook_pages SET {', '.join(assignments)}, updated_at = ? WHERE id = ?",
                (*params, _utcnow_iso(), page_id),
            )

    def list_pages(self, user_id: int, *, time_range: Optional[TimeRange] = None) -> List[Row]:
        time_sql, time_params = _time_filter("p.updated_at", time_range)
        with self._session("list_pages") as conn:
            rows = conn.execute(
                f"""
                SELECT p.id, p.title, p.content, p.updated_at,
                       n.id AS notebook_id, n.title AS notebook_title
                FROM notebook_pages AS p
                JOIN notebooks AS n ON p.notebook_id = n.id
                WHERE n.user_id = ?{time_sql}
                ORDER BY p.id
                """,
                (user_id, *time_params),
            ).fetchall()
        return [dict(row) for row in rows]

    # =========================================================================
    # Chat history
    # =========================================================================

    def create_conversation(self, user_id: int, title: Optional[str] = None) -> Row:
        now = _utcnow_iso()
        with self._session("create_conversation") as conn:
            cursor = conn.execute(
                """
                INSERT INTO chat_conversations (user_id, title, started_at, last_message_at)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, title, now, now),
            )
            row = conn.execute(
                "SELECT * FROM chat_conversations WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return dict(row)

    def get_owned_conversation(self, user_id: int, conversation_id: int) -> Optional[Row]:
        with self._session("get_owned_conversation") as conn:
            row = conn.execute(
                "SELECT * FROM chat_conversations WHERE id = ? AND user_id = ?",
                (conversation_id, user_id),
            ).fetchone()
        return _row(row)

    def list_conversations(self, user_id: int) -> List[Row]:
        """Newest activity first, with message count and the latest message."""
        with self._session("list_conversations") as conn:
            rows = conn.execute(
                """
                SELECT c.id, c.title, c.started_at, c.last_message_at,
                       (SELECT COUNT(*) FROM chat_messages AS m
                        WHERE m.conversation_id = c.id) AS message_count,
                       last.content AS last_message, last.role AS last_message_role
                FROM chat_conversations AS c
                LEFT JOIN chat_messages AS last ON last.id = (
                    SELECT MAX(m.id) FROM chat_messages AS m WHERE m.conversation_id = c.id
                )
                WHERE c.user_id = ?
                ORDER BY c.last_message_at DESC, c.id DESC
                """,
                (user_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    def add_message(
        self,
        conversation_id: int,
        role: str,
        content: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Row:
        """Append a message and bump the conversation's ``last_message_at``."""
        now = _utcnow_iso()
        with self._session("add_message") as conn:
            cursor = conn.execute(
                """
                INSERT INTO chat_messages (conversation_id, role, content, metadata, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (conversation_id, role, content, json.dumps(dict(metadata or {})), now),
            )
            conn.execute(
                "UPDATE chat_conversations SET last_message_at = ? WHERE id = ?",
                (now, conversation_id),
            )
            row = conn.execute(
                "SELECT * FROM chat_messages WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return _message(row)

    def list_messages(self, conversation_id: int) -> List[Row]:
        with self._session("list_messages") as conn:
            rows = conn.execute(
                """
                SELECT id, role, content, metadata, created_at
                FROM chat_messages
                WHERE conversation_id = ?
                ORDER BY id
                """,
                (conversation_id,),
            ).fetchall()
        return [_message(row) for row in rows]

    def rename_conversation(self, user_id: int, conversation_id: int, title: str) -> bool:
        with self._session("rename_conversation") as conn:
            cursor = conn.execute(
                "UPDATE chat_conversations SET title = ? WHERE id = ? AND user_id = ?",
                (title, conversation_id, user_id),
            )
            return cursor.rowcount > 0

    def delete_conversation(self, user_id: int, conversation_id: int) -> bool:
        """Delete a conversation and, by cascade, its messages."""
        with self._session("delete_conversation") as conn:
            cursor = conn.execute(
                "DELETE FROM chat_conversations WHERE id = ? AND user_id = ?",
                (conversation_id, user_id),
            )
            return cursor.rowcount > 0


__all__ = ["WorkspaceStore", "TASK_UPDATABLE_FIELDS"]
