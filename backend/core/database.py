"""
SQLite storage for saved courses.
"""
import sqlite3
import uuid
from pathlib import Path
from typing import Optional, List
from contextlib import contextmanager

from .config import DB_PATH, SCHEMA_FILE


class Database:
    """Database manager for SQLite operations."""

    def __init__(self, db_path: Path = DB_PATH, schema_file: Path = SCHEMA_FILE):
        self.db_path = Path(db_path)
        self.schema_file = schema_file
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.ensure_tables()

    @contextmanager
    def get_connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_tables(self):
        """Create all tables if they don't exist."""
        with open(self.schema_file, "r", encoding="utf-8") as f:
            schema = f.read()

        with self.get_connection() as conn:
            conn.executescript(schema)

    def execute(self, query: str, params: Optional[tuple] = None) -> List[sqlite3.Row]:
        """Execute a SELECT query and return results."""
        with self.get_connection() as conn:
            cursor = conn.execute(query, params or ())
            return cursor.fetchall()

    def execute_one(self, query: str, params: Optional[tuple] = None) -> Optional[sqlite3.Row]:
        """Execute a SELECT query and return first result."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_write(self, query: str, params: Optional[tuple] = None) -> int:
        """Execute an INSERT/UPDATE/DELETE query and return the affected row count."""
        with self.get_connection() as conn:
            cursor = conn.execute(query, params or ())
            return cursor.rowcount


class CourseStore:
    """Saves and loads course snapshots."""

    def __init__(self, db: Database):
        self.db = db

    def save(self, topic: str, snapshot: str, section_count: int = 0,
             title: Optional[str] = None, course_id: Optional[str] = None) -> str:
        """Insert a new course, or overwrite ``course_id`` if it exists. Returns its id."""
        course_id = course_id or f"course_{uuid.uuid4().hex[:12]}"
        self.db.execute_write(
            """
            INSERT INTO courses (course_id, topic, title, section_count, snapshot)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(course_id) DO UPDATE SET
                topic = excluded.topic,
                title = excluded.title,
                section_count = excluded.section_count,
                snapshot = excluded.snapshot,
                updated_at = CURRENT_TIMESTAMP
            """,
            (course_id, topic, title or topic, section_count, snapshot),
        )
        return course_id

    def load(self, course_id: str) -> Optional[str]:
        """Snapshot JSON of a saved course, or None."""
        row = self.db.execute_one(
            "SELECT snapshot FROM courses WHERE course_id = ?",
            (course_id,),
        )
        return row["snapshot"] if row else None

    def list_courses(self, limit: int = 50) -> List[sqlite3.Row]:
        return self.db.execute(
            """
            SELECT course_id, topic, title, section_count, created_at, updated_at
            FROM courses ORDER BY updated_at DESC LIMIT ?
            """,
            (limit,),
        )
