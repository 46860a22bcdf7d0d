import os
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite


SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS exam_papers (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        pdf_path TEXT,
        pdf_url TEXT,
        page_image_urls TEXT NOT NULL DEFAULT '[]',
        marking_scheme_page_urls TEXT NOT NULL DEFAULT '[]',
        created_at INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS exam_questions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        exam_paper_id TEXT NOT NULL REFERENCES exam_papers(id),
        question_number TEXT NOT NULL,
        ocr_text TEXT,
        image_url TEXT,
        image_urls TEXT NOT NULL DEFAULT '[]',
        marking_scheme_text TEXT,
        UNIQUE (exam_paper_id, question_number)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS conversations (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        exam_paper_id TEXT NOT NULL,
        title TEXT,
        created_at REAL NOT NULL,
        UNIQUE (user_id, exam_paper_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS conversation_messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        conversation_id TEXT NOT NULL REFERENCES conversations(id),
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        question_number TEXT,
        has_images INTEGER NOT NULL DEFAULT 0,
        created_at REAL NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_conversation ON conversation_messages (conversation_id, id)",
)


class AsyncDatabaseInitializer:
    """
    Manage an async SQLite database using the DATABASE_DIR environment variable.

    - The database file is located at: <DATABASE_DIR>/tutor.db
    - DATABASE_DIR is required. A RuntimeError is raised if it is missing
      or invalid (not a directory and cannot be created).
    - On the first call to `ensure_database()` for a given instance the
      schema is created. Existing conversations are kept unless the
      instance was built with `reset=True`.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, reset: bool = False, db_name: str = "tutor.db") -> None:
        self.db_dir = self._resolve_db_dir(os.getenv("DATABASE_DIR"))
        self.db_path = self.db_dir / db_name
        self.reset = reset

        self._initialized = False

    @staticmethod
    def _resolve_db_dir(env_dir: Optional[str]) -> Path:
        """Return DATABASE_DIR as a directory, creating it when missing."""
        if not env_dir or not env_dir.strip():
            raise RuntimeError("DATABASE_DIR must name a writable directory for the tutor database.")

        db_dir = Path(env_dir).expanduser()
        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(f"DATABASE_DIR={env_dir!r} is a file, expected a directory.")
        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RuntimeError(f"Cannot create database directory {db_dir}") from exc
        return db_dir

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite database exists at `self.db_path` with every table.

        On first call this will:
            - Delete any existing database file when `reset` is set.
            - Create the exam paper, question, and conversation tables.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        if self.reset and self.db_path.exists():
            try:
                self.db_path.unlink()
            except Exception as exc:
                raise RuntimeError(
                    f"Failed to delete existing database at {self.db_path}"
                ) from exc

        max_attempts = 3
        for attempt in range(1, max_attempts + 1):
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    for statement in SCHEMA_STATEMENTS:
                        await db.execute(statement)
                    await db.commit()
                break
            except FileNotFoundError:
                # On some platforms a transient missing file error may occur; retry a few times.
                if attempt >= max_attempts:
                    raise
                await asyncio.sleep(0.1 * attempt)

        self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding an `aiosqlite.Connection`.

        The schema is created on the first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
