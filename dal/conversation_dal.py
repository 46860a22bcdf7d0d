"""Async Data Access Layer for conversations and conversation_messages."""

from __future__ import annotations

import time
import uuid
from typing import List, Optional, Sequence

from models.conversation_record import ConversationRecord
from models.session_models import SessionMessage
from utils.database_init import AsyncDatabaseInitializer


class ConversationDAL:
    """Data access layer for the conversation log.

    Messages are append-only; nothing here updates or deletes a message.
    """

    _CONVERSATION_COLUMNS = "id, user_id, exam_paper_id, title, created_at"

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def find_conversation(self, user_id: str, exam_paper_id: str) -> Optional[ConversationRecord]:
        """Return the conversation for (user, paper), or None if not created yet."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._CONVERSATION_COLUMNS} FROM conversations WHERE user_id = ? AND exam_paper_id = ?",
                (user_id, exam_paper_id),
            )
            row = await cur.fetchone()
            return self._row_to_conversation(row) if row else None

    async def insert_conversation(self, user_id: str, exam_paper_id: str, title: Optional[str]) -> bool:
        """Insert a conversation unless one already exists for (user, paper).

        Returns:
            True if this call created the row, False if it already existed.
        """
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "INSERT OR IGNORE INTO conversations (id, user_id, exam_paper_id, title, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (uuid.uuid4().hex, user_id, exam_paper_id, title, time.time()),
            )
            await conn.commit()
            return bool(cur.rowcount and cur.rowcount > 0)

    async def count_conversations(self, user_id: str, exam_paper_id: str) -> int:
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT COUNT(*) FROM conversations WHERE user_id = ? AND exam_paper_id = ?",
                (user_id, exam_paper_id),
            )
            row = await cur.fetchone()
            return int(row[0]) if row else 0

    async def append_messages(self, conversation_id: str, messages: Sequence[SessionMessage]) -> None:
        """Insert all `messages` in a single transaction."""
        async with self._db.connection() as conn:
            try:
                await conn.executemany(
                    "INSERT INTO conversation_messages "
                    "(conversation_id, role, content, question_number, has_images, created_at) "
                    "VALUES (?, ?, ?, ?, 0, ?)",
                    [
                        (conversation_id, msg.role, msg.content, msg.question_number, msg.created_at)
                        for msg in messages
                    ],
                )
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    async def list_messages(self, conversation_id: str) -> List[SessionMessage]:
        """Return every message of a conversation in insert order."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT role, content, question_number, created_at FROM conversation_messages "
                "WHERE conversation_id = ? ORDER BY id ASC",
                (conversation_id,),
            )
            rows = await cur.fetchall()
        return [
            SessionMessage(role=row[0], content=row[1], question_number=row[2], created_at=row[3])
            for row in rows
        ]

    @staticmethod
    def _row_to_conversation(row: Sequence[object]) -> ConversationRecord:
        return ConversationRecord(
            id=row[0],
            user_id=row[1],
            exam_paper_id=row[2],
            title=row[3],
            created_at=row[4],
        )
