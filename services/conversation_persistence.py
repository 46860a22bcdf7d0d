"""Conversation log persistence for tutoring sessions.

Wraps `ConversationDAL` with the session-level rules: one conversation per
(user, paper), exchanges written as a pair, and a "welcome back" note when
a student resumes a conversation on a later day.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import List, Optional, Sequence

from dal.conversation_dal import ConversationDAL
from models.session_models import SessionMessage
from services.tutor.prompts import WELCOME_BACK

LOGGER = logging.getLogger(__name__)


class ConversationPersistence:
    """Get-or-create conversations and append message pairs."""

    def __init__(self, dal: ConversationDAL) -> None:
        self._dal = dal

    async def find_conversation(self, paper_id: str, user_id: str) -> Optional[str]:
        record = await self._dal.find_conversation(user_id, paper_id)
        return record.id if record else None

    async def ensure_conversation(self, paper_id: str, user_id: str, title: Optional[str] = None) -> str:
        """Return the conversation id for (user, paper), creating it only if absent.

        Existence is checked immediately before the insert, and the insert
        itself is ignored on a (user, paper) conflict, so concurrent callers
        always end up with the same single row.
        """
        existing = await self._dal.find_conversation(user_id, paper_id)
        if existing is not None:
            return existing.id

        created = await self._dal.insert_conversation(user_id, paper_id, title)
        record = await self._dal.find_conversation(user_id, paper_id)
        if record is None:
            raise RuntimeError(f"Conversation for user {user_id} and paper {paper_id} was not created")
        if created:
            LOGGER.info("Created conversation %s for paper %s", record.id, paper_id)
        return record.id

    async def append_exchange(
        self,
        conversation_id: str,
        user_message: str,
        assistant_message: str,
        question_number: Optional[str],
    ) -> List[SessionMessage]:
        """Persist a user message and its reply together; both rows or neither."""
        now = time.time()
        rows = [
            SessionMessage(role="user", content=user_message, question_number=question_number, created_at=now),
            SessionMessage(role="assistant", content=assistant_message, question_number=question_number, created_at=now),
        ]
        await self._dal.append_messages(conversation_id, rows)
        return rows

    async def load_transcript(self, conversation_id: str, now: Optional[float] = None) -> List[SessionMessage]:
        """Load a stored conversation for display.

        If the newest stored message is from an earlier calendar day, a
        welcome-back message is added after the history. It is only part of
        the returned transcript and is never written to the store.
        """
        messages = await self._dal.list_messages(conversation_id)
        if messages and is_new_day(messages[-1].created_at, now):
            messages.append(
                SessionMessage(
                    role="assistant",
                    content=WELCOME_BACK,
                    question_number=None,
                    created_at=now if now is not None else time.time(),
                )
            )
        return messages


def is_new_day(last_timestamp: float, now: Optional[float] = None) -> bool:
    """True when `last_timestamp` falls on an earlier local calendar day than `now`."""
    current = datetime.fromtimestamp(now if now is not None else time.time())
    return datetime.fromtimestamp(last_timestamp).date() < current.date()


def last_question_number(messages: Sequence[SessionMessage]) -> Optional[str]:
    """Return the question number of the newest message that carries one."""
    for message in reversed(messages):
        if message.question_number:
            return message.question_number
    return None
