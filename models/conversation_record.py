from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class ConversationRecord:
    """Row of the conversations table; one per (user, paper) pair."""

    id: str
    user_id: str
    exam_paper_id: str
    title: Optional[str] = None
    created_at: Optional[float] = None
