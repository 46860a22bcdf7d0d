"""Session domain models for tutoring conversations."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class SessionMessage:
	"""One chat message shown in the viewer transcript."""

	role: str
	content: str
	question_number: Optional[str] = None
	created_at: float = field(default_factory=lambda: time.time())

	def to_dict(self) -> Dict[str, Any]:
		return {
			"role": self.role,
			"content": self.content,
			"questionNumber": self.question_number,
			"createdAt": self.created_at,
		}


@dataclass
class ConversationState:
	"""State carried between turns of one tutoring session.

	`last_question_number` only moves after a successful lookup of a new
	question; follow-ups, continuations and fallbacks leave it untouched.
	"""

	last_question_number: Optional[str] = None
	message_count: int = 0
	conversation_id: Optional[str] = None
	awaiting_first_question_confirm: bool = False


@dataclass
class TurnResult:
	"""Outcome of handling one student message."""

	mode: str
	reply: SessionMessage
	called_backend: bool = False
	persisted: bool = False
	optimized: Optional[bool] = None
	images_sent: int = 0
	messages: List[SessionMessage] = field(default_factory=list)
