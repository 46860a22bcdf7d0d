"""Simple in-memory store for open tutoring sessions."""

from __future__ import annotations

from typing import Callable, Dict, List
from uuid import uuid4

from services.tutor.session import TutoringSession


class SessionStore:
	"""Track the tutoring sessions of every open viewer screen."""

	def __init__(self) -> None:
		self._sessions: Dict[str, TutoringSession] = {}

	def create(self, factory: Callable[[str], TutoringSession]) -> TutoringSession:
		"""Build a session with a fresh id using `factory(session_id)` and register it."""
		session_id = uuid4().hex
		session = factory(session_id)
		self._sessions[session_id] = session
		return session

	def get(self, session_id: str) -> TutoringSession:
		"""Return a session or raise KeyError if missing."""
		session = self._sessions.get(session_id)
		if session is None:
			raise KeyError(f"Session {session_id} not found")
		return session

	def close(self, session_id: str) -> TutoringSession:
		"""Close the session and forget it."""
		session = self.get(session_id)
		session.close()
		del self._sessions[session_id]
		return session

	def session_ids(self) -> List[str]:
		return list(self._sessions)

	def close_all(self) -> None:
		for session_id in self.session_ids():
			self.close(session_id)
