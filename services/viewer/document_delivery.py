"""Keep the exam paper visible through an ordered set of viewer methods.

Desktop clients get the PDF binary once and render it inline. Mobile
clients cannot render local binaries reliably, so they cycle through the
embed methods: each attempt has a deadline, and a failure signal or an
expired deadline moves on to the next method. After `max_attempts`
failures the controller is exhausted and waits for a manual retry.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from models.viewer_models import (
	FALLBACK_ORDER,
	ViewerAttempt,
	ViewerMethod,
	ViewerState,
	ViewerStatus,
)
from services.viewer.timeout_queue import TimeoutQueue, TimerHandle
from services.viewer.viewer_urls import DEFAULT_PDFJS_VIEWER, build_viewer_url

LOGGER = logging.getLogger(__name__)

StateListener = Callable[[ViewerState], None]


class DocumentDeliveryController:
	"""State machine over viewer methods for one viewer session."""

	def __init__(
		self,
		timeouts: TimeoutQueue,
		methods: Sequence[ViewerMethod] = FALLBACK_ORDER,
		max_attempts: int = 4,
		attempt_timeout: float = 10.0,
		pdfjs_viewer: str = DEFAULT_PDFJS_VIEWER,
	) -> None:
		if not methods:
			raise ValueError("At least one viewer method is required.")
		if max_attempts < 1:
			raise ValueError("max_attempts must be at least 1.")
		self._timeouts = timeouts
		self.methods = tuple(methods)
		self.max_attempts = max_attempts
		self.attempt_timeout = attempt_timeout
		self.pdfjs_viewer = pdfjs_viewer

		self.document_id: Optional[str] = None
		self.document_url: Optional[str] = None
		self.inline_url: Optional[str] = None
		self.binary: Optional[bytes] = None
		self.status = ViewerStatus.IDLE
		self.attempt: Optional[ViewerAttempt] = None
		self._method: Optional[ViewerMethod] = None
		self._timer: Optional[TimerHandle] = None
		self._listeners: List[StateListener] = []

	@property
	def state(self) -> ViewerState:
		attempt = self.attempt
		method = attempt.method if attempt else self._method
		viewer_url = None
		if method is not None and self.status in (ViewerStatus.LOADING, ViewerStatus.LOADED):
			viewer_url = build_viewer_url(
				method, self.document_url or "", pdfjs_viewer=self.pdfjs_viewer, inline_url=self.inline_url
			)
		return ViewerState(
			document_id=self.document_id,
			status=self.status,
			method=method,
			attempt_index=attempt.attempt_index if attempt else 0,
			viewer_url=viewer_url,
			deadline=attempt.deadline if attempt and self.status is ViewerStatus.LOADING else None,
			can_retry=self.status is ViewerStatus.EXHAUSTED,
		)

	def subscribe(self, listener: StateListener) -> Callable[[], None]:
		"""Register a state-change listener and return its unsubscribe function."""
		self._listeners.append(listener)

		def unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	async def load(
		self,
		document_id: str,
		document_url: Optional[str],
		is_mobile: bool,
		fetch_binary: Optional[Callable[[], Awaitable[bytes]]] = None,
		inline_url: Optional[str] = None,
	) -> ViewerState:
		"""Start showing `document_id`.

		Loading the document already on screen is a no-op; a different
		document resets attempts, timers and the cached binary.
		"""
		if document_id == self.document_id and self.status is not ViewerStatus.IDLE:
			return self.state

		self._clear_timer()
		self.document_id = document_id
		self.document_url = document_url
		self.inline_url = inline_url
		self.binary = None
		self.attempt = None
		self._method = None

		if not is_mobile and fetch_binary is not None:
			try:
				self.binary = await fetch_binary()
			except Exception as exc:
				LOGGER.error("Failed to fetch document %s for inline viewing: %s", document_id, exc)
			else:
				# A newer load may have replaced this document while the fetch was pending.
				if self.document_id != document_id:
					return self.state
				self._method = ViewerMethod.INLINE
				return self._set_status(ViewerStatus.LOADED)

		if not self.document_url:
			LOGGER.error("Document %s has no URL to fall back to", document_id)
			return self._set_status(ViewerStatus.EXHAUSTED)

		return self._begin_attempt(0)

	def mark_loaded(self, attempt_index: Optional[int] = None) -> ViewerState:
		"""Handle the client's render-success signal."""
		if not self._is_current(attempt_index):
			return self.state
		self._clear_timer()
		LOGGER.info("Document %s rendered with %s", self.document_id, self.attempt.method.value)
		return self._set_status(ViewerStatus.LOADED)

	def mark_failed(self, attempt_index: Optional[int] = None) -> ViewerState:
		"""Handle the client's render-failure signal."""
		if not self._is_current(attempt_index):
			return self.state
		LOGGER.warning(
			"Viewer %s failed for document %s (attempt %d)",
			self.attempt.method.value,
			self.document_id,
			self.attempt.attempt_index,
		)
		return self._advance()

	def retry(self) -> ViewerState:
		"""Restart the cycle from the primary method."""
		if self.document_id is None:
			raise RuntimeError("No document loaded.")
		if not self.document_url:
			return self.state
		return self._begin_attempt(0)

	def close(self) -> None:
		self._clear_timer()
		self._listeners.clear()

	def _is_current(self, attempt_index: Optional[int]) -> bool:
		if self.status is not ViewerStatus.LOADING or self.attempt is None:
			return False
		return attempt_index is None or attempt_index == self.attempt.attempt_index

	def _on_deadline(self, attempt_index: int) -> None:
		self._timer = None
		if not self._is_current(attempt_index):
			return
		LOGGER.warning(
			"Viewer %s timed out for document %s (attempt %d)",
			self.attempt.method.value,
			self.document_id,
			attempt_index,
		)
		self._advance()

	def _advance(self) -> ViewerState:
		next_index = self.attempt.attempt_index + 1
		if next_index >= self.max_attempts:
			self._clear_timer()
			LOGGER.error("All viewer methods failed for document %s", self.document_id)
			return self._set_status(ViewerStatus.EXHAUSTED)
		return self._begin_attempt(next_index)

	def _begin_attempt(self, attempt_index: int) -> ViewerState:
		self._clear_timer()
		method = self.methods[attempt_index % len(self.methods)]
		self.attempt = ViewerAttempt(
			method=method,
			attempt_index=attempt_index,
			deadline=self._timeouts.now() + self.attempt_timeout,
		)
		self._timer = self._timeouts.schedule(self.attempt_timeout, lambda: self._on_deadline(attempt_index))
		return self._set_status(ViewerStatus.LOADING)

	def _clear_timer(self) -> None:
		if self._timer is not None:
			self._timeouts.cancel(self._timer)
			self._timer = None

	def _set_status(self, status: ViewerStatus) -> ViewerState:
		self.status = status
		state = self.state
		for listener in list(self._listeners):
			try:
				listener(state)
			except Exception as exc:
				LOGGER.error("Viewer state listener failed: %s", exc)
		return state
