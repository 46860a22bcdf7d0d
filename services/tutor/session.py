"""One open exam-paper viewer with its tutoring conversation."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, List, Optional, Type

from models.exam_paper import ExamPaper
from models.question_asset import DocumentPages, QuestionAsset
from models.session_models import ConversationState, SessionMessage, TurnResult
from models.tutor_mode import (
    Clarify,
    ContinuePrevious,
    FirstQuestionConfirm,
    FollowUp,
    FullDocumentFallback,
    Mode,
    NewQuestionLookup,
)
from services.conversation_persistence import ConversationPersistence, last_question_number
from services.tutor.backend import TutorBackendError
from services.tutor.prompts import BACKEND_APOLOGY, FIRST_QUESTION_CONFIRM, clarification_message
from services.tutor.question_cache import QuestionDataCache
from services.tutor.request_composer import AIRequestComposer, RequestContext, image_savings
from services.tutor.state_machine import ConversationStateMachine
from services.viewer.document_delivery import DocumentDeliveryController

LOGGER = logging.getLogger(__name__)


class SessionBusyError(RuntimeError):
    """Raised when a message arrives while the previous one is still being answered."""


class TutoringSession:
    """Session-scoped cache, conversation state, transcript and viewer.

    Nothing here is shared between sessions; a new session is opened every
    time a student opens a paper.
    """

    def __init__(
        self,
        session_id: str,
        paper: ExamPaper,
        cache: QuestionDataCache,
        backend,
        persistence: ConversationPersistence,
        viewer: DocumentDeliveryController,
        user_id: Optional[str] = None,
        is_mobile: bool = False,
        provider: str = "gemini",
    ) -> None:
        self.session_id = session_id
        self.paper = paper
        self.cache = cache
        self.backend = backend
        self.persistence = persistence
        self.viewer = viewer
        self.user_id = user_id
        self.is_mobile = is_mobile
        self.provider = provider

        self.state = ConversationState()
        self.transcript: List[SessionMessage] = []
        self.in_flight = False

        self._state_machine = ConversationStateMachine()
        self._composer = AIRequestComposer()
        self._handlers: Dict[Type, Callable[[Mode, SessionMessage], Awaitable[TurnResult]]] = {
            FollowUp: self._handle_follow_up,
            NewQuestionLookup: self._handle_lookup,
            ContinuePrevious: self._handle_lookup,
            FirstQuestionConfirm: self._handle_first_question_confirm,
            Clarify: self._handle_clarify,
        }

    async def resume(self, now: Optional[float] = None) -> List[SessionMessage]:
        """Load the student's stored conversation for this paper, if any."""
        if not self.user_id:
            return self.transcript

        conversation_id = await self.persistence.find_conversation(self.paper.id, self.user_id)
        if conversation_id is None:
            LOGGER.info("No existing conversation for paper %s", self.paper.id)
            return self.transcript

        self.transcript = await self.persistence.load_transcript(conversation_id, now=now)
        self.state.conversation_id = conversation_id
        self.state.last_question_number = last_question_number(self.transcript)
        self.state.message_count = len(self.transcript)
        LOGGER.info(
            "Resumed conversation %s (%d messages, last question %s)",
            conversation_id,
            len(self.transcript),
            self.state.last_question_number,
        )
        return self.transcript

    def close(self) -> None:
        """Stop the viewer timers and release the backend's state for this session."""
        self.viewer.close()
        self.backend.forget(self.session_id)

    async def send(self, text: str) -> TurnResult:
        """Handle one student message and return the reply shown for it."""
        cleaned = (text or "").strip()
        if not cleaned:
            raise ValueError("Message text is required.")
        if self.in_flight:
            raise SessionBusyError("A message is already being answered for this session.")

        self.in_flight = True
        try:
            user_message = SessionMessage(role="user", content=cleaned)
            self.transcript.append(user_message)
            self.state.message_count = len(self.transcript)

            mode = self._state_machine.resolve(cleaned, self.state)
            LOGGER.info(
                "Message resolved as %s (last question %s, %d messages)",
                mode.kind,
                self.state.last_question_number,
                self.state.message_count,
            )
            return await self._handlers[type(mode)](mode, user_message)
        finally:
            self.in_flight = False

    async def _handle_first_question_confirm(self, mode: Mode, user_message: SessionMessage) -> TurnResult:
        self.state.awaiting_first_question_confirm = True
        return self._local_reply(mode, FIRST_QUESTION_CONFIRM)

    async def _handle_clarify(self, mode: Mode, user_message: SessionMessage) -> TurnResult:
        self.state.awaiting_first_question_confirm = False
        return self._local_reply(mode, clarification_message(user_message.content))

    async def _handle_follow_up(self, mode: FollowUp, user_message: SessionMessage) -> TurnResult:
        payload = self._composer.compose(mode, self._context(user_message))
        return await self._ask(mode, user_message, payload, resolved=None)

    async def _handle_lookup(self, mode: Mode, user_message: SessionMessage) -> TurnResult:
        asset: Optional[QuestionAsset] = await self.cache.get(mode.question_number)
        if asset is None or not asset.images:
            LOGGER.info("Question %s unavailable, falling back to the full paper", mode.question_number)
            fallback = FullDocumentFallback(question_number=mode.question_number)
            pages = await self.cache.document_pages()
            payload = self._composer.compose(fallback, self._context(user_message), pages=pages)
            return await self._ask(fallback, user_message, payload, resolved=None)

        payload = self._composer.compose(mode, self._context(user_message), asset=asset)
        resolved = mode.question_number if isinstance(mode, NewQuestionLookup) else None
        return await self._ask(mode, user_message, payload, resolved=resolved)

    async def _ask(self, mode: Mode, user_message: SessionMessage, payload: Dict, resolved: Optional[str]) -> TurnResult:
        """Call the backend, record the reply, then update state and persist."""
        images_sent = len(payload.get("examPaperImages") or []) + len(payload.get("markingSchemeImages") or [])
        try:
            reply = await self.backend.ask(payload, session_key=self.session_id)
        except TutorBackendError as exc:
            LOGGER.error("Error answering message in session %s: %s", self.session_id, exc)
            apology = self._append_reply(BACKEND_APOLOGY, None)
            return TurnResult(
                mode=mode.kind,
                reply=apology,
                called_backend=True,
                optimized=payload.get("optimizedMode"),
                images_sent=images_sent,
                messages=list(self.transcript),
            )

        question_number = None if isinstance(mode, FullDocumentFallback) else mode.question_number

        if reply.question_not_found:
            LOGGER.info("Backend reports question %s does not exist in paper %s", mode.question_number, self.paper.id)
            message = self._append_reply(reply.answer, mode.question_number)
            return TurnResult(
                mode=mode.kind,
                reply=message,
                called_backend=True,
                optimized=payload.get("optimizedMode"),
                images_sent=images_sent,
                messages=list(self.transcript),
            )

        message = self._append_reply(reply.answer, question_number)
        if resolved is not None:
            self.state.last_question_number = resolved
        self.state.awaiting_first_question_confirm = False
        self._log_savings(payload)

        persisted = await self._persist(user_message, message, question_number)
        return TurnResult(
            mode=mode.kind,
            reply=message,
            called_backend=True,
            persisted=persisted,
            optimized=payload.get("optimizedMode"),
            images_sent=images_sent,
            messages=list(self.transcript),
        )

    async def _persist(self, user_message: SessionMessage, reply: SessionMessage, question_number: Optional[str]) -> bool:
        if not self.user_id:
            return False
        try:
            if self.state.conversation_id is None:
                self.state.conversation_id = await self.persistence.ensure_conversation(
                    self.paper.id, self.user_id, title=self.paper.title or user_message.content[:50]
                )
            await self.persistence.append_exchange(
                self.state.conversation_id, user_message.content, reply.content, question_number
            )
        except Exception as exc:
            LOGGER.error("Error saving conversation for session %s: %s", self.session_id, exc)
            return False
        return True

    def _local_reply(self, mode: Mode, content: str) -> TurnResult:
        message = self._append_reply(content, None)
        return TurnResult(mode=mode.kind, reply=message, messages=list(self.transcript))

    def _append_reply(self, content: str, question_number: Optional[str]) -> SessionMessage:
        message = SessionMessage(role="assistant", content=content, question_number=question_number)
        self.transcript.append(message)
        self.state.message_count = len(self.transcript)
        return message

    def _context(self, user_message: SessionMessage) -> RequestContext:
        return RequestContext(
            question=user_message.content,
            provider=self.provider,
            exam_paper_id=self.paper.id,
            conversation_id=self.state.conversation_id,
            user_id=self.user_id,
            last_question_number=self.state.last_question_number,
        )

    def _log_savings(self, payload: Dict) -> None:
        pages: Optional[DocumentPages] = self.cache.cached_document_pages()
        if not payload.get("optimizedMode") or pages is None:
            return
        savings = image_savings(payload, pages)
        LOGGER.info(
            "Optimized request sent %d images, saved %d of %d (%d%%)",
            savings["sent"],
            savings["saved"],
            pages.total,
            savings["percent"],
        )
