"""Session lifecycle helpers for the exam viewer."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request

from dal.conversation_dal import ConversationDAL
from dal.exam_paper_dal import ExamPaperDAL
from services.conversation_persistence import ConversationPersistence
from services.tutor.question_cache import QuestionDataCache
from services.tutor.session import SessionBusyError, TutoringSession
from services.tutor.session_store import SessionStore
from services.viewer.document_delivery import DocumentDeliveryController
from services.viewer.document_source import DocumentFetcher
from services.viewer.timeout_queue import AsyncioTimeoutQueue


def _get_session(request: Request, session_id: str) -> TutoringSession:
	store: SessionStore = request.app.state.session_store
	try:
		return store.get(session_id)
	except KeyError as exc:
		raise HTTPException(status_code=404, detail=str(exc)) from exc


async def start_session(request: Request, paper_id: str, user_id: Optional[str], is_mobile: bool) -> Dict[str, Any]:
	"""Open a viewer session for a paper, resume its conversation and start the viewer."""
	db_initializer = request.app.state.db_initializer
	http_client = request.app.state.http_client
	settings: Dict[str, Any] = request.app.state.viewer_settings

	paper_dal = ExamPaperDAL(db_initializer)
	paper = await paper_dal.get_paper(paper_id)
	if paper is None:
		raise HTTPException(status_code=404, detail=f"Exam paper {paper_id} not found")

	def factory(session_id: str) -> TutoringSession:
		viewer = DocumentDeliveryController(
			AsyncioTimeoutQueue(),
			max_attempts=settings["max_attempts"],
			attempt_timeout=settings["attempt_timeout"],
			pdfjs_viewer=settings["pdfjs_viewer"],
		)
		return TutoringSession(
			session_id=session_id,
			paper=paper,
			cache=QuestionDataCache(paper, paper_dal, http_client),
			backend=request.app.state.tutor_backend,
			persistence=ConversationPersistence(ConversationDAL(db_initializer)),
			viewer=viewer,
			user_id=user_id,
			is_mobile=is_mobile,
			provider=request.app.state.tutor_provider,
		)

	store: SessionStore = request.app.state.session_store
	session = store.create(factory)
	try:
		transcript = await session.resume()

		inline_url = str(request.url_for("get_document_route", session_id=session.session_id))
		# Mobile embeds need a URL the external viewers can reach; stored papers fall back to ours.
		public_url = paper.pdf_url or inline_url
		fetcher = DocumentFetcher(http_client)
		viewer_state = await session.viewer.load(
			paper.id,
			public_url,
			is_mobile,
			fetch_binary=lambda: fetcher.fetch(paper),
			inline_url=inline_url,
		)
	except Exception:
		store.close(session.session_id)
		raise

	return {
		"session_id": session.session_id,
		"paper": {"id": paper.id, "title": paper.title},
		"conversation_id": session.state.conversation_id,
		"last_question_number": session.state.last_question_number,
		"messages": [message.to_dict() for message in transcript],
		"viewer": viewer_state.to_dict(),
	}


async def list_messages(request: Request, session_id: str) -> Dict[str, Any]:
	"""Return the in-memory transcript of a session."""
	session = _get_session(request, session_id)
	return {
		"session_id": session_id,
		"last_question_number": session.state.last_question_number,
		"messages": [message.to_dict() for message in session.transcript],
	}


async def send_message(request: Request, session_id: str, text: str) -> Dict[str, Any]:
	"""Answer one student message."""
	session = _get_session(request, session_id)
	try:
		result = await session.send(text)
	except SessionBusyError as exc:
		raise HTTPException(status_code=409, detail=str(exc)) from exc
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc)) from exc

	return {
		"session_id": session_id,
		"mode": result.mode,
		"reply": result.reply.to_dict(),
		"called_backend": result.called_backend,
		"persisted": result.persisted,
		"optimized_mode": result.optimized,
		"images_sent": result.images_sent,
		"last_question_number": session.state.last_question_number,
		"message_count": session.state.message_count,
	}


async def close_session(request: Request, session_id: str) -> Dict[str, Any]:
	"""Close a session, cancelling its viewer timers and dropping its caches."""
	store: SessionStore = request.app.state.session_store
	try:
		store.close(session_id)
	except KeyError as exc:
		raise HTTPException(status_code=404, detail=str(exc)) from exc
	return {"session_id": session_id, "closed": True}
