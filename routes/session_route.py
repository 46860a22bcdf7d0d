"""FastAPI routes for tutoring sessions."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.session_controller import close_session, list_messages, send_message, start_session

router = APIRouter(prefix="/sessions")


class StartPayload(BaseModel):
	paper_id: str
	user_id: Optional[str] = None
	is_mobile: bool = False


class MessagePayload(BaseModel):
	text: str


@router.post("")
async def start_session_route(request: Request, payload: StartPayload):
	try:
		return await start_session(request, payload.paper_id, payload.user_id, payload.is_mobile)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{session_id}/messages")
async def list_messages_route(request: Request, session_id: str):
	return await list_messages(request, session_id)


@router.post("/{session_id}/messages")
async def post_message_route(request: Request, session_id: str, payload: MessagePayload):
	try:
		return await send_message(request, session_id, payload.text)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/{session_id}")
async def close_session_route(request: Request, session_id: str):
	return await close_session(request, session_id)
