from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from controllers.viewer_controller import get_document, get_viewer_state, report_viewer_event

router = APIRouter(prefix="/sessions")


class ViewerEventPayload(BaseModel):
    attempt_index: Optional[int] = None


@router.get("/{session_id}/viewer")
async def get_viewer_route(request: Request, session_id: str):
    return await get_viewer_state(request, session_id)


@router.post("/{session_id}/viewer/{event}")
async def viewer_event_route(request: Request, session_id: str, event: str, payload: Optional[ViewerEventPayload] = None):
    attempt_index = payload.attempt_index if payload else None
    return await report_viewer_event(request, session_id, event, attempt_index)


@router.get("/{session_id}/document")
async def get_document_route(request: Request, session_id: str):
    return await get_document(request, session_id)
