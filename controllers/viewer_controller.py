from fastapi import HTTPException, Request
from fastapi.responses import Response
from typing import Dict, Any, Optional

import httpx

from controllers.session_controller import _get_session
from services.viewer.document_source import DocumentFetcher


async def get_viewer_state(request: Request, session_id: str) -> Dict[str, Any]:
    """Return the current document viewer state for a session."""
    session = _get_session(request, session_id)
    return session.viewer.state.to_dict()


async def report_viewer_event(request: Request, session_id: str, event: str, attempt_index: Optional[int] = None) -> Dict[str, Any]:
    """Apply a client viewer signal (`loaded`, `failed` or `retry`).

    Args:
        request: FastAPI Request (used to access the session store).
        session_id: Viewer session id.
        event: Signal name sent by the client.
        attempt_index: Attempt the signal refers to; signals for older attempts are ignored.

    Returns:
        The viewer state after the signal was applied.
    """
    viewer = _get_session(request, session_id).viewer
    if event == "loaded":
        state = viewer.mark_loaded(attempt_index)
    elif event == "failed":
        state = viewer.mark_failed(attempt_index)
    elif event == "retry":
        try:
            state = viewer.retry()
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
    else:
        raise HTTPException(status_code=400, detail=f"Unsupported viewer event: {event}")
    return state.to_dict()


async def get_document(request: Request, session_id: str) -> Response:
    """Serve the PDF binary of a session's paper.

    Desktop sessions already hold the binary. Mobile sessions of papers
    without a public URL point the embed viewers here, so the binary is
    fetched on first request and kept for the session.

    Raises:
        HTTPException(404) if the document cannot be read.
    """
    session = _get_session(request, session_id)
    if not session.viewer.binary:
        fetcher = DocumentFetcher(request.app.state.http_client)
        try:
            session.viewer.binary = await fetcher.fetch(session.paper)
        except (OSError, ValueError, httpx.HTTPError) as exc:
            raise HTTPException(status_code=404, detail="Document not available for this session") from exc
    return Response(content=session.viewer.binary, media_type="application/pdf")
