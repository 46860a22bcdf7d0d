"""WebSocket endpoint streaming document viewer state."""

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Any, Dict

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from models.viewer_models import ViewerState
from services.tutor.session_store import SessionStore
from services.viewer.document_delivery import DocumentDeliveryController

router = APIRouter()

_EVENTS = {"viewer.loaded", "viewer.failed", "viewer.retry"}


def _apply_event(viewer: DocumentDeliveryController, payload: Dict[str, Any]) -> None:
	event = payload.get("type")
	attempt_index = payload.get("attempt_index")
	if event not in _EVENTS:
		raise ValueError("Unsupported message type.")
	if attempt_index is not None and not isinstance(attempt_index, int):
		raise ValueError("attempt_index must be an integer.")
	if event == "viewer.loaded":
		viewer.mark_loaded(attempt_index)
	elif event == "viewer.failed":
		viewer.mark_failed(attempt_index)
	else:
		viewer.retry()


@router.websocket("/ws/viewer/{session_id}")
async def viewer_socket(websocket: WebSocket, session_id: str):
	"""Push every viewer state change, including deadline expiries, to the client."""
	await websocket.accept()
	store: SessionStore = websocket.app.state.session_store
	try:
		viewer = store.get(session_id).viewer
	except KeyError:
		await websocket.send_text(json.dumps({"type": "error", "detail": "Session not found"}))
		await websocket.close()
		return

	updates: asyncio.Queue = asyncio.Queue()

	def on_change(state: ViewerState) -> None:
		updates.put_nowait(state)

	async def pump() -> None:
		while True:
			state = await updates.get()
			await websocket.send_text(json.dumps({"type": "viewer.state", **state.to_dict()}))

	unsubscribe = viewer.subscribe(on_change)
	updates.put_nowait(viewer.state)
	sender = asyncio.create_task(pump())
	try:
		while True:
			try:
				raw = await websocket.receive_text()
			except WebSocketDisconnect:
				break
			try:
				payload = json.loads(raw)
			except ValueError:
				await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be JSON"}))
				continue
			if not isinstance(payload, dict):
				await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be an object"}))
				continue
			try:
				_apply_event(viewer, payload)
			except (ValueError, RuntimeError) as exc:
				await websocket.send_text(json.dumps({"type": "error", "detail": str(exc)}))
	finally:
		unsubscribe()
		sender.cancel()
		with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
			await sender
