"""FastAPI endpoint tests using httpx.AsyncClient and the Starlette TestClient."""

import asyncio

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from dal.exam_paper_dal import ExamPaperDAL
from main import create_app
from models.exam_paper import ExamPaper
from models.question_asset import QuestionRecord
from services.conversation_persistence import ConversationPersistence
from services.tutor.session_store import SessionStore
from services.viewer.viewer_urls import DEFAULT_PDFJS_VIEWER
from utils.database_init import AsyncDatabaseInitializer

PDF_BYTES = b"%PDF-1.4 test document"


async def _seed(db: AsyncDatabaseInitializer, pdf_path: str) -> None:
    dal = ExamPaperDAL(db)
    await dal.create_paper(
        ExamPaper(id="paper-local", title="Chemistry P1", pdf_path=pdf_path, page_image_urls=["https://img.test/p1.png"])
    )
    await dal.create_paper(ExamPaper(id="paper-remote", title="Biology P3", pdf_url="https://files.test/bio.pdf"))
    await dal.create_question(
        QuestionRecord(
            id=None,
            exam_paper_id="paper-local",
            question_number="2",
            ocr_text="Balance the equation",
            image_urls=["https://img.test/q2.png"],
            marking_scheme_text="2H2 + O2",
        )
    )


def _configure_state(app, db, http_client, backend):
    app.state.db_initializer = db
    app.state.http_client = http_client
    app.state.tutor_backend = backend
    app.state.tutor_provider = "gemini"
    app.state.viewer_settings = {"attempt_timeout": 30.0, "max_attempts": 4, "pdfjs_viewer": DEFAULT_PDFJS_VIEWER}
    app.state.session_store = SessionStore()


@pytest.fixture
async def client(db, tmp_path, image_server, png_bytes, fake_backend):
    pdf_path = tmp_path / "chem.pdf"
    pdf_path.write_bytes(PDF_BYTES)
    await _seed(db, str(pdf_path))
    image_server.routes["https://img.test/q2.png"] = png_bytes()

    app = create_app()
    _configure_state(app, db, image_server.client, fake_backend)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        ac.app = app
        yield ac
    app.state.session_store.close_all()


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is True
    assert data["tutor_backend"] == "FakeTutorBackend"


async def test_start_desktop_session_serves_inline_document(client):
    resp = await client.post("/sessions", json={"paper_id": "paper-local", "user_id": "user-1"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["messages"] == []
    assert data["viewer"]["status"] == "loaded"
    assert data["viewer"]["method"] == "inline"

    doc = await client.get(f"/sessions/{data['session_id']}/document")
    assert doc.status_code == 200
    assert doc.headers["content-type"] == "application/pdf"
    assert doc.content == PDF_BYTES


async def test_start_mobile_session_uses_fallback_cycle(client):
    resp = await client.post("/sessions", json={"paper_id": "paper-remote", "is_mobile": True})
    viewer = resp.json()["viewer"]
    assert viewer["status"] == "loading"
    assert viewer["method"] == "pdfjs"
    assert "files.test%2Fbio.pdf" in viewer["viewerUrl"]

    session_id = resp.json()["session_id"]
    failed = await client.post(f"/sessions/{session_id}/viewer/failed", json={"attempt_index": 0})
    assert failed.json()["method"] == "google_docs"
    loaded = await client.post(f"/sessions/{session_id}/viewer/loaded", json={"attempt_index": 1})
    assert loaded.json()["status"] == "loaded"
    state = await client.get(f"/sessions/{session_id}/viewer")
    assert state.json()["status"] == "loaded"


async def test_unknown_viewer_event(client):
    resp = await client.post("/sessions", json={"paper_id": "paper-remote", "is_mobile": True})
    bad = await client.post(f"/sessions/{resp.json()['session_id']}/viewer/explode")
    assert bad.status_code == 400


async def test_unknown_paper_is_404(client):
    resp = await client.post("/sessions", json={"paper_id": "missing"})
    assert resp.status_code == 404


async def test_message_flow(client, fake_backend):
    start = await client.post("/sessions", json={"paper_id": "paper-local", "user_id": "user-1"})
    session_id = start.json()["session_id"]

    confirm = await client.post(f"/sessions/{session_id}/messages", json={"text": "help"})
    assert confirm.json()["mode"] == "first_question_confirm"
    assert confirm.json()["called_backend"] is False

    answer = await client.post(f"/sessions/{session_id}/messages", json={"text": "question 2"})
    body = answer.json()
    assert body["mode"] == "new_question"
    assert body["optimized_mode"] is True
    assert body["images_sent"] == 1
    assert body["persisted"] is True
    assert body["last_question_number"] == "2"
    assert fake_backend.payloads[-1]["questionText"] == "Balance the equation"

    follow_up = await client.post(f"/sessions/{session_id}/messages", json={"text": "q2 again"})
    assert follow_up.json()["mode"] == "follow_up"
    assert follow_up.json()["images_sent"] == 0

    transcript = await client.get(f"/sessions/{session_id}/messages")
    assert len(transcript.json()["messages"]) == 6


async def test_empty_message_is_400(client):
    start = await client.post("/sessions", json={"paper_id": "paper-local"})
    resp = await client.post(f"/sessions/{start.json()['session_id']}/messages", json={"text": "  "})
    assert resp.status_code == 400


async def test_busy_session_is_409(client):
    start = await client.post("/sessions", json={"paper_id": "paper-local"})
    session_id = start.json()["session_id"]
    client.app.state.session_store.get(session_id).in_flight = True
    resp = await client.post(f"/sessions/{session_id}/messages", json={"text": "question 2"})
    assert resp.status_code == 409


async def test_reopening_paper_resumes_conversation(client):
    first = await client.post("/sessions", json={"paper_id": "paper-local", "user_id": "user-1"})
    await client.post(f"/sessions/{first.json()['session_id']}/messages", json={"text": "question 2"})

    second = await client.post("/sessions", json={"paper_id": "paper-local", "user_id": "user-1"})
    data = second.json()
    assert data["session_id"] != first.json()["session_id"]
    assert data["last_question_number"] == "2"
    assert len(data["messages"]) == 2


async def test_close_session(client, fake_backend):
    start = await client.post("/sessions", json={"paper_id": "paper-remote", "is_mobile": True})
    session_id = start.json()["session_id"]
    closed = await client.delete(f"/sessions/{session_id}")
    assert closed.json()["closed"] is True
    assert fake_backend.forgotten == [session_id]
    assert (await client.get(f"/sessions/{session_id}/messages")).status_code == 404
    assert (await client.delete(f"/sessions/{session_id}")).status_code == 404


def test_viewer_websocket_streams_state(tmp_path, monkeypatch, fake_backend):
    monkeypatch.setenv("DATABASE_DIR", str(tmp_path / "db"))
    monkeypatch.setenv("TUTOR_BACKEND", "http")
    monkeypatch.setenv("TUTOR_BACKEND_URL", "https://backend.test/ask")
    asyncio.run(_seed(AsyncDatabaseInitializer(), str(tmp_path / "missing.pdf")))

    app = create_app()
    with TestClient(app) as test_client:
        app.state.tutor_backend = fake_backend
        start = test_client.post("/sessions", json={"paper_id": "paper-remote", "is_mobile": True})
        session_id = start.json()["session_id"]

        with test_client.websocket_connect(f"/ws/viewer/{session_id}") as ws:
            initial = ws.receive_json()
            assert initial["type"] == "viewer.state"
            assert initial["method"] == "pdfjs"

            ws.send_json({"type": "viewer.failed", "attempt_index": 0})
            assert ws.receive_json()["method"] == "google_docs"

            ws.send_json({"type": "viewer.loaded", "attempt_index": 1})
            assert ws.receive_json()["status"] == "loaded"

            ws.send_json({"type": "viewer.zoom"})
            assert ws.receive_json()["type"] == "error"

        assert app.state.session_store.get(session_id).viewer._listeners == []

        with test_client.websocket_connect("/ws/viewer/unknown") as ws:
            assert ws.receive_json() == {"type": "error", "detail": "Session not found"}


async def test_failed_start_does_not_leave_session_open(client, fake_backend, monkeypatch):
    async def broken_lookup(self, paper_id, user_id):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(ConversationPersistence, "find_conversation", broken_lookup)
    resp = await client.post("/sessions", json={"paper_id": "paper-local", "user_id": "user-1"})

    assert resp.status_code == 500
    assert client.app.state.session_store.session_ids() == []
    assert len(fake_backend.forgotten) == 1
