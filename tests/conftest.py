"""Shared pytest fixtures for the tutoring service tests.

Provides:
- ``db``: AsyncDatabaseInitializer on a temporary DATABASE_DIR
- ``png_bytes``: factory for small PNG images
- ``timeouts``: ManualTimeoutQueue whose clock only moves when advanced
- ``fake_backend``: FakeTutorBackend recording every payload it receives
- ``image_server``: httpx client serving images from an in-memory URL map
"""

from __future__ import annotations

import io
from typing import Callable, Dict, List, Optional

import httpx
import pytest
from PIL import Image

from services.tutor.backend import TutorBackendError, TutorReply
from utils.database_init import AsyncDatabaseInitializer


class ManualTimer:
    def __init__(self, queue: "ManualTimeoutQueue", due: float, callback: Callable[[], None]):
        self.queue = queue
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimeoutQueue:
    """TimeoutQueue driven by ``advance()`` instead of wall-clock time."""

    def __init__(self) -> None:
        self.clock = 0.0
        self.timers: List[ManualTimer] = []

    def now(self) -> float:
        return self.clock

    def schedule(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self, self.clock + delay, callback)
        self.timers.append(timer)
        return timer

    def cancel(self, handle: Optional[ManualTimer]) -> None:
        if handle is not None:
            handle.cancel()

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and t.due > self.clock]

    def advance(self, seconds: float) -> None:
        target = self.clock + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.timers.remove(timer)
            self.clock = timer.due
            timer.callback()
        self.clock = target


class FakeTutorBackend:
    """Tutor backend double returning canned replies."""

    def __init__(self) -> None:
        self.payloads: List[dict] = []
        self.answer = "Here is how to approach it."
        self.question_not_found = False
        self.fail = False
        self.forgotten: List[str] = []

    def forget(self, session_key: str) -> None:
        self.forgotten.append(session_key)

    async def ask(self, payload: dict, session_key: Optional[str] = None) -> TutorReply:
        self.payloads.append(payload)
        if self.fail:
            raise TutorBackendError("backend down")
        return TutorReply(answer=self.answer, question_not_found=self.question_not_found)


class ImageServer:
    """Serve byte payloads by URL through httpx.MockTransport and count requests."""

    def __init__(self) -> None:
        self.routes: Dict[str, bytes] = {}
        self.requests: List[str] = []
        self.client = httpx.AsyncClient(transport=httpx.MockTransport(self._handle))

    def _handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url not in self.routes:
            return httpx.Response(404)
        return httpx.Response(200, content=self.routes[url])


def make_png(size=(32, 24), color=(200, 30, 30, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def db(tmp_path, monkeypatch) -> AsyncDatabaseInitializer:
    monkeypatch.setenv("DATABASE_DIR", str(tmp_path / "db"))
    return AsyncDatabaseInitializer()


@pytest.fixture
def png_bytes() -> Callable[..., bytes]:
    return make_png


@pytest.fixture
def timeouts() -> ManualTimeoutQueue:
    return ManualTimeoutQueue()


@pytest.fixture
def fake_backend() -> FakeTutorBackend:
    return FakeTutorBackend()


@pytest.fixture
async def image_server():
    server = ImageServer()
    yield server
    await server.client.aclose()
