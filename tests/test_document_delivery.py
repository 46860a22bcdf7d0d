"""Tests for the document delivery fallback cycle."""

import pytest

from models.viewer_models import FALLBACK_ORDER, ViewerMethod, ViewerStatus
from services.viewer.document_delivery import DocumentDeliveryController

URL = "https://files.test/paper.pdf"


@pytest.fixture
def controller(timeouts):
    return DocumentDeliveryController(timeouts, attempt_timeout=10.0)


async def test_mobile_starts_with_primary_method(controller, timeouts):
    state = await controller.load("doc-1", URL, is_mobile=True)
    assert state.status is ViewerStatus.LOADING
    assert state.method is ViewerMethod.PDFJS
    assert state.attempt_index == 0
    assert state.deadline == 10.0
    assert state.viewer_url.endswith("?file=https%3A%2F%2Ffiles.test%2Fpaper.pdf")
    assert len(timeouts.pending) == 1


async def test_cycles_through_every_method_before_exhausted(controller, timeouts):
    seen = []
    controller.subscribe(lambda s: seen.append((s.status, s.method)))
    await controller.load("doc-1", URL, is_mobile=True)

    for _ in range(len(FALLBACK_ORDER)):
        timeouts.advance(10.0)

    loading_methods = [method for status, method in seen if status is ViewerStatus.LOADING]
    assert loading_methods == list(FALLBACK_ORDER)
    assert controller.status is ViewerStatus.EXHAUSTED
    assert controller.state.can_retry
    assert controller.state.viewer_url is None
    assert timeouts.pending == []


async def test_failure_signal_advances_immediately(controller, timeouts):
    await controller.load("doc-1", URL, is_mobile=True)
    state = controller.mark_failed(0)
    assert state.method is ViewerMethod.GOOGLE_DOCS
    assert state.attempt_index == 1
    assert "docs.google.com/viewer?url=" in state.viewer_url
    assert len(timeouts.pending) == 1


async def test_success_cancels_timers_and_never_advances(controller, timeouts):
    await controller.load("doc-1", URL, is_mobile=True)
    controller.mark_failed(0)
    state = controller.mark_loaded(1)

    assert state.status is ViewerStatus.LOADED
    assert state.method is ViewerMethod.GOOGLE_DOCS
    assert timeouts.pending == []

    timeouts.advance(100.0)
    controller.mark_failed(1)
    assert controller.status is ViewerStatus.LOADED
    assert controller.state.method is ViewerMethod.GOOGLE_DOCS


async def test_stale_signals_are_ignored(controller):
    await controller.load("doc-1", URL, is_mobile=True)
    controller.mark_failed(0)
    controller.mark_failed(0)
    assert controller.state.attempt_index == 1
    controller.mark_loaded(0)
    assert controller.status is ViewerStatus.LOADING


async def test_attempts_wrap_when_more_attempts_than_methods(timeouts):
    controller = DocumentDeliveryController(timeouts, methods=(ViewerMethod.PDFJS, ViewerMethod.DIRECT), max_attempts=3)
    await controller.load("doc-1", URL, is_mobile=True)
    controller.mark_failed()
    state = controller.mark_failed()
    assert state.method is ViewerMethod.PDFJS
    assert state.attempt_index == 2
    assert controller.mark_failed().status is ViewerStatus.EXHAUSTED


async def test_retry_restarts_from_primary(controller, timeouts):
    await controller.load("doc-1", URL, is_mobile=True)
    timeouts.advance(40.0)
    assert controller.status is ViewerStatus.EXHAUSTED

    state = controller.retry()
    assert state.status is ViewerStatus.LOADING
    assert state.method is ViewerMethod.PDFJS
    assert state.attempt_index == 0
    assert len(timeouts.pending) == 1


async def test_new_document_resets_attempts(controller, timeouts):
    await controller.load("doc-1", URL, is_mobile=True)
    controller.mark_failed(0)
    controller.mark_failed(1)

    state = await controller.load("doc-2", "https://files.test/other.pdf", is_mobile=True)
    assert state.document_id == "doc-2"
    assert state.method is ViewerMethod.PDFJS
    assert state.attempt_index == 0
    assert len(timeouts.pending) == 1


async def test_same_document_does_not_reset(controller):
    await controller.load("doc-1", URL, is_mobile=True)
    controller.mark_failed(0)
    state = await controller.load("doc-1", URL, is_mobile=True)
    assert state.attempt_index == 1


async def test_desktop_renders_inline_from_binary(controller, timeouts):
    calls = []

    async def fetch():
        calls.append(1)
        return b"%PDF-1.7"

    state = await controller.load("doc-1", URL, is_mobile=False, fetch_binary=fetch, inline_url="/sessions/s1/document")
    assert state.status is ViewerStatus.LOADED
    assert state.method is ViewerMethod.INLINE
    assert state.viewer_url == "/sessions/s1/document"
    assert controller.binary == b"%PDF-1.7"
    assert timeouts.pending == []

    await controller.load("doc-1", URL, is_mobile=False, fetch_binary=fetch)
    assert len(calls) == 1


async def test_desktop_fetch_failure_falls_back_to_cycle(controller):
    async def fetch():
        raise OSError("disk gone")

    state = await controller.load("doc-1", URL, is_mobile=False, fetch_binary=fetch)
    assert state.status is ViewerStatus.LOADING
    assert state.method is ViewerMethod.PDFJS
    assert controller.binary is None


async def test_no_url_is_exhausted(controller):
    state = await controller.load("doc-1", None, is_mobile=True)
    assert state.status is ViewerStatus.EXHAUSTED


async def test_close_cancels_timer(controller, timeouts):
    await controller.load("doc-1", URL, is_mobile=True)
    controller.close()
    assert timeouts.pending == []
