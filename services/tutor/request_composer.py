"""Build the JSON payload sent to the tutor backend for each mode."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from models.question_asset import DocumentPages, QuestionAsset
from models.tutor_mode import (
    ContinuePrevious,
    FollowUp,
    LOCAL_MODES,
    FullDocumentFallback,
    Mode,
    NewQuestionLookup,
)


@dataclass(frozen=True)
class RequestContext:
    """Fields shared by every backend request of a turn."""

    question: str
    provider: str
    exam_paper_id: str
    conversation_id: Optional[str] = None
    user_id: Optional[str] = None
    last_question_number: Optional[str] = None


class AIRequestComposer:
    """Assemble the smallest payload that still lets the backend answer.

    Follow-ups carry no images at all, lookups carry only the images of
    the resolved question, and only the not-found fallback ships every
    page of the paper.
    """

    def compose(
        self,
        mode: Mode,
        context: RequestContext,
        asset: Optional[QuestionAsset] = None,
        pages: Optional[DocumentPages] = None,
    ) -> Dict[str, Any]:
        if isinstance(mode, LOCAL_MODES):
            raise ValueError(f"Mode {mode.kind} is answered locally and has no backend request")

        payload: Dict[str, Any] = {
            "question": context.question,
            "provider": context.provider,
            "examPaperId": context.exam_paper_id,
            "conversationId": context.conversation_id,
            "userId": context.user_id,
            "lastQuestionNumber": context.last_question_number,
        }

        if isinstance(mode, FollowUp):
            payload.update(
                optimizedMode=True,
                questionNumber=mode.question_number,
                examPaperImages=[],
                markingSchemeImages=[],
            )
        elif isinstance(mode, (NewQuestionLookup, ContinuePrevious)):
            if asset is None:
                raise ValueError(f"Question {mode.question_number} assets are required for {mode.kind}")
            payload.update(
                optimizedMode=True,
                questionNumber=mode.question_number,
                examPaperImages=list(asset.images),
                markingSchemeText=asset.marking_scheme_text,
                questionText=asset.question_text,
            )
        elif isinstance(mode, FullDocumentFallback):
            pages = pages or DocumentPages()
            payload.update(
                optimizedMode=False,
                examPaperImages=list(pages.exam_pages),
                markingSchemeImages=list(pages.marking_scheme_pages),
            )
        else:
            raise TypeError(f"Unsupported mode: {mode!r}")

        return payload


def image_savings(payload: Dict[str, Any], pages: Optional[DocumentPages]) -> Dict[str, int]:
    """Return how many page images an optimized payload avoided sending."""
    sent = len(payload.get("examPaperImages") or []) + len(payload.get("markingSchemeImages") or [])
    total = pages.total if pages else 0
    saved = max(total - sent, 0) if payload.get("optimizedMode") else 0
    percent = round(saved * 100 / total) if total else 0
    return {"sent": sent, "saved": saved, "percent": percent}
