from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class QuestionRecord:
    """In-memory representation of a row in the exam_questions table.

    Attributes:
        id: Primary key (None for new records).
        exam_paper_id: Paper the question belongs to.
        question_number: Top-level question number as written on the paper ("5").
        ocr_text: Extracted question text.
        image_url: Legacy single image URL.
        image_urls: Ordered image URLs; preferred over `image_url` when non-empty.
        marking_scheme_text: Extracted marking scheme text for this question.
    """

    id: Optional[int]
    exam_paper_id: str
    question_number: str
    ocr_text: Optional[str] = None
    image_url: Optional[str] = None
    image_urls: List[str] = field(default_factory=list)
    marking_scheme_text: Optional[str] = None

    def resolved_image_urls(self) -> List[str]:
        """Return the image URLs to fetch, skipping blank entries."""
        urls = self.image_urls if self.image_urls else [self.image_url]
        return [url for url in urls if url]


@dataclass(frozen=True)
class QuestionAsset:
    """Cached, immutable assets for one question."""

    question_number: str
    images: Tuple[str, ...] = ()
    marking_scheme_text: str = ""
    question_text: str = ""


@dataclass(frozen=True)
class DocumentPages:
    """Pre-rendered page images of the whole paper, used by fallback requests."""

    exam_pages: Tuple[str, ...] = ()
    marking_scheme_pages: Tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return len(self.exam_pages) + len(self.marking_scheme_pages)
