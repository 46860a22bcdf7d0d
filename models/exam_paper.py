from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ExamPaper:
    """Row of the exam_papers table.

    Attributes:
        id: Paper identifier.
        title: Display title, also used as the conversation title.
        pdf_path: Local path of the PDF binary, if stored on this host.
        pdf_url: Publicly resolvable URL of the PDF.
        page_image_urls: Pre-rendered page images of the paper, in page order.
        marking_scheme_page_urls: Pre-rendered marking scheme pages, in page order.
    """

    id: str
    title: str
    pdf_path: Optional[str] = None
    pdf_url: Optional[str] = None
    page_image_urls: List[str] = field(default_factory=list)
    marking_scheme_page_urls: List[str] = field(default_factory=list)
    created_at: Optional[int] = None
