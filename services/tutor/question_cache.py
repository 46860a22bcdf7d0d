"""Per-session cache of question assets.

A question's images are fetched across the network at most once per
viewer session, however many times the student comes back to it. Entries
are never evicted; a paper has a small, bounded number of questions.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import httpx

from dal.exam_paper_dal import ExamPaperDAL
from models.exam_paper import ExamPaper
from models.question_asset import DocumentPages, QuestionAsset
from services.image_encoder import ImageEncoder

LOGGER = logging.getLogger(__name__)


class QuestionDataCache:
    """Fetch and memoize question assets for one exam paper."""

    def __init__(
        self,
        paper: ExamPaper,
        paper_dal: ExamPaperDAL,
        http_client: httpx.AsyncClient,
        encoder: Optional[ImageEncoder] = None,
    ) -> None:
        self.paper = paper
        self._dal = paper_dal
        self._http = http_client
        self._encoder = encoder or ImageEncoder()
        self._assets: Dict[str, QuestionAsset] = {}
        self._pages: Optional[DocumentPages] = None

    def __contains__(self, question_number: str) -> bool:
        return question_number in self._assets

    def cached_numbers(self) -> List[str]:
        return list(self._assets)

    async def get(self, question_number: str) -> Optional[QuestionAsset]:
        """Return the asset for `question_number`, or None if the paper has no such question.

        A miss is not cached, so a question added to the store later in the
        session can still be found.
        """
        cached = self._assets.get(question_number)
        if cached is not None:
            LOGGER.debug("Using cached data for question %s", question_number)
            return cached

        LOGGER.info("Fetching data for question %s of paper %s", question_number, self.paper.id)
        record = await self._dal.get_question(self.paper.id, question_number)
        if record is None:
            LOGGER.info("Question %s not found in paper %s", question_number, self.paper.id)
            return None

        images = await self._fetch_images(record.resolved_image_urls())
        asset = QuestionAsset(
            question_number=question_number,
            images=images,
            marking_scheme_text=record.marking_scheme_text or "",
            question_text=record.ocr_text or "",
        )
        self._assets[question_number] = asset
        LOGGER.info(
            "Cached question %s (%d images, marking scheme text: %s)",
            question_number,
            len(images),
            bool(asset.marking_scheme_text),
        )
        return asset

    async def document_pages(self) -> DocumentPages:
        """Return the paper's pre-rendered page images, fetching them on first use."""
        if self._pages is None:
            exam_pages = await self._fetch_images(self.paper.page_image_urls)
            scheme_pages = await self._fetch_images(self.paper.marking_scheme_page_urls)
            self._pages = DocumentPages(exam_pages=exam_pages, marking_scheme_pages=scheme_pages)
        return self._pages

    def cached_document_pages(self) -> Optional[DocumentPages]:
        return self._pages

    async def _fetch_images(self, urls: Iterable[str]) -> Tuple[str, ...]:
        """Fetch and encode each URL in order, skipping the ones that fail."""
        images: List[str] = []
        for index, url in enumerate(urls, start=1):
            if not url:
                continue
            try:
                response = await self._http.get(url)
                response.raise_for_status()
                # Pillow decoding is blocking -> run in thread
                encoded = await asyncio.to_thread(self._encoder.encode, response.content)
            except (httpx.HTTPError, ValueError) as exc:
                LOGGER.error("Failed to load image %d (%s): %s", index, url, exc)
                continue
            images.append(encoded)
        return tuple(images)
