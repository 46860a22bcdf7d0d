"""Fetch exam paper binaries for desktop clients."""

from __future__ import annotations

import logging
from pathlib import Path

import aiofiles
import httpx

from models.exam_paper import ExamPaper

LOGGER = logging.getLogger(__name__)


class DocumentFetcher:
	"""Read a paper's PDF from local storage, or download it from its URL."""

	def __init__(self, http_client: httpx.AsyncClient) -> None:
		self._http = http_client

	async def fetch(self, paper: ExamPaper) -> bytes:
		"""Return the PDF bytes.

		Raises:
			FileNotFoundError: If the paper has neither a readable path nor a URL.
			httpx.HTTPError: If the download fails.
		"""
		if paper.pdf_path and Path(paper.pdf_path).is_file():
			async with aiofiles.open(paper.pdf_path, "rb") as handle:
				data = await handle.read()
		elif paper.pdf_url:
			response = await self._http.get(paper.pdf_url)
			response.raise_for_status()
			data = response.content
		else:
			raise FileNotFoundError(f"Exam paper {paper.id} has no readable document")

		if not data:
			raise ValueError(f"Exam paper {paper.id} document is empty")
		LOGGER.info("Fetched document for paper %s (%d bytes)", paper.id, len(data))
		return data
