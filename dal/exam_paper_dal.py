"""Async Data Access Layer for the exam_papers and exam_questions tables.

Papers and questions are authored by the content pipeline; this service
mostly reads them. The insert helpers exist for seeding and tests.
"""

from __future__ import annotations

import json
import time
from typing import List, Optional, Sequence

from models.exam_paper import ExamPaper
from models.question_asset import QuestionRecord
from utils.database_init import AsyncDatabaseInitializer


def _load_url_list(raw: Optional[str]) -> List[str]:
    """Decode a JSON array column, tolerating NULL and malformed values."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return [str(item) for item in value] if isinstance(value, list) else []


class ExamPaperDAL:
    """Data access layer for exam papers and their questions."""

    _PAPER_COLUMNS = (
        "id",
        "title",
        "pdf_path",
        "pdf_url",
        "page_image_urls",
        "marking_scheme_page_urls",
        "created_at",
    )
    _QUESTION_COLUMNS = (
        "id",
        "exam_paper_id",
        "question_number",
        "ocr_text",
        "image_url",
        "image_urls",
        "marking_scheme_text",
    )

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_paper(self, paper: ExamPaper) -> str:
        """Insert an exam paper row and return its id."""
        created_at = paper.created_at or int(time.time())
        async with self._db.connection() as conn:
            await conn.execute(
                f"INSERT INTO exam_papers ({', '.join(self._PAPER_COLUMNS)}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    paper.id,
                    paper.title,
                    paper.pdf_path,
                    paper.pdf_url,
                    json.dumps(paper.page_image_urls),
                    json.dumps(paper.marking_scheme_page_urls),
                    created_at,
                ),
            )
            await conn.commit()
        return paper.id

    async def get_paper(self, paper_id: str) -> Optional[ExamPaper]:
        """Return the ExamPaper for `paper_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {', '.join(self._PAPER_COLUMNS)} FROM exam_papers WHERE id = ?",
                (paper_id,),
            )
            row = await cur.fetchone()
            return self._row_to_paper(row) if row else None

    async def create_question(self, record: QuestionRecord) -> int:
        """Insert a question row and return the new id."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"INSERT INTO exam_questions ({', '.join(self._QUESTION_COLUMNS[1:])}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    record.exam_paper_id,
                    record.question_number,
                    record.ocr_text,
                    record.image_url,
                    json.dumps(record.image_urls),
                    record.marking_scheme_text,
                ),
            )
            await conn.commit()
            return cur.lastrowid

    async def get_question(self, exam_paper_id: str, question_number: str) -> Optional[QuestionRecord]:
        """Return the question keyed by (paper, number), or None if absent."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {', '.join(self._QUESTION_COLUMNS)} FROM exam_questions "
                "WHERE exam_paper_id = ? AND question_number = ?",
                (exam_paper_id, question_number),
            )
            row = await cur.fetchone()
            return self._row_to_question(row) if row else None

    async def list_question_numbers(self, exam_paper_id: str) -> List[str]:
        """Return every question number stored for a paper, in numeric order."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT question_number FROM exam_questions WHERE exam_paper_id = ?",
                (exam_paper_id,),
            )
            rows = await cur.fetchall()
        numbers = [row[0] for row in rows]
        return sorted(numbers, key=lambda n: (0, int(n)) if n.isdigit() else (1, n))

    @staticmethod
    def _row_to_paper(row: Sequence[object]) -> ExamPaper:
        return ExamPaper(
            id=row[0],
            title=row[1],
            pdf_path=row[2],
            pdf_url=row[3],
            page_image_urls=_load_url_list(row[4]),
            marking_scheme_page_urls=_load_url_list(row[5]),
            created_at=row[6],
        )

    @staticmethod
    def _row_to_question(row: Sequence[object]) -> QuestionRecord:
        return QuestionRecord(
            id=row[0],
            exam_paper_id=row[1],
            question_number=row[2],
            ocr_text=row[3],
            image_url=row[4],
            image_urls=_load_url_list(row[5]),
            marking_scheme_text=row[6],
        )
