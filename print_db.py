"""Print the exam papers and tutoring conversations stored in the SQLite database.

Uses the same `DATABASE_DIR` behavior as the application via
`utils.database_init.AsyncDatabaseInitializer`.

Run: set `DATABASE_DIR` and run `python print_db.py [user_id]`. With a
user id only that student's conversations are printed.
"""
import asyncio
import sys
from datetime import datetime
from typing import Optional

from dal.conversation_dal import ConversationDAL
from dal.exam_paper_dal import ExamPaperDAL
from utils.database_init import AsyncDatabaseInitializer


def _format_ts(ts: Optional[float]) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M")


async def _print_papers(initializer: AsyncDatabaseInitializer) -> None:
    paper_dal = ExamPaperDAL(initializer)
    async with initializer.connection() as conn:
        cur = await conn.execute("SELECT id FROM exam_papers ORDER BY created_at, id")
        paper_ids = [row[0] for row in await cur.fetchall()]

    for paper_id in paper_ids:
        paper = await paper_dal.get_paper(paper_id)
        if paper is None:
            continue
        numbers = await paper_dal.list_question_numbers(paper_id)
        print(f"Paper {paper.id}: {paper.title!r}")
        print(f"  source: {paper.pdf_url or paper.pdf_path or '-'}")
        print(f"  pages: {len(paper.page_image_urls)} exam, {len(paper.marking_scheme_page_urls)} marking scheme")
        print(f"  questions: {', '.join(numbers) if numbers else '-'}")
    print()


async def _print_conversations(initializer: AsyncDatabaseInitializer, user_id: Optional[str]) -> None:
    conversation_dal = ConversationDAL(initializer)
    query = "SELECT id, user_id, exam_paper_id, title FROM conversations"
    params = ()
    if user_id:
        query += " WHERE user_id = ?"
        params = (user_id,)
    async with initializer.connection() as conn:
        cur = await conn.execute(query + " ORDER BY created_at, id", params)
        rows = await cur.fetchall()

    for conversation_id, owner, paper_id, title in rows:
        print(f"Conversation {conversation_id} ({owner} on {paper_id}): {title!r}")
        for message in await conversation_dal.list_messages(conversation_id):
            qn = f" [Q{message.question_number}]" if message.question_number else ""
            print(f"  {_format_ts(message.created_at)} {message.role}{qn}: {message.content[:120]!r}")
    print()


async def main(user_id: Optional[str] = None) -> None:
    """Ensure DB exists and print papers followed by conversations."""
    initializer = AsyncDatabaseInitializer()
    await initializer.ensure_database()
    await _print_papers(initializer)
    await _print_conversations(initializer, user_id)


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
