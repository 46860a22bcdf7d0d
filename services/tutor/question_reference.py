"""Parse free-form student text into a question-number reference."""

from __future__ import annotations

import re
from typing import Any, Optional

_QUESTION_TOKEN = re.compile(r"(?:question|q)\s*(\d+)[a-z]*")
_LEADING_NUMBER = re.compile(r"^(\d+)[a-z]*")

AFFIRMATIVE_REPLIES = frozenset({"yes", "y", "yeah", "yep", "yup", "sure", "ok", "okay", "correct"})


def extract_question_number(text: Any) -> Optional[str]:
    """Return the top-level question number referenced by `text`, or None.

    "Question 5b" and "q 12" name a question explicitly; "3a please" is read
    as a bare question number. Sub-part letters are dropped.
    """
    if not isinstance(text, str) or not text:
        return None

    normalized = text.lower().strip()

    match = _QUESTION_TOKEN.search(normalized)
    if match:
        return match.group(1)

    match = _LEADING_NUMBER.match(normalized)
    if match:
        return match.group(1)

    return None


def is_affirmative(text: Any) -> bool:
    """True for a short confirmation such as "yes" or "ok!"."""
    if not isinstance(text, str):
        return False
    cleaned = re.sub(r"[^a-z ]", "", text.lower()).strip()
    return cleaned in AFFIRMATIVE_REPLIES
