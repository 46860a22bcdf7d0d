"""Handling modes chosen for each incoming student message.

Each mode is its own frozen dataclass; `Mode` is the union of all of them.
`FullDocumentFallback` is never picked by the state machine directly: a
lookup mode degrades to it when the question cannot be resolved.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union


@dataclass(frozen=True)
class FollowUp:
    kind: ClassVar[str] = "follow_up"
    question_number: str


@dataclass(frozen=True)
class NewQuestionLookup:
    kind: ClassVar[str] = "new_question"
    question_number: str


@dataclass(frozen=True)
class ContinuePrevious:
    kind: ClassVar[str] = "continue_previous"
    question_number: str


@dataclass(frozen=True)
class FirstQuestionConfirm:
    kind: ClassVar[str] = "first_question_confirm"


@dataclass(frozen=True)
class Clarify:
    kind: ClassVar[str] = "clarify"


@dataclass(frozen=True)
class FullDocumentFallback:
    kind: ClassVar[str] = "full_document"
    question_number: str


Mode = Union[FollowUp, NewQuestionLookup, ContinuePrevious, FirstQuestionConfirm, Clarify, FullDocumentFallback]

LOCAL_MODES = (FirstQuestionConfirm, Clarify)
