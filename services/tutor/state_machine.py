"""Decide how each student message is handled."""

from __future__ import annotations

from typing import Optional

from models.session_models import ConversationState
from models.tutor_mode import (
    Clarify,
    ContinuePrevious,
    FirstQuestionConfirm,
    FollowUp,
    Mode,
    NewQuestionLookup,
)
from services.tutor.question_reference import extract_question_number, is_affirmative


class ConversationStateMachine:
    """Classify incoming messages against the conversation state.

    The rows are checked in order and the first match wins:

    1. a reference equal to the last resolved question -> FollowUp
    2. any other reference -> NewQuestionLookup
    3. no reference, a last question on record -> ContinuePrevious
    4. no reference, "yes" to the Question 1 prompt -> NewQuestionLookup("1")
    5. no reference, first message of the conversation -> FirstQuestionConfirm
    6. otherwise -> Clarify

    `state.message_count` must already include the message being classified.
    """

    FIRST_QUESTION = "1"

    def resolve(self, text: str, state: ConversationState) -> Mode:
        ref: Optional[str] = extract_question_number(text)
        last = state.last_question_number

        if ref is not None:
            if last is not None and ref == last:
                return FollowUp(question_number=ref)
            return NewQuestionLookup(question_number=ref)

        if last is not None:
            return ContinuePrevious(question_number=last)

        if state.awaiting_first_question_confirm and is_affirmative(text):
            return NewQuestionLookup(question_number=self.FIRST_QUESTION)

        if state.message_count <= 1:
            return FirstQuestionConfirm()

        return Clarify()
