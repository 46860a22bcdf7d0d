"""Tests for the conversation mode decision table."""

from models.session_models import ConversationState
from models.tutor_mode import (
    Clarify,
    ContinuePrevious,
    FirstQuestionConfirm,
    FollowUp,
    NewQuestionLookup,
)
from services.tutor.state_machine import ConversationStateMachine

machine = ConversationStateMachine()


def test_same_question_is_follow_up():
    state = ConversationState(last_question_number="3", message_count=5)
    assert machine.resolve("explain question 3 again", state) == FollowUp(question_number="3")


def test_different_question_is_new_lookup():
    state = ConversationState(last_question_number="3", message_count=5)
    assert machine.resolve("Q4 please", state) == NewQuestionLookup(question_number="4")


def test_reference_without_history_is_new_lookup():
    state = ConversationState(message_count=1)
    assert machine.resolve("Question 2", state) == NewQuestionLookup(question_number="2")


def test_no_reference_continues_previous_question():
    state = ConversationState(last_question_number="6", message_count=9)
    assert machine.resolve("why is that?", state) == ContinuePrevious(question_number="6")


def test_first_message_without_reference_asks_to_confirm():
    state = ConversationState(message_count=1)
    assert machine.resolve("help", state) == FirstQuestionConfirm()


def test_later_message_without_reference_asks_to_clarify():
    state = ConversationState(message_count=3)
    assert machine.resolve("help", state) == Clarify()


def test_last_question_takes_priority_over_clarify():
    state = ConversationState(last_question_number="2", message_count=1)
    assert machine.resolve("help", state) == ContinuePrevious(question_number="2")


def test_yes_after_confirm_prompt_means_question_one():
    state = ConversationState(message_count=3, awaiting_first_question_confirm=True)
    assert machine.resolve("yes", state) == NewQuestionLookup(question_number="1")


def test_yes_without_prompt_is_clarify():
    state = ConversationState(message_count=3)
    assert machine.resolve("yes", state) == Clarify()


def test_resolve_does_not_mutate_state():
    state = ConversationState(last_question_number="1", message_count=4)
    machine.resolve("question 5", state)
    assert state.last_question_number == "1"
    assert state.message_count == 4
