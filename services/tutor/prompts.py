"""Canned tutor messages and prompts for the direct model backend."""

from __future__ import annotations

FIRST_QUESTION_CONFIRM = (
	"Hey there! 👋\n\n"
	"I'd love to help you with that! Since this is your first question, are you asking about **Question 1**?\n\n"
	"If yes, just type \"yes\" or \"Question 1\".\n"
	"If you meant a different question, just tell me the question number like:\n"
	"- \"Question 2\"\n- \"Q5\"\n- \"No, question 3\"\n\n"
	"Let me know! 😊"
)

WELCOME_BACK = (
	"Welcome back! 👋\n\n"
	"I see you're continuing your work on this exam paper. "
	"Feel free to ask about any question you'd like to work on today!\n\n"
	"Just say something like:\n- \"Question 3\"\n- \"Help with Q7\"\n- \"Let's do question 5\"\n\n"
	"Ready when you are!"
)

BACKEND_APOLOGY = "Sorry, I encountered an error. Please try again."


def clarification_message(user_input: str) -> str:
	"""Ask which question the student means, phrased after what they asked for."""
	lower = (user_input or "").lower()

	if "help" in lower or "stuck" in lower or "don't understand" in lower:
		return (
			"Hey! I can see you need help. To give you the best explanation, "
			"could you tell me which specific question you're working on?\n\n"
			"Just say something like:\n- \"Question 2\"\n- \"Help with Q5b\"\n- \"I'm stuck on question 3\"\n\n"
			"Once I know which question, I can walk you through it step by step! 😊"
		)

	if "explain" in lower or "how" in lower or "what" in lower:
		return (
			"I'd be happy to explain! But first, which question are you asking about?\n\n"
			"You can say:\n- \"Question 4\"\n- \"Q2a\"\n- \"Explain question 7\"\n\n"
			"This helps me focus on exactly what you need! 📚"
		)

	if "solve" in lower or "answer" in lower or "solution" in lower:
		return (
			"Sure, I can help you solve that! Which question number are you working on?\n\n"
			"Just tell me like:\n- \"Question 3\"\n- \"Solve Q6\"\n- \"What's the answer to question 1?\"\n\n"
			"Let me know and I'll guide you through it! ✨"
		)

	return (
		"Hey! I'd love to help you with that. Could you please specify which question you're asking about?\n\n"
		"For example, you can say:\n- \"Question 2\"\n- \"Q3b\"\n- \"Can you help with question 5?\"\n\n"
		"This helps me give you the most accurate and focused help! 😊"
	)


def tutor_system_prompt() -> str:
	"""Return the tutoring system prompt used by the direct model backend."""
	return (
		"You are a patient exam tutor helping a student work through a past exam paper. "
		"Explain the method step by step, check the student's reasoning rather than just giving answers, "
		"and align your explanation with the marking scheme when one is supplied."
	)


def tutor_context_prompt(question_number: str | None, question_text: str | None, marking_scheme_text: str | None) -> str:
	"""Return the grounding block describing the question under discussion."""
	parts = []
	if question_number:
		parts.append(f"The student is working on Question {question_number}.")
	else:
		parts.append("The student's question number could not be matched; the whole paper is attached.")
	if question_text:
		parts.append(f"Question text (OCR):\n{question_text}")
	if marking_scheme_text:
		parts.append(f"Marking scheme:\n{marking_scheme_text}")
	return "\n\n".join(parts)
