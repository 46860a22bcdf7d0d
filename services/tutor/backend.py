"""Clients for the AI tutor backend.

`HttpTutorBackend` posts the composed payload to the exam-assistant
endpoint. `OpenAITutorBackend` answers the same payload directly with the
OpenAI Responses API, chaining turns of a conversation through
`previous_response_id` so follow-ups can be sent without images.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from openai import AsyncOpenAI

from services.image_encoder import to_image_data_url
from services.tutor.prompts import tutor_context_prompt, tutor_system_prompt
from services.tutor.response_parser import reply_text, token_usage

LOGGER = logging.getLogger(__name__)


class TutorBackendError(RuntimeError):
    """Raised when the backend cannot produce an answer."""


@dataclass
class TutorReply:
    answer: str
    question_not_found: bool = False
    is_follow_up: bool = False
    usage: Optional[Dict[str, Optional[int]]] = None


class HttpTutorBackend:
    """POST composed requests to the exam-assistant endpoint."""

    def __init__(self, client: httpx.AsyncClient, endpoint: str, api_key: Optional[str] = None, timeout: float = 120.0) -> None:
        if not endpoint:
            raise ValueError("Tutor backend endpoint URL is required.")
        self._client = client
        self.endpoint = endpoint
        self._api_key = api_key
        self.timeout = timeout

    def forget(self, session_key: str) -> None:
        """The endpoint keeps no per-session state."""

    async def ask(self, payload: Dict[str, Any], session_key: Optional[str] = None) -> TutorReply:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        start = time.time()
        try:
            response = await self._client.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as exc:
            LOGGER.error("Tutor backend request failed: %s", exc)
            raise TutorBackendError("Failed to reach the tutor backend") from exc

        if response.status_code >= 400:
            LOGGER.error("Tutor backend returned %s: %s", response.status_code, response.text[:500])
            raise TutorBackendError(f"Tutor backend returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise TutorBackendError("Tutor backend returned a non-JSON body") from exc

        answer = data.get("answer") if isinstance(data, dict) else None
        if not isinstance(answer, str) or not answer:
            raise TutorBackendError("Tutor backend response has no answer")

        LOGGER.info("Tutor backend latency: %.3fs", time.time() - start)
        return TutorReply(
            answer=answer,
            question_not_found=bool(data.get("questionNotFound")),
            is_follow_up=bool(data.get("isFollowUp")),
            usage=data.get("usage"),
        )


class OpenAITutorBackend:
    """Answer composed requests with the OpenAI Responses API."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-5", max_output_tokens: int = 2000) -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        self.client = client
        self.model = model
        self.max_output_tokens = max_output_tokens
        # conversation key -> id of the last response, for follow-up turns
        self._last_response: Dict[str, str] = {}

    async def ask(self, payload: Dict[str, Any], session_key: Optional[str] = None) -> TutorReply:
        key = session_key or self._conversation_key(payload)
        images: List[str] = list(payload.get("examPaperImages") or []) + list(payload.get("markingSchemeImages") or [])
        previous_id = self._last_response.get(key)
        is_follow_up = bool(payload.get("optimizedMode")) and not images and previous_id is not None

        user_content: List[Dict[str, Any]] = []
        if not is_follow_up:
            user_content.append(
                {
                    "type": "input_text",
                    "text": tutor_context_prompt(
                        payload.get("questionNumber"),
                        payload.get("questionText"),
                        payload.get("markingSchemeText"),
                    ),
                }
            )
        user_content.extend({"type": "input_image", "image_url": to_image_data_url(image)} for image in images)
        user_content.append({"type": "input_text", "text": payload.get("question") or ""})

        inputs: List[Dict[str, Any]] = []
        if previous_id is None:
            inputs.append(
                {"type": "message", "role": "system", "content": [{"type": "input_text", "text": tutor_system_prompt()}]}
            )
        inputs.append({"type": "message", "role": "user", "content": user_content})

        kwargs: Dict[str, Any] = {"model": self.model, "input": inputs, "max_output_tokens": self.max_output_tokens}
        if previous_id is not None:
            kwargs["previous_response_id"] = previous_id

        start = time.time()
        try:
            response = await self.client.responses.create(**kwargs)
        except Exception as exc:
            LOGGER.error("OpenAI Responses API error: %s", exc)
            raise TutorBackendError("OpenAI request failed") from exc

        answer = reply_text(response)
        if not answer:
            raise TutorBackendError("OpenAI response contained no text")

        response_id = getattr(response, "id", None)
        if response_id:
            self._last_response[key] = response_id

        LOGGER.info("Tutor answer latency: %.3fs (%d images)", time.time() - start, len(images))
        return TutorReply(answer=answer, is_follow_up=is_follow_up, usage=token_usage(response))

    def forget(self, session_key: str) -> None:
        """Drop the response chain of a closed session."""
        if self._last_response.pop(session_key, None) is not None:
            LOGGER.debug("Dropped response chain for session %s", session_key)

    @staticmethod
    def _conversation_key(payload: Dict[str, Any]) -> str:
        return payload.get("conversationId") or f"{payload.get('examPaperId')}:{payload.get('userId')}"
