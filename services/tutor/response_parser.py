"""Read the tutor answer and token usage out of a Responses API result."""

from __future__ import annotations

from typing import Any, Dict, List, Optional


def _field(obj: Any, name: str) -> Any:
	if isinstance(obj, dict):
		return obj.get(name)
	return getattr(obj, name, None)


def reply_text(response: Any) -> str:
	"""Join every output_text part of the assistant messages.

	Falls back to the SDK's `output_text` convenience property when the
	output list carries no message items.
	"""
	parts: List[str] = []
	for item in _field(response, "output") or []:
		if _field(item, "type") != "message":
			continue
		for content in _field(item, "content") or []:
			if _field(content, "type") == "output_text" and _field(content, "text"):
				parts.append(_field(content, "text"))
	if parts:
		return "\n".join(parts).strip()
	return (_field(response, "output_text") or "").strip()


def token_usage(response: Any) -> Dict[str, Optional[int]]:
	"""Return input/output/total token counts, None where the API omitted them."""
	usage = _field(response, "usage")
	counts = {name: _field(usage, name) if usage is not None else None for name in ("input_tokens", "output_tokens")}
	if counts["input_tokens"] is not None and counts["output_tokens"] is not None:
		counts["total_tokens"] = counts["input_tokens"] + counts["output_tokens"]
	else:
		counts["total_tokens"] = None
	return counts
