"""Document viewer state models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ViewerMethod(str, Enum):
	"""Rendering strategies, in fallback order."""

	PDFJS = "pdfjs"
	GOOGLE_DOCS = "google_docs"
	GOOGLE_DRIVE = "google_drive"
	DIRECT = "direct"
	INLINE = "inline"


FALLBACK_ORDER = (
	ViewerMethod.PDFJS,
	ViewerMethod.GOOGLE_DOCS,
	ViewerMethod.GOOGLE_DRIVE,
	ViewerMethod.DIRECT,
)


class ViewerStatus(str, Enum):
	IDLE = "idle"
	LOADING = "loading"
	LOADED = "loaded"
	EXHAUSTED = "exhausted"


@dataclass
class ViewerAttempt:
	"""One in-progress attempt to render the document."""

	method: ViewerMethod
	attempt_index: int
	deadline: float


@dataclass
class ViewerState:
	"""Snapshot of the delivery controller pushed to clients."""

	document_id: Optional[str]
	status: ViewerStatus
	method: Optional[ViewerMethod] = None
	attempt_index: int = 0
	viewer_url: Optional[str] = None
	deadline: Optional[float] = None
	can_retry: bool = False

	def to_dict(self) -> Dict[str, Any]:
		return {
			"documentId": self.document_id,
			"status": self.status.value,
			"method": self.method.value if self.method else None,
			"attemptIndex": self.attempt_index,
			"viewerUrl": self.viewer_url,
			"deadline": self.deadline,
			"canRetry": self.can_retry,
		}
