"""Wrap a document URL into the URL each viewer method embeds."""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from models.viewer_models import ViewerMethod

DEFAULT_PDFJS_VIEWER = "https://mozilla.github.io/pdf.js/web/viewer.html"


def build_viewer_url(
	method: ViewerMethod,
	document_url: str,
	pdfjs_viewer: str = DEFAULT_PDFJS_VIEWER,
	inline_url: Optional[str] = None,
) -> str:
	"""Return the URL the client should load for `method`."""
	encoded = quote(document_url, safe="")
	if method is ViewerMethod.PDFJS:
		return f"{pdfjs_viewer}?file={encoded}"
	if method is ViewerMethod.GOOGLE_DOCS:
		return f"https://docs.google.com/viewer?url={encoded}&embedded=true"
	if method is ViewerMethod.GOOGLE_DRIVE:
		return f"https://drive.google.com/viewerng/viewer?embedded=true&url={encoded}"
	if method is ViewerMethod.DIRECT:
		return document_url
	if method is ViewerMethod.INLINE:
		return inline_url or document_url
	raise ValueError(f"Unsupported viewer method: {method}")
