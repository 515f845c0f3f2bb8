"""Popup HTML. Field names and values come from remote servers, so every one is escaped."""

from __future__ import annotations

import html
from typing import Iterable, Mapping

NOT_FOUND_HTML = "<div><em>Object not found</em></div>"
NO_ATTRIBUTES_HTML = "<div><em>Object found, but attributes are unavailable</em></div>"


def attributes_popup_html(items: Mapping[str, object] | Iterable[tuple[str, object]]) -> str:
    """``<strong>name:</strong> value`` lines joined by ``<br/>``."""
    pairs = items.items() if isinstance(items, Mapping) else items
    lines = [
        f"<strong>{html.escape(str(k))}:</strong> {html.escape(str(v))}"
        for k, v in pairs
    ]
    return f"<div>{'<br/>'.join(lines)}</div>"


def error_popup_html(message: str) -> str:
    return f"<div><strong>Error:</strong> {html.escape(message)}</div>"
