"""Handlers for the page registry and frame selection."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from .state import DaemonState, HandlerError

logger = logging.getLogger(__name__)


def _as_u64(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def handle_list_pages(state: DaemonState) -> Dict[str, Any]:
    """All open pages with their ID, title, URL and whether each is active."""
    with state.lock:
        active_id = state.pages.active_page_id
        pages = [
            {
                "id": entry.id,
                "title": entry.title,
                "url": entry.url,
                "isActive": entry.id == active_id,
            }
            for entry in state.pages.entries
        ]
    return {"pages": pages, "count": len(pages), "activePageId": active_id}


def handle_close_page(state: DaemonState, params: Mapping[str, Any]) -> Dict[str, Any]:
    """Remove a page from the registry; the last page cannot be closed."""
    page_id = _as_u64(params.get("id"))
    if page_id is None:
        raise HandlerError("missing required parameter 'id'")

    with state.lock:
        state.pages.remove(page_id)
        new_active_id = state.pages.active_page_id
        state.selected_frame = None

    logger.info("[pages] closed page %d, active now: %d", page_id, new_active_id)
    return {"closed": True, "id": page_id, "activePageId": new_active_id}


def handle_select_frame(state: DaemonState, params: Mapping[str, Any]) -> Dict[str, Any]:
    """Select a frame by name, index or URL pattern; "main" or no params resets it."""
    name = params.get("name")
    name = name if isinstance(name, str) else None
    index = _as_u64(params.get("index"))
    url_pattern = params.get("urlPattern")
    url_pattern = url_pattern if isinstance(url_pattern, str) else None

    frame_id: Optional[str]
    if name is not None:
        frame_id = None if name in ("main", "null", "") else f"name:{name}"
    elif index is not None:
        frame_id = f"index:{index}"
    elif url_pattern is not None:
        frame_id = f"url:{url_pattern}"
    else:
        frame_id = None

    with state.lock:
        state.selected_frame = frame_id

    label = frame_id if frame_id is not None else "main"
    logger.debug("[pages] selected frame: %s", label)
    return {"selected": frame_id is not None, "frame": label}