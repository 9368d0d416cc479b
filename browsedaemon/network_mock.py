"""Request mocking and blocking: route storage, glob matching and interception commands."""

from __future__ import annotations

import base64
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .state import DaemonState, HandlerError, MockRoute, MockRouteStore, MockType

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/json"


def _glob_to_regex_inner(pattern: str) -> str:
    parts = []
    for ch in pattern:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return "".join(parts)


def _simple_glob(pattern: str, text: str) -> bool:
    return re.fullmatch(_glob_to_regex_inner(pattern), text) is not None


def glob_matches(pattern: str, url: str) -> bool:
    """Match a URL against a glob: ``*`` and ``?`` as usual, ``**`` separates ordered parts."""
    parts = pattern.split("**")
    if len(parts) == 1:
        return _simple_glob(pattern, url)

    remaining = url
    for index, part in enumerate(parts):
        if not part:
            continue
        regex = re.compile(_glob_to_regex_inner(part))
        if index == 0:
            match = regex.match(remaining)
        else:
            match = regex.search(remaining)
        if match is None:
            return False
        remaining = remaining[match.end():]
    return True


def find_route(store: MockRouteStore, url: str) -> Optional[MockRoute]:
    """The first stored route whose pattern matches the URL, or None."""
    return next((r for r in store.routes if glob_matches(r.pattern, url)), None)


def build_fetch_command(
    route: Optional[MockRoute], request_id: str
) -> Tuple[str, Dict[str, Any]]:
    """The interception command (method, params) answering a paused request.

    Blocked routes fail the request, mock routes fulfil it with the stored
    response, and requests matching no route continue untouched.
    """
    if route is None:
        return "Fetch.continueRequest", {"requestId": request_id}

    if route.route_type is MockType.BLOCK:
        return "Fetch.failRequest", {
            "requestId": request_id,
            "errorReason": "BlockedByClient",
        }

    headers: List[Dict[str, str]] = [
        {"name": name, "value": value} for name, value in route.headers.items()
    ]
    if not any(h["name"].lower() == "content-type" for h in headers):
        headers.append(
            {
                "name": "Content-Type",
                "value": route.content_type or DEFAULT_CONTENT_TYPE,
            }
        )
    body = base64.b64encode(route.body.encode("utf-8")).decode("ascii")
    return "Fetch.fulfillRequest", {
        "requestId": request_id,
        "responseCode": route.status,
        "responseHeaders": headers,
        "body": body,
    }


def _as_u64(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def handle_mock_route(state: DaemonState, params: Mapping[str, Any]) -> Dict[str, Any]:
    """Add a mock route for ``url`` and return its ID."""
    url_pattern = params.get("url")
    if not isinstance(url_pattern, str):
        raise HandlerError("missing required parameter: url")

    status = _as_u64(params.get("status"))
    status = 200 if status is None else status & 0xFFFF
    body = params.get("body")
    body = body if isinstance(body, str) else ""
    delay = _as_u64(params.get("delay"))
    delay_ms = 0 if delay is None else delay

    content_type = params["content_type"] if "content_type" in params else params.get("contentType")
    content_type = content_type if isinstance(content_type, str) else ""

    raw_headers = params.get("headers")
    headers: Dict[str, str] = {}
    if isinstance(raw_headers, Mapping):
        headers = {k: v for k, v in raw_headers.items() if isinstance(v, str)}

    with state.lock:
        route = state.mock_routes.add(
            url_pattern,
            MockType.MOCK,
            status=status,
            body=body,
            headers=headers,
            delay_ms=delay_ms,
            content_type=content_type,
        )

    logger.debug("mock_route: added route id=%d pattern=%s", route.id, url_pattern)
    return {"route_id": route.id, "pattern": url_pattern, "status": status}


def handle_block_urls(state: DaemonState, params: Mapping[str, Any]) -> Dict[str, Any]:
    """Add a block route for every string in ``patterns``."""
    patterns = params.get("patterns")
    if not isinstance(patterns, list):
        raise HandlerError("missing required parameter: patterns (array)")

    pattern_strs = [p for p in patterns if isinstance(p, str)]
    if not pattern_strs:
        raise HandlerError("patterns array cannot be empty")

    with state.lock:
        for pattern in pattern_strs:
            state.mock_routes.add(pattern, MockType.BLOCK, status=0)

    logger.debug("block_urls: added %d block patterns", len(pattern_strs))
    return {"blocked": len(pattern_strs), "patterns": pattern_strs}


def handle_clear_routes(state: DaemonState, params: Mapping[str, Any]) -> Dict[str, Any]:
    """Remove every route; interception stays on and simply passes requests through."""
    with state.lock:
        cleared = len(state.mock_routes.routes)
        state.mock_routes.routes.clear()
    logger.debug("clear_routes: cleared %d routes", cleared)
    return {"cleared": cleared}