"""Waiting for page, network and console conditions with a timeout."""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Tuple, Union

from .logs import DaemonLogs
from .state import HandlerError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 10_000
POLL_INTERVAL_MS = 100
DEFAULT_DELAY_MS = 1000
NETWORK_IDLE_WINDOW_MS = 500

_THRESHOLD_OPERATORS = (">=", "<=", "==", "!=", ">", "<")
_U64_RE = re.compile(r"\+?[0-9]+")

CONDITIONS = frozenset(
    {
        "delay",
        "selector_visible",
        "selector_hidden",
        "url_contains",
        "text_visible",
        "text_hidden",
        "network_idle",
        "request_completed",
        "console_message",
        "element_count",
        "region_stable",
    }
)


class Page(Protocol):
    """The page operation waiting needs."""

    async def evaluate(self, expression: str) -> Any: ...


Check = Callable[[], Union[bool, Awaitable[bool]]]


def _parse_u64(text: str) -> Optional[int]:
    if not _U64_RE.fullmatch(text):
        return None
    value = int(text)
    return value if value < 2**64 else None


def _as_u64(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def parse_threshold(text: str) -> Tuple[str, int]:
    """Parse ``">=3"``, ``"==0"``, ``"<5"`` or a bare number (meaning ``>=``)."""
    s = text.strip()
    if not s:
        return ">=", 0
    for op in _THRESHOLD_OPERATORS:
        if s.startswith(op):
            return op, _parse_u64(s[len(op):].strip()) or 0
    return ">=", _parse_u64(s) or 0


def compare_threshold(count: int, op: str, target: int) -> bool:
    """Compare a count with a target; unknown operators behave as ``>=``."""
    if op == "<=":
        return count <= target
    if op == "==":
        return count == target
    if op == "!=":
        return count != target
    if op == ">":
        return count > target
    if op == "<":
        return count < target
    return count >= target


def js_string(s: str) -> str:
    """Quote a string as a single-quoted JavaScript literal."""
    escaped = (
        s.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f"'{escaped}'"


async def poll_until(deadline: float, interval: float, check: Check) -> bool:
    """Call ``check`` every ``interval`` seconds until it is true or ``deadline`` seconds pass."""
    start = time.monotonic()
    while True:
        result = check()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return True
        if time.monotonic() - start >= deadline:
            return False
        await asyncio.sleep(interval)


async def _evaluate(page: Page, expression: str) -> Any:
    try:
        return await page.evaluate(expression)
    except Exception:
        return None


async def _eval_bool(page: Page, expression: str) -> bool:
    result = await _evaluate(page, expression)
    return result if isinstance(result, bool) else False


async def _eval_string(page: Page, expression: str) -> Optional[str]:
    result = await _evaluate(page, expression)
    return result if isinstance(result, str) else None


async def _eval_u64(page: Page, expression: str) -> Optional[int]:
    result = await _evaluate(page, expression)
    return _as_u64(result)


async def _network_idle(logs: DaemonLogs, deadline: float, interval: float) -> bool:
    window = NETWORK_IDLE_WINDOW_MS / 1000
    last_count = len(logs.network)
    stable_since = start = time.monotonic()
    while True:
        current = len(logs.network)
        if current != last_count:
            last_count = current
            stable_since = time.monotonic()
        elif time.monotonic() - stable_since >= window:
            return True
        if time.monotonic() - start >= deadline:
            return False
        await asyncio.sleep(interval)


async def _region_stable(page: Page, selector: str, deadline: float, interval: float) -> bool:
    expression = f'(document.querySelector({js_string(selector)})?.innerHTML ?? "")'
    previous: Optional[str] = None
    start = time.monotonic()
    while True:
        html = await _eval_string(page, expression) or ""
        if html == previous:
            return True
        previous = html
        if time.monotonic() - start >= deadline:
            return False
        await asyncio.sleep(interval)


async def handle_wait_for(page: Page, logs: DaemonLogs, params: Mapping[str, Any]) -> Dict[str, Any]:
    """Poll the requested condition until it holds or the timeout passes."""
    condition = params.get("condition")
    if not isinstance(condition, str):
        raise HandlerError("missing 'condition' parameter")
    if condition not in CONDITIONS:
        raise HandlerError(f"unknown wait condition: {condition}")

    value = params.get("value")
    value = value if isinstance(value, str) else ""
    threshold = params.get("threshold")
    threshold = threshold if isinstance(threshold, str) else ""
    timeout_ms = _as_u64(params.get("timeout"))
    if timeout_ms is None:
        timeout_ms = DEFAULT_TIMEOUT_MS

    deadline = timeout_ms / 1000
    interval = POLL_INTERVAL_MS / 1000
    start = time.monotonic()
    logger.debug(
        "wait_for: condition=%s value=%s threshold=%s timeout=%dms",
        condition, value, threshold, timeout_ms,
    )

    quoted = js_string(value)
    met: bool
    if condition == "delay":
        delay_ms = _parse_u64(value)
        delay_ms = DEFAULT_DELAY_MS if delay_ms is None else delay_ms
        await asyncio.sleep(min(delay_ms, timeout_ms) / 1000)
        met = True
    elif condition == "selector_visible":
        expression = (
            f"(() => {{ const el = document.querySelector({quoted}); if (!el) return false; "
            "const r = el.getBoundingClientRect(); return r.width > 0 && r.height > 0; })()"
        )
        met = await poll_until(deadline, interval, lambda: _eval_bool(page, expression))
    elif condition == "selector_hidden":
        expression = (
            f"(() => {{ const el = document.querySelector({quoted}); if (!el) return true; "
            "const r = el.getBoundingClientRect(); return r.width === 0 || r.height === 0; })()"
        )
        met = await poll_until(deadline, interval, lambda: _eval_bool(page, expression))
    elif condition == "url_contains":

        async def url_contains() -> bool:
            url = await _eval_string(page, "window.location.href")
            return url is not None and value in url

        met = await poll_until(deadline, interval, url_contains)
    elif condition == "text_visible":
        expression = f'(document.body?.innerText || "").includes({quoted})'
        met = await poll_until(deadline, interval, lambda: _eval_bool(page, expression))
    elif condition == "text_hidden":
        expression = f'!(document.body?.innerText || "").includes({quoted})'
        met = await poll_until(deadline, interval, lambda: _eval_bool(page, expression))
    elif condition == "network_idle":
        met = await _network_idle(logs, deadline, interval)
    elif condition == "request_completed":
        met = await poll_until(
            deadline, interval, lambda: any(value in e.url for e in logs.network.snapshot())
        )
    elif condition == "console_message":
        met = await poll_until(
            deadline, interval, lambda: any(value in e.text for e in logs.console.snapshot())
        )
    elif condition == "element_count":
        op, target = parse_threshold(threshold)
        expression = f"document.querySelectorAll({quoted}).length"

        async def count_matches() -> bool:
            count = await _eval_u64(page, expression) or 0
            return compare_threshold(count, op, target)

        met = await poll_until(deadline, interval, count_matches)
    else:
        met = await _region_stable(page, value, deadline, interval)

    return {
        "condition": condition,
        "met": met,
        "elapsed_ms": int((time.monotonic() - start) * 1000),
        "timeout_ms": timeout_ms,
        "value": value,
    }