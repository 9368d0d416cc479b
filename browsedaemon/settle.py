"""Adaptive DOM settling: wait until page mutations quiet down."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

logger = logging.getLogger(__name__)

ZERO_MUTATION_THRESHOLD_MS = 60
ZERO_MUTATION_QUIET_MS = 30
EVALUATE_TIMEOUT = 25.0

INSTALL_MUTATION_COUNTER_JS = """(() => {
    const key = "__piMutationCounter";
    const installedKey = "__piMutationCounterInstalled";
    const w = window;
    if (typeof w[key] !== "number") w[key] = 0;
    if (w[installedKey]) return;
    const observer = new MutationObserver(() => {
        const current = typeof w[key] === "number" ? w[key] : 0;
        w[key] = current + 1;
    });
    observer.observe(document.documentElement || document.body, {
        subtree: true,
        childList: true,
        attributes: true,
        characterData: true,
    });
    w[installedKey] = true;
})()"""

READ_SETTLE_STATE_JS = """((wantFocus) => {
    const w = window;
    const mutationCount = typeof w.__piMutationCounter === "number" ? w.__piMutationCounter : 0;
    if (!wantFocus) return { mutationCount, focusDescriptor: "" };
    const el = document.activeElement;
    if (!el || el === document.body || el === document.documentElement) {
        return { mutationCount, focusDescriptor: "" };
    }
    const id = el.id ? `#${el.id}` : "";
    const role = el.getAttribute("role") || "";
    const name = (el.getAttribute("aria-label") || el.getAttribute("name") || "").trim();
    return { mutationCount, focusDescriptor: `${el.tagName.toLowerCase()}${id}|${role}|${name}` };
})"""


class Page(Protocol):
    """The page operations settling needs."""

    async def evaluate(self, expression: str) -> Any: ...

    async def url(self) -> Optional[str]: ...


@dataclass
class SettleOptions:
    """Tuning for the settle loop, in milliseconds."""

    timeout_ms: int
    poll_ms: int
    quiet_window_ms: int
    check_focus_stability: bool = False


@dataclass
class SettleResult:
    """How and when the page settled."""

    settle_mode: str
    settle_ms: int
    settle_reason: str
    settle_polls: int


@dataclass
class SettleState:
    """Mutation counter and focused-element descriptor read from the page."""

    mutation_count: int = 0
    focus_descriptor: str = ""

    @classmethod
    def from_json(cls, data: Any) -> "SettleState":
        """Build from a camelCase mapping or JSON text; missing keys take defaults."""
        if isinstance(data, (str, bytes)):
            data = json.loads(data)
        if not isinstance(data, Mapping):
            raise ValueError("settle state must be an object")
        count = data.get("mutationCount", 0)
        if isinstance(count, float) and count.is_integer():
            count = int(count)
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ValueError(f"invalid mutationCount: {count!r}")
        focus = data.get("focusDescriptor", "")
        if not isinstance(focus, str):
            raise ValueError(f"invalid focusDescriptor: {focus!r}")
        return cls(mutation_count=count, focus_descriptor=focus)


async def ensure_mutation_counter(page: Page) -> None:
    """Install the page's MutationObserver counter if not already present."""
    try:
        await asyncio.wait_for(page.evaluate(INSTALL_MUTATION_COUNTER_JS), EVALUATE_TIMEOUT)
    except asyncio.TimeoutError:
        logger.warning("ensure_mutation_counter timed out (25s)")
    except Exception as exc:
        logger.warning("ensure_mutation_counter evaluate error: %s", exc)
    else:
        logger.debug("mutation counter installed")


async def read_settle_state(page: Page, check_focus: bool) -> SettleState:
    """Read the mutation counter and, if asked, the focused element descriptor."""
    expression = f"{READ_SETTLE_STATE_JS}({'true' if check_focus else 'false'})"
    try:
        result = await asyncio.wait_for(page.evaluate(expression), EVALUATE_TIMEOUT)
    except asyncio.TimeoutError:
        logger.warning("read_settle_state timed out (25s)")
        return SettleState()
    except Exception as exc:
        logger.warning("read_settle_state evaluate error: %s", exc)
        return SettleState()
    try:
        return SettleState.from_json(result)
    except (ValueError, TypeError):
        return SettleState()


async def _current_url(page: Page) -> str:
    try:
        return await page.url() or ""
    except Exception:
        return ""


def _elapsed_ms(since: float, now: Optional[float] = None) -> int:
    return int(((now if now is not None else time.monotonic()) - since) * 1000)


async def settle_after_action(page: Page, opts: SettleOptions) -> SettleResult:
    """Poll the page until DOM mutations stop or the timeout passes.

    Reasons: ``zero_mutation_shortcut``, ``url_changed_then_quiet``,
    ``dom_quiet`` or ``timeout_fallback``.
    """
    timeout_ms = max(opts.timeout_ms, 150)
    poll_ms = min(max(opts.poll_ms, 20), 100)
    active_quiet_window_ms = max(opts.quiet_window_ms, 60)
    check_focus = opts.check_focus_stability

    started_at = time.monotonic()
    polls = 0
    saw_url_change = False
    last_activity_at = started_at
    total_mutations_seen = 0

    await ensure_mutation_counter(page)

    initial = await read_settle_state(page, check_focus)
    previous_mutation_count = initial.mutation_count
    previous_focus = initial.focus_descriptor
    previous_url = await _current_url(page)

    while _elapsed_ms(started_at) < timeout_ms:
        await asyncio.sleep(poll_ms / 1000)
        polls += 1
        now = time.monotonic()

        current_url = await _current_url(page)
        if current_url != previous_url:
            saw_url_change = True
            previous_url = current_url
            last_activity_at = now

        state = await read_settle_state(page, check_focus)
        if state.mutation_count > previous_mutation_count:
            total_mutations_seen += state.mutation_count - previous_mutation_count
            previous_mutation_count = state.mutation_count
            last_activity_at = now

        if check_focus and state.focus_descriptor != previous_focus:
            previous_focus = state.focus_descriptor
            last_activity_at = now

        if total_mutations_seen == 0 and _elapsed_ms(started_at) >= ZERO_MUTATION_THRESHOLD_MS:
            active_quiet_window_ms = ZERO_MUTATION_QUIET_MS

        if _elapsed_ms(last_activity_at, now) >= active_quiet_window_ms:
            if active_quiet_window_ms == ZERO_MUTATION_QUIET_MS and total_mutations_seen == 0:
                reason = "zero_mutation_shortcut"
            elif saw_url_change:
                reason = "url_changed_then_quiet"
            else:
                reason = "dom_quiet"
            settle_ms = _elapsed_ms(started_at)
            logger.debug("settle complete: reason=%s ms=%d polls=%d", reason, settle_ms, polls)
            return SettleResult("adaptive", settle_ms, reason, polls)

    settle_ms = _elapsed_ms(started_at)
    logger.debug("settle timeout: ms=%d polls=%d", settle_ms, polls)
    return SettleResult("adaptive", settle_ms, "timeout_fallback", polls)