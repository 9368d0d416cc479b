"""Daemon-side state: action timeline, element refs, diff snapshots, pages, routes."""

from __future__ import annotations

import enum
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Deque, Dict, List, Optional

MAX_TIMELINE_ENTRIES = 60


class HandlerError(Exception):
    """Raised when a daemon request cannot be carried out."""


def _now_epoch_secs() -> float:
    return time.time()


class MockType(enum.Enum):
    """Whether a route mocks or blocks matching requests."""

    MOCK = "mock"
    BLOCK = "block"


@dataclass
class MockRoute:
    """A single mock or block route."""

    id: int
    pattern: str
    route_type: MockType
    status: int = 200
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    delay_ms: int = 0
    content_type: str = ""


@dataclass
class MockRouteStore:
    """Active mock/block routes and the state of request interception."""

    routes: List[MockRoute] = field(default_factory=list)
    next_id: int = 1
    fetch_enabled: bool = False
    listener_spawned: bool = False

    def add(
        self,
        pattern: str,
        route_type: MockType,
        status: int = 200,
        body: str = "",
        headers: Optional[Dict[str, str]] = None,
        delay_ms: int = 0,
        content_type: str = "",
    ) -> MockRoute:
        """Store a new route with the next free ID and return it."""
        route = MockRoute(
            id=self.next_id,
            pattern=pattern,
            route_type=route_type,
            status=status,
            body=body,
            headers=dict(headers or {}),
            delay_ms=delay_ms,
            content_type=content_type,
        )
        self.next_id += 1
        self.routes.append(route)
        return route


@dataclass
class PageEntry:
    """One open browser page."""

    id: int
    page: Any
    title: str
    url: str


class PageRegistry:
    """All open pages and the ID of the active one."""

    def __init__(self) -> None:
        self.entries: List[PageEntry] = []
        self.active_page_id = 0
        self._next_id = 1

    def register(self, page: Any, title: str, url: str) -> int:
        """Add a page and return its ID; the first page becomes active."""
        page_id = self._next_id
        self._next_id += 1
        self.entries.append(PageEntry(id=page_id, page=page, title=title, url=url))
        if len(self.entries) == 1:
            self.active_page_id = page_id
        return page_id

    def _find(self, page_id: int) -> Optional[PageEntry]:
        return next((e for e in self.entries if e.id == page_id), None)

    def active_page(self) -> Any:
        """The active page object, or None when there is none."""
        entry = self._find(self.active_page_id)
        return entry.page if entry is not None else None

    def set_active(self, page_id: int) -> bool:
        """Make the given page active; False if no such page exists."""
        if self._find(page_id) is None:
            return False
        self.active_page_id = page_id
        return True

    def remove(self, page_id: int) -> Any:
        """Remove a page and return its page object.

        The last remaining page cannot be removed. If the active page is
        removed, the first remaining page becomes active.
        """
        if len(self.entries) <= 1:
            raise HandlerError("cannot close the last page")
        entry = self._find(page_id)
        if entry is None:
            raise HandlerError(f"page id {page_id} not found")
        self.entries.remove(entry)
        if self.active_page_id == page_id:
            self.active_page_id = self.entries[0].id
        return entry.page

    def update_metadata(self, page_id: int, title: str, url: str) -> None:
        """Update the stored title and URL of a page, if it exists."""
        entry = self._find(page_id)
        if entry is not None:
            entry.title = title
            entry.url = url

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class CachedAction:
    """A cached selector resolution for a page structure and intent."""

    selector: str
    score: float
    cached_at: float


@dataclass
class ActionCache:
    """Cache mapping ``url_hash:intent`` keys to resolved selectors."""

    entries: Dict[str, CachedAction] = field(default_factory=dict)
    hits: int = 0
    misses: int = 0


@dataclass
class TraceState:
    """Whether a performance trace is currently running."""

    active: bool = False
    name: Optional[str] = None
    started_at: float = 0.0


@dataclass
class ActionEntry:
    """One recorded action in the timeline."""

    id: int
    tool: str
    params_summary: str
    started_at: float
    finished_at: float = 0.0
    status: str = "running"
    before_url: str = ""
    after_url: str = ""
    verification_summary: str = ""
    warning_summary: str = ""
    diff_summary: str = ""
    changed: bool = False
    error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """The entry as a JSON-ready dictionary."""
        return asdict(self)


class ActionTimeline:
    """Bounded FIFO of actions, keeping the newest MAX_TIMELINE_ENTRIES."""

    def __init__(self) -> None:
        self._entries: Deque[ActionEntry] = deque(maxlen=MAX_TIMELINE_ENTRIES)
        self._next_id = 1

    def begin_action(self, tool: str, params_summary: str, before_url: str) -> int:
        """Record the start of an action and return its ID."""
        action_id = self._next_id
        self._next_id += 1
        self._entries.append(
            ActionEntry(
                id=action_id,
                tool=tool,
                params_summary=params_summary,
                started_at=_now_epoch_secs(),
                before_url=before_url,
            )
        )
        return action_id

    def finish_action(self, action_id: int, after_url: str, status: str, error: str) -> None:
        """Mark an action finished; unknown or evicted IDs are ignored."""
        entry = self.get(action_id)
        if entry is None:
            return
        entry.finished_at = _now_epoch_secs()
        entry.after_url = after_url
        entry.status = status
        if error:
            entry.error = error

    def snapshot(self) -> List[ActionEntry]:
        """Copies of all entries, oldest first."""
        return [replace(e) for e in self._entries]

    def get(self, action_id: int) -> Optional[ActionEntry]:
        """The entry with the given ID, or None."""
        return next((e for e in self._entries if e.id == action_id), None)


@dataclass
class RefStore:
    """Element refs from the latest snapshot, with its version."""

    version: int = 0
    refs: Dict[str, Any] = field(default_factory=dict)
    metadata: Any = None


@dataclass
class DiffState:
    """Page state captured before and after the latest mutating action."""

    before: Any = None
    after: Any = None


class DaemonState:
    """State shared by all connections; guard compound updates with ``lock``."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.timeline = ActionTimeline()
        self.refs = RefStore()
        self.diff = DiffState()
        self.pages = PageRegistry()
        self.selected_frame: Optional[str] = None
        self.mock_routes = MockRouteStore()
        self.action_cache = ActionCache()
        self.trace_state = TraceState()