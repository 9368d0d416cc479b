"""Bounded log buffers and conversion of browser protocol events into log entries."""

from __future__ import annotations

import json
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Generic, List, Mapping, Optional, TypeVar

MAX_BUFFER_SIZE = 1000

T = TypeVar("T")


@dataclass
class ConsoleLogEntry:
    """A console message or uncaught page error."""

    log_type: str
    text: str
    timestamp: float
    url: str = ""


@dataclass
class NetworkLogEntry:
    """A completed or failed network request."""

    method: str
    url: str
    status: int
    resource_type: str
    timestamp: float
    failed: bool
    failure_text: str = ""
    response_body: str = ""


@dataclass
class DialogLogEntry:
    """A JavaScript dialog that was opened (and auto-accepted)."""

    dialog_type: str
    message: str
    timestamp: float
    url: str
    default_value: str = ""
    accepted: bool = True


class LogBuffer(Generic[T]):
    """Thread-safe FIFO that keeps at most MAX_BUFFER_SIZE entries, dropping the oldest."""

    def __init__(self) -> None:
        self._entries: Deque[T] = deque(maxlen=MAX_BUFFER_SIZE)
        self._lock = threading.Lock()

    def push(self, entry: T) -> None:
        """Append an entry, evicting the oldest one when full."""
        with self._lock:
            self._entries.append(entry)

    def drain(self) -> List[T]:
        """Remove and return all entries in insertion order."""
        with self._lock:
            entries = list(self._entries)
            self._entries.clear()
        return entries

    def snapshot(self) -> List[T]:
        """Return all entries without clearing the buffer."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DaemonLogs:
    """All log buffers held by the daemon."""

    def __init__(self) -> None:
        self.console: LogBuffer[ConsoleLogEntry] = LogBuffer()
        self.network: LogBuffer[NetworkLogEntry] = LogBuffer()
        self.dialog: LogBuffer[DialogLogEntry] = LogBuffer()


def _timestamp(event: Mapping[str, Any]) -> float:
    return float(event.get("timestamp") or 0.0)


def _arg_text(arg: Mapping[str, Any]) -> Optional[str]:
    value = arg.get("value")
    if value is not None:
        if isinstance(value, str):
            return value
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    description = arg.get("description")
    return description if isinstance(description, str) else None


def console_entry_from_event(event: Mapping[str, Any]) -> ConsoleLogEntry:
    """Build an entry from a ``Runtime.consoleAPICalled`` event."""
    texts = (_arg_text(arg) for arg in event.get("args") or [])
    text = " ".join(t for t in texts if t is not None)
    return ConsoleLogEntry(
        log_type=str(event.get("type", "")),
        text=text,
        timestamp=_timestamp(event),
        url="",
    )


def exception_entry_from_event(event: Mapping[str, Any]) -> ConsoleLogEntry:
    """Build a ``pageerror`` entry from a ``Runtime.exceptionThrown`` event."""
    details = event.get("exceptionDetails") or {}
    text = details.get("text", "")
    exception = details.get("exception")
    if exception and exception.get("description") is not None:
        text = exception["description"]
    return ConsoleLogEntry(
        log_type="pageerror",
        text=text,
        timestamp=_timestamp(event),
        url=details.get("url") or "",
    )


def response_entry_from_event(event: Mapping[str, Any]) -> NetworkLogEntry:
    """Build an entry from a ``Network.responseReceived`` event."""
    response = event.get("response") or {}
    status = int(response.get("status", 0))
    method = "GET"
    headers = response.get("requestHeaders")
    if isinstance(headers, Mapping) and isinstance(headers.get(":method"), str):
        method = headers[":method"]
    return NetworkLogEntry(
        method=method,
        url=response.get("url", ""),
        status=status,
        resource_type=str(event.get("type", "")),
        timestamp=_timestamp(event),
        failed=status >= 400,
    )


def failure_entry_from_event(event: Mapping[str, Any]) -> NetworkLogEntry:
    """Build an entry from a ``Network.loadingFailed`` event."""
    return NetworkLogEntry(
        method="",
        url="",
        status=0,
        resource_type=str(event.get("type", "")),
        timestamp=_timestamp(event),
        failed=True,
        failure_text=event.get("errorText", ""),
    )


def dialog_entry_from_event(event: Mapping[str, Any]) -> DialogLogEntry:
    """Build an entry from a ``Page.javascriptDialogOpening`` event."""
    return DialogLogEntry(
        dialog_type=str(event.get("type", "")),
        message=event.get("message", ""),
        timestamp=0.0,
        url=event.get("url", ""),
        default_value=event.get("defaultPrompt") or "",
        accepted=True,
    )