"""Core state, logs, settling and request handlers for a browser automation daemon."""

__version__ = "0.1.0"

__all__ = [
    "logs",
    "visual_diff",
    "state",
    "settle",
    "network_mock",
    "pages",
    "refs",
    "wait",
    "timeline",
    "session",
]