import json
from pathlib import Path

import pytest

from browsedaemon.logs import ConsoleLogEntry, DaemonLogs, DialogLogEntry, NetworkLogEntry
from browsedaemon.session import handle_session_summary, write_debug_bundle
from browsedaemon.state import MAX_TIMELINE_ENTRIES, DaemonState, HandlerError


def _console(log_type, text, ts):
    return ConsoleLogEntry(log_type=log_type, text=text, timestamp=ts, url="")


def test_session_summary_empty_state():
    result = handle_session_summary(DaemonLogs(), DaemonState())
    assert result["actions"]["total"] == 0
    assert result["console"]["total"] == 0
    assert result["network"]["total"] == 0
    assert result["dialog"]["total"] == 0
    assert result["boundedHistory"] is False
    assert result["pageCount"] == 0
    assert result["selectedFrame"] is None
    assert result["activePage"] == {"id": 0, "url": "", "title": ""}
    assert result["boundedHistoryCaveat"] == ""


def test_session_summary_with_actions_and_logs():
    logs = DaemonLogs()
    state = DaemonState()
    timeline = state.timeline
    a = timeline.begin_action("navigate", "url=...", "about:blank")
    timeline.finish_action(a, "https://example.com", "ok", "")
    b = timeline.begin_action("wait_for", "text_visible", "https://example.com")
    timeline.finish_action(b, "https://example.com", "ok", "")
    c = timeline.begin_action("assert", "checks=[...]", "https://example.com")
    timeline.finish_action(c, "https://example.com", "error", "failed")

    logs.console.push(_console("error", "something broke", 1.0))
    logs.console.push(_console("log", "info msg", 2.0))

    result = handle_session_summary(logs, state)
    assert result["actions"]["total"] == 3
    assert result["actions"]["ok"] == 2
    assert result["actions"]["error"] == 1
    assert result["actions"]["waitCount"] == 1
    assert result["actions"]["assertCount"] == 1
    assert result["console"]["total"] == 2
    assert result["console"]["errors"] == 1
    assert result["boundedHistory"] is False


def test_session_summary_bounded_history():
    state = DaemonState()
    for i in range(MAX_TIMELINE_ENTRIES):
        action = state.timeline.begin_action("test", f"i={i}", "")
        state.timeline.finish_action(action, "", "ok", "")
    result = handle_session_summary(DaemonLogs(), state)
    assert result["boundedHistory"] is True
    assert "capped" in result["boundedHistoryCaveat"]


def test_session_summary_counts_running_and_pageerror():
    logs = DaemonLogs()
    state = DaemonState()
    state.timeline.begin_action("click", "", "")
    logs.console.push(_console("pageerror", "boom", 1.0))
    result = handle_session_summary(logs, state)
    assert result["actions"]["running"] == 1
    assert result["console"]["errors"] == 1


def test_session_summary_network_failures_and_dialogs():
    logs = DaemonLogs()
    logs.network.push(NetworkLogEntry("GET", "https://example.com/a", 200, "Document", 1.0, False))
    logs.network.push(NetworkLogEntry("GET", "https://example.com/b", 404, "Fetch", 2.0, False))
    logs.network.push(NetworkLogEntry("", "", 0, "Fetch", 3.0, True, failure_text="net::ERR"))
    logs.dialog.push(DialogLogEntry("alert", "hi", 0.0, "https://example.com"))
    result = handle_session_summary(logs, DaemonState())
    assert result["network"] == {"total": 3, "failed": 2}
    assert result["dialog"] == {"total": 1}


def test_session_summary_active_page_and_frame():
    state = DaemonState()
    state.pages.register(object(), "Home", "https://example.com")
    second = state.pages.register(object(), "Other", "https://example.com/other")
    state.pages.set_active(second)
    state.selected_frame = "name:child"
    result = handle_session_summary(DaemonLogs(), state)
    assert result["pageCount"] == 2
    assert result["activePage"] == {
        "id": second,
        "url": "https://example.com/other",
        "title": "Other",
    }
    assert result["selectedFrame"] == "name:child"


def test_debug_bundle_writes_files(tmp_path):
    logs = DaemonLogs()
    state = DaemonState()
    logs.console.push(_console("log", "hello", 1.0))
    action = state.timeline.begin_action("navigate", "", "about:blank")
    state.timeline.finish_action(action, "https://example.com", "ok", "")

    result = write_debug_bundle(logs, state, {"name": "run1"}, tmp_path)
    bundle = Path(result["path"])
    assert bundle.parent == tmp_path
    assert bundle.name.startswith("debug-")
    assert bundle.name.endswith("-run1")
    assert result["files"] == [
        "console.json",
        "network.json",
        "dialog.json",
        "timeline.json",
        "session-summary.json",
    ]
    assert result["fileCount"] == 5

    console = json.loads((bundle / "console.json").read_text(encoding="utf-8"))
    assert console[0]["text"] == "hello"
    timeline = json.loads((bundle / "timeline.json").read_text(encoding="utf-8"))
    assert timeline[0]["tool"] == "navigate"
    assert timeline[0]["status"] == "ok"
    summary = json.loads((bundle / "session-summary.json").read_text(encoding="utf-8"))
    assert summary["actions"]["total"] == 1
    assert json.loads((bundle / "network.json").read_text(encoding="utf-8")) == []


def test_debug_bundle_default_name(tmp_path):
    result = write_debug_bundle(DaemonLogs(), DaemonState(), {}, tmp_path)
    name = Path(result["path"]).name
    assert name.startswith("debug-")
    assert name.count("-") == 2


def test_debug_bundle_unwritable_root(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(HandlerError, match="failed to create debug bundle directory"):
        write_debug_bundle(DaemonLogs(), DaemonState(), {}, blocker)