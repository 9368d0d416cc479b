"""Session diagnostics: a summary of the session and a bundle of diagnostic files."""

from __future__ import annotations

import datetime
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

from .logs import DaemonLogs
from .state import MAX_TIMELINE_ENTRIES, DaemonState, HandlerError

logger = logging.getLogger(__name__)

_ERROR_LOG_TYPES = ("error", "pageerror")


def handle_session_summary(logs: DaemonLogs, state: DaemonState) -> Dict[str, Any]:
    """Aggregate the timeline, logs and page registry into one summary."""
    with state.lock:
        entries = state.timeline.snapshot()
        registry = state.pages
        active = next(
            (e for e in registry.entries if e.id == registry.active_page_id), None
        )
        page_count = len(registry.entries)
        if active is not None:
            active_page = {"id": registry.active_page_id, "url": active.url, "title": active.title}
        else:
            active_page = {"id": 0, "url": "", "title": ""}
        selected_frame = state.selected_frame or None

    total_actions = len(entries)
    statuses = [e.status for e in entries]
    tools = [e.tool for e in entries]
    bounded_history = total_actions >= MAX_TIMELINE_ENTRIES

    console_entries = logs.console.snapshot()
    network_entries = logs.network.snapshot()
    dialog_entries = logs.dialog.snapshot()

    return {
        "actions": {
            "total": total_actions,
            "ok": statuses.count("ok"),
            "error": statuses.count("error"),
            "running": statuses.count("running"),
            "waitCount": tools.count("wait_for"),
            "assertCount": tools.count("assert"),
        },
        "console": {
            "total": len(console_entries),
            "errors": sum(1 for e in console_entries if e.log_type in _ERROR_LOG_TYPES),
        },
        "network": {
            "total": len(network_entries),
            "failed": sum(1 for e in network_entries if e.failed or e.status >= 400),
        },
        "dialog": {"total": len(dialog_entries)},
        "activePage": active_page,
        "pageCount": page_count,
        "selectedFrame": selected_frame,
        "boundedHistory": bounded_history,
        "boundedHistoryCaveat": (
            f"Timeline capped at {MAX_TIMELINE_ENTRIES} entries — oldest actions evicted"
            if bounded_history
            else ""
        ),
    }


def _write_json(path: Path, data: Any, files: List[str]) -> None:
    try:
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("debug_bundle: failed to write %s: %s", path.name, exc)
    else:
        files.append(path.name)


def write_debug_bundle(
    logs: DaemonLogs,
    state: DaemonState,
    params: Mapping[str, Any],
    artifact_root: Union[str, Path],
) -> Dict[str, Any]:
    """Write logs, timeline and summary into a timestamped directory under ``artifact_root``."""
    custom_name = params.get("name")
    custom_name = custom_name if isinstance(custom_name, str) else ""

    timestamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
    dir_name = f"debug-{timestamp}-{custom_name}" if custom_name else f"debug-{timestamp}"
    bundle_dir = Path(artifact_root) / dir_name
    try:
        bundle_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise HandlerError(f"failed to create debug bundle directory: {exc}") from exc

    logger.debug("write_debug_bundle: writing to %s", bundle_dir)
    files: List[str] = []

    _write_json(bundle_dir / "console.json", [asdict(e) for e in logs.console.snapshot()], files)
    _write_json(bundle_dir / "network.json", [asdict(e) for e in logs.network.snapshot()], files)
    _write_json(bundle_dir / "dialog.json", [asdict(e) for e in logs.dialog.snapshot()], files)

    with state.lock:
        timeline = [e.to_dict() for e in state.timeline.snapshot()]
    _write_json(bundle_dir / "timeline.json", timeline, files)

    _write_json(bundle_dir / "session-summary.json", handle_session_summary(logs, state), files)

    logger.debug("write_debug_bundle: wrote %d files to %s", len(files), bundle_dir)
    return {"path": str(bundle_dir), "files": files, "fileCount": len(files)}