"""Handler returning the recorded action timeline."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from .state import DaemonState, HandlerError

logger = logging.getLogger(__name__)

TIMELINE_FILE = "timeline.json"


def handle_timeline(
    state: DaemonState, params: Mapping[str, Any], state_dir: Union[str, Path]
) -> Dict[str, Any]:
    """Return the timeline entries, optionally writing them to ``timeline.json``."""
    write_to_disk = params.get("write_to_disk") is True

    with state.lock:
        entries = [entry.to_dict() for entry in state.timeline.snapshot()]

    logger.debug("timeline: returning %d entries", len(entries))
    result = {"entries": entries, "count": len(entries)}

    if write_to_disk:
        path = Path(state_dir) / TIMELINE_FILE
        try:
            path.write_text(json.dumps(result, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise HandlerError(f"failed to write timeline to disk: {exc}") from exc
        logger.debug("timeline: written to %s", path)

    return result