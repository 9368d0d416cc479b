"""Versioned element refs: snapshot storage, ref parsing and lookup."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .state import DaemonState, HandlerError

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_LIMIT = 40

_VERSION_RE = re.compile(r"\+?[0-9]+")


def parse_ref(ref_str: str) -> Tuple[int, str]:
    """Split a ref such as ``@v3:e7`` into its version and element key."""
    s = ref_str.strip()
    if not s.startswith("@"):
        raise HandlerError(f"invalid ref format (must start with @): {s}")
    version_str, sep, key = s[1:].partition(":")
    if not sep:
        raise HandlerError(f"invalid ref format (expected @vN:eM): {s}")
    if not version_str.startswith("v"):
        raise HandlerError(f"invalid ref format (version must start with v): {s}")
    digits = version_str[1:]
    if not _VERSION_RE.fullmatch(digits):
        raise HandlerError(f"invalid version number in ref: {s}")
    version = int(digits)
    if version >= 2**64:
        raise HandlerError(f"invalid version number in ref: {s}")
    if not key:
        raise HandlerError(f"invalid ref format (empty element key): {s}")
    return version, key


def _snapshot_options(params: Mapping[str, Any]) -> Dict[str, Any]:
    selector = params.get("selector")
    interactive_only = params.get("interactive_only")
    limit = params.get("limit")
    mode = params.get("mode")
    return {
        "interactive_only": interactive_only if isinstance(interactive_only, bool) else True,
        "limit": (
            limit
            if isinstance(limit, int) and not isinstance(limit, bool) and limit >= 0
            else DEFAULT_SNAPSHOT_LIMIT
        ),
        "mode": mode if isinstance(mode, str) else None,
        "selector": selector if isinstance(selector, str) else None,
    }


def store_snapshot(
    state: DaemonState, nodes: Sequence[Any], params: Mapping[str, Any]
) -> Dict[str, Any]:
    """Store snapshot nodes as refs ``e1``, ``e2``, ... under a new version."""
    metadata = _snapshot_options(params)
    refs = {f"e{i}": node for i, node in enumerate(nodes, start=1)}

    with state.lock:
        store = state.refs
        store.version += 1
        store.refs = dict(refs)
        store.metadata = dict(metadata)
        version = store.version
        count = len(store.refs)

    logger.debug("snapshot: stored %d refs at version %d", count, version)
    return {
        "version": version,
        "count": count,
        "refs": refs,
        "metadata": metadata,
    }


def lookup_ref(state: DaemonState, ref_str: str) -> Tuple[int, str, Any]:
    """Return ``(version, key, node)`` for a ref from the current snapshot."""
    version, key = parse_ref(ref_str)
    with state.lock:
        store = state.refs
        if store.version == 0:
            raise HandlerError("no snapshot taken yet — run snapshot first")
        if version != store.version:
            raise HandlerError(
                f"ref version mismatch: ref is v{version} but current snapshot is v{store.version}"
            )
        if key not in store.refs:
            raise HandlerError(f"ref {ref_str} not found in snapshot v{version}")
        return version, key, store.refs[key]


def _field(node: Any, name: str) -> Optional[Any]:
    return node.get(name) if isinstance(node, Mapping) else None


def _str_field(node: Any, name: str) -> str:
    value = _field(node, name)
    return value if isinstance(value, str) else ""


def _bool_field(node: Any, name: str) -> bool:
    value = _field(node, name)
    return value if isinstance(value, bool) else False


def handle_get_ref(state: DaemonState, params: Mapping[str, Any]) -> Dict[str, Any]:
    """Describe the element behind a ref from the current snapshot."""
    ref_str = params.get("ref")
    if not isinstance(ref_str, str):
        raise HandlerError("missing required parameter: ref")
    version, key, node = lookup_ref(state, ref_str)
    return {
        "ref": ref_str,
        "version": version,
        "key": key,
        "node": node,
        "tag": _str_field(node, "tag"),
        "role": _str_field(node, "role"),
        "name": _str_field(node, "name"),
        "visible": _bool_field(node, "visible"),
        "enabled": _bool_field(node, "enabled"),
    }


def annotate_resolution(
    result: Any, ref_str: str, selector: str, tier: int, node: Any
) -> Any:
    """Add a ``ref_resolution`` record to a handler result that is a dictionary."""
    if isinstance(result, dict):
        result["ref_resolution"] = {
            "ref": ref_str,
            "resolved_selector": selector,
            "tier": tier,
            "tag": _field(node, "tag"),
            "role": _field(node, "role"),
            "name": _field(node, "name"),
        }
    return result