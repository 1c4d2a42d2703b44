from __future__ import annotations

from typing import Any

from ..store import MemoryStore
from ..store import search as store_search
from ..store import timeline as store_timeline
from ..worker_http import (
    clamp_limit,
    optional_str,
    parse_float_value,
    parse_int_value,
)
from ._types import _WorkerHandler


def handle_post(
    handler: _WorkerHandler,
    store: MemoryStore,
    path: str,
    payload: dict[str, Any],
) -> bool:
    if path == "/api/search":
        limit = clamp_limit(
            parse_int_value(payload.get("limit"), field="limit"),
            default=store_search.DEFAULT_LIMIT,
            maximum=store_search.MAX_LIMIT,
        )
        response = store_search.search_response(
            store,
            optional_str(payload, "query") or "",
            type=optional_str(payload, "type"),
            since=optional_str(payload, "since"),
            project=optional_str(payload, "project_path"),
            limit=limit,
        )
        handler._send_json(response)
        return True
    if path == "/api/timeline":
        center_id = parse_int_value(payload.get("observation_id"), field="observation_id")
        if center_id is None:
            handler._send_json({"error": "observation_id required"}, status=400)
            return True
        range_hours = parse_float_value(payload.get("range_hours"), field="range_hours")
        if range_hours is None:
            range_hours = store_timeline.DEFAULT_RANGE_HOURS
        observations = store.timeline(center_id, range_hours=range_hours)
        handler._send_json(
            {
                "center_id": center_id,
                "range_hours": range_hours,
                "observations": [o.to_dict() for o in observations],
            }
        )
        return True
    return False
