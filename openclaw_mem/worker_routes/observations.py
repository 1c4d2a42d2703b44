from __future__ import annotations

from typing import Any

from ..errors import NotFoundError, ValidationError
from ..ingest import record_observation
from ..store import MemoryStore
from ..worker_http import (
    clamp_limit,
    optional_str,
    parse_float_value,
    parse_int_value,
    query_param,
    required_str,
)
from ._types import _WorkerHandler

PREFIX = "/api/observations/"
MAX_LIST_LIMIT = 200
MAX_BATCH_IDS = 500


def handle_get(handler: _WorkerHandler, store: MemoryStore, path: str, query: str) -> bool:
    if path == "/api/observations":
        limit = clamp_limit(
            parse_int_value(query_param(query, "limit"), field="limit"),
            default=MemoryStore.RECENT_OBSERVATIONS_LIMIT,
            maximum=MAX_LIST_LIMIT,
        )
        observations = store.recent_observations(limit=limit)
        handler._send_json([o.to_dict() for o in observations])
        return True
    if path.startswith(PREFIX):
        raw_id = path[len(PREFIX) :]
        if not raw_id.isdigit():
            raise ValidationError("observation id must be an integer")
        observation = store.get_observation(int(raw_id))
        if observation is None:
            raise NotFoundError(f"observation not found: {raw_id}")
        handler._send_json(observation.to_dict())
        return True
    return False


def _parse_ids(payload: dict[str, Any]) -> list[int]:
    ids = payload.get("ids")
    if not isinstance(ids, list):
        raise ValidationError("ids must be a list")
    if len(ids) > MAX_BATCH_IDS:
        raise ValidationError(f"at most {MAX_BATCH_IDS} ids per request")
    parsed: list[int] = []
    for value in ids:
        number = parse_int_value(value, field="ids")
        if number is not None:
            parsed.append(number)
    return parsed


def handle_post(
    handler: _WorkerHandler,
    store: MemoryStore,
    path: str,
    payload: dict[str, Any],
) -> bool:
    if path == "/api/observations/batch":
        observations = store.get_observations(_parse_ids(payload))
        handler._send_json([o.to_dict() for o in observations])
        return True
    if path == "/api/observations":
        metadata = payload.get("metadata")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("metadata must be an object")
        observation = record_observation(
            store,
            required_str(payload, "session_key"),
            required_str(payload, "type"),
            project_path=optional_str(payload, "project_path"),
            tool_name=optional_str(payload, "tool_name"),
            input=optional_str(payload, "input"),
            output=optional_str(payload, "output"),
            summary=optional_str(payload, "summary"),
            tokens=parse_int_value(payload.get("tokens"), field="tokens", minimum=0),
            importance=parse_float_value(payload.get("importance"), field="importance"),
            metadata=metadata,
        )
        handler._send_json(observation.to_dict())
        return True
    return False
