from __future__ import annotations

from typing import Any
from urllib.parse import unquote

from ..errors import NotFoundError
from ..ingest import ensure_session
from ..store import MemoryStore, Session
from ..worker_http import (
    clamp_limit,
    optional_str,
    parse_int_value,
    query_param,
    required_str,
)
from ._types import _WorkerHandler

PREFIX = "/api/sessions/"
MAX_LIST_LIMIT = 200


def _session_key_from_path(path: str, suffix: str = "") -> str | None:
    if not path.startswith(PREFIX) or not path.endswith(suffix):
        return None
    tail = path[len(PREFIX) : len(path) - len(suffix)] if suffix else path[len(PREFIX) :]
    key = unquote(tail).strip()
    if not key or "/" in tail:
        return None
    return key


def _require_session(store: MemoryStore, key: str) -> Session:
    session = store.get_session(key)
    if session is None:
        raise NotFoundError(f"session not found: {key}")
    return session


def handle_get(handler: _WorkerHandler, store: MemoryStore, path: str, query: str) -> bool:
    if path == "/api/sessions":
        limit = clamp_limit(
            parse_int_value(query_param(query, "limit"), field="limit"),
            default=MemoryStore.RECENT_SESSIONS_LIMIT,
            maximum=MAX_LIST_LIMIT,
        )
        sessions = store.recent_sessions(limit=limit)
        handler._send_json([s.to_dict() for s in sessions])
        return True
    key = _session_key_from_path(path, "/observations")
    if key is not None:
        session = _require_session(store, key)
        observations = store.session_observations(session.id)
        handler._send_json([o.to_dict() for o in observations])
        return True
    key = _session_key_from_path(path)
    if key is not None:
        handler._send_json(_require_session(store, key).to_dict())
        return True
    return False


def handle_post(
    handler: _WorkerHandler,
    store: MemoryStore,
    path: str,
    payload: dict[str, Any],
) -> bool:
    if path == "/api/sessions":
        session_key = required_str(payload, "session_key")
        session = ensure_session(store, session_key, optional_str(payload, "project_path"))
        handler._send_json(session.to_dict())
        return True
    key = _session_key_from_path(path, "/end")
    if key is not None:
        ended = store.end_session(key, optional_str(payload, "summary"))
        if ended:
            handler._send_json({"success": True})
        else:
            handler._send_json({"success": False, "error": "session already ended"})
        return True
    return False
