from __future__ import annotations

from typing import Any

from ..config import ContextInjectionSettings
from ..ingest import capture_tool_result, ensure_session
from ..store import MemoryStore
from ..worker_http import optional_str, parse_float_value, required_str
from ._types import _WorkerHandler


def _session_start(
    store: MemoryStore, payload: dict[str, Any], settings: ContextInjectionSettings
) -> dict[str, Any]:
    project_path = optional_str(payload, "project_path")
    session = ensure_session(store, required_str(payload, "session_key"), project_path)
    context: dict[str, Any] = {"observations": [], "totalTokens": 0, "contextText": ""}
    if settings.enabled:
        bundle = store.get_context_for_injection(
            project_path=project_path,
            max_tokens=settings.max_tokens,
            include_types=settings.include_types,
        )
        context = bundle.to_dict()
    return {"session": session.to_dict(), "context": context}


def handle_post(
    handler: _WorkerHandler,
    store: MemoryStore,
    path: str,
    payload: dict[str, Any],
    *,
    settings: ContextInjectionSettings,
) -> bool:
    if path == "/api/hooks/session-start":
        handler._send_json(_session_start(store, payload, settings))
        return True
    if path == "/api/hooks/tool-result":
        observation = capture_tool_result(
            store,
            required_str(payload, "session_key"),
            required_str(payload, "tool_name"),
            payload.get("input"),
            payload.get("output"),
            observation_type=optional_str(payload, "type"),
            importance=parse_float_value(payload.get("importance"), field="importance"),
            project_path=optional_str(payload, "project_path"),
        )
        handler._send_json(observation.to_dict())
        return True
    if path == "/api/hooks/session-end":
        ended = store.end_session(
            required_str(payload, "session_key"), optional_str(payload, "summary")
        )
        if ended:
            handler._send_json({"success": True})
        else:
            handler._send_json({"success": False, "error": "session already ended"})
        return True
    return False
