from __future__ import annotations

from ..config import ContextInjectionSettings
from ..store import MemoryStore
from ..worker_http import parse_int_value, query_param
from ._types import _WorkerHandler


def handle_get(
    handler: _WorkerHandler,
    store: MemoryStore,
    path: str,
    query: str,
    *,
    settings: ContextInjectionSettings,
) -> bool:
    if path != "/api/context":
        return False
    max_tokens = parse_int_value(query_param(query, "max_tokens"), field="max_tokens", minimum=0)
    bundle = store.get_context_for_injection(
        project_path=query_param(query, "project_path"),
        max_tokens=settings.max_tokens if max_tokens is None else max_tokens,
        include_types=settings.include_types,
    )
    handler._send_json(bundle.to_dict())
    return True
