"""Hook-side client for the worker.

Every call returns a :class:`WorkerResponse`; transport failures surface as an
``unavailable`` response instead of an exception so hooks can carry on
without memory.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from http.client import HTTPConnection, HTTPException, HTTPSConnection
from typing import Any, Literal
from urllib.parse import urlencode, urlsplit

from .config import OpenclawMemConfig
from .errors import TransportError
from .store.context import format_memory_block

logger = logging.getLogger(__name__)

HEALTH_TIMEOUT_S = 1.0
CALL_TIMEOUT_S = 3.0

ResponseStatus = Literal["ok", "error", "unavailable"]


def worker_base_url(address: str) -> str:
    address = address.strip().rstrip("/")
    if address and "://" not in address:
        address = f"http://{address}"
    return address


def _exchange(
    method: str, url: str, body: dict[str, Any] | None, timeout_s: float
) -> tuple[int, Any]:
    """One JSON round trip with the worker.

    Returns the status and the decoded payload (a dict, a list, or None for an
    empty body). Raises TransportError when no JSON answer arrives.
    """

    target = urlsplit(url)
    if not target.hostname:
        raise TransportError(f"no host in worker url {url!r}")
    connection_cls = HTTPSConnection if target.scheme == "https" else HTTPConnection
    conn = connection_cls(target.hostname, target.port, timeout=timeout_s)
    path = target.path or "/"
    if target.query:
        path = f"{path}?{target.query}"
    headers = {"Accept": "application/json"}
    encoded = None
    if body is not None:
        encoded = json.dumps(body, ensure_ascii=False).encode("utf-8")
        headers["Content-Type"] = "application/json"
    try:
        conn.request(method, path, body=encoded, headers=headers)
        resp = conn.getresponse()
        status = int(resp.status)
        raw = resp.read()
    except (OSError, HTTPException) as exc:
        detail = str(exc) or type(exc).__name__
        raise TransportError(f"{method} {path}: {detail}") from exc
    finally:
        conn.close()
    if not raw:
        return status, None
    try:
        return status, json.loads(raw)
    except ValueError as exc:
        raise TransportError(f"{method} {path}: non-json answer (http {status})") from exc


def _error_text(payload: Any) -> str | None:
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return None


@dataclass
class WorkerResponse:
    status: ResponseStatus
    # Object endpoints decode to a dict, list endpoints to a list.
    data: Any = field(default_factory=dict)
    http_status: int | None = None
    error: str | None = None

    @property
    def available(self) -> bool:
        return self.status != "unavailable"

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class WorkerClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = CALL_TIMEOUT_S,
        health_timeout_s: float = HEALTH_TIMEOUT_S,
    ) -> None:
        self.base_url = worker_base_url(base_url)
        self.timeout_s = timeout_s
        self.health_timeout_s = health_timeout_s

    @classmethod
    def from_config(cls, config: OpenclawMemConfig) -> WorkerClient:
        return cls(config.worker_url)

    def url(self, path: str, params: dict[str, Any] | None = None) -> str:
        query = {key: value for key, value in (params or {}).items() if value is not None}
        if not query:
            return f"{self.base_url}{path}"
        return f"{self.base_url}{path}?{urlencode(query)}"

    def _call(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        timeout_s: float | None = None,
    ) -> WorkerResponse:
        try:
            status, payload = _exchange(
                method, self.url(path, params), body, timeout_s or self.timeout_s
            )
        except TransportError as exc:
            logger.debug("worker unavailable: %s", exc)
            return WorkerResponse(status="unavailable", error=str(exc))
        data = {} if payload is None else payload
        if 200 <= status < 300:
            return WorkerResponse(status="ok", data=data, http_status=status)
        if status == 503:
            return WorkerResponse(
                status="unavailable",
                data=data,
                http_status=status,
                error=_error_text(payload) or "storage unavailable",
            )
        return WorkerResponse(
            status="error",
            data=data,
            http_status=status,
            error=_error_text(payload) or f"http {status}",
        )

    def health(self) -> WorkerResponse:
        return self._call("GET", "/api/health", timeout_s=self.health_timeout_s)

    def is_available(self) -> bool:
        return self.health().ok

    def stats(self) -> WorkerResponse:
        return self._call("GET", "/api/stats")

    def session_start(self, session_key: str, project_path: str | None = None) -> WorkerResponse:
        return self._call(
            "POST",
            "/api/hooks/session-start",
            body={"session_key": session_key, "project_path": project_path},
        )

    def tool_result(
        self,
        session_key: str,
        tool_name: str,
        tool_input: Any,
        tool_output: Any,
        *,
        observation_type: str | None = None,
        importance: float | None = None,
        project_path: str | None = None,
    ) -> WorkerResponse:
        body: dict[str, Any] = {
            "session_key": session_key,
            "tool_name": tool_name,
            "input": tool_input,
            "output": tool_output,
        }
        if observation_type is not None:
            body["type"] = observation_type
        if importance is not None:
            body["importance"] = importance
        if project_path is not None:
            body["project_path"] = project_path
        return self._call("POST", "/api/hooks/tool-result", body=body)

    def session_end(self, session_key: str, summary: str | None = None) -> WorkerResponse:
        return self._call(
            "POST",
            "/api/hooks/session-end",
            body={"session_key": session_key, "summary": summary},
        )

    def search(
        self,
        query: str,
        *,
        type: str | None = None,
        since: str | None = None,
        project_path: str | None = None,
        limit: int | None = None,
    ) -> WorkerResponse:
        body: dict[str, Any] = {"query": query}
        for key, value in (
            ("type", type),
            ("since", since),
            ("project_path", project_path),
            ("limit", limit),
        ):
            if value is not None:
                body[key] = value
        return self._call("POST", "/api/search", body=body)

    def get_observation(self, observation_id: int) -> WorkerResponse:
        return self._call("GET", f"/api/observations/{int(observation_id)}")

    def get_observations(self, ids: Iterable[int]) -> WorkerResponse:
        """Fetch several observations; ``data`` is the list of those that exist."""

        return self._call("POST", "/api/observations/batch", body={"ids": [int(i) for i in ids]})

    def timeline(self, observation_id: int, range_hours: float | None = None) -> WorkerResponse:
        body: dict[str, Any] = {"observation_id": int(observation_id)}
        if range_hours is not None:
            body["range_hours"] = range_hours
        return self._call("POST", "/api/timeline", body=body)

    def context(
        self, project_path: str | None = None, max_tokens: int | None = None
    ) -> WorkerResponse:
        return self._call(
            "GET",
            "/api/context",
            params={"project_path": project_path, "max_tokens": max_tokens},
        )


def memory_context_text(response: WorkerResponse) -> str:
    """Render a session-start response as the block prepended to the prompt.

    Returns an empty string when the worker was unavailable or had nothing
    worth injecting.
    """

    if not response.ok:
        return ""
    data = response.data if isinstance(response.data, dict) else {}
    context = data.get("context") or {}
    block = format_memory_block(
        str(context.get("contextText") or ""), int(context.get("totalTokens") or 0)
    )
    if not block:
        return ""
    return f"<memory-context>\n{block}\n</memory-context>"
