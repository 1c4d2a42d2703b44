from __future__ import annotations

import json
import math
from http.server import BaseHTTPRequestHandler
from typing import Any
from urllib.parse import parse_qs, urlparse

from .errors import ValidationError

_ALLOWED_ORIGIN_HOSTS = {"127.0.0.1", "localhost", "::1"}


def _is_allowed_loopback_origin_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in {"http", "https"}:
        return False
    if parsed.username is not None or parsed.password is not None:
        return False
    try:
        hostname = parsed.hostname
        _ = parsed.port
    except ValueError:
        return False
    if hostname not in _ALLOWED_ORIGIN_HOSTS:
        return False
    return (
        parsed.path in ("", "/") and not parsed.params and not parsed.query and not parsed.fragment
    )


def send_json_response(
    handler: BaseHTTPRequestHandler,
    payload: dict[str, Any] | list[Any],
    status: int = 200,
) -> None:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json; charset=utf-8")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def read_json_body(handler: BaseHTTPRequestHandler) -> dict[str, Any] | None:
    """Parse the request body as a JSON object.

    An empty body reads as ``{}``; anything that is not a JSON object is ``None``.
    """

    length = int(handler.headers.get("Content-Length", "0") or 0)
    raw = handler.rfile.read(length).decode("utf-8") if length else ""
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def reject_cross_origin(handler: BaseHTTPRequestHandler) -> bool:
    """Answer 403 for browser requests from non-loopback origins.

    Hook callers send no Origin header and are let through.
    """

    origin = handler.headers.get("Origin")
    if not origin:
        return False
    if _is_allowed_loopback_origin_url(origin):
        return False
    send_json_response(handler, {"error": "forbidden"}, status=403)
    return True


def query_param(query: str, name: str) -> str | None:
    values = parse_qs(query).get(name)
    if not values:
        return None
    value = values[0].strip()
    return value or None


def parse_int_value(value: object, *, field: str, minimum: int | None = None) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer") from exc
    if minimum is not None and parsed < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return parsed


def parse_float_value(value: object, *, field: str) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a number") from exc
    if not math.isfinite(parsed):
        raise ValidationError(f"{field} must be a finite number")
    return parsed


def optional_str(payload: dict[str, Any], field: str) -> str | None:
    value = payload.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


def required_str(payload: dict[str, Any], field: str) -> str:
    value = optional_str(payload, field)
    if value is None or not value.strip():
        raise ValidationError(f"{field} required")
    return value.strip()


def clamp_limit(value: int | None, *, default: int, maximum: int) -> int:
    if value is None:
        return default
    return max(1, min(value, maximum))
